"""
request normalizer - raw query params -> sanitized GraphRequest.
never raises: bad values are clamped or defaulted.
"""

import json
import logging
from typing import Any, Mapping, Optional, List

from ..core.config import LimitsConfig
from ..core.models import GraphRequest, StatusFilter, SortBy, VALID_SOURCES

logger = logging.getLogger("citegraph.request")

# anything outside this range is treated as no year filter
MIN_YEAR = 0
MAX_YEAR = 9999

MAX_STATS_QUALITY = 3


def _parse_int(value: Any) -> Optional[int]:
    """int(value) or None, accepting '12', 12 and ' 12 '."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        try:
            return int(float(str(value).strip()))
        except (TypeError, ValueError, OverflowError):
            return None


def _parse_year(value: Any) -> Optional[int]:
    year = _parse_int(value)
    if year is None or not MIN_YEAR <= year <= MAX_YEAR:
        return None
    return year


def _clamp(value: Optional[int], default: int, low: int, high: int) -> int:
    if value is None:
        value = default
    return min(high, max(low, value))


def _parse_string_list(value: Any) -> List[str]:
    """json-encoded list of strings; anything else is an empty list."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        try:
            items = json.loads(value)
        except (TypeError, ValueError):
            logger.debug(f"[request] ignoring malformed list parameter: {value!r}")
            return []
    if not isinstance(items, list):
        return []
    return [str(i) for i in items if isinstance(i, str) and i.strip()]


def _parse_enum(enum_cls, value: Any, default):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def normalize_request(
    params: Mapping[str, Any],
    limits: Optional[LimitsConfig] = None
) -> GraphRequest:
    """
    build a GraphRequest from query-string style parameters.

    recognised keys: filter, depth, yearFrom, yearTo, statsQuality,
    sourceQueries, sources, sortBy, maxLinksPerNode, maxTotalNodes.
    """
    limits = limits or LimitsConfig()

    status_filter = StatusFilter.ALL
    if params.get("filter"):
        status_filter = _parse_enum(StatusFilter, params["filter"], StatusFilter.ALL)

    # citations ranking is opt-in; frequency is the default
    sort_by = SortBy.FREQUENCY
    if params.get("sortBy"):
        sort_by = _parse_enum(SortBy, params["sortBy"], SortBy.FREQUENCY)

    min_quality = _parse_int(params.get("statsQuality"))
    if min_quality is not None:
        min_quality = min(min_quality, MAX_STATS_QUALITY)
        if min_quality <= 0:
            min_quality = None

    sources = [s.lower() for s in _parse_string_list(params.get("sources"))]
    sources = [s for s in sources if s in VALID_SOURCES]

    return GraphRequest(
        filter=status_filter,
        depth=_clamp(_parse_int(params.get("depth")),
                     limits.default_depth, limits.min_depth, limits.max_depth),
        year_from=_parse_year(params.get("yearFrom")),
        year_to=_parse_year(params.get("yearTo")),
        min_stats_quality=min_quality,
        source_queries=_parse_string_list(params.get("sourceQueries")),
        sources=sources,
        sort_by=sort_by,
        max_links_per_node=_clamp(_parse_int(params.get("maxLinksPerNode")),
                                  limits.default_links_per_node,
                                  limits.min_links_per_node,
                                  limits.max_links_per_node),
        max_total_nodes=_clamp(_parse_int(params.get("maxTotalNodes")),
                               limits.default_total_nodes,
                               limits.min_total_nodes,
                               limits.max_total_nodes),
    )
