"""
statistics quality of an abstract.
v0 implementation uses regex matching of reported p-values.
"""

import re
import math
from typing import List, Optional, Tuple


# p < 0.05, p=0.001, P ≤ 0.01, p<1e-5
P_VALUE_PATTERN = re.compile(r'\b[pP]\s*([<=>≤≥])\s*(0\.\d+|\d+\.\d+|\d+e-\d+)\b')

# 95% CI 1.2-2.3 or (95% CI, 1.2 to 2.3)
CI_PATTERN = re.compile(
    r'\b(?:95%\s*CI|CI\s*95%)[^0-9]{0,10}(-?\d+(?:\.\d+)?)[\s–-]+(?:to\s+)?(-?\d+(?:\.\d+)?)',
    re.IGNORECASE
)


def extract_p_values(text: Optional[str]) -> List[Tuple[str, float]]:
    """(operator, value) for every reported p-value."""
    if not text:
        return []
    text = re.sub(r'\s+', ' ', text)

    values = []
    for match in P_VALUE_PATTERN.finditer(text):
        try:
            values.append((match.group(1), float(match.group(2))))
        except ValueError:
            continue
    return values


def has_confidence_interval(text: Optional[str]) -> bool:
    if not text:
        return False
    return CI_PATTERN.search(re.sub(r'\s+', ' ', text)) is not None


def stats_quality(text: Optional[str]) -> int:
    """
    0..3 rating of the reported statistics.

    3 = some p < 0.001
    2 = some p < 0.01
    1 = some p < 0.05
    0 = nothing significant reported
    a 95% CI adds half a point, floored.
    """
    quality = 0.0
    for operator, value in extract_p_values(text):
        # lower bounds ("p > 0.05") report non-significant results and
        # never raise the score, whatever their value
        if operator in (">", "≥"):
            continue
        if value < 0.001:
            quality = max(quality, 3)
        elif value < 0.01:
            quality = max(quality, 2)
        elif value < 0.05:
            quality = max(quality, 1)

    if quality > 0 and has_confidence_interval(text):
        quality = min(quality + 0.5, 3)

    return int(math.floor(quality))
