#!/usr/bin/env python3
"""
test the crossref lookup against canned /works responses (no network).

run with: pytest test_crossref.py -v
"""

import httpx
import pytest

from citegraph.core.config import ProviderConfig
from citegraph.core.errors import LookupFailed
from citegraph.providers.crossref import CrossrefLookup


WORK = {
    "status": "ok",
    "message": {
        "DOI": "10.2000/EXT",
        "title": ["Registry outcomes after stenting"],
        "container-title": ["Registry Journal"],
        "author": [
            {"given": "Soo-Jin", "family": "Kim"},
            {"given": "J. R.", "family": "Park"},
            {"name": "Registry Consortium"},
        ],
        "issued": {"date-parts": [[2015, 6]]},
        "is-referenced-by-count": 42,
        "abstract": "<jats:p>Risk fell (p &lt; 0.01) with <jats:italic>early</jats:italic> stenting.</jats:p>",
    },
}


def make_lookup(handler, **config):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    sleeps = []
    lookup = CrossrefLookup(ProviderConfig(**config), client=client, sleep=sleeps.append)
    return lookup, sleeps


class TestCrossrefLookup:

    def test_fetch_and_parse(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=WORK)

        lookup, _ = make_lookup(handler, crossref_mailto="lab@example.org")
        articles = lookup.fetch_by_ids(["https://doi.org/10.2000/EXT", "10.2000/ext"])

        assert len(seen) == 1
        assert seen[0].url.path == "/works/10.2000/ext"
        assert "mailto:lab@example.org" in seen[0].headers["user-agent"]

        work = articles[0]
        assert work.pmid is None
        assert work.doi == "10.2000/ext"
        assert work.title == "Registry outcomes after stenting"
        assert work.journal == "Registry Journal"
        assert work.year == 2015
        assert work.authors == ["Kim SJ", "Park JR", "Registry Consortium"]
        assert work.cited_by_count == 42
        assert work.abstract == "Risk fell (p < 0.01) with early stenting."

    def test_year_fallbacks(self):
        work = {"DOI": "10.1/x", "published-online": {"date-parts": [[2009, 1, 2]]},
                "issued": {"date-parts": [[None]]}}

        assert CrossrefLookup.parse_work(work).year == 2009
        assert CrossrefLookup.parse_work({"DOI": "10.1/x"}).year is None

    def test_unknown_doi_skipped(self):
        def handler(request):
            if request.url.path.endswith("/missing"):
                return httpx.Response(404)
            return httpx.Response(200, json=WORK)

        lookup, sleeps = make_lookup(handler)
        articles = lookup.fetch_by_ids(["10.9/missing", "10.2000/ext"], throttle_ms=100)

        assert [a.doi for a in articles] == ["10.2000/ext"]
        # one pause between the two requests
        assert len(sleeps) == 1
        assert 0 < sleeps[0] <= 0.1

    def test_retries_rate_limit(self):
        responses = [httpx.Response(429), httpx.Response(200, json=WORK)]

        lookup, _ = make_lookup(lambda request: responses.pop(0), max_retries=2)

        assert len(lookup.fetch_by_ids(["10.2000/ext"])) == 1
        assert responses == []

    def test_single_failure_does_not_fail_batch(self):
        def handler(request):
            if request.url.path.endswith("/bad"):
                return httpx.Response(400)
            return httpx.Response(200, json=WORK)

        lookup, _ = make_lookup(handler)

        assert len(lookup.fetch_by_ids(["10.9/bad", "10.2000/ext"])) == 1

    def test_all_failing_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        lookup, _ = make_lookup(handler, max_retries=2)

        with pytest.raises(LookupFailed):
            lookup.fetch_by_ids(["10.1/a", "10.1/b"])

    def test_invalid_json_counts_as_failure(self):
        lookup, _ = make_lookup(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(LookupFailed):
            lookup.fetch_by_ids(["10.1/a"])

    def test_no_valid_ids_no_request(self):
        lookup, _ = make_lookup(lambda request: pytest.fail("unexpected request"))

        assert lookup.fetch_by_ids(["", None]) == []
