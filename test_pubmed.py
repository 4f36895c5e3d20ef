#!/usr/bin/env python3
"""
test the pubmed lookup against canned efetch responses (no network).

run with: pytest test_pubmed.py -v
"""

import httpx
import pytest

from citegraph.core.config import ProviderConfig
from citegraph.core.errors import LookupFailed
from citegraph.providers.pubmed import PubMedLookup


EFETCH_XML = b"""<?xml version="1.0"?>
<PubmedArticleSet>
  <PubmedArticle>
    <MedlineCitation>
      <PMID Version="1">999</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><Year>2018</Year><Month>Mar</Month></PubDate></JournalIssue>
          <Title>Journal of Tests</Title>
        </Journal>
        <ArticleTitle>A <i>randomised</i> trial</ArticleTitle>
        <Abstract>
          <AbstractText Label="RESULTS">Benefit was clear (p &lt; 0.0001).</AbstractText>
          <AbstractText Label="CONCLUSIONS">Adopt it.</AbstractText>
        </Abstract>
        <AuthorList>
          <Author><LastName>Doe</LastName><ForeName>Jane</ForeName><Initials>J</Initials></Author>
          <Author><CollectiveName>Trial Group</CollectiveName></Author>
        </AuthorList>
      </Article>
    </MedlineCitation>
    <PubmedData>
      <ArticleIdList>
        <ArticleId IdType="pubmed">999</ArticleId>
        <ArticleId IdType="doi">10.1000/ABC</ArticleId>
      </ArticleIdList>
    </PubmedData>
  </PubmedArticle>
  <PubmedArticle>
    <MedlineCitation>
      <PMID Version="1">1000</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><MedlineDate>1998 Dec-1999 Jan</MedlineDate></PubDate></JournalIssue>
          <Title>Old Journal</Title>
        </Journal>
        <ArticleTitle>Older work</ArticleTitle>
        <ELocationID EIdType="doi">10.1000/old</ELocationID>
      </Article>
    </MedlineCitation>
  </PubmedArticle>
</PubmedArticleSet>
"""


def make_lookup(handler, **config):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    sleeps = []
    lookup = PubMedLookup(ProviderConfig(**config), client=client, sleep=sleeps.append)
    return lookup, sleeps


class TestPubMedLookup:

    def test_fetch_and_parse(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=EFETCH_XML)

        lookup, _ = make_lookup(handler, pubmed_api_key="secret")
        articles = lookup.fetch_by_ids(["999", "1000", "999", "not-a-pmid"])

        assert len(seen) == 1
        params = seen[0].url.params
        assert params["id"] == "999,1000"
        assert params["db"] == "pubmed"
        assert params["api_key"] == "secret"
        assert seen[0].url.path.endswith("/efetch.fcgi")

        first, second = articles
        assert first.pmid == "999"
        assert first.title == "A randomised trial"
        assert first.authors == ["Doe J", "Trial Group"]
        assert first.journal == "Journal of Tests"
        assert first.year == 2018
        assert first.doi == "10.1000/abc"
        assert "p < 0.0001" in first.abstract
        assert "Adopt it." in first.abstract

        assert second.year == 1998
        assert second.doi == "10.1000/old"
        assert second.abstract is None

    def test_batches_of_two_hundred(self):
        batches = []

        def handler(request):
            batches.append(request.url.params["id"].split(","))
            return httpx.Response(200, content=b"<PubmedArticleSet/>")

        lookup, sleeps = make_lookup(handler)
        lookup.fetch_by_ids([str(i) for i in range(1, 451)], throttle_ms=500)

        assert [len(b) for b in batches] == [200, 200, 50]
        # second and third requests wait for the throttle
        assert len(sleeps) == 2
        assert all(0 < s <= 0.5 for s in sleeps)

    def test_retries_server_errors(self):
        responses = [httpx.Response(503), httpx.Response(429), httpx.Response(200, content=EFETCH_XML)]

        def handler(request):
            return responses.pop(0)

        lookup, _ = make_lookup(handler, max_retries=3)

        assert len(lookup.fetch_by_ids(["999"])) == 2
        assert responses == []

    def test_gives_up_after_retries(self):
        lookup, _ = make_lookup(lambda request: httpx.Response(500), max_retries=2)

        with pytest.raises(LookupFailed):
            lookup.fetch_by_ids(["999"])

    def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400)

        lookup, _ = make_lookup(handler, max_retries=3)

        with pytest.raises(LookupFailed):
            lookup.fetch_by_ids(["999"])
        assert len(calls) == 1

    def test_transport_error_becomes_lookup_failed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        lookup, _ = make_lookup(handler, max_retries=2)

        with pytest.raises(LookupFailed):
            lookup.fetch_by_ids(["999"])

    def test_bad_xml(self):
        lookup, _ = make_lookup(lambda request: httpx.Response(200, content=b"<not-closed"))

        with pytest.raises(LookupFailed):
            lookup.fetch_by_ids(["999"])

    def test_no_valid_ids_no_request(self):
        lookup, _ = make_lookup(lambda request: pytest.fail("unexpected request"))

        assert lookup.fetch_by_ids(["", "abc"]) == []
