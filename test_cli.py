#!/usr/bin/env python3
"""
test collection import, export formats and the command line.

run with: pytest test_cli.py -v
"""

import json

import networkx as nx
import pytest

from citegraph.cli import main
from citegraph.core.config import CitegraphConfig
from citegraph.core.db import ArticleStore
from citegraph.core.models import GraphRequest
from citegraph.export.formats import GraphExporter, to_networkx
from citegraph.inputs.collection import read_records, import_collection, record_to_article


COLLECTION = {
    "articles": [
        {"id": "A", "pmid": "101", "doi": "10.1000/A", "title": "Alpha",
         "authors": ["Smith J"], "year": 2019, "status": "selected",
         "sourceQuery": "aspirin", "referencePmids": ["102", "999"]},
        {"id": "B", "pmid": "102", "title": "Beta", "authors": "Jones K, Lee M",
         "year": "2017", "status": "candidate", "statsQuality": 2},
        {"pmid": "103", "title": "Gamma", "status": "nonsense"},
        {"journal": "no identifiers at all"},
    ]
}


@pytest.fixture
def collection_file(tmp_path):
    path = tmp_path / "export.json"
    path.write_text(json.dumps(COLLECTION))
    return str(path)


class TestCollectionImport:

    def test_record_mapping(self):
        article = record_to_article(COLLECTION["articles"][1])

        assert article.id == "B"
        assert article.authors == ("Jones K", "Lee M")
        assert article.year == 2017
        assert article.stats_quality == 2
        assert article.source == "pubmed"
        assert record_to_article(COLLECTION["articles"][3]) is None

    def test_import_and_reuse(self, store, collection_file):
        records = read_records(collection_file)

        first = import_collection(store, records, project_id="p1")
        second = import_collection(store, records, project_id="p2")

        assert first == {"articles": 3, "reused": 0, "memberships": 3, "skipped": 1}
        assert second["reused"] == 3
        assert store.count_articles() == 3

        rows = store.list_project_articles("p1")
        assert [r.status for r in rows[:2]] == ["selected", "candidate"]
        assert rows[2].status == "candidate"
        assert rows[0].source_query == "aspirin"

    def test_bare_list(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps([{"pmid": "1"}, "junk"]))

        assert read_records(str(path)) == [{"pmid": "1"}]


class TestExport:

    def test_networkx_and_files(self, builder, abc_project, tmp_path):
        result = builder.build(abc_project, GraphRequest(depth=2))

        G = to_networkx(result)
        assert G.number_of_nodes() == 4
        assert G.has_edge("A", "B")
        assert G.nodes["pmid:999"]["isPlaceholder"] is True
        assert "title" not in G.nodes["pmid:999"]

        exporter = GraphExporter(str(tmp_path / "out"))
        graphml = exporter.export_graphml(result)
        loaded = nx.read_graphml(graphml)
        assert set(loaded.edges()) == {("A", "B"), ("C", "pmid:999")}

        with open(exporter.export_json(result)) as f:
            data = json.load(f)
        assert data["meta"]["node_count"] == 4
        assert len(data["edges"]) == 2


class TestCommandLine:

    def test_import_then_build(self, tmp_path, collection_file, capsys):
        db = str(tmp_path / "cli.db")

        assert main(["--db", db, "-q", "import", collection_file, "--project", "p1"]) == 0
        assert "Imported 3 articles" in capsys.readouterr().out

        assert main(["--db", db, "-q", "build", "p1", "--depth", "2", "--no-enrich"]) == 0
        data = json.loads(capsys.readouterr().out)

        ids = {n["id"] for n in data["nodes"]}
        assert {"A", "B", "pmid:999"} <= ids
        assert {"source": "A", "target": "B"} in data["edges"]

    def test_build_writes_files(self, tmp_path, collection_file):
        db = str(tmp_path / "cli.db")
        out = tmp_path / "out"
        main(["--db", db, "-q", "import", collection_file, "--project", "p1"])

        code = main(["--db", db, "-q", "build", "p1", "--no-enrich",
                     "-o", str(out), "--format", "graphml"])

        assert code == 0
        assert (out / "graph.graphml").exists()
        assert not (out / "graph.json").exists()

    def test_env_config(self, monkeypatch):
        monkeypatch.setenv("CITEGRAPH_ENRICH_TIMEOUT", "2.5")
        monkeypatch.setenv("CITEGRAPH_PUBMED_API_KEY", "k")
        monkeypatch.setenv("CITEGRAPH_CROSSREF_MAILTO", "lab@example.org")

        config = CitegraphConfig.from_env()

        assert config.enrichment.timeout_seconds == 2.5
        assert config.providers.min_delay == pytest.approx(0.1)
        assert config.providers.crossref_mailto == "lab@example.org"
