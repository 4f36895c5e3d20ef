"""
citegraph CLI - project citation graphs from a local article store.
"""

import argparse
import json
import sys
import logging

from .core.config import CitegraphConfig
from .core.db import ArticleStore
from .core.errors import CitegraphError
from .core.resilience import setup_logging
from .export.formats import GraphExporter
from .graph.builder import CitationGraphBuilder
from .inputs.collection import read_records, import_collection

logger = logging.getLogger("citegraph.cli")


def _store(config: CitegraphConfig) -> ArticleStore:
    return ArticleStore(config.storage.db_path, create_schema=config.storage.create_schema)


def cmd_build(args, config: CitegraphConfig) -> int:
    """build a project graph, print JSON or write files."""
    if args.no_enrich:
        config.enrichment.enabled = False

    builder = CitationGraphBuilder.from_config(config)

    params = {
        "filter": args.filter,
        "depth": args.depth,
        "yearFrom": args.year_from,
        "yearTo": args.year_to,
        "statsQuality": args.stats_quality,
        "sortBy": args.sort_by,
        "maxLinksPerNode": args.max_links,
        "maxTotalNodes": args.max_nodes,
    }
    if args.source_query:
        params["sourceQueries"] = json.dumps(args.source_query)
    if args.source:
        params["sources"] = json.dumps(args.source)

    result = builder.build_from_params(args.project, params)

    if args.output:
        exporter = GraphExporter(args.output)
        if args.format in ("json", "all"):
            print(f"JSON: {exporter.export_json(result)}")
        if args.format in ("graphml", "all"):
            print(f"GraphML: {exporter.export_graphml(result)}")
    else:
        json.dump(result.to_dict(), sys.stdout, indent=2)
        sys.stdout.write("\n")

    counts = result.level_counts
    logger.info(
        f"[cli] {len(result.nodes)} nodes (L0={counts.level0} L1={counts.level1} "
        f"L2={counts.level2} L3={counts.level3}), {len(result.edges)} edges"
    )
    return 0


def cmd_import(args, config: CitegraphConfig) -> int:
    """load a JSON collection into the store."""
    store = _store(config)
    records = read_records(args.path)
    counts = import_collection(store, records, project_id=args.project)
    print(
        f"Imported {counts['articles']} articles "
        f"({counts['reused']} already stored, {counts['skipped']} skipped, "
        f"{counts['memberships']} memberships)"
    )
    return 0


def cmd_serve(args, config: CitegraphConfig) -> int:
    """serve the http api."""
    import uvicorn
    from .web.app import create_app

    app = create_app(CitationGraphBuilder.from_config(config), config)
    uvicorn.run(app, host=args.host or config.web.host, port=args.port or config.web.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="citegraph",
        description="Project citation graph builder.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  citegraph import export.json --project p1
  citegraph build p1 --depth 3 --max-nodes 300
  citegraph build p1 --depth 2 -o out --format graphml
  citegraph serve --port 8765
        """
    )
    parser.add_argument("--db", help="sqlite article store (default: $CITEGRAPH_DB_PATH or citegraph.db)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="warnings only")

    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="build a project's citation graph")
    build.add_argument("project", help="project id")
    build.add_argument("--depth", type=int, default=1, help="1-3 (default: 1)")
    build.add_argument("--filter", default="all", choices=["all", "selected", "excluded"])
    build.add_argument("--year-from", type=int)
    build.add_argument("--year-to", type=int)
    build.add_argument("--stats-quality", type=int, help="minimum statistics quality (1-3)")
    build.add_argument("--source-query", action="append", help="restrict to a source query (repeatable)")
    build.add_argument("--source", action="append", help="pubmed, doaj or wiley (repeatable)")
    build.add_argument("--sort-by", default="frequency", choices=["default", "frequency", "citations", "year"])
    build.add_argument("--max-links", type=int, default=10, help="links per node (default: 10)")
    build.add_argument("--max-nodes", type=int, default=500, help="node budget (default: 500)")
    build.add_argument("--no-enrich", action="store_true", help="skip pubmed and crossref enrichment")
    build.add_argument("-o", "--output", help="output directory (default: print JSON)")
    build.add_argument("--format", default="all", choices=["json", "graphml", "all"])
    build.set_defaults(func=cmd_build)

    imp = sub.add_parser("import", help="import a JSON collection")
    imp.add_argument("path", help="JSON file")
    imp.add_argument("--project", help="attach imported articles to this project")
    imp.set_defaults(func=cmd_import)

    serve = sub.add_parser("serve", help="run the http api")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # setup logging
    log_level = logging.WARNING if args.quiet else (logging.DEBUG if args.verbose else logging.INFO)
    setup_logging(level=log_level)

    config = CitegraphConfig.from_env()
    if args.db:
        config.storage.db_path = args.db

    try:
        return args.func(args, config)
    except CitegraphError as e:
        logger.error(f"[cli] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
