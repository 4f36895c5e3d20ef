"""
citegraph web application - project citation graph over http.

run:
    uvicorn citegraph.web.app:create_default_app --factory --port 8765

endpoints:
    GET /api/health                               → liveness + store info
    GET /api/projects/{project_id}/citation-graph → graph JSON
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from ..core.config import CitegraphConfig
from ..core.errors import StorageError
from ..graph.builder import CitationGraphBuilder

logger = logging.getLogger("citegraph.web")


# models
class HealthStatus(BaseModel):
    status: str
    store: str
    enrichment: bool
    lookup: Optional[str] = None
    doi_lookup: Optional[str] = None


def create_app(builder: CitationGraphBuilder,
               config: Optional[CitegraphConfig] = None) -> FastAPI:
    """app bound to one builder; the builder is shared across requests."""
    config = config or builder.config
    app = FastAPI(title=config.web.title, description="Project citation graphs")

    @app.get("/api/health", response_model=HealthStatus)
    def health():
        return HealthStatus(
            status="ok",
            store=str(builder.store.db_path),
            enrichment=config.enrichment.enabled and (
                builder.lookup is not None or builder.doi_lookup is not None
            ),
            lookup=builder.lookup.name if builder.lookup else None,
            doi_lookup=builder.doi_lookup.name if builder.doi_lookup else None,
        )

    # sync handler: fastapi runs it in the threadpool
    @app.get("/api/projects/{project_id}/citation-graph")
    def citation_graph(project_id: str, request: Request):
        params = dict(request.query_params)
        try:
            result = builder.build_from_params(project_id, params)
        except StorageError as e:
            logger.error(f"[web] storage unavailable for project {project_id}: {e}")
            raise HTTPException(status_code=503, detail="Article store unavailable")
        return result.to_dict()

    return app


def create_default_app() -> FastAPI:
    """app configured from CITEGRAPH_* environment variables."""
    config = CitegraphConfig.from_env()
    builder = CitationGraphBuilder.from_config(config)
    logger.info(
        f"[web] serving {config.storage.db_path} "
        f"(enrichment={config.enrichment.enabled})"
    )
    return create_app(builder, config)
