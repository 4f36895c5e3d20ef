"""
configuration for citegraph.
all settings in one place, easily tunable.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class LimitsConfig:
    """request defaults and clamping ranges."""
    # depth
    default_depth: int = 1
    min_depth: int = 1
    max_depth: int = 3

    # per-node fan-out for levels 0/2
    default_links_per_node: int = 10
    min_links_per_node: int = 1
    max_links_per_node: int = 50

    # total node budget (level 1 included)
    default_total_nodes: int = 500
    min_total_nodes: int = 10
    max_total_nodes: int = 2000

    # related work (level 3) hard cap
    max_related_candidates: int = 200


@dataclass
class EnrichmentConfig:
    """placeholder enrichment settings."""
    enabled: bool = True
    max_batch: int = 150
    throttle_ms: int = 200       # per-item delay, honoured by the lookup
    timeout_seconds: float = 20.0

    # doi placeholders go to crossref, one request per doi
    max_doi_batch: int = 100
    doi_throttle_ms: int = 100


@dataclass
class ProviderConfig:
    """external lookup settings (pubmed e-utilities, crossref)."""
    pubmed_email: str = "citegraph@example.org"
    pubmed_api_key: Optional[str] = None
    request_timeout: float = 30.0
    max_retries: int = 3

    # rate limits (requests per second)
    pubmed_rps: float = 3.0
    pubmed_rps_with_key: float = 10.0

    # crossref polite pool: identify with a mailto
    crossref_mailto: str = "citegraph@example.org"

    @property
    def min_delay(self) -> float:
        rps = self.pubmed_rps_with_key if self.pubmed_api_key else self.pubmed_rps
        return 1.0 / rps


@dataclass
class StorageConfig:
    """article store settings."""
    db_path: str = "citegraph.db"
    create_schema: bool = True


@dataclass
class WebConfig:
    """http wrapper settings."""
    title: str = "citegraph"
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class CitegraphConfig:
    """master configuration for citegraph."""
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    web: WebConfig = field(default_factory=WebConfig)

    verbose: bool = True

    @classmethod
    def default(cls) -> 'CitegraphConfig':
        """return default configuration."""
        return cls()

    @classmethod
    def offline(cls) -> 'CitegraphConfig':
        """no external lookups; placeholders stay bare."""
        config = cls()
        config.enrichment.enabled = False
        return config

    @classmethod
    def from_env(cls) -> 'CitegraphConfig':
        """default config overridden by CITEGRAPH_* environment variables."""
        config = cls()
        env = os.environ

        if env.get("CITEGRAPH_DB_PATH"):
            config.storage.db_path = env["CITEGRAPH_DB_PATH"]
        if env.get("CITEGRAPH_PUBMED_API_KEY"):
            config.providers.pubmed_api_key = env["CITEGRAPH_PUBMED_API_KEY"]
        if env.get("CITEGRAPH_PUBMED_EMAIL"):
            config.providers.pubmed_email = env["CITEGRAPH_PUBMED_EMAIL"]
        if env.get("CITEGRAPH_CROSSREF_MAILTO"):
            config.providers.crossref_mailto = env["CITEGRAPH_CROSSREF_MAILTO"]
        if env.get("CITEGRAPH_ENRICH"):
            config.enrichment.enabled = env["CITEGRAPH_ENRICH"].lower() not in ("0", "false", "no", "off")
        if env.get("CITEGRAPH_ENRICH_TIMEOUT"):
            try:
                config.enrichment.timeout_seconds = float(env["CITEGRAPH_ENRICH_TIMEOUT"])
            except ValueError:
                pass

        return config
