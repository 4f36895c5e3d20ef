from .builder import CitationGraphBuilder
from .expansion import ExpansionContext, LevelExpander
from .identifier_index import IdentifierIndex
from .links import LinkResolver
from .enrichment import EnrichmentFetcher
from .assembler import ResultAssembler
from .request import normalize_request
from .seed_loader import SeedLoader
from .working_graph import CitationGraph
