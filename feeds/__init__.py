from .config import SOURCES, SourceConfig, get_source
from .pipeline import IngestionPipeline, RunSummary

__all__ = [
    "SOURCES",
    "SourceConfig",
    "get_source",
    "IngestionPipeline",
    "RunSummary",
]
