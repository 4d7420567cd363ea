"""Training job lifecycle: streaming log ingestion and session id resolution."""

from .controller import TrainingController, TrainingRequest, TrainingService
from .ingest import StreamingLogIngestor, final_resolution_pass, parse_structured
from .models import FailureReason, IdSource, LogEvent, LogMetrics, RawPayload, TrainingSession, TrainingStatus
from .resolver import PatternCascadeResolver, ResolverStrategy, resolve

__all__ = [
    "FailureReason",
    "IdSource",
    "LogEvent",
    "LogMetrics",
    "PatternCascadeResolver",
    "RawPayload",
    "ResolverStrategy",
    "StreamingLogIngestor",
    "TrainingController",
    "TrainingRequest",
    "TrainingService",
    "TrainingSession",
    "TrainingStatus",
    "final_resolution_pass",
    "parse_structured",
    "resolve",
]
