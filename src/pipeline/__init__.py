"""Run orchestration: state machine, cancellation, progress and streaming."""

from src.pipeline.cancellation import CancelToken
from src.pipeline.orchestrator import PipelineSettings, ResearchPipeline, RunOutcome
from src.pipeline.progress_tracker import ProgressTracker
from src.pipeline.stream_encoder import ProgressStream, encode_sse

__all__ = [
    "CancelToken",
    "PipelineSettings",
    "ProgressStream",
    "ProgressTracker",
    "ResearchPipeline",
    "RunOutcome",
    "encode_sse",
]
