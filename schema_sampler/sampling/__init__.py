# ==============================================
# SAMPLING CORE
# ==============================================
#
# Draws a bounded random sample from a namespace, streams it through
# a schema analyzer, and reports the run as an observable state.
#
# Modules:
# --------
# - progress.py  → ProgressTracker: percent + elapsed time policy
# - stream.py    → CancellableStream: closable event stream over an iterable
# - request.py   → SamplingRequest, Namespace, ReadPreference, options
# - state.py     → SamplingPhase, SamplingState, SamplingStateMachine
# - pipeline.py  → SamplingPipeline: count → sample → analyze
# - errors.py    → Exceptions, ErrorKind, ErrorInfo
#
# ==============================================

from .errors import ErrorInfo, ErrorKind, InvalidArgument, InvalidTransition, SamplerError
from .pipeline import DataService, RunHandle, SamplingPipeline, inline_runner, thread_runner
from .progress import INDETERMINATE, ProgressTracker
from .request import (
    CountOptions,
    Namespace,
    ReadPreference,
    SampleOptions,
    SamplingRequest,
    build_request,
)
from .state import SamplingPhase, SamplingState, SamplingStateMachine
from .stream import CancellableStream, Progress

__all__ = [
    "CancellableStream",
    "CountOptions",
    "DataService",
    "ErrorInfo",
    "ErrorKind",
    "INDETERMINATE",
    "InvalidArgument",
    "InvalidTransition",
    "Namespace",
    "Progress",
    "ProgressTracker",
    "ReadPreference",
    "RunHandle",
    "SampleOptions",
    "SamplerError",
    "SamplingPhase",
    "SamplingPipeline",
    "SamplingRequest",
    "SamplingState",
    "SamplingStateMachine",
    "build_request",
    "inline_runner",
    "thread_runner",
]
