# ==============================================
# Errors
# ==============================================
#
# PURPOSE:
#   Exception types raised by the sampling package, plus the
#   ErrorInfo value that describes a failed run.
#
# WHY THIS MODULE EXISTS:
#   A sampling run never raises past the pipeline. Every failure is
#   caught where it happens and turned into ErrorInfo on the state.
#   Exceptions are only raised for caller mistakes (bad arguments)
#   and internal bugs (illegal transitions).
#
# CLASSES:
# --------
# - SamplerError            → Base for everything raised here
# - InvalidArgument         → Caller passed a value outside the contract
# - InvalidTransition       → State machine asked to make an illegal move
# - ErrorKind (enum)        → COUNT_FAILURE, SAMPLE_STREAM_FAILURE,
#                             ANALYSIS_FAILURE, EMPTY_RESULT_ANOMALY
# - ErrorInfo (dataclass)   → kind + message + exception type name
#
# ==============================================

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SamplerError(Exception):
    """Base class for schema sampler errors."""


class InvalidArgument(SamplerError, ValueError):
    """Raised when a caller violates an argument contract."""


class InvalidTransition(SamplerError, RuntimeError):
    """Raised when the state machine is asked for a move it does not allow."""


class ErrorKind(Enum):
    COUNT_FAILURE = "count_failure"
    SAMPLE_STREAM_FAILURE = "sample_stream_failure"
    ANALYSIS_FAILURE = "analysis_failure"
    EMPTY_RESULT_ANOMALY = "empty_result_anomaly"


@dataclass(frozen=True)
class ErrorInfo:
    """
    Describes why a sampling run ended in the error phase.

    All kinds map to the same phase; the kind is carried for
    observability only.
    """
    kind: ErrorKind
    message: str
    exception_type: Optional[str] = None

    @classmethod
    def from_exception(cls, kind: ErrorKind, exc: Optional[BaseException]) -> "ErrorInfo":
        """
        Build ErrorInfo from a caught exception.

        Args:
            kind: Which stage of the run failed
            exc: The exception raised at that stage (may be None)

        Returns:
            ErrorInfo with the exception message and class name
        """
        if exc is None:
            return cls(kind=kind, message=kind.value.replace("_", " "))
        return cls(
            kind=kind,
            message=str(exc) or type(exc).__name__,
            exception_type=type(exc).__name__,
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "exception_type": self.exception_type,
        }
