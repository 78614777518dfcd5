# ==============================================
# Sampling Request & Options
# ==============================================
#
# PURPOSE:
#   Immutable inputs of one sampling run and the option bundles
#   handed to the data service's count() and sample() calls.
#
# CLASSES:
# --------
# - ReadPreference (enum)    → Routing policy for count / sample
# - Namespace (dataclass)    → "database.collection" split in two
# - SamplingRequest          → namespace, filter, max_time_ms,
#                              requested_sample_size, read_preference
# - CountOptions             → {max_time_ms, read_preference}
# - SampleOptions            → {max_time_ms, filter, size, read_preference}
#
# DEFAULTS:
# ---------
#   max_time_ms            10000
#   requested_sample_size  1000
#   read_preference        primaryPreferred
#
# ==============================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .errors import InvalidArgument

DEFAULT_MAX_TIME_MS = 10000
DEFAULT_SAMPLE_SIZE = 1000


class ReadPreference(Enum):
    PRIMARY = "primary"
    PRIMARY_PREFERRED = "primaryPreferred"
    SECONDARY = "secondary"
    SECONDARY_PREFERRED = "secondaryPreferred"
    NEAREST = "nearest"

    @classmethod
    def parse(cls, value: Any) -> "ReadPreference":
        """
        Accept an enum member, its value ("secondaryPreferred") or its
        name in any case ("secondary_preferred").
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise InvalidArgument(f"Unknown read preference: {value!r}")


DEFAULT_READ_PREFERENCE = ReadPreference.PRIMARY_PREFERRED


@dataclass(frozen=True)
class Namespace:
    """
    A fully-qualified collection identifier.

    Examples:
        Namespace.parse("shop.orders")          → database="shop", collection="orders"
        Namespace.parse("shop.system.profile")  → collection="system.profile"
        Namespace.parse("shop")                 → collection=""
    """
    database: str
    collection: str = ""

    @classmethod
    def parse(cls, ns: str) -> "Namespace":
        if not ns or not ns.strip():
            raise InvalidArgument("Namespace must not be empty")
        database, _, collection = ns.strip().partition(".")
        if not database:
            raise InvalidArgument(f"Namespace has no database name: {ns!r}")
        return cls(database=database, collection=collection)

    @property
    def has_collection(self) -> bool:
        return bool(self.collection)

    def __str__(self) -> str:
        if not self.collection:
            return self.database
        return f"{self.database}.{self.collection}"


@dataclass(frozen=True)
class CountOptions:
    max_time_ms: int
    read_preference: ReadPreference


@dataclass(frozen=True)
class SampleOptions:
    max_time_ms: int
    filter: Dict[str, Any]
    size: int
    read_preference: ReadPreference


@dataclass(frozen=True)
class SamplingRequest:
    """
    Everything one sampling run needs to know.

    The filter is the caller's current query; the pipeline never reads it
    from anywhere else.
    """
    namespace: str
    filter: Dict[str, Any] = field(default_factory=dict)
    max_time_ms: int = DEFAULT_MAX_TIME_MS
    requested_sample_size: int = DEFAULT_SAMPLE_SIZE
    read_preference: ReadPreference = DEFAULT_READ_PREFERENCE

    def __post_init__(self):
        ns = Namespace.parse(self.namespace)
        if not ns.has_collection:
            raise InvalidArgument(f"Namespace does not name a collection: {self.namespace!r}")
        if self.filter is None:
            object.__setattr__(self, "filter", {})
        if not isinstance(self.filter, dict):
            raise InvalidArgument(f"filter must be a dict, got {type(self.filter).__name__}")
        if isinstance(self.max_time_ms, bool) or not isinstance(self.max_time_ms, int) or self.max_time_ms < 0:
            raise InvalidArgument(f"max_time_ms must be an integer >= 0, got {self.max_time_ms!r}")
        if (
            isinstance(self.requested_sample_size, bool)
            or not isinstance(self.requested_sample_size, int)
            or self.requested_sample_size <= 0
        ):
            raise InvalidArgument(
                f"requested_sample_size must be an integer > 0, got {self.requested_sample_size!r}"
            )
        object.__setattr__(self, "read_preference", ReadPreference.parse(self.read_preference))

    @property
    def parsed_namespace(self) -> Namespace:
        return Namespace.parse(self.namespace)

    def count_options(self) -> CountOptions:
        return CountOptions(
            max_time_ms=self.max_time_ms,
            read_preference=self.read_preference
        )

    def sample_options(self) -> SampleOptions:
        return SampleOptions(
            max_time_ms=self.max_time_ms,
            filter=dict(self.filter),
            size=self.requested_sample_size,
            read_preference=self.read_preference
        )


def build_request(
    namespace: str,
    filter: Optional[Dict[str, Any]] = None,
    max_time_ms: int = DEFAULT_MAX_TIME_MS,
    requested_sample_size: int = DEFAULT_SAMPLE_SIZE,
    read_preference: Any = DEFAULT_READ_PREFERENCE
) -> SamplingRequest:
    """Convenience constructor that tolerates a None filter and string read preferences."""
    return SamplingRequest(
        namespace=namespace,
        filter=dict(filter or {}),
        max_time_ms=max_time_ms,
        requested_sample_size=requested_sample_size,
        read_preference=ReadPreference.parse(read_preference)
    )
