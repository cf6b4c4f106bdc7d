"""Record model, stream tags, counters, and the run summary."""

from __future__ import annotations

import operator
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any


class MalformedRecordError(ValueError):
    """Raised when a record cannot be correlated (missing or invalid key, bad payload)."""


class ScoreboardClosedError(RuntimeError):
    """Raised when a record is ingested after finalize()."""


class Role(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
    EXPECTED = "expected"
    OBSERVED = "observed"


# Roles whose streams are numbered ports (input-0, output-1, ...).
_PORT_ROLES = (Role.INPUT, Role.OUTPUT)


@dataclass(frozen=True)
class StreamTag:
    """Identifies the stream a record arrived on."""

    role: Role
    index: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role(self.role))
        if self.index < 0:
            raise ValueError(f"stream index must be >= 0, got {self.index}")

    def __str__(self) -> str:
        if self.role in _PORT_ROLES:
            return f"{self.role.value}-{self.index}"
        return self.role.value

    @classmethod
    def input(cls, port: int) -> StreamTag:
        return cls(Role.INPUT, port)

    @classmethod
    def output(cls, port: int) -> StreamTag:
        return cls(Role.OUTPUT, port)

    @classmethod
    def parse(cls, text: str) -> StreamTag:
        """Parse ``input-0`` / ``output-1`` / ``expected`` / ``observed``."""
        raw = str(text or "").strip().lower()
        role_text, sep, index_text = raw.partition("-")
        try:
            role = Role(role_text)
        except ValueError:
            raise ValueError(f"Unknown stream tag: {text!r}") from None
        if not sep:
            return cls(role)
        if not index_text.isdigit():
            raise ValueError(f"Stream tag {text!r} has a non-numeric port")
        return cls(role, int(index_text))


EXPECTED = StreamTag(Role.EXPECTED)
OBSERVED = StreamTag(Role.OBSERVED)


def _coerce_key(value: Any) -> int:
    if value is None:
        raise MalformedRecordError("record has no key")
    # bool is an int subclass; True -> 1 would silently alias key 1
    if isinstance(value, bool):
        raise MalformedRecordError("record key must be int (bool not allowed)")
    try:
        key = operator.index(value)
    except TypeError:
        raise MalformedRecordError(
            f"record key must be an integer, not {type(value).__name__}"
        ) from None
    if key < 0:
        raise MalformedRecordError(f"record key must be unsigned, got {key}")
    return key


@dataclass(frozen=True)
class Record:
    """The unit of correlation: a key, an ordered payload, and its origin stream."""

    key: int
    payload: Mapping[str, Any] = field(default_factory=dict)
    origin: StreamTag | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", _coerce_key(self.key))
        if not isinstance(self.payload, Mapping):
            raise MalformedRecordError(
                f"record {self.key} payload must be a mapping, "
                f"not {type(self.payload).__name__}"
            )
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def __hash__(self) -> int:
        # raises TypeError only when a payload value is itself unhashable
        return hash((self.key, frozenset(self.payload.items()), self.origin))

    def tagged(self, origin: StreamTag) -> Record:
        """Return a copy of this record stamped with the stream it arrived on."""
        if self.origin == origin:
            return self
        return replace(self, payload=dict(self.payload), origin=origin)

    def __str__(self) -> str:
        fields = " ".join(f"{name}={_fmt(value)}" for name, value in self.payload.items())
        where = f"@{self.origin}" if self.origin is not None else ""
        return f"key={self.key}{where} {{{fields}}}"

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Any],
        origin: StreamTag | None = None,
    ) -> Record:
        """Build a record from a flat mapping.

        ``key`` is required. ``stream`` is dropped (it names the origin, which
        the caller passes explicitly). Everything else becomes a payload field
        in the mapping's order.
        """
        if not isinstance(mapping, Mapping):
            raise MalformedRecordError(
                f"expected a Record or mapping, got {type(mapping).__name__}"
            )
        if "key" not in mapping:
            raise MalformedRecordError("record has no key")
        payload = {k: v for k, v in mapping.items() if k not in ("key", "stream")}
        return cls(key=mapping["key"], payload=payload, origin=origin)


def coerce_record(value: Record | Mapping[str, Any]) -> Record:
    if isinstance(value, Record):
        return value
    return Record.from_mapping(value)


def _fmt(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return hex(value)
    return repr(value)


@dataclass
class Counters:
    """Monotonic outcome counters owned by one engine instance."""

    matches: int = 0
    mismatches: int = 0
    extras: int = 0
    duplicates: int = 0


@dataclass
class SummaryReport:
    """Terminal report for one run, produced by finalize()."""

    variant: str
    match_count: int = 0
    mismatch_count: int = 0
    missing_count: int = 0
    duplicate_count: int = 0
    # None where the variant has no such classification
    extra_count: int | None = None
    unmatched_observed_count: int | None = None
    missing_keys: list[int] = field(default_factory=list)
    unmatched_observed_keys: list[int] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return (
            self.mismatch_count == 0
            and self.missing_count == 0
            and not self.extra_count
            and not self.unmatched_observed_count
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "variant": self.variant,
            "match_count": self.match_count,
            "mismatch_count": self.mismatch_count,
            "extra_count": self.extra_count,
            "missing_count": self.missing_count,
            "unmatched_observed_count": self.unmatched_observed_count,
            "duplicate_count": self.duplicate_count,
            "missing_keys": list(self.missing_keys),
            "unmatched_observed_keys": list(self.unmatched_observed_keys),
            "is_clean": self.is_clean,
        }
