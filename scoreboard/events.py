"""Typed signals emitted by the scoreboard engines.

Severity is a class attribute of each event type, never encoded in text:

  Match              INFO
  Duplicate          WARNING   (overwrite-and-continue)
  Mismatch           FAILURE
  ExtraObserved      FAILURE   (asymmetric variant, final on arrival)
  MissingObserved    FAILURE   (finalization only)
  UnmatchedObserved  FAILURE   (finalization only, symmetric variant)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    FAILURE = "failure"


@dataclass(frozen=True)
class Duplicate:
    key: int
    stream: str

    severity: ClassVar[Severity] = Severity.WARNING

    def describe(self) -> str:
        return f"duplicate key {self.key} on {self.stream}; previous record overwritten"


@dataclass(frozen=True)
class Match:
    key: int
    expected: str = ""
    observed: str = ""

    severity: ClassVar[Severity] = Severity.INFO

    def describe(self) -> str:
        return f"match key {self.key}"


@dataclass(frozen=True)
class Mismatch:
    key: int
    dimension: str
    expected: Any
    observed: Any

    severity: ClassVar[Severity] = Severity.FAILURE

    def describe(self) -> str:
        return (
            f"mismatch key {self.key} on {self.dimension}: "
            f"expected {self.expected!s}, observed {self.observed!s}"
        )


@dataclass(frozen=True)
class ExtraObserved:
    key: int
    observed: str

    severity: ClassVar[Severity] = Severity.FAILURE

    def describe(self) -> str:
        return f"extra observed record with no expectation: {self.observed}"


@dataclass(frozen=True)
class MissingObserved:
    key: int
    expected: str = ""

    severity: ClassVar[Severity] = Severity.FAILURE

    def describe(self) -> str:
        return f"expected record never observed: {self.expected}"


@dataclass(frozen=True)
class UnmatchedObserved:
    key: int
    observed: str = ""

    severity: ClassVar[Severity] = Severity.FAILURE

    def describe(self) -> str:
        return f"observed record never matched an expectation: {self.observed}"


Event = Duplicate | Match | Mismatch | ExtraObserved | MissingObserved | UnmatchedObserved
