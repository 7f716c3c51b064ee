"""Data models shared by the verification runner, reconciliation pass, and exporters."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

PHONE_COLUMN = "Phone"
NOT_FOUND = "NOT_FOUND"


def normalize_phone(value: Any) -> Optional[str]:
    """Return the ``+``-prefixed phone key for a raw cell value.

    Missing, NaN and blank values map to ``None``. Integral floats produced by
    spreadsheet readers (``5551234.0``) are rendered without the fraction.
    """

    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    if not text:
        return None
    if text.startswith("+"):
        return text
    return f"+{text}"


# --- Input Models ---

@dataclass(frozen=True)
class InputRow:
    """A single spreadsheet row. Column values are read-only once loaded."""

    index: int
    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def phone(self) -> Any:
        return self.values.get(PHONE_COLUMN)

    @property
    def phone_key(self) -> Optional[str]:
        return normalize_phone(self.phone)


# --- Verification Models ---

@dataclass(frozen=True)
class VerificationOutcome:
    """Validity and WhatsApp presence reported for one phone number."""

    is_valid: bool = False
    on_whatsapp: bool = False

    @classmethod
    def from_response(cls, response: Optional[Mapping[str, Any]]) -> "VerificationOutcome":
        """Build an outcome from a raw API body, treating absent fields as ``False``."""

        response = response or {}
        return cls(
            is_valid=bool(response.get("is_valid") or False),
            on_whatsapp=bool(response.get("on_whatsapp") or False),
        )


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class LedgerEntry:
    """One logged verification attempt and its raw response."""

    phone: str
    response: Mapping[str, Any]
    timestamp: str = field(default_factory=_utc_timestamp)

    @property
    def outcome(self) -> VerificationOutcome:
        return VerificationOutcome.from_response(self.response)

    def to_dict(self) -> Dict[str, Any]:
        return {"phone": self.phone, "response": dict(self.response), "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedgerEntry":
        return cls(
            phone=str(data["phone"]),
            response=dict(data.get("response") or {}),
            timestamp=str(data.get("timestamp") or ""),
        )


class RecordState(str, Enum):
    """Terminal state of a record once the run has moved past it."""

    SKIPPED_NO_PHONE = "skipped_no_phone"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    REUSED = "reused"


# --- Output Models ---

@dataclass
class OutputRow:
    """An input row augmented with its verification outcome.

    ``outcome`` is ``None`` when the number could not be resolved; it is then
    written as ``NOT_FOUND``. ``is_not_found`` is only populated by the
    reconciliation pass.
    """

    row: InputRow
    outcome: Optional[VerificationOutcome]
    state: RecordState = RecordState.RESOLVED
    is_not_found: Optional[bool] = None

    @property
    def phone_key(self) -> Optional[str]:
        return self.row.phone_key

    @property
    def on_whatsapp(self) -> Any:
        return NOT_FOUND if self.outcome is None else self.outcome.on_whatsapp

    @property
    def is_valid(self) -> Any:
        return NOT_FOUND if self.outcome is None else self.outcome.is_valid

    def as_row(self) -> Dict[str, Any]:
        """Return the flat representation written to the output table."""
        row = dict(self.row.values)
        row["on_whatsapp"] = self.on_whatsapp
        row["is_valid"] = self.is_valid
        if self.is_not_found is not None:
            row["is_not_found"] = self.is_not_found
        return row


@dataclass
class RunSummary:
    """Counters reported at the end of a verification or reconciliation run."""

    total: int = 0
    resolved: int = 0
    unresolved: int = 0
    skipped: int = 0
    reused: int = 0
    newly_checked: int = 0
    not_found: int = 0

    def count(self, output: OutputRow) -> None:
        self.total += 1
        if output.state is RecordState.SKIPPED_NO_PHONE:
            self.skipped += 1
        elif output.state is RecordState.REUSED:
            self.reused += 1
        elif output.state is RecordState.UNRESOLVED:
            self.unresolved += 1
        else:
            self.resolved += 1
        if output.outcome is None:
            self.not_found += 1
        if output.is_not_found:
            self.newly_checked += 1


@dataclass
class BatchResult:
    """Rows produced by a run together with its summary counters."""

    rows: List[OutputRow] = field(default_factory=list)
    summary: RunSummary = field(default_factory=RunSummary)
