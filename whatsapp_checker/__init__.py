"""Bulk WhatsApp number verification backed by the 2Chat API."""

from .client import (
    FatalAPIError,
    TransientAPIError,
    TransportError,
    VerificationClient,
    VerificationError,
)
from .ledger import LedgerCorruptionError, LedgerNotFoundError, ResponseLedger
from .models import (
    NOT_FOUND,
    InputRow,
    LedgerEntry,
    OutputRow,
    RecordState,
    RunSummary,
    VerificationOutcome,
    normalize_phone,
)
from .orchestrator import BatchRunner, ReconciliationPass, RunAborted

__all__ = [
    "NOT_FOUND",
    "BatchRunner",
    "FatalAPIError",
    "InputRow",
    "LedgerCorruptionError",
    "LedgerEntry",
    "LedgerNotFoundError",
    "OutputRow",
    "ReconciliationPass",
    "RecordState",
    "ResponseLedger",
    "RunAborted",
    "RunSummary",
    "TransientAPIError",
    "TransportError",
    "VerificationClient",
    "VerificationError",
    "VerificationOutcome",
    "normalize_phone",
    "ingestion",
    "orchestrator",
]
