"""Append-only JSON log of verification responses, keyed by phone number."""
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .models import LedgerEntry, VerificationOutcome

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

_TABLE_SUFFIX = re.compile(r"\.(csv|xlsx)$", re.IGNORECASE)


class LedgerError(RuntimeError):
    """Base class for ledger loading failures."""


class LedgerNotFoundError(LedgerError):
    """Raised when the ledger file does not exist."""


class LedgerCorruptionError(LedgerError):
    """Raised when the ledger file is not a list of well-formed entries."""


def ledger_path_for(output_path: PathLike) -> Path:
    """Return the ledger path that accompanies an output table path."""

    path = Path(output_path)
    return path.with_name(_TABLE_SUFFIX.sub("", path.name) + "-responses.json")


class ResponseLedger:
    """Ordered log of verification attempts persisted after every append.

    Lookups use the most recent entry for a phone key. The file on disk is
    replaced atomically, so it always holds a complete JSON array.
    """

    def __init__(self, path: PathLike, entries: Optional[Iterable[LedgerEntry]] = None) -> None:
        self.path = Path(path)
        self._entries: List[LedgerEntry] = []
        self._latest: Dict[str, LedgerEntry] = {}
        for entry in entries or []:
            self._remember(entry)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def create(cls, path: PathLike) -> "ResponseLedger":
        """Start a fresh ledger, overwriting any existing file with an empty list."""

        ledger = cls(path)
        ledger.flush()
        LOGGER.debug("Initialised empty ledger at %s", ledger.path)
        return ledger

    @classmethod
    def load(cls, path: PathLike) -> "ResponseLedger":
        file_path = Path(path)
        if not file_path.exists():
            raise LedgerNotFoundError(f"Ledger file '{file_path}' was not found")

        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise LedgerCorruptionError(f"Ledger file '{file_path}' could not be parsed: {exc}") from exc

        if not isinstance(data, list):
            raise LedgerCorruptionError(f"Ledger file '{file_path}' must contain a JSON array")

        entries = [_parse_entry(item, position, file_path) for position, item in enumerate(data)]
        LOGGER.info("Loaded %s ledger entries from %s", len(entries), file_path)
        return cls(file_path, entries)

    @classmethod
    def open(cls, path: PathLike, *, resume: bool = False) -> "ResponseLedger":
        """Return the ledger for a primary run.

        Without ``resume`` the file is reset to an empty list. With ``resume``
        an existing file is loaded and a missing one starts empty.
        """

        if not resume:
            return cls.create(path)
        try:
            return cls.load(path)
        except LedgerNotFoundError:
            LOGGER.info("No previous ledger at %s - starting empty", path)
            return cls.create(path)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def append(self, entry: LedgerEntry) -> None:
        """Add ``entry`` and persist the whole ledger before returning."""

        self._remember(entry)
        self.flush()

    def record(self, phone: str, response: Mapping[str, Any]) -> LedgerEntry:
        entry = LedgerEntry(phone=phone, response=dict(response))
        self.append(entry)
        return entry

    def flush(self) -> None:
        payload = [entry.to_dict() for entry in self._entries]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.stem, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def entries(self) -> List[LedgerEntry]:
        return list(self._entries)

    def lookup(self, phone: Optional[str]) -> Optional[VerificationOutcome]:
        if phone is None:
            return None
        entry = self._latest.get(phone)
        return entry.outcome if entry is not None else None

    def outcomes(self) -> Dict[str, VerificationOutcome]:
        return {phone: entry.outcome for phone, entry in self._latest.items()}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, phone: object) -> bool:
        return phone in self._latest

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(list(self._entries))

    def _remember(self, entry: LedgerEntry) -> None:
        self._entries.append(entry)
        self._latest[entry.phone] = entry


def _parse_entry(item: Any, position: int, path: Path) -> LedgerEntry:
    if not isinstance(item, dict) or "phone" not in item:
        raise LedgerCorruptionError(f"Ledger entry #{position} in '{path}' is missing a phone number")
    response = item.get("response")
    if response is not None and not isinstance(response, dict):
        raise LedgerCorruptionError(f"Ledger entry #{position} in '{path}' has a malformed response")
    return LedgerEntry.from_dict(item)
