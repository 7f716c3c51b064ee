"""Sequential batch runner that verifies every row of an input table."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from ..client import FatalAPIError, VerificationError
from ..ledger import ResponseLedger
from ..models import BatchResult, InputRow, OutputRow, RecordState, RunSummary, VerificationOutcome
from ..rate_limit import InterCallDelay

LOGGER = logging.getLogger(__name__)


class ClientProtocol(Protocol):
    """Interface the runners expect from a verification client."""

    def verify_raw(self, phone_key: str, source_number: str) -> Dict[str, Any]:  # pragma: no cover - runtime protocol
        """Return the raw API body or raise a :class:`VerificationError`."""


class RunAborted(RuntimeError):
    """Raised when a fatal API error stops a run.

    ``rows`` holds the output rows collected before the failing record.
    """

    def __init__(self, error: FatalAPIError, rows: List[OutputRow]) -> None:
        super().__init__(f"Run aborted at number=[{error.phone}]: {error.message}")
        self.error = error
        self.rows = rows

    @property
    def status(self) -> Optional[int]:
        return self.error.status


def dispatch(
    client: ClientProtocol,
    phone_key: str,
    source_number: str,
) -> Tuple[Optional[Dict[str, Any]], RecordState]:
    """Call the client once and fold per-record failures into ``UNRESOLVED``.

    :class:`FatalAPIError` is not caught.
    """

    try:
        response = client.verify_raw(phone_key, source_number)
    except FatalAPIError:
        raise
    except VerificationError as exc:
        LOGGER.warning(
            "Number=[%s] left unresolved (%s, status=%s): %s",
            phone_key,
            exc.__class__.__name__,
            exc.status,
            exc.message,
        )
        return None, RecordState.UNRESOLVED
    return response, RecordState.RESOLVED


class BatchRunner:
    """Verifies rows one at a time, logging each response to the ledger."""

    def __init__(
        self,
        client: ClientProtocol,
        ledger: ResponseLedger,
        *,
        source_number: str,
        delay: Optional[InterCallDelay] = None,
        reuse_ledger: bool = False,
    ) -> None:
        if not source_number:
            raise ValueError("source_number is required")
        self._client = client
        self._ledger = ledger
        self._source_number = source_number
        self._delay = delay or InterCallDelay()
        self._reuse_ledger = reuse_ledger
        self.output_rows: List[OutputRow] = []
        self.summary = RunSummary()

    @property
    def ledger(self) -> ResponseLedger:
        return self._ledger

    def run(self, rows: Iterable[InputRow]) -> BatchResult:
        """Process ``rows`` in order.

        Raises :class:`RunAborted` on a fatal API error; rows handled before
        that point remain on :attr:`output_rows` and in the ledger.
        """

        self.output_rows = []
        self.summary = RunSummary()
        for row in rows:
            try:
                output = self._process(row)
            except FatalAPIError as exc:
                LOGGER.error("Fatal API error for number=[%s] - aborting run", exc.phone)
                raise RunAborted(exc, list(self.output_rows)) from exc
            self.output_rows.append(output)
            self.summary.count(output)

        LOGGER.info(
            "Processed %s rows: %s resolved, %s unresolved, %s without phone, %s reused from ledger",
            self.summary.total,
            self.summary.resolved,
            self.summary.unresolved,
            self.summary.skipped,
            self.summary.reused,
        )
        return BatchResult(rows=list(self.output_rows), summary=self.summary)

    def _process(self, row: InputRow) -> OutputRow:
        phone_key = row.phone_key
        if phone_key is None:
            LOGGER.debug("Row %s has no phone number - skipping", row.index)
            return OutputRow(row=row, outcome=VerificationOutcome(), state=RecordState.SKIPPED_NO_PHONE)

        if self._reuse_ledger:
            logged = self._ledger.lookup(phone_key)
            if logged is not None:
                LOGGER.debug("Number=[%s] already in ledger - reusing", phone_key)
                return OutputRow(row=row, outcome=logged, state=RecordState.REUSED)

        response, state = dispatch(self._client, phone_key, self._source_number)
        if response is not None:
            self._ledger.record(phone_key, response)
        self._delay.wait()
        outcome = VerificationOutcome.from_response(response) if response is not None else None
        return OutputRow(row=row, outcome=outcome, state=state)
