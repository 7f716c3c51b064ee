"""Second pass that fills in rows missing from a previous run's ledger."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ..client import FatalAPIError
from ..ledger import ResponseLedger
from ..models import BatchResult, InputRow, OutputRow, RecordState, RunSummary, VerificationOutcome
from ..rate_limit import InterCallDelay
from .service import ClientProtocol, RunAborted, dispatch

LOGGER = logging.getLogger(__name__)


class ReconciliationPass:
    """Trusts logged outcomes and only re-verifies numbers the ledger lacks.

    Rows absent from the prior ledger are flagged with ``is_not_found=True``,
    including repeats of a number already checked earlier in the same pass
    (those reuse the fresh result instead of calling again). When ``ledger``
    is given, fresh successful responses are appended to it.
    """

    def __init__(
        self,
        client: ClientProtocol,
        outcomes: Mapping[str, VerificationOutcome],
        *,
        source_number: str,
        delay: Optional[InterCallDelay] = None,
        ledger: Optional[ResponseLedger] = None,
    ) -> None:
        if not source_number:
            raise ValueError("source_number is required")
        self._client = client
        self._outcomes = dict(outcomes)
        self._checked: Dict[str, VerificationOutcome] = {}
        self._source_number = source_number
        self._delay = delay or InterCallDelay.seconds(0)
        self._ledger = ledger
        self.output_rows: List[OutputRow] = []
        self.summary = RunSummary()

    @classmethod
    def from_ledger(cls, client: ClientProtocol, ledger: ResponseLedger, *, update_ledger: bool = False, **kwargs) -> "ReconciliationPass":
        return cls(client, ledger.outcomes(), ledger=ledger if update_ledger else None, **kwargs)

    def run(self, rows: Iterable[InputRow]) -> BatchResult:
        self.output_rows = []
        self.summary = RunSummary()
        self._checked = {}
        for row in rows:
            try:
                output = self._process(row)
            except FatalAPIError as exc:
                LOGGER.error("Fatal API error for number=[%s] - aborting reconciliation", exc.phone)
                raise RunAborted(exc, list(self.output_rows)) from exc
            self.output_rows.append(output)
            self.summary.count(output)

        LOGGER.info("Total records: %s", self.summary.total)
        LOGGER.info("Missing records: %s", self.summary.not_found)
        LOGGER.info("Newly checked records: %s", self.summary.newly_checked)
        return BatchResult(rows=list(self.output_rows), summary=self.summary)

    def _process(self, row: InputRow) -> OutputRow:
        phone_key = row.phone_key
        if phone_key is None:
            return OutputRow(row=row, outcome=None, state=RecordState.SKIPPED_NO_PHONE, is_not_found=False)

        logged = self._outcomes.get(phone_key)
        if logged is not None:
            return OutputRow(row=row, outcome=logged, state=RecordState.REUSED, is_not_found=False)

        checked = self._checked.get(phone_key)
        if checked is not None:
            return OutputRow(row=row, outcome=checked, state=RecordState.RESOLVED, is_not_found=True)

        LOGGER.info("Checking missing number: %s", phone_key)
        response, state = dispatch(self._client, phone_key, self._source_number)
        self._delay.wait()
        if response is None:
            return OutputRow(row=row, outcome=None, state=state, is_not_found=True)

        outcome = VerificationOutcome.from_response(response)
        self._checked[phone_key] = outcome
        if self._ledger is not None:
            self._ledger.record(phone_key, response)
        return OutputRow(row=row, outcome=outcome, state=state, is_not_found=True)
