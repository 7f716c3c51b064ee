"""Tests for the reconciliation pass."""
from __future__ import annotations

from typing import Dict, List

import pytest

from whatsapp_checker.client import FatalAPIError, TransportError
from whatsapp_checker.ledger import ResponseLedger
from whatsapp_checker.models import NOT_FOUND, InputRow, VerificationOutcome
from whatsapp_checker.orchestrator import ReconciliationPass, RunAborted
from whatsapp_checker.rate_limit import InterCallDelay


class DummyClient:
    def __init__(self, replies: Dict[str, object] | None = None) -> None:
        self.replies = replies or {}
        self.calls: List[str] = []

    def verify_raw(self, phone_key: str, source_number: str) -> Dict[str, object]:
        self.calls.append(phone_key)
        reply = self.replies.get(phone_key, {"is_valid": True, "on_whatsapp": False})
        if isinstance(reply, Exception):
            raise reply
        return reply  # type: ignore[return-value]


def _rows(*phones) -> List[InputRow]:
    return [InputRow(index=index, values={"Phone": phone}) for index, phone in enumerate(phones)]


@pytest.fixture()
def prior_ledger(tmp_path) -> ResponseLedger:
    ledger = ResponseLedger.create(tmp_path / "Report-results-responses.json")
    ledger.record("+1", {"is_valid": True, "on_whatsapp": True})
    ledger.record("+2", {"is_valid": False, "on_whatsapp": False})
    ledger.record("+1", {"is_valid": False, "on_whatsapp": False})
    return ResponseLedger.load(ledger.path)


def test_ledger_hits_are_never_reverified(prior_ledger) -> None:
    client = DummyClient()
    reconciliation = ReconciliationPass.from_ledger(client, prior_ledger, source_number="+5550000000")

    result = reconciliation.run(_rows("1", "+2"))

    assert client.calls == []
    assert [row.outcome for row in result.rows] == [
        VerificationOutcome(False, False),
        VerificationOutcome(False, False),
    ]
    assert all(row.is_not_found is False for row in result.rows)


def test_missing_numbers_are_checked_and_flagged(prior_ledger) -> None:
    client = DummyClient({"+4": TransportError("down", phone="+4")})
    reconciliation = ReconciliationPass.from_ledger(client, prior_ledger, source_number="+5550000000")

    result = reconciliation.run(_rows("1", "3", None, "4"))

    assert client.calls == ["+3", "+4"]
    rendered = [row.as_row() for row in result.rows]
    assert rendered == [
        {"Phone": "1", "on_whatsapp": False, "is_valid": False, "is_not_found": False},
        {"Phone": "3", "on_whatsapp": False, "is_valid": True, "is_not_found": True},
        {"Phone": None, "on_whatsapp": NOT_FOUND, "is_valid": NOT_FOUND, "is_not_found": False},
        {"Phone": "4", "on_whatsapp": NOT_FOUND, "is_valid": NOT_FOUND, "is_not_found": True},
    ]
    assert result.summary.total == 4
    assert result.summary.not_found == 2
    assert result.summary.newly_checked == 2


def test_repeated_missing_number_checked_once_and_flagged_each_time(prior_ledger) -> None:
    client = DummyClient()
    reconciliation = ReconciliationPass.from_ledger(client, prior_ledger, source_number="+5550000000")

    result = reconciliation.run(_rows("1", "3", "3"))

    assert client.calls == ["+3"]
    assert [row.is_not_found for row in result.rows] == [False, True, True]
    assert result.rows[2].outcome == VerificationOutcome(is_valid=True, on_whatsapp=False)
    assert result.summary.newly_checked == 2


def test_no_delay_by_default(prior_ledger) -> None:
    sleeps: List[float] = []
    reconciliation = ReconciliationPass.from_ledger(
        DummyClient(),
        prior_ledger,
        source_number="+5550000000",
        delay=InterCallDelay.seconds(0, sleep=sleeps.append),
    )

    reconciliation.run(_rows("7", "8"))

    assert sleeps == []


def test_configured_delay_applies_to_fresh_lookups_only(prior_ledger) -> None:
    sleeps: List[float] = []
    reconciliation = ReconciliationPass.from_ledger(
        DummyClient(),
        prior_ledger,
        source_number="+5550000000",
        delay=InterCallDelay.seconds(1.5, sleep=sleeps.append),
    )

    reconciliation.run(_rows("1", "7", None, "8"))

    assert sleeps == [1.5, 1.5]


def test_fatal_error_aborts_reconciliation(prior_ledger) -> None:
    client = DummyClient({"+5": FatalAPIError("payment required", phone="+5", status=402)})
    reconciliation = ReconciliationPass.from_ledger(client, prior_ledger, source_number="+5550000000")

    with pytest.raises(RunAborted) as excinfo:
        reconciliation.run(_rows("1", "5", "6"))

    assert client.calls == ["+5"]
    assert len(excinfo.value.rows) == 1
    assert excinfo.value.status == 402


def test_update_ledger_appends_fresh_responses(prior_ledger) -> None:
    client = DummyClient()
    reconciliation = ReconciliationPass.from_ledger(
        client, prior_ledger, update_ledger=True, source_number="+5550000000"
    )

    reconciliation.run(_rows("9"))

    reloaded = ResponseLedger.load(prior_ledger.path)
    assert len(reloaded) == 4
    assert reloaded.lookup("+9") == VerificationOutcome(is_valid=True, on_whatsapp=False)


def test_ledger_untouched_without_update_flag(prior_ledger) -> None:
    ReconciliationPass.from_ledger(DummyClient(), prior_ledger, source_number="+5550000000").run(_rows("9"))

    assert len(ResponseLedger.load(prior_ledger.path)) == 3
