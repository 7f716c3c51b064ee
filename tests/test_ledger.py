import json

import pytest

from whatsapp_checker.ledger import (
    LedgerCorruptionError,
    LedgerNotFoundError,
    ResponseLedger,
    ledger_path_for,
)
from whatsapp_checker.models import LedgerEntry, VerificationOutcome


def test_create_initialises_empty_array(tmp_path) -> None:
    path = tmp_path / "Report-responses.json"
    path.write_text('[{"phone": "+1", "response": {}, "timestamp": "x"}]', encoding="utf-8")

    ledger = ResponseLedger.create(path)

    assert len(ledger) == 0
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_append_persists_every_entry(tmp_path) -> None:
    path = tmp_path / "ledger.json"
    ledger = ResponseLedger.create(path)

    ledger.record("+5551112222", {"is_valid": True, "on_whatsapp": True})
    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert [item["phone"] for item in on_disk] == ["+5551112222"]

    ledger.record("+5553334444", {"is_valid": False, "on_whatsapp": False})
    reloaded = ResponseLedger.load(path)

    assert len(reloaded) == 2
    assert [entry.phone for entry in reloaded.entries] == ["+5551112222", "+5553334444"]
    assert reloaded.lookup("+5551112222") == VerificationOutcome(is_valid=True, on_whatsapp=True)
    assert set(on_disk[0]) == {"phone", "response", "timestamp"}


def test_lookup_uses_latest_entry(tmp_path) -> None:
    ledger = ResponseLedger.create(tmp_path / "ledger.json")
    ledger.append(LedgerEntry(phone="+1", response={"is_valid": False}, timestamp="2024-01-01T00:00:00Z"))
    ledger.append(LedgerEntry(phone="+1", response={"is_valid": True, "on_whatsapp": True}, timestamp="2024-01-02T00:00:00Z"))

    reloaded = ResponseLedger.load(ledger.path)

    assert len(reloaded) == 2
    assert reloaded.lookup("+1") == VerificationOutcome(is_valid=True, on_whatsapp=True)
    assert reloaded.outcomes() == {"+1": VerificationOutcome(is_valid=True, on_whatsapp=True)}
    assert "+1" in reloaded
    assert reloaded.lookup("+2") is None
    assert reloaded.lookup(None) is None


def test_flush_leaves_no_temporary_files(tmp_path) -> None:
    ledger = ResponseLedger.create(tmp_path / "ledger.json")
    for index in range(5):
        ledger.record(f"+{index}", {"is_valid": True})

    assert sorted(p.name for p in tmp_path.iterdir()) == ["ledger.json"]


def test_load_missing_file_raises_not_found(tmp_path) -> None:
    with pytest.raises(LedgerNotFoundError):
        ResponseLedger.load(tmp_path / "missing.json")


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        '{"phone": "+1"}',
        '[{"response": {}}]',
        '[{"phone": "+1", "response": "oops"}]',
        "[1, 2]",
    ],
)
def test_load_malformed_file_raises_corruption(tmp_path, content) -> None:
    path = tmp_path / "ledger.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(LedgerCorruptionError):
        ResponseLedger.load(path)


def test_open_without_resume_resets_file(tmp_path) -> None:
    path = tmp_path / "ledger.json"
    ResponseLedger.create(path).record("+1", {"is_valid": True})

    ledger = ResponseLedger.open(path)

    assert len(ledger) == 0
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_open_with_resume_keeps_existing_entries(tmp_path) -> None:
    path = tmp_path / "ledger.json"
    ResponseLedger.create(path).record("+1", {"is_valid": True})

    ledger = ResponseLedger.open(path, resume=True)

    assert ledger.lookup("+1") == VerificationOutcome(is_valid=True, on_whatsapp=False)


def test_open_with_resume_starts_empty_when_missing(tmp_path) -> None:
    path = tmp_path / "ledger.json"

    ledger = ResponseLedger.open(path, resume=True)

    assert len(ledger) == 0
    assert path.exists()


@pytest.mark.parametrize(
    "output, expected",
    [
        ("Report-results.xlsx", "Report-results-responses.json"),
        ("Report-results.csv", "Report-results-responses.json"),
        ("Report-results", "Report-results-responses.json"),
    ],
)
def test_ledger_path_for_output(tmp_path, output, expected) -> None:
    assert ledger_path_for(tmp_path / output) == tmp_path / expected


@pytest.mark.parametrize("target", ["whatsapp_checker.ledger.os.replace", "whatsapp_checker.ledger.json.dump"])
def test_failed_append_keeps_previous_file(tmp_path, monkeypatch, target) -> None:
    path = tmp_path / "ledger.json"
    ledger = ResponseLedger.create(path)
    ledger.record("+1", {"is_valid": True, "on_whatsapp": True})

    def boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(target, boom)

    with pytest.raises(OSError):
        ledger.record("+2", {"is_valid": False})

    monkeypatch.undo()
    reloaded = ResponseLedger.load(path)
    assert [entry.phone for entry in reloaded] == ["+1"]
    assert list(tmp_path.glob("*.tmp")) == []
    assert sorted(p.name for p in tmp_path.iterdir()) == ["ledger.json"]
