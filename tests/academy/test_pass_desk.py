import asyncio

import pytest

from modules.academy.passes import PassDesk, PassError, pass_decision_message
from shared.testing.fakes import FakeNotifier


def _desk(tmp_path, notifier=None):
    return PassDesk(tmp_path, notifier or FakeNotifier(), clock=lambda: 1_700_000_000_000)


def test_request_validates_reason(tmp_path):
    desk = _desk(tmp_path)
    with pytest.raises(PassError):
        desk.request(10, "maya", "field trip")
    pass_id = desk.request(10, "maya", " Nurse ", "headache")
    entry = desk.get(pass_id.lower())
    assert entry["status"] == "pending"
    assert entry["reason"] == "nurse"


def test_decide_commits_then_dms(tmp_path):
    notifier = FakeNotifier()
    desk = _desk(tmp_path, notifier)
    pass_id = desk.request(10, "maya", "office")

    result = asyncio.run(desk.decide(pass_id, "APPROVED", "go now", actor="Ms. Park"))
    assert result.decision == "approved"
    assert result.notified is True
    assert desk.get(pass_id)["decided_by"] == "Ms. Park"
    target, message = notifier.calls[0]
    assert target == "10"
    assert "was **APPROVED**" in message
    assert "Notes: go now" in message


def test_decide_twice_and_unknown_pass(tmp_path):
    desk = _desk(tmp_path)
    pass_id = desk.request(10, "maya", "bathroom")
    asyncio.run(desk.decide(pass_id, "denied", actor="t"))
    with pytest.raises(PassError, match="already decided: denied"):
        asyncio.run(desk.decide(pass_id, "approved", actor="t"))
    with pytest.raises(PassError, match="Pass not found"):
        asyncio.run(desk.decide("P0", "approved", actor="t"))
    with pytest.raises(PassError):
        asyncio.run(desk.decide(pass_id, "maybe", actor="t"))


def test_failed_dm_keeps_decision(tmp_path):
    desk = _desk(tmp_path, FakeNotifier(result=RuntimeError("dm closed")))
    pass_id = desk.request(10, "maya", "pickup")
    result = asyncio.run(desk.decide(pass_id, "approved", actor="t"))
    assert result.notified is False
    assert desk.get(pass_id)["status"] == "approved"


def test_decision_message_omits_empty_lines():
    message = pass_decision_message("P1", {"status": "denied", "reason": "office"})
    assert message.splitlines() == [
        "Your pass request (**P1**) was **DENIED**.",
        "Reason: office",
    ]
