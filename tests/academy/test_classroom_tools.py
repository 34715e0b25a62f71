import pytest

from modules.academy.classroom import (
    HISTORY_LIMIT,
    AttendanceBook,
    ClassroomError,
    PointsLedger,
    next_id,
    session_totals_text,
)
from shared.json_store import base36


def _clock(start=1_700_000_000_000):
    state = {"now": start}

    def tick():
        return state["now"]

    return tick


def test_next_id_bumps_past_collisions():
    clock = _clock()
    first = next_id("S", {}, clock)
    second = next_id("S", {first: {}}, clock)
    assert first == "S" + base36(1_700_000_000_000)
    assert second == "S" + base36(1_700_000_000_001)


def test_attendance_round(tmp_path):
    book = AttendanceBook(tmp_path, clock=_clock())
    session_id = book.start("Biology", channel_id=1, teacher_id=2, teacher="Ms. Park")
    assert session_id.startswith("S")

    book.mark(session_id.lower(), 10, "present")
    book.mark(session_id, 11, "LATE")
    book.mark(session_id, 12, "excused")
    # a later mark replaces the earlier one
    book.mark(session_id, 12, "present")

    totals = book.close(session_id)
    assert (totals.present, totals.late, totals.excused) == (2, 1, 0)
    assert totals.class_name == "Biology"
    assert "Present: **2**" in session_totals_text(totals)


def test_attendance_errors(tmp_path):
    book = AttendanceBook(tmp_path, clock=_clock())
    with pytest.raises(ClassroomError):
        book.start("  ", channel_id=1, teacher_id=2, teacher="t")
    session_id = book.start("Art", channel_id=1, teacher_id=2, teacher="t")

    with pytest.raises(ClassroomError, match="Status must be"):
        book.mark(session_id, 10, "asleep")
    with pytest.raises(ClassroomError, match="Session not found"):
        book.mark("S0", 10, "present")

    book.close(session_id)
    with pytest.raises(ClassroomError, match="closed"):
        book.mark(session_id, 10, "present")
    with pytest.raises(ClassroomError, match="already closed"):
        book.close(session_id)


def test_points_totals_history_and_leaderboard(tmp_path):
    ledger = PointsLedger(tmp_path)
    assert ledger.add(10, 5, "Helped a classmate", actor="t") == 5
    assert ledger.add(10, -2, "Late to class", actor="t") == 3
    ledger.add(11, 7, "Won the quiz", actor="t")
    ledger.add(12, 1, "Tidy desk", actor="t")

    assert ledger.total(10) == 3
    assert ledger.total(99) == 0
    assert ledger.history(10)[0]["reason"] == "Late to class"
    assert ledger.leaderboard() == [(11, 7), (10, 3), (12, 1)]
    assert ledger.leaderboard(limit=1) == [(11, 7)]


def test_points_history_is_capped(tmp_path):
    ledger = PointsLedger(tmp_path)
    for idx in range(HISTORY_LIMIT + 5):
        ledger.add(10, 1, f"r{idx}", actor="t")
    history = ledger.history(10)
    assert len(history) == HISTORY_LIMIT
    assert history[0]["reason"] == f"r{HISTORY_LIMIT + 4}"
    assert ledger.total(10) == HISTORY_LIMIT + 5


def test_points_need_reason(tmp_path):
    with pytest.raises(ClassroomError):
        PointsLedger(tmp_path).add(10, 1, " ", actor="t")
