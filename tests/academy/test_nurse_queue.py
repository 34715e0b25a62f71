import pytest

from modules.academy.nurse import NurseQueue


def test_queue_is_first_come_first_served(tmp_path):
    queue = NurseQueue(tmp_path)
    assert queue.check_in(10, "maya", "headache") == 1
    assert queue.check_in(11, "rex", "scraped knee") == 2
    assert [entry.user_id for entry in queue.waiting()] == [10, 11]

    first = queue.pop_next()
    assert (first.user_id, first.reason) == (10, "headache")
    assert queue.pop_next().user_id == 11
    assert queue.pop_next() is None


def test_check_in_requires_reason(tmp_path):
    with pytest.raises(ValueError):
        NurseQueue(tmp_path).check_in(10, "maya", "   ")


def test_queue_survives_reload(tmp_path):
    NurseQueue(tmp_path).check_in(10, "maya", "cough")
    assert NurseQueue(tmp_path).waiting()[0].user == "maya"
