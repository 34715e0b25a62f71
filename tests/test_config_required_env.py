import importlib
import sys

import pytest


@pytest.mark.parametrize("missing", ["DISCORD_TOKEN"])
def test_missing_required_env_exits(missing, monkeypatch):
    module_name = "shared.config"
    if module_name in sys.modules:
        del sys.modules[module_name]

    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.delenv(missing, raising=False)

    with pytest.raises(RuntimeError):
        importlib.import_module(module_name)

    # ensure module removed for next parameter iteration
    if module_name in sys.modules:
        del sys.modules[module_name]


def test_sheet_ids_are_optional(monkeypatch):
    module_name = "shared.config"
    if module_name in sys.modules:
        del sys.modules[module_name]

    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.delenv("STUDENT_SHEET_ID", raising=False)
    monkeypatch.delenv("TEACHER_SHEET_ID", raising=False)
    monkeypatch.delenv("GSPREAD_CREDENTIALS", raising=False)

    cfg = importlib.import_module(module_name)
    try:
        assert cfg.get_student_sheet_id() == ""
        assert cfg.get_teacher_sheet_id() == ""
    finally:
        del sys.modules[module_name]
