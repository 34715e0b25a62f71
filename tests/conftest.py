"""Pytest configuration for shared test fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path(source_file: Path) -> None:
    """Add the repository root to ``sys.path`` when running from subpackages."""

    for candidate in [source_file.parent, *source_file.parents]:
        shared_dir = candidate / "shared"
        if shared_dir.is_dir():
            project_root = str(candidate)
            if project_root not in sys.path:
                sys.path.insert(0, project_root)
            break


_ensure_project_root_on_path(Path(__file__).resolve())

from shared.testing.environment import apply_required_test_environment

apply_required_test_environment()

from shared.sheets.applications import ApplicationSheetStore
from shared.sheets.core import TabTitleCache
from shared.testing.fakes import (
    STUDENT_HEADERS,
    TEACHER_HEADERS,
    FakeNotifier,
    FakeSheetBackend,
    student_row,
    teacher_row,
)


@pytest.fixture
def sheet_backend() -> FakeSheetBackend:
    return FakeSheetBackend(
        {
            "student-sheet": [
                STUDENT_HEADERS,
                student_row("Maya", "1001", "Pending", next_steps="Wait for review"),
                student_row("Jonah", "", "Approved", payment="Unpaid", notes="Call parent"),
                student_row("Rex", "1003", "Denied"),
                student_row("Ivy", "1004", "Approved", signature="Ivy R."),
            ],
            "teacher-sheet": [
                TEACHER_HEADERS,
                teacher_row("Ms. Park", "2001", "", positions="Math"),
            ],
        }
    )


@pytest.fixture
def store(sheet_backend: FakeSheetBackend) -> ApplicationSheetStore:
    return ApplicationSheetStore(
        {"student": "student-sheet", "teacher": "teacher-sheet"},
        backend=sheet_backend,
        tab_cache=TabTitleCache(),
    )


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()
