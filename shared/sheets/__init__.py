"""Google Sheets access for the application workflow (import side-effect free)."""

from __future__ import annotations

import importlib
from typing import Any

__all__ = [
    "ApplicationSheetStore",
    "ExternalStoreUnavailable",
    "LookupMiss",
    "SheetRow",
    "StoreNotConfigured",
    "TabTitleCache",
]

_LAZY_ATTRS = {
    "ApplicationSheetStore": ("shared.sheets.applications", "ApplicationSheetStore"),
    "LookupMiss": ("shared.sheets.applications", "LookupMiss"),
    "SheetRow": ("shared.sheets.applications", "SheetRow"),
    "ExternalStoreUnavailable": ("shared.sheets.core", "ExternalStoreUnavailable"),
    "StoreNotConfigured": ("shared.sheets.core", "StoreNotConfigured"),
    "TabTitleCache": ("shared.sheets.core", "TabTitleCache"),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(name)
    module_name, attr = target
    module = importlib.import_module(module_name)
    value = getattr(module, attr)
    globals()[name] = value
    return value
