"""Readiness registry shared by the bot events and the health server.

``runtime`` flips on when the web app is built and ``discord`` follows the
gateway connection; ``/ready`` reports ready only when both are up.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict

__all__ = [
    "ComponentState",
    "components_snapshot",
    "overall_ready",
    "required_components",
    "reset",
    "set_component",
]

REQUIRED = frozenset({"runtime", "discord"})


@dataclass(frozen=True)
class ComponentState:
    ok: bool
    ts: float

    def as_dict(self) -> dict[str, float | bool]:
        return {"ok": self.ok, "ts": self.ts}


_states: Dict[str, ComponentState] = {}


def required_components() -> frozenset[str]:
    return REQUIRED


def set_component(name: str, ok: bool) -> None:
    _states[name] = ComponentState(ok=bool(ok), ts=time.time())


def components_snapshot() -> dict[str, dict[str, float | bool]]:
    """Every known component plus any required one not reported yet (as down)."""

    snapshot = {name: state.as_dict() for name, state in _states.items()}
    for name in REQUIRED:
        snapshot.setdefault(name, {"ok": False, "ts": 0.0})
    return snapshot


def overall_ready() -> bool:
    return all(_states.get(name, ComponentState(False, 0.0)).ok for name in REQUIRED)


def reset() -> None:
    _states.clear()
