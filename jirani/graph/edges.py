"""Conditional edge routing functions."""
from __future__ import annotations

from typing import Literal


def route_after_check_confirmation(
    state: dict,
) -> Literal["commit", "cancel", "generate"]:
    intent = state.get("intent")
    if intent == "confirm":
        return "commit"
    if intent == "cancel":
        return "cancel"
    # Not a yes/no answer: the reporter may be adding detail
    return "generate"
