"""Polling and presentation transitions enforced by the sync engine."""

POLLING_TRANSITIONS: dict[str, set[str]] = {
    "IDLE": {"POLLING"},
    "POLLING": {"MERGING", "IDLE"},
    "MERGING": {"IDLE"},
}

PRESENTATION_TRANSITIONS: dict[str, set[str]] = {
    "HIDDEN": {"SHOWING", "HIDDEN"},
    # SHOWING -> SHOWING is a preemption by a newer arrival.
    "SHOWING": {"SHOWING", "HIDDEN"},
}


def validate_transition(current: str, new: str, transitions: dict[str, set[str]] = POLLING_TRANSITIONS) -> None:
    """Raise when a transition is not allowed by the given state machine."""

    if new not in transitions.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
