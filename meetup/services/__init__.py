"""Service layer helpers for the meetup backend."""

from . import capacity_guard  # noqa: F401
from .participation_rules import (
    ParticipationEvent,
    Transition,
    TRANSITIONS,
    resolve,
)  # noqa: F401

__all__ = [
    "capacity_guard",
    "ParticipationEvent",
    "Transition",
    "TRANSITIONS",
    "resolve",
]
