"""Persona registry and background maintenance."""

from .registry import PersonaRegistry
from .maintenance import MaintenanceScheduler, MaintenanceStats, PersonaSweepOutcome, SweepResult

__all__ = [
    "PersonaRegistry",
    "MaintenanceScheduler",
    "MaintenanceStats",
    "PersonaSweepOutcome",
    "SweepResult",
]
