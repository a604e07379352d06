# models/event.py
"""
Simulation event log entries.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventKind(Enum):
    """Every kind of entry the engine can append to the event log."""
    MEMBER_CREATED = "user_created"
    DEPOSIT = "deposit"
    SUCCESSOR = "successor"
    INFO = "info"
    FRAUD_ALERT = "fraud_alert"
    VIEW = "view"
    REGISTRATION = "registration"
    PAYMENT = "payment"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class SimulationEvent:
    id: str
    kind: EventKind
    message: str
    timestamp: float
    severity: Optional[Severity] = None
