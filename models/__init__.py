"""
Ledger models for the listline simulator.
Import all models here for easy access.
"""

# Members
from models.member import Member, NodeStats, LinkStats, SYSTEM_ID, SYSTEM_NAME, create_system_member

# Ledger records
from models.listline import Listline, Payment
from models.event import EventKind, Severity, SimulationEvent
from models.history import HistoryPoint
from models.nomination import NominationStatus, SuccessorNomination

# Read-only views
from models.snapshot import SimulationSnapshot

__all__ = [
    # Members
    'Member',
    'NodeStats',
    'LinkStats',
    'SYSTEM_ID',
    'SYSTEM_NAME',
    'create_system_member',

    # Ledger
    'Listline',
    'Payment',
    'EventKind',
    'Severity',
    'SimulationEvent',
    'HistoryPoint',
    'NominationStatus',
    'SuccessorNomination',

    # Views
    'SimulationSnapshot',
]
