# listline_system/__init__.py
"""
Listline System - referral payout simulation and ledger engine.
"""

# Engine
from listline_system.engine import SimulationEngine

# Services
from listline_system.services.referral_forest import ReferralForest
from listline_system.services.payout_service import PayoutService, compute_listline, split_deposit
from listline_system.services.position_index import PositionIndex, PositionStats
from listline_system.services.successor_service import SuccessorService
from listline_system.services.gateway import LedgerGateway, InMemoryGateway

# Utilities
from listline_system.utils.chain_walker import ChainWalker

# Errors
from listline_system.exceptions import (
    ListlineError,
    UnknownReferrer,
    UnknownMember,
    UnknownNomination,
    NominationConflictError,
    TransientOperationError,
    WithdrawalError,
)

__all__ = [
    # Engine
    'SimulationEngine',

    # Services
    'ReferralForest',
    'PayoutService',
    'compute_listline',
    'split_deposit',
    'PositionIndex',
    'PositionStats',
    'SuccessorService',
    'LedgerGateway',
    'InMemoryGateway',

    # Utils
    'ChainWalker',

    # Errors
    'ListlineError',
    'UnknownReferrer',
    'UnknownMember',
    'UnknownNomination',
    'NominationConflictError',
    'TransientOperationError',
    'WithdrawalError',
]
