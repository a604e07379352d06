# listline_system/exceptions.py
"""
Engine error taxonomy.

ConfigurationError lives in config.py next to the parameters it guards.
"""


class ListlineError(Exception):
    """Base class for engine errors."""
    pass


class UnknownReferrer(ListlineError, LookupError):
    """Referrer id does not resolve to an existing member."""

    def __init__(self, referrer_id):
        self.referrerId = referrer_id
        super().__init__(f"Unknown referrer: {referrer_id}")


class UnknownMember(ListlineError, LookupError):
    """Member id does not resolve to an existing member."""

    def __init__(self, member_id):
        self.memberId = member_id
        super().__init__(f"Unknown member: {member_id}")


class UnknownNomination(ListlineError, LookupError):
    def __init__(self, nomination_id):
        self.nominationId = nomination_id
        super().__init__(f"Unknown successor nomination: {nomination_id}")


class NominationConflictError(ListlineError):
    """Confirm/decline attempted on a nomination that is not proposed."""
    pass


class TransientOperationError(ListlineError):
    """External handshake failed; engine state is unchanged and the call can be retried."""
    pass


class WithdrawalError(ListlineError, ValueError):
    """Withdrawal request violates balance or minimum rules."""
    pass
