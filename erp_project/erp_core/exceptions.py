
class UnbalancedJournalError(Exception):
    """Raised when a JournalEntry fails double-entry balance check."""
    pass


class AlreadyPostedDifferentPayload(Exception):
    """Raised when a JournalEntry already posted with different payload """
    pass


class TenantAccessError(Exception):
    """Raised when a user reaches into an organization they hold no active membership in."""
    pass
