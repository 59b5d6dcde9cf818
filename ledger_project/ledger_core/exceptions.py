from django.core.exceptions import ObjectDoesNotExist, ValidationError


class UnbalancedJournalError(ValidationError):
    """Raised when a JournalEntry fails double-entry balance check."""
    pass

class AlreadyPostedDifferentPayload(ValidationError):
    """Raised when a source event was already posted with a different payload"""
    pass

class AccountNotFound(ObjectDoesNotExist):
    """Raised when a company's chart of accounts has no account with the code."""
    pass

class CompanyNotFound(ObjectDoesNotExist):
    pass
