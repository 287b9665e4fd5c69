"""Domain errors raised by the approval routing engine.

The HTTP layer maps each of these to a status code in app.main; services
and engines raise them and never catch them.
"""


class ApprovalEngineError(Exception):
    """Base class for all approval engine errors."""


class RuleResolutionError(ApprovalEngineError):
    """No usable company policy exists for the claim."""


class InvalidPolicyError(ApprovalEngineError):
    """A company policy or approval rule failed validation."""


class CurrencyConversionError(ApprovalEngineError):
    """The currency normalizer could not produce a base-currency amount."""


class ClaimNotFound(ApprovalEngineError):
    """The referenced claim does not exist."""


class NotActionable(ApprovalEngineError):
    """The claim is not in a state that accepts this action."""


class NotAuthorized(ApprovalEngineError):
    """The actor may not perform this action on the claim."""


class ConcurrentModificationConflict(ApprovalEngineError):
    """Another request changed the claim between read and write.

    Callers should re-read the claim and retry the action once.
    """
