"""Exception hierarchy for Chatloom.

Every failure the pipeline or the generation queue can hit maps to one of
these types. None of them is fatal to the process.
"""

from __future__ import annotations


class ChatloomError(RuntimeError):
    """Base class for Chatloom errors."""

    pass


class ConfigError(ChatloomError):
    """Configuration error."""

    pass


class ResolutionFailure(ChatloomError):
    """A referenced message could not be fetched while resolving a thread."""

    def __init__(self, message_id: int, reason: str = "") -> None:
        self.message_id = message_id
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"could not fetch message {message_id}{detail}")


class GenerationEmptyResult(ChatloomError):
    """The render backend finished without producing an artifact."""

    pass


class GenerationFailure(ChatloomError):
    """The render backend raised an error."""

    pass


class DeliveryFailure(ChatloomError):
    """An artifact was produced but could not be sent back to the requester."""

    pass


class CompletionBackendFailure(ChatloomError):
    """The text-completion call failed."""

    pass


class JobAlreadySettled(ChatloomError):
    """A job future was settled a second time."""

    pass
