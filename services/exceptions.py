"""Errors raised by the homework services."""


class HomeworkBotError(Exception):
    """Base class for service errors."""


class NotFound(HomeworkBotError):
    """A referenced user, day, subject, submission or student is absent."""


class StoreError(HomeworkBotError):
    """The database could not be reached or rejected the operation."""


class TransportError(HomeworkBotError):
    """Fetching or sending a chat attachment or message failed."""
