"""Error taxonomy for smartcards.

Scheduler errors are raised synchronously by the engine and are never
retried internally; the host decides whether to re-prompt, reload or abort.
"""


class SmartcardsError(Exception):
    """Base class for all smartcards errors."""


class SchedulerError(SmartcardsError):
    """Base class for session/scheduling errors."""


class EmptyPoolError(SchedulerError):
    """A session was started (or restarted) without any cards."""


class NotActiveError(SchedulerError):
    """An operation that needs an active session was called outside one."""


class NoActiveCardError(NotActiveError):
    """An answer was reported while no card is being presented."""


class StoreError(SmartcardsError):
    """The card store adapter failed."""


class ContentGenerationError(SmartcardsError):
    """The content generation adapter failed or returned garbage."""
