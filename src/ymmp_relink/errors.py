"""Exception taxonomy for the relink resolver.

Document-level failures derive from RelinkError and abort the operation.
Per-reference and per-directory failures are never raised to the caller;
they are recorded on the reference (status FAILED) and tallied instead.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ymmp_relink.models.reference import ExecutionResult


class RelinkError(Exception):
    """Base class for terminal relink failures."""


class DocumentNotFound(RelinkError):
    """The project document does not exist."""


class ParseError(RelinkError):
    """The project document is not a valid JSON tree."""


class IoFailure(RelinkError):
    """Reading the project document failed for a reason other than absence."""


class BackupFailed(RelinkError):
    """The backup copy could not be created; the document was not touched."""


class WriteFailed(RelinkError):
    """The patched document could not be written; the original is unchanged."""


class PatchFailed(WriteFailed):
    """A reference token could not be located in the original text."""


class SaveInProgress(RelinkError):
    """Another save of the same document is already running."""


class InvalidTransition(RelinkError):
    """A status change that the resolution state machine does not allow."""


class DocumentBusy(RelinkError):
    """Another session already holds the document."""


class SessionClosed(RelinkError):
    """The session was discarded after a save; scan the document again."""


class RelinkCancelled(Exception):
    """Cooperative cancellation. Not a failure.

    When raised out of a search, ``partial`` holds the updates computed before
    the cancellation was observed. They are valid and may be applied.
    """

    def __init__(
        self,
        message: str = "operation cancelled",
        *,
        partial: "ExecutionResult | None" = None,
    ) -> None:
        super().__init__(message)
        self.partial = partial
