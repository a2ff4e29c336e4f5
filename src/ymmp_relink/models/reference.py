"""Domain models for the relink resolver."""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path, PureWindowsPath

from ymmp_relink.config import BACKUP_SUFFIX


class RelinkStatus(Enum):
    """Resolution state of a single reference."""

    EXISTING = "existing"
    MISSING = "missing"
    UPDATED = "updated"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"
    FAILED = "failed"


# Statuses a search pass picks up on its own. FAILED needs an explicit resubmit.
SEARCHABLE_STATUSES: frozenset[RelinkStatus] = frozenset(
    {RelinkStatus.MISSING, RelinkStatus.AMBIGUOUS, RelinkStatus.NOT_FOUND}
)


def split_file_name(path: str) -> tuple[str, str]:
    """Return (file name, extension) of a path written with either separator style."""
    # PureWindowsPath splits on both "\" and "/".
    pure = PureWindowsPath(path)
    return pure.name, pure.suffix


@dataclass(frozen=True)
class Reference:
    """One file path occurrence in a project document.

    ``index`` and ``original_path`` never change once scanned; status changes
    produce a new Reference via ``dataclasses.replace``.
    """

    index: int
    original_path: str
    type_hint: str = ""
    status: RelinkStatus = RelinkStatus.MISSING
    candidates: tuple[str, ...] = ()
    selected_candidate: str | None = None
    message: str = ""
    # [start, end) of the serialized path literal (quotes included) in the original text.
    span: tuple[int, int] | None = None

    def __post_init__(self) -> None:
        if self.status is RelinkStatus.UPDATED and not self.selected_candidate:
            msg = f"reference #{self.index}: UPDATED requires a selected candidate"
            raise ValueError(msg)
        if self.status is RelinkStatus.AMBIGUOUS and len(self.candidates) < 2:
            msg = f"reference #{self.index}: AMBIGUOUS requires at least two candidates"
            raise ValueError(msg)
        if self.status is RelinkStatus.NOT_FOUND and self.candidates:
            msg = f"reference #{self.index}: NOT_FOUND cannot carry candidates"
            raise ValueError(msg)

    @property
    def file_name(self) -> str:
        return split_file_name(self.original_path)[0]

    @property
    def extension(self) -> str:
        return split_file_name(self.original_path)[1]

    @property
    def is_editable(self) -> bool:
        """True when the user has to choose among candidates."""
        return self.status is RelinkStatus.AMBIGUOUS

    def apply(self, update: "ReferenceUpdate") -> "Reference":
        return replace(
            self,
            status=update.status,
            candidates=update.candidates,
            selected_candidate=update.selected_candidate,
            message=update.message,
        )


@dataclass(frozen=True)
class ReferenceUpdate:
    """A status change computed for one reference, applied later by the session."""

    index: int
    status: RelinkStatus
    candidates: tuple[str, ...] = ()
    selected_candidate: str | None = None
    message: str = ""


@dataclass
class RelinkSummary:
    """Counters reported after a scan or a search.

    ``skipped`` counts references that already exist on disk; ``failed`` counts
    references that ended up FAILED; ``enumeration_failures`` counts directories
    the search could not list.
    """

    scanned: int = 0
    missing: int = 0
    updated: int = 0
    ambiguous: int = 0
    not_found: int = 0
    failed: int = 0
    skipped: int = 0
    enumeration_failures: int = 0

    def __str__(self) -> str:
        return (
            f"scanned={self.scanned}, missing={self.missing}, updated={self.updated}, "
            f"ambiguous={self.ambiguous}, not_found={self.not_found}, "
            f"skipped={self.skipped}, failed={self.failed}, "
            f"enumeration_failures={self.enumeration_failures}"
        )

    def count(self, status: RelinkStatus) -> None:
        """Tally one reference under its status."""
        if status is RelinkStatus.EXISTING:
            self.skipped += 1
        elif status is RelinkStatus.MISSING:
            self.missing += 1
        elif status is RelinkStatus.UPDATED:
            self.updated += 1
        elif status is RelinkStatus.AMBIGUOUS:
            self.ambiguous += 1
        elif status is RelinkStatus.NOT_FOUND:
            self.not_found += 1
        else:
            self.failed += 1


@dataclass(frozen=True)
class DocumentContext:
    """Snapshot of one scanned document."""

    source_path: Path
    original_text: str
    references: tuple[Reference, ...] = ()
    has_bom: bool = False

    def with_references(self, references: tuple[Reference, ...]) -> "DocumentContext":
        return replace(self, references=references)

    @property
    def backup_path(self) -> Path:
        return self.source_path.with_name(self.source_path.name + BACKUP_SUFFIX)


@dataclass(frozen=True)
class SearchProgress:
    """Progress after one processed reference."""

    done: int
    total: int
    current_file_name: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.done >= self.total


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a search pass: counters plus the updates to apply."""

    summary: RelinkSummary = field(default_factory=RelinkSummary)
    updates: tuple[ReferenceUpdate, ...] = ()


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a save. ``backup_path`` is None when nothing was written."""

    updated_count: int = 0
    backup_path: Path | None = None
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return self.updated_count > 0 and not self.dry_run
