"""Value objects shared by the parser, scheduler and placement resolver."""

from dataclasses import dataclass, field
from enum import Enum


class LineKind(str, Enum):
    """Classification of a line in new-file coordinates."""

    ADDED = "added"
    MODIFIED = "modified"
    CONTEXT = "context"


@dataclass(frozen=True)
class Hunk:
    """A `@@ -o,p +n,q @@` block and its raw body lines."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[str, ...] = ()

    def __post_init__(self):
        if self.new_start < 1:
            raise ValueError(f"new_start must be >= 1, got {self.new_start}")


@dataclass(frozen=True)
class LineRecord:
    """A classified line: 1-based new-file line number, kind and stripped content."""

    line_number: int
    kind: LineKind
    content: str = ""


@dataclass(frozen=True)
class FileSegment:
    """All hunks and line records found for one file in a patch buffer.

    `filename` is None when the buffer holds a single patch with no
    file-path marker in front of it.
    """

    filename: str | None
    hunks: tuple[Hunk, ...] = ()
    records: tuple[LineRecord, ...] = ()


@dataclass(frozen=True)
class ChangedFile:
    """A `{filename, patch}` pair as reported by the diff source."""

    filename: str
    patch: str | None = None


@dataclass(frozen=True)
class FilePatch:
    """A changed file with its patch text and estimated cost."""

    filename: str
    patch: str
    units_used: int


@dataclass(frozen=True)
class Batch:
    """Files sent together in one generation request."""

    files: tuple[FilePatch, ...]

    @property
    def total_units(self) -> int:
        return sum(f.units_used for f in self.files)

    @property
    def filenames(self) -> list[str]:
        return [f.filename for f in self.files]


@dataclass(frozen=True)
class GateResult:
    """Output of the budget gate."""

    eligible: list[FilePatch] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Suggestion:
    """Generated review text for one file."""

    filename: str
    suggestion_text: str


@dataclass(frozen=True)
class PlacementCandidate:
    """A line to try anchoring a comment to.

    The tier-4 sentinel has no line number and no kind: it means the comment
    goes on the pull request as a whole.
    """

    line_number: int | None
    kind: LineKind | None
    tier: int

    @property
    def is_sentinel(self) -> bool:
        return self.line_number is None


@dataclass(frozen=True)
class PatchSummary:
    """Change overview of a single-file patch."""

    first_changed_line: int
    has_changes: bool
    added_lines: tuple[int, ...] = ()
    modified_lines: tuple[int, ...] = ()
