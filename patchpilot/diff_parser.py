"""Diff Parser - Split unified diffs into hunks and classify their lines."""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterable

from patchpilot.errors import MalformedHunkHeader
from patchpilot.models import ChangedFile, FilePatch, FileSegment, Hunk, LineKind, LineRecord, PatchSummary

logger = logging.getLogger(__name__)

HUNK_HEADER_PATTERN = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
# A bare path on its own line starts a new file inside a concatenated buffer.
FILE_PATH_PATTERN = re.compile(r"^[^\s+\-@\\][^\s]*$")

DIFF_HEADER_PATTERN = re.compile(r"^diff --git a/(.*) b/(.*)$")
NEW_FILE_PATTERN = re.compile(r"^\+\+\+ (?:b/)?(.*)$")
BINARY_PATTERN = re.compile(r"^Binary files .* differ$")


@dataclass(frozen=True)
class Marker:
    """Position of a hunk header or file boundary in a list of patch lines."""

    index: int
    hunk: Hunk | None = None
    filename: str | None = None
    malformed: bool = False


def _split_lines(text: str) -> list[str]:
    if not text:
        return []
    if text.endswith("\n"):
        text = text[:-1]
    return text.split("\n")


def parse_hunk_header(line: str) -> Hunk:
    """Parse `@@ -o,p +n,q @@` into an empty Hunk; counts default to 1."""
    match = HUNK_HEADER_PATTERN.match(line)
    if not match:
        raise MalformedHunkHeader(line)
    try:
        return Hunk(
            old_start=int(match.group(1)),
            old_count=int(match.group(2) or 1),
            new_start=int(match.group(3)),
            new_count=int(match.group(4) or 1),
        )
    except ValueError as e:
        raise MalformedHunkHeader(line) from e


def scan_markers(lines: list[str]) -> tuple[Marker, ...]:
    """Find every hunk header and file boundary in one pass."""
    markers = []
    for index, line in enumerate(lines):
        if line.startswith("@@"):
            try:
                markers.append(Marker(index=index, hunk=parse_hunk_header(line)))
            except MalformedHunkHeader as e:
                logger.warning("Skipping hunk at line %d: %s", index + 1, e)
                markers.append(Marker(index=index, malformed=True))
        elif FILE_PATH_PATTERN.match(line):
            markers.append(Marker(index=index, filename=line.strip()))
    return tuple(markers)


def classify_hunk(hunk: Hunk) -> list[LineRecord]:
    """Classify a hunk body into line records starting at `new_start`.

    Only the lines covered by the header's old/new counts are read, so body
    lines such as `+++i;` or `--- comment` are always content. A removal
    immediately followed by an addition becomes a single `modified` record at
    the addition's position; the paired addition still takes up that line
    but is not reported again as `added`.
    """
    records: list[LineRecord] = []
    current_line = hunk.new_start
    old_seen = new_seen = 0
    pending_pair = False
    lines = hunk.lines

    for i, line in enumerate(lines):
        if old_seen >= hunk.old_count and new_seen >= hunk.new_count:
            logger.debug("Ignoring %d line(s) past the end of hunk at %d", len(lines) - i, hunk.new_start)
            break

        if line.startswith("+"):
            if pending_pair:
                pending_pair = False
            else:
                records.append(LineRecord(current_line, LineKind.ADDED, line[1:]))
            current_line += 1
            new_seen += 1
        elif line.startswith("-"):
            if i + 1 < len(lines) and lines[i + 1].startswith("+"):
                records.append(LineRecord(current_line, LineKind.MODIFIED, line[1:]))
                pending_pair = True
            old_seen += 1
        elif line.startswith(" ") or line == "":
            records.append(LineRecord(current_line, LineKind.CONTEXT, line[1:]))
            current_line += 1
            old_seen += 1
            new_seen += 1
        elif line.startswith("\\"):
            continue  # "\ No newline at end of file"
        else:
            logger.debug("Ignoring unrecognised hunk line %r", line)

    return records


def scan_patch(text: str) -> list[FileSegment]:
    """Split a patch buffer into per-file segments of hunks and line records.

    The buffer may hold several hunks per file and several files, each
    introduced by a bare file-path line (see `concatenate_patches`).
    """
    lines = _split_lines(text)
    markers = scan_markers(lines)

    segments: list[FileSegment] = []
    filename: str | None = None
    hunks: list[Hunk] = []

    def close_segment():
        if filename is not None or hunks:
            records = [record for hunk in hunks for record in classify_hunk(hunk)]
            segments.append(FileSegment(filename=filename, hunks=tuple(hunks), records=tuple(records)))

    for position, marker in enumerate(markers):
        if marker.filename is not None:
            close_segment()
            filename = marker.filename
            hunks = []
            continue
        if marker.malformed:
            continue

        end = markers[position + 1].index if position + 1 < len(markers) else len(lines)
        hunk = marker.hunk
        if hunks and hunk.new_start < hunks[-1].new_start:
            logger.warning(
                "Hunk at new line %d follows hunk at %d in %s", hunk.new_start, hunks[-1].new_start, filename
            )
        hunks.append(replace(hunk, lines=tuple(lines[marker.index + 1:end])))

    close_segment()
    return segments


def parse_patch(text: str) -> list[LineRecord]:
    """Line records for a single-file patch, across all of its hunks."""
    return [record for segment in scan_patch(text) for record in segment.records]


def parse_concatenated(text: str) -> dict[str, list[LineRecord]]:
    """Line records per filename for a buffer built by `concatenate_patches`."""
    by_file: dict[str, list[LineRecord]] = {}
    for segment in scan_patch(text):
        if segment.filename is None:
            logger.debug("Dropping %d record(s) found before the first file name", len(segment.records))
            continue
        by_file.setdefault(segment.filename, []).extend(segment.records)
    return by_file


def summarize_patch(text: str) -> PatchSummary:
    """Added/modified lines and the first changed line of a single-file patch.

    With no changes the first hunk's `new_start` is the default target (1
    when there are no hunks at all).
    """
    segments = scan_patch(text)
    hunks = [hunk for segment in segments for hunk in segment.hunks]
    records = [record for segment in segments for record in segment.records]

    changed = [r for r in records if r.kind in (LineKind.ADDED, LineKind.MODIFIED)]
    if changed:
        first_changed_line = changed[0].line_number
    elif hunks:
        first_changed_line = hunks[0].new_start
    else:
        first_changed_line = 1

    return PatchSummary(
        first_changed_line=first_changed_line,
        has_changes=bool(changed),
        added_lines=tuple(r.line_number for r in records if r.kind is LineKind.ADDED),
        modified_lines=tuple(r.line_number for r in records if r.kind is LineKind.MODIFIED),
    )


def first_changed_line(text: str) -> int:
    return summarize_patch(text).first_changed_line


def concatenate_patches(files: Iterable[FilePatch]) -> str:
    """Join patches into one buffer, each preceded by its filename on its own line."""
    parts = []
    for f in files:
        patch = f.patch[:-1] if f.patch.endswith("\n") else f.patch
        parts.append(f"{f.filename}\n{patch}")
    return "\n".join(parts)


@dataclass
class DiffFile:
    """Represents a single file's section of a `git diff` output."""

    path: str
    is_deleted: bool = False
    is_binary: bool = False
    lines: list[str] = field(default_factory=list)

    @property
    def patch(self) -> str | None:
        """The hunks of this file, from the first hunk header on, as a host would report them.

        Binary and deleted files have nothing to anchor a comment to and
        report no patch.
        """
        if self.is_binary or self.is_deleted:
            return None
        for i, line in enumerate(self.lines):
            if line.startswith("@@"):
                return "\n".join(self.lines[i:])
        return None

    def to_changed_file(self) -> ChangedFile:
        return ChangedFile(filename=self.path, patch=self.patch)


def parse_diff(diff_content: str) -> list[DiffFile]:
    """Parse a full `git diff` output into a list of DiffFile objects."""
    files: list[DiffFile] = []
    current_file: DiffFile | None = None
    in_hunks = False

    for line in _split_lines(diff_content):
        diff_match = DIFF_HEADER_PATTERN.match(line)
        if diff_match:
            current_file = DiffFile(path=diff_match.group(2))
            files.append(current_file)
            current_file.lines.append(line)
            in_hunks = False
            continue

        if current_file is None:
            continue

        current_file.lines.append(line)

        # File headers only appear before the first hunk
        if in_hunks or line.startswith("@@"):
            in_hunks = True
            continue

        if BINARY_PATTERN.match(line):
            current_file.is_binary = True
            continue

        new_match = NEW_FILE_PATTERN.match(line)
        if new_match and new_match.group(1) == "/dev/null":
            current_file.is_deleted = True

    return files
