"""Placement - Rank the lines a file comment can be anchored to."""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from patchpilot.diff_parser import scan_patch
from patchpilot.errors import PlacementExhausted
from patchpilot.models import LineKind, LineRecord, PlacementCandidate

logger = logging.getLogger(__name__)

# Tried in order: new lines, then rewritten lines, then unchanged context.
TIERS: tuple[tuple[int, Callable[[LineRecord], bool]], ...] = (
    (1, lambda record: record.kind is LineKind.ADDED),
    (2, lambda record: record.kind is LineKind.MODIFIED),
    (3, lambda record: record.kind is LineKind.CONTEXT),
)
SENTINEL_TIER = 4
WHOLE_PR = PlacementCandidate(line_number=None, kind=None, tier=SENTINEL_TIER)


def iter_candidates(records: Iterable[LineRecord]) -> Iterator[PlacementCandidate]:
    """Yield candidates tier by tier, ending with the whole-PR sentinel."""
    records = list(records)
    for tier, predicate in TIERS:
        matching = sorted((r for r in records if predicate(r)), key=lambda r: r.line_number)
        for record in matching:
            yield PlacementCandidate(line_number=record.line_number, kind=record.kind, tier=tier)
    yield WHOLE_PR


def resolve(records: Iterable[LineRecord]) -> list[PlacementCandidate]:
    return list(iter_candidates(records))


def resolve_patch(patch: str) -> list[PlacementCandidate]:
    """Candidates for a single-file patch.

    A patch whose hunks have no body lines still offers the header's
    `new_start` as a context-tier target before the sentinel.
    """
    segments = scan_patch(patch)
    records = [record for segment in segments for record in segment.records]
    hunks = [hunk for segment in segments for hunk in segment.hunks]

    candidates = resolve(records)
    if not records and hunks:
        candidates.insert(0, PlacementCandidate(line_number=hunks[0].new_start, kind=LineKind.CONTEXT, tier=3))
    return candidates


@dataclass(frozen=True)
class PlacementOutcome:
    """Where a comment ended up and how many line candidates were tried."""

    candidate: PlacementCandidate
    attempts: int

    @property
    def anchored(self) -> bool:
        return not self.candidate.is_sentinel


def attempt_placement(
    filename: str,
    candidates: Iterable[PlacementCandidate],
    post: Callable[[PlacementCandidate], object],
    strict: bool = False,
) -> PlacementOutcome:
    """Call `post` for each line candidate until one is accepted.

    A candidate is rejected when `post` raises or returns a falsy value.
    When every line is rejected the outcome carries the whole-PR sentinel,
    or PlacementExhausted is raised if `strict` is set.
    """
    attempts = 0
    for candidate in candidates:
        if candidate.is_sentinel:
            break
        attempts += 1
        try:
            accepted = post(candidate)
        except Exception as e:
            logger.warning(
                "Failed to comment on %s line %d in %s: %s", candidate.kind.value, candidate.line_number, filename, e
            )
            continue
        if accepted:
            logger.info("Commented on %s line %d in %s", candidate.kind.value, candidate.line_number, filename)
            return PlacementOutcome(candidate=candidate, attempts=attempts)
        logger.warning("Host rejected %s line %d in %s", candidate.kind.value, candidate.line_number, filename)

    if strict:
        raise PlacementExhausted(filename, attempts)
    return PlacementOutcome(candidate=WHOLE_PR, attempts=attempts)
