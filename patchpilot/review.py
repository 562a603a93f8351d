"""Review run - gate, batch, generate and place comments for one pull request."""

import fnmatch
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

from patchpilot.ai_client import DEFAULT_STRUCTURED_REVIEW_PROMPT, AIClient, suggestions_from_review
from patchpilot.chunker import BudgetGate, TokenEstimator, create_estimator, schedule
from patchpilot.config import Config
from patchpilot.diff_parser import concatenate_patches, summarize_patch
from patchpilot.errors import PlacementExhausted, PreconditionError
from patchpilot.models import Batch, ChangedFile, FilePatch, GateResult, PlacementCandidate, Suggestion
from patchpilot.placement import WHOLE_PR, PlacementOutcome, attempt_placement, resolve_patch

logger = logging.getLogger(__name__)


class CommentPoster(Protocol):
    """What the review run needs from the source-control host."""

    def create_line_comment(self, path: str, line: int, body: str) -> object: ...

    def create_pr_comment(self, body: str) -> object: ...

    def post_skipped_files_notice(self, filenames: list[str], budget: int) -> None: ...


def should_ignore(filepath: str, patterns: list) -> bool:
    """Check if file matches any ignore pattern."""
    for pattern in patterns:
        if fnmatch.fnmatch(filepath, pattern):
            return True
        if pattern.endswith("/") and filepath.startswith(pattern.rstrip("/")):
            return True
    return False


@dataclass(frozen=True)
class ReviewPlan:
    gate: GateResult
    batches: list[Batch]

    @property
    def rejected(self) -> list[str]:
        return self.gate.rejected


@dataclass
class FileResult:
    """What happened to one file of a batch."""

    filename: str
    candidates: list[PlacementCandidate]
    first_changed_line: int
    suggestion: Suggestion | None = None
    outcome: PlacementOutcome | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        placed = None
        if self.outcome is not None:
            placed = self.outcome.candidate.line_number if self.outcome.anchored else "pull_request"
        return {
            "filename": self.filename,
            "first_changed_line": self.first_changed_line,
            "candidates": [
                {"line": c.line_number, "kind": c.kind.value if c.kind else None, "tier": c.tier}
                for c in self.candidates
            ],
            "suggestion": self.suggestion.suggestion_text if self.suggestion else None,
            "placed_on": placed,
            "error": self.error,
        }


@dataclass
class ReviewReport:
    rejected: list[str] = field(default_factory=list)
    batches: list[list[str]] = field(default_factory=list)
    files: list[FileResult] = field(default_factory=list)
    summaries: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "rejected": self.rejected,
            "batches": self.batches,
            "files": [f.to_dict() for f in self.files],
            "summaries": self.summaries,
        }


class ReviewRun:
    """Plans batches for a set of changed files and works through them one at a time."""

    def __init__(
        self,
        config: Config,
        ai: AIClient,
        poster: CommentPoster | None = None,
        estimator: TokenEstimator | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.ai = ai
        self.poster = poster
        self.gate = BudgetGate(estimator or create_estimator(config))
        self.sleep = sleep

    @property
    def system_prompt(self) -> str:
        return self.config.system_prompt or DEFAULT_STRUCTURED_REVIEW_PROMPT

    def prepare(self, changed_files: Iterable[ChangedFile]) -> ReviewPlan:
        """Gate and batch the changed files; raises PreconditionError when there is nothing to review."""
        changed_files = list(changed_files)
        if not changed_files:
            raise PreconditionError("No changed files in pull request")

        files = [f for f in changed_files if not should_ignore(f.filename, self.config.ignore_patterns)]
        logger.info("Total files changed: %d, after ignore patterns: %d", len(changed_files), len(files))

        gate = self.gate.filter(files, self.config.budget)
        batches = schedule(gate.eligible, self.config.budget)
        logger.info(
            "Files to review: %d in %d batch(es), files skipped: %d",
            len(gate.eligible), len(batches), len(gate.rejected),
        )
        return ReviewPlan(gate=gate, batches=batches)

    def execute(self, plan: ReviewPlan) -> ReviewReport:
        """Dispatch batches strictly in sequence with a minimum delay between them."""
        report = ReviewReport(rejected=list(plan.rejected), batches=[b.filenames for b in plan.batches])

        if plan.rejected:
            logger.warning("Too long to be checked (exceeds %d tokens): %s", self.config.budget, ", ".join(plan.rejected))
            if self.config.show_skipped_files_comment and self.poster is not None:
                self.poster.post_skipped_files_notice(plan.rejected, self.config.budget)

        for index, batch in enumerate(plan.batches):
            if index > 0 and self.config.batch_delay_seconds:
                logger.debug("Waiting %.1fs before next batch", self.config.batch_delay_seconds)
                self.sleep(self.config.batch_delay_seconds)
            logger.info("Processing batch %d/%d (%d units)", index + 1, len(plan.batches), batch.total_units)
            self._process_batch(batch, report)

        return report

    def run(self, changed_files: Iterable[ChangedFile]) -> ReviewReport:
        return self.execute(self.prepare(changed_files))

    def _process_batch(self, batch: Batch, report: ReviewReport) -> None:
        try:
            review = self.ai.review(self.system_prompt, concatenate_patches(batch.files))
        except Exception as e:
            logger.error("Generation request failed for batch %s: %s", batch.filenames, e)
            for file_patch in batch.files:
                report.files.append(self._file_result(file_patch, error=f"generation failed: {e}"))
            return

        if review.get("overall_review"):
            report.summaries.append(review["overall_review"])
        suggestions: dict[str, Suggestion] = {}
        for suggestion in suggestions_from_review(review):
            suggestions.setdefault(suggestion.filename, suggestion)

        for file_patch in batch.files:
            result = self._file_result(file_patch, suggestion=suggestions.get(file_patch.filename))
            report.files.append(result)
            if result.suggestion is None:
                logger.info("No suggestion for %s", file_patch.filename)
                continue
            if self.poster is None:
                continue
            try:
                result.outcome = self._place(file_patch, result.suggestion, result.candidates)
            except Exception as e:
                logger.error("An error occurred while adding a comment to %s: %s", file_patch.filename, e)
                result.error = str(e)

    def _file_result(self, file_patch: FilePatch, **kwargs) -> FileResult:
        return FileResult(
            filename=file_patch.filename,
            candidates=resolve_patch(file_patch.patch),
            first_changed_line=summarize_patch(file_patch.patch).first_changed_line,
            **kwargs,
        )

    def _place(
        self, file_patch: FilePatch, suggestion: Suggestion, candidates: list[PlacementCandidate]
    ) -> PlacementOutcome:
        body = f"{self.config.comment_prefix}\n{suggestion.suggestion_text}"

        def post(candidate: PlacementCandidate) -> object:
            return self.poster.create_line_comment(file_patch.filename, candidate.line_number, body)

        try:
            return attempt_placement(file_patch.filename, candidates, post, strict=True)
        except PlacementExhausted as e:
            logger.warning("%s, commenting on the pull request instead", e)
            self.poster.create_pr_comment(
                f"{self.config.comment_prefix} `{file_patch.filename}`\n{suggestion.suggestion_text}"
            )
            return PlacementOutcome(candidate=WHOLE_PR, attempts=e.attempts)
