"""Chunker - Estimate patch cost and pack files into budgeted batches."""

import logging
import math
from abc import ABC, abstractmethod
from typing import Iterable

from patchpilot.config import Config
from patchpilot.errors import BudgetExceeded, MissingInput
from patchpilot.models import Batch, ChangedFile, FilePatch, GateResult

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


class TokenEstimator(ABC):
    """Maps text to a deterministic, length-monotonic cost in units."""

    @abstractmethod
    def estimate(self, text: str) -> int:
        pass


class CharEstimator(TokenEstimator):
    """Estimate token count (~4 chars per token for code)."""

    def __init__(self, chars_per_token: int = CHARS_PER_TOKEN):
        if chars_per_token < 1:
            raise ValueError("chars_per_token must be at least 1")
        self.chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        return math.ceil(len(text) / self.chars_per_token)


class TiktokenEstimator(TokenEstimator):
    """Count BPE tokens with tiktoken."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        import tiktoken
        self.encoding = tiktoken.get_encoding(encoding_name)

    def estimate(self, text: str) -> int:
        return len(self.encoding.encode(text, disallowed_special=()))


def create_estimator(config: Config) -> TokenEstimator:
    """Factory function to create the configured estimator."""
    if config.token_estimator == "chars":
        return CharEstimator()
    elif config.token_estimator == "tiktoken":
        return TiktokenEstimator(config.tiktoken_encoding)
    else:
        raise ValueError(f"Unknown token estimator: {config.token_estimator}")


def check_budget(file_patch: FilePatch, budget: int) -> FilePatch:
    if file_patch.units_used > budget:
        raise BudgetExceeded(file_patch.filename, file_patch.units_used, budget)
    return file_patch


class BudgetGate:
    """Splits changed files into those that fit the budget and those that don't."""

    def __init__(self, estimator: TokenEstimator):
        self.estimator = estimator

    def to_file_patch(self, changed: ChangedFile) -> FilePatch:
        if not changed.patch:
            raise MissingInput(changed.filename)
        return FilePatch(
            filename=changed.filename,
            patch=changed.patch,
            units_used=self.estimator.estimate(changed.patch),
        )

    def filter(self, files: Iterable[ChangedFile], budget: int) -> GateResult:
        """Estimate each file once; drop files without a patch, reject files over budget."""
        eligible: list[FilePatch] = []
        rejected: list[str] = []

        for changed in files:
            try:
                eligible.append(check_budget(self.to_file_patch(changed), budget))
                logger.info("%s: included (%d units)", changed.filename, eligible[-1].units_used)
            except MissingInput:
                logger.info("%s: no patch text, omitted", changed.filename)
            except BudgetExceeded as e:
                logger.info("%s: skipped, exceeds budget (%d > %d)", e.filename, e.units, e.budget)
                rejected.append(changed.filename)

        return GateResult(eligible=eligible, rejected=rejected)


def schedule(eligible: Iterable[FilePatch], budget: int) -> list[Batch]:
    """Greedily pack files, in order, into batches of at most `budget` units."""
    if budget < 1:
        raise ValueError("budget must be positive")

    batches: list[Batch] = []
    current: list[FilePatch] = []
    current_units = 0

    for file_patch in eligible:
        check_budget(file_patch, budget)

        if current and current_units + file_patch.units_used > budget:
            batches.append(Batch(files=tuple(current)))
            current = []
            current_units = 0

        current.append(file_patch)
        current_units += file_patch.units_used

    if current:
        batches.append(Batch(files=tuple(current)))

    for i, batch in enumerate(batches, 1):
        logger.debug("Batch %d/%d: %s (%d units)", i, len(batches), batch.filenames, batch.total_units)
    return batches
