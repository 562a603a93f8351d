"""Exceptions raised while planning and running a review."""


class ReviewError(Exception):
    """Base exception for all review operations."""


class PreconditionError(ReviewError):
    """Raised before any batch is scheduled when the run cannot start."""


class MissingInput(ReviewError):
    """Raised when a changed file has no patch text."""

    def __init__(self, filename: str):
        super().__init__(f"No patch text for {filename}")
        self.filename = filename


class MalformedHunkHeader(ReviewError):
    """Raised when a hunk header does not match the numeric pattern."""

    def __init__(self, header: str):
        super().__init__(f"Malformed hunk header: {header!r}")
        self.header = header


class BudgetExceeded(ReviewError):
    """Raised when a file's estimated cost is above the unit budget."""

    def __init__(self, filename: str, units: int, budget: int):
        super().__init__(f"{filename} needs {units} units, budget is {budget}")
        self.filename = filename
        self.units = units
        self.budget = budget


class PlacementExhausted(ReviewError):
    """Raised when no line candidate was accepted by the host."""

    def __init__(self, filename: str, attempts: int):
        super().__init__(f"No line accepted a comment for {filename} after {attempts} attempt(s)")
        self.filename = filename
        self.attempts = attempts


class GenerationParseFailure(ReviewError):
    """Raised when the generation backend's response is not the expected JSON."""
