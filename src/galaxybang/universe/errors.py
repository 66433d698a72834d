"""Errors raised by the universe generation pipeline."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple


class UniverseGenerationError(RuntimeError):
    """Base class for every failure surfaced by ``generate_universe``."""


class ConfigurationError(UniverseGenerationError):
    """Raised when generation parameters violate structural minimums.

    Always raised before any work begins; never retried automatically.
    """

    def __init__(self, message: str, *, errors: Optional[list] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class CapacityError(UniverseGenerationError):
    """Raised when a hard-count feature cannot reach its target."""

    def __init__(self, feature: str, target: int, placed: int) -> None:
        self.feature = feature
        self.target = target
        self.placed = placed
        super().__init__(
            f"Candidate pool exhausted placing {feature}: placed {placed} of {target} "
            f"(short by {self.shortfall})"
        )

    @property
    def shortfall(self) -> int:
        return self.target - self.placed


class InvariantViolation(UniverseGenerationError):
    """Raised when an assembled universe breaks a structural invariant.

    This signals a defect in the pipeline, not a problem with the caller's input.
    """

    def __init__(self, check: str, detail: str, sectors: Iterable[int] = ()) -> None:
        self.check = check
        self.detail = detail
        self.sectors: Tuple[int, ...] = tuple(sectors)
        message = f"Invariant '{check}' failed: {detail}"
        if self.sectors:
            shown = ", ".join(str(s) for s in self.sectors[:10])
            more = "..." if len(self.sectors) > 10 else ""
            message = f"{message} (sectors: {shown}{more})"
        super().__init__(message)


class PersistenceFailure(UniverseGenerationError):
    """Raised when the persistence collaborator fails to store a universe."""

    def __init__(self, store: str, detail: str) -> None:
        super().__init__(f"{store} failed to persist universe: {detail}")
        self.store = store
        self.detail = detail
