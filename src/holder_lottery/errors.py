from __future__ import annotations


class DrawError(RuntimeError):
    """Base class for failures that abort a draw cycle."""


class IneligibleDraw(DrawError):
    """No holder qualified for a ticket."""


class CorruptSnapshot(DrawError):
    """Ticket ranges do not cover the computed winning ticket."""


class PipelineStepFailure(DrawError):
    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause


class PersistenceFailure(DrawError):
    """Saving a finished draw failed. The prize has already moved."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"could not persist draw result: {cause}")
        self.cause = cause


class StateTransitionError(RuntimeError):
    pass
