"""
Validated stage transitions for an investor session.

The workflow is a straight line:

    not_started -> kyc_passed -> accredited -> payment_created
        -> payment_confirmed -> issued -> document_ready

advance() is the only way a step moves a session forward. It refuses to
skip a stage or go backwards, so a state can never claim "issued"
without having passed through payment confirmation first.
"""

from portal.models.schemas import STAGE_ORDER, Stage, WorkflowState

# stage -> the one stage that may follow it
TRANSITIONS: dict[Stage, Stage | None] = {
    stage: (STAGE_ORDER[i + 1] if i + 1 < len(STAGE_ORDER) else None)
    for i, stage in enumerate(STAGE_ORDER)
}


class InvalidTransition(Exception):
    """Raised when a step is attempted from a stage that does not allow it."""

    def __init__(self, current: Stage, target: Stage):
        expected = TRANSITIONS[current]
        if expected is None:
            message = f"Workflow is complete; cannot move to '{target.value}'"
        else:
            message = (
                f"Cannot move from '{current.value}' to '{target.value}' "
                f"(next step is '{expected.value}')"
            )
        super().__init__(message)
        self.current = current
        self.target = target


def next_stage(stage: Stage) -> Stage | None:
    return TRANSITIONS[stage]


def advance(state: WorkflowState, target: Stage, **changes) -> WorkflowState:
    """Return a copy of `state` moved to `target`, with `changes` applied.

    A successful transition clears last_error."""
    if TRANSITIONS[state.stage] is not target:
        raise InvalidTransition(state.stage, target)
    update = {"last_error": None, **changes, "stage": target}
    return state.model_copy(update=update)
