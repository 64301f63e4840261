"""
Pipeline state machine as data.

Every stage reports an ``Outcome``. The ``TRANSITIONS`` table maps
``(stage, outcome)`` to the status the stage persists and the stage whose
queue receives the payloads it emits. Stages never enqueue work themselves;
the runner reads the table.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from career_pipeline.core.errors import TransitionError
from career_pipeline.core.models import PostingStatus


class Stage(str, Enum):
    """Processing stages. Values double as queue names."""
    SCOUT = "scout"
    NORMALIZE = "normalize"
    FIT_SCORE = "fit-score"
    MATERIALS = "materials"
    COMPLIANCE = "compliance"


class Outcome(str, Enum):
    """Result reported by a stage run."""
    DISCOVERED = "discovered"
    NORMALIZED = "normalized"
    SHORTLISTED = "shortlisted"
    ARCHIVED = "archived"
    DRAFTED = "drafted"
    PASSED = "passed"
    FAILED = "failed"
    MISSING = "missing"
    STALE = "stale"


@dataclass(frozen=True)
class Transition:
    """Edge of the pipeline graph."""
    status: Optional[PostingStatus]
    next_stage: Optional[Stage]

    @property
    def terminal(self) -> bool:
        return self.next_stage is None


@dataclass
class StageResult:
    """What a stage run produced: its outcome and the payloads to chain."""
    outcome: Outcome
    emitted: List[Dict[str, Any]] = field(default_factory=list)
    posting_id: Optional[str] = None


TRANSITIONS: Dict[Tuple[Stage, Outcome], Transition] = {
    (Stage.SCOUT, Outcome.DISCOVERED): Transition(PostingStatus.DISCOVERED, Stage.NORMALIZE),
    (Stage.NORMALIZE, Outcome.NORMALIZED): Transition(None, Stage.FIT_SCORE),
    (Stage.NORMALIZE, Outcome.MISSING): Transition(None, None),
    (Stage.FIT_SCORE, Outcome.SHORTLISTED): Transition(PostingStatus.SHORTLISTED, Stage.MATERIALS),
    (Stage.FIT_SCORE, Outcome.ARCHIVED): Transition(PostingStatus.ARCHIVED, None),
    (Stage.FIT_SCORE, Outcome.MISSING): Transition(None, None),
    (Stage.FIT_SCORE, Outcome.STALE): Transition(None, None),
    (Stage.MATERIALS, Outcome.DRAFTED): Transition(PostingStatus.DRAFTING, Stage.COMPLIANCE),
    (Stage.MATERIALS, Outcome.MISSING): Transition(None, None),
    (Stage.MATERIALS, Outcome.STALE): Transition(None, None),
    (Stage.COMPLIANCE, Outcome.PASSED): Transition(PostingStatus.READY_FOR_REVIEW, None),
    # Terminal but recoverable: only a human redrive re-enters materials.
    (Stage.COMPLIANCE, Outcome.FAILED): Transition(PostingStatus.DRAFTING, None),
    (Stage.COMPLIANCE, Outcome.MISSING): Transition(None, None),
    (Stage.COMPLIANCE, Outcome.STALE): Transition(None, None),
}

# Permitted status changes. Forward only, plus the compliance-failure back-edge
# which leaves the posting in Drafting.
STATUS_EDGES: FrozenSet[Tuple[PostingStatus, PostingStatus]] = frozenset({
    (PostingStatus.DISCOVERED, PostingStatus.SHORTLISTED),
    (PostingStatus.DISCOVERED, PostingStatus.ARCHIVED),
    (PostingStatus.SHORTLISTED, PostingStatus.DRAFTING),
    (PostingStatus.DRAFTING, PostingStatus.READY_FOR_REVIEW),
    (PostingStatus.DRAFTING, PostingStatus.DRAFTING),
})


def transition_for(stage: Stage, outcome: Outcome) -> Transition:
    """Look up the edge for a stage outcome."""
    try:
        return TRANSITIONS[(stage, outcome)]
    except KeyError:
        raise TransitionError(
            f"Stage {stage.value} has no transition for outcome {outcome.value}"
        ) from None


def status_for(stage: Stage, outcome: Outcome) -> PostingStatus:
    """Status a stage must persist for an outcome."""
    status = transition_for(stage, outcome).status
    if status is None:
        raise TransitionError(
            f"Outcome {outcome.value} of stage {stage.value} does not set a status"
        )
    return status


def is_status_change_allowed(current: PostingStatus, new: PostingStatus) -> bool:
    """True if moving from ``current`` to ``new`` respects the state machine."""
    return (current, new) in STATUS_EDGES


def accepted_statuses(new: PostingStatus) -> FrozenSet[PostingStatus]:
    """
    Statuses a posting may hold when a stage writes ``new``.

    The predecessors of ``new`` in ``STATUS_EDGES`` plus ``new`` itself, so a
    redelivered task that repeats a write already made still goes through.
    Any other current status means the task is stale.
    """
    return frozenset(current for current, target in STATUS_EDGES if target is new) | {new}


def successors(stage: Stage) -> List[Stage]:
    """Stages reachable in one step from ``stage``."""
    seen: List[Stage] = []
    for (source, _), transition in TRANSITIONS.items():
        if source is stage and transition.next_stage and transition.next_stage not in seen:
            seen.append(transition.next_stage)
    return seen


def to_mermaid() -> str:
    """Render the transition table as a Mermaid flowchart."""
    lines = ["flowchart LR", "    scheduler([scheduler]) --> scout"]
    for (stage, outcome), transition in TRANSITIONS.items():
        target = transition.next_stage.name.lower() if transition.next_stage else "done"
        label = outcome.value
        if transition.status is not None:
            label = f"{label} / {transition.status.value}"
        lines.append(f"    {stage.name.lower()} -- \"{label}\" --> {target}")
    return "\n".join(lines)
