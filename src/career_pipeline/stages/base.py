"""Shared behaviour of the stage workers."""

from typing import Any, Dict, List

from career_pipeline.core.errors import RecordNotFoundError
from career_pipeline.core.models import PostingStatus
from career_pipeline.core.transitions import (
    Outcome,
    Stage,
    StageResult,
    transition_for,
)
from career_pipeline.store.repository import JobStore
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


class StageWorker:
    """
    Base class for the five stage workers.

    A stage is called with a task payload and returns a ``StageResult``. It
    reads and writes the store and calls the reasoning service, but never
    enqueues work: the payloads it emits are routed by the runner through the
    transition table.

    A payload whose posting no longer exists yields ``Outcome.MISSING``
    instead of an exception, since redelivering it cannot help.
    A task that would move a posting backward yields ``Outcome.STALE`` and
    writes nothing.
    """

    stage: Stage

    def __init__(self, store: JobStore):
        self.store = store
        self.logger = logger.bind(stage=self.stage.value)

    async def __call__(self, payload: Dict[str, Any]) -> StageResult:
        try:
            return await self.run(payload)
        except RecordNotFoundError as e:
            self.logger.warning("Posting not found", posting_id=e.posting_id)
            return StageResult(outcome=Outcome.MISSING, posting_id=e.posting_id)

    async def run(self, payload: Dict[str, Any]) -> StageResult:
        raise NotImplementedError

    def chain(self, outcome: Outcome, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Payloads to emit for ``outcome``: the payload if the edge continues, else nothing."""
        return [payload] if not transition_for(self.stage, outcome).terminal else []

    async def confirm_write(self, updated: bool, posting_id: str, new_status: PostingStatus) -> bool:
        """
        Check the result of a status write guarded by ``accepted_statuses``.

        Returns False when the posting exists but has already moved past
        what this task expects, e.g. a task redelivered after its lease
        expired. Raises ``RecordNotFoundError`` when the posting is gone.
        """
        if updated:
            return True
        posting = await self.store.require_posting(posting_id)
        self.logger.warning(
            "Stale task, status left unchanged",
            posting_id=posting_id,
            current_status=posting.status.value,
            new_status=new_status.value
        )
        return False

    def stale(self, posting_id: str) -> StageResult:
        return StageResult(outcome=Outcome.STALE, posting_id=posting_id)

    @staticmethod
    def ensure_updated(updated: bool, posting_id: str) -> None:
        """Treat an UPDATE that matched no row as a vanished posting."""
        if not updated:
            raise RecordNotFoundError(posting_id)
