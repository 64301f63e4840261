"""Routes stage results through the transition table onto the next queue."""

from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from career_pipeline.core.errors import RecordNotFoundError, TransitionError
from career_pipeline.core.models import PostingStatus, PostingTask
from career_pipeline.core.transitions import Stage, StageResult, transition_for
from career_pipeline.queue.broker import TaskBroker
from career_pipeline.store.repository import JobStore
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)

StageCallable = Callable[[Dict[str, Any]], Awaitable[StageResult]]


class PipelineRunner:
    """
    Orchestrates the stages.

    A stage persists its own writes and returns a ``StageResult``; the runner
    then enqueues every emitted payload on the queue the transition table
    names. The enqueue happens before the delivering task is acknowledged, so a
    crash in between redelivers the task rather than losing the chain.
    """

    def __init__(
        self,
        broker: TaskBroker,
        stages: Dict[Stage, StageCallable],
        store: Optional[JobStore] = None
    ):
        self.broker = broker
        self.stages = dict(stages)
        self.store = store
        self.logger = logger.bind(component="pipeline_runner")

    async def handle(self, stage: Stage, payload: Dict[str, Any]) -> StageResult:
        """
        Run one stage on a task payload and chain its output.

        Raises:
            TransitionError: If the stage reported an outcome with no edge, or
                emitted payloads on a terminal edge
        """
        result = await self.stages[stage](payload)
        transition = transition_for(stage, result.outcome)

        if transition.terminal:
            if result.emitted:
                raise TransitionError(
                    f"Stage {stage.value} emitted {len(result.emitted)} payload(s) "
                    f"on terminal outcome {result.outcome.value}"
                )
            return result

        for emitted in result.emitted:
            await self.broker.enqueue(transition.next_stage.value, emitted)

        self.logger.debug(
            "Stage chained",
            stage=stage.value,
            outcome=result.outcome.value,
            next_stage=transition.next_stage.value,
            emitted=len(result.emitted)
        )
        return result

    def handler_for(self, stage: Stage) -> Callable[[Dict[str, Any]], Awaitable[StageResult]]:
        """Task handler for the queue of ``stage``."""
        async def handler(payload: Dict[str, Any]) -> StageResult:
            return await self.handle(stage, payload)
        return handler

    def handlers(self, stages: Optional[Iterable[Stage]] = None) -> Dict[Stage, Callable]:
        return {stage: self.handler_for(stage) for stage in (stages or self.stages)}

    async def redrive(self, posting_id: str) -> str:
        """
        Re-enter Materials for a posting left in Drafting by a failed compliance check.

        Returns:
            Id of the enqueued materials task

        Raises:
            RecordNotFoundError: If the posting does not exist
            TransitionError: If the posting is not in Drafting
        """
        if self.store is None:
            raise TransitionError("Redrive needs a job store")

        posting = await self.store.get_posting(posting_id)
        if posting is None:
            raise RecordNotFoundError(posting_id)
        if posting.status is not PostingStatus.DRAFTING:
            raise TransitionError(
                f"Only postings in {PostingStatus.DRAFTING.value} can be redriven, "
                f"{posting_id} is {posting.status.value}"
            )

        task_id = await self.broker.enqueue(
            Stage.MATERIALS.value, PostingTask(posting_id=posting_id).model_dump(by_alias=True)
        )
        self.logger.info("Posting redriven to materials", posting_id=posting_id, task_id=task_id)
        return task_id

