"""
Compliance stage: fact-checks drafted application materials.

The draft arrives in the task payload, so nothing produced by Materials is
re-derived here. Pass is decided locally: the reply must claim a pass AND
raise no flags.

Outcomes:
    pass  ->  ReadyForReview, follow-ups scheduled at each configured offset
    fail  ->  back to Drafting with the flags logged for human review
    posting already moved past this draft  ->  stale, nothing written
"""

from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from langchain_core.messages import HumanMessage, SystemMessage

from career_pipeline.config import settings
from career_pipeline.core.models import ComplianceTask
from career_pipeline.core.transitions import (
    Outcome,
    Stage,
    StageResult,
    accepted_statuses,
    status_for,
)
from career_pipeline.knowledge.provider import ComplianceContext, KnowledgeBase
from career_pipeline.reasoning.client import ModelTier, ReasoningClient
from career_pipeline.reasoning.results import ComplianceReport
from career_pipeline.stages.base import StageWorker
from career_pipeline.store.repository import JobStore
from career_pipeline.store.schema import utcnow


def _today() -> date:
    return utcnow().date()


def followup_schedule(passed_on: date, offsets_days: Sequence[int]) -> List[Tuple[int, date]]:
    """Follow-up numbers (from 1) and dates for a pass on ``passed_on``."""
    return [(number, passed_on + timedelta(days=days)) for number, days in enumerate(offsets_days, start=1)]


class ComplianceStage(StageWorker):
    """Compliance stage."""

    stage = Stage.COMPLIANCE

    def __init__(
        self,
        store: JobStore,
        reasoning: ReasoningClient,
        knowledge: KnowledgeBase,
        followup_offsets_days: Optional[Sequence[int]] = None,
        today: Callable[[], date] = _today
    ):
        """
        Initialize the Compliance stage.

        Args:
            store: Job store
            reasoning: Reasoning client
            knowledge: Knowledge base providing the metrics allowlist and style rules
            followup_offsets_days: Days after a pass at which follow-ups fall due
            today: Returns the current UTC date
        """
        super().__init__(store)
        self.reasoning = reasoning
        self.knowledge = knowledge
        self.followup_offsets_days = list(
            followup_offsets_days if followup_offsets_days is not None else settings.followup_offsets_days
        )
        self.today = today

    async def run(self, payload: Dict[str, Any]) -> StageResult:
        task = ComplianceTask.model_validate(payload)
        context = self.knowledge.compliance_context()

        reply = await self.reasoning.complete_json(ModelTier.FAST, [
            SystemMessage(content=(
                "You are a strict compliance checker for job application materials. "
                "Verify all claims against the provided allowlist. "
                "Respond with valid JSON only. No markdown, no code fences."
            )),
            HumanMessage(content=self._build_prompt(task, context)),
        ])
        report = ComplianceReport.from_reply(reply)

        outcome = Outcome.PASSED if report.passed else Outcome.FAILED
        status = status_for(self.stage, outcome)
        updated = await self.store.set_status(task.posting_id, status, only_from=accepted_statuses(status))
        if not await self.confirm_write(updated, task.posting_id, status):
            return self.stale(task.posting_id)

        if outcome is Outcome.PASSED:
            schedule = followup_schedule(self.today(), self.followup_offsets_days)
            inserted = await self.store.schedule_followups(task.posting_id, schedule)
            self.logger.info(
                "Compliance passed, follow-ups scheduled",
                posting_id=task.posting_id,
                new_status=status.value,
                followups=[d.isoformat() for _, d in schedule],
                inserted=inserted,
                summary=report.summary
            )
        else:
            self.logger.warning(
                "Compliance failed, requires human review",
                posting_id=task.posting_id,
                new_status=status.value,
                claimed_pass=report.claimed_pass,
                flags=[flag.model_dump() for flag in report.flags],
                summary=report.summary
            )

        return StageResult(outcome=outcome, posting_id=task.posting_id)

    def _build_prompt(self, task: ComplianceTask, context: ComplianceContext) -> str:
        draft = "\n\n".join([task.cover_letter or "", *task.tailored_bullets])
        allowed = "\n".join(f"- {m}" for m in context.allowed_metrics) or "(none)"
        constraints = "\n".join(f"- {c}" for c in context.writing_style.constraints) or "(none)"
        return f"""Fact-check these application materials.

=== VERIFIED METRICS ALLOWLIST ===
{allowed}

=== WRITING CONSTRAINTS ===
{constraints}

=== DRAFT MATERIALS TO CHECK ===
{draft}

Check every sentence for:
1. Numeric metrics (%, numbers, counts) NOT present in the allowlist -> flag as unverified
2. Employer, company, or project names that seem fabricated
3. First-person claims that are exaggerated or unverifiable
4. Writing style violations (e.g. markdown fences in cover letter, forbidden formatting)

Return JSON:
{{
  "pass": true,
  "flags": [
    {{ "excerpt": "the exact flagged text", "issue": "why it is flagged" }}
  ],
  "summary": "one-sentence summary of the check result"
}}

Set "pass": true only if there are ZERO flags."""


def create_compliance_stage(
    store: JobStore,
    reasoning: ReasoningClient,
    knowledge: KnowledgeBase,
    followup_offsets_days: Optional[Sequence[int]] = None
) -> ComplianceStage:
    """Factory function to create the Compliance stage."""
    return ComplianceStage(
        store=store,
        reasoning=reasoning,
        knowledge=knowledge,
        followup_offsets_days=followup_offsets_days
    )
