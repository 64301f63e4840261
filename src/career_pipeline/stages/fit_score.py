"""
FitScore stage: evaluates how well a posting matches the candidate profile.

Uses the extended model tier with the knowledge-base constraints as context
and produces a 0-100 score, reasoning bullets and risk flags.

Outcomes:
    score >= threshold  ->  Shortlisted, chains to materials
    score <  threshold  ->  Archived, terminal
    posting already scored differently or further along  ->  stale, nothing written
"""

import json
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from career_pipeline.config import settings
from career_pipeline.core.models import Posting, PostingTask
from career_pipeline.core.transitions import (
    Outcome,
    Stage,
    StageResult,
    accepted_statuses,
    status_for,
)
from career_pipeline.knowledge.provider import FitContext, KnowledgeBase
from career_pipeline.reasoning.client import ModelTier, ReasoningClient
from career_pipeline.reasoning.results import FitAssessment
from career_pipeline.stages.base import StageWorker
from career_pipeline.store.repository import JobStore
from career_pipeline.utils.text import excerpt

DESCRIPTION_LIMIT = 3000

SCORING_RULES = """- Score 0 automatically if: visa_sponsorship_required=true AND job visaSponsorship="no"
- Score 0 automatically if: no_unpaid_roles=true AND role appears unpaid
- Score 0 automatically if: job level is not "intern" or "newgrad" (candidate is a student)
- Deduct 20pts if location not in preferred list AND remoteMode is "onsite"
- Add 15pts per must_have keyword match found in description
- Add 5pts per nice_to_have keyword match
- Add 10pts if start date aligns with candidate preferences"""


def _dump(value: Any) -> str:
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    return json.dumps(value, indent=2)


class FitScoreStage(StageWorker):
    """FitScore stage."""

    stage = Stage.FIT_SCORE

    def __init__(
        self,
        store: JobStore,
        reasoning: ReasoningClient,
        knowledge: KnowledgeBase,
        threshold: Optional[int] = None
    ):
        """
        Initialize the FitScore stage.

        Args:
            store: Job store
            reasoning: Reasoning client
            knowledge: Knowledge base providing the candidate constraints
            threshold: Minimum score for the shortlist, defaults to settings
        """
        super().__init__(store)
        self.reasoning = reasoning
        self.knowledge = knowledge
        self.threshold = threshold if threshold is not None else settings.fit_threshold

    def outcome_for(self, score: int) -> Outcome:
        return Outcome.SHORTLISTED if score >= self.threshold else Outcome.ARCHIVED

    async def run(self, payload: Dict[str, Any]) -> StageResult:
        task = PostingTask.model_validate(payload)
        posting = await self.store.require_posting(task.posting_id)
        context = self.knowledge.fit_context()

        reply = await self.reasoning.complete_json(ModelTier.EXTENDED, [
            SystemMessage(content=(
                "You are a job-fit evaluator. Score how well a job matches a candidate's "
                "profile and constraints. Respond with valid JSON only. No markdown, no code fences."
            )),
            HumanMessage(content=self._build_prompt(posting, context)),
        ])
        assessment = FitAssessment.from_reply(reply)

        outcome = self.outcome_for(assessment.fit_score)
        status = status_for(self.stage, outcome)
        updated = await self.store.record_fit(
            posting.id,
            score=assessment.fit_score,
            reasoning=assessment.reasoning,
            risks=assessment.risks,
            status=status,
            only_from=accepted_statuses(status)
        )
        if not await self.confirm_write(updated, posting.id, status):
            return self.stale(posting.id)

        self.logger.info(
            "Posting scored",
            posting_id=posting.id,
            fit_score=assessment.fit_score,
            recommendation=assessment.recommendation,
            new_status=status.value
        )
        return StageResult(
            outcome=outcome,
            emitted=self.chain(outcome, task.model_dump(by_alias=True)),
            posting_id=posting.id
        )

    def _build_prompt(self, posting: Posting, context: FitContext) -> str:
        return f"""Evaluate this job posting against the candidate profile.

=== JOB POSTING ===
Company: {posting.company}
Title: {posting.title}
Level: {posting.level}
Location: {posting.location or 'unknown'}
Remote mode: {posting.remote_mode}
Visa sponsorship: {posting.visa_sponsorship}
Description: {excerpt(posting.description_raw, DESCRIPTION_LIMIT)}

=== HARD CONSTRAINTS (dealbreakers) ===
{_dump(context.dealbreakers)}

=== TARGET ROLES ===
{_dump(context.role_targets)}

=== LOCATION & TIMING PREFERENCES ===
{_dump(context.preferences)}

=== CANDIDATE SKILLS ===
{_dump(context.skills)}

=== SCORING RULES ===
{SCORING_RULES}

Return JSON:
{{
  "fitScore": 0,
  "reasoning": ["up to 4 concise bullet points explaining the score"],
  "risks": ["up to 3 specific risk flags"],
  "recommendation": "shortlist|skip",
  "keywordMatches": {{
    "mustHave": ["matched keywords"],
    "niceToHave": ["matched keywords"]
  }}
}}"""


def create_fit_score_stage(
    store: JobStore,
    reasoning: ReasoningClient,
    knowledge: KnowledgeBase,
    threshold: Optional[int] = None
) -> FitScoreStage:
    """Factory function to create the FitScore stage."""
    return FitScoreStage(store=store, reasoning=reasoning, knowledge=knowledge, threshold=threshold)
