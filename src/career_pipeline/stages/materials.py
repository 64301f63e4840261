"""
Materials stage: drafts application materials for a shortlisted posting.

Uses the extended model tier with the full knowledge base as grounding to
produce a cover letter, five tailored resume bullets drawn from the bullet
library, a why-company answer and answers to common prompts.

The model is told to use only verified bullets and metrics. Nothing here
checks that it did; the compliance stage runs next and flags fabrications.
"""

import hashlib
import json
from typing import Any, Dict

from langchain_core.messages import HumanMessage, SystemMessage

from career_pipeline.core.models import ComplianceTask, Posting, PostingStatus, PostingTask
from career_pipeline.core.transitions import Outcome, Stage, StageResult, accepted_statuses
from career_pipeline.knowledge.provider import KnowledgeBase, MaterialsContext
from career_pipeline.reasoning.client import ModelTier, ReasoningClient
from career_pipeline.reasoning.results import DraftMaterials
from career_pipeline.stages.base import StageWorker
from career_pipeline.store.repository import JobStore
from career_pipeline.utils.text import excerpt

DESCRIPTION_LIMIT = 3000


def resume_hash(base_resume: str) -> str:
    """Short content hash identifying the base resume a version was cut from."""
    return hashlib.sha256(base_resume.encode("utf-8")).hexdigest()[:16]


class MaterialsStage(StageWorker):
    """Materials stage."""

    stage = Stage.MATERIALS

    def __init__(self, store: JobStore, reasoning: ReasoningClient, knowledge: KnowledgeBase):
        super().__init__(store)
        self.reasoning = reasoning
        self.knowledge = knowledge

    async def run(self, payload: Dict[str, Any]) -> StageResult:
        task = PostingTask.model_validate(payload)
        posting = await self.store.require_posting(task.posting_id)

        # Visible in-progress marker, set before any drafting work
        updated = await self.store.set_status(
            posting.id, PostingStatus.DRAFTING, only_from=accepted_statuses(PostingStatus.DRAFTING)
        )
        if not await self.confirm_write(updated, posting.id, PostingStatus.DRAFTING):
            return self.stale(posting.id)

        context = self.knowledge.materials_context()
        reply = await self.reasoning.complete_json(ModelTier.EXTENDED, [
            SystemMessage(content=self._build_system_prompt(context)),
            HumanMessage(content=self._build_prompt(posting, context)),
        ])
        materials = DraftMaterials.from_reply(reply)

        resume_version_id = await self.store.create_resume_version(
            base_resume_hash=resume_hash(context.base_resume),
            target_role=posting.title,
            tailored_bullets=materials.tailored_bullets
        )
        created = await self.store.create_application(
            posting.id,
            resume_version_id=resume_version_id,
            cover_letter_id=f"cl-{posting.id}" if materials.cover_letter else None,
            qa_answers_id=f"qa-{posting.id}" if materials.qa_answers else None
        )
        if not created:
            self.logger.info("Application already exists, keeping it", posting_id=posting.id)

        self.ensure_updated(await self.store.save_materials_notes(posting.id, {
            "coverLetter": materials.cover_letter,
            "whyCompany": materials.why_company,
            "qaAnswers": materials.qa_answers,
        }), posting.id)

        compliance_task = ComplianceTask(
            posting_id=posting.id,
            resume_version_id=resume_version_id,
            cover_letter=materials.cover_letter,
            tailored_bullets=materials.tailored_bullets,
        )

        self.logger.info(
            "Materials drafted",
            posting_id=posting.id,
            resume_version_id=resume_version_id,
            bullets=len(materials.tailored_bullets),
            has_cover_letter=materials.cover_letter is not None
        )
        return StageResult(
            outcome=Outcome.DRAFTED,
            emitted=self.chain(Outcome.DRAFTED, compliance_task.model_dump(by_alias=True)),
            posting_id=posting.id
        )

    def _build_system_prompt(self, context: MaterialsContext) -> str:
        constraints = "\n".join(f"- {c}" for c in context.writing_style.constraints)
        return f"""You are an expert job application writer.

Writing voice: {context.writing_style.voice}
Constraints (strictly enforce):
{constraints}

CRITICAL RULES:
1. Only use bullets from the BULLET LIBRARY below - do not invent new ones.
2. Only use metrics from the VERIFIED METRICS ALLOWLIST - never fabricate numbers.
3. Never invent employers, projects, or experiences not present in the resume.
4. Keep the cover letter to ~250 words, 3-4 paragraphs.
Respond with valid JSON only. No markdown, no code fences."""

    def _build_prompt(self, posting: Posting, context: MaterialsContext) -> str:
        resume = context.base_resume or "(Resume not yet filled in - populate kb/resume/base_resume.md)"
        stories = [story.model_dump() for story in context.stories]
        return f"""Generate application materials for this job.

=== JOB ===
Company: {posting.company}
Title: {posting.title}
Level: {posting.level}
Description: {excerpt(posting.description_raw, DESCRIPTION_LIMIT)}
Why it fits (from scorer): {json.dumps(posting.fit_reasoning)}

=== BASE RESUME ===
{resume}

=== BULLET LIBRARY (use only these) ===
{json.dumps(context.bullet_library, indent=2)}

=== VERIFIED METRICS ALLOWLIST (use only these numbers) ===
{json.dumps(context.allowed_metrics, indent=2)}

=== CANDIDATE SKILLS ===
{json.dumps(context.skills, indent=2)}

=== STORY BANK ===
{json.dumps(stories, indent=2)}

=== WHY-COMPANY TEMPLATES ===
{context.why_company_templates}

Return JSON:
{{
  "coverLetter": "full cover letter text (~250 words, 3-4 paragraphs)",
  "tailoredBullets": ["bullet 1", "bullet 2", "bullet 3", "bullet 4", "bullet 5"],
  "whyCompany": "1-2 sentence answer to why this company",
  "qaAnswers": {{
    "tellMeAboutYourself": "...",
    "whyThisRole": "...",
    "challengeYouSolved": "..."
  }}
}}"""


def create_materials_stage(
    store: JobStore,
    reasoning: ReasoningClient,
    knowledge: KnowledgeBase
) -> MaterialsStage:
    """Factory function to create the Materials stage."""
    return MaterialsStage(store=store, reasoning=reasoning, knowledge=knowledge)
