"""Normalize stage: cleans up the descriptive fields of a freshly discovered posting."""

from typing import Any, Dict

from langchain_core.messages import HumanMessage, SystemMessage

from career_pipeline.core.models import Posting, PostingTask
from career_pipeline.core.transitions import Outcome, Stage, StageResult
from career_pipeline.reasoning.client import ModelTier, ReasoningClient
from career_pipeline.reasoning.results import NormalizedFields
from career_pipeline.stages.base import StageWorker
from career_pipeline.store.repository import JobStore
from career_pipeline.utils.text import excerpt

DESCRIPTION_LIMIT = 2000


class NormalizeStage(StageWorker):
    """
    Normalize stage.

    One fast reasoning call produces a clean title and confirms level, remote
    mode, visa sponsorship and location. Values the reply leaves out never
    overwrite what Scout stored.
    """

    stage = Stage.NORMALIZE

    def __init__(self, store: JobStore, reasoning: ReasoningClient):
        super().__init__(store)
        self.reasoning = reasoning

    async def run(self, payload: Dict[str, Any]) -> StageResult:
        task = PostingTask.model_validate(payload)
        posting = await self.store.require_posting(task.posting_id)

        reply = await self.reasoning.complete_json(ModelTier.FAST, [
            SystemMessage(content=(
                "You normalize job posting metadata. "
                "Respond with valid JSON only. No markdown, no code fences."
            )),
            HumanMessage(content=self._build_prompt(posting)),
        ])
        normalized = NormalizedFields.from_reply(reply)

        updates = normalized.column_updates()
        self.ensure_updated(await self.store.apply_normalization(posting.id, updates), posting.id)

        self.logger.info(
            "Posting normalized",
            posting_id=posting.id,
            **{name: value for name, value in updates.items() if value is not None}
        )
        return StageResult(
            outcome=Outcome.NORMALIZED,
            emitted=self.chain(Outcome.NORMALIZED, task.model_dump(by_alias=True)),
            posting_id=posting.id
        )

    def _build_prompt(self, posting: Posting) -> str:
        return f"""Normalize this job posting.

Company: "{posting.company}"
Raw title: "{posting.title}"
Location: "{posting.location or 'unknown'}"
Remote mode (current): "{posting.remote_mode}"
Visa sponsorship (current): "{posting.visa_sponsorship}"
Description excerpt: "{excerpt(posting.description_raw, DESCRIPTION_LIMIT)}"

Return JSON:
{{
  "normalizedTitle": "clean, concise job title (e.g. 'Software Engineering Intern')",
  "level": "intern|newgrad|junior|mid|senior|unknown",
  "remoteMode": "onsite|hybrid|remote|unknown",
  "visaSponsorship": "yes|no|unknown",
  "normalizedLocation": "City, State or Remote"
}}"""


def create_normalize_stage(store: JobStore, reasoning: ReasoningClient) -> NormalizeStage:
    """Factory function to create the Normalize stage."""
    return NormalizeStage(store=store, reasoning=reasoning)
