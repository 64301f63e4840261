"""
Scout stage: discovers intern and new-grad postings.

For every configured source:
 1. Fetch the current postings. A failing source is logged and skipped.
 2. Keep postings whose title looks early-career, before spending any
    reasoning calls.
 3. Extract structured fields from each description with one reasoning call.
 4. Insert the posting keyed by ``(source, source_job_id)``. Only a new row
    chains a normalize task; a known posting is left alone.

A failure on one posting is logged and does not stop its siblings.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage

from career_pipeline.core.models import NewPosting, PostingTask
from career_pipeline.core.transitions import Outcome, Stage, StageResult
from career_pipeline.reasoning.client import ModelTier, ReasoningClient
from career_pipeline.reasoning.results import ExtractedFields
from career_pipeline.sources.base import PostingSource, SourcePosting
from career_pipeline.stages.base import StageWorker
from career_pipeline.store.repository import JobStore
from career_pipeline.utils.text import strip_html

EARLY_CAREER_TITLE = re.compile(r"intern|new[\s-]?grad|entry[\s-]?level|summer 20\d\d", re.IGNORECASE)

DESCRIPTION_LIMIT = 3000


class ScoutStage(StageWorker):
    """Discovery stage. Triggered with an empty payload."""

    stage = Stage.SCOUT

    def __init__(
        self,
        store: JobStore,
        reasoning: ReasoningClient,
        sources: Sequence[PostingSource],
        title_pattern: re.Pattern = EARLY_CAREER_TITLE
    ):
        """
        Initialize the Scout stage.

        Args:
            store: Job store
            reasoning: Reasoning client used for field extraction
            sources: Posting sources to scan, in order
            title_pattern: Pre-filter applied to posting titles
        """
        super().__init__(store)
        self.reasoning = reasoning
        self.sources = list(sources)
        self.title_pattern = title_pattern

    async def run(self, payload: Dict[str, Any]) -> StageResult:
        emitted: List[Dict[str, Any]] = []

        for source in self.sources:
            try:
                postings = await source.fetch_postings()
            except Exception as e:
                self.logger.error(
                    "Source fetch failed, skipping",
                    company=source.company,
                    source=source.name,
                    error=str(e),
                    error_type=type(e).__name__
                )
                continue

            relevant = [p for p in postings if self.title_pattern.search(p.title)]
            self.logger.info(
                "Fetched source",
                company=source.company,
                source=source.name,
                total=len(postings),
                relevant=len(relevant)
            )

            for posting in relevant:
                try:
                    posting_id = await self._discover(source, posting)
                except Exception as e:
                    self.logger.error(
                        "Failed to process posting",
                        company=source.company,
                        source_job_id=posting.id,
                        title=posting.title,
                        error=str(e),
                        error_type=type(e).__name__
                    )
                    continue

                if posting_id is not None:
                    emitted.extend(self.chain(
                        Outcome.DISCOVERED, PostingTask(posting_id=posting_id).model_dump(by_alias=True)
                    ))
                    self.logger.info(
                        "New posting discovered",
                        posting_id=posting_id,
                        company=source.company,
                        title=posting.title
                    )

        self.logger.info("Scout run complete", discovered=len(emitted))
        return StageResult(outcome=Outcome.DISCOVERED, emitted=emitted)

    async def _discover(self, source: PostingSource, posting: SourcePosting) -> Optional[str]:
        """Extract and insert one posting. Returns its id if the row is new."""
        text = strip_html(posting.content)
        fields = await self.extract_fields(posting.title, text)

        return await self.store.insert_posting(NewPosting(
            source=source.name,
            source_job_id=posting.id,
            company=source.company,
            title=posting.title,
            level=fields.level,
            location=posting.location,
            remote_mode=fields.remote_mode,
            visa_sponsorship=fields.visa_sponsorship,
            description_raw=posting.content,
            description_structured=fields.structured(),
            apply_url=posting.url,
            date_posted=posting.updated_at,
        ))

    async def extract_fields(self, title: str, description: str) -> ExtractedFields:
        """One reasoning call turning a description into structured fields."""
        reply = await self.reasoning.complete_json(ModelTier.FAST, [
            SystemMessage(content=(
                "You extract structured fields from job descriptions. "
                "Respond with valid JSON only. No markdown, no code fences."
            )),
            HumanMessage(content=self._build_extraction_prompt(title, description)),
        ])
        return ExtractedFields.from_reply(reply)

    def _build_extraction_prompt(self, title: str, description: str) -> str:
        return f"""Job title: "{title}"
Description: "{description[:DESCRIPTION_LIMIT]}"

Return JSON with exactly these fields:
{{
  "level": "intern|newgrad|junior|mid|senior|unknown",
  "remoteMode": "onsite|hybrid|remote|unknown",
  "visaSponsorship": "yes|no|unknown",
  "requirements": ["string"],
  "responsibilities": ["string"],
  "techStack": ["string"],
  "minDurationWeeks": null
}}

Set visaSponsorship="yes" ONLY if the description explicitly mentions sponsoring visas (H-1B, OPT, etc.)."""


def create_scout_stage(
    store: JobStore,
    reasoning: ReasoningClient,
    sources: Sequence[PostingSource]
) -> ScoutStage:
    """Factory function to create the Scout stage."""
    return ScoutStage(store=store, reasoning=reasoning, sources=sources)
