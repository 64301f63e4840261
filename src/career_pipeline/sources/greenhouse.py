"""Greenhouse public job board API (no authentication required)."""

from typing import Any, List, Optional

import httpx

from career_pipeline.config import settings
from career_pipeline.core.errors import SourceFetchError
from career_pipeline.sources.base import PostingSource, SourcePosting
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)

BOARDS_API = "https://boards-api.greenhouse.io/v1/boards"
USER_AGENT = "CareerPipeline/0.1"


class GreenhouseSource(PostingSource):
    """Postings of one company's Greenhouse board."""
    
    name = "greenhouse"
    
    def __init__(
        self,
        company: str,
        slug: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            company: Display name stored on postings
            slug: Board token in the Greenhouse URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport for testing
        """
        self.company = company
        self.slug = slug
        self.timeout = timeout if timeout is not None else settings.source_fetch_timeout
        self.transport = transport
        self.logger = logger.bind(component="greenhouse_source", slug=slug)
    
    @property
    def url(self) -> str:
        return f"{BOARDS_API}/{self.slug}/jobs"
    
    async def fetch_postings(self) -> List[SourcePosting]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT},
                transport=self.transport
            ) as client:
                response = await client.get(self.url, params={"content": "true"})
        except httpx.HTTPError as e:
            raise SourceFetchError(self.slug, f"request failed: {e}") from e
        
        if response.status_code != 200:
            raise SourceFetchError(
                self.slug, f"unexpected status {response.status_code}", status_code=response.status_code
            )
        
        try:
            data = response.json()
        except ValueError as e:
            raise SourceFetchError(self.slug, "response is not JSON") from e
        
        jobs = data.get("jobs") if isinstance(data, dict) else None
        return [self._to_posting(job) for job in jobs or [] if isinstance(job, dict) and "id" in job]
    
    @staticmethod
    def _to_posting(job: dict[str, Any]) -> SourcePosting:
        location = job.get("location")
        return SourcePosting(
            id=str(job["id"]),
            title=str(job.get("title") or ""),
            location=location.get("name") if isinstance(location, dict) else None,
            content=job.get("content") or "",
            url=job.get("absolute_url"),
            updated_at=job.get("updated_at"),
        )
