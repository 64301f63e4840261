"""Tests for the Greenhouse posting source."""

import httpx
import pytest

from career_pipeline.config import GreenhouseTarget, Settings
from career_pipeline.core.errors import SourceFetchError
from career_pipeline.sources import build_sources
from career_pipeline.sources.greenhouse import GreenhouseSource

BOARD = {
    "jobs": [
        {
            "id": 4012345,
            "title": "Software Engineering Intern",
            "location": {"name": "San Francisco, CA"},
            "content": "&lt;p&gt;Python&lt;/p&gt;",
            "absolute_url": "https://boards.greenhouse.io/example/jobs/4012345",
            "updated_at": "2026-01-15T10:00:00-05:00",
        },
        {
            "id": 4012346,
            "title": "Staff Engineer",
            "location": None,
        },
        {"title": "no id, skipped"},
    ]
}


def source_with(handler) -> GreenhouseSource:
    return GreenhouseSource("Example", "example", transport=httpx.MockTransport(handler))


class TestGreenhouseSource:

    @pytest.mark.asyncio
    async def test_maps_board_jobs(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=BOARD)

        postings = await source_with(handler).fetch_postings()

        assert str(requests[0].url) == "https://boards-api.greenhouse.io/v1/boards/example/jobs?content=true"
        assert requests[0].headers["User-Agent"].startswith("CareerPipeline")
        assert [p.id for p in postings] == ["4012345", "4012346"]

        intern = postings[0]
        assert intern.title == "Software Engineering Intern"
        assert intern.location == "San Francisco, CA"
        assert intern.content == "&lt;p&gt;Python&lt;/p&gt;"
        assert intern.url == "https://boards.greenhouse.io/example/jobs/4012345"
        assert intern.updated_at == "2026-01-15T10:00:00-05:00"

        assert postings[1].location is None
        assert postings[1].content == ""

    @pytest.mark.asyncio
    async def test_non_ok_status_raises(self):
        source = source_with(lambda request: httpx.Response(404, json={"error": "not found"}))

        with pytest.raises(SourceFetchError) as exc_info:
            await source.fetch_postings()
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SourceFetchError):
            await source_with(handler).fetch_postings()

    @pytest.mark.asyncio
    async def test_non_json_raises(self):
        source = source_with(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(SourceFetchError):
            await source.fetch_postings()

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_empty(self):
        source = source_with(lambda request: httpx.Response(200, json=["not", "a", "board"]))

        assert await source.fetch_postings() == []


class TestBuildSources:

    def test_one_source_per_target(self):
        cfg = Settings(
            greenhouse_targets=[
                GreenhouseTarget(company="Stripe", slug="stripe"),
                GreenhouseTarget(company="Figma", slug="figma"),
            ],
            source_fetch_timeout=3,
        )

        sources = build_sources(cfg)

        assert [(s.company, s.slug, s.timeout) for s in sources] == [
            ("Stripe", "stripe", 3),
            ("Figma", "figma", 3),
        ]

    def test_default_targets(self):
        assert len(build_sources(Settings())) == 12
