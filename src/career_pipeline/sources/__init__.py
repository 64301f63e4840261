"""Posting sources."""

from typing import List, Optional

from career_pipeline.config import Settings, settings as default_settings
from career_pipeline.sources.base import PostingSource, SourcePosting
from career_pipeline.sources.greenhouse import GreenhouseSource

__all__ = ["PostingSource", "SourcePosting", "GreenhouseSource", "build_sources"]


def build_sources(settings: Optional[Settings] = None) -> List[PostingSource]:
    """One source per configured Greenhouse board."""
    cfg = settings or default_settings
    return [
        GreenhouseSource(target.company, target.slug, timeout=cfg.source_fetch_timeout)
        for target in cfg.greenhouse_targets
    ]
