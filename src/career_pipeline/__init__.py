"""
Career Pipeline: discovers early-career job postings and prepares applications.

Postings move through five queue-driven stages (scout, normalize, fit-score,
materials, compliance) backed by a shared SQL store and a durable task
broker with retry and bounded per-queue concurrency.
"""

__version__ = "0.1.0"

from career_pipeline.core.pipeline import Pipeline, create_pipeline
from career_pipeline.core.runner import PipelineRunner
from career_pipeline.core.transitions import TRANSITIONS, Outcome, Stage

__all__ = [
    "Pipeline",
    "PipelineRunner",
    "Stage",
    "Outcome",
    "TRANSITIONS",
    "create_pipeline",
]
