"""Knowledge-base access."""

from career_pipeline.knowledge.provider import (
    ComplianceContext,
    FitContext,
    KnowledgeBase,
    MaterialsContext,
)

__all__ = ["ComplianceContext", "FitContext", "KnowledgeBase", "MaterialsContext"]
