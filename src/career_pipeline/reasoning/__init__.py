"""Reasoning-service client and typed stage results."""

from career_pipeline.reasoning.client import ModelTier, ReasoningClient
from career_pipeline.reasoning.parsing import parse_json_object
from career_pipeline.reasoning.results import (
    ComplianceFlag,
    ComplianceReport,
    DraftMaterials,
    ExtractedFields,
    FitAssessment,
    NormalizedFields,
    clamp_score,
)

__all__ = [
    "ModelTier",
    "ReasoningClient",
    "parse_json_object",
    "ComplianceFlag",
    "ComplianceReport",
    "DraftMaterials",
    "ExtractedFields",
    "FitAssessment",
    "NormalizedFields",
    "clamp_score",
]
