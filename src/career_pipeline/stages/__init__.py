"""Stage workers, one per queue."""

from career_pipeline.stages.base import StageWorker
from career_pipeline.stages.compliance import ComplianceStage, create_compliance_stage
from career_pipeline.stages.fit_score import FitScoreStage, create_fit_score_stage
from career_pipeline.stages.materials import MaterialsStage, create_materials_stage
from career_pipeline.stages.normalize import NormalizeStage, create_normalize_stage
from career_pipeline.stages.scout import ScoutStage, create_scout_stage

__all__ = [
    "StageWorker",
    "ScoutStage",
    "NormalizeStage",
    "FitScoreStage",
    "MaterialsStage",
    "ComplianceStage",
    "create_scout_stage",
    "create_normalize_stage",
    "create_fit_score_stage",
    "create_materials_stage",
    "create_compliance_stage",
]
