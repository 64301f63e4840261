"""
Knowledge base: static reference documents injected into prompts.

Documents are read from disk on every call so edits take effect on the next
task without restarting workers.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from career_pipeline.config import settings
from career_pipeline.core.errors import KnowledgeBaseError
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


class Dealbreakers(BaseModel):
    """Hard constraints that disqualify a posting regardless of score."""
    visa_sponsorship_required: bool = False
    min_intern_duration_weeks: Optional[int] = None
    no_unpaid_roles: bool = True
    exclude_locations: List[str] = Field(default_factory=list)


class RoleKeywords(BaseModel):
    must_have: List[str] = Field(default_factory=list)
    nice_to_have: List[str] = Field(default_factory=list)


class RoleTargets(BaseModel):
    role_families: List[str] = Field(default_factory=list)
    keywords: RoleKeywords = Field(default_factory=RoleKeywords)


class LocationPreferences(BaseModel):
    preferred: List[str] = Field(default_factory=list)
    avoid: List[str] = Field(default_factory=list)


class Preferences(BaseModel):
    locations: LocationPreferences = Field(default_factory=LocationPreferences)
    role_families: List[str] = Field(default_factory=list)
    start_dates: List[str] = Field(default_factory=list)


class Story(BaseModel):
    prompt: str
    outline: List[str] = Field(default_factory=list)
    evidence_refs: List[str] = Field(default_factory=list)


class WritingStyle(BaseModel):
    voice: str = ""
    constraints: List[str] = Field(default_factory=list)


@dataclass
class FitContext:
    dealbreakers: Dealbreakers
    role_targets: RoleTargets
    preferences: Preferences
    skills: Dict[str, List[str]]


@dataclass
class MaterialsContext:
    base_resume: str
    bullet_library: List[str]
    allowed_metrics: List[str]
    stories: List[Story]
    why_company_templates: str
    writing_style: WritingStyle
    skills: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class ComplianceContext:
    allowed_metrics: List[str]
    writing_style: WritingStyle


class KnowledgeBase:
    """Read-only access to the knowledge-base directory."""
    
    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root or settings.knowledge_base_dir)
        self.logger = logger.bind(component="knowledge_base", root=str(self.root))
    
    def _read(self, rel_path: str) -> Optional[str]:
        path = self.root / rel_path
        if not path.is_file():
            self.logger.warning("Knowledge document missing", document=rel_path)
            return None
        return path.read_text(encoding="utf-8")
    
    def _yaml(self, rel_path: str) -> Any:
        text = self._read(rel_path)
        if text is None:
            return None
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise KnowledgeBaseError(f"Invalid YAML in {rel_path}: {e}") from e
    
    def _model(self, model_cls, rel_path: str):
        data = self._yaml(rel_path) or {}
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            raise KnowledgeBaseError(f"Unexpected structure in {rel_path}: {e}") from e
    
    # Constraints
    
    def dealbreakers(self) -> Dealbreakers:
        return self._model(Dealbreakers, "constraints/dealbreakers.yaml")
    
    def role_targets(self) -> RoleTargets:
        return self._model(RoleTargets, "constraints/role_targets.yaml")
    
    # Profile
    
    def preferences(self) -> Preferences:
        return self._model(Preferences, "profile/preferences.yaml")
    
    # Resume
    
    def base_resume(self) -> str:
        return self._read("resume/base_resume.md") or ""
    
    def bullet_library(self) -> List[str]:
        data = self._yaml("resume/bullet_library.yaml") or []
        if not isinstance(data, list):
            raise KnowledgeBaseError("resume/bullet_library.yaml must be a list")
        return [str(item) for item in data]
    
    def metrics_allowlist(self) -> List[str]:
        data = self._yaml("resume/metrics_allowlist.yaml") or {}
        if not isinstance(data, dict):
            raise KnowledgeBaseError("resume/metrics_allowlist.yaml must be a mapping")
        return [str(item) for item in data.get("allowed_metrics") or []]
    
    # Skills
    
    def skills(self) -> Dict[str, List[str]]:
        data = self._yaml("skills/technical.yaml") or {}
        if not isinstance(data, dict):
            raise KnowledgeBaseError("skills/technical.yaml must be a mapping")
        return {str(k): [str(s) for s in (v or [])] for k, v in data.items()}
    
    # Answers
    
    def story_bank(self) -> List[Story]:
        data = self._yaml("answers/story_bank.yaml") or {}
        try:
            return [Story.model_validate(item) for item in data.get("stories") or []]
        except (AttributeError, ValidationError) as e:
            raise KnowledgeBaseError(f"Unexpected structure in answers/story_bank.yaml: {e}") from e
    
    def why_company_templates(self) -> str:
        return self._read("answers/why_company_templates.md") or ""
    
    # Tone
    
    def writing_style(self) -> WritingStyle:
        return self._model(WritingStyle, "tone/writing_style.yaml")
    
    # Stage bundles
    
    def fit_context(self) -> FitContext:
        return FitContext(
            dealbreakers=self.dealbreakers(),
            role_targets=self.role_targets(),
            preferences=self.preferences(),
            skills=self.skills(),
        )
    
    def materials_context(self) -> MaterialsContext:
        return MaterialsContext(
            base_resume=self.base_resume(),
            bullet_library=self.bullet_library(),
            allowed_metrics=self.metrics_allowlist(),
            stories=self.story_bank(),
            why_company_templates=self.why_company_templates(),
            writing_style=self.writing_style(),
            skills=self.skills(),
        )
    
    def compliance_context(self) -> ComplianceContext:
        return ComplianceContext(
            allowed_metrics=self.metrics_allowlist(),
            writing_style=self.writing_style(),
        )
