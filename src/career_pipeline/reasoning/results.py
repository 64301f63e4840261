"""
Typed reasoning results, one per stage.

Replies are free-form JSON. Each model below declares the fields a stage
reads and, through ``mode="before"`` validators, a total defaulting rule for
every one of them: a missing, null or wrongly typed value resolves to the
field's default instead of raising.
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN = "unknown"


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _text_or_unknown(value: Any) -> str:
    return _text_or_none(value) or UNKNOWN


def _text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    items = (_text_or_none(item) for item in value)
    return [item for item in items if item]


def _number(value: Any) -> Optional[float]:
    """Float value of a number or numeric string; ints too large for a float become +/-inf."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf
    return None if math.isnan(value) else value


def _number_or_none(value: Any) -> Optional[float]:
    number = _number(value)
    return number if number is not None and math.isfinite(number) else None


class ReasoningResult(BaseModel):
    """Base for stage results. Unknown keys are kept in ``model_extra``."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    
    @classmethod
    def from_reply(cls, data: Any):
        """Build the result from a decoded reply of any shape."""
        return cls.model_validate(data if isinstance(data, dict) else {})


class ExtractedFields(ReasoningResult):
    """Scout: structured fields pulled from a raw description."""
    level: str = UNKNOWN
    remote_mode: str = Field(UNKNOWN, alias="remoteMode")
    visa_sponsorship: str = Field(UNKNOWN, alias="visaSponsorship")
    requirements: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    tech_stack: List[str] = Field(default_factory=list, alias="techStack")
    min_duration_weeks: Optional[float] = Field(None, alias="minDurationWeeks")
    
    @field_validator("level", "remote_mode", "visa_sponsorship", mode="before")
    @classmethod
    def default_unknown(cls, value: Any) -> str:
        return _text_or_unknown(value)
    
    @field_validator("requirements", "responsibilities", "tech_stack", mode="before")
    @classmethod
    def default_empty_list(cls, value: Any) -> List[str]:
        return _text_list(value)
    
    @field_validator("min_duration_weeks", mode="before")
    @classmethod
    def default_no_duration(cls, value: Any) -> Optional[float]:
        return _number_or_none(value)
    
    def structured(self) -> Dict[str, Any]:
        """Everything except the three columns stored separately."""
        data = {
            "requirements": self.requirements,
            "responsibilities": self.responsibilities,
            "techStack": self.tech_stack,
            "minDurationWeeks": self.min_duration_weeks,
        }
        data.update(self.model_extra or {})
        return data


class NormalizedFields(ReasoningResult):
    """Normalize: corrected descriptive fields. None means keep the stored value."""
    normalized_title: Optional[str] = Field(None, alias="normalizedTitle")
    level: Optional[str] = None
    remote_mode: Optional[str] = Field(None, alias="remoteMode")
    visa_sponsorship: Optional[str] = Field(None, alias="visaSponsorship")
    normalized_location: Optional[str] = Field(None, alias="normalizedLocation")
    
    @field_validator(
        "normalized_title", "level", "remote_mode", "visa_sponsorship", "normalized_location",
        mode="before"
    )
    @classmethod
    def blank_is_none(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)
    
    def column_updates(self) -> Dict[str, Optional[str]]:
        """Map onto posting columns for a coalescing update."""
        return {
            "title": self.normalized_title,
            "level": self.level,
            "remote_mode": self.remote_mode,
            "visa_sponsorship": self.visa_sponsorship,
            "location": self.normalized_location,
        }


def clamp_score(value: Any) -> int:
    """
    Round a reported score and clamp it to the closed range 0..100.

    Infinite values clamp to the nearest end, so ``"1e999"`` scores 100.
    NaN and anything that is not a number score 0.
    """
    number = _number(value)
    if number is None:
        return 0
    if math.isinf(number):
        return 100 if number > 0 else 0
    return max(0, min(100, int(round(number))))


class KeywordMatches(ReasoningResult):
    must_have: List[str] = Field(default_factory=list, alias="mustHave")
    nice_to_have: List[str] = Field(default_factory=list, alias="niceToHave")
    
    @field_validator("must_have", "nice_to_have", mode="before")
    @classmethod
    def default_empty_list(cls, value: Any) -> List[str]:
        return _text_list(value)


class FitAssessment(ReasoningResult):
    """FitScore: evaluation of a posting against the candidate profile."""
    fit_score: int = Field(0, alias="fitScore")
    reasoning: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    recommendation: str = UNKNOWN
    keyword_matches: KeywordMatches = Field(default_factory=KeywordMatches, alias="keywordMatches")
    
    @field_validator("fit_score", mode="before")
    @classmethod
    def clamp(cls, value: Any) -> int:
        return clamp_score(value)
    
    @field_validator("reasoning", "risks", mode="before")
    @classmethod
    def default_empty_list(cls, value: Any) -> List[str]:
        return _text_list(value)
    
    @field_validator("recommendation", mode="before")
    @classmethod
    def default_unknown(cls, value: Any) -> str:
        return _text_or_unknown(value)
    
    @field_validator("keyword_matches", mode="before")
    @classmethod
    def default_no_matches(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}


class DraftMaterials(ReasoningResult):
    """Materials: drafted application artifacts."""
    cover_letter: Optional[str] = Field(None, alias="coverLetter")
    tailored_bullets: List[str] = Field(default_factory=list, alias="tailoredBullets")
    why_company: Optional[str] = Field(None, alias="whyCompany")
    qa_answers: Optional[Dict[str, str]] = Field(None, alias="qaAnswers")
    
    @field_validator("cover_letter", "why_company", mode="before")
    @classmethod
    def blank_is_none(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)
    
    @field_validator("tailored_bullets", mode="before")
    @classmethod
    def default_empty_list(cls, value: Any) -> List[str]:
        return _text_list(value)
    
    @field_validator("qa_answers", mode="before")
    @classmethod
    def drop_blank_answers(cls, value: Any) -> Optional[Dict[str, str]]:
        if not isinstance(value, dict):
            return None
        answers = {str(k): _text_or_none(v) for k, v in value.items()}
        return {k: v for k, v in answers.items() if v} or None


class ComplianceFlag(BaseModel):
    excerpt: str = ""
    issue: str = ""


class ComplianceReport(ReasoningResult):
    """Compliance: fact-check verdict on drafted materials."""
    claimed_pass: bool = Field(False, alias="pass")
    flags: List[ComplianceFlag] = Field(default_factory=list)
    summary: Optional[str] = None
    
    @field_validator("claimed_pass", mode="before")
    @classmethod
    def literal_true_only(cls, value: Any) -> bool:
        # Only a literal true counts as a claimed pass
        return value is True
    
    @field_validator("flags", mode="before")
    @classmethod
    def normalize_flags(cls, value: Any) -> List[Dict[str, str]]:
        if value is None:
            return []
        if not isinstance(value, list):
            value = [value]
        flags = []
        for item in value:
            if isinstance(item, dict):
                flags.append({
                    "excerpt": _text_or_none(item.get("excerpt")) or "",
                    "issue": _text_or_none(item.get("issue")) or "",
                })
            elif _text_or_none(item):
                flags.append({"excerpt": "", "issue": _text_or_none(item)})
        return flags
    
    @field_validator("summary", mode="before")
    @classmethod
    def blank_is_none(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)
    
    @property
    def passed(self) -> bool:
        """Pass only when the reply claims a pass and raises no flags."""
        return self.claimed_pass and not self.flags
