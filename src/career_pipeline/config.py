"""Configuration management for the career pipeline."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GreenhouseTarget(BaseModel):
    """A Greenhouse job board to scout."""
    company: str
    slug: str


DEFAULT_GREENHOUSE_TARGETS = [
    GreenhouseTarget(company="Anthropic", slug="anthropic"),
    GreenhouseTarget(company="OpenAI", slug="openai"),
    GreenhouseTarget(company="Stripe", slug="stripe"),
    GreenhouseTarget(company="Snowflake", slug="snowflake"),
    GreenhouseTarget(company="Datadog", slug="datadoghq"),
    GreenhouseTarget(company="Chime", slug="chime"),
    GreenhouseTarget(company="Netflix", slug="netflix"),
    GreenhouseTarget(company="NVIDIA", slug="nvidia"),
    GreenhouseTarget(company="Figma", slug="figma"),
    GreenhouseTarget(company="Notion", slug="notion"),
    GreenhouseTarget(company="Confluent", slug="confluent"),
    GreenhouseTarget(company="HashiCorp", slug="hashicorp"),
]


class Settings(BaseSettings):
    """Application settings with environment variable support."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Storage
    database_url: str = Field(
        "sqlite+aiosqlite:///./data/pipeline.db",
        description="SQLAlchemy async database URL (sqlite+aiosqlite or postgresql+asyncpg)"
    )
    
    # Reasoning service
    asi_api_key: Optional[str] = Field(None, description="ASI:One API key")
    asi_base_url: str = Field("https://api.asi1.ai/v1", description="OpenAI-compatible reasoning endpoint")
    groq_api_key: Optional[str] = Field(None, description="Groq API key, used when no ASI key is set")
    fast_model: str = Field("asi1-mini", description="Model for extraction, normalization and compliance")
    extended_model: str = Field("asi1-extended", description="Model for fit scoring and drafting")
    groq_fast_model: str = Field("llama-3.1-8b-instant", description="Groq fallback for the fast tier")
    groq_extended_model: str = Field("llama-3.1-70b-versatile", description="Groq fallback for the extended tier")
    reasoning_timeout: float = Field(120.0, description="Reasoning call timeout in seconds")
    
    # Knowledge base
    knowledge_base_dir: str = Field("./kb", description="Root directory of the knowledge base")
    
    # Discovery
    greenhouse_targets: List[GreenhouseTarget] = Field(
        default_factory=lambda: list(DEFAULT_GREENHOUSE_TARGETS),
        description="Greenhouse boards scouted on every run"
    )
    source_fetch_timeout: float = Field(15.0, description="Posting source fetch timeout in seconds")
    scout_interval_hours: float = Field(6.0, description="Hours between scheduled scout runs")
    
    # Evaluation
    fit_threshold: int = Field(60, description="Minimum fit score for the shortlist")
    followup_offsets_days: List[int] = Field([7, 14], description="Follow-up offsets after a compliance pass")
    
    # Queue concurrency
    scout_concurrency: int = Field(1, description="Concurrent scout tasks")
    normalize_concurrency: int = Field(5, description="Concurrent normalize tasks")
    fit_score_concurrency: int = Field(3, description="Concurrent fit-score tasks")
    materials_concurrency: int = Field(2, description="Concurrent materials tasks")
    compliance_concurrency: int = Field(3, description="Concurrent compliance tasks")
    
    # Broker
    task_max_attempts: int = Field(5, description="Deliveries before a task is dead-lettered")
    task_backoff_base: float = Field(2.0, description="Base retry delay in seconds")
    task_backoff_max: float = Field(300.0, description="Maximum retry delay in seconds")
    task_lease_seconds: float = Field(600.0, description="Lease after which a running task is redelivered")
    queue_poll_interval: float = Field(1.0, description="Idle poll interval in seconds")
    
    # Drafting re-entry after a failed compliance check
    drafting_redrive: Literal["manual", "sweep"] = Field(
        "manual",
        description="manual: only `cpl redrive` re-enqueues materials; sweep: the scheduler does it"
    )
    drafting_redrive_after_hours: float = Field(24.0, description="Age before a Drafting posting is swept")
    
    # Application Configuration
    debug: bool = Field(False, description="Enable debug mode")
    log_level: str = Field("INFO", description="Logging level")


# Global settings instance
settings = Settings()
