"""Reasoning-service client shared by the stage workers."""

from enum import Enum
from typing import Any, Dict, Optional, Sequence

from langchain_core.messages import BaseMessage
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI

from career_pipeline.config import Settings, settings as default_settings
from career_pipeline.core.errors import ReasoningServiceError
from career_pipeline.reasoning.parsing import parse_json_object
from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


class ModelTier(str, Enum):
    """Model tiers. FAST for extraction and checks, EXTENDED for scoring and drafting."""
    FAST = "fast"
    EXTENDED = "extended"


class ReasoningClient:
    """
    Issues JSON-mode chat completions.

    Call failures surface as ``ReasoningServiceError`` so the task fails and
    the broker retries it. A reply that arrives but is not valid JSON is not a
    failure: it decodes to ``{}`` and the stage applies its field defaults.
    """

    def __init__(
        self,
        models: Optional[Dict[ModelTier, Any]] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the reasoning client.

        Args:
            models: Optional chat models per tier for testing. Missing tiers are
                created from settings on first use.
            settings: Optional settings override
        """
        self.settings = settings or default_settings
        self._models: Dict[ModelTier, Any] = dict(models or {})
        self.logger = logger.bind(component="reasoning_client")

    def _create_model(self, tier: ModelTier) -> Any:
        """Create the chat model for a tier from configured credentials."""
        cfg = self.settings
        if cfg.asi_api_key:
            return ChatOpenAI(
                model=cfg.fast_model if tier is ModelTier.FAST else cfg.extended_model,
                api_key=cfg.asi_api_key,
                base_url=cfg.asi_base_url,
                temperature=0.0 if tier is ModelTier.FAST else 0.3,
                timeout=cfg.reasoning_timeout,
                max_retries=0,  # the broker owns retries
                model_kwargs={"response_format": {"type": "json_object"}},
            )
        elif cfg.groq_api_key:
            # Fallback to Groq if no ASI key is configured
            return ChatGroq(
                model=cfg.groq_fast_model if tier is ModelTier.FAST else cfg.groq_extended_model,
                api_key=cfg.groq_api_key,
                temperature=0.0 if tier is ModelTier.FAST else 0.3,
                timeout=cfg.reasoning_timeout,
                max_retries=0,
                model_kwargs={"response_format": {"type": "json_object"}},
            )
        else:
            raise ReasoningServiceError("No API keys configured for the reasoning service")

    def model_for(self, tier: ModelTier) -> Any:
        if tier not in self._models:
            self._models[tier] = self._create_model(tier)
        return self._models[tier]

    async def complete_json(self, tier: ModelTier, messages: Sequence[BaseMessage]) -> Dict[str, Any]:
        """
        Send role-tagged messages and decode the reply as a JSON object.

        Args:
            tier: Model tier to use
            messages: System and human messages, in order

        Returns:
            The decoded object, ``{}`` if the reply was not a JSON object

        Raises:
            ReasoningServiceError: If the service could not be called
        """
        model = self.model_for(tier)
        try:
            response = await model.ainvoke(list(messages))
        except Exception as e:
            self.logger.error(
                "Reasoning call failed",
                tier=tier.value,
                error=str(e),
                error_type=type(e).__name__
            )
            raise ReasoningServiceError(f"Reasoning call failed: {e}") from e

        content = getattr(response, "content", response)
        self.logger.debug("Reasoning call completed", tier=tier.value, reply_length=len(str(content)))
        return parse_json_object(content)
