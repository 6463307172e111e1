"""Narrative generation client supporting multiple LLM providers."""
import logging
import httpx
from typing import Optional, Dict, Any, List
from anthropic import Anthropic

from .config import Settings
from .exceptions import NarrativeError

logger = logging.getLogger(__name__)


NARRATIVE_SYSTEM_PROMPT = (
    "You are an expert agricultural analyst specializing in Zimbabwe farming practices, "
    "with deep knowledge of fertilizer requirements, pest management and crop-specific "
    "recommendations. Write practical, technical advice grounded only in the data provided. "
    "Use short paragraphs, **bold** for key terms and numbered lists for actions."
)


class LLMClient:
    """
    Unified LLM client supporting Anthropic and OpenRouter.

    OpenRouter provides access to many models through an OpenAI-compatible API.
    """

    def __init__(self, settings: Settings):
        self.provider = settings.llm_provider
        self.model = settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.openrouter_api_key = settings.openrouter_api_key

        if self.provider == "anthropic":
            if not settings.anthropic_api_key:
                raise ValueError("ANTHROPIC_API_KEY not set but llm_provider is 'anthropic'")
            self.anthropic_client = Anthropic(api_key=settings.anthropic_api_key, timeout=120.0)
        elif self.provider == "openrouter":
            if not settings.openrouter_api_key:
                raise ValueError("OPENROUTER_API_KEY not set but llm_provider is 'openrouter'")
            self.http_client = httpx.Client(timeout=120.0)
        else:
            raise ValueError(f"Unknown LLM provider: {self.provider}")

    def complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Send a completion request to the configured LLM provider.

        Args:
            messages: List of message dicts with 'role' and 'content'
            system: Optional system prompt
            max_tokens: Maximum tokens in response

        Returns:
            Dict with 'text' (response content), 'stop_reason' and 'model'
        """
        max_tokens = max_tokens or self.max_tokens
        if self.provider == "anthropic":
            return self._anthropic_complete(messages, system, max_tokens)
        else:
            return self._openrouter_complete(messages, system, max_tokens)

    def generate(self, prompt: str, system: Optional[str] = NARRATIVE_SYSTEM_PROMPT) -> str:
        """
        Generate narrative text for a single prompt.

        Raises:
            NarrativeError: the provider failed or returned no text
        """
        try:
            result = self.complete([{"role": "user", "content": prompt}], system=system)
        except Exception as e:
            raise NarrativeError(f"{self.provider} request failed: {e}") from e

        text = (result.get("text") or "").strip()
        if not text:
            raise NarrativeError(f"{self.provider} returned an empty response")
        return text

    def _anthropic_complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str],
        max_tokens: int,
    ) -> Dict[str, Any]:
        """Anthropic API completion."""
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
        }

        if system:
            kwargs["system"] = system

        response = self.anthropic_client.messages.create(**kwargs)

        text = ""
        if response.content:
            text = response.content[0].text

        return {
            "text": text,
            "stop_reason": response.stop_reason,
            "model": response.model,
        }

    def _openrouter_complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str],
        max_tokens: int,
    ) -> Dict[str, Any]:
        """OpenRouter API completion (OpenAI-compatible)."""
        # Prepend system message if provided
        all_messages = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        payload = {
            "model": self.model,
            "messages": all_messages,
            "max_tokens": max_tokens,
        }

        response = self.http_client.post(
            "https://openrouter.ai/api/v1/chat/completions",
            headers={
                "Authorization": f"Bearer {self.openrouter_api_key}",
                "X-Title": "Yieldera Field Reports",
                "Content-Type": "application/json",
            },
            json=payload,
        )
        response.raise_for_status()
        data = response.json()

        text = ""
        stop_reason = "stop"
        if data.get("choices"):
            choice = data["choices"][0]
            text = choice.get("message", {}).get("content", "")
            stop_reason = choice.get("finish_reason", "stop")

        return {
            "text": text,
            "stop_reason": stop_reason,
            "model": data.get("model", self.model),
        }

    def close(self):
        if self.provider == "openrouter":
            self.http_client.close()


def build_llm_client(settings: Settings) -> Optional[LLMClient]:
    """Create the narrative client, or None when no provider is configured."""
    try:
        return LLMClient(settings)
    except ValueError as e:
        logger.warning(f"Narrative generation disabled, fallback text will be used: {e}")
        return None
