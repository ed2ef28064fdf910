"""Anthropic LLM provider implementation."""

import logging
import time
from typing import Any

from anthropic import Anthropic

from discubot.ai.providers.base import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

JSON_INSTRUCTION = (
    "\n\nIMPORTANT: Respond with valid JSON only. "
    "No markdown code blocks, no explanations, no additional text."
)


class AnthropicProvider(LLMProvider):
    """Anthropic LLM provider using the Anthropic Python SDK."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-5"):
        if not api_key:
            raise ValueError("Anthropic API key is required")

        self.client = Anthropic(api_key=api_key)
        self._model = model
        logger.info(f"Initialized Anthropic provider with model: {model}")

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        json_output: bool = False,
    ) -> LLMResponse:
        start_time = time.time()

        request_params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt + (JSON_INSTRUCTION if json_output else ""),
            "messages": [{"role": "user", "content": user_prompt}],
        }

        response = self.client.messages.create(**request_params)
        duration_ms = (time.time() - start_time) * 1000

        content = "".join(
            block.text for block in response.content if hasattr(block, "text")
        )
        usage = response.usage

        return LLMResponse(
            content=content,
            prompt_tokens=usage.input_tokens if usage else 0,
            completion_tokens=usage.output_tokens if usage else 0,
            finish_reason=response.stop_reason or "unknown",
            model=response.model,
            duration_ms=duration_ms,
            raw_response=response,
        )
