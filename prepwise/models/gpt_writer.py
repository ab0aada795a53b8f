"""
GPTWriter: thin wrapper over the OpenAI chat completions API.

Usage:
    writer = GPTWriter(model="gpt-4")
    output = writer.write("Tell me a joke.", system_prompt="You are funny.")
"""

import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from prepwise.base.config import settings
from prepwise.base.error_handlers import LLMUnavailableError

logger = logging.getLogger("gpt_writer")


class GPTWriter:
    def __init__(
        self,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1500,
        api_key: Optional[str] = None,
        client: Optional[OpenAI] = None,
    ):
        self.model = model or settings.DEFAULT_LLM_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key or settings.OPENAI_API_KEY

        if client is None and not self.api_key:
            raise ValueError("OpenAI API key is missing. Set OPENAI_API_KEY environment variable.")

        self.client = client or OpenAI(api_key=self.api_key)

    def write(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Sends a prompt to the chat model and returns the stripped response text.

        Raises:
            LLMUnavailableError: the API call failed or returned no content.
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        logger.info(f"[GPTWriter] Sending prompt to {self.model}")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.max_tokens,
            )
        except OpenAIError as e:
            logger.exception(f"[GPTWriter] OpenAI API error: {e}")
            raise LLMUnavailableError(f"OpenAI API error: {e}")

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMUnavailableError("OpenAI returned an empty completion")
        return content.strip()


def build_writer() -> Optional[GPTWriter]:
    """Returns a writer when an API key is configured, otherwise None."""
    if not settings.OPENAI_API_KEY:
        logger.warning("[GPTWriter] OPENAI_API_KEY not set, LLM generation unavailable")
        return None
    return GPTWriter()
