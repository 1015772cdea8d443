import os
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from literag.exceptions import ConfigurationError


class Generator(ABC):
    """Turns a prompt into text."""

    @abstractmethod
    def generate(self, prompt: str) -> str:
        ...


class FunctionGenerator(Generator):
    """Wraps any ``prompt -> text`` callable."""

    def __init__(self, fn: Callable[[str], str]):
        self.fn = fn

    def generate(self, prompt: str) -> str:
        return self.fn(prompt)


class GenerationResult:
    """Simple container for the LLM response and metadata."""

    def __init__(
        self,
        answer: str,
        model: str,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        latency_ms: float = 0.0,
    ):
        self.answer = answer
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms

    def __repr__(self) -> str:
        return (
            f"GenerationResult(model={self.model!r}, "
            f"tokens={self.total_tokens}, "
            f"latency_ms={self.latency_ms:.1f})"
        )


class OpenAIGenerator(Generator):
    """
    Wraps an OpenAI Chat Completion call to generate answers from prompts.

    ``generate`` returns just the text; ``complete`` also reports token
    usage and latency.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
        api_key: Optional[str] = None,
        system_message: Optional[str] = None,
        base_url: Optional[str] = None,
        request_timeout: float = 60,
    ):
        """
        Args:
            model: OpenAI model name.
            temperature: Sampling temperature (lower = more deterministic).
            max_tokens: Max tokens in the completion. None leaves it to the API.
            api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.
            system_message: Optional system-level instruction for the model.
            base_url: Optional alternative endpoint.
            request_timeout: Timeout in seconds for the API call.
        """
        # Key resolution: explicit > env var
        resolved_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        if not resolved_key:
            raise ConfigurationError(
                "OpenAIGenerator requires an API key. Pass api_key= or set OPENAI_API_KEY."
            )
        try:
            import openai  # type: ignore
        except ImportError:
            raise ImportError(
                "openai package is required. Install it with: pip install openai"
            )

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self.system_message = system_message
        self._client = openai.OpenAI(api_key=resolved_key, base_url=base_url)

    def generate(self, prompt: str) -> str:
        return self.complete(prompt).answer

    def complete(self, prompt: str) -> GenerationResult:
        """
        Send the prompt to the LLM and return a structured result.

        Args:
            prompt: The full formatted prompt (including context and question).

        Returns:
            A GenerationResult with the answer text and usage metadata.
        """
        messages: List[Dict[str, str]] = []
        if self.system_message:
            messages.append({"role": "system", "content": self.system_message})
        messages.append({"role": "user", "content": prompt})

        kwargs = {}
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens

        start_time = time.time()
        response = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            timeout=self.request_timeout,
            **kwargs,
        )
        elapsed_ms = (time.time() - start_time) * 1000

        answer = response.choices[0].message.content or ""
        usage = response.usage

        return GenerationResult(
            answer=answer,
            model=self.model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=elapsed_ms,
        )

    def __repr__(self) -> str:
        return (
            f"OpenAIGenerator(model={self.model!r}, "
            f"temperature={self.temperature}, "
            f"max_tokens={self.max_tokens})"
        )
