"""
Claude API Client

Async client for content generation:
- Per-call timeout (asyncio.wait_for around the SDK call)
- Token usage and cost tracking
- Structured JSON output with a bounded repair loop
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Type

import anthropic
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from viralhub.utils import get_settings
from .parser import ParseResult, build_fix_prompt, extract_json, format_validation_errors

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Track token usage for cost calculation."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def estimated_cost(self) -> float:
        """Estimate cost based on Claude Sonnet pricing ($3/1M in, $15/1M out)."""
        input_cost = (self.input_tokens / 1_000_000) * 3.0
        output_cost = (self.output_tokens / 1_000_000) * 15.0
        return input_cost + output_cost

    def add(self, other: "TokenUsage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens

    def to_dict(self) -> dict:
        return {"input": self.input_tokens, "output": self.output_tokens, "total": self.total_tokens}


@dataclass
class LLMResponse:
    """Response from one Claude call."""
    content: str
    usage: TokenUsage
    model: str
    stop_reason: str
    success: bool = True
    error: Optional[str] = None


class LLMClient:
    """
    Async Claude client.

    Args:
        api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY)
        model: Model id (defaults to CLAUDE_MODEL)
        timeout: Seconds per call (defaults to LLM_TIMEOUT)
        client: Pre-built AsyncAnthropic-compatible client
    """

    MAX_TOKENS = 4000
    TEMPERATURE = 0.7

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[Any] = None,
    ):
        settings = get_settings()
        self.model = model or settings.CLAUDE_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT

        if client is None:
            api_key = api_key or settings.ANTHROPIC_API_KEY
            if not api_key:
                raise ValueError("ANTHROPIC_API_KEY not provided")
            client = anthropic.AsyncAnthropic(api_key=api_key)
        self.client = client

        # Cumulative usage across calls
        self.total_usage = TokenUsage()
        self.call_count = 0

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        task: str = "generic",
        max_tokens: int = MAX_TOKENS,
        temperature: float = TEMPERATURE,
    ) -> LLMResponse:
        """Send one prompt; failures come back as success=False."""
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        try:
            response = await asyncio.wait_for(self.client.messages.create(**kwargs), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Claude call for {task} timed out after {self.timeout}s")
            return self._failed(f"Timed out after {self.timeout}s", "timeout")
        except anthropic.APIError as e:
            logger.error(f"Claude API error for {task}: {e}")
            return self._failed(str(e), "error")

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        self.total_usage.add(usage)
        self.call_count += 1

        logger.info(
            f"Claude call {task}: {usage.input_tokens} in, {usage.output_tokens} out, "
            f"${usage.estimated_cost:.4f}"
        )

        return LLMResponse(
            content=content,
            usage=usage,
            model=getattr(response, "model", None) or self.model,
            stop_reason=response.stop_reason or "end_turn",
        )

    def _failed(self, error: str, stop_reason: str) -> LLMResponse:
        return LLMResponse(
            content="",
            usage=TokenUsage(),
            model=self.model,
            stop_reason=stop_reason,
            success=False,
            error=error,
        )

    async def generate_json(
        self,
        task: str,
        prompt: str,
        system: Optional[str] = None,
        schema: Optional[Type[BaseModel]] = None,
        max_attempts: int = 2,
        **kwargs,
    ) -> ParseResult:
        """
        Ask for JSON and validate it.

        Each failed parse or validation is retried (up to max_attempts in
        total) with the previous output and its errors appended. An API
        failure or timeout ends the loop immediately.
        """
        usage = TokenUsage()
        current_prompt = prompt
        errors = []
        model = self.model

        for attempt in range(1, max_attempts + 1):
            response = await self.complete(current_prompt, system=system, task=task, **kwargs)
            usage.add(response.usage)
            model = response.model

            if not response.success:
                return ParseResult(
                    success=False,
                    errors=[response.error or "Generation failed"],
                    attempts=attempt,
                    usage=usage,
                    model=model,
                    upstream_failed=True,
                )

            data, method = extract_json(response.content)
            if data is None:
                errors = ["No valid JSON found"]
            elif schema is None:
                return ParseResult(success=True, data=data, parse_method=method, attempts=attempt, usage=usage, model=model)
            else:
                try:
                    value = schema.model_validate(data)
                    return ParseResult(
                        success=True,
                        data=value.model_dump(),
                        value=value,
                        parse_method=method,
                        attempts=attempt,
                        usage=usage,
                        model=model,
                    )
                except PydanticValidationError as e:
                    errors = format_validation_errors(e)

            logger.warning(f"{task}: invalid output on attempt {attempt}/{max_attempts}: {errors}")
            logger.debug(f"{task}: raw output was {response.content[:2000]!r}")
            current_prompt = build_fix_prompt(prompt, response.content, errors, schema)

        return ParseResult(success=False, errors=errors, attempts=max_attempts, usage=usage, model=model)
