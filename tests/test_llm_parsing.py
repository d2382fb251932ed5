"""
Tests for structured output parsing, the Claude client and prompt rendering.
"""

import anthropic
import httpx
import pytest
from pydantic import BaseModel, Field

from viralhub.llm import LLMClient, extract_json, get_template
from viralhub.llm.parser import build_fix_prompt
from viralhub.llm.prompts import ContentPromptContext


class Headline(BaseModel):
    title: str = Field(..., min_length=5)
    score: int


class TestExtractJson:

    def test_fenced_block(self):
        data, method = extract_json('Here you go:\n```json\n{"title": "Hello"}\n```\nThanks')

        assert data == {"title": "Hello"}
        assert method == "json_block"

    def test_raw_object_with_prose(self):
        data, method = extract_json('Sure! {"title": "Hello", "tags": ["a"]} Hope that helps.')

        assert data == {"title": "Hello", "tags": ["a"]}
        assert method == "raw_json"

    def test_skips_broken_fence(self):
        data, method = extract_json('```json\n{"title": }\n```\nFixed:\n```json\n{"title": "Fallback"}\n```')

        assert data == {"title": "Fallback"}
        assert method == "json_block"

    @pytest.mark.parametrize("text", ["", "no json here", "{broken"])
    def test_nothing_found(self, text):
        assert extract_json(text) == (None, "none")

    def test_fix_prompt_carries_errors_and_schema(self):
        prompt = build_fix_prompt("Write a headline.", "{}", ["title: Field required"], Headline)

        assert prompt.startswith("Write a headline.")
        assert "- title: Field required" in prompt
        assert '"score"' in prompt
        assert prompt.endswith("Return only the corrected JSON.")


class TestGenerateJson:

    @pytest.mark.asyncio
    async def test_valid_on_first_attempt(self, make_llm):
        llm = make_llm(lambda prompt, system: {"title": "Reply first", "score": 7})

        result = await llm.generate_json("headline", "Write a headline.", schema=Headline)

        assert result.success is True
        assert result.attempts == 1
        assert result.value.score == 7
        assert result.usage.to_dict() == {"input": 120, "output": 80, "total": 200}
        assert result.model == "claude-test"

    @pytest.mark.asyncio
    async def test_repairs_invalid_output(self, make_llm):
        prompts = []

        def respond(prompt, system):
            prompts.append(prompt)
            return {"title": "Hi"} if len(prompts) == 1 else {"title": "Reply first", "score": 7}

        llm = make_llm(respond)
        result = await llm.generate_json("headline", "Write a headline.", schema=Headline)

        assert result.success is True
        assert result.attempts == 2
        assert "The previous output was not valid" in prompts[1]
        assert "score: Field required" in prompts[1]
        assert result.usage.total_tokens == 400

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, make_llm):
        llm = make_llm(lambda prompt, system: "I cannot help with that")

        result = await llm.generate_json("headline", "Write a headline.", schema=Headline, max_attempts=3)

        assert result.success is False
        assert result.upstream_failed is False
        assert result.attempts == 3
        assert result.errors == ["No valid JSON found"]

    @pytest.mark.asyncio
    async def test_api_error_ends_immediately(self, make_llm):
        calls = []

        def respond(prompt, system):
            calls.append(prompt)
            return anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com"))

        result = await make_llm(respond).generate_json("headline", "Write a headline.")

        assert result.success is False
        assert result.upstream_failed is True
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_usage_accumulates_on_client(self, make_llm):
        llm = make_llm(lambda prompt, system: {"title": "Reply first", "score": 7})

        await llm.complete("one")
        await llm.complete("two")

        assert llm.call_count == 2
        assert llm.total_usage.total_tokens == 400

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(ValueError):
            LLMClient()


class TestPromptTemplates:

    def test_optional_sections_omitted(self):
        prompt = get_template("viral_youtube_script").render(ContentPromptContext(
            channel="youtube", topic="reply + strategy", industry="marketing", video_length="6 minutes",
        ))

        assert "Topic: reply + strategy" in prompt
        assert "Target video length: 6 minutes" in prompt
        assert "SOURCE DISCUSSIONS" not in prompt
        assert "FORBIDDEN CLAIMS" not in prompt
        assert "script_sections" in prompt

    def test_lists_render_as_bullets(self):
        prompt = get_template("blog_post_from_brief").render(ContentPromptContext(
            channel="blog",
            topic="reply",
            industry="marketing",
            core_tension="Reach is shrinking for everyone",
            no_go_claims=["Guaranteed growth", "Overnight results"],
        ))

        assert "FORBIDDEN CLAIMS (never use these):\n- Guaranteed growth\n- Overnight results" in prompt

    def test_dollar_signs_in_values_survive(self):
        prompt = get_template("viral_ig_package").render(ContentPromptContext(
            channel="instagram", topic="Ads under $100", industry="ecommerce",
        ))

        assert "Topic: Ads under $100" in prompt

    def test_unknown_task(self):
        with pytest.raises(KeyError):
            get_template("viral_tiktok_script")
