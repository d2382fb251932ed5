"""
Tests for channel content generation.
"""

import asyncio

import anthropic
import httpx
import pytest

from viralhub.exceptions import NotFoundError, UpstreamGenerationError
from viralhub.viral.generate import (
    ContentGenerator,
    GenerateRequest,
    channel_from_task,
    prepare_source_context,
    serialize_generation,
)
from viralhub.viral.schemas import GenerationOptions

IG_PACKAGE = {"caption": "Stop posting. Start replying.", "hashtags": ["#growth"], "carousel_slides": [], "cta": "Save"}
YOUTUBE_SCRIPT = {"titles": ["Why replies win"], "hook": "You are posting too much.", "script_sections": []}
BLOG_OUTLINE = {
    "titles": ["The reply-first playbook"],
    "primary_keyword": "reply strategy",
    "secondary_keywords": ["engagement", "small accounts"],
    "outline": [{"heading": "Why replies work", "points": ["Reach"]}],
    "estimated_word_count": 1800,
}


def outage():
    return anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


def channel_writer(prompts=None, failing=()):
    """Replies per channel based on the prompt's opening instruction."""

    def respond(prompt, system):
        if prompts is not None:
            prompts.append(prompt)
        if prompt.startswith("Create an Instagram"):
            return outage() if "instagram" in failing else IG_PACKAGE
        if prompt.startswith("Write a YouTube"):
            return "no json" if "youtube" in failing else YOUTUBE_SCRIPT
        if prompt.startswith("Create an SEO blog outline"):
            return outage() if "blog" in failing else BLOG_OUTLINE
        return {"content": "# The reply-first playbook\n\nReplies win."}

    return respond


class SlowLLM:
    async def generate_json(self, task, prompt, system=None, **kwargs):
        await asyncio.sleep(1)


@pytest.fixture
def opportunity(repository, add_signal):
    signals = [
        add_signal("Reply strategy doubled my reach", upvotes=300, comments=40, raw_excerpt="Thirty days of replies."),
        add_signal("Replying beats posting for small accounts", upvotes=900, comments=120),
    ]
    [opportunity] = repository.add_opportunities([{
        "industry": "marketing",
        "channel": "youtube",
        "topic": "reply + strategy",
        "angle": "Replies beat posts",
        "hook": "Stop posting.",
        "score": 64,
        "source_signal_ids": [str(s.id) for s in signals],
    }])
    repository.commit()
    return opportunity


class TestGenerateContentPackages:

    @pytest.mark.asyncio
    async def test_all_channels(self, repository, make_llm, opportunity):
        prompts = []
        generator = ContentGenerator(repository, make_llm(channel_writer(prompts)))

        result = await generator.generate_content_packages(GenerateRequest(
            opportunity_id=str(opportunity.id),
            channels=["instagram", "youtube", "blog", "youtube"],
            user_id="user-1",
            options=GenerationOptions(video_length="5 minutes"),
        ))

        assert result.success is True
        assert result.errors == []
        assert sorted(g.task for g in result.generations) == [
            "viral_blog_outline", "viral_ig_package", "viral_youtube_script",
        ]
        assert all(g.created_by == "user-1" for g in result.generations)
        assert len(prompts) == 3
        youtube_prompt = next(p for p in prompts if p.startswith("Write a YouTube"))
        assert "Target video length: 5 minutes" in youtube_prompt
        # Most upvoted signal leads the source context
        assert '1. "Replying beats posting for small accounts"' in youtube_prompt
        blog_prompt = next(p for p in prompts if p.startswith("Create an SEO blog outline"))
        assert "Target word count: 1500" in blog_prompt

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successful_channels(self, repository, make_llm, opportunity):
        generator = ContentGenerator(repository, make_llm(channel_writer(failing={"instagram", "youtube"})))

        result = await generator.generate_content_packages(GenerateRequest(
            opportunity_id=str(opportunity.id), channels=["instagram", "youtube", "blog"],
        ))

        assert result.success is True
        assert [g.task for g in result.generations] == ["viral_blog_outline"]
        assert len(result.errors) == 2
        assert any(e.startswith("Generation error for instagram") for e in result.errors)
        assert any(e.startswith("Generation error for youtube") for e in result.errors)

    @pytest.mark.asyncio
    async def test_every_channel_failing(self, repository, make_llm, opportunity):
        generator = ContentGenerator(repository, make_llm(channel_writer(failing={"instagram", "blog"})))

        result = await generator.generate_content_packages(GenerateRequest(
            opportunity_id=str(opportunity.id), channels=["instagram", "blog"],
        ))

        assert result.success is False
        assert isinstance(result.error, UpstreamGenerationError)
        assert result.generations == []
        assert repository.get_opportunity(opportunity.id).status == "new"

    @pytest.mark.asyncio
    async def test_channel_timeout(self, repository, opportunity):
        generator = ContentGenerator(repository, SlowLLM(), timeout=0.05)

        result = await generator.generate_content_packages(GenerateRequest(
            opportunity_id=str(opportunity.id), channels=["youtube"],
        ))

        assert result.success is False
        assert "timed out" in result.errors[0]

    @pytest.mark.asyncio
    async def test_marks_opportunity_generated(self, repository, make_llm, cache, opportunity):
        cache.set("opportunities:stale", ["old"])
        generator = ContentGenerator(repository, make_llm(channel_writer()), cache=cache)

        await generator.generate_content_packages(GenerateRequest(
            opportunity_id=str(opportunity.id), channels=["youtube"],
        ))

        assert repository.get_opportunity(opportunity.id).status == "generated"
        assert cache.get("opportunities:stale") is None

    @pytest.mark.asyncio
    async def test_archived_opportunity_stays_archived(self, repository, make_llm, opportunity):
        repository.set_opportunity_status(opportunity, "archived")
        repository.commit()
        generator = ContentGenerator(repository, make_llm(channel_writer()))

        result = await generator.generate_content_packages(GenerateRequest(
            opportunity_id=str(opportunity.id), channels=["blog"],
        ))

        assert result.success is True
        assert repository.get_opportunity(opportunity.id).status == "archived"

    @pytest.mark.asyncio
    async def test_unknown_opportunity(self, repository, make_llm):
        generator = ContentGenerator(repository, make_llm(channel_writer()))

        result = await generator.generate_content_packages(GenerateRequest(
            opportunity_id="00000000-0000-0000-0000-000000000009", channels=["blog"],
        ))

        assert isinstance(result.error, NotFoundError)


class TestBlogDraft:

    @pytest.mark.asyncio
    async def test_draft_from_outline(self, repository, make_llm, opportunity):
        prompts = []
        generator = ContentGenerator(repository, make_llm(channel_writer(prompts)))
        outline = await generator.generate_content_packages(GenerateRequest(
            opportunity_id=str(opportunity.id), channels=["blog"],
        ))

        result = await generator.generate_blog_draft(
            str(opportunity.id), str(outline.generations[0].id), user_id="user-1",
        )

        assert result.success is True
        [draft] = result.generations
        assert draft.task == "viral_blog_draft"
        assert draft.output["content"].startswith("# The reply-first playbook")
        draft_prompt = prompts[-1]
        assert "Title: The reply-first playbook" in draft_prompt
        assert "Target word count: 1800" in draft_prompt
        assert "Primary keyword: reply strategy" in draft_prompt
        assert "- small accounts" in draft_prompt

    @pytest.mark.asyncio
    async def test_outline_must_belong_to_opportunity(self, repository, make_llm, opportunity):
        generator = ContentGenerator(repository, make_llm(channel_writer()))

        result = await generator.generate_blog_draft(str(opportunity.id), "00000000-0000-0000-0000-000000000003")

        assert isinstance(result.error, NotFoundError)
        assert result.error.message == "Outline generation not found"


class TestHelpers:

    @pytest.mark.parametrize("task,channel", [
        ("viral_ig_package", "instagram"),
        ("instagram_from_brief", "instagram"),
        ("viral_youtube_script", "youtube"),
        ("viral_blog_outline", "blog"),
        ("viral_blog_draft", "blog"),
    ])
    def test_channel_from_task(self, task, channel):
        assert channel_from_task(task) == channel

    def test_source_context_limited(self, make_fake_signal):
        signals = [make_fake_signal(f"Thread {i}", upvotes=i) for i in range(8)]

        context = prepare_source_context(signals)

        assert context.count("upvotes") == 5
        assert "Source: r/marketing" in context

    @pytest.mark.asyncio
    async def test_serialize_generation(self, repository, make_llm, opportunity):
        generator = ContentGenerator(repository, make_llm(channel_writer()))
        result = await generator.generate_content_packages(GenerateRequest(
            opportunity_id=str(opportunity.id), channels=["instagram"],
        ))

        data = serialize_generation(result.generations[0])

        assert data["channel"] == "instagram"
        assert data["opportunityId"] == str(opportunity.id)
        assert data["modelId"] == "claude-test"
        assert data["tokens"] == {"input": 120, "output": 80, "total": 200}
        assert generator.get_generations_for_opportunity(str(opportunity.id))[0]["id"] == data["id"]
