"""
Tests for the canonical brief service.
"""

import anthropic
import httpx
import pytest

from viralhub.exceptions import InvalidTransitionError, NotFoundError, UpstreamGenerationError, ValidationError
from viralhub.viral.briefs import (
    BriefFilters,
    BriefService,
    build_source_date_range,
    check_brief_transition,
    serialize_brief,
)
from viralhub.viral.schemas import GenerateBriefRequest, GenerationOptions

BLOG_POST = {"title": "Reply first", "meta_description": "Why replies beat posts", "content": "# Reply first"}


def brief_writer(brief_payload, prompts=None):
    """Answers brief prompts with a brief and content prompts with a blog post."""

    def respond(prompt, system):
        if prompts is not None:
            prompts.append(prompt)
        if "canonical content briefs" in system:
            return brief_payload
        return BLOG_POST

    return respond


@pytest.fixture
def signals(add_signal):
    return [
        add_signal("Replying beats posting for small accounts", upvotes=900, comments=120,
                   raw_excerpt="I stopped posting and only replied for a month."),
        add_signal("Reply strategy doubled my reach", upvotes=300, comments=40),
    ]


@pytest.fixture
def service(repository, make_llm, brief_payload):
    return BriefService(repository, make_llm(brief_writer(brief_payload)))


async def _draft(service, signals, **kwargs):
    result = await service.generate_brief(
        GenerateBriefRequest(signal_ids=[str(s.id) for s in signals], industry="marketing", **kwargs),
        user_id="user-1",
    )
    assert result.success, result.error
    return result.brief


class TestTransitions:

    @pytest.mark.parametrize("current,requested", [
        ("draft", "approved"),
        ("draft", "rejected"),
        ("draft", "superseded"),
        ("rejected", "superseded"),
    ])
    def test_allowed(self, current, requested):
        check_brief_transition(current, requested)

    @pytest.mark.parametrize("current,requested", [
        ("approved", "rejected"),
        ("approved", "superseded"),
        ("rejected", "approved"),
        ("superseded", "approved"),
    ])
    def test_rejected(self, current, requested):
        with pytest.raises(InvalidTransitionError):
            check_brief_transition(current, requested)


class TestGenerateBrief:

    @pytest.mark.asyncio
    async def test_creates_draft_with_evidence(self, service, signals):
        brief = await _draft(service, signals)

        assert brief.status == "draft"
        assert brief.created_by == "user-1"
        assert brief.brief["key_claim"].startswith("Reply-first")
        assert [e["signal_id"] for e in brief.evidence] == [str(signals[0].id), str(signals[1].id)]
        assert brief.evidence[0]["subreddit"] == "marketing"
        assert brief.source_date_range is not None

    @pytest.mark.asyncio
    async def test_client_do_nots_always_in_no_go_claims(self, repository, make_llm, brief_payload, signals, add_client):
        client = add_client(settings={"context": {"do_nots": ["Never promise rankings"], "tone_of_voice": "Witty"}})
        prompts = []
        service = BriefService(repository, make_llm(brief_writer(brief_payload, prompts)))

        brief = await _draft(service, signals, client_id=str(client.id))

        assert brief.brief["no_go_claims"] == ["Guaranteed virality", "Never promise rankings"]
        assert "CLIENT CONTEXT (Acme)" in prompts[0]
        assert "- Never promise rankings" in prompts[0]

    @pytest.mark.asyncio
    async def test_requires_a_source(self, service):
        result = await service.generate_brief(GenerateBriefRequest())

        assert result.success is False
        assert isinstance(result.error, ValidationError)

    @pytest.mark.asyncio
    async def test_unknown_idea(self, service):
        result = await service.generate_brief(GenerateBriefRequest(idea_id="00000000-0000-0000-0000-000000000001"))

        assert isinstance(result.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_unknown_signals(self, service):
        result = await service.generate_brief(GenerateBriefRequest(signal_ids=["00000000-0000-0000-0000-0000000000ff"]))

        assert isinstance(result.error, ValidationError)
        assert result.error.message == "No signals found"

    @pytest.mark.asyncio
    async def test_invalid_model_output(self, repository, make_llm, signals):
        service = BriefService(repository, make_llm(lambda prompt, system: {"core_tension": "too short"}))

        result = await service.generate_brief(GenerateBriefRequest(signal_ids=[str(s.id) for s in signals]))

        assert isinstance(result.error, UpstreamGenerationError)
        assert result.error.message == "Invalid brief format"
        assert service.list_briefs() == []

    @pytest.mark.asyncio
    async def test_upstream_failure(self, repository, make_llm, signals):
        outage = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
        service = BriefService(repository, make_llm(lambda prompt, system: outage))

        result = await service.generate_brief(GenerateBriefRequest(signal_ids=[str(s.id) for s in signals]))

        assert result.success is False
        assert isinstance(result.error, UpstreamGenerationError)
        assert result.error.message == "AI generation failed"

    @pytest.mark.asyncio
    async def test_without_llm(self, repository, signals):
        result = await BriefService(repository).generate_brief(
            GenerateBriefRequest(signal_ids=[str(s.id) for s in signals]),
        )

        assert isinstance(result.error, UpstreamGenerationError)


class TestReview:

    @pytest.mark.asyncio
    async def test_approve(self, service, signals):
        brief = await _draft(service, signals)

        approved = service.approve_brief(str(brief.id), approver_id="lead-1")

        assert approved.status == "approved"
        assert approved.approved_by == "lead-1"
        assert approved.approved_at is not None

    @pytest.mark.asyncio
    async def test_reject_then_approve_fails(self, service, signals):
        brief = await _draft(service, signals)
        service.reject_brief(str(brief.id), reason="Off brand")

        with pytest.raises(InvalidTransitionError):
            service.approve_brief(str(brief.id))
        assert service.get_brief(str(brief.id)).rejection_reason == "Off brand"

    def test_missing_brief(self, service):
        with pytest.raises(NotFoundError):
            service.approve_brief("00000000-0000-0000-0000-000000000002")

    @pytest.mark.asyncio
    async def test_list_filters(self, service, signals):
        first = await _draft(service, signals)
        await _draft(service, signals)
        service.approve_brief(str(first.id))

        assert [b.id for b in service.list_briefs(BriefFilters(status="approved"))] == [first.id]
        assert len(service.list_briefs()) == 2
        with pytest.raises(ValidationError):
            service.list_briefs(BriefFilters(status="published"))


class TestRegenerateAngle:

    @pytest.mark.asyncio
    async def test_supersedes_old_brief(self, service, signals):
        old = await _draft(service, signals)

        result = await service.regenerate_brief_angle(str(old.id), "Make it contrarian", user_id="user-2")

        assert result.success is True
        assert result.old_brief_id == str(old.id)
        assert result.brief.id != old.id
        assert result.brief.status == "draft"
        assert result.brief.evidence == old.evidence
        refreshed = service.get_brief(str(old.id))
        assert refreshed.status == "superseded"
        assert refreshed.superseded_by == result.brief.id

    @pytest.mark.asyncio
    async def test_rejected_brief_can_be_regenerated(self, service, signals):
        old = await _draft(service, signals)
        service.reject_brief(str(old.id))

        result = await service.regenerate_brief_angle(str(old.id), "Try again")

        assert result.success is True
        assert service.get_brief(str(old.id)).status == "superseded"

    @pytest.mark.asyncio
    async def test_approved_brief_cannot_be_regenerated(self, service, signals):
        old = await _draft(service, signals)
        service.approve_brief(str(old.id))

        result = await service.regenerate_brief_angle(str(old.id), "Try again")

        assert isinstance(result.error, InvalidTransitionError)
        assert service.get_brief(str(old.id)).status == "approved"

    @pytest.mark.asyncio
    async def test_failed_generation_leaves_old_brief(self, repository, make_llm, brief_payload, signals):
        service = BriefService(repository, make_llm(brief_writer(brief_payload)))
        old = await _draft(service, signals)
        service.llm = make_llm(lambda prompt, system: "no json here")

        result = await service.regenerate_brief_angle(str(old.id), "Try again")

        assert result.success is False
        assert service.get_brief(str(old.id)).status == "draft"
        assert len(service.list_briefs()) == 1


class TestContentFromBrief:

    @pytest.mark.asyncio
    async def test_requires_approval(self, service, signals):
        brief = await _draft(service, signals)

        result = await service.generate_content_from_brief(str(brief.id), "blog")

        assert isinstance(result.error, ValidationError)
        assert result.error.message == "Brief must be approved before generating content"

    @pytest.mark.asyncio
    async def test_versions_increment_per_channel(self, repository, make_llm, brief_payload, signals):
        prompts = []
        service = BriefService(repository, make_llm(brief_writer(brief_payload, prompts)))
        brief = await _draft(service, signals)
        service.approve_brief(str(brief.id))

        first = await service.generate_content_from_brief(str(brief.id), "blog", options=GenerationOptions(word_count=900))
        second = await service.generate_content_from_brief(str(brief.id), "blog")
        video = await service.generate_content_from_brief(str(brief.id), "youtube")

        assert (first.generation.version, second.generation.version, video.generation.version) == (1, 2, 1)
        assert first.generation.output == BLOG_POST
        assert "Target word count: 900" in prompts[1]
        assert "Target word count: 2000" in prompts[2]
        assert "Target video length: 8-10 minutes" in prompts[3]
        assert "1. Thread with 900 upvotes" in prompts[1]
        assert "Tone of voice: Professional but approachable" in prompts[1]

        data = serialize_brief(brief, service.get_brief_generations(str(brief.id)))
        assert len(data["generations"]) == 3

    @pytest.mark.asyncio
    async def test_invalid_channel(self, service, signals):
        brief = await _draft(service, signals)
        service.approve_brief(str(brief.id))

        result = await service.generate_content_from_brief(str(brief.id), "tiktok")

        assert isinstance(result.error, ValidationError)


def test_source_date_range_empty():
    assert build_source_date_range([]) is None
