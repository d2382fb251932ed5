"""
Prompt Templates

Declarative templates rendered from typed dataclass contexts. A section is
included only when the context field it depends on is set; placeholders use
string.Template (`$field`). Lists render as bullet lines.

Usage:
    template = get_template("viral_ig_package")
    prompt = template.render(ContentPromptContext(topic=..., ...))
"""

import logging
from dataclasses import dataclass, field, fields
from string import Template
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# CONTEXTS
# =============================================================================

@dataclass
class BriefPromptContext:
    industry: str
    source_context: str
    client_name: Optional[str] = None
    proposition: Optional[str] = None
    target_audience: Optional[str] = None
    usps: List[str] = field(default_factory=list)
    tone_of_voice: Optional[str] = None
    brand_voice: Optional[str] = None
    no_go_claims: List[str] = field(default_factory=list)
    search_context: Optional[str] = None
    instruction: Optional[str] = None


@dataclass
class ContentPromptContext:
    channel: str
    topic: str
    industry: str
    target_audience: str = "General audience"
    angle: Optional[str] = None
    hook: Optional[str] = None
    source_context: Optional[str] = None
    video_length: Optional[str] = None
    word_count: Optional[int] = None
    # Set when generating from an approved brief
    core_tension: Optional[str] = None
    our_angle: Optional[str] = None
    key_claim: Optional[str] = None
    proof_points: List[str] = field(default_factory=list)
    why_now: Optional[str] = None
    no_go_claims: List[str] = field(default_factory=list)
    tone_of_voice: Optional[str] = None
    brand_voice: Optional[str] = None


@dataclass
class BlogDraftPromptContext:
    topic: str
    title: str
    outline: str
    primary_keyword: Optional[str] = None
    secondary_keywords: List[str] = field(default_factory=list)
    word_count: int = 1500
    target_audience: Optional[str] = None


@dataclass
class EnhancePromptContext:
    industry: str
    opportunities: str   # JSON summary of the top opportunities


# =============================================================================
# TEMPLATE
# =============================================================================

@dataclass(frozen=True)
class PromptSection:
    text: str
    requires: Optional[str] = None   # context field that must be set


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "\n".join(f"- {item}" for item in value)
    return str(value)


@dataclass(frozen=True)
class PromptTemplate:
    task: str
    system: str
    sections: Tuple[PromptSection, ...]

    def render(self, context: Any) -> str:
        values: Dict[str, str] = {f.name: _format_value(getattr(context, f.name)) for f in fields(context)}
        rendered = []
        for section in self.sections:
            if section.requires and not getattr(context, section.requires, None):
                continue
            rendered.append(Template(section.text).substitute(values))
        return "\n\n".join(rendered)


# =============================================================================
# SHARED SECTIONS
# =============================================================================

_BRIEF_SECTIONS = (
    PromptSection("CONTENT BRIEF", requires="core_tension"),
    PromptSection("Core tension: $core_tension", requires="core_tension"),
    PromptSection("Our angle: $our_angle", requires="our_angle"),
    PromptSection("Key claim: $key_claim", requires="key_claim"),
    PromptSection("Proof points:\n$proof_points", requires="proof_points"),
    PromptSection("Why now: $why_now", requires="why_now"),
)

_VOICE_SECTIONS = (
    PromptSection("Tone of voice: $tone_of_voice", requires="tone_of_voice"),
    PromptSection("Brand voice: $brand_voice", requires="brand_voice"),
    PromptSection("FORBIDDEN CLAIMS (never use these):\n$no_go_claims", requires="no_go_claims"),
)

_SOURCE_SECTIONS = (
    PromptSection("Angle: $angle", requires="angle"),
    PromptSection("Hook: $hook", requires="hook"),
    PromptSection("SOURCE DISCUSSIONS:\n$source_context", requires="source_context"),
)

_JSON_ONLY = "Respond with a single JSON object and nothing else."


def _content_template(task: str, intro: str, extra: Tuple[PromptSection, ...], output: str) -> PromptTemplate:
    return PromptTemplate(
        task=task,
        system=(
            "You are a senior content creator at a marketing agency. You turn trending "
            f"audience discussions into channel-native content. {_JSON_ONLY}"
        ),
        sections=(
            PromptSection(intro),
            PromptSection("Topic: $topic\nIndustry: $industry\nTarget audience: $target_audience"),
            *_SOURCE_SECTIONS,
            *_BRIEF_SECTIONS,
            *_VOICE_SECTIONS,
            *extra,
            PromptSection(output),
        ),
    )


_IG_OUTPUT = (
    'Return JSON: {"caption": str, "hashtags": [str], "carousel_slides": '
    '[{"title": str, "body": str}], "reel_script": str, "cta": str}'
)
_YOUTUBE_OUTPUT = (
    'Return JSON: {"titles": [str], "hook": str, "script_sections": '
    '[{"heading": str, "content": str, "duration": str}], "thumbnail_ideas": [str], "description": str}'
)
_BLOG_OUTLINE_OUTPUT = (
    'Return JSON: {"titles": [str], "primary_keyword": str, "secondary_keywords": [str], '
    '"outline": [{"heading": str, "points": [str]}], "estimated_word_count": int, "meta_description": str}'
)
_YOUTUBE_EXTRA = (PromptSection("Target video length: $video_length", requires="video_length"),)
_BLOG_EXTRA = (PromptSection("Target word count: $word_count", requires="word_count"),)


TEMPLATES: Dict[str, PromptTemplate] = {}


def register(template: PromptTemplate) -> PromptTemplate:
    TEMPLATES[template.task] = template
    return template


register(PromptTemplate(
    task="canonical_brief",
    system=(
        "You are a senior content strategist at a marketing agency. You write canonical "
        "content briefs grounded in real audience discussions and never invent evidence. "
        f"{_JSON_ONLY}"
    ),
    sections=(
        PromptSection("Write a canonical content brief for the $industry industry based on the discussions below."),
        PromptSection("SOURCE DISCUSSIONS:\n$source_context", requires="source_context"),
        PromptSection("CLIENT CONTEXT ($client_name)", requires="client_name"),
        PromptSection("Proposition: $proposition", requires="proposition"),
        PromptSection("Target audience: $target_audience", requires="target_audience"),
        PromptSection("USPs:\n$usps", requires="usps"),
        PromptSection("Tone of voice: $tone_of_voice", requires="tone_of_voice"),
        PromptSection("Brand voice: $brand_voice", requires="brand_voice"),
        PromptSection("FORBIDDEN CLAIMS (never use these):\n$no_go_claims", requires="no_go_claims"),
        PromptSection("SEARCH CONTEXT:\n$search_context", requires="search_context"),
        PromptSection("ADDITIONAL INSTRUCTION:\n$instruction", requires="instruction"),
        PromptSection(
            'Return JSON: {"core_tension": str (10-500 chars), "our_angle": str (10-300), '
            '"key_claim": str (10-200), "proof_points": [str] (2-6 items), "why_now": str (10-300), '
            '"no_go_claims": [str], "recommended_channel": "youtube|instagram|blog" (optional), '
            '"channel_rationale": str (optional)}'
        ),
    ),
))

register(_content_template(
    "viral_ig_package",
    "Create an Instagram content package (carousel, reel script and caption).",
    (),
    _IG_OUTPUT,
))
register(_content_template(
    "viral_youtube_script",
    "Write a YouTube video script.",
    _YOUTUBE_EXTRA,
    _YOUTUBE_OUTPUT,
))
register(_content_template(
    "viral_blog_outline",
    "Create an SEO blog outline.",
    _BLOG_EXTRA,
    _BLOG_OUTLINE_OUTPUT,
))
register(_content_template(
    "instagram_from_brief",
    "Create an Instagram content package that delivers the approved brief below.",
    (),
    _IG_OUTPUT,
))
register(_content_template(
    "youtube_script_from_brief",
    "Write a YouTube video script that delivers the approved brief below.",
    _YOUTUBE_EXTRA,
    _YOUTUBE_OUTPUT,
))
register(_content_template(
    "blog_post_from_brief",
    "Write a blog post that delivers the approved brief below.",
    _BLOG_EXTRA,
    'Return JSON: {"title": str, "meta_description": str, "content": str (markdown)}',
))

register(PromptTemplate(
    task="viral_blog_draft",
    system=f"You are an experienced SEO copywriter. {_JSON_ONLY}",
    sections=(
        PromptSection("Write the full blog post for the outline below."),
        PromptSection("Title: $title\nTopic: $topic\nTarget word count: $word_count"),
        PromptSection("Primary keyword: $primary_keyword", requires="primary_keyword"),
        PromptSection("Secondary keywords:\n$secondary_keywords", requires="secondary_keywords"),
        PromptSection("Target audience: $target_audience", requires="target_audience"),
        PromptSection("OUTLINE:\n$outline"),
        PromptSection('Return JSON: {"content": str (markdown)}'),
    ),
))

register(PromptTemplate(
    task="viral_topic_synthesis",
    system=(
        "You are a viral content strategist. You sharpen content ideas into specific, "
        f"channel-ready angles. {_JSON_ONLY}"
    ),
    sections=(
        PromptSection("Industry: $industry"),
        PromptSection("Improve the angle, hook and reasoning of each opportunity, keeping the order:\n$opportunities"),
        PromptSection(
            'Return JSON: {"enhanced": [{"topic": str, "angle": str, "hook": str, "reasoning": str}]}'
        ),
    ),
))


def get_template(task: str) -> PromptTemplate:
    try:
        return TEMPLATES[task]
    except KeyError:
        raise KeyError(f"No prompt template for task: {task}")
