"""
LLM Integration

- LLMClient: Claude calls with timeout, usage tracking and JSON repair
- extract_json / ParseResult: structured output parsing
- PromptTemplate + typed contexts: declarative prompt rendering
"""

from .client import LLMClient, LLMResponse, TokenUsage
from .parser import ParseResult, extract_json, build_fix_prompt
from .prompts import (
    PromptSection,
    PromptTemplate,
    BriefPromptContext,
    ContentPromptContext,
    BlogDraftPromptContext,
    EnhancePromptContext,
    TEMPLATES,
    get_template,
)

__all__ = [
    "LLMClient",
    "LLMResponse",
    "TokenUsage",
    "ParseResult",
    "extract_json",
    "build_fix_prompt",
    "PromptSection",
    "PromptTemplate",
    "BriefPromptContext",
    "ContentPromptContext",
    "BlogDraftPromptContext",
    "EnhancePromptContext",
    "TEMPLATES",
    "get_template",
]
