"""
Structured Output Parsing

Finds JSON in model output:
- ```json fenced blocks (preferred)
- the outermost raw {...} object

Parse failures are reported as ParseResult errors; raw output only goes to
the logs.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type, TYPE_CHECKING

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

if TYPE_CHECKING:
    from .client import TokenUsage

logger = logging.getLogger(__name__)

FENCED_JSON = re.compile(r'```(?:json)?\s*(\{[\s\S]*?\}|\[[\s\S]*?\])\s*```', re.IGNORECASE)


@dataclass
class ParseResult:
    """Outcome of a structured generation."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    value: Optional[BaseModel] = None       # validated schema instance
    parse_method: str = "none"              # "json_block", "raw_json", "none"
    errors: List[str] = field(default_factory=list)
    attempts: int = 0
    usage: Optional["TokenUsage"] = None
    model: Optional[str] = None
    upstream_failed: bool = False


def extract_json(text: str) -> Tuple[Optional[Any], str]:
    """
    Returns:
        (parsed JSON or None, parse method)
    """
    if not text:
        return None, "none"

    for match in FENCED_JSON.findall(text):
        try:
            return json.loads(match), "json_block"
        except json.JSONDecodeError:
            continue

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1]), "raw_json"
        except json.JSONDecodeError:
            pass

    return None, "none"


def format_validation_errors(error: PydanticValidationError) -> List[str]:
    return [
        f"{'.'.join(str(p) for p in e['loc']) or 'root'}: {e['msg']}"
        for e in error.errors(include_url=False)
    ]


def build_fix_prompt(
    original_prompt: str,
    previous_output: str,
    errors: List[str],
    schema: Optional[Type[BaseModel]] = None,
) -> str:
    """Original prompt plus the invalid output and what was wrong with it."""
    parts = [
        original_prompt,
        "",
        "The previous output was not valid. Return valid JSON matching the schema.",
    ]
    if schema is not None:
        parts.append(f"Schema:\n{json.dumps(schema.model_json_schema(), indent=2)}")
    parts.append("Errors:\n" + "\n".join(f"- {e}" for e in errors))
    parts.append(f"Invalid output:\n{previous_output[:4000]}")
    parts.append("Return only the corrected JSON.")
    return "\n\n".join(parts)
