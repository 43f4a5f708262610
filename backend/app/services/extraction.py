"""
DLE Backend - Event Extraction Parsing
========================================

What:  The extraction prompt and the parser that turns a model response into
       validated event fields.
How:   The model is asked for JSON, but responses are still treated as free
       text: markdown fences are stripped, the first '{' .. last '}' slice is
       decoded, and the result is validated by a Pydantic model that fills
       defaults for missing or empty fields.
Who:   IngestionService after a successful transcription.

Stored shape (one event_data row per key):
    summary     → free text, default ""
    category    → the model's label (known ones case-normalized), default "Other"
    importance  → Low | Medium | High, default "Low"
    entities    → JSON text, default "{}"
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

EVENT_CATEGORIES = ("Work", "Personal", "Health", "Finance", "Idea", "Shopping", "Social", "Other")
IMPORTANCE_VALUES = ("Low", "Medium", "High")

DEFAULT_EVENT_CATEGORY = "Other"
DEFAULT_EVENT_IMPORTANCE = "Low"

# Transcriptions at or below this length are not worth an extraction call
MIN_EXTRACTION_LENGTH = 5

RESPONSE_PREVIEW_CHARS = 200

EXTRACTION_SYSTEM_PROMPT = """You are an AI assistant parsing daily life voice notes. Extract meaningful structured data.
Return ONLY a raw JSON object (no markdown formatting).
Structure:
{
    "summary": "Concise 1-sentence summary",
    "category": "One of: Work, Personal, Health, Finance, Idea, Shopping, Social, Other",
    "importance": "Low/Medium/High",
    "entities": {
        "people": ["names..."],
        "money": ["amounts..."],
        "dates": ["times/dates..."],
        "locations": ["places..."]
    }
}"""

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


class ExtractedEvent(BaseModel):
    """Validated extraction result. Falsy values fall back to the defaults."""

    summary: str = ""
    category: str = DEFAULT_EVENT_CATEGORY
    importance: str = DEFAULT_EVENT_IMPORTANCE
    entities: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v: Any) -> str:
        if not v:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> str:
        if not v:
            return DEFAULT_EVENT_CATEGORY
        label = str(v).strip()
        for known in EVENT_CATEGORIES:
            if label.lower() == known.lower():
                return known
        logger.info("Event category %r is outside the prompt list, storing as-is", label)
        return label or DEFAULT_EVENT_CATEGORY

    @field_validator("importance", mode="before")
    @classmethod
    def _importance(cls, v: Any) -> str:
        if not v:
            return DEFAULT_EVENT_IMPORTANCE
        for known in IMPORTANCE_VALUES:
            if str(v).strip().lower() == known.lower():
                return known
        logger.warning("Unknown importance %r, using %s", v, DEFAULT_EVENT_IMPORTANCE)
        return DEFAULT_EVENT_IMPORTANCE

    @field_validator("entities", mode="before")
    @classmethod
    def _entities(cls, v: Any) -> Dict[str, Any]:
        if not v:
            return {}
        if not isinstance(v, dict):
            logger.warning("Extracted entities is a %s, not an object; storing {}", type(v).__name__)
            return {}
        return v

    def to_rows(self) -> List[Tuple[str, str]]:
        """(key, value) pairs in the order they are written to event_data."""
        return [
            ("summary", self.summary),
            ("category", self.category),
            ("importance", self.importance),
            ("entities", json.dumps(self.entities, ensure_ascii=False)),
        ]


def should_extract(transcription: Optional[str]) -> bool:
    return bool(transcription) and len(transcription) > MIN_EXTRACTION_LENGTH


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def slice_json_object(text: str) -> Optional[str]:
    """Returns text[first '{' : last '}'] inclusive, or None if there is no such span."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    return text[start:end + 1]


def parse_extraction(response_text: Optional[str]) -> Optional[ExtractedEvent]:
    """
    Parse a model response into an ExtractedEvent.

    Returns:
        The validated result, or None when the response holds no decodable
        JSON object. Every failure is logged with a preview of the response.
    """
    cleaned = strip_code_fences(response_text or "")
    candidate = slice_json_object(cleaned)
    preview = cleaned[:RESPONSE_PREVIEW_CHARS]

    if candidate is None:
        logger.warning("Extraction response contained no JSON object: %r", preview)
        return None

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("Extraction response is not valid JSON (%s): %r", e.msg, preview)
        return None

    if not isinstance(data, dict):
        logger.warning("Extraction response is not a JSON object: %r", preview)
        return None

    try:
        return ExtractedEvent.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "Extraction response failed validation (%d errors): %r",
            e.error_count(),
            preview,
        )
        return None
