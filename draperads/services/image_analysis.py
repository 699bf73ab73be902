from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal

from anthropic import Anthropic

from draperads.config import settings
from draperads.db.enums import CallToActionEnum

logger = logging.getLogger("ai.image_analysis")

SUPPORTED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

ANALYSIS_PROMPT = (
    "You are an expert social media advertiser. Look at this image and suggest copy for a "
    "Facebook/Instagram ad that uses it.\n\n"
    "Respond with JSON only, using exactly these keys:\n"
    '- "suggestedHeadline": a short, attention-grabbing headline (max 40 characters)\n'
    '- "suggestedPrimaryText": engaging primary text of 2-3 sentences\n'
    '- "suggestedDescription": a one-sentence description\n'
    '- "suggestedCta": one of "learn_more", "sign_up", "shop_now", "download", "get_offer"\n'
)

SuggestionStatus = Literal["generated", "unavailable"]


@dataclass(frozen=True)
class CopySuggestions:
    headline: str
    primary_text: str
    description: str
    cta: str

    def as_payload(self) -> dict[str, str]:
        return {
            "suggestedHeadline": self.headline,
            "suggestedPrimaryText": self.primary_text,
            "suggestedDescription": self.description,
            "suggestedCta": self.cta,
        }


@dataclass(frozen=True)
class CopySuggestionResult:
    status: SuggestionStatus
    suggestions: CopySuggestions

    @property
    def available(self) -> bool:
        return self.status == "generated"


FALLBACK_SUGGESTIONS = CopySuggestions(
    headline="Create stunning ads in minutes!",
    primary_text=(
        "Transform your social media presence with our AI-powered design tools. "
        "No design skills needed!"
    ),
    description="Try it today and see the difference.",
    cta=CallToActionEnum.sign_up.value,
)


def _extract_first_json_object(text: str) -> Dict[str, Any]:
    """
    Extract and parse the first top-level JSON object from an arbitrary text blob.

    Models often wrap the requested JSON in a sentence or a code fence; this keeps the
    object when one is present.
    """

    if not isinstance(text, str):
        raise ValueError("Input text must be a string")
    raw = text.strip()
    if not raw:
        raise ValueError("Input text is empty")

    start: int | None = None
    depth = 0
    in_string = False
    escape = False

    for i, ch in enumerate(raw):
        if start is None:
            if ch == "{":
                start = i
                depth = 1
                in_string = False
                escape = False
            continue

        if in_string:
            if escape:
                escape = False
                continue
            if ch == "\\":
                escape = True
                continue
            if ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
            continue
        if ch == "{":
            depth += 1
            continue
        if ch == "}":
            depth -= 1
            if depth == 0:
                candidate = raw[start : i + 1].strip()
                parsed = json.loads(candidate)
                if not isinstance(parsed, dict):
                    raise ValueError("Extracted JSON was not an object")
                return parsed

    raise ValueError("Unable to locate a complete JSON object in response text")


def _coerce_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_suggestions(text: str) -> CopySuggestions:
    parsed = _extract_first_json_object(text)
    cta = _coerce_text(parsed.get("suggestedCta")) or CallToActionEnum.learn_more.value
    return CopySuggestions(
        headline=_coerce_text(parsed.get("suggestedHeadline")),
        primary_text=_coerce_text(parsed.get("suggestedPrimaryText")),
        description=_coerce_text(parsed.get("suggestedDescription")),
        cta=cta,
    )


class ImageCopyAnalyzer:
    def __init__(self, *, api_key: str | None, model: str, max_tokens: int, timeout: float) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "ImageCopyAnalyzer":
        return cls(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.ANTHROPIC_MODEL,
            max_tokens=settings.ANTHROPIC_MAX_TOKENS,
            timeout=settings.ANTHROPIC_TIMEOUT_SECONDS,
        )

    def _create_message(self, *, image_b64: str, media_type: str) -> Any:
        client = Anthropic(api_key=self.api_key, timeout=self.timeout)
        return client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": ANALYSIS_PROMPT},
                        {
                            "type": "image",
                            "source": {"type": "base64", "media_type": media_type, "data": image_b64},
                        },
                    ],
                }
            ],
        )

    def analyze(self, path: Path, mime_type: str) -> CopySuggestionResult:
        """Suggest ad copy for an image; any failure yields the fallback copy marked unavailable."""
        try:
            if not self.api_key:
                raise RuntimeError("ANTHROPIC_API_KEY is not configured")
            media_type = mime_type if mime_type in SUPPORTED_IMAGE_TYPES else "image/jpeg"
            image_b64 = base64.b64encode(path.read_bytes()).decode("ascii")
            message = self._create_message(image_b64=image_b64, media_type=media_type)
            content = getattr(message, "content", None) or []
            if not content:
                raise ValueError("Model response had no content blocks")
            first_block = content[0]
            if getattr(first_block, "type", None) != "text":
                raise ValueError(f"Unexpected content block type: {getattr(first_block, 'type', None)}")
            suggestions = parse_suggestions(first_block.text)
        except Exception as exc:
            logger.warning(
                "Image analysis failed; using fallback suggestions",
                exc_info=exc,
                extra={"path": str(path), "mime_type": mime_type, "model": self.model},
            )
            return CopySuggestionResult(status="unavailable", suggestions=FALLBACK_SUGGESTIONS)

        logger.info("Generated ad copy suggestions", extra={"path": str(path), "model": self.model})
        return CopySuggestionResult(status="generated", suggestions=suggestions)
