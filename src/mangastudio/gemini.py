from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from mangastudio.codec import ImagePayload
from mangastudio.errors import (
    EDIT_MESSAGES,
    GENERATE_MESSAGES,
    DetectionError,
    MissingApiKeyError,
    MissingImageError,
    NoCandidateError,
    PolicyBlockedError,
    RemoteCallError,
    SafetyBlockedError,
    TextOnlyResponseError,
)
from mangastudio.models import BoundingBox, Bubble, EditedBubble

logger = logging.getLogger(__name__)

DETECT_INSTRUCTION = (
    "Analyze this image to identify all speech bubbles or text boxes. For each one, provide its bounding "
    "box coordinates (x1, y1, x2, y2 as percentages of image dimensions from 0.0 to 1.0) and the exact "
    "text content inside it. Return the output as a JSON object matching the provided schema."
)


class DetectedBox(BaseModel):
    x1: float
    y1: float
    x2: float
    y2: float


class DetectedBubble(BaseModel):
    box: DetectedBox
    text: str


_DETECTED_LIST = TypeAdapter(List[DetectedBubble])


@dataclass(frozen=True)
class GeminiConfig:
    api_key: Optional[str]
    image_model: str = "gemini-2.5-flash-image"
    text_model: str = "gemini-2.5-flash"

    @classmethod
    def from_config(cls, config: Dict[str, Any], api_key: Optional[str]) -> "GeminiConfig":
        raw = config.get("gemini", {}) if isinstance(config, dict) else {}
        return cls(
            api_key=api_key,
            image_model=str(raw.get("image_model") or cls.image_model),
            text_model=str(raw.get("text_model") or cls.text_model),
        )


def build_edit_instruction(bubbles: Sequence[EditedBubble]) -> str:
    regions = "\n\n".join(
        f"Region {index}:\n"
        f"- Bounding Box (percentages): x1={bubble.box.x1:.4f}, y1={bubble.box.y1:.4f}, "
        f"x2={bubble.box.x2:.4f}, y2={bubble.box.y2:.4f}\n"
        f'- Original Text: "{bubble.text}"\n'
        f'- New Text: "{bubble.new_text}"'
        for index, bubble in enumerate(bubbles, start=1)
    )
    return (
        "You are an expert image in-painting specialist. Your task is to replace text within specific "
        "regions of the provided image.\n\n"
        "**CRITICAL INSTRUCTIONS:**\n"
        "1.  **Preserve Style:** You MUST perfectly preserve the original art style, font style, color, "
        "texture, and background within each bounding box. The edit should be seamless and undetectable.\n"
        "2.  **Modify ONLY Text:** Do NOT alter any part of the image outside the provided bounding boxes.\n"
        "3.  **Accuracy:** Replace the original text with the new text exactly as provided.\n\n"
        f"Here are the regions to modify:\n{regions}\n\n"
        "The final output must be only the modified image. Do not output any text."
    )


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


def _response_parts(response: Any) -> List[Any]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def _response_text(response: Any) -> str:
    chunks = [part.text for part in _response_parts(response) if isinstance(getattr(part, "text", None), str)]
    return "".join(chunks).strip()


def extract_image(response: Any, messages: Dict[str, str]) -> str:
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = _enum_value(getattr(feedback, "block_reason", None))
    if block_reason:
        if block_reason == "SAFETY":
            raise SafetyBlockedError(messages["safety"])
        raise PolicyBlockedError(messages["policy"].format(reason=block_reason), block_reason)

    if not getattr(response, "candidates", None):
        raise NoCandidateError(messages["no_candidate"])

    for part in _response_parts(response):
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            payload = ImagePayload(data=inline.data, mime_type=inline.mime_type or "image/png")
            return payload.to_data_url()

    returned_text = _response_text(response)
    if returned_text:
        raise TextOnlyResponseError(messages["text_only"].format(text=returned_text), returned_text)
    raise MissingImageError(messages["no_image"])


def parse_bubbles(raw: str) -> List[Bubble]:
    try:
        detected = _DETECTED_LIST.validate_json((raw or "").strip())
    except SchemaValidationError as exc:
        raise DetectionError() from exc
    return [
        Bubble(
            id=f"bubble-{index}",
            box=BoundingBox.from_raw(item.box.x1, item.box.y1, item.box.x2, item.box.y2),
            text=item.text,
        )
        for index, item in enumerate(detected, start=1)
    ]


def _image_part(image: ImagePayload) -> types.Part:
    return types.Part.from_bytes(data=image.data, mime_type=image.mime_type)


class GeminiClient:
    def __init__(self, config: GeminiConfig) -> None:
        self.config = config
        self._client: Optional[genai.Client] = None

    def _ai(self) -> genai.Client:
        # Built on first use so the app starts without a key.
        if not self.config.api_key:
            raise MissingApiKeyError()
        if self._client is None:
            self._client = genai.Client(api_key=self.config.api_key)
        return self._client

    async def _generate_image(self, parts: List[types.Part], messages: Dict[str, str]) -> str:
        ai = self._ai()
        try:
            response = await ai.aio.models.generate_content(
                model=self.config.image_model,
                contents=types.Content(role="user", parts=parts),
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        except genai_errors.APIError as exc:
            logger.error("Error calling Gemini API: %s", exc)
            raise RemoteCallError(str(exc) or messages["unknown"]) from exc
        try:
            return extract_image(response, messages)
        except RemoteCallError as exc:
            logger.error("Gemini returned no usable image: %s", exc)
            raise

    async def generate_panel(self, images: Sequence[ImagePayload], instruction: str) -> str:
        parts = [_image_part(image) for image in images]
        parts.append(types.Part.from_text(text=instruction))
        return await self._generate_image(parts, GENERATE_MESSAGES)

    async def detect_bubbles(self, image: ImagePayload) -> List[Bubble]:
        try:
            ai = self._ai()
            response = await ai.aio.models.generate_content(
                model=self.config.text_model,
                contents=types.Content(
                    role="user",
                    parts=[_image_part(image), types.Part.from_text(text=DETECT_INSTRUCTION)],
                ),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=list[DetectedBubble],
                ),
            )
            return parse_bubbles(_response_text(response))
        except MissingApiKeyError:
            raise
        except DetectionError:
            logger.error("Error detecting text bubbles: malformed response")
            raise
        except Exception as exc:
            logger.error("Error detecting text bubbles: %s", exc)
            raise DetectionError() from exc

    async def edit_text(self, image: ImagePayload, bubbles: Sequence[EditedBubble]) -> str:
        if not bubbles:
            raise ValueError("edit_text needs at least one edited bubble")
        parts = [_image_part(image), types.Part.from_text(text=build_edit_instruction(bubbles))]
        return await self._generate_image(parts, EDIT_MESSAGES)
