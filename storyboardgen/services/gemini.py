"""
Gemini Client

Async REST client for the Gemini ``generateContent`` endpoint: scene images,
captions, scene summaries and scene suggestions.

Provider failures are turned into tagged exceptions by
``normalize_provider_error``; no other code inspects provider messages.
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from storyboardgen.core.config import settings
from storyboardgen.core.constants import DEFAULT_SCENE_SUGGESTION_COUNT, ImageSize
from storyboardgen.core.exceptions import (
    CreditExhaustedUpstreamError,
    MissingApiKeyError,
    ModelUnavailableError,
    StoryboardError,
)
from storyboardgen.core.logging import get_logger
from storyboardgen.models.generation import (
    CaptionRules,
    Captions,
    ReferenceImage,
    RuleGroup,
    SceneSummaries,
)
from .prompts import build_caption_prompt, build_suggestion_prompt, build_summary_prompt

logger = get_logger("services.gemini")

KEY_NOT_FOUND_MARKER = "Requested entity was not found"
QUOTA_MARKERS = ("RESOURCE_EXHAUSTED", "quota")


def normalize_provider_error(status_code: Optional[int], message: str) -> StoryboardError:
    """Map a provider failure to a tagged error."""
    message = message or ""
    if KEY_NOT_FOUND_MARKER in message:
        return MissingApiKeyError()
    if status_code == 429 or any(marker.lower() in message.lower() for marker in QUOTA_MARKERS):
        return CreditExhaustedUpstreamError(
            "Generation credits exhausted at the provider",
            {"status_code": status_code} if status_code else {},
        )
    return ModelUnavailableError(message or "Model request failed", status_code=status_code)


@dataclass
class GeneratedImage:
    """Decoded image returned by the model."""
    data: bytes
    mime_type: str = "image/png"

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def _strip_fences(text: str) -> str:
    return re.sub(r"```json|```", "", text, flags=re.IGNORECASE).strip()


def extract_json_object(text: str) -> Dict[str, Any]:
    cleaned = _strip_fences(text)
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ModelUnavailableError("Could not parse JSON object from model response")
    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise ModelUnavailableError(f"Invalid JSON from model: {e}") from e


def extract_json_array(text: str) -> List[Any]:
    cleaned = _strip_fences(text)
    start, end = cleaned.find("["), cleaned.rfind("]")
    if start == -1 or end <= start:
        raise ModelUnavailableError("Could not parse JSON array from model response")
    try:
        parsed = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise ModelUnavailableError(f"Invalid JSON from model: {e}") from e
    if not isinstance(parsed, list):
        raise ModelUnavailableError("Model response is not a JSON array")
    return parsed


def _reference_parts(references: Sequence[ReferenceImage]) -> List[Dict[str, Any]]:
    return [
        {"inline_data": {"mime_type": ref.mime_type, "data": ref.base64_data}}
        for ref in references
    ]


class GeminiClient:
    """Client for Google Gemini generateContent."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(
        self,
        api_key: str = None,
        image_model: str = None,
        text_model: str = None,
        timeout: float = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.image_model = image_model or settings.gemini_image_model
        self.text_model = text_model or settings.gemini_text_model
        self.timeout = timeout or settings.gemini_timeout_seconds
        self._http_client = http_client

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    async def _generate_content(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise MissingApiKeyError()

        url = f"{self.BASE_URL}/{model}:generateContent"
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=body, headers=self._get_headers())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=body, headers=self._get_headers())
        except httpx.TimeoutException as e:
            raise ModelUnavailableError(f"Model request timed out: {e}") from e
        except httpx.RequestError as e:
            raise ModelUnavailableError(f"Model request failed: {e}") from e

        if response.status_code >= 400:
            raise normalize_provider_error(response.status_code, self._error_message(response))

        try:
            return response.json()
        except ValueError as e:
            raise ModelUnavailableError("Model returned a non-JSON response") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            status = error.get("status", "")
            message = error.get("message", "")
            return f"{status}: {message}" if status else message
        return response.text

    @staticmethod
    def _parts(result: Dict[str, Any]) -> List[Dict[str, Any]]:
        candidates = result.get("candidates") or []
        if not candidates:
            return []
        return (candidates[0].get("content") or {}).get("parts") or []

    def _text(self, result: Dict[str, Any]) -> str:
        return "".join(part.get("text", "") for part in self._parts(result))

    async def generate_image(
        self,
        prompt: str,
        references: Sequence[ReferenceImage],
        size: ImageSize = ImageSize.SIZE_1K,
    ) -> GeneratedImage:
        """Render one scene image from a full prompt and reference images."""
        body = {
            "contents": [{"parts": [*_reference_parts(references), {"text": prompt}]}],
            "generationConfig": {
                "imageConfig": {"aspectRatio": "1:1", "imageSize": ImageSize(size).value},
            },
        }
        result = await self._generate_content(self.image_model, body)

        for part in self._parts(result):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                try:
                    data = base64.b64decode(inline["data"])
                except (binascii.Error, ValueError) as e:
                    raise ModelUnavailableError("Model returned undecodable image data") from e
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return GeneratedImage(data=data, mime_type=mime_type)

        raise ModelUnavailableError("No image data returned from API")

    async def generate_text(
        self,
        prompt: str,
        references: Sequence[ReferenceImage] = (),
    ) -> str:
        body = {"contents": [{"parts": [*_reference_parts(references), {"text": prompt}]}]}
        result = await self._generate_content(self.text_model, body)
        return self._text(result)

    async def generate_captions(
        self,
        prompts: Sequence[str],
        references: Sequence[ReferenceImage],
        rules: CaptionRules,
        guidelines: Sequence[RuleGroup] = (),
        hashtags: List[str] = None,
    ) -> Captions:
        """One TikTok and one Instagram caption per scene."""
        text = await self.generate_text(
            build_caption_prompt(prompts, rules, guidelines, hashtags),
            references,
        )
        parsed = extract_json_object(text)
        tiktok, instagram = parsed.get("tiktok"), parsed.get("instagram")
        if not isinstance(tiktok, list) or not isinstance(instagram, list):
            raise ModelUnavailableError("Caption response is missing platform lists")

        def pick(items: List[Any], idx: int) -> str:
            return str(items[idx] if idx < len(items) and items[idx] is not None else "").strip()

        return Captions(
            tiktok=[pick(tiktok, idx) for idx in range(len(prompts))],
            instagram=[pick(instagram, idx) for idx in range(len(prompts))],
        )

    async def generate_summaries(
        self,
        prompts: Sequence[str],
        guidelines: Sequence[RuleGroup] = (),
    ) -> SceneSummaries:
        """Short title and description per scene."""
        parsed = extract_json_array(
            await self.generate_text(build_summary_prompt(prompts, guidelines))
        )
        titles, descriptions = [], []
        for idx in range(len(prompts)):
            item = parsed[idx] if idx < len(parsed) and isinstance(parsed[idx], dict) else {}
            titles.append(str(item.get("title") or "").strip())
            descriptions.append(str(item.get("description") or "").strip())
        return SceneSummaries(titles=titles, descriptions=descriptions)

    async def suggest_scenes(self, topic: str, count: int = DEFAULT_SCENE_SUGGESTION_COUNT) -> List[str]:
        """Scene prompts drafted from a multi-line topic brief."""
        parsed = extract_json_array(
            await self.generate_text(build_suggestion_prompt(topic, count))
        )
        prompts = [str(item).strip() for item in parsed if item is not None]
        return [prompt for prompt in prompts if prompt][:count]
