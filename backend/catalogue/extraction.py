"""
Client for the hosted multimodal model.

Sends the fixed extraction prompt plus the inlined image to the Gemini
``generateContent`` endpoint and returns the JSON the model wrote.
"""

import base64
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx

from catalogue.errors import ExtractionError, ExtractionParseError
from catalogue.prompts import EXTRACTION_PROMPT
from catalogue.schemas import ExtractionResult

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?|```$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove a leading ``` / ```json marker and a trailing ``` marker."""
    return _FENCE_RE.sub("", text.strip()).strip()


def load_reply(text: str) -> Any:
    """
    Decode the model's reply as JSON, without checking its shape.

    Raises:
        ExtractionParseError: If the cleaned text is not valid JSON
    """
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExtractionParseError("Model reply is not valid JSON", detail=str(e)) from e


def extraction_from_payload(payload: Any) -> ExtractionResult:
    """Read decoded JSON as an extraction; anything but an object is empty."""
    if not isinstance(payload, dict):
        logger.warning("[Model] Expected a JSON object, got %s", type(payload).__name__)
        return ExtractionResult()
    return ExtractionResult.model_validate(payload)


def parse_extraction(text: str) -> ExtractionResult:
    """
    Parse the model's reply into an ExtractionResult.

    Raises:
        ExtractionParseError: If the cleaned text is not valid JSON
    """
    return extraction_from_payload(load_reply(text))


class GeminiExtractionClient:
    """
    Thin wrapper around the Gemini REST API.

    One call per image, no retry; failures surface as ExtractionError.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _build_request(self, image_bytes: bytes, mime_type: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": EXTRACTION_PROMPT},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(image_bytes).decode("ascii"),
                            }
                        },
                    ],
                }
            ]
        }

    @staticmethod
    def _reply_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def extract(self, image_bytes: bytes, mime_type: str) -> Any:
        """
        Ask the model to describe the product in the image.

        Args:
            image_bytes: Raw image content
            mime_type: MIME type of the image (e.g. "image/jpeg")

        Returns:
            The decoded JSON reply, unchanged (normally an object keyed by table)

        Raises:
            ExtractionError: If the call fails or the reply is empty
            ExtractionParseError: If the reply is not valid JSON
        """
        url = f"{self.base_url}/models/{self.model}:generateContent"

        try:
            response = await self.client.post(
                url,
                params={"key": self.api_key},
                json=self._build_request(image_bytes, mime_type),
            )
        except httpx.HTTPError as e:
            logger.error("[Model] Request to %s failed: %s", self.model, e)
            raise ExtractionError("Model request failed", detail=str(e)) from e

        if response.status_code != 200:
            logger.error("[Model] HTTP %s from %s", response.status_code, self.model)
            raise ExtractionError(
                f"Model service error: {response.status_code}",
                detail=response.text[:500],
            )

        try:
            text = self._reply_text(response.json())
        except ValueError as e:
            raise ExtractionError("Model service returned a non-JSON body", detail=str(e)) from e
        if not text.strip():
            raise ExtractionError("Model returned an empty reply")

        logger.debug("[Model] Reply: %s", text)
        return load_reply(text)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
