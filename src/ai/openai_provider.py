"""
OpenAI-compatible API provider.

Works with any OpenAI-compatible API (OpenAI, GLM, OpenRouter, etc.)
Serves as the vision (OCR) collaborator, the grading collaborator and the
question-paper structurer.
Retries are not handled here; callers wrap calls in the shared RetryPolicy.
"""

import time
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from openai import AsyncOpenAI

from ai.base_provider import (
    APIErrorContext,
    GradingClient,
    PaperStructurer,
    ImageSource,
    VisionClient,
    image_to_data_url,
    is_remote_url,
    read_image_bytes,
)
from config.constants import MAX_TOKENS, TEMPERATURE, API_CONNECT_TIMEOUT, API_READ_TIMEOUT
from core.exceptions import APIResponseError, ParsingError
from core.models import GradingRequest
from prompts.grading import SYSTEM_MESSAGE, build_grading_prompt
from prompts.ocr import build_paper_structure_prompt
from utils.json_extractor import extract_json_from_response


class OpenAIProvider(VisionClient, GradingClient, PaperStructurer):
    """
    Provider for OpenAI-compatible APIs.

    Configuration is handled by the factory using config/providers.py registry.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        vision_model: Optional[str] = None,
        name: Optional[str] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.vision_model = vision_model or model
        self.name = name or model or "openai"
        self.base_url = base_url
        self.client = client or self._create_client(extra_headers)

    def _create_client(self, extra_headers: Optional[Dict[str, str]]) -> AsyncOpenAI:
        """Create the async OpenAI client."""
        timeout = httpx.Timeout(
            connect=API_CONNECT_TIMEOUT,
            read=API_READ_TIMEOUT,
            write=API_CONNECT_TIMEOUT,
            pool=API_CONNECT_TIMEOUT
        )

        client_kwargs: Dict[str, Any] = {
            "api_key": self.api_key,
            "timeout": timeout,
            # Retries belong to RetryPolicy
            "max_retries": 0,
        }
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        if extra_headers:
            client_kwargs["default_headers"] = extra_headers

        return AsyncOpenAI(**client_kwargs)

    # ==================== IMAGE HANDLING ====================

    def _prepare_image_content(self, image: ImageSource) -> Dict[str, Any]:
        """Convert an image to the chat API format."""
        url = image if is_remote_url(image) else image_to_data_url(read_image_bytes(image))
        return {"type": "image_url", "image_url": {"url": url, "detail": "high"}}

    # ==================== API CALLS ====================

    async def extract_text(self, image: ImageSource, hint: Optional[str] = None) -> str:
        """Read the text of an image with the vision model."""
        start_time = time.time()
        content = [
            {"type": "text", "text": hint or "Extract all text from this image exactly as it appears."},
            self._prepare_image_content(image),
        ]

        with APIErrorContext("vision call", self.name):
            response = await self.client.chat.completions.create(
                model=self.vision_model,
                messages=[{"role": "user", "content": content}],
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
            )

        result = (response.choices[0].message.content or "").strip() if response.choices else ""
        logger.debug(
            f"{self.name} vision call: {len(result)} chars in {(time.time() - start_time) * 1000:.0f} ms"
        )
        if not result:
            raise APIResponseError(f"{self.name} returned no text for the image")
        return result

    async def grade(self, request: GradingRequest) -> Dict[str, Any]:
        """Ask the model for a JSON grading payload."""
        start_time = time.time()
        messages = [
            {"role": "system", "content": SYSTEM_MESSAGE},
            {"role": "user", "content": build_grading_prompt(request)},
        ]

        with APIErrorContext("grading call", self.name):
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
                response_format={"type": "json_object"},
            )

        raw = (response.choices[0].message.content or "") if response.choices else ""
        logger.debug(
            f"{self.name} grading call: {len(raw)} chars in {(time.time() - start_time) * 1000:.0f} ms"
        )
        payload = extract_json_from_response(raw)
        if payload is None:
            raise ParsingError(f"{self.name} returned a non-JSON grading response", {"preview": raw[:200]})
        return payload

    async def structure_paper(self, paper_text: str) -> Dict[str, Any]:
        """Ask the model for the question/marks structure of a paper."""
        start_time = time.time()

        with APIErrorContext("structuring call", self.name):
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_paper_structure_prompt(paper_text)}],
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
                response_format={"type": "json_object"},
            )

        raw = (response.choices[0].message.content or "") if response.choices else ""
        logger.debug(
            f"{self.name} structuring call: {len(raw)} chars in {(time.time() - start_time) * 1000:.0f} ms"
        )
        payload = extract_json_from_response(raw)
        if payload is None:
            raise ParsingError(f"{self.name} returned a non-JSON paper structure", {"preview": raw[:200]})
        return payload
