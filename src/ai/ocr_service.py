"""
Remote OCR service client.

Posts the image as multipart form data to a text-extraction endpoint that
answers ``{"extracted_text": "..."}``.
"""

from pathlib import Path
from typing import Optional

import httpx
from loguru import logger

from ai.base_provider import (
    APIErrorContext,
    ImageSource,
    VisionClient,
    image_hint,
    image_mime_type,
    is_remote_url,
    read_image_bytes,
)
from config.constants import API_CONNECT_TIMEOUT, API_READ_TIMEOUT
from core.exceptions import APIResponseError


class RemoteOcrClient(VisionClient):
    """VisionClient backed by an HTTP OCR endpoint."""

    name = "remote-ocr"

    def __init__(self, endpoint: str, timeout: Optional[httpx.Timeout] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.endpoint = endpoint
        self.timeout = timeout or httpx.Timeout(API_READ_TIMEOUT, connect=API_CONNECT_TIMEOUT)
        self.transport = transport

    async def extract_text(self, image: ImageSource, hint: Optional[str] = None) -> str:
        filename = image_hint(image) or "upload.png"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            with APIErrorContext("remote OCR", self.name):
                if is_remote_url(image):
                    fetched = await client.get(image)
                    fetched.raise_for_status()
                    data = fetched.content
                else:
                    data = read_image_bytes(image)

                response = await client.post(
                    self.endpoint,
                    files={"file": (Path(filename).name, data, image_mime_type(data))},
                )
                response.raise_for_status()
                body = response.json()

        text = body.get("extracted_text") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise APIResponseError("OCR service returned no extracted_text", {"endpoint": self.endpoint})
        logger.debug(f"Remote OCR extracted {len(text)} chars from {filename}")
        return text.strip()
