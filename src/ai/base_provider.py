"""
Base classes for the external AI collaborators.

Defines the vision (OCR) and grading client interfaces the core consumes,
image helpers shared by implementations, and the translation of SDK and
transport exceptions into ProviderError subclasses.
"""

import asyncio
import base64
import re
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import unquote, urlparse

from loguru import logger
from PIL import Image, UnidentifiedImageError

from core.exceptions import (
    ProviderError,
    APIConnectionError,
    APITimeoutError,
    APIResponseError,
    ParsingError,
)
from core.models import GradingRequest

# Raw bytes, or a URL (http(s):// or file://) / local path
ImageSource = Union[bytes, str]


def _sanitize_for_logging(text: str) -> str:
    """
    Sanitize text for logging by removing potential API keys and secrets.

    Args:
        text: Text to sanitize

    Returns:
        Sanitized text with sensitive values masked
    """
    if not text:
        return text

    patterns = [
        (r'(sk-[a-zA-Z0-9_-]{20,})', 'sk-[REDACTED]'),
        (r'(api[_-]?key\s*[=:]\s*["\']?)([a-zA-Z0-9_-]{20,})', r'\1[REDACTED]'),
        (r'(Bearer\s+)([a-zA-Z0-9_.-]{20,})', r'\1[REDACTED]'),
    ]
    sanitized = text
    for pattern, replacement in patterns:
        sanitized = re.sub(pattern, replacement, sanitized)
    return sanitized


class APIErrorContext:
    """
    Context manager for consistent API error handling.

    Wraps API calls with proper error translation and logging.

    Usage:
        with APIErrorContext("vision call", "openai"):
            response = await client.call(...)
    """

    def __init__(self, operation: str, provider_name: str = "unknown"):
        """
        Initialize error context.

        Args:
            operation: Description of the operation being performed
            provider_name: Name of the provider (for error messages)
        """
        self.operation = operation
        self.provider_name = provider_name

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False

        # Already translated, or cancellation
        if issubclass(exc_type, ProviderError) or not issubclass(exc_type, Exception):
            return False

        logger.warning(
            f"{self.provider_name} API error during {self.operation}: "
            f"{_sanitize_for_logging(str(exc_val))}"
        )

        exc_name = exc_type.__name__
        message = _sanitize_for_logging(str(exc_val))

        if issubclass(exc_type, asyncio.TimeoutError) or any(name in exc_name for name in ['Timeout', 'TimedOut']):
            raise APITimeoutError(f"Timeout during {self.operation}: {message}") from exc_val

        if any(name in exc_name for name in ['Connection', 'Connect', 'Network']):
            raise APIConnectionError(f"Failed to connect during {self.operation}: {message}") from exc_val

        if 'Rate' in exc_name or 'Status' in exc_name or '429' in message:
            raise APIResponseError(f"Bad response during {self.operation}: {message}") from exc_val

        if any(name in exc_name for name in ['JSON', 'Parse', 'Decode']):
            raise ParsingError(f"Failed to parse response during {self.operation}: {message}") from exc_val

        raise ProviderError(f"API error during {self.operation}: {message}") from exc_val


# ==================== IMAGE UTILITIES ====================

def is_remote_url(image: ImageSource) -> bool:
    return isinstance(image, str) and image.startswith(("http://", "https://"))


def local_path(image: str) -> Path:
    """Path for a file:// URL or a plain local path."""
    if image.startswith("file://"):
        return Path(unquote(urlparse(image).path))
    return Path(image)


def read_image_bytes(image: ImageSource) -> bytes:
    """
    Load a local image.

    Raises:
        APIResponseError: if the file cannot be read
    """
    if isinstance(image, bytes):
        return image
    try:
        return local_path(image).read_bytes()
    except OSError as e:
        raise APIResponseError(f"Cannot read image {image}: {e}") from e


def image_mime_type(data: bytes) -> str:
    """MIME type detected by Pillow, defaulting to PNG."""
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = (img.format or "PNG").lower()
    except (UnidentifiedImageError, OSError):
        return "image/png"
    return "image/jpeg" if fmt == "jpg" else f"image/{fmt}"


def image_to_data_url(data: bytes) -> str:
    b64 = base64.b64encode(data).decode("utf-8")
    return f"data:{image_mime_type(data)};base64,{b64}"


def image_hint(image: ImageSource) -> str:
    """Filename or URL usable as a hint; empty for raw bytes."""
    if isinstance(image, bytes):
        return ""
    return Path(urlparse(image).path).name or image


# ==================== INTERFACES ====================

class VisionClient(ABC):
    """Extracts text from an image."""

    name: str = "vision"

    @abstractmethod
    async def extract_text(self, image: ImageSource, hint: Optional[str] = None) -> str:
        """
        Extract text from an image.

        Must raise (ProviderError) on transport errors or empty output
        instead of returning an empty string.
        """


class GradingClient(ABC):
    """Grades an answer and returns the raw JSON payload."""

    name: str = "grader"

    @abstractmethod
    async def grade(self, request: GradingRequest) -> Dict[str, Any]:
        """
        Request a grade.

        Raises:
            ProviderError: on transport errors or a non-JSON body
        """


class PaperStructurer(ABC):
    """Turns question-paper text into ``{totalMarks, questions: [...]}`` JSON."""

    name: str = "structurer"

    @abstractmethod
    async def structure_paper(self, paper_text: str) -> Dict[str, Any]:
        """
        Request the paper structure.

        Raises:
            ProviderError: on transport errors or a non-JSON body
        """
