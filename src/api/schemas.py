"""
Pydantic schemas for API request/response validation.

These schemas define the structure and validation rules for the chat endpoints.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional

MAX_MESSAGE_LENGTH = 10000


# ============================================================================
# Chat Schemas
# ============================================================================

class ChatRequest(BaseModel):
    """A text message from the teacher."""
    user_id: Optional[str] = None
    message: str = Field(default="", max_length=MAX_MESSAGE_LENGTH)

    @field_validator('user_id')
    @classmethod
    def blank_user_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class ImageUrlRequest(BaseModel):
    """An image the teacher has already uploaded somewhere."""
    user_id: Optional[str] = None
    image_url: str = Field(min_length=1)

    @field_validator('image_url')
    @classmethod
    def validate_image_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("image_url must be an http(s) URL")
        return v


class GreetingRequest(BaseModel):
    """Start (or restart) a conversation."""
    user_id: Optional[str] = None


class ChatResponse(BaseModel):
    """The assistant's reply and where the conversation now stands."""
    user_id: str
    reply: str
    step: str


# ============================================================================
# Health Schemas
# ============================================================================

class HealthResponse(BaseModel):
    status: str
    version: str
    workflow: str
    demo_mode: bool
    active_sessions: int = 0
