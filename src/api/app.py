"""
FastAPI application for SuperTeacher.

A thin HTTP surface over the conversation engine: text messages, image
uploads, image URLs and a greeting endpoint. The engine never raises, so
routes only validate input and shape the response.
"""

from typing import Optional

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, File, Form, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from api.health import VERSION, router as health_router
from api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from api.schemas import ChatRequest, ChatResponse, GreetingRequest, ImageUrlRequest
from config.logging_config import setup_logging
from config.settings import Settings, get_settings
from conversation.engine import ConversationEngine
from conversation.factory import build_engine
from core.models import generate_user_id
from utils.validators import validate_image_upload


def create_app(engine: Optional[ConversationEngine] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        engine: Conversation engine to serve (built from settings if omitted)
        settings: Application settings (loaded from the environment if omitted)

    Returns:
        FastAPI application instance

    Raises:
        pydantic.ValidationError | MissingAPIKeyError: on invalid configuration
    """
    settings = settings or get_settings()
    setup_logging(level=settings.log_level, log_file=settings.log_file, serialize=settings.log_json)
    engine = engine or build_engine(settings)

    app = FastAPI(
        title="SuperTeacher",
        description="Conversational grading assistant for teachers",
        version=VERSION,
    )
    app.state.engine = engine
    app.state.settings = settings

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Something went wrong. Please try again."},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    # Generates/reads X-Request-ID; outermost so the id is set for logging
    app.add_middleware(CorrelationIdMiddleware, validator=lambda x: True)

    app.include_router(health_router, tags=["health"])

    async def respond(user_id: str, reply: str) -> ChatResponse:
        session = await engine.get_session(user_id)
        return ChatResponse(user_id=user_id, reply=reply, step=session.step.value)

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest) -> ChatResponse:
        """Send a text message."""
        user_id = request.user_id or generate_user_id()
        reply = await engine.handle_text(user_id, request.message)
        return await respond(user_id, reply)

    @app.post("/api/chat/upload", response_model=ChatResponse)
    async def upload_image(
        file: UploadFile = File(...),
        user_id: Optional[str] = Form(default=None),
    ) -> ChatResponse:
        """
        Upload an image (question paper or answer sheet).

        Rejects files over the size limit and anything Pillow cannot decode.
        """
        content = await validate_image_upload(file, settings.max_upload_bytes)
        user_id = (user_id or "").strip() or generate_user_id()
        reply = await engine.handle_image(user_id, content, filename=file.filename)
        return await respond(user_id, reply)

    @app.post("/api/chat/image-url", response_model=ChatResponse)
    async def image_url(request: ImageUrlRequest) -> ChatResponse:
        """Send an image by URL."""
        user_id = request.user_id or generate_user_id()
        reply = await engine.handle_image(user_id, request.image_url)
        return await respond(user_id, reply)

    @app.post("/api/chat/greeting", response_model=ChatResponse)
    async def greeting(request: Optional[GreetingRequest] = None) -> ChatResponse:
        """Start a new conversation and get the greeting."""
        user_id = (request.user_id if request else None) or generate_user_id()
        reply = await engine.greet(user_id)
        return await respond(user_id, reply)

    return app
