"""FastAPI application proxying story suggestions to the language model."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import JSONResponse

from ..errors import GeneratorError
from ..generator import StoryGenerator
from ..settings import StoryWeaverSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SuggestSceneRequest(_CamelModel):
    """Context for suggesting the scene that follows ``currentSceneBody``."""

    story_title: str | None = Field(None, alias="storyTitle")
    story_description: str | None = Field(None, alias="storyDescription")
    current_scene_body: str | None = Field(None, alias="currentSceneBody")
    story_summary: str | None = Field(None, alias="storySummary")


class SuggestSceneResponse(_CamelModel):
    title: str
    body: str


class SuggestChoicesRequest(_CamelModel):
    scene_body: str | None = Field(None, alias="sceneBody")
    story_context: str | None = Field(None, alias="storyContext")


class ChoiceSuggestionResource(_CamelModel):
    text: str


class SuggestChoicesResponse(_CamelModel):
    choices: list[ChoiceSuggestionResource] = Field(default_factory=list)


class ImproveTextRequest(_CamelModel):
    scene_body: str | None = Field(None, alias="sceneBody")


class ImproveTextResponse(_CamelModel):
    improved_body: str = Field(..., alias="improvedBody")


class HealthResponse(_CamelModel):
    status: str = "ok"
    ai_configured: bool = Field(..., alias="aiConfigured")


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None


def _missing(**fields: str | None) -> list[str]:
    return [name for name, value in fields.items() if not value or not value.strip()]


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def create_app(
    generator: StoryGenerator | None = None,
    *,
    settings: StoryWeaverSettings | None = None,
) -> FastAPI:
    """Create the backend app; without a generator one is built from settings."""

    resolved_settings = settings or StoryWeaverSettings.from_env()
    active_generator = generator
    if active_generator is None:
        resolved_settings.warn_if_unconfigured()
        active_generator = resolved_settings.create_generator()

    app = FastAPI(
        title="StoryWeaver API",
        description="AI-powered assistance for branching interactive stories.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(resolved_settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    def _generate(
        operation: str,
        failure_message: str,
        call: Callable[[StoryGenerator], T],
    ) -> T | JSONResponse:
        if active_generator is None:
            return JSONResponse(
                status_code=500,
                content={
                    "error": failure_message,
                    "details": "AI service is not configured",
                },
            )
        try:
            return call(active_generator)
        except GeneratorError as exc:
            logger.exception("Error in %s", operation)
            return JSONResponse(
                status_code=500,
                content={"error": failure_message, "details": str(exc)},
            )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    def health() -> HealthResponse:
        return HealthResponse(status="ok", ai_configured=active_generator is not None)

    @app.post(
        "/api/ai/suggest-scene",
        response_model=SuggestSceneResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["AI"],
    )
    def suggest_scene(payload: SuggestSceneRequest) -> SuggestSceneResponse | JSONResponse:
        if _missing(
            storyTitle=payload.story_title,
            storyDescription=payload.story_description,
            currentSceneBody=payload.current_scene_body,
        ):
            return _bad_request(
                "Missing required fields: storyTitle, storyDescription, and "
                "currentSceneBody are required"
            )

        result = _generate(
            "suggest-scene",
            "Failed to generate scene suggestion",
            lambda active: active.suggest_scene(
                payload.story_title or "",
                payload.story_description or "",
                payload.current_scene_body or "",
                payload.story_summary,
            ),
        )
        if isinstance(result, JSONResponse):
            return result
        return SuggestSceneResponse(title=result.title, body=result.body)

    @app.post(
        "/api/ai/suggest-choices",
        response_model=SuggestChoicesResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["AI"],
    )
    def suggest_choices(
        payload: SuggestChoicesRequest,
    ) -> SuggestChoicesResponse | JSONResponse:
        if _missing(sceneBody=payload.scene_body):
            return _bad_request("Missing required field: sceneBody")

        result = _generate(
            "suggest-choices",
            "Failed to generate choice suggestions",
            lambda active: active.suggest_choices(
                payload.scene_body or "", payload.story_context
            ),
        )
        if isinstance(result, JSONResponse):
            return result
        return SuggestChoicesResponse(
            choices=[ChoiceSuggestionResource(text=text) for text in result.texts()]
        )

    @app.post(
        "/api/ai/improve-text",
        response_model=ImproveTextResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["AI"],
    )
    def improve_text(payload: ImproveTextRequest) -> ImproveTextResponse | JSONResponse:
        if _missing(sceneBody=payload.scene_body):
            return _bad_request("Missing required field: sceneBody")

        result = _generate(
            "improve-text",
            "Failed to improve text",
            lambda active: active.improve_text(payload.scene_body or ""),
        )
        if isinstance(result, JSONResponse):
            return result
        return ImproveTextResponse(improved_body=result.improved_body)

    return app


__all__ = [
    "ImproveTextRequest",
    "ImproveTextResponse",
    "SuggestChoicesRequest",
    "SuggestChoicesResponse",
    "SuggestSceneRequest",
    "SuggestSceneResponse",
    "create_app",
]
