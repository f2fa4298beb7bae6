"""FastAPI dependency injection -- Depends() patterns using app.state from lifespan."""

from typing import Annotated

from fastapi import Depends, Request

from polyscope.config import Settings
from polyscope.engine import PolyscopeEngine


def get_engine(request: Request) -> PolyscopeEngine:
    return request.app.state.engine


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# Type aliases for cleaner route signatures
Engine = Annotated[PolyscopeEngine, Depends(get_engine)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
