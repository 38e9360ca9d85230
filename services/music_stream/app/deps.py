from functools import lru_cache

from fastapi import Request
from pydantic import Field

from src.common.settings import Settings as CommonSettings

from .library import TrackLibrary
from .prefetch import PrefetchQueue


class Settings(CommonSettings):
    """Application settings."""

    music_dir: str = Field("./music", alias="MUSIC_DIR")
    jwt_secret: str = Field("", alias="SUPABASE_JWT_SECRET")
    jwt_leeway_sec: int = 60
    port: int = Field(3000, alias="PORT")
    stream_chunk_size: int = 64 * 1024
    prefetch_interval_ms: int = 100
    prefetch_chunk_size: int = 32 * 1024
    prefetch_queue_capacity: int = 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_library(request: Request) -> TrackLibrary:
    return request.app.state.library


def get_prefetch_queue(request: Request) -> PrefetchQueue:
    return request.app.state.prefetch_queue
