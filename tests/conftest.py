import time
from pathlib import Path
from typing import Any, Callable

import jwt
import pytest
from fastapi.testclient import TestClient

from services.music_stream.app import deps
from services.music_stream.app.main import create_app

SECRET = "test-jwt-secret-0123456789abcdef0123456789"

TRACKS: dict[str, bytes] = {
    "test1": bytes(range(256)) * 4,
    "test2": b"test mp3 data",
    "test3": b"ID3" + b"\x00" * 97,
}


def make_token(
    secret: str = SECRET,
    *,
    expires_in: int = 3600,
    algorithm: str = "HS256",
    **claims: Any,
) -> str:
    payload: dict[str, Any] = {
        "sub": "user-123",
        "email": "listener@example.com",
        "role": "authenticated",
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    payload.update(claims)
    payload = {key: value for key, value in payload.items() if value is not None}
    return jwt.encode(payload, secret, algorithm=algorithm)


@pytest.fixture()
def music_dir(tmp_path: Path) -> Path:
    for track_id, data in TRACKS.items():
        (tmp_path / f"{track_id}.mp3").write_bytes(data)
    (tmp_path / "notes.txt").write_text("not a track")
    return tmp_path


@pytest.fixture()
def make_settings() -> Callable[..., deps.Settings]:
    def _make(music_dir: Path, **overrides: Any) -> deps.Settings:
        values: dict[str, Any] = {
            "music_dir": str(music_dir),
            "jwt_secret": SECRET,
            "prefetch_interval_ms": 10,
        }
        values.update(overrides)
        return deps.Settings(**values)

    return _make


@pytest.fixture()
def client(music_dir: Path, make_settings) -> TestClient:
    return TestClient(create_app(make_settings(music_dir)))


@pytest.fixture()
def bearer() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture()
def apikey() -> dict[str, str]:
    return {"apikey": "any-anon-key"}
