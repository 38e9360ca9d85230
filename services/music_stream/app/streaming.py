"""Streaming responses for whole and partial track content."""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO, Iterator

from fastapi import status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from src.common.logging import get_logger
from src.common.metrics import STREAM_REQUESTS

from .errors import InternalFailure, ResourceNotFound
from .ranges import resolve_range

logger = get_logger(__name__)

AUDIO_MEDIA_TYPE = "audio/mpeg"


def _iter_file(handle: BinaryIO, remaining: int, chunk_size: int) -> Iterator[bytes]:
    # Runs in Starlette's thread pool; raising here aborts the connection.
    try:
        while remaining > 0:
            chunk = handle.read(min(chunk_size, remaining))
            if not chunk:
                raise OSError(f"unexpected end of file, {remaining} bytes short")
            remaining -= len(chunk)
            yield chunk
    except OSError:
        logger.exception("stream_aborted", file=getattr(handle, "name", None))
        raise
    finally:
        handle.close()


def open_track_response(
    path: Path, range_header: str | None, chunk_size: int = 64 * 1024
) -> StreamingResponse:
    """Build a 200 or 206 response streaming ``path``.

    The file is opened and measured before any header is produced, so
    failures at that stage surface as 404/500 instead of a broken stream.
    """

    try:
        handle = path.open("rb")
    except FileNotFoundError as exc:
        raise ResourceNotFound("Track not found") from exc
    except OSError as exc:
        raise InternalFailure() from exc

    try:
        total_length = os.fstat(handle.fileno()).st_size
        byte_range = resolve_range(range_header, total_length)
        if byte_range is not None:
            handle.seek(byte_range.start)
    except OSError as exc:
        handle.close()
        raise InternalFailure() from exc
    except BaseException:
        handle.close()
        raise

    headers = {"Accept-Ranges": "bytes"}
    if byte_range is None:
        headers["Content-Length"] = str(total_length)
        STREAM_REQUESTS.labels("music_stream", "full").inc()
        return StreamingResponse(
            _iter_file(handle, total_length, chunk_size),
            media_type=AUDIO_MEDIA_TYPE,
            headers=headers,
            background=BackgroundTask(handle.close),
        )

    headers["Content-Range"] = byte_range.content_range(total_length)
    headers["Content-Length"] = str(byte_range.length)
    STREAM_REQUESTS.labels("music_stream", "partial").inc()
    return StreamingResponse(
        _iter_file(handle, byte_range.length, chunk_size),
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        media_type=AUDIO_MEDIA_TYPE,
        headers=headers,
        background=BackgroundTask(handle.close),
    )
