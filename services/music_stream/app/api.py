import asyncio
import random

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from src.common.logging import get_logger

from . import deps, schemas
from .auth import IdentityClaims, optional_identity, require_identity
from .errors import MalformedRequest, ResourceNotFound
from .library import TrackLibrary
from .prefetch import PrefetchQueue
from .streaming import open_track_response

logger = get_logger(__name__)

router = APIRouter()

_error_responses = {
    401: {"model": schemas.ErrorResponse},
    404: {"model": schemas.ErrorResponse},
}


@router.get(
    "/random",
    response_model=schemas.RandomTrackResponse,
    responses={404: {"model": schemas.ErrorResponse}},
)
def random_track(
    identity: IdentityClaims | None = Depends(optional_identity),
    library: TrackLibrary = Depends(deps.get_library),
) -> schemas.RandomTrackResponse:
    track_ids = library.track_ids()
    if not track_ids:
        raise ResourceNotFound("No tracks found")
    track_id = random.choice(track_ids)
    logger.info(
        "random_track_selected",
        track_id=track_id,
        subject=identity.subject if identity else None,
    )
    return schemas.RandomTrackResponse(track_id=track_id)


@router.get(
    "/tracks/{track_id}",
    response_class=StreamingResponse,
    responses={**_error_responses, 206: {"description": "Partial content"}},
)
def stream_track(
    track_id: str,
    range_header: str | None = Header(None, alias="Range"),
    identity: IdentityClaims = Depends(require_identity),
    library: TrackLibrary = Depends(deps.get_library),
    settings: deps.Settings = Depends(deps.get_app_settings),
) -> StreamingResponse:
    path = library.path_for(track_id)
    if path is None:
        raise ResourceNotFound("Track not found")
    logger.info(
        "track_requested", track_id=track_id, subject=identity.subject, range=range_header
    )
    return open_track_response(path, range_header, settings.stream_chunk_size)


@router.post(
    "/prefetch",
    response_model=schemas.PrefetchResponse,
    responses={**_error_responses, 400: {"model": schemas.ErrorResponse}},
)
async def prefetch_tracks(
    request: Request,
    identity: IdentityClaims = Depends(require_identity),
    queue: PrefetchQueue = Depends(deps.get_prefetch_queue),
    library: TrackLibrary = Depends(deps.get_library),
) -> schemas.PrefetchResponse:
    # Parsed here rather than as a body parameter so credentials are
    # checked before the payload.
    body = await request.body()
    try:
        payload = schemas.PrefetchRequest.model_validate_json(body)
    except ValidationError as exc:
        raise MalformedRequest() from exc

    queued, dropped = await queue.push_many(payload.track_ids)
    missing = await asyncio.to_thread(
        lambda: [track_id for track_id in queued if not library.exists(track_id)]
    )
    if dropped:
        logger.warning("prefetch_queue_full", dropped=len(dropped), capacity=queue.capacity)
    logger.info(
        "prefetch_enqueued", subject=identity.subject, queued=len(queued), depth=len(queue)
    )
    return schemas.PrefetchResponse(queued=queued, dropped=dropped, missing=missing)


@router.get("/me", response_model=schemas.UserInfoResponse, responses=_error_responses)
@router.get("/user", response_model=schemas.UserInfoResponse, responses=_error_responses)
async def get_user_info(
    identity: IdentityClaims = Depends(require_identity),
) -> schemas.UserInfoResponse:
    return schemas.UserInfoResponse(
        user_id=identity.subject, email=identity.email, role=identity.role
    )
