from pydantic import BaseModel, ConfigDict


class RandomTrackResponse(BaseModel):
    track_id: str


class PrefetchRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    track_ids: list[str]


class PrefetchResponse(BaseModel):
    queued: list[str]
    dropped: list[str]
    missing: list[str]


class UserInfoResponse(BaseModel):
    user_id: str
    email: str | None = None
    role: str | None = None


class ErrorResponse(BaseModel):
    error: str
