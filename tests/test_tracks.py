import io
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from services.music_stream.app.errors import InternalFailure, ResourceNotFound
from services.music_stream.app.library import TrackLibrary
from services.music_stream.app.streaming import _iter_file, open_track_response

from .conftest import TRACKS


def test_full_track_with_token(client: TestClient, bearer: dict[str, str]) -> None:
    data = TRACKS["test1"]
    resp = client.get("/tracks/test1", headers=bearer)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "audio/mpeg"
    assert resp.headers["content-length"] == str(len(data))
    assert resp.headers["accept-ranges"] == "bytes"
    assert "content-range" not in resp.headers
    assert resp.content == data


def test_partial_track(client: TestClient, apikey: dict[str, str]) -> None:
    data = TRACKS["test1"]
    resp = client.get("/tracks/test1", headers={**apikey, "Range": "bytes=10-19"})
    assert resp.status_code == 206
    assert resp.headers["content-type"] == "audio/mpeg"
    assert resp.headers["content-range"] == f"bytes 10-19/{len(data)}"
    assert resp.headers["content-length"] == "10"
    assert resp.headers["accept-ranges"] == "bytes"
    assert resp.content == data[10:20]


def test_open_ended_range(client: TestClient, bearer: dict[str, str]) -> None:
    data = TRACKS["test1"]
    resp = client.get("/tracks/test1", headers={**bearer, "Range": "bytes=1000-"})
    assert resp.status_code == 206
    assert resp.headers["content-range"] == f"bytes 1000-{len(data) - 1}/{len(data)}"
    assert resp.content == data[1000:]


def test_range_end_is_clamped(client: TestClient, bearer: dict[str, str]) -> None:
    data = TRACKS["test2"]
    resp = client.get("/tracks/test2", headers={**bearer, "Range": "bytes=5-9999"})
    assert resp.status_code == 206
    assert resp.headers["content-range"] == f"bytes 5-{len(data) - 1}/{len(data)}"
    assert resp.headers["content-length"] == str(len(data) - 5)
    assert resp.content == data[5:]


def test_malformed_range_serves_whole_track(client: TestClient, bearer: dict[str, str]) -> None:
    resp = client.get("/tracks/test2", headers={**bearer, "Range": "bytes=9-3"})
    assert resp.status_code == 200
    assert resp.content == TRACKS["test2"]


def test_unsatisfiable_range(client: TestClient, bearer: dict[str, str]) -> None:
    length = len(TRACKS["test2"])
    resp = client.get("/tracks/test2", headers={**bearer, "Range": f"bytes={length}-"})
    assert resp.status_code == 416
    assert resp.headers["content-range"] == f"bytes */{length}"
    assert resp.json() == {"error": "Requested range not satisfiable"}


@pytest.mark.parametrize("auth", ["bearer", "apikey"])
def test_missing_track_is_404(client: TestClient, request: pytest.FixtureRequest, auth: str) -> None:
    headers = request.getfixturevalue(auth)
    resp = client.get("/tracks/nope", headers=headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Track not found"}


def test_track_requires_credentials(client: TestClient) -> None:
    resp = client.get("/tracks/test1")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Authentication required"}


def test_library_refuses_ids_outside_directory(music_dir: Path) -> None:
    library = TrackLibrary(music_dir)
    assert library.path_for("test1") == music_dir / "test1.mp3"
    for bad in ["", ".", "..", "../test1", "a/b", "a\\b", "x\x00y"]:
        assert library.path_for(bad) is None
    assert not library.exists("../test1")


def test_library_lists_only_mp3_files(music_dir: Path) -> None:
    (music_dir / "folder.mp3").mkdir()
    (music_dir / ".mp3").write_bytes(b"x")
    assert TrackLibrary(music_dir).track_ids() == ["test1", "test2", "test3"]
    assert TrackLibrary(music_dir / "absent").track_ids() == []


def test_open_directory_is_internal_failure(music_dir: Path) -> None:
    (music_dir / "dir.mp3").mkdir()
    with pytest.raises(InternalFailure):
        open_track_response(music_dir / "dir.mp3", None)


def test_open_missing_file_is_not_found(music_dir: Path) -> None:
    with pytest.raises(ResourceNotFound):
        open_track_response(music_dir / "gone.mp3", None)


def test_stream_stops_on_premature_eof() -> None:
    handle = io.BytesIO(b"short")
    chunks = _iter_file(handle, 10, 2)
    assert next(chunks) == b"sh"
    with pytest.raises(OSError):
        list(chunks)
    assert handle.closed


def test_stream_never_reads_past_requested_length() -> None:
    handle = io.BytesIO(b"0123456789")
    handle.seek(3)
    assert b"".join(_iter_file(handle, 4, 3)) == b"3456"
    assert handle.closed
