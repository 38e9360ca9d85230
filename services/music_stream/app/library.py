"""Track files stored as ``{track_id}.mp3`` in one directory."""

from __future__ import annotations

from pathlib import Path

TRACK_SUFFIX = ".mp3"


class TrackLibrary:
    __slots__ = ("root",)

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, track_id: str) -> Path | None:
        """Return the file path for ``track_id`` or ``None`` if the id is unusable.

        Ids are plain base names; anything that would point outside the
        music directory is refused.
        """

        if not track_id or "/" in track_id or "\\" in track_id or "\x00" in track_id:
            return None
        if track_id in (".", ".."):
            return None
        path = self.root / f"{track_id}{TRACK_SUFFIX}"
        if path.parent != self.root:
            return None
        return path

    def exists(self, track_id: str) -> bool:
        path = self.path_for(track_id)
        return path is not None and path.is_file()

    def track_ids(self) -> list[str]:
        """List ids of all tracks currently on disk, sorted."""

        try:
            entries = list(self.root.iterdir())
        except OSError:
            return []
        return sorted(
            entry.name[: -len(TRACK_SUFFIX)]
            for entry in entries
            if entry.name.endswith(TRACK_SUFFIX)
            and len(entry.name) > len(TRACK_SUFFIX)
            and entry.is_file()
        )
