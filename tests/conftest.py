"""Pytest configuration for player session server tests.

Provides an in-memory stand-in for the Supabase client (tables, row-level
owner policies, storage bucket) and a playback handle that records commands.
"""

import os
import random
import uuid
from datetime import datetime, timezone

import pytest

# Settings are read on import of the app; give them test values first
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length")

from postgrest.exceptions import APIError  # noqa: E402

from app.models import Track  # noqa: E402
from app.services.jwt_service import verify_token  # noqa: E402
from app.services.playlist_repository import PlaylistRepository  # noqa: E402
from app.services.queue_store import QueueStore  # noqa: E402
from app.services.supabase_service import SupabaseService  # noqa: E402
from app.services.transport import TransportController  # noqa: E402


# ==================== FAKE SUPABASE ====================

class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Chained query builder over one in-memory table"""

    def __init__(self, client: "FakeSupabaseClient", table: str):
        self.client = client
        self.table = table
        self.operation = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_by = None
        self.descending = False
        self.row_limit = None

    def select(self, *columns):
        self.operation = "select"
        return self

    def insert(self, data):
        self.operation = "insert"
        self.payload = data
        return self

    def upsert(self, data, on_conflict=None):
        self.operation = "upsert"
        self.payload = data
        self.on_conflict = on_conflict
        return self

    def update(self, data):
        self.operation = "update"
        self.payload = data
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = column
        self.descending = desc
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def execute(self):
        self.client.calls.append((self.table, self.operation))
        error = self.client.failures.pop((self.table, self.operation), None)
        if error is not None:
            raise error
        return FakeResponse(getattr(self, f"_{self.operation}")())

    # ---- operations ----

    def _rows(self):
        return self.client.tables.setdefault(self.table, [])

    def _matching(self):
        return [row for row in self._rows() if all(f(row) for f in self.filters)]

    def _select(self):
        rows = [row for row in self._matching() if self.client.can_read(self.table, row)]
        if self.order_by:
            rows.sort(key=lambda row: row.get(self.order_by) or 0, reverse=self.descending)
        if self.row_limit is not None:
            rows = rows[:self.row_limit]
        return [dict(row) for row in rows]

    def _insert(self):
        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = []
        for data in rows:
            row = dict(data)
            if not self.client.can_write(self.table, row):
                raise APIError({
                    "message": f'new row violates row-level security policy for table "{self.table}"',
                    "code": "42501",
                })
            if self.table == "playlists":
                now = datetime.now(timezone.utc).isoformat()
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", now)
                row.setdefault("updated_at", now)
            self._rows().append(row)
            inserted.append(dict(row))
        return inserted

    def _upsert(self):
        keys = self.on_conflict.split(",") if self.on_conflict else ["id"]
        row = dict(self.payload)
        if not self.client.can_write(self.table, row):
            raise APIError({"message": "row-level security violation", "code": "42501"})
        for existing in self._rows():
            if all(existing.get(k) == row.get(k) for k in keys):
                existing.update(row)
                return [dict(existing)]
        self._rows().append(row)
        return [dict(row)]

    def _update(self):
        updated = []
        for row in self._matching():
            if self.client.can_write(self.table, row):
                row.update(self.payload)
                updated.append(dict(row))
        return updated

    def _delete(self):
        deleted = [row for row in self._matching() if self.client.can_write(self.table, row)]
        self.client.tables[self.table] = [row for row in self._rows() if row not in deleted]
        if self.table == "playlists":
            ids = {row["id"] for row in deleted}
            for child in ("playlist_tracks", "saved_playlists"):
                self.client.tables[child] = [
                    row for row in self.client.tables.get(child, []) if row["playlist_id"] not in ids
                ]
        return [dict(row) for row in deleted]


class FakePostgrest:
    def __init__(self, client: "FakeSupabaseClient"):
        self.client = client

    def auth(self, token):
        self.client.acting_user_id = verify_token(token)


class FakeBucket:
    def __init__(self, client: "FakeSupabaseClient", bucket: str):
        self.client = client
        self.bucket = bucket

    def upload(self, path, file, file_options=None):
        error = self.client.failures.pop(("storage", "upload"), None)
        if error is not None:
            raise error
        self.client.uploads[f"{self.bucket}/{path}"] = file
        return {"path": path}

    def get_public_url(self, path):
        return f"https://storage.test/{self.bucket}/{path}"


class FakeStorage:
    def __init__(self, client: "FakeSupabaseClient"):
        self.client = client

    def from_(self, bucket):
        return FakeBucket(self.client, bucket)


class FakeSupabaseClient:
    """
    In-memory Supabase client emulating the owner-only row-level policies:
    playlists are readable when public or owned, and every write needs the
    acting user to own the playlist (or the save relation).
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {
            "playlists": [],
            "playlist_tracks": [],
            "saved_playlists": [],
        }
        self.acting_user_id = None
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.uploads: dict[str, bytes] = {}
        self.postgrest = FakePostgrest(self)
        self.storage = FakeStorage(self)

    def table(self, name):
        return FakeQuery(self, name)

    def fail(self, table, operation, message="connection reset", code="500"):
        """Make the next call of this operation raise"""
        self.failures[(table, operation)] = APIError({"message": message, "code": code})

    def playlist_owner(self, playlist_id):
        for row in self.tables["playlists"]:
            if row["id"] == playlist_id:
                return row.get("user_id")
        return None

    def can_read(self, table, row):
        if table == "playlists":
            return row.get("is_public") or row.get("user_id") == self.acting_user_id
        if table == "saved_playlists":
            return row.get("user_id") == self.acting_user_id
        return True

    def can_write(self, table, row):
        if self.acting_user_id is None:
            return False
        if table == "playlists":
            return row.get("user_id") == self.acting_user_id
        if table == "playlist_tracks":
            return self.playlist_owner(row.get("playlist_id")) == self.acting_user_id
        return row.get("user_id") == self.acting_user_id

    def add_playlist(self, user_id, name, is_public=False, tracks=()):
        """Seed a playlist row (and its track rows) directly"""
        playlist_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        self.tables["playlists"].append({
            "id": playlist_id,
            "user_id": user_id,
            "name": name,
            "description": None,
            "is_public": is_public,
            "cover_image_url": None,
            "created_at": now,
            "updated_at": now,
        })
        for position, track in enumerate(tracks):
            self.tables["playlist_tracks"].append({
                "playlist_id": playlist_id,
                "track_id": track.id,
                "track_title": track.title,
                "artist_name": track.artist,
                "url": track.url,
                "duration": track.duration,
                "position": position,
            })
        return playlist_id


# ==================== FAKE PLAYBACK HANDLE ====================

class FakeHandle:
    """Playback handle that records every command it receives"""

    def __init__(self):
        self.commands: list[tuple] = []

    def load(self, source, load_id):
        self.commands.append(("load", source, load_id))

    def play(self):
        self.commands.append(("play",))

    def pause(self):
        self.commands.append(("pause",))

    def seek(self, seconds):
        self.commands.append(("seek", seconds))

    def set_volume(self, level):
        self.commands.append(("set_volume", level))

    @property
    def loads(self):
        return [command for command in self.commands if command[0] == "load"]

    @property
    def last(self):
        return self.commands[-1] if self.commands else None


# ==================== FIXTURES ====================

def make_track(track_id: str, url: str | None = None, duration: float = 180.0) -> Track:
    return Track(
        id=track_id,
        title=f"Song {track_id}",
        artist="Test Artist",
        url=f"https://cdn.test/{track_id}.mp3" if url is None else url,
        duration=duration,
    )


@pytest.fixture
def tracks():
    return [make_track(track_id) for track_id in ("a", "b", "c", "d")]


@pytest.fixture
def queue():
    return QueueStore(rng=random.Random(42))


@pytest.fixture
def handle():
    return FakeHandle()


@pytest.fixture
def transport(queue, handle):
    return TransportController(queue, handle)


@pytest.fixture
def fake_client():
    return FakeSupabaseClient()


@pytest.fixture
def user_id():
    return "user-1"


@pytest.fixture
def repository(fake_client, user_id):
    fake_client.acting_user_id = user_id
    return PlaylistRepository(SupabaseService(fake_client), user_id)
