"""Tests for the playlist endpoints of a player session."""

import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_store_factory
from app.main import app
from app.services.jwt_service import create_access_token
from app.services.player_session import SessionRegistry
from app.services.supabase_service import SupabaseService
from app.services.websocket_manager import WebSocketManager
from conftest import make_track

PLAYLISTS = "/api/v1/player/tab-1/playlists"


@pytest.fixture
def client(fake_client):
    app.state.registry = SessionRegistry()
    app.state.websockets = WebSocketManager()
    app.dependency_overrides[get_store_factory] = lambda: (lambda: SupabaseService(fake_client))
    yield TestClient(app, headers={"Authorization": f"Bearer {create_access_token('user-1')}"})
    app.dependency_overrides.clear()


def track_payload(track_id):
    return make_track(track_id).model_dump(mode="json")


def create(client, name="Road Trip", tracks=()):
    response = client.post(PLAYLISTS, json={"name": name, "tracks": [track_payload(t) for t in tracks]})
    assert response.status_code == 201
    return response.json()["id"]


class TestCreateAndList:
    def test_create_and_list(self, client):
        playlist_id = create(client, tracks=["a", "b"])
        response = client.get(PLAYLISTS)
        assert response.status_code == 200
        playlists = response.json()["playlists"]
        assert [p["id"] for p in playlists] == [playlist_id]
        assert playlists[0]["is_owner"]
        assert playlists[0]["track_count"] == 2

    def test_empty_name_is_bad_request(self, client):
        response = client.post(PLAYLISTS, json={"name": "  "})
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "empty_name"

    def test_anonymous_create_is_unauthorized(self, fake_client):
        app.state.registry = SessionRegistry()
        app.dependency_overrides[get_store_factory] = lambda: (lambda: SupabaseService(fake_client))
        try:
            response = TestClient(app).post("/api/v1/player/anon-tab/playlists", json={"name": "Road Trip"})
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 401

    def test_get_missing_playlist(self, client):
        assert client.get(f"{PLAYLISTS}/missing").status_code == 404


class TestPlaylistWrites:
    def test_add_move_and_remove_tracks(self, client):
        playlist_id = create(client)
        client.post(f"{PLAYLISTS}/{playlist_id}/tracks", json={"track": track_payload("a")})
        client.post(f"{PLAYLISTS}/{playlist_id}/tracks", json={"track": track_payload("b")})

        response = client.post(f"{PLAYLISTS}/{playlist_id}/tracks/b/move", json={"index": 0})
        assert [t["id"] for t in response.json()["tracks"]] == ["b", "a"]

        response = client.delete(f"{PLAYLISTS}/{playlist_id}/tracks/b")
        assert [t["id"] for t in response.json()["tracks"]] == ["a"]

    def test_rename(self, client):
        playlist_id = create(client)
        response = client.patch(f"{PLAYLISTS}/{playlist_id}", json={"name": "Night Drive"})
        assert response.status_code == 200
        assert response.json()["name"] == "Night Drive"

    def test_delete_foreign_playlist_forbidden(self, client, fake_client):
        other = fake_client.add_playlist("user-2", "Their Mix", is_public=True)
        client.get(PLAYLISTS)
        response = client.delete(f"{PLAYLISTS}/{other}")
        assert response.status_code == 403
        assert len(fake_client.tables["playlists"]) == 1

    def test_store_failure_is_bad_gateway(self, client, fake_client):
        playlist_id = create(client)
        fake_client.fail("playlists", "update")
        response = client.patch(f"{PLAYLISTS}/{playlist_id}", json={"description": "late night"})
        assert response.status_code == 502

    def test_delete_playing_playlist_clears_queue(self, client):
        playlist_id = create(client, tracks=["a", "b"])
        state = client.post(f"/api/v1/player/tab-1/play-playlist/{playlist_id}").json()
        assert state["current_playlist_id"] == playlist_id

        assert client.delete(f"{PLAYLISTS}/{playlist_id}").status_code == 200
        state = client.get("/api/v1/player/tab-1/state").json()
        assert state["queue_length"] == 0
        assert state["current_playlist_id"] is None

    def test_upload_cover(self, client, fake_client):
        playlist_id = create(client)
        response = client.post(
            f"{PLAYLISTS}/{playlist_id}/cover",
            files={"file": ("cover.png", b"\x89PNG\r\n", "image/png")}
        )
        assert response.status_code == 200
        assert response.json()["cover_image_url"].endswith(".png")

    def test_upload_cover_wrong_type(self, client):
        playlist_id = create(client)
        response = client.post(
            f"{PLAYLISTS}/{playlist_id}/cover",
            files={"file": ("cover.gif", b"GIF89a", "image/gif")}
        )
        assert response.status_code == 400


class TestSaveRelation:
    def test_save_and_unsave(self, client, fake_client):
        other = fake_client.add_playlist("user-2", "Their Mix", is_public=True)
        response = client.post(f"{PLAYLISTS}/{other}/save")
        assert response.json() == {"playlist_id": other, "is_saved": True}
        assert client.post(f"{PLAYLISTS}/{other}/save").status_code == 200
        assert len(fake_client.tables["saved_playlists"]) == 1

        listed = client.get(PLAYLISTS).json()
        assert listed["saved_ids"] == [other]
        assert listed["playlists"][0]["is_saved"]

        response = client.delete(f"{PLAYLISTS}/{other}/save")
        assert response.json()["is_saved"] is False
