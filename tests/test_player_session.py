"""Tests for player sessions: intent dispatch, the outbox and the session registry."""

import pytest

from app.core.exceptions import SessionOwnershipError, UnknownIntentError
from app.models import PlaybackEvent
from app.services.player_session import PlayerSession, SessionRegistry
from app.services.playlist_repository import PlaylistRepository
from app.services.supabase_service import SupabaseService


@pytest.fixture
def session(repository):
    return PlayerSession("tab-1", "user-1", repository)


def commands(messages):
    return [m["data"]["command"] for m in messages if m["type"] == "handle_command"]


class TestDispatch:
    def test_play_tracks_loads_and_publishes(self, session, tracks):
        session.drain_outbox()
        state = session.dispatch("play_tracks", {
            "tracks": [t.model_dump() for t in tracks],
            "start_index": 2
        })
        assert state.current_track.id == "c"
        assert state.is_playing

        messages = session.drain_outbox()
        load = next(m for m in messages if m["type"] == "handle_command")
        assert load["data"]["command"] == "load"
        assert load["data"]["source"] == tracks[2].url
        assert messages[-1]["type"] == "player_state"
        assert messages[-1]["data"]["current_track"]["id"] == "c"

    def test_loaded_event_starts_audio(self, session, tracks):
        session.play_tracks(tracks)
        session.drain_outbox()
        assert session.handle_event(PlaybackEvent(kind="loaded", load_id=session.transport.load_id))
        assert commands(session.drain_outbox()) == ["play"]

    def test_unknown_intent(self, session):
        with pytest.raises(UnknownIntentError):
            session.dispatch("rewind_time")

    def test_failure_sends_notification(self, session, tracks):
        session.play_tracks(tracks)
        session.drain_outbox()
        session.handle_event(PlaybackEvent(kind="error", load_id=session.transport.load_id, message="404"))
        messages = session.drain_outbox()
        notification = next(m for m in messages if m["type"] == "notification")
        assert "Song a" in notification["data"]["message"]
        assert notification["data"]["level"] == "warning"

    def test_set_queue_forgets_playlist(self, session, tracks):
        session.current_playlist_id = "p1"
        session.dispatch("set_queue", {"tracks": [t.model_dump() for t in tracks]})
        assert session.state().current_playlist_id is None


class TestPlaylistIntents:
    async def test_play_playlist_sets_current_playlist(self, session, repository, tracks):
        playlist_id = await repository.create_playlist("Road Trip", initial_tracks=tracks[:2])
        await session.play_playlist(playlist_id)
        state = session.state()
        assert state.current_playlist_id == playlist_id
        assert state.queue_length == 2
        assert state.is_playing

    async def test_deleting_playing_playlist_clears_queue(self, session, repository, tracks):
        playlist_id = await repository.create_playlist("Road Trip", initial_tracks=tracks[:2])
        await session.play_playlist(playlist_id)
        await session.delete_playlist(playlist_id)
        state = session.state()
        assert state.queue_length == 0
        assert state.current_track is None
        assert not state.is_playing

    async def test_removing_track_of_playing_playlist_updates_queue(self, session, repository, tracks):
        playlist_id = await repository.create_playlist("Road Trip", initial_tracks=tracks[:3])
        await session.play_playlist(playlist_id)
        playlist = await session.remove_track_from_playlist(playlist_id, "a")
        assert playlist.track_ids() == ["b", "c"]
        assert [t.id for t in session.queue.tracks] == ["b", "c"]
        assert session.queue.current_track.id == "b"


class TestRegistry:
    def make_repository(self, fake_client, user_id):
        return lambda: PlaylistRepository(SupabaseService(fake_client), user_id)

    def test_get_or_create_reuses_session(self, fake_client):
        registry = SessionRegistry()
        first = registry.get_or_create("tab-1", "user-1", self.make_repository(fake_client, "user-1"))
        second = registry.get_or_create("tab-1", "user-1", self.make_repository(fake_client, "user-1"))
        assert first is second
        assert first.transport.volume == 0.7

    def test_session_bound_to_user(self, fake_client):
        registry = SessionRegistry()
        registry.get_or_create("tab-1", "user-1", self.make_repository(fake_client, "user-1"))
        with pytest.raises(SessionOwnershipError):
            registry.get_or_create("tab-1", "user-2", self.make_repository(fake_client, "user-2"))
        with pytest.raises(SessionOwnershipError):
            registry.get_or_create("tab-1", None, self.make_repository(fake_client, None))

    def test_sweep_drops_idle_disconnected_sessions(self, fake_client):
        registry = SessionRegistry()
        idle = registry.get_or_create("idle", None, self.make_repository(fake_client, None))
        connected = registry.get_or_create("connected", None, self.make_repository(fake_client, None))
        idle.last_active -= 100
        connected.last_active -= 100

        removed = registry.sweep_idle(60, lambda session_id: session_id == "connected")

        assert removed == ["idle"]
        assert registry.get("idle") is None
        assert registry.get("connected") is connected
