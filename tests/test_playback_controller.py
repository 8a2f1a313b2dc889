"""
Tests for the PlaybackController

Tests for:
- Playing the queue in order and going idle when it drains
- Cache hits, prefetching, download failures and an unusable cache directory
- Cache references held for queued tracks
- Skip votes, admin skips and playlist skips
- Reset (also while a download is running), volume, comments and shutdown
"""

import asyncio
import tempfile

import pytest
import pytest_asyncio

from voice_dj.application.services.playback_controller import PlaybackController
from voice_dj.config.settings import CacheSettings, GeneralSettings
from voice_dj.domain.music.song_queue import SongQueue
from voice_dj.domain.music.value_objects import PlaybackState
from voice_dj.domain.shared.exceptions import FetchError, ValidationError
from voice_dj.domain.voting.services import SkipVoteAggregator
from voice_dj.domain.voting.value_objects import VoteResult, VoteTarget
from voice_dj.infrastructure.cache.file_cache import AudioCache


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


async def play(controller, track):
    controller.enqueue(track)
    await wait_until(lambda: controller.current_track is not None and controller.current_track.id == track.id)
    assert await controller.wait_for_state(PlaybackState.PLAYING, timeout=2.0)


@pytest_asyncio.fixture
async def unusable_cache_controller(
    tmp_path, monkeypatch, make_settings, downloader, engine, membership, notifier
):
    """A started controller whose cache directory sits under a regular file.

    Yields the controller and the directory temporary downloads go to.
    """
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))

    settings = make_settings(cache=CacheSettings(enabled=True, directory=blocker / "audio"))
    ctrl = PlaybackController(
        settings=settings,
        queue=SongQueue(),
        cache=AudioCache(settings.cache),
        downloader=downloader,
        engine=engine,
        membership=membership,
        notifier=notifier,
        votes=SkipVoteAggregator(),
    )
    ctrl.start()
    yield ctrl, scratch
    await ctrl.shutdown()


# =============================================================================
# Playing the Queue
# =============================================================================


class TestPlayback:
    @pytest.mark.asyncio
    async def test_starts_idle(self, controller):
        assert controller.state == PlaybackState.IDLE
        assert controller.is_running

    @pytest.mark.asyncio
    async def test_enqueue_starts_playback(self, controller, engine, notifier, make_track):
        track = make_track("a", title="First")

        await play(controller, track)

        assert len(engine.started) == 1
        path, volume = engine.started[0]
        assert path.name == "a.opus"
        assert volume == pytest.approx(0.2)
        assert any("Now playing **First" in m for m in notifier.messages)

    @pytest.mark.asyncio
    async def test_goes_idle_when_queue_drains(self, controller, engine, audio_cache, make_track):
        track = make_track("a")
        await play(controller, track)

        engine.finish()

        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)
        assert controller.current_track is None
        assert audio_cache.get_entry(track).ref_count == 0

    @pytest.mark.asyncio
    async def test_plays_in_queue_order(self, controller, engine, make_track):
        first, second = make_track("a"), make_track("b")
        controller.enqueue(first)
        controller.enqueue(second)

        await wait_until(lambda: controller.state == PlaybackState.PLAYING)
        assert controller.current_track.id == first.id

        engine.finish()
        await wait_until(lambda: len(engine.started) == 2)
        assert controller.current_track.id == second.id
        assert controller.queue_length == 0

    @pytest.mark.asyncio
    async def test_playback_error_moves_on(self, controller, engine, make_track):
        controller.enqueue(make_track("a"))
        controller.enqueue(make_track("b"))
        await wait_until(lambda: len(engine.started) == 1)

        engine.finish(RuntimeError("ffmpeg died"))

        await wait_until(lambda: len(engine.started) == 2)
        assert str(controller.current_track.id) == "b"

    @pytest.mark.asyncio
    async def test_wait_for_state_times_out(self, controller):
        assert await controller.wait_for_state(PlaybackState.PLAYING, timeout=0.05) is False

    @pytest.mark.asyncio
    async def test_enqueue_propagates_validation_error(self, controller, engine, make_track):
        controller.enqueue(make_track("a"))
        controller.enqueue(make_track("b"))
        with pytest.raises(ValidationError):
            controller.enqueue(make_track("b"))


# =============================================================================
# Cache and Prefetch
# =============================================================================


class TestAudioAcquisition:
    @pytest.mark.asyncio
    async def test_cache_hit_skips_download(self, controller, engine, downloader, make_track):
        track = make_track("a")
        await play(controller, track)
        engine.finish()
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)

        await play(controller, track)

        assert downloader.calls == ["a"]
        assert controller.cached_count == 1
        assert controller.cache_size_bytes == downloader.size_bytes

    @pytest.mark.asyncio
    async def test_prefetches_next_track_while_playing(self, controller, engine, downloader, make_track):
        controller.enqueue(make_track("a"))
        controller.enqueue(make_track("b"))
        await wait_until(lambda: controller.state == PlaybackState.PLAYING)

        await wait_until(lambda: "b" in downloader.calls)
        engine.finish()
        await wait_until(lambda: len(engine.started) == 2)

        assert downloader.calls.count("b") == 1

    @pytest.mark.asyncio
    async def test_prefetch_cancelled_when_head_removed(self, controller, downloader, make_track):
        downloader.gate = asyncio.Event()
        controller.enqueue(make_track("a"))
        downloader.gate.set()
        await wait_until(lambda: controller.state == PlaybackState.PLAYING)

        downloader.gate.clear()
        controller.enqueue(make_track("b", submitter="bob"))
        await wait_until(lambda: "b" in downloader.calls)

        assert controller.remove_by_submitter("bob") == 1
        await wait_until(lambda: "b" in downloader.cancelled)

    @pytest.mark.asyncio
    async def test_fetch_failure_notifies_and_continues(self, controller, engine, downloader, notifier, make_track):
        downloader.failures["bad"] = FetchError("Broken", "HTTP 403")
        controller.enqueue(make_track("bad", title="Broken"))
        controller.enqueue(make_track("good"))

        await wait_until(lambda: len(engine.started) == 1)

        assert str(controller.current_track.id) == "good"
        assert any("Skipping **Broken**" in m for m in notifier.messages)

    @pytest.mark.asyncio
    async def test_fetch_failure_on_last_track_goes_idle(self, controller, downloader, notifier, make_track):
        downloader.failures["bad"] = FetchError("Broken", "HTTP 403")
        controller.enqueue(make_track("bad", title="Broken"))

        await wait_until(lambda: any("Skipping" in m for m in notifier.messages))

        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)

    @pytest.mark.asyncio
    async def test_engine_start_failure_releases_track(self, controller, engine, audio_cache, make_track):
        engine.fail_next_start = True
        failed = make_track("a")
        controller.enqueue(failed)
        controller.enqueue(make_track("b"))

        await wait_until(lambda: len(engine.started) == 1)

        assert str(controller.current_track.id) == "b"
        assert audio_cache.get_entry(failed).ref_count == 0

    @pytest.mark.asyncio
    async def test_unusable_cache_directory_plays_from_temp_dir(
        self, unusable_cache_controller, engine, make_track
    ):
        ctrl, scratch = unusable_cache_controller
        await play(ctrl, make_track("a"))

        path = engine.started[0][0]
        assert path.exists()
        assert path.parent.parent == scratch
        assert ctrl.cached_count == 0

        engine.finish()
        assert await ctrl.wait_for_state(PlaybackState.IDLE, timeout=2.0)
        assert list(scratch.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unusable_cache_directory_prefetch_cleaned_up(
        self, unusable_cache_controller, downloader, engine, make_track
    ):
        ctrl, scratch = unusable_cache_controller
        ctrl.enqueue(make_track("a"))
        ctrl.enqueue(make_track("b", submitter="bob"))
        await wait_until(lambda: ctrl.state == PlaybackState.PLAYING)
        await wait_until(lambda: list(scratch.glob("*/b.opus")) != [])

        assert ctrl.remove_by_submitter("bob") == 1

        assert list(scratch.glob("*/b.opus")) == []
        assert [p.name for p in scratch.glob("*/*")] == ["a.opus"]


# =============================================================================
# Cache References for Queued Tracks
# =============================================================================


class TestQueueReferences:
    @pytest.mark.asyncio
    async def test_queued_cached_track_is_referenced(self, controller, engine, audio_cache, make_track):
        cached = make_track("a", submitter="bob")
        await play(controller, cached)
        engine.finish()
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)
        assert audio_cache.get_entry(cached).ref_count == 0

        await play(controller, make_track("b"))
        controller.enqueue(cached)

        assert audio_cache.get_entry(cached).ref_count == 1

        controller.remove_by_submitter("bob")

        assert audio_cache.get_entry(cached).ref_count == 0

    @pytest.mark.asyncio
    async def test_queued_track_survives_eviction(self, controller, engine, audio_cache, settings, make_track):
        cached = make_track("a")
        await play(controller, cached)
        engine.finish()
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)

        await play(controller, make_track("b"))
        controller.enqueue(cached)
        audio_cache.apply_settings(
            CacheSettings(enabled=True, directory=settings.cache.directory, maximum_size=0, expire_time=0)
        )
        audio_cache.sweep()

        assert audio_cache.contains(cached)
        assert audio_cache.get_entry(cached).path.exists()

    @pytest.mark.asyncio
    async def test_reference_handed_to_playback(self, controller, engine, audio_cache, make_track):
        cached = make_track("a")
        await play(controller, cached)
        engine.finish()
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)

        await play(controller, make_track("b"))
        controller.enqueue(cached)
        engine.finish()
        await wait_until(lambda: len(engine.started) == 3)

        assert str(controller.current_track.id) == "a"
        assert audio_cache.get_entry(cached).ref_count == 1

        engine.finish()
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)
        assert audio_cache.get_entry(cached).ref_count == 0

    @pytest.mark.asyncio
    async def test_reset_and_shutdown_release_references(self, controller, engine, audio_cache, make_track):
        cached = make_track("a")
        await play(controller, cached)
        engine.finish()
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)

        await play(controller, make_track("b"))
        controller.enqueue(cached)
        controller.enqueue(cached.model_copy(update={"submitter": "carol"}))
        assert audio_cache.get_entry(cached).ref_count == 2

        await controller.reset()

        assert audio_cache.get_entry(cached).ref_count == 0


# =============================================================================
# Skipping
# =============================================================================


class TestSkipping:
    @pytest.mark.asyncio
    async def test_skip_with_nothing_playing(self, controller):
        outcome = await controller.skip("alice")
        assert outcome.reason == VoteResult.NO_PLAYING
        assert outcome.skipped is False

    @pytest.mark.asyncio
    async def test_skip_while_fetching_is_refused(self, controller, engine, downloader, make_track):
        downloader.gate = asyncio.Event()
        controller.enqueue(make_track("a"))
        assert await controller.wait_for_state(PlaybackState.FETCHING, timeout=2.0)

        outcome = await controller.force_skip("admin")

        assert outcome.reason == VoteResult.NO_PLAYING
        downloader.gate.set()
        await wait_until(lambda: len(engine.started) == 1)
        assert engine.stop_calls == 0

    @pytest.mark.asyncio
    async def test_votes_reach_threshold(self, controller, engine, membership, make_track):
        membership.listeners = 4
        await play(controller, make_track("a"))

        first = await controller.skip("alice")
        assert first.reason == VoteResult.VOTE_RECORDED
        assert (first.votes, first.needed) == (1, 2)
        assert engine.stop_calls == 0

        second = await controller.skip("bob")
        assert second.reason == VoteResult.THRESHOLD_MET
        assert second.skipped
        assert engine.stop_calls == 1
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)

    @pytest.mark.asyncio
    async def test_duplicate_vote_not_counted(self, controller, membership, make_track):
        membership.listeners = 10
        await play(controller, make_track("a"))

        await controller.skip("alice")
        outcome = await controller.skip("alice")

        assert outcome.reason == VoteResult.ALREADY_VOTED
        assert outcome.votes == 1

    @pytest.mark.asyncio
    async def test_votes_reset_for_next_track(self, controller, engine, membership, make_track):
        membership.listeners = 10
        controller.enqueue(make_track("a"))
        controller.enqueue(make_track("b"))
        await wait_until(lambda: len(engine.started) == 1)
        await controller.skip("alice")

        engine.finish()
        await wait_until(lambda: len(engine.started) == 2)

        outcome = await controller.skip("alice")
        assert outcome.reason == VoteResult.VOTE_RECORDED
        assert outcome.votes == 1

    @pytest.mark.asyncio
    async def test_admin_skip_bypasses_votes(self, controller, engine, membership, make_track):
        membership.listeners = 10
        await play(controller, make_track("a"))

        outcome = await controller.skip("root", admin=True)

        assert outcome.reason == VoteResult.ADMIN_SKIP
        assert engine.stop_calls == 1

    @pytest.mark.asyncio
    async def test_admin_skip_can_be_made_a_plain_vote(self, controller, make_settings, membership, make_track):
        controller.apply_settings(make_settings(general=GeneralSettings(admin_skip_bypasses_ratio=False)))
        membership.listeners = 10
        await play(controller, make_track("a"))

        outcome = await controller.skip("root", admin=True)

        assert outcome.reason == VoteResult.VOTE_RECORDED

    @pytest.mark.asyncio
    async def test_force_skip_ignores_setting(self, controller, make_settings, engine, make_track):
        controller.apply_settings(make_settings(general=GeneralSettings(admin_skip_bypasses_ratio=False)))
        await play(controller, make_track("a"))

        outcome = await controller.force_skip("root")

        assert outcome.skipped
        assert engine.stop_calls == 1

    @pytest.mark.asyncio
    async def test_skip_playlist_requires_playlist_track(self, controller, make_track):
        await play(controller, make_track("a"))

        outcome = await controller.skip_playlist("alice")

        assert outcome.target == VoteTarget.PLAYLIST
        assert outcome.reason == VoteResult.NO_PLAYLIST

    @pytest.mark.asyncio
    async def test_force_skip_playlist_drops_queued_entries(self, controller, engine, make_track):
        playlist = [make_track(f"p{i}", playlist_id="PL1", playlist_title="Mix") for i in range(3)]
        controller.enqueue_playlist(playlist)
        controller.enqueue(make_track("solo", submitter="bob"))
        await wait_until(lambda: len(engine.started) == 1)
        assert str(controller.current_track.id) == "p0"

        outcome = await controller.force_skip_playlist("root")

        assert outcome.skipped
        await wait_until(lambda: len(engine.started) == 2)
        assert str(controller.current_track.id) == "solo"
        assert controller.queue_length == 0

    @pytest.mark.asyncio
    async def test_playlist_votes_use_playlist_ratio(self, controller, make_settings, membership, make_track):
        controller.apply_settings(make_settings(general=GeneralSettings(playlist_skip_ratio=1.0)))
        membership.listeners = 2
        controller.enqueue_playlist([make_track("p0", playlist_id="PL1"), make_track("p1", playlist_id="PL1")])
        await wait_until(lambda: controller.state == PlaybackState.PLAYING)

        outcome = await controller.skip_playlist("alice")

        assert outcome.reason == VoteResult.VOTE_RECORDED
        assert outcome.needed == 2


# =============================================================================
# Reset, Settings and Shutdown
# =============================================================================


class TestControls:
    @pytest.mark.asyncio
    async def test_reset_clears_queue_and_stops(self, controller, engine, make_track):
        for key in ("a", "b", "c"):
            controller.enqueue(make_track(key))
        await wait_until(lambda: controller.state == PlaybackState.PLAYING)

        removed = await controller.reset()

        assert removed == 2
        assert engine.stop_calls == 1
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)
        assert controller.queue_length == 0

    @pytest.mark.asyncio
    async def test_reset_while_fetching_abandons_track(self, controller, engine, downloader, make_track):
        downloader.gate = asyncio.Event()
        controller.enqueue(make_track("a"))
        controller.enqueue(make_track("b"))
        assert await controller.wait_for_state(PlaybackState.FETCHING, timeout=2.0)
        await wait_until(lambda: "a" in downloader.calls)

        assert await controller.reset() == 1
        downloader.gate.set()

        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)
        await asyncio.sleep(0.05)
        assert engine.started == []
        assert downloader.cancelled == ["a"]

    @pytest.mark.asyncio
    async def test_plays_new_tracks_after_reset_while_fetching(self, controller, engine, downloader, make_track):
        downloader.gate = asyncio.Event()
        controller.enqueue(make_track("a"))
        assert await controller.wait_for_state(PlaybackState.FETCHING, timeout=2.0)

        await controller.reset()
        downloader.gate.set()
        assert await controller.wait_for_state(PlaybackState.IDLE, timeout=2.0)

        await play(controller, make_track("c"))

        assert [p.name for p, _ in engine.started] == ["c.opus"]

    @pytest.mark.asyncio
    async def test_reset_while_idle(self, controller):
        assert await controller.reset() == 0
        assert controller.state == PlaybackState.IDLE

    @pytest.mark.asyncio
    async def test_set_volume_clamps_and_applies(self, controller, engine):
        assert controller.set_volume(5.0) == pytest.approx(0.8)
        assert engine.volume == pytest.approx(0.8)
        assert controller.set_volume(0.0) == pytest.approx(0.01)

    @pytest.mark.asyncio
    async def test_set_comment(self, controller, make_track):
        assert controller.set_comment("nice") is None

        await play(controller, make_track("a"))

        assert controller.set_comment("  nice  ").comment == "nice"
        assert controller.set_comment("").comment == ""

    @pytest.mark.asyncio
    async def test_default_comment_applied(self, controller, make_settings, make_track):
        controller.apply_settings(make_settings(general=GeneralSettings(default_comment="from the bot")))

        await play(controller, make_track("a"))

        assert controller.current_track.comment == "from the bot"

    @pytest.mark.asyncio
    async def test_apply_settings_updates_queue_limits(self, controller, make_settings, make_track):
        controller.apply_settings(make_settings(general=GeneralSettings(max_song_duration=60)))

        with pytest.raises(ValidationError):
            controller.enqueue(make_track("long", duration=61))

    @pytest.mark.asyncio
    async def test_shutdown_stops_playback(self, controller, engine, audio_cache, make_track):
        track = make_track("a")
        await play(controller, track)

        await controller.shutdown()

        assert controller.state == PlaybackState.IDLE
        assert not controller.is_running
        assert engine.stop_calls == 1
        assert audio_cache.get_entry(track).ref_count == 0
