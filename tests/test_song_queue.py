"""
Unit Tests for the Song Queue

Tests for:
- Track entity helpers
- SongQueue ordering, limits and duplicate rejection
- Playlist batches, shuffling and removal
- Concurrent producers and consumers
"""

import random
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from voice_dj.domain.music.song_queue import PlaylistEnqueueResult, SongQueue
from voice_dj.domain.music.value_objects import PlaybackState, TrackId
from voice_dj.domain.shared.exceptions import ValidationError

# =============================================================================
# Track Entity Tests
# =============================================================================


class TestTrack:
    def test_duration_formatted(self, make_track):
        assert make_track(duration=65).duration_formatted == "1:05"
        assert make_track(duration=3725).duration_formatted == "1:02:05"
        assert make_track(duration=0).duration_formatted == "Unknown"

    def test_display_title_includes_duration(self, make_track):
        assert make_track("a", title="Song", duration=90).display_title == "Song [1:30]"
        assert make_track("a", title="Song", duration=0).display_title == "Song"

    def test_in_playlist(self, make_track):
        assert make_track(playlist_id="PL1").in_playlist is True
        assert make_track().in_playlist is False

    def test_with_comment_returns_copy(self, make_track):
        track = make_track()
        commented = track.with_comment("great tune")
        assert commented.comment == "great tune"
        assert track.comment == ""

    def test_exceeds_duration_ignores_zero_limit(self, make_track):
        track = make_track(duration=600)
        assert track.exceeds_duration(0) is False
        assert track.exceeds_duration(300) is True
        assert track.exceeds_duration(600) is False

    def test_track_id_from_youtube_url(self):
        assert TrackId.from_url("https://youtu.be/dQw4w9WgXcQ").value == "dQw4w9WgXcQ"

    def test_track_id_from_other_url_is_hash(self):
        track_id = TrackId.from_url("https://example.com/song.mp3")
        assert len(track_id.value) == 16
        assert track_id == TrackId.from_url("https://example.com/song.mp3")

    def test_track_id_rejects_blank(self):
        with pytest.raises(ValueError):
            TrackId("  ")


class TestPlaybackState:
    def test_idle_always_reachable(self):
        for state in PlaybackState:
            assert state.can_transition_to(PlaybackState.IDLE)

    def test_cannot_play_from_idle(self):
        assert not PlaybackState.IDLE.can_transition_to(PlaybackState.PLAYING)

    def test_stopping_only_from_playing(self):
        assert PlaybackState.PLAYING.can_transition_to(PlaybackState.STOPPING)
        assert not PlaybackState.FETCHING.can_transition_to(PlaybackState.STOPPING)


# =============================================================================
# SongQueue Tests
# =============================================================================


class TestSongQueueBasics:
    def test_enqueue_returns_position(self, make_track):
        queue = SongQueue()
        assert queue.enqueue(make_track("a")) == 0
        assert queue.enqueue(make_track("b")) == 1
        assert len(queue) == 2

    def test_dequeue_is_fifo(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a"))
        queue.enqueue(make_track("b"))

        assert str(queue.dequeue().id) == "a"
        assert str(queue.dequeue().id) == "b"
        assert queue.dequeue() is None

    def test_peek_does_not_remove(self, make_track):
        queue = SongQueue()
        assert queue.peek() is None
        queue.enqueue(make_track("a"))
        assert str(queue.peek().id) == "a"
        assert len(queue) == 1

    def test_snapshot_is_a_copy(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a"))
        snapshot = queue.snapshot()
        snapshot.clear()
        assert len(queue) == 1

    def test_clear_returns_count(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a"))
        queue.enqueue(make_track("b"))
        assert queue.clear() == 2
        assert queue.is_empty

    def test_total_duration(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a", duration=60))
        queue.enqueue(make_track("b", duration=30))
        assert queue.total_duration_seconds() == 90


class TestSongQueueLimits:
    def test_rejects_track_over_duration_limit(self, make_track):
        queue = SongQueue(max_song_duration=300)
        with pytest.raises(ValidationError) as exc_info:
            queue.enqueue(make_track("long", duration=301))
        assert exc_info.value.field == "duration_seconds"
        assert queue.is_empty

    def test_zero_duration_limit_is_unlimited(self, make_track):
        queue = SongQueue(max_song_duration=0)
        queue.enqueue(make_track("long", duration=86_400))
        assert len(queue) == 1

    def test_rejects_repeat_of_tail_by_same_submitter(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a", submitter="alice"))
        with pytest.raises(ValidationError) as exc_info:
            queue.enqueue(make_track("a", submitter="alice"))
        assert exc_info.value.field == "id"

    def test_allows_repeat_by_other_submitter(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a", submitter="alice"))
        queue.enqueue(make_track("a", submitter="bob"))
        assert len(queue) == 2

    def test_allows_repeat_when_not_at_tail(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a"))
        queue.enqueue(make_track("b"))
        queue.enqueue(make_track("a"))
        assert len(queue) == 3

    def test_single_playlist_track_respects_limit(self, make_track):
        queue = SongQueue(max_song_per_playlist=1)
        queue.enqueue(make_track("a", playlist_id="PL1"))
        with pytest.raises(ValidationError):
            queue.enqueue(make_track("b", playlist_id="PL1"))
        queue.enqueue(make_track("c", playlist_id="PL2"))
        assert len(queue) == 2


class TestSongQueuePlaylists:
    def test_enqueue_playlist_truncates_to_allowance(self, make_track):
        queue = SongQueue(max_song_per_playlist=3)
        tracks = [make_track(f"t{i}", playlist_id="PL1") for i in range(5)]

        result = queue.enqueue_playlist(tracks)

        assert result == PlaylistEnqueueResult(added=3, dropped=2, first_position=0)
        assert [str(t.id) for t in queue] == ["t0", "t1", "t2"]

    def test_enqueue_playlist_counts_already_queued(self, make_track):
        queue = SongQueue(max_song_per_playlist=3)
        queue.enqueue(make_track("x"))
        queue.enqueue(make_track("t0", playlist_id="PL1"))

        result = queue.enqueue_playlist([make_track(f"n{i}", playlist_id="PL1") for i in range(4)])

        assert result.added == 2
        assert result.first_position == 2
        assert queue.count_playlist("PL1") == 3

    def test_enqueue_playlist_drops_overlong_tracks(self, make_track):
        queue = SongQueue(max_song_duration=100)
        tracks = [
            make_track("short", playlist_id="PL1", duration=50),
            make_track("long", playlist_id="PL1", duration=500),
        ]

        result = queue.enqueue_playlist(tracks)

        assert result.added == 1
        assert result.dropped == 1

    def test_enqueue_playlist_empty(self):
        assert SongQueue().enqueue_playlist([]) == PlaylistEnqueueResult()

    def test_enqueue_playlist_rejects_mixed_ids(self, make_track):
        queue = SongQueue()
        with pytest.raises(ValidationError):
            queue.enqueue_playlist(
                [make_track("a", playlist_id="PL1"), make_track("b", playlist_id="PL2")]
            )

    def test_enqueue_playlist_requires_playlist_id(self, make_track):
        with pytest.raises(ValidationError):
            SongQueue().enqueue_playlist([make_track("a")])

    def test_remove_by_playlist(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a", playlist_id="PL1"))
        queue.enqueue(make_track("b"))
        queue.enqueue(make_track("c", playlist_id="PL1"))

        assert queue.remove_by_playlist("PL1") == 2
        assert [str(t.id) for t in queue] == ["b"]

    def test_remove_by_empty_playlist_id_is_noop(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a"))
        assert queue.remove_by_playlist("") == 0
        assert len(queue) == 1

    def test_remove_by_submitter(self, make_track):
        queue = SongQueue()
        queue.enqueue(make_track("a", submitter="alice"))
        queue.enqueue(make_track("b", submitter="bob"))
        queue.enqueue(make_track("c", submitter="alice"))

        assert queue.remove_by_submitter("alice") == 2
        assert [t.submitter for t in queue] == ["bob"]


class TestSongQueueShuffle:
    def test_shuffle_keeps_tracks(self, make_track):
        queue = SongQueue(rng=random.Random(1))
        for i in range(10):
            queue.enqueue(make_track(f"t{i}"))

        queue.shuffle()

        assert sorted(str(t.id) for t in queue) == sorted(f"t{i}" for i in range(10))

    def test_automatic_shuffle_on_enqueue(self, make_track):
        queue = SongQueue(automatic_shuffle=True, rng=random.Random(3))
        for i in range(20):
            queue.enqueue(make_track(f"t{i}"))

        assert [str(t.id) for t in queue] != [f"t{i}" for i in range(20)]

    def test_set_automatic_shuffle(self):
        queue = SongQueue()
        queue.set_automatic_shuffle(True)
        assert queue.automatic_shuffle is True


# =============================================================================
# Concurrent Access Tests
# =============================================================================


class TestSongQueueConcurrency:
    def test_concurrent_enqueue_keeps_every_track(self, make_track):
        queue = SongQueue()
        barrier = threading.Barrier(8)

        def producer(worker: int) -> None:
            barrier.wait()
            for i in range(50):
                queue.enqueue(make_track(f"w{worker}-{i}", submitter=f"user{worker}"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(producer, range(8)))

        ids = [str(t.id) for t in queue]
        assert len(ids) == 400
        assert len(set(ids)) == 400
        # Each producer's tracks stay in the order it added them.
        for worker in range(8):
            own = [i for i in ids if i.startswith(f"w{worker}-")]
            assert own == [f"w{worker}-{i}" for i in range(50)]

    def test_concurrent_producers_and_consumer(self, make_track):
        queue = SongQueue(automatic_shuffle=True)
        done = threading.Event()
        consumed: list[str] = []

        def producer(worker: int) -> None:
            for i in range(100):
                queue.enqueue(make_track(f"w{worker}-{i}"))

        def consumer() -> None:
            while not (done.is_set() and queue.is_empty):
                track = queue.dequeue()
                if track is not None:
                    consumed.append(str(track.id))

        reader = threading.Thread(target=consumer)
        reader.start()
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(producer, range(4)))
        done.set()
        reader.join(timeout=10)

        assert not reader.is_alive()
        assert len(consumed) == 400
        assert len(set(consumed)) == 400

    def test_concurrent_playlist_batches_respect_limit(self, make_track):
        queue = SongQueue(max_song_per_playlist=30)
        barrier = threading.Barrier(6)

        def submit(worker: int) -> int:
            tracks = [
                make_track(f"w{worker}-{i}", submitter=f"user{worker}", playlist_id="PL1")
                for i in range(10)
            ]
            barrier.wait()
            return queue.enqueue_playlist(tracks).added

        with ThreadPoolExecutor(max_workers=6) as pool:
            added = sum(pool.map(submit, range(6)))

        assert added == 30
        assert queue.count_playlist("PL1") == 30
