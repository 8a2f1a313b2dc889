"""Centralized message constants for error messages, log templates, and chat replies."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Track Validation Errors
    EMPTY_TRACK_ID = "Track ID cannot be empty"
    TRACK_TOO_LONG = "'{title}' is longer than the {limit}s limit"

    # Queue Validation Errors
    PLAYLIST_LIMIT_REACHED = "That playlist already has {limit} songs in the queue"
    DUPLICATE_SUBMISSION = "'{title}' is already at the end of the queue"
    PLAYLIST_MIXED_IDS = "Playlist tracks must all share one playlist id"

    # Settings Validation Errors
    INVALID_VOLUME_BOUNDS = "Volume bounds must satisfy lowest <= default <= highest"
    DUPLICATE_ALIAS = "Command aliases must be unique"
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"

    # Download Errors
    DOWNLOAD_NO_OUTPUT = "yt-dlp finished without producing audio for '{title}'"

    # Permission Errors
    PERMISSION_DENIED = "{user} is not allowed to use '{command}'"

    # Voice Errors
    CHANNEL_NOT_FOUND = "No voice channel named '{name}'"
    CHANNEL_UNREACHABLE = "Could not join voice channel '{name}'"
    VOICE_NOT_CONNECTED = "Not connected to a voice channel"

    # Bootstrap Errors
    DISCORD_TOKEN_REQUIRED = "DISCORD__TOKEN environment variable is required"
    BOT_NOT_INITIALIZED = "Bot not initialized. Call set_bot() first."
    CONTAINER_NOT_FOUND = "Container not found on bot instance"


class LogTemplates:
    """Log message templates for structured logging.

    Use these with logger.info(), logger.error(), etc. and pass values as parameters
    for proper log formatting and structured logging support.
    """

    # Bot Lifecycle
    BOT_STARTING = "Starting voice DJ (environment=%s)"
    BOT_STOPPED = "Bot stopped"
    BOT_KEYBOARD_INTERRUPT = "Interrupted, shutting down"
    BOT_FATAL_ERROR = "Fatal error: %s"
    BOT_SETUP = "Running bot setup"
    BOT_SETUP_COMPLETE = "Bot setup complete"
    BOT_CONTAINER_INITIALIZED = "Container initialized"
    BOT_CONTAINER_INIT_FAILED = "Container initialization failed: %s"
    BOT_COG_LOADED = "Loaded cog %s"
    BOT_READY = "Logged in as %s (%s)"
    BOT_DEFAULT_CHANNEL_FAILED = "Could not join default channel %s: %s"
    BOT_SHUTTING_DOWN = "Bot shutting down"
    BOT_CONTAINER_SHUTDOWN = "Container shut down"
    BOT_CONTAINER_SHUTDOWN_ERROR = "Error shutting down container: %s"
    BOT_SHUTDOWN_COMPLETE = "Shutdown complete"
    BOT_SHUTDOWN_TIMEOUT = "Graceful shutdown timed out after %.1fs"
    LOGGING_CONFIG_FALLBACK = "Could not load %s, falling back to basic config"
    STARTUP_CACHE_ENABLED = "Audio cache at %s (limit %s, entries expire after %.0fs)"
    STARTUP_CACHE_DISABLED = "Audio cache disabled; downloads are deleted after playback"
    STARTUP_COMMANDS = "Command prefix %s, default voice channel %s"

    # Settings
    SETTINGS_APPLIED = "Settings applied to live components"
    SETTINGS_RELOADED = "Settings reloaded by %s"
    SETTINGS_RELOAD_FAILED = "Settings reload rejected: %s"
    SETTINGS_INVALID = "Invalid setting %s: %s"

    # Commands
    COMMAND_RECEIVED = "%s invoked %s"
    COMMAND_REJECTED = "Command %s from %s rejected (%s)"
    PERMISSION_DENIED = "Denied %s access to %s"
    KILL_REQUESTED = "Kill requested by %s"

    # Queue
    QUEUE_ENQUEUED = "Queued %s at position %d"
    QUEUE_PLAYLIST_ENQUEUED = "Queued %d tracks from playlist %s (%d dropped)"
    QUEUE_SHUFFLED = "Shuffled %d queued tracks"
    QUEUE_DRAINED = "Queue drained, controller idle"

    # Votes
    VOTE_ADMIN_SKIP = "Admin %s skipped %s"
    VOTE_RECORDED = "%s voted to skip %s (%d votes, %d listeners)"
    VOTE_THRESHOLD_MET = "Skip threshold met for %s with %d votes"
    VOTE_RESET = "Reset skip votes for %s"

    # Playback Controller
    CONTROLLER_STARTED = "Playback controller started"
    CONTROLLER_STOPPED = "Playback controller stopped"
    CONTROLLER_RESET = "Reset: %d tracks removed"
    STATE_CHANGED = "Playback state %s -> %s"
    TRACK_STARTED = "Now playing %s (added by %s)"
    TRACK_FINISHED = "Finished %s (%s)"
    TRACK_FETCH_FAILED = "Could not obtain audio for %s: %s"
    PLAYLIST_SKIPPED = "Skipped playlist %s, removed %d queued tracks"
    PLAYBACK_LOOP_ERROR = "Unexpected error while playing %s"
    VOLUME_SET = "Volume set to %.2f"
    PREFETCH_STARTED = "Prefetching %s"
    PREFETCH_USED = "Using prefetched audio for %s"
    PREFETCH_CANCELLED = "Cancelled prefetch of %s"
    PREFETCH_FAILED = "Discarded failed background download of %s: %s"
    FETCH_ABANDONED = "Dropped audio for %s after a reset"
    CACHE_BYPASSED = "Cache directory unusable (%s), playing %s from a temporary directory"
    NOTIFY_FAILED = "Could not post notification"

    # Audio Engine
    ENGINE_START_FAILED = "Engine failed to start %s: %s"
    ENGINE_STOP_FAILED = "Engine failed to stop: %s"
    ENGINE_PLAYBACK_ERROR = "Playback of %s ended with error: %s"
    PLAYBACK_STARTED = "FFmpeg playback started for %s"
    PLAYBACK_ERROR = "FFmpeg error while playing %s: %s"

    # Voice
    VOICE_CONNECTED = "Joined voice channel %s"
    VOICE_DISCONNECTED = "Left voice channel"
    VOICE_DISCONNECTED_EXTERNALLY = "Disconnected from %s, shutting down"
    VOICE_CONNECTION_TIMEOUT = "Timed out joining voice channel %s"
    VOICE_CLIENT_ERROR = "Voice client error: %s"
    NOTIFY_NO_CHANNEL = "No text channel yet, dropping notification: %s"
    NOTIFY_SEND_FAILED = "Could not send message: %s"

    # Cache
    CACHE_INIT_FAILED = "Audio cache unavailable: %s"
    CACHE_MISS = "Cache miss for %s"
    CACHE_HIT = "Cache hit for %s (refs=%d)"
    CACHE_FILE_MISSING = "Cached file %s disappeared from disk"
    CACHE_INSERTED = "Cached %s (%d bytes, total %d)"
    CACHE_EXPIRED_CLEANED = "Removed %d expired cache entries"
    CACHE_CLEARED = "Cleared %d cache entries"
    CACHE_SCAN_FAILED = "Could not scan %s: %s"
    CACHE_LOADED = "Loaded %d cached files from %s"
    CACHE_EVICTED = "Evicted %d cache entries (total now %d bytes)"
    CACHE_OVER_LIMIT = "Cache at %d bytes exceeds %d; nothing left to evict"
    CACHE_DELETE_FAILED = "Could not delete %s: %s"

    # Resolver
    RESOLVER_CACHE_HIT = "Using cached metadata for %s"
    RESOLVER_FAILED = "Could not resolve %s: %s"
    RESOLVER_NO_URL = "Skipping entry without URL: %s"
    RESOLVER_PLAYLIST = "Resolved playlist %s with %d tracks"

    # Downloader
    DOWNLOAD_STARTED = "Downloading %s from %s"
    DOWNLOAD_CANCELLED = "Download of %s cancelled"
    DOWNLOAD_FAILED = "Download of %s failed: %s"
    DOWNLOAD_FINISHED = "Downloaded %s to %s (%d bytes)"
    DOWNLOAD_PARTIAL_REMOVED = "Removed partial download %s"
    DOWNLOAD_WORKER_LINGERING = "Download worker for %s still running %.0fs after cancellation"
    DOWNLOAD_WAITING = "Waiting for earlier download of %s to finish"


class ReplyMessages:
    """Chat replies and notifications (str.format placeholders)."""

    # Queueing
    TRACK_ADDED = "{user} added **{title}** to the queue (position {position})."
    PLAYLIST_ADDED = "{user} added {added} songs from **{title}** ({dropped} skipped)."
    PLAYLIST_NOTHING_ADDED = "No songs from **{title}** could be added."
    NOT_A_URL = "'{url}' is not a URL."
    NO_TRACKS_FOUND = "Nothing playable found at {url}."
    QUEUE_RESET = "{user} cleared the queue ({count} songs removed)."
    SHUFFLED = "{user} shuffled the queue."
    NOT_ENOUGH_TO_SHUFFLE = "Not enough songs in the queue to shuffle."
    AUTO_SHUFFLE_ON = "{user} turned automatic shuffle on."
    AUTO_SHUFFLE_OFF = "{user} turned automatic shuffle off."

    # Playback notifications
    NOW_PLAYING = "Now playing **{title}**, added by {submitter}."
    FETCH_FAILED = "Skipping **{title}**: {reason}"
    PLAYBACK_FAILED = "Something went wrong playing **{title}**; moving on."

    # Skipping
    VOTE_RECORDED = "{user} voted to skip the {noun} ({votes}/{needed})."
    VOTE_PASSED = "Vote passed, skipping the {noun}."
    ADMIN_SKIPPED = "{user} skipped the {noun}."
    ALREADY_VOTED = "You already voted to skip this {noun}."
    ALREADY_SKIPPING = "The {noun} is already being skipped."
    NOTHING_PLAYING = "Nothing is playing."
    NOT_IN_PLAYLIST = "The current song is not part of a playlist."

    # Status
    NUM_SONGS = "{count} songs in the queue."
    NEXT_SONG = "Next up: **{title}**, added by {submitter}."
    NO_NEXT_SONG = "The queue is empty."
    CURRENT_SONG = "Playing **{title}**, added by {submitter}"
    FROM_PLAYLIST = " from playlist **{playlist}**"
    WITH_COMMENT = " ({comment})"
    NUM_CACHED = "{count} songs cached."
    CACHE_SIZE = "Cache uses {size} of {limit}."
    CACHE_DISABLED = "Caching is disabled."

    # Settings
    CURRENT_VOLUME = "Volume is {volume}."
    VOLUME_SET = "{user} set the volume to {volume}."
    INVALID_VOLUME = "Volume must be a number; it is kept between {lowest} and {highest}."
    COMMENT_SET = "{user} set the comment to '{comment}'."
    COMMENT_CLEARED = "{user} cleared the comment."
    MOVED = "Moved to {channel}."
    RELOADED = "Configuration reloaded."
    RELOAD_FAILED = "Configuration not reloaded: {errors} invalid settings."
    RELOAD_UNAVAILABLE = "Reloading is not available."
    KILLED = "Shutting down."

    # Help / errors
    UNKNOWN_COMMAND = "Unknown command '{prefix}{alias}'. Try {prefix}{help}."
    USAGE = "Usage: {prefix}{alias} {arguments}"
    HELP_HEADER = "**Commands**"
    HELP_LINE = "`{prefix}{alias}` {description}"
    HELP_FOOTER = "{count} songs queued ({duration})."
    HELP_DESCRIPTIONS: dict[str, str] = {
        "add": "<url> - queue a song or playlist",
        "skip": "- vote to skip the current song",
        "skip_playlist": "- vote to skip the current playlist",
        "force_skip": "- skip the current song now",
        "force_skip_playlist": "- skip the current playlist now",
        "help": "- show this list",
        "volume": "[value] - show or set the volume",
        "move": "<channel> - move to another voice channel",
        "reload": "- reload the configuration",
        "reset": "- clear the queue and stop playback",
        "num_songs": "- number of queued songs",
        "next_song": "- show the next song",
        "current_song": "- show the current song",
        "set_comment": "[text] - annotate the current song",
        "num_cached": "- number of cached songs",
        "cache_size": "- disk space used by the cache",
        "kill": "- shut the bot down",
        "shuffle": "- shuffle the queue",
        "shuffle_on": "- shuffle automatically on every add",
        "shuffle_off": "- stop shuffling automatically",
    }
