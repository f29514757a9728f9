"""Centralized message constants for error messages and log templates."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Item Validation Errors
    EMPTY_ITEM_ID = "Item ID cannot be empty"
    EMPTY_PLAYLIST = "Playlist must contain at least one item"
    NO_ITEMS_PROVIDED = "No items provided"

    # Playback Validation Errors
    INVALID_VOLUME = "Volume must be a number greater than or equal to 0, got {volume!r}"
    INVALID_SEEK_TIME = "Seek time must be a number greater than or equal to 0, got {time!r}"
    INVALID_POSITION = "Position must be an integer, got {position!r}"
    INVALID_FILTER = "Unknown audio filter: {filter!r}"
    INVALID_REPEAT_MODE = "Invalid repeat mode: {mode!r}"
    NO_SONG_AT_POSITION = "Does not have any item at position {position}"

    # Policy Errors
    NO_UP_NEXT = "There is no up next item"
    NO_PREVIOUS = "There is no previous item in this session"
    DISABLED_OPTION = "{option} is disabled"
    SESSION_EXISTS = "Guild {guild_id} already has a playback session"
    ADD_BEFORE_PLAYING = "Cannot add items before the playing item"
    ALREADY_PAUSED = "The session has been paused already"
    ALREADY_PLAYING = "The session has been playing already"
    SESSION_STOPPED = "The session for guild {guild_id} has been stopped"

    # Transport Errors
    VOICE_CONNECT_FAILED = "Cannot connect to the voice channel after {seconds} seconds"
    VOICE_RECONNECT_FAILED = "Cannot reconnect to the voice channel"
    VOICE_FULL = "The voice channel is full"
    VOICE_MISSING_PERMS = "Missing permission to join voice channel {channel_id}"
    VOICE_NOT_CONNECTED = "Not connected to voice in guild {guild_id}"
    GUILD_NOT_FOUND = "Guild {guild_id} not found"
    CHANNEL_NOT_VOICE = "Channel {channel_id} is not a voice channel"

    # Resolution Errors
    NO_RELATED = "Cannot find any related items"
    NO_STREAM_URL = "No stream URL found for {title}"
    NO_RESOLVER = "No resolver configured for {query!r}"
    NO_RESULT = "No result found for {query!r}"
    PLAYBACK_FAILED = "{message}\nID: {item_id}\nName: {title}"

    # Configuration Errors
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"
    DISCORD_TOKEN_REQUIRED = "DISCORD_TOKEN environment variable is required"
    BOT_NOT_INITIALIZED = "Bot not initialized. Call set_bot() first."


class LogTemplates:
    """Log message templates for structured logging.

    Use these with logger.info(), logger.error(), etc. and pass values as parameters
    for proper log formatting and structured logging support.
    """

    # Session Lifecycle
    SESSION_CREATING = "Creating playback session for guild %s"
    SESSION_CREATED = "Created playback session for guild %s in channel %s"
    SESSION_REMOVED = "Removed playback session for guild %s"
    SESSION_STOPPED = "Stopped playback session for guild %s (leave=%s)"
    SESSION_SHUTDOWN = "Shutting down %d playback session(s)"
    SESSION_QUEUE_EMPTY = "Queue is empty in guild %s, finishing session"

    # Queue Operations
    QUEUE_ITEMS_ADDED = "Added %d item(s) to guild %s at position %s"
    QUEUE_SKIPPED = "Skipped '%s' in guild %s"
    QUEUE_PREVIOUS = "Going back to '%s' in guild %s"
    QUEUE_JUMPED = "Jumped to position %s ('%s') in guild %s"
    QUEUE_SHUFFLED = "Shuffled %d upcoming item(s) in guild %s"
    QUEUE_SEEK = "Seeking to %.2fs in guild %s"
    QUEUE_REPEAT_MODE = "Repeat mode for guild %s set to %s"
    QUEUE_AUTOPLAY = "Autoplay for guild %s set to %s"

    # Completion Handling
    ITEM_FINISHED = "Item '%s' finished in guild %s (%s)"
    ITEM_ALREADY_ADVANCED = "Queue already advanced in guild %s, playing front item"
    ITEM_REPEATING = "Repeating '%s' in guild %s"
    AUTOPLAY_ADDING_RELATED = "Adding related item in guild %s"
    AUTOPLAY_NO_RELATED = "No related item for guild %s: %s"
    PLAYBACK_ERROR = "Error while playing in guild %s: %s"
    PLAYBACK_NEXT_AFTER_ERROR = "Playing next item in guild %s after error"

    # Playback Operations
    PLAYBACK_GETTING_STREAM = "Getting stream for '%s' in guild %s"
    PLAYBACK_STARTED = "Started playing '%s' in guild %s"
    PLAYBACK_RESTART = "Restarting '%s' at %.2fs in guild %s"
    PLAYBACK_PAUSED = "Paused playback in guild %s"
    PLAYBACK_RESUMED = "Resumed playback in guild %s"
    PLAYBACK_VOLUME = "Volume for guild %s set to %s"
    PLAYBACK_FILTERS = "Filters for guild %s set to %s"

    # Voice Operations
    VOICE_CONNECTING = "Connecting to voice channel %s in guild %s"
    VOICE_CONNECTED = "Connected to voice channel %s in guild %s"
    VOICE_ALREADY_CONNECTED = "Already connected to voice channel %s in guild %s"
    VOICE_CONNECTION_TIMEOUT = "Timeout connecting to channel %s after %ss"
    VOICE_LEFT = "Left voice in guild %s"
    VOICE_STATE_CHANGE = "Voice connection in guild %s changed to %s (reason=%s)"
    VOICE_RECONNECT_SCHEDULED = "Reconnect attempt %d/%d for guild %s in %.1fs"
    VOICE_RECONNECT_FAILED = "Giving up reconnecting in guild %s after %d attempt(s)"
    VOICE_REJOIN_ERROR = "Rejoin failed in guild %s: %r"
    VOICE_CHANNEL_MOVED = "Voice channel moved in guild %s, waiting for signalling"
    VOICE_MANUAL_DISCONNECT = "Disconnected from voice by user in guild %s"
    VOICE_SUPERSEDED_RESOURCE = "Superseded audio resource in guild %s"
    VOICE_RESOURCE_HELD = "Holding audio in guild %s until the voice connection is ready (%s)"
    VOICE_DUPLICATE_ERROR = "Ignoring duplicate error report in guild %s: %r"
    VOICE_SIGNAL_HANDLER_ERROR = "Error in %s handler for guild %s"

    # Discord Transport
    DISCORD_CONNECT_ERROR = "Error connecting to voice channel %s: %r"
    DISCORD_AFTER_CALLBACK = "Audio player finished in guild %s (error=%r)"
    DISCORD_VOICE_STATE_UPDATE = "Bot voice state update in guild %s: %s -> %s"

    # yt-dlp
    YTDLP_RESOLVING = "Resolving %s"
    YTDLP_FAILED_EXTRACT = "yt-dlp failed to extract %s"
    YTDLP_NO_STREAM_URL = "yt-dlp found no audio stream for %s"
    YTDLP_RELATED_SEARCH = "Searching continuations for '%s'"

    # Event Bus
    EVENT_HANDLER_ERROR = "Error in handler for %s"

    # Bot Lifecycle
    BOT_STARTING = "Starting playback session bot (environment={environment})"
    BOT_SETUP = "Setting up bot"
    BOT_READY = "Logged in as %s"
    BOT_CLOSING = "Closing bot, shutting down sessions"
    BOT_CONTAINER_SHUTDOWN_ERROR = "Error shutting down container: %s"
    BOT_SHUTDOWN_TIMEOUT = "Graceful shutdown timed out after %ss"
    CONTAINER_SHUTDOWN_ERROR = "Failed shutting down %s: %r"
    BOT_STOPPED = "Bot stopped"
    BOT_KEYBOARD_INTERRUPT = "Received keyboard interrupt, shutting down"
    BOT_FATAL_ERROR = "Fatal error: %s"
    LOGGING_CONFIG_FALLBACK = "Could not load %s, falling back to basic config"
