"""
Redis channel naming for the per-session change-feed.

    session:{session_id}:cart_items
    session:{session_id}:orders
    session:{session_id}:sessions
"""

from __future__ import annotations

from shared.config.constants import FeedTable


def _validate_positive_id(id_value: int, name: str) -> None:
    if not isinstance(id_value, int) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value}")


def channel_session_feed(session_id: int, table: str) -> str:
    """Channel carrying row changes of one table for one session."""
    _validate_positive_id(session_id, "session_id")
    if table not in FeedTable.ALL:
        raise ValueError(f"No change-feed for table {table!r}")
    return f"session:{session_id}:{table}"


def session_feed_channels(session_id: int) -> list[str]:
    """The three channels a session participant subscribes to."""
    return [channel_session_feed(session_id, table) for table in FeedTable.ALL]


def parse_feed_channel(channel: str) -> tuple[int, str]:
    """
    Inverse of channel_session_feed.

    Raises ValueError for channels that are not session feeds.
    """
    parts = channel.split(":")
    if len(parts) != 3 or parts[0] != "session" or parts[2] not in FeedTable.ALL:
        raise ValueError(f"Not a session feed channel: {channel!r}")
    session_id = int(parts[1])
    _validate_positive_id(session_id, "session_id")
    return session_id, parts[2]
