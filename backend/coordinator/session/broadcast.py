"""Shared broadcast utility for fanning a message out to room members."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from coordinator.messaging.encoder import encode

if TYPE_CHECKING:
    from collections.abc import Iterable

    from coordinator.session.models import Session

logger = structlog.get_logger()


async def broadcast_to_sessions(
    sessions: Iterable[Session],
    message: dict[str, Any],
    exclude_player_id: str | None = None,
) -> int:
    """Send a message to every session, skipping one if excluded. Return the delivered count.

    The caller passes a snapshot (list) so a concurrent leave cannot mutate the
    collection while we yield on a send. Recipients whose transport is not
    open are skipped; write failures are logged and skipped so one dead peer
    never stalls the rest of the room.
    """
    payload = encode(message)
    delivered = 0
    for session in sessions:
        if session.player_id == exclude_player_id:
            continue
        if not session.connection.is_open:
            continue
        try:
            await session.connection.send_text(payload)
        except (RuntimeError, OSError, ConnectionError) as e:  # fmt: skip
            logger.debug(
                "broadcast delivery failed",
                player_id=session.player_id,
                message_type=message.get("type"),
                error=str(e),
            )
            continue
        delivered += 1
    return delivered
