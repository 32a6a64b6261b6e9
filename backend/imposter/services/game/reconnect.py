"""Reattach a returning client to its player slot.

Players are matched by case-insensitive display name. Since rounds and
votes reference the stable player id, swapping the connection handle is
all the state that moves; a ballot cast before the drop still counts.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from .registry import SessionRegistry
from .session import GameSession, Player


logger = logging.getLogger(__name__)


@dataclass
class Rejoin:
    session: GameSession
    player: Player
    previous_connection_id: Optional[str]
    became_host: bool
    snapshot: dict = field(default_factory=dict)


class ReconnectCoordinator:
    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    def rejoin(self, room_code, name, connection_id=None, claims_host=False) -> Rejoin:
        session = self.registry.get(room_code)
        with session.lock:
            player = session.player_by_name(name)
            previous = player.connection_id
            was_host = session.is_host(player.player_id)
            session.reconnect(player.player_id, connection_id, claims_host=claims_host)
            became_host = not was_host and session.is_host(player.player_id)
            snapshot = session.snapshot(player.player_id)
        logger.info(
            f"[rejoin] code={session.room_code} player={player.name} "
            f"phase={session.phase.value} host={became_host or was_host}"
        )
        return Rejoin(
            session=session,
            player=player,
            previous_connection_id=previous,
            became_host=became_host,
            snapshot=snapshot,
        )
