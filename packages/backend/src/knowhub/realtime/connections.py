"""Connection manager — lifecycle and team scoping of client connections.

Learn: Each connection moves through three states:

    CONNECTED  (socket open, no team yet)
       │  joinTeam <teamId>
       ▼
    JOINED     (in exactly one team's set; joinTeam again switches)
       │  membership revoked (team:remove for this user, team:delete)
       │      → back to CONNECTED, socket stays open
       │  close / network error / failed send
       ▼
    DISCONNECTED  (terminal)

disconnect() must run on every exit path — graceful close or abrupt
network failure — or the registry keeps broadcasting to dead sockets.
The WebSocket handler calls it from a `finally` block, and broadcast()
prunes any connection whose send fails.
"""

import asyncio
import enum
import uuid
from typing import Any, Awaitable, Callable, Optional

import structlog
from starlette.websockets import WebSocket

from knowhub.auth.dependencies import CurrentIdentity
from knowhub.realtime.registry import JoinOutcome, TeamRegistry

logger = structlog.get_logger()


class ConnectionState(str, enum.Enum):
    CONNECTED = "connected"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


class Connection:
    """A live client connection. Subclasses implement send()."""

    def __init__(
        self,
        identity: Optional[CurrentIdentity] = None,
        connection_id: Optional[str] = None,
    ):
        self.id = connection_id or uuid.uuid4().hex
        self.identity = identity
        self.state = ConnectionState.CONNECTED

    async def send(self, event: str, data: Any) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} {self.state.value}>"


class WebSocketConnection(Connection):
    """Connection over a Starlette WebSocket. Frames: {"event", "data"}."""

    def __init__(self, websocket: WebSocket, identity: Optional[CurrentIdentity] = None):
        super().__init__(identity)
        self.websocket = websocket

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})


# ─── Join access policies ───────────────────────────────

AccessPolicy = Callable[[Optional[CurrentIdentity], str], Awaitable[bool]]


async def session_team_policy(identity: Optional[CurrentIdentity], team_id: str) -> bool:
    """Admit a join only for the team in the caller's authenticated session."""
    return identity is not None and identity.team_id == team_id


async def trust_client_policy(identity: Optional[CurrentIdentity], team_id: str) -> bool:
    """Admit any join. The client is trusted to send its session's team id."""
    return True


class ConnectionManager:
    """Owns every connection of this process and their team membership."""

    def __init__(
        self,
        registry: Optional[TeamRegistry] = None,
        access_policy: AccessPolicy = session_team_policy,
    ):
        self.registry = registry or TeamRegistry()
        self.access_policy = access_policy
        self.connections: set[Connection] = set()

    def connect(self, conn: Connection) -> None:
        self.connections.add(conn)
        logger.info("knowhub.ws.connected", connection_id=conn.id)

    async def join(self, conn: Connection, team_id: Any) -> bool:
        """Put a connection in a team's set. Returns False if refused.

        Re-joining the same team is a no-op; joining another team moves
        the connection (old set first, then new).
        """
        if conn.state is ConnectionState.DISCONNECTED:
            return False
        if not isinstance(team_id, str) or not team_id:
            logger.warning("knowhub.ws.join_invalid", connection_id=conn.id)
            return False
        if not await self.access_policy(conn.identity, team_id):
            logger.warning(
                "knowhub.ws.join_refused",
                connection_id=conn.id,
                team_id=team_id,
                user_id=conn.identity.user_id if conn.identity else None,
            )
            return False
        # The socket may have closed while the policy ran
        if conn.state is ConnectionState.DISCONNECTED:
            return False

        outcome = self.registry.join(conn, team_id)
        conn.state = ConnectionState.JOINED
        if outcome is not JoinOutcome.UNCHANGED:
            logger.info(
                "knowhub.ws.joined",
                connection_id=conn.id,
                team_id=team_id,
                outcome=outcome.value,
            )
        return True

    def disconnect(self, conn: Connection) -> None:
        """Forget a connection everywhere. Safe to call more than once."""
        if conn.state is ConnectionState.DISCONNECTED:
            return
        conn.state = ConnectionState.DISCONNECTED
        self.connections.discard(conn)
        team_id = self.registry.leave(conn)
        logger.info("knowhub.ws.disconnected", connection_id=conn.id, team_id=team_id)

    def evict(self, team_id: str, user_id: Optional[str] = None) -> int:
        """Take connections out of a team room after membership is revoked.

        With user_id, only that user's connections leave (member removed);
        without it, the whole room is emptied (team deleted). Evicted
        connections stay open and go back to CONNECTED, free to join
        another team.
        """
        evicted = 0
        for conn in self.registry.members(team_id):
            if user_id is not None and (
                conn.identity is None or conn.identity.user_id != user_id
            ):
                continue
            self.registry.leave(conn)
            conn.state = ConnectionState.CONNECTED
            evicted += 1
        if evicted:
            logger.info(
                "knowhub.ws.evicted",
                team_id=team_id,
                user_id=user_id,
                connections=evicted,
            )
        return evicted

    async def broadcast(self, team_id: str, event: str, data: Any) -> int:
        """Send an event to every connection in a team. Returns deliveries.

        Learn: An unknown team simply has no connections — that's not an
        error. Sends run concurrently and nobody waits for the client to
        acknowledge; a send that raises means the socket is gone, so the
        connection is pruned.
        """
        targets = self.registry.members(team_id)
        if not targets:
            return 0

        results = await asyncio.gather(
            *(conn.send(event, data) for conn in targets),
            return_exceptions=True,
        )
        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.info(
                    "knowhub.ws.send_failed",
                    connection_id=conn.id,
                    team_id=team_id,
                    error=str(result) or type(result).__name__,
                )
                self.disconnect(conn)
            else:
                delivered += 1
        return delivered

    def stats(self) -> dict[str, int]:
        return {
            "connections": len(self.connections),
            "joined": self.registry.connection_count(),
            "teams": self.registry.team_count(),
        }
