"""Connection-to-team registry — which live connections watch which team.

Learn: This is the only mutable shared structure in the realtime process.
It is touched only by connection lifecycle events (join/leave) and read
by the relay's broadcast step. Everything runs on one event loop, so no
locks are needed; each replica keeps its own registry and relies on
every replica subscribing to every channel.

A connection sits in at most one team set. Switching teams removes it
from the old set before adding it to the new one.
"""

import enum
from typing import Hashable, Optional


class JoinOutcome(str, enum.Enum):
    JOINED = "joined"
    UNCHANGED = "unchanged"  # already in that team
    SWITCHED = "switched"  # moved from another team


class TeamRegistry:
    """team_id → set of connections, plus the reverse index."""

    def __init__(self):
        self._teams: dict[str, set[Hashable]] = {}
        self._team_of: dict[Hashable, str] = {}

    def join(self, conn: Hashable, team_id: str) -> JoinOutcome:
        current = self._team_of.get(conn)
        if current == team_id:
            return JoinOutcome.UNCHANGED
        outcome = JoinOutcome.JOINED
        if current is not None:
            self._discard(conn, current)
            outcome = JoinOutcome.SWITCHED
        self._teams.setdefault(team_id, set()).add(conn)
        self._team_of[conn] = team_id
        return outcome

    def leave(self, conn: Hashable) -> Optional[str]:
        """Remove a connection from its team. Returns the team it left."""
        team_id = self._team_of.pop(conn, None)
        if team_id is not None:
            self._discard(conn, team_id)
        return team_id

    def _discard(self, conn: Hashable, team_id: str) -> None:
        members = self._teams.get(team_id)
        if members is None:
            return
        members.discard(conn)
        if not members:
            del self._teams[team_id]

    def members(self, team_id: str) -> list[Hashable]:
        """Snapshot of a team's connections (empty for unknown teams)."""
        return list(self._teams.get(team_id, ()))

    def team_of(self, conn: Hashable) -> Optional[str]:
        return self._team_of.get(conn)

    def team_count(self) -> int:
        return len(self._teams)

    def connection_count(self) -> int:
        return len(self._team_of)
