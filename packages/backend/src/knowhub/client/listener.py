"""Realtime client — keeps a socket to /ws and feeds the reconciler.

Learn: Mirrors what the browser does: connect, send joinTeam with the
session's team id on *every* (re)connect (the server forgets rooms when
a socket drops), then apply each frame to local state. Intents returned
by the reconciler are handed to `on_intent` — refetching or navigating
is the caller's business.
"""

import asyncio
import json
from typing import Any, Callable, Optional
from urllib.parse import urlencode

import structlog
import websockets
from websockets.exceptions import WebSocketException

from knowhub.client.reconciler import Intent, Reconciler
from knowhub.events.errors import EnvelopeError
from knowhub.events.types import JOIN_TEAM
from knowhub.realtime.backoff import Backoff

logger = structlog.get_logger()

IntentCallback = Callable[[str, Any, Intent], None]


class RealtimeClient:
    """Maintains a team subscription and applies incoming events."""

    def __init__(
        self,
        url: str,
        team_id: str,
        reconciler: Reconciler,
        token: Optional[str] = None,
        on_intent: Optional[IntentCallback] = None,
        backoff: Optional[Backoff] = None,
    ):
        self.url = url
        self.team_id = team_id
        self.reconciler = reconciler
        self.token = token
        self.on_intent = on_intent
        self.backoff = backoff or Backoff()
        self.left_team = False
        self.connections = 0  # successful (re)connects
        self._running = False

    @property
    def socket_url(self) -> str:
        if not self.token:
            return self.url
        sep = "&" if "?" in self.url else "?"
        return f"{self.url}{sep}{urlencode({'token': self.token})}"

    def join_frame(self) -> str:
        return json.dumps({"event": JOIN_TEAM, "data": self.team_id})

    def handle_frame(self, text: str | bytes) -> Optional[Intent]:
        """Apply one server frame. Returns None for frames that aren't events.

        Once an event ejects us from the team, nothing more is applied and
        the client stops: the cleared state must stay cleared until the
        caller rejoins with a new team.
        """
        if self.left_team:
            return None
        try:
            frame = json.loads(text)
        except ValueError:
            logger.warning("knowhub.client.bad_frame")
            return None
        if not isinstance(frame, dict) or "event" not in frame:
            return None

        event, data = frame["event"], frame.get("data")
        try:
            intent = self.reconciler.apply(event, data)
        except EnvelopeError:
            # pong and any future server frames
            return None
        if intent is Intent.NAVIGATE_JOIN_TEAM:
            self.left_team = True
            self.stop()
            logger.info("knowhub.client.left_team", team_id=self.team_id, event=event)
        if self.on_intent is not None:
            self.on_intent(event, data, intent)
        return intent

    def rejoin(self, team_id: str, token: Optional[str] = None) -> None:
        """Point the client at a new team before calling run() again."""
        self.team_id = team_id
        if token is not None:
            self.token = token
        self.left_team = False

    async def run(self) -> None:
        """Connect and listen until stop(), reconnecting with backoff."""
        self._running = True
        while self._running:
            try:
                async with websockets.connect(self.socket_url) as ws:
                    await ws.send(self.join_frame())
                    self.backoff.reset()
                    self.connections += 1
                    logger.info("knowhub.client.joined", team_id=self.team_id)
                    async for message in ws:
                        self.handle_frame(message)
                        if not self._running:
                            break
            except (WebSocketException, OSError) as e:
                if not self._running:
                    break
                delay = self.backoff.next_delay()
                logger.warning("knowhub.client.disconnected", error=str(e), retry_in=delay)
                await asyncio.sleep(delay)
            else:
                if self._running:
                    # Server closed cleanly; reconnect after a short pause
                    await asyncio.sleep(self.backoff.next_delay())

    def stop(self) -> None:
        self._running = False
