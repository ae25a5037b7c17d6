"""Knowhub CLI — run the realtime server, publish test events, tail a team.

Usage:
    knowhub serve                                  # API + relay + /ws
    knowhub publish document:delete '"d1"'         # POST a committed change
    knowhub listen                                 # Follow a team's events
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Any, Optional

import click
import httpx

from knowhub import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:5000"


def _api_url() -> str:
    return os.environ.get("KNOWHUB_API_URL", DEFAULT_API_URL).rstrip("/")


def _ws_url() -> str:
    base = _api_url()
    if base.startswith("https://"):
        return "wss://" + base[len("https://"):] + "/ws"
    return "ws://" + base.removeprefix("http://") + "/ws"


def _require(value: Optional[str], flag: str, env: str) -> str:
    """Resolve a value from its flag or env var, or exit."""
    resolved = value or os.environ.get(env)
    if not resolved:
        click.secho(f"Error: {flag} required (or set {env} env var)", fg="red", err=True)
        sys.exit(1)
    return resolved


def _pretty_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="knowhub")
def main():
    """Knowhub realtime — team activity fan-out."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: KNOWHUB_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: KNOWHUB_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API, the relay, and the WebSocket endpoint."""
    import uvicorn

    from knowhub.config import settings
    from knowhub.log import configure_logging

    configure_logging(
        debug=settings.debug,
        json_logs=settings.environment != "development",
    )
    uvicorn.run(
        "knowhub.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.argument("kind")
@click.argument("payload", required=False)
@click.option("--team-id", "-t", help="Team id (or set KNOWHUB_TEAM_ID)")
@click.option("--sender-id", "-s", help="Acting user id (team:remove, qna:new)")
@click.option("--token", help="Access token (or set KNOWHUB_TOKEN)")
def publish(kind: str, payload: Optional[str], team_id: Optional[str],
            sender_id: Optional[str], token: Optional[str]):
    """Publish one event. PAYLOAD is JSON (a document, an id, ...)."""
    tid = _require(team_id, "--team-id", "KNOWHUB_TEAM_ID")
    tok = _require(token, "--token", "KNOWHUB_TOKEN")
    try:
        data = json.loads(payload) if payload else None
    except json.JSONDecodeError as e:
        click.secho(f"Error: PAYLOAD is not valid JSON ({e})", fg="red", err=True)
        sys.exit(1)

    asyncio.run(_publish_impl(kind, tid, data, sender_id, tok))


async def _publish_impl(kind: str, team_id: str, payload: Any,
                        sender_id: Optional[str], token: str):
    async with httpx.AsyncClient(base_url=_api_url(), timeout=30.0) as c:
        r = await c.post(
            "/api/v1/events",
            json={"kind": kind, "teamId": team_id, "payload": payload, "senderId": sender_id},
            headers={"Authorization": f"Bearer {token}"},
        )
    if r.status_code >= 400:
        click.secho(f"Error {r.status_code}: {r.text}", fg="red", err=True)
        sys.exit(1)
    result = r.json()
    color = "green" if result["published"] else "yellow"
    click.secho(f"{kind} → team {team_id}: published={result['published']}", fg=color)


@main.command()
@click.option("--team-id", "-t", help="Team id (or set KNOWHUB_TEAM_ID)")
@click.option("--user-id", "-u", help="Local user id (or set KNOWHUB_USER_ID)")
@click.option("--token", help="Access token (or set KNOWHUB_TOKEN)")
def listen(team_id: Optional[str], user_id: Optional[str], token: Optional[str]):
    """Join a team room and print every event with its reconcile intent."""
    from knowhub.client.listener import RealtimeClient
    from knowhub.client.reconciler import ClientState, Intent, Reconciler
    from knowhub.config import settings
    from knowhub.log import configure_logging

    configure_logging(debug=settings.debug)
    tid = _require(team_id, "--team-id", "KNOWHUB_TEAM_ID")
    uid = _require(user_id, "--user-id", "KNOWHUB_USER_ID")
    tok = token or os.environ.get("KNOWHUB_TOKEN")

    def on_intent(event: str, data: Any, intent: Intent):
        click.secho(event, bold=True)
        click.echo(_pretty_json(data))
        if intent is not Intent.NONE:
            click.secho(f"→ {intent.value}", fg="yellow")

    state = ClientState(user_id=uid)
    client = RealtimeClient(
        _ws_url(),
        tid,
        Reconciler(state, activity_limit=settings.activity_retention),
        token=tok,
        on_intent=on_intent,
    )
    click.echo(f"Listening on team {tid} (Ctrl-C to stop)")
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        client.stop()


if __name__ == "__main__":
    main()
