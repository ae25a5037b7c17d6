"""Health check endpoint.

Learn: Reports whether the broker answers a ping, whether the relay
holds a live subscription, and how many sockets this replica serves.
"""

from fastapi import APIRouter, Request

from knowhub import __version__
from knowhub.realtime.broker import BrokerError

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and broker connectivity."""
    checks = {"server": "ok", "version": __version__}
    state = request.app.state

    try:
        await state.broker.ping()
        checks["broker"] = "ok"
    except BrokerError as e:
        checks["broker"] = f"error: {e}"

    relay = state.relay
    checks["relay"] = "ok" if relay.stats.subscribed else "reconnecting"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {
        "status": status,
        **checks,
        "connections": state.manager.stats(),
        "relay_stats": {
            "received": relay.stats.received,
            "delivered": relay.stats.delivered,
            "dropped": relay.stats.dropped,
            "reconnects": relay.stats.reconnects,
        },
    }
