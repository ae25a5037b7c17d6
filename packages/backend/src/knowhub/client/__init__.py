"""Client side of the realtime protocol — state reconciliation and listener."""

from knowhub.client.reconciler import ClientState, Intent, Reconciler

__all__ = ["ClientState", "Intent", "Reconciler"]
