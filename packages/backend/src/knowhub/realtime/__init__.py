"""Realtime infrastructure — broker pub/sub + WebSocket rooms.

Learn: Events flow through two hops:
1. Mutation handlers → EventPublisher → broker PUBLISH (any replica)
2. Broker SUBSCRIBE → Relay → ConnectionManager → team's WebSockets

This decouples stateless API replicas from the processes holding
client connections.
"""
