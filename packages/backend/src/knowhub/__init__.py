"""Knowhub — realtime team activity for the team knowledge base.

Relays document, team, and Q&A mutations from stateless API handlers
through a shared broker to every connected client of the affected team.
"""

__version__ = "0.1.0"
