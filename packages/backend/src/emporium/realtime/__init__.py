"""Realtime chat — one Broadcaster per worker process.

Learn: Traffic flows in one direction per step:
1. Client → `message` frame → Broadcaster.publish → MessageStore.save
2. Saved message → every connection's outbox → writer task → client

Connections are owned by the Broadcaster of the process that accepted
them. Nothing here is shared between workers; only the store is.
"""

from emporium.realtime.broadcaster import Broadcaster, Connection, ConnectionState

__all__ = ["Broadcaster", "Connection", "ConnectionState"]
