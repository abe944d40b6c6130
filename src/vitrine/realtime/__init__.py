"""Real-time infrastructure — in-process broadcast hub + WebSocket.

Learn: Events flow through one channel:
1. CatalogService → BroadcastHub.broadcast() (after the DB commit)
2. Hub → per-connection queue → WebSocket → storefront

Single process, in memory. A client that misses an event (disconnected,
too slow) simply reloads its listing; nothing is persisted or replayed.
"""
