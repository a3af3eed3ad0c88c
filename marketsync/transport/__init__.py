"""
Session transport module.

Defines the transport interface consumed by the synchronization engine
and its WebSocket implementation.
"""
