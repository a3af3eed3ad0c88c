"""
marketsync - Market Simulation Session Client

Keeps one participant's view of a server-authoritative market simulation
consistent over an unreliable WebSocket event stream, and correlates the
participant's trade requests with the server's replies.
"""

__version__ = "0.1.0"
__author__ = "marketsync Team"
