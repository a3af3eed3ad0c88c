"""
Utility functions module.

Subscription handles and cancellable timers shared by the transport,
the synchronization engine and the trade coordinator.
"""
