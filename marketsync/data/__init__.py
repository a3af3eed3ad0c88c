"""
Market data models and wire codec.

Defines the immutable market state and event types, and decodes inbound
JSON frames into them at the transport boundary.
"""
