"""
Market state module.

Holds the client-side market state store, the connection and coordinator
state enums, and the immutable view handed to readers.
"""
