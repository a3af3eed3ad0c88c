"""
Trading module.

Serializes trade intents against the open session and resolves each one
to a single outcome.
"""
