"""
Client configuration module.

Dataclass defaults, YAML overrides and explicit overrides are merged by
the ConfigLoader and validated before a ClientConfig is built.
"""
