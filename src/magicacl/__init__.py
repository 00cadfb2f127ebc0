"""Docker Magic ACL: per-container inbound allow-lists kept in sync with a host inventory."""

__version__ = "0.1.0"
