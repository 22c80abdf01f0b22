"""Chat status service: chat-server assignment, login tokens, Redis and MySQL helpers."""

__version__ = "0.1.0"