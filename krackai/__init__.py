"""KrackAI interview engine: live interview audio in, coached answers out."""

__version__ = "0.1.0"
