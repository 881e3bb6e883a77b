"""PyArchitect — interactive Python playground with an AI assistant."""

__version__ = "0.1.0"
