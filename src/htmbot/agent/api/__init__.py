"""HTTP API for the agent chatbot."""

from .router import create_chat_dependencies, router

__all__ = [
    "router",
    "create_chat_dependencies",
]
