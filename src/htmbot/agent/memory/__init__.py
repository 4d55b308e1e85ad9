"""Chat persistence for the agent chatbot.

Provides:
- PostgreSQL chat repository (asyncpg)
- In-memory chat repository for local runs and tests
"""

from .conversation import SCHEMA_SQL, PostgresChatRepository
from .in_memory import InMemoryChatRepository

__all__ = [
    "InMemoryChatRepository",
    "PostgresChatRepository",
    "SCHEMA_SQL",
]
