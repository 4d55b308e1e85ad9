"""
Conversation Manager.

Prepares a stored message window for the provider. Windows cut from the
middle of a conversation can start with function results whose call was
trimmed away, and a turn that crashed mid-way can leave a function call
without a result. Neither is accepted by the provider, so both are removed
before the orchestrator sees the history.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..domain.entities import ChatMessage, FunctionCallMessage, FunctionResultMessage

logger = logging.getLogger(__name__)


class ConversationManager:
    """Normalizes conversation history for the orchestration loop.

    Usage:
        manager = ConversationManager()
        transcript = manager.prepare_history(history)

    Rules:
        - A function result is kept only if its call appears earlier in
          the window and is itself kept (leading orphans are dropped).
        - A function call is kept only if a result with the same call_id
          follows it. Dangling calls are treated as cancelled and stripped.
        - Text and reasoning messages are always kept, in order.
    """

    def prepare_history(self, history: Sequence[ChatMessage]) -> list[ChatMessage]:
        """Return a copy of ``history`` safe to send to the provider.

        Args:
            history: Messages in chronological order

        Returns:
            New list; the input is never mutated
        """
        answered = self._answered_call_indexes(history)

        prepared: list[ChatMessage] = []
        open_calls: set[str] = set()
        dropped_calls = 0
        dropped_results = 0

        for index, message in enumerate(history):
            if isinstance(message, FunctionCallMessage):
                if index in answered:
                    open_calls.add(message.call_id)
                    prepared.append(message)
                else:
                    dropped_calls += 1
            elif isinstance(message, FunctionResultMessage):
                if message.call_id in open_calls:
                    open_calls.discard(message.call_id)
                    prepared.append(message)
                else:
                    dropped_results += 1
            else:
                prepared.append(message)

        if dropped_calls or dropped_results:
            logger.debug(
                f"Prepared history: dropped {dropped_calls} dangling calls "
                f"and {dropped_results} orphaned results"
            )

        return prepared

    @staticmethod
    def _answered_call_indexes(history: Sequence[ChatMessage]) -> set[int]:
        """Indexes of function calls followed by a result with the same call_id."""
        answered: set[int] = set()
        later_results: set[str] = set()
        for index in range(len(history) - 1, -1, -1):
            message = history[index]
            if isinstance(message, FunctionResultMessage):
                later_results.add(message.call_id)
            elif isinstance(message, FunctionCallMessage) and message.call_id in later_results:
                answered.add(index)
        return answered
