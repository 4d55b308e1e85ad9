#!/usr/bin/env python3
"""htmbot agent CLI.

Runs a single assistant turn against the configured OpenAI model with the
diagnostic ``test-tool`` available, printing the answer as it streams in.
Useful to check credentials and the function calling round trip without
starting the web server.

Environment Variables Required:
    - OPENAI_API_KEY: OpenAI API key
    - OPENAI_MODEL: Model name (optional, default gpt-4o-mini)

Example Usage:
    $ python main.py                                  # Default tool check prompt
    $ python main.py --prompt "Tell me a joke"        # Custom prompt
    $ python main.py --no-stream                      # Wait for the full answer
    $ python main.py --show-messages                  # Print every new message
"""
import argparse
import asyncio
import logging
import sys

from src.htmbot.agent.config import AgentSettings, configure_logging
from src.htmbot.agent.domain.entities import (
    FunctionCallMessage,
    FunctionResultMessage,
    TextMessage,
    user_message,
)
from src.htmbot.agent.domain.exceptions import AgentError
from src.htmbot.agent.orchestrator import AgentConfig, AgentOrchestrator
from src.htmbot.agent.providers import OpenAIProvider
from src.htmbot.agent.tools import DiagnosticTool

DEFAULT_PROMPT = "Can you call the available tool and tell me how it went?"


class DeltaPrinter:
    """Prints the new suffix of each cumulative delta."""

    def __init__(self, stream=sys.stdout):
        self.stream = stream
        self.printed = 0

    def __call__(self, text: str) -> None:
        self.stream.write(text[self.printed:])
        self.stream.flush()
        self.printed = len(text)


def print_messages(messages) -> None:
    for message in messages:
        if isinstance(message, FunctionCallMessage):
            print(f"[call] {message.name}({message.arguments}) id={message.call_id}")
        elif isinstance(message, FunctionResultMessage):
            print(f"[result] {message.name}: {message.result}")
        elif isinstance(message, TextMessage):
            print(f"[{message.role.value}] {message.content}")


async def run_turn(args: argparse.Namespace) -> int:
    settings = AgentSettings.from_env()
    if args.model:
        settings.openai_model = args.model

    try:
        provider_config = settings.provider_config()
    except ValueError as e:
        print(f"[Main] {e}", file=sys.stderr)
        return 1

    async with OpenAIProvider(provider_config) as provider:
        orchestrator = AgentOrchestrator(
            llm_provider=provider,
            config=AgentConfig(max_iterations=settings.max_iterations),
        )
        history = [user_message(args.prompt)]
        tools = [DiagnosticTool()]

        print(f"[Main] Model: {provider.model_name}")
        print(f"[user] {args.prompt}\n")

        try:
            if args.no_stream:
                messages = await orchestrator.generate(history, tools)
                final = [m for m in messages if isinstance(m, TextMessage)]
                if final:
                    print(final[-1].content)
            else:
                messages = await orchestrator.stream_generate(history, tools, DeltaPrinter())
                print()
        except AgentError as e:
            print(f"\n[Main] Turn failed: {e}", file=sys.stderr)
            return 1

    if args.show_messages:
        print()
        print_messages(messages)

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Run one htmbot agent turn from the command line",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--prompt",
        default=DEFAULT_PROMPT,
        help="User message to send (default: tool check prompt)",
    )
    parser.add_argument(
        "--model",
        help="Override OPENAI_MODEL",
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Use the non-streaming generate path",
    )
    parser.add_argument(
        "--show-messages",
        action="store_true",
        help="Print every message produced during the turn",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()
    configure_logging("DEBUG" if args.verbose else "WARNING")
    logging.getLogger("httpx").setLevel(logging.WARNING)

    sys.exit(asyncio.run(run_turn(args)))


if __name__ == "__main__":
    main()
