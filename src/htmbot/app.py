"""FastAPI application for the htmbot chat agent.

This is the main entry point for the chat API server.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .agent.api import create_chat_dependencies
from .agent.api import router as chat_router
from .agent.chat_service import ChatService
from .agent.config import AgentSettings, configure_logging
from .agent.domain.ports import IChatRepository
from .agent.memory import InMemoryChatRepository, PostgresChatRepository
from .agent.message_processor import MessageProcessor
from .agent.orchestrator import AgentConfig, AgentOrchestrator
from .agent.providers import OpenAIProvider
from .agent.pubsub import ChannelPubSub
from .agent.tools import DiagnosticTool, ToolRegistry

logger = logging.getLogger(__name__)


async def _init_repository(settings: AgentSettings) -> tuple[IChatRepository, Optional[asyncpg.Pool]]:
    """Pick PostgreSQL when DATABASE_URL is set, in-memory storage otherwise."""
    if not settings.database_url:
        logger.warning("DATABASE_URL not configured - chats are kept in memory only")
        return InMemoryChatRepository(), None

    pool = await asyncpg.create_pool(
        settings.database_url,
        min_size=2,
        max_size=10,
        command_timeout=60,
    )
    logger.info("Database pool created")

    repository = PostgresChatRepository(pool)
    await repository.ensure_schema()
    return repository, pool


def create_app(settings: Optional[AgentSettings] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Runtime settings (read from the environment if omitted)
    """
    settings = settings or AgentSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        Handles startup and shutdown events:
        - Startup: storage, LLM provider, event bus and message processor
        - Shutdown: processor, provider client and database pool
        """
        logger.info("Starting htmbot chat API...")

        repository, pool = await _init_repository(settings)

        provider = None
        processor = None
        try:
            provider = OpenAIProvider(settings.provider_config())
            logger.info(f"Using OpenAI provider with model: {provider.model_name}")
        except (ValueError, ImportError) as e:
            logger.warning(f"LLM provider unavailable - chat disabled: {e}")

        if provider:
            pubsub = ChannelPubSub(queue_size=settings.subscriber_queue_size)
            orchestrator = AgentOrchestrator(
                llm_provider=provider,
                config=AgentConfig(max_iterations=settings.max_iterations),
            )
            processor = MessageProcessor(
                repository=repository,
                pubsub=pubsub,
                orchestrator=orchestrator,
                tools=ToolRegistry([DiagnosticTool()]),
                history_limit=settings.history_limit,
                max_queue_size=settings.intake_queue_size,
                enqueue_timeout=settings.enqueue_timeout,
            )
            await processor.start()

            create_chat_dependencies(ChatService(repository, pubsub, processor.enqueuer()))
            logger.info("Chat service initialized")

        yield

        # Shutdown (reverse order of initialization)
        logger.info("Shutting down htmbot chat API...")
        create_chat_dependencies(None)

        if processor:
            await processor.stop()
        if provider:
            await provider.close()
        if pool:
            await pool.close()
            logger.info("Database pool closed")

    app = FastAPI(
        title="htmbot Chat API",
        description="""
        Chat with an LLM agent that can call tools, and watch the
        conversation update live.

        ## Workflow

        1. Create a chat session
        2. Open the session's event stream (Server-Sent Events)
        3. Send messages; the echo, streamed answer and final messages
           arrive on the event stream
        """,
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    app.include_router(chat_router)

    @app.get("/health")
    async def health():
        """Global health check."""
        return {"status": "healthy"}

    return app


_settings = AgentSettings.from_env()
configure_logging(_settings.log_level)

app = create_app(_settings)


# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.htmbot.app:app",
        host="0.0.0.0",
        port=_settings.port,
        reload=True,
    )
