"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .brain import AgentRunner, IContextProvider, default_context_providers
from .config import (
    DEFAULT_MODEL_TIMEOUT,
    DEFAULT_RECONCILE_INTERVAL,
    DEFAULT_TOOL_TIMEOUT,
    env_float,
    resolve_db_path,
)
from .llm import ILLMProvider, LLMProvider
from .logging_config import get_logger
from .scheduler import AgentScheduler
from .storage import IStorage, Storage
from .tools import ActionDispatcher, ToolRegistry, register_builtin_tools

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        llm_provider: ILLMProvider | None = None,
        context_providers: list[IContextProvider] | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)

        self._reconcile_interval = env_float("FLEET_RECONCILE_INTERVAL", DEFAULT_RECONCILE_INTERVAL)
        self._model_timeout = env_float("FLEET_MODEL_TIMEOUT", DEFAULT_MODEL_TIMEOUT)
        self._tool_timeout = env_float("FLEET_TOOL_TIMEOUT", DEFAULT_TOOL_TIMEOUT)

        self._llm: ILLMProvider | None = llm_provider
        self._owns_llm = llm_provider is None
        self._context_providers = context_providers

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._registry: ToolRegistry | None = None
        self._dispatcher: ActionDispatcher | None = None
        self._runner: AgentRunner | None = None
        self._scheduler: AgentScheduler | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. LLMProvider (no internal dependencies)
        if self._llm is None:
            self._llm = LLMProvider()
        logger.info("LLM provider initialized")

        # 3. Tools (handlers write to Storage), catalog published for operators
        self._registry = ToolRegistry()
        register_builtin_tools(self._registry, self._storage)
        await self._registry.publish(self._storage)

        # 4. Dispatcher and runner
        self._dispatcher = ActionDispatcher(self._registry, self._storage, self._tool_timeout)
        providers = self._context_providers
        if providers is None:
            providers = default_context_providers(self._storage)
        self._runner = AgentRunner(
            storage=self._storage,
            llm_provider=self._llm,
            registry=self._registry,
            dispatcher=self._dispatcher,
            context_providers=providers,
            model_timeout=self._model_timeout,
        )

        # 5. Scheduler (first reconcile picks up agents left running)
        self._scheduler = AgentScheduler(self._storage, self._runner, self._reconcile_interval)
        await self._scheduler.start()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._scheduler:
            await self._scheduler.stop()
            logger.info("Scheduler stopped")
        if self._llm and self._owns_llm and hasattr(self._llm, "close"):
            await self._llm.close()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def registry(self) -> ToolRegistry:
        """Get tool registry instance."""
        if not self._registry:
            raise RuntimeError("Application not started")
        return self._registry

    @property
    def runner(self) -> AgentRunner:
        """Get agent runner instance."""
        if not self._runner:
            raise RuntimeError("Application not started")
        return self._runner

    @property
    def scheduler(self) -> AgentScheduler:
        """Get scheduler instance."""
        if not self._scheduler:
            raise RuntimeError("Application not started")
        return self._scheduler
