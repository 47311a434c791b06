"""
agentloop Application - Single entry point wiring the engine together.

Usage:
    from agentloop import AgentLoopApp

    app = AgentLoopApp("config.yaml")
    outcome = await app.chat("conv1", "What's new on example.com?")
    print(outcome.value if outcome.is_success else outcome.error)
    await app.shutdown()
"""

import logging
from typing import Any, Callable, Dict, Optional, Union

from .agent.coordinator import AgentCoordinator
from .agent.delegate import DelegateAgentPlugin
from .config import AppConfig, load_config
from .errors import ConfigError
from .llm.litellm_client import LiteLLMClient
from .plugins.web import create_web_plugin
from .protocols import LLMClientProtocol, MessageStoreProtocol
from .result import Outcome
from .storage.database import Database
from .storage.memory import InMemoryMessageStore
from .storage.postgres import PostgresMessageStore
from .tools.executor import ToolExecutor
from .tools.models import PluginContext
from .tools.plugin import FunctionPlugin, LoadedPlugin
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_BUNDLED_PLUGINS: Dict[str, Callable[[], FunctionPlugin]] = {
    "web": create_web_plugin,
}


class AgentLoopApp:
    """
    agentloop application entry point.

    Sync constructor reads config; async initialization (database pool,
    tables) is deferred to the first chat() or coordinator() call.

    Args:
        config: Path to a YAML config file, or an AppConfig.
        llm_client: Optional client overriding the configured LiteLLM client.
        message_store: Optional store overriding the configured backend.
    """

    def __init__(
        self,
        config: Union[str, AppConfig],
        llm_client: Optional[LLMClientProtocol] = None,
        message_store: Optional[MessageStoreProtocol] = None,
    ):
        self.config = load_config(config) if isinstance(config, str) else config
        for name in self.config.plugins:
            if name not in _BUNDLED_PLUGINS:
                raise ConfigError(
                    f"Unknown plugin '{name}' (available: {', '.join(sorted(_BUNDLED_PLUGINS))})"
                )

        self.registry = ToolRegistry()
        self._llm_client = llm_client
        self._message_store = message_store
        self._database: Optional[Database] = None
        self._executor: Optional[ToolExecutor] = None
        self._coordinators: Dict[str, AgentCoordinator] = {}
        self._plugins: Dict[str, LoadedPlugin] = {}
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Lazy initialization, runs once on first use."""
        if self._initialized:
            return

        cfg = self.config

        # 1. LLM client
        if self._llm_client is None:
            self._llm_client = LiteLLMClient(config=cfg.llm, provider_name=cfg.provider)
            logger.info(f"LLM client: provider={cfg.provider}, model={cfg.llm.model}")

        # 2. Message store
        if self._message_store is None:
            if cfg.storage.backend == "postgres":
                self._database = Database(dsn=cfg.storage.dsn)
                await self._database.initialize()
                store = PostgresMessageStore(self._database)
                await store.ensure_table()
                self._message_store = store
            else:
                self._message_store = InMemoryMessageStore()
            logger.info(f"Message store: {cfg.storage.backend}")

        # 3. Executor
        self._executor = ToolExecutor(
            self.registry,
            self._message_store,
            default_timeout=cfg.agent.tool_execution_timeout,
        )

        # 4. Bundled plugins
        for name in cfg.plugins:
            await self.register_plugin(_BUNDLED_PLUGINS[name]())

        # 5. Delegation
        if cfg.agents:
            delegate = DelegateAgentPlugin(
                cfg.agents,
                self._get_llm_client,
                self.registry,
                self._message_store,
                config=cfg.agent,
                default_model=cfg.llm.model,
            )
            await self.register_plugin(delegate.loaded())

        self._initialized = True
        logger.info(f"agentloop initialized ({self.registry.size()} tools)")

    def _get_llm_client(self) -> LLMClientProtocol:
        return self._llm_client

    @property
    def message_store(self) -> Optional[MessageStoreProtocol]:
        return self._message_store

    async def register_plugin(
        self,
        plugin: Union[LoadedPlugin, FunctionPlugin],
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Load a plugin and register its tools with the shared registry.

        ``on_load`` runs before any tool becomes visible; if it raises, nothing
        is registered. Registering an id again replaces the previous instance,
        which is unloaded once the new one is in place.
        """
        loaded = plugin.loaded() if isinstance(plugin, FunctionPlugin) else plugin
        await loaded.instance.on_load(PluginContext(plugin_id=loaded.id, settings=dict(settings or {})))
        self.registry.register_plugin(loaded)
        previous = self._plugins.get(loaded.id)
        self._plugins[loaded.id] = loaded
        if previous is not None and previous.instance is not loaded.instance:
            await self._unload(previous)

    async def unregister_plugin(self, plugin_id: str) -> int:
        """Remove a plugin's tools and unload it. Returns the number of tools removed."""
        removed = self.registry.unregister_plugin(plugin_id)
        loaded = self._plugins.pop(plugin_id, None)
        if loaded is not None:
            await self._unload(loaded)
        return removed

    async def _unload(self, loaded: LoadedPlugin) -> None:
        try:
            await loaded.instance.on_unload()
        except Exception as e:
            logger.error(f"Plugin '{loaded.id}' failed to unload: {e}", exc_info=True)

    async def coordinator(
        self,
        conversation_id: str,
        tool_filter: Optional[set] = None,
    ) -> AgentCoordinator:
        """Return the coordinator for *conversation_id*, creating it on first use."""
        await self._ensure_initialized()
        coordinator = self._coordinators.get(conversation_id)
        if coordinator is None:
            coordinator = AgentCoordinator(
                client_provider=self._get_llm_client,
                tool_registry=self.registry,
                tool_executor=self._executor,
                message_store=self._message_store,
                conversation_id=conversation_id,
                config=self.config.agent,
                tool_filter=tool_filter,
            )
            self._coordinators[conversation_id] = coordinator
        return coordinator

    async def chat(
        self,
        conversation_id: str,
        message: str,
        system_prompt: Optional[str] = None,
    ) -> Outcome[str]:
        """Run one turn in *conversation_id*."""
        coordinator = await self.coordinator(conversation_id)
        return await coordinator.execute(
            user_message=message,
            system_prompt=system_prompt if system_prompt is not None else self.config.system_prompt,
            model=self.config.llm.model,
        )

    async def close_conversation(self, conversation_id: str) -> None:
        coordinator = self._coordinators.pop(conversation_id, None)
        if coordinator is not None:
            coordinator.cleanup()

    async def shutdown(self) -> None:
        """Clean up coordinators and release external resources."""
        for conversation_id in list(self._coordinators):
            await self.close_conversation(conversation_id)
        for plugin_id in list(self._plugins):
            await self.unregister_plugin(plugin_id)
        close = getattr(self._llm_client, "close", None)
        if close is not None:
            await close()
        if self._database is not None:
            await self._database.close()
            self._database = None
        self._initialized = False
        logger.info("agentloop shutdown complete")
