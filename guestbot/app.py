"""
guestbot Application - Single entry point for the guest chatbot.

Usage:
    from guestbot import GuestBot

    app = GuestBot("config.yaml")

    # Twilio webhook: store the message and schedule a debounced reply
    await app.handle_incoming_message("org_1", "whatsapp:+5215555555555", "Hola!")

    # Twilio webhook carrying a voice note (MediaContentType0 audio/*)
    await app.handle_incoming_audio("org_1", "whatsapp:+5215555555555", media_url)

    # QStash callback: answer everything received so far
    await app.reply_to_session("org_1", session_id)
"""

import logging
import os
import re
from typing import Any, Dict

from .constants import HISTORY_LIMIT, MAIN_AGENT_MAX_TOKENS, REPLY_DELAY_SECONDS

logger = logging.getLogger(__name__)


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    try:
        import yaml
    except ImportError:
        raise ImportError(
            "pyyaml is required for config file loading. "
            "Install with: pip install pyyaml"
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


def _section(cfg: dict, name: str) -> dict:
    value = cfg.get(name)
    return value if isinstance(value, dict) else {}


class GuestBot:
    """
    guestbot application entry point.

    Sync constructor reads and validates config; async initialization is
    deferred to the first call that needs it.

    Args:
        config: Path to YAML configuration file.
    """

    def __init__(self, config: str):
        self._config = _load_config(config)
        self._initialized = False

        if "database" not in self._config:
            raise ValueError("Missing required config field: 'database'")
        if not _section(self._config, "llm").get("model"):
            raise ValueError("Missing required config field: 'llm.model'")

        # Will be set during lazy initialization
        self._llm_client = None
        self._database = None
        self._cache = None
        self._whatsapp = None
        self._scheduler = None
        self._transcriber = None
        self._stores = None

    @property
    def config(self) -> dict:
        """Return a copy of the raw configuration dict."""
        return dict(self._config)

    @property
    def stores(self):
        return self._stores

    def chatbot_options(self) -> Dict[str, Any]:
        """ChatbotService keyword arguments taken from the ``chatbot``/``llm`` sections."""
        llm_cfg = _section(self._config, "llm")
        chat_cfg = _section(self._config, "chatbot")
        options: Dict[str, Any] = {
            "model": llm_cfg["model"],
            "max_tokens": int(llm_cfg.get("max_tokens", MAIN_AGENT_MAX_TOKENS)),
            "history_limit": int(chat_cfg.get("history_limit", HISTORY_LIMIT)),
        }
        if chat_cfg.get("max_iterations"):
            options["max_iterations"] = int(chat_cfg["max_iterations"])
        if chat_cfg.get("sub_agent_max_tokens"):
            options["sub_agent_max_tokens"] = int(chat_cfg["sub_agent_max_tokens"])
        return options

    async def _ensure_initialized(self) -> None:
        """Lazy initialization, runs once."""
        if self._initialized:
            return

        cfg = self._config
        llm_cfg = _section(cfg, "llm")

        # 1. LLM client
        from .llm import AnthropicClient, LLMConfig
        llm_config = LLMConfig(
            model=llm_cfg["model"],
            api_key=llm_cfg.get("api_key") or os.environ.get("ANTHROPIC_API_KEY"),
            max_tokens=int(llm_cfg.get("max_tokens", MAIN_AGENT_MAX_TOKENS)),
            timeout=int(llm_cfg.get("timeout", 60)),
        )
        self._llm_client = AnthropicClient(config=llm_config)
        logger.info(f"LLM client: model={llm_config.model}")

        # 2. Database + schema
        from .db import Database, ensure_schema
        self._database = Database(dsn=cfg["database"])
        await self._database.initialize()
        await ensure_schema(self._database)

        # 3. Read-tool cache (optional, requires redis config)
        redis_url = _section(cfg, "redis").get("url")
        if redis_url:
            from .chatbot.cache import ToolResultCache
            self._cache = ToolResultCache(redis_url=redis_url)
            await self._cache.initialize()
            logger.info(f"Tool result cache initialized (redis: {redis_url})")
        else:
            logger.warning("No redis.url configured - read-tool results will not be cached")

        # 4. Providers
        from .providers import QStashScheduler, TwilioWhatsAppProvider, WhisperTranscriber
        twilio_cfg = _section(cfg, "twilio")
        self._whatsapp = TwilioWhatsAppProvider(
            account_sid=twilio_cfg.get("account_sid", ""),
            auth_token=twilio_cfg.get("auth_token", ""),
            whatsapp_number=twilio_cfg.get("whatsapp_number", ""),
        )
        qstash_cfg = _section(cfg, "qstash")
        self._scheduler = QStashScheduler(
            token=qstash_cfg.get("token", ""),
            callback_url=qstash_cfg.get("callback_url", ""),
        )
        transcription_cfg = _section(cfg, "transcription")
        self._transcriber = WhisperTranscriber(
            api_key=transcription_cfg.get("api_key") or os.environ.get("OPENAI_API_KEY", ""),
            model=transcription_cfg.get("model", "whisper-1"),
        )
        if not self._transcriber.is_enabled():
            logger.warning("No transcription.api_key configured - voice notes cannot be answered")

        # 5. Repositories
        from .chatbot.stores import ChatbotStores
        self._stores = ChatbotStores.from_database(self._database, cache=self._cache)

        self._initialized = True
        logger.info("GuestBot initialized")

    def _handler(self, organization_id: str, test_mode: bool = False):
        from .chatbot.session import ChatSessionHandler
        return ChatSessionHandler(
            organization_id=organization_id,
            stores=self._stores,
            llm_client=self._llm_client,
            whatsapp=self._whatsapp,
            scheduler=self._scheduler,
            transcriber=self._transcriber,
            test_mode=test_mode,
            reply_delay_seconds=int(
                _section(self._config, "chatbot").get("reply_delay_seconds", REPLY_DELAY_SECONDS)
            ),
            service_options=self.chatbot_options(),
        )

    async def handle_incoming_message(
        self,
        organization_id: str,
        sender: str,
        body: str,
        test_mode: bool = False,
    ) -> Dict[str, Any]:
        """Handle one inbound WhatsApp message."""
        await self._ensure_initialized()
        return await self._handler(organization_id, test_mode).handle_incoming_message(sender, body)

    async def handle_incoming_audio(
        self,
        organization_id: str,
        sender: str,
        media_url: str,
        test_mode: bool = False,
    ) -> Dict[str, Any]:
        """Handle one inbound WhatsApp voice note."""
        await self._ensure_initialized()
        return await self._handler(organization_id, test_mode).handle_incoming_audio(sender, media_url)

    async def reply_to_session(self, organization_id: str, session_id: str) -> str:
        """Handle the delayed reply callback for a session."""
        await self._ensure_initialized()
        return await self._handler(organization_id).reply_to_session(session_id)

    async def close_sessions(self, organization_id: str, sender: str, test_mode: bool = False) -> int:
        await self._ensure_initialized()
        return await self._handler(organization_id, test_mode).close_sessions(sender)

    async def shutdown(self) -> None:
        """Shut down the application, closing all connections."""
        if not self._initialized:
            return
        try:
            if self._cache:
                await self._cache.close()
            if self._llm_client:
                await self._llm_client.close()
            if self._database:
                await self._database.close()
        except Exception as e:
            logger.warning(f"Error during shutdown: {e}")
        finally:
            self._initialized = False
            self._llm_client = None
            self._database = None
            self._cache = None
            self._whatsapp = None
            self._scheduler = None
            self._transcriber = None
            self._stores = None
            logger.info("GuestBot shut down")
