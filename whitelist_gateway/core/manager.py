"""Main gateway service."""

import logging
from typing import Optional

from ..access.gateway import AuthorizationGateway
from ..access.scheduler import TimeoutScheduler
from ..config.manager import ConfigManager
from ..config.models import GatewayConfig
from ..models import Verdict
from ..storage.base import AccessRequestRepository
from ..storage.sql import SqlRepository
from .events import LoginEventSource, open_stdio_streams

logger = logging.getLogger(__name__)


class GatewayService:
    """Wires storage, timers and the authorization gateway together."""

    def __init__(
        self,
        config: GatewayConfig,
        repository: Optional[AccessRequestRepository] = None,
    ):
        self.config = config

        # Core components
        self.repository = repository or SqlRepository.from_config(config.database)
        self.scheduler = TimeoutScheduler.from_config(self.repository, config.timeouts)
        self.gateway = AuthorizationGateway(
            self.repository, self.scheduler, config.messages
        )

        self.running = False

    @classmethod
    def from_config_file(cls, config_path: str) -> "GatewayService":
        """Build the service from a config file, filling in missing defaults."""
        config = ConfigManager(config_path).ensure_config()
        return cls(config)

    def setup_logging(self) -> None:
        """Setup logging configuration."""
        level = getattr(logging, self.config.gateway.log_level.upper())
        logging.basicConfig(
            level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    async def start(self) -> None:
        """Prepare storage and start the background sweep."""
        if self.running:
            return

        logger.info(f"Starting {self.config.gateway.name}")

        await self.repository.initialize()
        self.scheduler.start_sweep()
        self.running = True

        logger.info(f"{self.config.gateway.name} has been enabled")

    async def stop(self) -> None:
        """Stop background tasks and release storage."""
        logger.info(f"Stopping {self.config.gateway.name}")
        self.running = False

        try:
            await self.scheduler.stop()
        finally:
            await self.repository.close()

    async def handle_connection(
        self, username: str, stable_id: Optional[str] = None
    ) -> Verdict:
        """Decide a single connection attempt."""
        return await self.gateway.authorize(username, stable_id)

    async def serve_stdio(self) -> None:
        """Answer connection events from stdin until it closes."""
        await self.start()
        try:
            reader, writer = await open_stdio_streams()
            await LoginEventSource(self.gateway, reader, writer).serve()
        finally:
            await self.stop()
