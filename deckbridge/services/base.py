"""
Base service interface for the bridge.

Long-lived components (connection manager, action registry) implement the
BridgeService lifecycle and are wired together explicitly at startup.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)


class BridgeService(ABC):
    """
    Base class for all bridge services.

    Services provide a consistent lifecycle:
    - start(): Initialize resources, connect to servers
    - stop(): Clean shutdown, release resources
    - health(): Report service health status
    - on_config_reload(): React to configuration changes (optional)
    """

    def __init__(self, name: str, config: Dict[str, Any]):
        """
        Initialize service with name and configuration.

        Args:
            name: Unique service identifier
            config: Service-specific configuration dict
        """
        self.name = name
        self.config = config
        self._started = False
        self._logger = logging.getLogger(f"deckbridge.service.{name}")

    @abstractmethod
    async def start(self) -> None:
        """
        Start the service.

        Called during host startup. Must be idempotent.

        Raises:
            Exception: If startup fails (will prevent host boot)
        """

    @abstractmethod
    async def stop(self) -> None:
        """
        Stop the service.

        Called during host shutdown. Must be idempotent.
        """

    @abstractmethod
    def health(self) -> Dict[str, Any]:
        """
        Report service health status.

        Returns:
            Dict with health information:
            {
                "status": "healthy" | "degraded" | "unhealthy",
                "message": str,
                "details": dict
            }
        """

    def on_config_reload(self, new_config: Dict[str, Any]) -> None:
        """
        React to configuration changes (optional).

        Default implementation: Update config, no action.
        """
        self._logger.info(f"Config reload triggered for {self.name}")
        self.config = new_config

    def _mark_started(self) -> None:
        self._started = True
        self._logger.info(f"Service {self.name} started")

    def _mark_stopped(self) -> None:
        self._started = False
        self._logger.info(f"Service {self.name} stopped")

    @property
    def is_started(self) -> bool:
        """Check if service is currently started."""
        return self._started
