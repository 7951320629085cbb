"""
Service registry.

Owns the startup and teardown order of the bridge services.
"""

from typing import Dict, List, Type, TypeVar, Optional, Any
import logging
from deckbridge.services.base import BridgeService

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BridgeService)


class ServiceRegistry:
    """
    Central registry for all bridge services.

    Responsibilities:
    - Service registration (instances are constructed by the caller)
    - Lifecycle management (start in order, stop in reverse order)
    - Health aggregation
    - Service lookup by name or type
    """

    def __init__(self):
        self._services: Dict[str, BridgeService] = {}

    def register(self, service: BridgeService) -> BridgeService:
        """
        Register a constructed service.

        Args:
            service: Service instance

        Raises:
            ValueError: If a service with the same name is already registered
        """
        if service.name in self._services:
            raise ValueError(f"Service '{service.name}' already registered")

        self._services[service.name] = service
        logger.info(f"Registered service: {service.name}")
        return service

    def get_service(self, name: str) -> Optional[BridgeService]:
        return self._services.get(name)

    def get_services_by_type(self, service_type: Type[S]) -> List[S]:
        return [
            service for service in self._services.values()
            if isinstance(service, service_type)
        ]

    async def start_all(self) -> None:
        """
        Start all registered services.

        Services are started in registration order.
        If any service fails to start, already-started services are stopped
        and the exception is re-raised.
        """
        logger.info(f"Starting {len(self._services)} services...")

        for name, service in self._services.items():
            try:
                logger.info(f"Starting service: {name}")
                await service.start()
                if not service.is_started:
                    service._mark_started()

            except Exception as e:
                logger.error(f"Failed to start service '{name}': {e}")
                await self._stop_started_services()
                raise

        logger.info("All services started successfully")

    async def stop_all(self) -> None:
        """
        Stop all registered services.

        Services are stopped in reverse registration order.
        Continues stopping even if individual services fail.
        """
        logger.info(f"Stopping {len(self._services)} services...")

        for name, service in reversed(list(self._services.items())):
            try:
                if service.is_started:
                    logger.info(f"Stopping service: {name}")
                    await service.stop()
                    if service.is_started:
                        service._mark_stopped()

            except Exception as e:
                logger.error(f"Error stopping service '{name}': {e}")

        logger.info("All services stopped")

    async def _stop_started_services(self) -> None:
        for name, service in reversed(list(self._services.items())):
            if service.is_started:
                try:
                    logger.warning(f"Cleanup: stopping service {name}")
                    await service.stop()
                    if service.is_started:
                        service._mark_stopped()
                except Exception as e:
                    logger.error(f"Error during cleanup of '{name}': {e}")

    def health_all(self) -> Dict[str, Any]:
        """
        Aggregate health status from all services (worst status wins).
        """
        service_health = {}
        overall_status = "healthy"

        for name, service in self._services.items():
            try:
                health = service.health()
                service_health[name] = health

                if health["status"] == "unhealthy":
                    overall_status = "unhealthy"
                elif health["status"] == "degraded" and overall_status != "unhealthy":
                    overall_status = "degraded"

            except Exception as e:
                logger.error(f"Health check failed for '{name}': {e}")
                service_health[name] = {
                    "status": "unhealthy",
                    "message": f"Health check error: {e}",
                    "details": {}
                }
                overall_status = "unhealthy"

        return {
            "status": overall_status,
            "services": service_health
        }

    def reload_config(self, service_name: str, new_config: Dict[str, Any]) -> None:
        """
        Reload configuration for a specific service.

        Raises:
            ValueError: If service not found
        """
        service = self.get_service(service_name)
        if not service:
            raise ValueError(f"Service '{service_name}' not found")

        logger.info(f"Reloading config for service: {service_name}")
        service.on_config_reload(new_config)

    @property
    def service_count(self) -> int:
        return len(self._services)

    @property
    def service_names(self) -> List[str]:
        return list(self._services.keys())
