"""Business logic of the number pool engine."""

from number_pool_service.services.engine import NumberPoolEngine

__all__ = ["NumberPoolEngine"]
