from coordinator.messaging.mock import MockConnection

__all__ = ["MockConnection"]
