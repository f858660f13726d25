"""Alert delivery services."""

from .service import AlertPublisher

__all__ = ['AlertPublisher']
