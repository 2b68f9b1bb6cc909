"""Social platform adapters and the broadcast publisher."""

from .publisher import PublisherService

__all__ = ["PublisherService"]
