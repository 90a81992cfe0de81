from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..uploads import UploadedImage


class ImageGenerationClient(ABC):
    """Abstract interface for an image generation client.

    Implementations must provide a synchronous generation method
    used by the rest of the application.
    """

    @property
    @abstractmethod
    def is_configured(self) -> bool:  # pragma: no cover - interface
        """Return True when credentials for the provider are present."""

    @abstractmethod
    def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> str:
        """Generate (or reimagine ``image``) from a prompt and return the result URL."""
