"""Domain logic behind the generation endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import status

from .aiservices.imagegenerationclient import ImageGenerationClient
from .aiservices.replicateimagegenerationclient import ReplicateImageGenerationClient
from .config import Settings, get_settings
from .errors import GenerationServiceError
from .history import annotate_prompt
from .uploads import UploadedImage

logger = logging.getLogger(__name__)


@dataclass
class GeneratedImage:
    image_url: str
    prompt: str


class ReimagerService:
    """Runs a single generation against the configured image model."""

    def __init__(
        self,
        settings: Settings | None = None,
        image_client: Optional[ImageGenerationClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._image_client = image_client or ReplicateImageGenerationClient(self.settings)

    @property
    def is_configured(self) -> bool:
        return self._image_client.is_configured

    def generate_image(self, prompt: str, image: Optional[UploadedImage] = None) -> GeneratedImage:
        """Generate from ``prompt``, reimagining ``image`` when one is given."""
        if not self.is_configured:
            logger.error("Missing Replicate API token")
            raise GenerationServiceError(
                "Server configuration error: Replicate API token not configured",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        try:
            image_url = self._image_client.generate(prompt, image)
        except Exception as exc:
            logger.exception("Image generation failed for prompt '%s'", prompt)
            raise GenerationServiceError(
                "Failed to generate image",
                details=str(exc) or "Unknown error occurred",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            ) from exc

        return GeneratedImage(
            image_url=image_url,
            prompt=annotate_prompt(prompt, image is not None),
        )


@lru_cache
def get_reimager_service() -> ReimagerService:
    return ReimagerService(get_settings())
