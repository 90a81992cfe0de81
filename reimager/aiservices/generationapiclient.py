from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..errors import GenerationServiceError, NetworkError
from ..uploads import UploadedImage

logger = logging.getLogger(__name__)

DEFAULT_ERROR = "Failed to generate image"


class GenerationApiClient:
    """Async client for the multipart generation endpoint.

    ``transport`` lets the app talk to its own endpoint in-process
    (``httpx.ASGITransport``) and tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._transport = transport

    async def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> str:
        data = {"prompt": prompt}
        files = None
        if image is not None:
            files = {"image": (image.filename, image.data, image.content_type)}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint_url, data=data, files=files)
        except httpx.TransportError as exc:
            logger.warning("Generation endpoint unreachable: %s", exc)
            raise NetworkError("Network error while contacting the generation service") from exc

        body = self._parse_body(response)

        if not response.is_success:
            error = body.get("error") if isinstance(body, dict) else None
            details = body.get("details") if isinstance(body, dict) else None
            raise GenerationServiceError(
                error or DEFAULT_ERROR,
                details=details,
                status_code=response.status_code,
            )

        image_url = body.get("imageUrl") if isinstance(body, dict) else None
        if not image_url or not isinstance(image_url, str):
            raise GenerationServiceError("Invalid image URL received from API", status_code=response.status_code)
        return image_url

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GenerationServiceError(
                "Malformed response from generation service",
                status_code=response.status_code,
            ) from exc
