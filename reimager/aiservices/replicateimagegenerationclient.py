from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx

from ..config import Settings, get_settings
from ..uploads import UploadedImage
from .imagegenerationclient import ImageGenerationClient

logger = logging.getLogger(__name__)

_TERMINAL_STATES = {"succeeded", "failed", "canceled"}


class ReplicateImageGenerationClient(ImageGenerationClient):
    """
    Runs predictions through the Replicate HTTP API.

    The same model serves both modes: ``image_input`` is empty for
    text-to-image and holds one data URL for image-to-image.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.replicate_api_token.get_secret_value())

    def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> str:
        if image is not None:
            logger.info("Processing image-to-image generation with %s", self.settings.replicate_model)
        else:
            logger.info("Processing text-to-image generation with %s", self.settings.replicate_model)

        payload = {"input": self.build_input(prompt, image)}
        url = f"{self.settings.replicate_base_url}/models/{self.settings.replicate_model}/predictions"

        with httpx.Client(
            headers=self._headers(),
            timeout=self.settings.replicate_timeout,
            transport=self._transport,
        ) as client:
            response = client.post(url, json=payload, headers={"Prefer": "wait"})
            response.raise_for_status()
            prediction = self._wait_for_prediction(client, response.json())

        return self._extract_url(prediction)

    def build_input(self, prompt: str, image: Optional[UploadedImage]) -> dict[str, Any]:
        return {
            "prompt": prompt,
            "image_input": [image.to_data_url()] if image is not None else [],
            "aspect_ratio": self.settings.aspect_ratio,
            "output_format": self.settings.output_format,
        }

    # --- Internal helpers -----------------------------------------------------

    def _headers(self) -> dict[str, str]:
        token = self.settings.replicate_api_token.get_secret_value()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _wait_for_prediction(self, client: httpx.Client, prediction: dict[str, Any]) -> dict[str, Any]:
        deadline = time.monotonic() + self.settings.replicate_timeout
        while prediction.get("status") not in _TERMINAL_STATES:
            poll_url = (prediction.get("urls") or {}).get("get")
            if not poll_url:
                raise RuntimeError("Prediction did not finish and has no status URL")
            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Prediction {prediction.get('id')} did not finish within {self.settings.replicate_timeout}s"
                )
            self._sleep(self.settings.replicate_poll_interval)
            response = client.get(poll_url)
            response.raise_for_status()
            prediction = response.json()

        status = prediction.get("status")
        if status != "succeeded":
            error = prediction.get("error") or f"prediction {status}"
            raise RuntimeError(str(error))
        return prediction

    @staticmethod
    def _extract_url(prediction: dict[str, Any]) -> str:
        output = prediction.get("output")
        if isinstance(output, list):
            output = output[0] if output else None
        if not isinstance(output, str) or not output:
            raise RuntimeError("Model returned no image URL")
        return output
