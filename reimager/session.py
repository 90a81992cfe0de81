"""Per-wallet UI state around the paid generation flow."""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List, Optional

import httpx

from .aiservices.generationapiclient import GenerationApiClient
from .config import Settings, get_settings
from .errors import FlowInProgressError, ReimagerError
from .flow import FlowController
from .history import GenerationResult
from .notifications import Notification
from .payments.rpcwalletclient import RpcWalletClient
from .uploads import UploadedImage, validate_upload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationOutcome:
    result: Optional[GenerationResult] = None
    error: Optional[ReimagerError] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class GeneratorSession:
    """What the generator screen holds for one connected wallet.

    The trigger is disabled while a flow runs; :meth:`submit` enforces the
    same rule so a second click is rejected instead of starting a second
    payment.
    """

    def __init__(self, flow: FlowController) -> None:
        self.flow = flow
        self.uploaded_image: Optional[UploadedImage] = None
        self.current: Optional[GenerationResult] = None

    @property
    def wallet_address(self) -> Optional[str]:
        return self.flow.wallet.address

    @property
    def is_busy(self) -> bool:
        return self.flow.state.is_busy

    @property
    def history(self) -> List[GenerationResult]:
        return self.flow.history.items()

    @property
    def notifications(self) -> List[Notification]:
        return self.flow.notifications.active()

    def can_generate(self, prompt: str) -> bool:
        return bool((prompt or "").strip()) and bool(self.wallet_address) and not self.is_busy

    def attach_image(self, image: UploadedImage) -> None:
        """Keep ``image`` for the next submit; a rejected upload changes nothing."""
        try:
            validate_upload(image, self.flow.settings.max_upload_bytes)
        except ReimagerError as exc:
            self.flow.notifications.error(exc.message)
            raise
        self.uploaded_image = image
        self.flow.notifications.success("Image uploaded successfully!")

    def clear_image(self) -> None:
        self.uploaded_image = None

    def select(self, index: int) -> GenerationResult:
        self.current = self.flow.history.get(index)
        return self.current

    async def submit(self, prompt: str) -> GenerationOutcome:
        if self.is_busy:
            raise FlowInProgressError("A generation is already in progress")

        try:
            result = await self.flow.generate(prompt, self.uploaded_image)
        except ReimagerError as exc:
            self.flow.notifications.error(exc.message, getattr(exc, "details", None))
            return GenerationOutcome(error=exc)
        except Exception:
            # Already logged with its traceback by the flow.
            error = ReimagerError("Something went wrong. Please try again.")
            self.flow.notifications.error(error.message)
            return GenerationOutcome(error=error)

        self.current = result
        return GenerationOutcome(result=result)


SessionFactory = Callable[[str], GeneratorSession]


class SessionRegistry:
    """One :class:`GeneratorSession` per wallet address, created on first use.

    At most ``max_sessions`` are kept. Creating one more evicts the least
    recently used idle session; busy sessions are never evicted.
    """

    def __init__(self, factory: SessionFactory, max_sessions: int = 1000) -> None:
        self._factory = factory
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, GeneratorSession]" = OrderedDict()

    def get(self, wallet_address: str) -> GeneratorSession:
        key = wallet_address.strip().lower()
        session = self._sessions.get(key)
        if session is None:
            logger.debug("Creating session for %s", key)
            self._evict(self.max_sessions - 1)
            session = self._factory(wallet_address.strip())
            self._sessions[key] = session
        else:
            self._sessions.move_to_end(key)
        return session

    def find(self, wallet_address: str) -> Optional[GeneratorSession]:
        return self._sessions.get(wallet_address.strip().lower())

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict(self, keep: int) -> None:
        idle = [key for key, session in self._sessions.items() if not session.is_busy]
        for key in idle[: max(len(self._sessions) - keep, 0)]:
            logger.debug("Evicting idle session for %s", key)
            del self._sessions[key]


def build_generation_client(settings: Settings) -> GenerationApiClient:
    if settings.generation_endpoint_url:
        return GenerationApiClient(settings.generation_endpoint_url, timeout=settings.request_timeout)

    # No external endpoint configured: call this app's own route in-process.
    from .main import app

    return GenerationApiClient(
        "http://reimager.internal/api/generate",
        timeout=settings.request_timeout,
        transport=httpx.ASGITransport(app=app),
    )


def build_session_factory(
    settings: Settings,
    rpc_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SessionFactory:
    """Factory wiring the RPC wallet and the generation endpoint client."""

    def factory(wallet_address: str) -> GeneratorSession:
        wallet = RpcWalletClient(wallet_address, settings, transport=rpc_transport)
        flow = FlowController(wallet, build_generation_client(settings), settings=settings)
        return GeneratorSession(flow)

    return factory


@lru_cache
def get_session_registry() -> SessionRegistry:
    settings = get_settings()
    return SessionRegistry(build_session_factory(settings), max_sessions=settings.max_sessions)
