"""Pay-then-generate orchestration.

A call to :meth:`FlowController.generate` submits one payment, waits a
bounded time for it to confirm, and only then asks the
generation service for an image. The payment is never rolled back: a
confirmed payment followed by a failed generation leaves the user charged
without a result, which is logged and surfaced, not hidden.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from .config import Settings, get_settings
from .errors import (
    GenerationServiceError,
    InputValidationError,
    InvalidTransitionError,
    NetworkError,
    PaymentFailedError,
    PaymentTimeoutError,
    ReimagerError,
)
from .history import GenerationHistory, GenerationResult, annotate_prompt
from .notifications import NotificationCenter
from .payments.walletclient import TransactionHandle, TransactionStatus, WalletClient
from .uploads import UploadedImage, validate_upload

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class GenerationClient(Protocol):
    async def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> str:
        ...


class PaymentPhase(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class PaymentState:
    """Payment progress plus the transient UI fields tied to it."""

    phase: PaymentPhase = PaymentPhase.IDLE
    tx_hash: Optional[str] = None
    polls: int = 0
    is_generating: bool = False
    toast_id: Optional[str] = None

    @property
    def is_busy(self) -> bool:
        return self.is_generating or self.phase is not PaymentPhase.IDLE

    def begin(self) -> None:
        self._require(PaymentPhase.IDLE, "begin")
        if self.is_generating:
            raise InvalidTransitionError("a generation is already running")
        self.is_generating = True

    def submit(self, tx_hash: str, toast_id: Optional[str] = None) -> None:
        self._require(PaymentPhase.IDLE, "submit")
        self.phase = PaymentPhase.PENDING
        self.tx_hash = tx_hash
        self.toast_id = toast_id
        self.polls = 0

    def confirm(self) -> None:
        self._require(PaymentPhase.PENDING, "confirm")
        self.phase = PaymentPhase.CONFIRMED

    def time_out(self) -> None:
        self._require(PaymentPhase.PENDING, "time out")
        self.phase = PaymentPhase.TIMED_OUT

    def fail(self) -> None:
        if self.phase is PaymentPhase.IDLE and not self.is_generating:
            raise InvalidTransitionError("cannot fail an idle payment")
        self.phase = PaymentPhase.FAILED

    def reset(self) -> None:
        self.phase = PaymentPhase.IDLE
        self.tx_hash = None
        self.polls = 0
        self.is_generating = False
        self.toast_id = None

    def _require(self, expected: PaymentPhase, action: str) -> None:
        if self.phase is not expected:
            raise InvalidTransitionError(f"cannot {action} from {self.phase.value}")


class FlowController:
    """Validates a request, collects payment, then calls the generation service."""

    def __init__(
        self,
        wallet: WalletClient,
        generation_client: GenerationClient,
        history: Optional[GenerationHistory] = None,
        notifications: Optional[NotificationCenter] = None,
        settings: Optional[Settings] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.wallet = wallet
        self.generation_client = generation_client
        self.history = history or GenerationHistory(self.settings.history_capacity)
        self.notifications = notifications or NotificationCenter(
            default_duration=self.settings.notification_duration,
            max_active=self.settings.max_notifications,
        )
        self.state = PaymentState()
        self._sleep = sleep

    @property
    def payment_unit(self) -> str:
        if self.settings.payment_token_address:
            return self.settings.payment_token_symbol
        return "ETH"

    def validate(self, prompt: str, image: Optional[UploadedImage] = None) -> None:
        """Raise InputValidationError unless a paid generation may start."""
        if not (prompt or "").strip():
            raise InputValidationError("Please enter a prompt")
        if not self.wallet.address:
            raise InputValidationError("Please connect your wallet first")
        validate_upload(image, self.settings.max_upload_bytes)

    async def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> GenerationResult:
        self.validate(prompt, image)

        state = self.state
        state.begin()
        confirmed_hash: Optional[str] = None
        try:
            amount = self.settings.payment_amount
            handle = await self.wallet.send_payment(self.settings.payment_recipient, amount)
            toast_id = self.notifications.loading(
                "Processing payment...",
                f"Paying {amount} {self.payment_unit} for image generation",
            )
            state.submit(handle.tx_hash, toast_id)

            await self._await_confirmation(handle)
            confirmed_hash = handle.tx_hash

            image_url = await self.generation_client.generate(prompt, image)
            if not image_url or not isinstance(image_url, str):
                raise GenerationServiceError("Invalid image URL received from API")

            result = GenerationResult(
                image_url=image_url,
                prompt=annotate_prompt(prompt, image is not None),
                tx_hash=handle.tx_hash,
            )
            self.history.push(result)
            self.notifications.success("Image generated successfully!")
            logger.info("Generated image for payment %s", handle.tx_hash)
            return result
        except ReimagerError as exc:
            if state.phase is not PaymentPhase.TIMED_OUT:
                state.fail()
            if confirmed_hash is not None:
                logger.warning(
                    "Payment %s was confirmed but generation failed: %s", confirmed_hash, exc
                )
            else:
                logger.warning("Paid generation aborted: %s", exc)
            raise
        except Exception:
            state.fail()
            logger.exception("Unexpected failure during paid generation")
            raise
        finally:
            self.notifications.dismiss(state.toast_id)
            state.reset()

    async def _await_confirmation(self, handle: TransactionHandle) -> None:
        """Poll until confirmed, reverted, or the ceiling passes.

        The ceiling is ``confirmation_max_polls * confirmation_poll_interval``
        of wall-clock time as well as a poll count. A status read may run at
        most one poll interval past it. A read that fails or overruns counts
        as still pending.
        """
        state = self.state
        interval = self.settings.confirmation_poll_interval
        max_polls = self.settings.confirmation_max_polls
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_polls * interval

        while state.polls < max_polls and loop.time() < deadline:
            await self._sleep(interval)
            state.polls += 1

            read_timeout = max(deadline - loop.time(), interval)
            try:
                status = await asyncio.wait_for(self.wallet.get_status(handle), timeout=read_timeout)
            except asyncio.TimeoutError:
                logger.warning("Status read for %s timed out on poll %s", handle.tx_hash, state.polls)
                continue
            except NetworkError as exc:
                logger.warning("Status read for %s failed on poll %s: %s", handle.tx_hash, state.polls, exc)
                continue

            if status is TransactionStatus.CONFIRMED:
                state.confirm()
                self.notifications.success(
                    "Payment confirmed!",
                    f"{handle.amount} {self.payment_unit} payment confirmed. Generating your image...",
                    duration=self.settings.confirmation_notification_duration,
                )
                self.notifications.dismiss(state.toast_id)
                logger.info("Payment %s confirmed after %s polls", handle.tx_hash, state.polls)
                return
            if status is TransactionStatus.REVERTED:
                raise PaymentFailedError("Payment transaction was reverted")

        state.time_out()
        raise PaymentTimeoutError("Payment confirmation timeout - transaction may have failed")
