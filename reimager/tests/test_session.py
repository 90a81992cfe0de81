"""Tests covering :mod:`reimager.session`."""

from __future__ import annotations

import asyncio
import sys
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from reimager.config import Settings
from reimager.errors import FlowInProgressError, InputValidationError, PaymentTimeoutError
from reimager.flow import FlowController
from reimager.notifications import NotificationLevel
from reimager.payments.walletclient import TransactionHandle, TransactionStatus, WalletClient
from reimager.session import GeneratorSession, SessionRegistry
from reimager.uploads import UploadedImage

WALLET = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"


class InstantWallet(WalletClient):
    def __init__(self, address: Optional[str] = WALLET, confirms: bool = True) -> None:
        self._address = address
        self.confirms = confirms
        self.payments = 0

    @property
    def address(self) -> Optional[str]:
        return self._address

    async def send_payment(self, recipient: str, amount: Decimal) -> TransactionHandle:
        self.payments += 1
        return TransactionHandle(tx_hash=f"0x{self.payments}", recipient=recipient, amount=amount)

    async def get_status(self, handle: TransactionHandle) -> TransactionStatus:
        return TransactionStatus.CONFIRMED if self.confirms else TransactionStatus.PENDING


class GatedGenerationClient:
    """Blocks inside ``generate`` until the gate opens."""

    def __init__(self, gate: Optional[asyncio.Event] = None) -> None:
        self.gate = gate
        self.calls: list[str] = []

    async def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> str:
        self.calls.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        return f"https://cdn.example/{len(self.calls)}.png"


async def _no_sleep(delay: float) -> None:
    return None


def _session(wallet: Optional[WalletClient] = None, generation=None) -> GeneratorSession:
    flow = FlowController(
        wallet or InstantWallet(),
        generation or GatedGenerationClient(),
        settings=Settings(),
        sleep=_no_sleep,
    )
    return GeneratorSession(flow)


def test_can_generate_mirrors_trigger_state() -> None:
    session = _session()

    assert session.can_generate("a red bicycle")
    assert not session.can_generate("   ")
    assert not _session(InstantWallet(address=None)).can_generate("a red bicycle")

    session.flow.state.begin()
    assert not session.can_generate("a red bicycle")


def test_rapid_double_submission_is_rejected() -> None:
    async def scenario() -> None:
        gate = asyncio.Event()
        wallet = InstantWallet()
        generation = GatedGenerationClient(gate)
        session = _session(wallet, generation)

        first = asyncio.create_task(session.submit("a red bicycle"))
        await asyncio.sleep(0)
        assert session.is_busy

        with pytest.raises(FlowInProgressError):
            await session.submit("a red bicycle")

        gate.set()
        outcome = await first

        assert outcome.ok
        assert wallet.payments == 1
        assert generation.calls == ["a red bicycle"]
        assert not session.is_busy

    asyncio.run(scenario())


def test_submit_success_updates_current_and_history() -> None:
    session = _session()

    first = asyncio.run(session.submit("first"))
    second = asyncio.run(session.submit("second"))

    assert first.ok and second.ok
    assert session.current == second.result
    assert [item.prompt for item in session.history] == ["second", "first"]


def test_submit_failure_becomes_error_notification() -> None:
    session = _session(InstantWallet(confirms=False))

    outcome = asyncio.run(session.submit("a red bicycle"))

    assert not outcome.ok
    assert isinstance(outcome.error, PaymentTimeoutError)
    errors = [item for item in session.notifications if item.level is NotificationLevel.ERROR]
    assert errors[-1].title == "Payment confirmation timeout - transaction may have failed"
    assert not session.is_busy


def test_attach_image_rejects_non_images_without_state_change() -> None:
    session = _session()
    good = UploadedImage("cat.png", "image/png", b"\x89PNG")
    session.attach_image(good)

    with pytest.raises(InputValidationError):
        session.attach_image(UploadedImage("notes.txt", "text/plain", b"hi"))

    assert session.uploaded_image is good
    assert session.notifications[-1].title == "Please upload an image file"


def test_attached_image_is_used_and_prompt_annotated() -> None:
    session = _session()
    session.attach_image(UploadedImage("cat.png", "image/png", b"\x89PNG"))

    outcome = asyncio.run(session.submit("make it blue"))

    assert outcome.result.prompt == "Reimagined: make it blue"

    session.clear_image()
    outcome = asyncio.run(session.submit("make it blue"))
    assert outcome.result.prompt == "make it blue"


def test_select_shows_history_entry() -> None:
    session = _session()
    asyncio.run(session.submit("first"))
    asyncio.run(session.submit("second"))

    assert session.select(1).prompt == "first"
    assert session.current.prompt == "first"
    with pytest.raises(IndexError):
        session.select(5)


def test_registry_reuses_sessions_case_insensitively() -> None:
    created: list[str] = []

    def factory(address: str) -> GeneratorSession:
        created.append(address)
        return _session(InstantWallet(address=address))

    registry = SessionRegistry(factory)
    first = registry.get(WALLET)
    second = registry.get(WALLET.lower())

    assert first is second
    assert created == [WALLET]
    assert registry.find(WALLET.upper().replace("0X", "0x")) is first
    assert registry.find("0x" + "9" * 40) is None
    assert len(registry) == 1


class BrokenGenerationClient:
    async def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> str:
        raise AttributeError("'list' object has no attribute 'get'")


def test_unexpected_failure_becomes_generic_error_notification() -> None:
    session = _session(generation=BrokenGenerationClient())

    outcome = asyncio.run(session.submit("a red bicycle"))

    assert not outcome.ok
    assert outcome.error.message == "Something went wrong. Please try again."
    errors = [item for item in session.notifications if item.level is NotificationLevel.ERROR]
    assert [item.title for item in errors] == ["Something went wrong. Please try again."]
    assert not session.is_busy


def _address(index: int) -> str:
    return "0x" + format(index, "040x")


def test_registry_evicts_least_recently_used_idle_session() -> None:
    registry = SessionRegistry(lambda address: _session(InstantWallet(address=address)), max_sessions=2)
    first = registry.get(_address(1))
    registry.get(_address(2))
    registry.get(_address(1))

    registry.get(_address(3))

    assert len(registry) == 2
    assert registry.find(_address(1)) is first
    assert registry.find(_address(2)) is None


def test_registry_never_evicts_busy_sessions() -> None:
    registry = SessionRegistry(lambda address: _session(InstantWallet(address=address)), max_sessions=2)
    busy = registry.get(_address(1))
    busy.flow.state.begin()
    registry.get(_address(2))

    registry.get(_address(3))

    assert registry.find(_address(1)) is busy
    assert registry.find(_address(2)) is None
    assert len(registry) == 2
