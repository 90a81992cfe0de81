"""Tests for :mod:`reimager.notifications`."""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from reimager.notifications import NotificationCenter, NotificationLevel


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_notification_center_tracks_and_dismisses() -> None:
    center = NotificationCenter()
    pending = center.loading("Processing payment...", "Paying 0.00005 ETH for image generation")
    done = center.success("Image generated successfully!")

    assert pending != done
    assert center.get(pending).level is NotificationLevel.LOADING

    center.dismiss(pending)
    center.dismiss(None)
    center.dismiss("toast-unknown")

    assert [item.id for item in center.active()] == [done]


def test_notifications_expire_but_loading_stays() -> None:
    clock = FakeClock()
    center = NotificationCenter(default_duration=4.0, clock=clock)
    pending = center.loading("Processing payment...")
    confirmed = center.success("Payment confirmed!", duration=2.0)
    center.error("Payment failed")

    clock.now += 2.0
    assert confirmed not in [item.id for item in center.active()]
    assert len(center.active()) == 2

    clock.now += 2.0
    assert [item.id for item in center.active()] == [pending]


def test_notifications_are_capped_oldest_first() -> None:
    center = NotificationCenter(max_active=3, clock=FakeClock())
    ids = [center.success(f"done {index}") for index in range(10)]

    assert [item.id for item in center.active()] == ids[-3:]
    assert len(center) == 3
