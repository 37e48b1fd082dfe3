"""Shared fixtures for relay tests."""

from __future__ import annotations

import pytest

from services.realtime.registry import BroadcastRegistry


@pytest.fixture
def registry():
    return BroadcastRegistry()
