"""Shared fixtures for decoder tests."""

import pytest

from freematics_decoder.session import CollectingTransport, DeviceSessions

DEVICE_ID = "GT3000"


@pytest.fixture
def sessions() -> DeviceSessions:
    """Registry that knows :data:`DEVICE_ID` only."""
    return DeviceSessions(known_ids=[DEVICE_ID])


@pytest.fixture
def transport() -> CollectingTransport:
    return CollectingTransport()
