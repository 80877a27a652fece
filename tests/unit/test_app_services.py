"""Tests for service wiring and shutdown."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.main import AppServices


def _services(**overrides: object) -> AppServices:
    handles = {
        "store": AsyncMock(),
        "replica": AsyncMock(),
        "assets": AsyncMock(),
        "sink": MagicMock(),
        "notifications": MagicMock(),
        "reconciler": MagicMock(),
        "tasks": MagicMock(),
        "supervisor": AsyncMock(),
    }
    handles.update(overrides)
    return AppServices(**handles)


@pytest.mark.unit
async def test_aclose_releases_everything() -> None:
    services = _services()

    await services.aclose()

    services.supervisor.stop.assert_awaited_once()
    services.replica.aclose.assert_awaited_once()
    services.assets.aclose.assert_awaited_once()
    services.store.close.assert_awaited_once()


@pytest.mark.unit
async def test_store_closes_even_when_supervisor_stop_fails() -> None:
    supervisor = AsyncMock()
    supervisor.stop.side_effect = RuntimeError("scheduler wedged")
    services = _services(supervisor=supervisor)

    with pytest.raises(RuntimeError, match="scheduler wedged"):
        await services.aclose()

    services.replica.aclose.assert_not_awaited()
    services.store.close.assert_awaited_once()


@pytest.mark.unit
async def test_store_closes_even_when_client_close_fails() -> None:
    replica = AsyncMock()
    replica.aclose.side_effect = OSError("socket already gone")
    services = _services(replica=replica)

    with pytest.raises(OSError, match="socket already gone"):
        await services.aclose()

    services.store.close.assert_awaited_once()
