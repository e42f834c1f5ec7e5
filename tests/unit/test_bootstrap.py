"""Unit tests for process startup/shutdown (creator_engine/bootstrap.py)"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from creator_engine import bootstrap
from creator_engine.services.container import get_container
from fakes import FakeLLM


@pytest.mark.asyncio
async def test_startup_opens_pool_and_builds_container(monkeypatch):
    monkeypatch.setattr(bootstrap, "validate_config", MagicMock())
    monkeypatch.setattr(bootstrap.db, "init_pool", AsyncMock())
    monkeypatch.setattr(bootstrap.db, "close_pool", AsyncMock())
    llm = FakeLLM()

    container = await bootstrap.startup(llm=llm)

    bootstrap.validate_config.assert_called_once()
    bootstrap.db.init_pool.assert_awaited_once()
    assert container.db is bootstrap.db
    assert container.llm_client is llm
    assert get_container() is container

    await bootstrap.shutdown()

    bootstrap.db.close_pool.assert_awaited_once()
    with pytest.raises(RuntimeError):
        get_container()


@pytest.mark.asyncio
async def test_startup_stops_on_invalid_config(monkeypatch):
    monkeypatch.setattr(bootstrap, "validate_config", MagicMock(side_effect=ValueError("OPENAI_API_KEY is required")))
    monkeypatch.setattr(bootstrap.db, "init_pool", AsyncMock())

    with pytest.raises(ValueError):
        await bootstrap.startup()

    bootstrap.db.init_pool.assert_not_awaited()
