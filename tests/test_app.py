import asyncio

import pytest

from core import app
from core.config_loader import ChatConfig, PresenceConfig, StorageConfig
from services.chat_api import ChatApiConfig


@pytest.mark.asyncio
async def test_main_boots_and_shuts_down():
    config = ChatConfig(
        api=ChatApiConfig(host="127.0.0.1", port=0),
        storage=StorageConfig(backend="memory"),
        presence=PresenceConfig(sweep_interval_seconds=0.05),
    )
    stop_event = asyncio.Event()

    runner = asyncio.create_task(app.main(stop_event, config))
    await asyncio.sleep(0.1)
    assert not runner.done()

    stop_event.set()
    await asyncio.wait_for(runner, timeout=5)
