import asyncio

import pytest

from mcagent.command import command_string
from mcagent.config import Config, MetricPlugin
from mcagent.loader import Loader

FIRST = "\napikey: 'placeholder'\nroot: '/tmp/mackerel-container-agent'\n"
SECOND = """
apikey: 'secret'
root: '/tmp/mackerel-container-agent'
plugin:
  metrics:
    mysql:
      command: mackerel-plugin-mysql
"""

EXPECT = Config(apibase="", apikey="placeholder", root="/tmp/mackerel-container-agent")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MACKEREL_APIBASE", "MACKEREL_APIKEY", "MACKEREL_ROLES",
                 "MACKEREL_IGNORE_CONTAINER", "MACKEREL_HOST_STATUS_ON_START"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "mackerel-config-test.yml"
    path.write_text(FIRST)
    return path


@pytest.mark.asyncio
async def test_loader_load(config_path):
    loader = Loader(str(config_path), 0)
    assert loader.load() == EXPECT
    assert loader.last_config == EXPECT
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(loader.start(), timeout=0.2)


@pytest.mark.asyncio
async def test_loader_start(config_path):
    loader = Loader(str(config_path), 0.3)
    assert loader.load() == EXPECT

    async def rewrite():
        await asyncio.sleep(0.8)
        config_path.write_text(SECOND)

    writer = asyncio.create_task(rewrite())
    await asyncio.wait_for(loader.start(), timeout=5)
    await writer
    assert writer.done()

    expect2 = Config(
        apibase="",
        apikey="secret",
        root="/tmp/mackerel-container-agent",
        metric_plugins=[MetricPlugin(name="mysql", command=command_string("mackerel-plugin-mysql"))],
    )
    assert loader.load() == expect2


@pytest.mark.asyncio
async def test_loader_start_cancel(config_path):
    loader = Loader(str(config_path), 0.3)
    assert loader.load() == EXPECT
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(loader.start(), timeout=0.5)


@pytest.mark.asyncio
async def test_loader_keeps_polling_after_load_error(config_path):
    loader = Loader(str(config_path), 0.1)
    assert loader.load() == EXPECT
    config_path.unlink()
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(loader.start(), timeout=0.5)
    assert loader.last_config == EXPECT