"""Loading the configuration and polling it for changes."""

from __future__ import annotations

import asyncio
import logging

from .config import Config, Downloader
from .config import load as load_config

logger = logging.getLogger(__name__)


class Loader:
    """Loads the configuration and watches its location for changes."""

    def __init__(
        self,
        location: str,
        polling_duration: float = 0.0,
        downloader: Downloader | None = None,
    ) -> None:
        self.location = location
        self.polling_duration = polling_duration
        self.downloader = downloader
        self.last_config: Config | None = None

    def load(self) -> Config:
        """Load the configuration and remember it as the current one."""
        conf = load_config(self.location, self.downloader)
        self.last_config = conf
        return conf

    async def start(self) -> None:
        """Return once the configuration differs from the last one loaded.

        Without a positive polling duration this waits until cancelled.
        """
        if self.polling_duration <= 0:
            await asyncio.get_running_loop().create_future()
            return
        while True:
            await asyncio.sleep(self.polling_duration)
            try:
                conf = await asyncio.to_thread(load_config, self.location, self.downloader)
            except (OSError, ValueError) as err:
                logger.warning("failed to load config: %s", err)
                continue
            if conf != self.last_config:
                logger.info("detected config changes")
                return