"""Check monitoring: running check plugins and posting their reports."""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

from .api import CheckConfig, CheckReport, CheckSource, CheckStatus, Client
from .cmdutil import CommandTimedOut, run_command
from .config import CheckPlugin

logger = logging.getLogger(__name__)

MAX_PENDING_REPORTS = 60
_MAX_BATCHES_PER_POST = 3


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one run of a check."""

    name: str
    message: str
    status: CheckStatus
    occurred_at: datetime


class Generator(ABC):
    """Something that produces check results."""

    @abstractmethod
    def generate(self) -> CheckResult | None:
        """Run the check; None means there is nothing to report."""

    @abstractmethod
    def config(self) -> CheckConfig:
        """The check monitor configuration for this generator."""


def exit_code_to_status(exit_code: int) -> CheckStatus:
    """Map a plugin exit code to a check status."""
    return {
        0: CheckStatus.OK,
        1: CheckStatus.WARNING,
        2: CheckStatus.CRITICAL,
    }.get(exit_code, CheckStatus.UNKNOWN)


class PluginGenerator(Generator):
    """Runs a check plugin command and turns its result into a check result."""

    def __init__(self, plugin: CheckPlugin) -> None:
        self.plugin = plugin
        self._last_result: CheckResult | None = None
        self._lock = threading.Lock()

    def config(self) -> CheckConfig:
        return CheckConfig(name=self.plugin.name, memo=self.plugin.memo)

    def generate(self) -> CheckResult | None:
        """Run the plugin; a repeated OK result is not reported again."""
        plugin = self.plugin
        now = datetime.now(timezone.utc)
        stderr = ""
        try:
            outcome = run_command(plugin.command, plugin.user, plugin.env, plugin.timeout)
        except CommandTimedOut as err:
            stderr = err.result.stderr
            message, status = str(err), CheckStatus.UNKNOWN
            logger.warning("plugin %s (%s): %s", plugin.name, plugin.command, err)
        except OSError as err:
            message, status = str(err), CheckStatus.UNKNOWN
            logger.warning("plugin %s (%s): %s", plugin.name, plugin.command, err)
        else:
            stderr = outcome.stderr
            message, status = outcome.stdout, exit_code_to_status(outcome.exit_code)
        if stderr:
            logger.info("plugin %s (%s): %r", plugin.name, plugin.command, stderr)

        result = CheckResult(plugin.name, message, status, now)
        with self._lock:
            last, self._last_result = self._last_result, result
        if last is not None and last.status is CheckStatus.OK and status is CheckStatus.OK:
            return None
        return result


class Collector:
    """Runs all generators concurrently and gathers their results."""

    def __init__(self, generators: Iterable[Generator] | None) -> None:
        self.generators = list(generators or ())

    def configs(self) -> list[CheckConfig]:
        """The configurations of all generators, in order."""
        return [g.config() for g in self.generators]

    def collect(self) -> list[CheckResult]:
        """Run every generator; failures are logged and left out."""
        if not self.generators:
            return []
        with ThreadPoolExecutor(max_workers=len(self.generators)) as pool:
            futures = [pool.submit(g.generate) for g in self.generators]
        results = []
        for future in futures:
            try:
                result = future.result()
            except Exception as err:  # a failing check must not stop the others
                logger.error("%s", err)
                continue
            if result is not None:
                results.append(result)
        return results


class Sender:
    """Posts check reports, keeping those that could not be sent yet."""

    def __init__(self, client: Client) -> None:
        self._client = client
        self._host_id = ""
        self._pending: list[list[CheckReport]] = []
        self._lock = threading.Lock()

    def set_host_id(self, host_id: str) -> None:
        with self._lock:
            self._host_id = host_id

    def post(self, reports: Sequence[CheckReport]) -> None:
        """Queue reports and post the oldest queued ones once the host is known."""
        with self._lock:
            self._pending.append(list(reports))
            if not self._host_id:
                return
            batches = self._pending[:_MAX_BATCHES_PER_POST]
            to_post = [report for batch in batches for report in batch]
            source = CheckSource.host(self._host_id)
            for report in to_post:
                report.source = source
            try:
                if to_post:
                    self._client.post_check_reports(to_post)
            except Exception as err:
                logger.warning(
                    "failed to post check monitoring reports but will retry posting: %s", err
                )
            else:
                del self._pending[: len(batches)]
            if len(self._pending) > MAX_PENDING_REPORTS:
                del self._pending[:-MAX_PENDING_REPORTS]


class CheckManager:
    """Collects check results periodically and posts them."""

    def __init__(self, generators: Iterable[Generator] | None, client: Client) -> None:
        self._collector = Collector(generators)
        self._sender = Sender(client)

    def configs(self) -> list[CheckConfig]:
        return self._collector.configs()

    def set_host_id(self, host_id: str) -> None:
        self._sender.set_host_id(host_id)

    def collect_and_post(self) -> None:
        """Collect results once and hand them to the sender."""
        reports = [
            CheckReport(
                name=r.name,
                status=r.status,
                message=r.message,
                occurred_at=int(r.occurred_at.timestamp()),
            )
            for r in self._collector.collect()
        ]
        self._sender.post(reports)

    async def run(self, interval: float) -> None:
        """Collect and post every interval seconds until cancelled.

        Raises the first error a round of collecting and posting raises.
        """
        loop = asyncio.get_running_loop()
        failure: asyncio.Future = loop.create_future()
        tasks: set[asyncio.Future] = set()

        def finished(task: asyncio.Future) -> None:
            tasks.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None and not failure.done():
                failure.set_exception(exc)

        deadline = loop.time()
        try:
            while True:
                deadline += interval
                await asyncio.wait({failure}, timeout=max(0.0, deadline - loop.time()))
                if failure.done():
                    failure.result()
                task = asyncio.ensure_future(asyncio.to_thread(self.collect_and_post))
                tasks.add(task)
                task.add_done_callback(finished)
        finally:
            for task in list(tasks):
                task.cancel()
            if not failure.done():
                failure.cancel()