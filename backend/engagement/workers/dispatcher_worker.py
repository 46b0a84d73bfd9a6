"""
Dispatcher Worker
Background worker that drives the periodic dispatcher tick

Run as separate process:
    python -m engagement.workers.dispatcher_worker
"""
import asyncio
import logging
import signal
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from engagement.core.container import Container, build_container
from engagement.domain.services.dispatcher import TickReport


logger = logging.getLogger(__name__)


class DispatcherWorker:
    """
    Runs Dispatcher.tick() once per tick interval.

    Ticks are aligned to interval boundaries of the campaign clock so that
    consecutive individual passes cover consecutive minutes. The worker can
    own its container (standalone process) or borrow the API's.
    """

    MAX_CONSECUTIVE_ERRORS = 10

    def __init__(self, container: Optional[Container] = None):
        self._container = container
        self._owns_container = container is None
        self.running = False
        self._stopped = False

        # Stats
        self._ticks = 0
        self._calls_placed = 0
        self._tick_errors = 0

    @property
    def container(self) -> Container:
        if self._container is None:
            raise RuntimeError("DispatcherWorker not initialized")
        return self._container

    async def initialize(self) -> None:
        """Build and start the container when running standalone."""
        if self._container is not None:
            return
        logger.info("Initializing Dispatcher Worker...")
        self._container = build_container()
        await self._container.startup()
        logger.info("Dispatcher Worker initialized successfully")

    def seconds_until_next_tick(self) -> float:
        interval = self.container.settings.tick_interval_seconds
        elapsed = self.container.clock.now().timestamp() % interval
        return interval - elapsed

    async def run_once(self) -> TickReport:
        report = await self.container.dispatcher.tick()
        self._ticks += 1
        self._calls_placed += report.placed
        if report.placed:
            logger.info(f"Tick placed {report.placed} call(s)")
        return report

    async def run(self) -> None:
        """
        Main worker loop.

        Sleeps to the next tick boundary, ticks, repeats. Consecutive tick
        failures back off and stop the worker after MAX_CONSECUTIVE_ERRORS.
        """
        await self.initialize()

        self.running = True
        consecutive_errors = 0

        logger.info(
            f"Dispatcher Worker started - ticking every "
            f"{self.container.settings.tick_interval_seconds:g}s"
        )

        while self.running:
            try:
                await self.container.clock.sleep(self.seconds_until_next_tick())
                if not self.running:
                    break
                await self.run_once()
                consecutive_errors = 0

            except asyncio.CancelledError:
                logger.info("Worker received cancellation signal")
                break
            except Exception as e:
                consecutive_errors += 1
                self._tick_errors += 1
                logger.error(f"Worker error ({consecutive_errors}): {e}", exc_info=True)

                if consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS:
                    logger.critical("Too many consecutive errors, stopping worker")
                    break

                await asyncio.sleep(min(5 * consecutive_errors, 60))

        await self.shutdown()

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        if self._stopped:
            return
        self._stopped = True
        logger.info("Shutting down Dispatcher Worker...")
        self.running = False

        if self._owns_container and self._container is not None:
            await self._container.shutdown()
            self._container = None

        logger.info(
            f"Dispatcher Worker shutdown complete. "
            f"Ticks: {self._ticks}, Calls placed: {self._calls_placed}, Errors: {self._tick_errors}"
        )

    def get_stats(self) -> dict:
        """Get worker statistics."""
        stats = {
            "running": self.running,
            "ticks": self._ticks,
            "calls_placed": self._calls_placed,
            "tick_errors": self._tick_errors,
        }
        if self._container is not None:
            stats["dispatcher"] = self._container.dispatcher.get_stats()
        return stats


async def main():
    """Entry point for running dispatcher worker as separate process."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    worker = DispatcherWorker()

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.running = False

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
