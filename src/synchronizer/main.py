"""Main application entry point."""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from .config import ConfigError, ConfigLoader, SynchronizerConfig, load_config_from_env
from .config.settings import get_settings
from .core import LoggingEventSink, StateStore
from .scheduler import SyncScheduler
from .utils.logging import setup_logging, get_logger


class FileSynchronizerApp:
    """Headless shell: issues actions to the scheduler and logs its events."""

    def __init__(self, config: SynchronizerConfig):
        """Initialize the application."""
        self.config = config
        self.settings = get_settings()
        self.logger = get_logger("FileSynchronizer")
        self.running = False
        self.scheduler: Optional[SyncScheduler] = None

    def _build_scheduler(self) -> SyncScheduler:
        state_store = StateStore(self.config.state_file) if self.config.state_file else None
        return SyncScheduler(
            config=self.config,
            events=LoggingEventSink("Synchronizer"),
            state_store=state_store
        )

    async def startup(self):
        """Application startup."""
        self.logger.info(
            "Starting File Synchronizer",
            version=self.settings.version,
            source_root=self.config.source_root,
            dest_root=self.config.dest_root
        )

        ConfigLoader().validate_config(self.config)

        self.scheduler = self._build_scheduler()
        await self.scheduler.start()

        self.running = True
        self.logger.info("File Synchronizer started successfully")

    async def shutdown(self):
        """Application shutdown."""
        self.logger.info("Shutting down File Synchronizer")
        self.running = False

        if self.scheduler:
            await self.scheduler.close()

        self.logger.info("File Synchronizer stopped")

    async def run(self):
        """Run the main application loop."""
        try:
            await self.startup()

            while self.running:
                # Scheduler ticks run on this loop
                await asyncio.sleep(1)
        finally:
            await self.shutdown()

    async def run_once(self) -> bool:
        """Perform a single manual sync and exit."""
        self.scheduler = self._build_scheduler()
        try:
            report = await self.scheduler.manual_sync_now()
        finally:
            await self.scheduler.close()
        return report is not None and report.success


def setup_signal_handlers(app: FileSynchronizerApp):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        app.logger.info(f"Received signal {signum}")
        app.running = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Copy new and modified files from one folder to another at scheduled times.")
    p.add_argument("--config", type=str, default=None, help="YAML or JSON configuration file.")
    p.add_argument("--source", type=str, default=None, help="Folder to copy from.")
    p.add_argument("--dest", type=str, default=None, help="Folder to copy into.")
    p.add_argument("--time1", type=str, default=None, help="First daily sync time (HH:MM).")
    p.add_argument("--time2", type=str, default=None, help="Second daily sync time (HH:MM).")
    p.add_argument("--state-file", type=str, default=None, help="Remember copied files across restarts.")
    p.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING or ERROR.")
    p.add_argument("--once", action="store_true", help="Run one manual sync and exit.")
    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> SynchronizerConfig:
    """Merge the configuration file (or environment) with command line overrides.

    Flags win over everything: environment overrides were already applied
    while loading, so they are not applied again after the flags are merged.
    """
    loader = ConfigLoader()
    config = loader.load_from_file(args.config) if args.config else load_config_from_env()

    data = config.model_dump()
    if args.source:
        data["source_root"] = args.source
    if args.dest:
        data["dest_root"] = args.dest
    if args.state_file:
        data["state_file"] = args.state_file
    if args.log_level:
        data["log_level"] = args.log_level

    trigger_times = [str(t) for t in config.schedule.trigger_times]
    if args.time1:
        trigger_times[0] = args.time1
    if args.time2:
        trigger_times[1] = args.time2
    data["schedule"]["trigger_times"] = trigger_times

    return loader.load_from_dict(data, apply_env=False)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = build_config(args)

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file
    )

    logger = get_logger("main")
    logger.info("Initializing File Synchronizer application")

    app = FileSynchronizerApp(config)

    if args.once:
        return 0 if await app.run_once() else 1

    setup_signal_handlers(app)
    await app.run()
    return 0


def cli() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)


if __name__ == "__main__":
    cli()
