# src/med_reminder/cli/main.py

"""
Host process entrypoint.

Initializes logging, builds the app state, then runs the reminder scheduler on the
asyncio event loop until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import AppState, create_app_state
from ..config import get_settings
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.notifier.aclose()
    except Exception:
        logger.debug("Notifier close failed.", exc_info=True)

    try:
        state.store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


async def run(state: AppState) -> None:
    loop = asyncio.get_running_loop()
    runner = asyncio.create_task(state.scheduler.run_forever(), name="reminder-scheduler")

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        runner.cancel()

    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Some platforms (Windows) have no loop signal handlers; Ctrl+C still raises.
            pass

    try:
        with contextlib.suppress(asyncio.CancelledError):
            await runner
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_app_state(settings=settings)

    try:
        asyncio.run(run(state))
    except KeyboardInterrupt:
        pass
    logger.info("Bye.")


if __name__ == "__main__":
    main()
