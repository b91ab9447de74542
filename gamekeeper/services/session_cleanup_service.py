"""
Session cleanup service: optional sweeper for time-based resolutions.

Reads already resolve stale sessions lazily. When enabled, this background
worker applies the same conditional updates on a timer, so sessions nobody
opens still settle: PENDING results past the window are approved and active
sessions without a result are voided.
"""

import asyncio
import logging
import os
from typing import Dict, Optional

from gamekeeper.database import db
from gamekeeper.services import game_session_service

logger = logging.getLogger(__name__)

# How often the worker sweeps (seconds)
POLL_INTERVAL_SECONDS = int(os.getenv("SESSION_SWEEPER_INTERVAL_SECONDS", "300"))

SWEEPER_ENABLED = os.getenv("SESSION_SWEEPER_ENABLED", "false").lower() == "true"


class SessionCleanupService:
    """Background service that resolves stale sessions and results."""

    def __init__(self, poll_interval: Optional[float] = None):
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self.poll_interval = poll_interval if poll_interval is not None else POLL_INTERVAL_SECONDS

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        """Start the background cleanup worker."""
        if not self.is_running:
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Session cleanup worker started")

    def stop(self) -> None:
        """Stop the background cleanup worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Session cleanup worker stopped")

    async def _poll_loop(self) -> None:
        """Main loop: sweep, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error(f"Error in session cleanup worker: {e}", exc_info=True)

            # Wait for poll interval or until stop is signalled
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                break
            except asyncio.TimeoutError:
                pass

    async def sweep_once(self) -> Dict[str, int]:
        """
        Run one sweep in its own transaction.

        Returns:
            Dict with "approved" and "voided" counts
        """
        async with db.AsyncSessionLocal() as session:
            try:
                approved = await game_session_service.auto_approve_stale_results(session)
                voided = await game_session_service.auto_void_stale_sessions(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        if approved or voided:
            logger.info(f"Sweeper auto-approved {approved} result(s), auto-voided {voided} session(s)")
        return {"approved": approved, "voided": voided}


# Global singleton
_cleanup_service = SessionCleanupService()


def get_session_cleanup_service() -> SessionCleanupService:
    """Get the global session cleanup service instance."""
    return _cleanup_service
