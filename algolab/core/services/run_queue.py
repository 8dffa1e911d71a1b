"""
Run Queue Worker — drains queued algorithm sessions in the background.

Each pass opens its own DB session, takes the oldest queue entry and runs
it through AlgorithmService.compute_classification_algorithm. Failures are
logged and never stop the loop.
"""

import asyncio
import logging
from typing import Callable, Optional

from algolab.config import settings
from algolab.core.database import SessionLocal, TransactionScope
from algolab.core.errors import AlgoLabError
from algolab.core.services.algorithm_service import AlgorithmService
from algolab.persistence.daos import RunQueueDao

logger = logging.getLogger(__name__)


class RunQueueWorker:
    """
    Usage:
        worker = RunQueueWorker()
        task = asyncio.create_task(worker.run_forever())
        ...
        worker.stop(); await task
    """

    def __init__(self, session_factory: Callable = SessionLocal, poll_seconds: Optional[float] = None):
        self.session_factory = session_factory
        self.poll_seconds = poll_seconds if poll_seconds is not None else settings.RUN_QUEUE_POLL_SECONDS
        self._stopped = asyncio.Event()

    async def run_once(self) -> Optional[int]:
        """Process at most one queued session. Returns its id, or None if the queue was empty."""
        db = self.session_factory()
        try:
            queue = RunQueueDao(db)
            session_id = queue.next_session_id()
            if session_id is None:
                return None

            try:
                await AlgorithmService(db).compute_classification_algorithm(session_id)
            except AlgoLabError as e:
                logger.error(f"Run queue: session {session_id} failed: {e}")
            except Exception as e:
                logger.error(f"Run queue: session {session_id} crashed: {e}", exc_info=True)

            # a session rejected before it started is still queued; never retry it forever
            if queue.contains(session_id):
                logger.warning(f"Run queue: dropping session {session_id}")
                with TransactionScope(db).begin():
                    queue.remove(session_id)
            return session_id
        finally:
            db.close()

    async def run_forever(self, poll_seconds: Optional[float] = None):
        if poll_seconds is not None:
            self.poll_seconds = poll_seconds
        logger.info(f"Run queue worker started (poll every {self.poll_seconds}s)")
        while not self._stopped.is_set():
            session_id = await self.run_once()
            if session_id is not None:
                continue
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Run queue worker stopped")

    def stop(self):
        self._stopped.set()
