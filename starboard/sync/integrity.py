"""Background data-integrity sweep over the authoritative Document."""

import asyncio
import logging
from typing import Any, TYPE_CHECKING

from ..document import is_number

if TYPE_CHECKING:
    from .orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


def sweep_document(document: dict[str, Any]) -> bool:
    """Repair student records in place.

    Non-numeric or negative star counts become 0 and students without a
    non-empty string name are dropped.

    Returns:
        True if anything was changed.
    """
    changed = False
    for class_record in document.get("classes", {}).values():
        students = class_record.get("students") if isinstance(class_record, dict) else None
        if not isinstance(students, dict):
            continue
        for student_id in list(students):
            student = students[student_id]
            if not isinstance(student, dict):
                del students[student_id]
                changed = True
                continue
            stars = student.get("stars")
            if not is_number(stars) or stars < 0:
                student["stars"] = 0
                changed = True
            name = student.get("name")
            if not name or not isinstance(name, str):
                del students[student_id]
                changed = True
    return changed


class IntegritySweep:
    """Periodic task that cleans up the Document through the sync contract."""

    def __init__(self, sync: "SyncOrchestrator", interval_seconds: int = 300):
        """Initialize the sweep.

        Args:
            sync: Orchestrator to read from and save through.
            interval_seconds: Seconds between sweeps.
        """
        self._sync = sync
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._running = False

    async def start(self) -> None:
        """Start the sweep as a background task."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Integrity sweep started (interval={self._interval}s)")

    async def stop(self) -> None:
        """Stop the sweep."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Integrity sweep stopped")

    async def _run_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Integrity sweep failed: {e}", exc_info=True)

    async def run_once(self) -> bool:
        """Sweep the current Document once.

        Returns:
            True if a repaired Document was saved.
        """
        data = self._sync.get_data()
        if not sweep_document(data):
            logger.debug("Integrity sweep found nothing to fix")
            return False

        saved = await self._sync.save_data(data)
        if saved:
            logger.info("Data cleanup performed")
        return saved
