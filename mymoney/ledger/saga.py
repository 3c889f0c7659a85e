"""
Compensating rollback for multi-step remote writes.

The remote store commits every call on its own. A Saga remembers how to
undo each committed step so a failed sequence can be walked back in
reverse order.
"""

from typing import Awaitable, Callable

import structlog

from mymoney.services.storage import StoreError


Compensation = Callable[[], Awaitable[object]]


class PartialWriteError(StoreError):
    """
    A failed sequence could not be fully undone.
    
    `leftover` names the committed rows ("table:id") that are still in
    the store and need manual correction.
    """
    
    def __init__(self, message: str, leftover: list[str]):
        self.leftover = leftover
        super().__init__(message)


class Saga:
    """Committed steps of one ledger operation."""
    
    def __init__(self, operation: str):
        self.operation = operation
        self._steps: list[tuple[str, Compensation]] = []
        self._logger = structlog.get_logger(__name__)
    
    def record(self, label: str, undo: Compensation) -> None:
        """Register the compensation for a step that just committed."""
        self._steps.append((label, undo))
    
    @property
    def committed(self) -> list[str]:
        return [label for label, _ in self._steps]
    
    async def rollback(self) -> tuple[list[str], list[str]]:
        """
        Run compensations newest first.
        
        Every compensation is attempted even when an earlier one fails.
        
        Returns:
            (undone labels, leftover labels)
        """
        undone, leftover = [], []
        for label, undo in reversed(self._steps):
            try:
                await undo()
                undone.append(label)
            except Exception as e:
                self._logger.error(
                    "compensation_failed",
                    operation=self.operation,
                    step=label,
                    error=str(e),
                )
                leftover.append(label)
        self._steps.clear()
        return undone, leftover
