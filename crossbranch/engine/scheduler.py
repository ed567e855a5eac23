"""Supersede-aware scheduling of reconciliation passes."""

import asyncio
from typing import Dict, List, Optional, Set

from ..exceptions import PassSuperseded
from ..utils import get_logger
from .reconciler import ReconcileResult, Reconciler


class PassScheduler:
    """
    Runs passes for long-lived callers such as webhook receivers.

    Submitting a pass for a PR that already has one in flight marks the
    older pass as superseded. The older pass notices before its apply
    phase and drops its result, so only the newest picture is written.
    Only task bookkeeping lives here; verdict state stays on the platform.
    """

    def __init__(self, reconciler: Reconciler):
        self.reconciler = reconciler
        self.logger = get_logger()
        self._generation: Dict[int, int] = {}
        self._tasks: Dict[int, List[asyncio.Task]] = {}

    def submit(self, pr_number: int, dry_run: bool = False) -> "asyncio.Task[ReconcileResult]":
        """Start a pass for ``pr_number``, superseding any older one."""
        generation = self._generation.get(pr_number, 0) + 1
        self._generation[pr_number] = generation

        if self._tasks.get(pr_number):
            self.logger.info(f"PR #{pr_number}: newer event received, superseding in-flight pass")

        task = asyncio.create_task(self.reconciler.reconcile(
            pr_number,
            dry_run=dry_run,
            is_superseded=lambda: self.is_superseded(pr_number, generation),
        ))
        self._tasks.setdefault(pr_number, []).append(task)
        task.add_done_callback(lambda t: self._forget(pr_number, t))
        return task

    def is_superseded(self, pr_number: int, generation: int) -> bool:
        return self._generation.get(pr_number, 0) != generation

    def _forget(self, pr_number: int, task: asyncio.Task) -> None:
        tasks = self._tasks.get(pr_number, [])
        if task in tasks:
            tasks.remove(task)
        if not tasks:
            self._tasks.pop(pr_number, None)

    @property
    def in_flight(self) -> Dict[int, int]:
        """PR number -> number of passes still running."""
        return {number: len(tasks) for number, tasks in self._tasks.items() if tasks}

    async def wait(self, pr_number: int) -> Optional[ReconcileResult]:
        """
        Wait for every pass of ``pr_number``; return the newest result.

        Superseded passes are discarded; other errors propagate.
        """
        latest: Optional[ReconcileResult] = None
        seen: Set[asyncio.Task] = set()
        while True:
            tasks = [t for t in self._tasks.get(pr_number, []) if t not in seen]
            if not tasks:
                return latest
            for task in tasks:
                seen.add(task)
                try:
                    result = await task
                except PassSuperseded:
                    continue
                latest = result
