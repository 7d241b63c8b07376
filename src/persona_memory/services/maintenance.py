"""Maintenance sweep: the periodic promotion and pruning pass over all personas.

For each registered persona the sweep, while holding that persona's
serialization slot:

1. **Evaluate** mid-term slots: recompute priorities, promote qualifying
   slots, prune the ones that fail retention.
2. **Archive** promoted slots into the long-term store, which drops its oldest
   items past capacity.
3. **Persist** the snapshot when a tier size changed, or when an earlier
   write for the persona failed.

A failure on one persona is logged and counted; the sweep continues with the
next persona.

Lifecycle::

    scheduler = MaintenanceScheduler(registry, interval=600)
    await scheduler.start()
    await scheduler.trigger()   # run a sweep now
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from persona_memory.errors import PersistenceFailure
from persona_memory.services.registry import PersonaRegistry

log = logging.getLogger(__name__)


@dataclass
class PersonaSweepOutcome:
    persona_id: str
    promoted: int = 0
    evicted: int = 0
    dropped: int = 0
    persisted: bool = False
    error: Optional[str] = None


@dataclass
class SweepResult:
    """Summary of one maintenance pass."""
    started_at: float = 0.0
    personas_processed: int = 0
    personas_failed: int = 0
    slots_promoted: int = 0
    slots_evicted: int = 0
    items_dropped: int = 0
    snapshots_persisted: int = 0
    duration_sec: float = 0.0
    outcomes: List[PersonaSweepOutcome] = field(default_factory=list)


@dataclass
class MaintenanceStats:
    """Cumulative counters across every sweep since construction."""
    total_sweeps: int = 0
    personas_processed: int = 0
    personas_failed: int = 0
    slots_promoted: int = 0
    slots_evicted: int = 0
    items_dropped: int = 0
    snapshots_persisted: int = 0
    last_run_at: Optional[float] = None
    last_duration_sec: float = 0.0

    def record(self, result: SweepResult) -> None:
        self.total_sweeps += 1
        self.personas_processed += result.personas_processed
        self.personas_failed += result.personas_failed
        self.slots_promoted += result.slots_promoted
        self.slots_evicted += result.slots_evicted
        self.items_dropped += result.items_dropped
        self.snapshots_persisted += result.snapshots_persisted
        self.last_run_at = result.started_at
        self.last_duration_sec = result.duration_sec


class MaintenanceScheduler:
    """Runs :meth:`sweep` every ``interval`` seconds on a background task.

    Args:
        registry: The persona registry to walk.
        interval: Seconds between sweeps.
        clock: Wall clock used as "now" for priority and promotion.
        startup_delay: Seconds to wait before the first sweep after start().
        discover: Ask the registry to discover personas from its store before
            each sweep.
    """

    def __init__(
        self,
        registry: PersonaRegistry,
        interval: float = 600.0,
        clock: Callable[[], float] = time.time,
        startup_delay: float = 0.0,
        discover: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._registry = registry
        self.interval = interval
        self._clock = clock
        self._startup_delay = startup_delay
        self._discover = discover
        self._running = False
        self._task: Optional[asyncio.Task[None]] = None
        self._trigger_event = asyncio.Event()
        self._sweep_lock = asyncio.Lock()
        self._stats = MaintenanceStats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the background loop.  Calling it while running is a no-op."""
        if self._running:
            log.warning("Maintenance start() called but scheduler is already running.")
            return
        self._running = True
        self._trigger_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="memory-maintenance")
        log.info("Memory maintenance started (interval=%.0fs).", self.interval)

    async def stop(self) -> None:
        self._running = False
        self._trigger_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        log.info(
            "Memory maintenance stopped after %d sweep(s), %d slot(s) promoted, %d evicted.",
            self._stats.total_sweeps,
            self._stats.slots_promoted,
            self._stats.slots_evicted,
        )

    async def trigger(self) -> None:
        """Wake the loop to sweep immediately."""
        self._trigger_event.set()

    async def _loop(self) -> None:
        if self._startup_delay > 0:
            await asyncio.sleep(self._startup_delay)
        while self._running:
            try:
                await self.sweep()
            except Exception:
                log.error("Memory maintenance sweep failed.", exc_info=True)
            try:
                await asyncio.wait_for(self._trigger_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            self._trigger_event.clear()

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def sweep(self) -> SweepResult:
        async with self._sweep_lock:
            t0 = time.monotonic()
            result = SweepResult(started_at=self._clock())
            if self._discover:
                await self._registry.discover()

            for persona_id in self._registry.persona_ids():
                outcome = await self._sweep_persona(persona_id)
                result.outcomes.append(outcome)
                if outcome.error is not None:
                    result.personas_failed += 1
                    continue
                result.personas_processed += 1
                result.slots_promoted += outcome.promoted
                result.slots_evicted += outcome.evicted
                result.items_dropped += outcome.dropped
                result.snapshots_persisted += int(outcome.persisted)

            result.duration_sec = time.monotonic() - t0
            self._stats.record(result)

        if result.slots_promoted or result.slots_evicted or result.personas_failed:
            log.info(
                "Memory maintenance: personas=%d failed=%d promoted=%d evicted=%d dropped=%d duration=%.3fs",
                result.personas_processed,
                result.personas_failed,
                result.slots_promoted,
                result.slots_evicted,
                result.items_dropped,
                result.duration_sec,
            )
        return result

    async def _sweep_persona(self, persona_id: str) -> PersonaSweepOutcome:
        outcome = PersonaSweepOutcome(persona_id=persona_id)
        try:
            async with self._registry.acquire(persona_id) as memory:
                now = self._clock()
                before = memory.sizes()
                evaluation = memory.mid_term.evaluate_for_promotion(now)
                dropped = memory.long_term.insert_many(evaluation.promoted)
                outcome.promoted = len(evaluation.promoted)
                outcome.evicted = len(evaluation.evicted)
                outcome.dropped = len(dropped)
                if memory.sizes() != before or self._registry.is_dirty(persona_id):
                    await self._registry.persist(persona_id, memory)
                    outcome.persisted = True
        except PersistenceFailure as exc:
            outcome.error = str(exc)
            log.warning("Memory maintenance could not load or persist persona %s: %s", persona_id, exc)
        except Exception as exc:
            outcome.error = f"{type(exc).__name__}: {exc}"
            log.error("Memory maintenance failed for persona %s.", persona_id, exc_info=True)
        else:
            if outcome.promoted or outcome.evicted:
                log.debug(
                    "Persona %s: promoted=%d evicted=%d dropped=%d persisted=%s",
                    persona_id, outcome.promoted, outcome.evicted, outcome.dropped, outcome.persisted,
                )
        return outcome

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def stats(self) -> MaintenanceStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def next_run_at(self) -> Optional[float]:
        if not self._running or self._stats.last_run_at is None:
            return None
        return self._stats.last_run_at + self.interval

    def __repr__(self) -> str:
        return (
            f"MaintenanceScheduler(running={self._running}, interval={self.interval}, "
            f"sweeps={self._stats.total_sweeps})"
        )
