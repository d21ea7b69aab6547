# voxverb/scheduler.py
from __future__ import annotations
from collections import Counter
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set
import logging
import os
import queue
import threading

import numpy as np

from .config import SimConfig
from .sampling import count_directions, iter_directions
from .tracing import Ray, RayOutcome, RayTracer

logger = logging.getLogger(__name__)

PROGRESS_STEPS = 20  # 5 % granularity


class AtomicCounter:
    def __init__(self, value: int = 0):
        self._value = int(value)
        self._lock = threading.Lock()

    def increment(self, n: int = 1) -> int:
        with self._lock:
            self._value += int(n)
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass(frozen=True)
class Progress:
    submitted: int
    processed: int
    expected: int

    @property
    def fraction(self) -> float:
        total = max(self.expected, self.submitted)
        return (self.processed / total) if total > 0 else 0.0

    @property
    def step(self) -> int:
        return min(PROGRESS_STEPS, int(self.fraction * 100.0) // (100 // PROGRESS_STEPS))


def progress_bar(step: int) -> str:
    step = max(0, min(PROGRESS_STEPS, int(step)))
    return "[" + "#" * step + "." * (PROGRESS_STEPS - step) + f"] {step * (100 // PROGRESS_STEPS)}%"


class Scheduler:
    """
    Fans ray traces out over a thread pool and collects the rays that reach
    the target into `results`.

    Shared state is limited to the result queue, the two counters
    (`submitted`, `processed`) and the outcome tally. `run()` returns only
    after every submitted ray, including diffuse children, has finished.
    """
    def __init__(self, tracer: RayTracer, receiver: np.ndarray, cfg: Optional[SimConfig] = None,
                 on_progress: Optional[Callable[[Progress], None]] = None):
        self.tracer = tracer
        self.receiver = np.asarray(receiver, dtype=float)
        self.cfg = cfg or tracer.cfg
        self.on_progress = on_progress

        self.submitted = AtomicCounter()
        self.processed = AtomicCounter()
        self.results: "queue.SimpleQueue[Ray]" = queue.SimpleQueue()

        self._expected = AtomicCounter()
        self._outcomes: Counter = Counter()
        self._outcome_lock = threading.Lock()
        self._local = threading.local()
        self._done = threading.Event()
        self._last_step = -1
        self._started = False

    # ------------ Observable surface ------------

    @property
    def progress(self) -> Progress:
        return Progress(self.submitted.value, self.processed.value, self._expected.value)

    @property
    def outcomes(self) -> Dict[str, int]:
        with self._outcome_lock:
            return {k.value: int(v) for k, v in self._outcomes.items()}

    @property
    def done(self) -> bool:
        return self._done.is_set()

    # ------------ Batch ------------

    def run(self, directions: Optional[Iterable[np.ndarray]] = None) -> "queue.SimpleQueue[Ray]":
        """
        Trace every direction (default: the full receiver sweep) and block
        until all rays are terminal. `directions` may yield single vectors or
        (n, 3) batches.
        """
        if self._started:
            raise RuntimeError("Scheduler.run() can only be called once")
        self._started = True

        if directions is None:
            self._expected.increment(count_directions(self.cfg))
            directions = (dirs for _, dirs in iter_directions(self.cfg))

        workers = int(self.cfg.workers or os.cpu_count() or 1)
        window = max(1, int(self.cfg.max_pending))
        poller = threading.Thread(target=self._poll_progress, name="voxverb-progress", daemon=True)
        poller.start()
        logger.info("Tracing with %d workers", workers)

        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="voxverb-ray") as pool:
                pending: Set[Future] = set()
                for batch in directions:
                    for d in np.atleast_2d(np.asarray(batch, dtype=float)):
                        self._submit(pool, pending, Ray.cast(self.receiver, d, self.cfg.record_paths))
                        if len(pending) >= window:
                            self._collect(pool, pending, FIRST_COMPLETED)
                while pending:
                    self._collect(pool, pending, FIRST_COMPLETED)
        finally:
            self._done.set()
            poller.join()

        self._report()
        p = self.progress
        hits = self.outcomes.get(RayOutcome.HIT_TARGET.value, 0)
        pct = 100.0 * hits / p.processed if p.processed else 0.0
        logger.info("%d rays processed | %d rays hit target (%.2f%%)", p.processed, hits, pct)
        return self.results

    def _submit(self, pool: ThreadPoolExecutor, pending: Set[Future], ray: Ray) -> None:
        if self._expected.value < self.submitted.increment():
            self._expected.increment()
        pending.add(pool.submit(self._trace_one, ray))

    def _collect(self, pool: ThreadPoolExecutor, pending: Set[Future], when) -> None:
        done, _ = wait(pending, return_when=when)
        for fut in done:
            pending.discard(fut)
            for child in fut.result():
                self._submit(pool, pending, child)

    def _rng(self) -> np.random.Generator:
        rng = getattr(self._local, "rng", None)
        if rng is None:
            rng = np.random.default_rng([int(self.cfg.rng_seed), threading.get_ident()])
            self._local.rng = rng
        return rng

    def _trace_one(self, ray: Ray) -> List[Ray]:
        try:
            children = self.tracer.trace(ray, self._rng())
        except Exception:
            # per-ray failures stay inside the ray
            logger.exception("Ray trace failed; treating as escaped")
            ray.outcome = RayOutcome.ESCAPED
            children = []

        with self._outcome_lock:
            self._outcomes[ray.outcome] += 1
        if ray.hit_target:
            self.results.put(ray)
        self.processed.increment()
        return children

    # ------------ Progress ------------

    def _poll_progress(self) -> None:
        interval = max(0.01, float(self.cfg.progress_interval_s))
        while not self._done.wait(interval):
            self._report()

    def _report(self) -> None:
        p = self.progress
        if p.step <= self._last_step:
            return
        self._last_step = p.step
        logger.info("Tracing %s", progress_bar(p.step))
        if self.on_progress is not None:
            self.on_progress(p)
