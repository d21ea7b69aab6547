"""
Tests for the threaded ray scheduler.
"""

import threading

import numpy as np
import pytest

from voxverb.config import SimConfig
from voxverb.sampling import count_directions
from voxverb.scheduler import Progress, Scheduler, progress_bar
from voxverb.tracing import RayOutcome, RayTracer


class _StubTracer:
    """Marks every ray as arrived; rays pointing along +x blow up."""

    def __init__(self, cfg, children=0):
        self.cfg = cfg
        self.children = children
        self.lock = threading.Lock()
        self.seen = 0

    def trace(self, ray, rng=None):
        with self.lock:
            self.seen += 1
        if ray.direction[0] > 0.5:
            raise ValueError("boom")
        ray.traveled = 1.0
        ray.outcome = RayOutcome.HIT_TARGET
        if ray.generation == 0 and self.children:
            return [ray.branch(ray.position, ray.direction) for _ in range(self.children)]
        return []


def _drain(q):
    out = []
    while not q.empty():
        out.append(q.get_nowait())
    return out


class TestProgress:
    """Tests for progress reporting values."""

    def test_steps(self):
        assert Progress(10, 0, 100).step == 0
        assert Progress(100, 50, 100).step == 10
        assert Progress(100, 100, 100).step == 20

    def test_submitted_beyond_expected(self):
        assert Progress(200, 100, 100).fraction == pytest.approx(0.5)

    def test_nothing_expected(self):
        assert Progress(0, 0, 0).fraction == 0.0

    def test_bar(self):
        assert progress_bar(10) == "[##########..........] 50%"
        assert progress_bar(25) == "[####################] 100%"


class TestSchedulerStub:
    """Scheduling behaviour with a stand-in tracer."""

    def test_processes_every_ray(self):
        cfg = SimConfig(workers=4, max_pending=2)
        dirs = [np.array([0.0, 1.0, 0.0])] * 50
        sched = Scheduler(_StubTracer(cfg), np.zeros(3), cfg)
        results = sched.run(dirs)

        assert sched.processed.value == 50
        assert sched.submitted.value == 50
        assert len(_drain(results)) == 50
        assert sched.done

    def test_accepts_batches(self):
        cfg = SimConfig(workers=2)
        batch = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0], [0.0, -1.0, 0.0]])
        sched = Scheduler(_StubTracer(cfg), np.zeros(3), cfg)
        sched.run([batch, batch])

        assert sched.processed.value == 6

    def test_failing_ray_is_isolated(self):
        cfg = SimConfig(workers=2)
        dirs = [np.array([1.0, 0, 0]), np.array([-1.0, 0, 0]), np.array([0, 1.0, 0])]
        sched = Scheduler(_StubTracer(cfg), np.zeros(3), cfg)
        results = sched.run(dirs)

        assert sched.processed.value == 3
        assert sched.outcomes == {"escaped": 1, "hit_target": 2}
        assert len(_drain(results)) == 2

    def test_children_are_dispatched(self):
        cfg = SimConfig(workers=3)
        dirs = [np.array([0, 1.0, 0])] * 3
        sched = Scheduler(_StubTracer(cfg, children=2), np.zeros(3), cfg)
        hits = _drain(sched.run(dirs))

        assert sched.processed.value == 9
        assert sched.submitted.value == 9
        assert len(hits) == 9
        assert len({id(r.energy) for r in hits}) == 9
        assert sum(r.generation for r in hits) == 6

    def test_single_use(self):
        cfg = SimConfig(workers=1)
        sched = Scheduler(_StubTracer(cfg), np.zeros(3), cfg)
        sched.run([np.array([0, 1.0, 0])])

        with pytest.raises(RuntimeError):
            sched.run([np.array([0, 1.0, 0])])

    def test_final_progress_callback(self):
        cfg = SimConfig(workers=2)
        seen = []
        sched = Scheduler(_StubTracer(cfg), np.zeros(3), cfg, on_progress=seen.append)
        sched.run([np.array([0, 1.0, 0])] * 10)

        assert seen
        assert seen[-1].step == 20
        assert [p.step for p in seen] == sorted({p.step for p in seen})


class TestSchedulerRoom:
    """Full sweep through a real tracer in a closed room."""

    def test_sweep(self, room, room_centre, materials, fast_cfg):
        tracer = RayTracer(room, materials, room_centre, fast_cfg)
        sched = Scheduler(tracer, room_centre, fast_cfg)
        hits = _drain(sched.run())

        expected = count_directions(fast_cfg)
        outcomes = sched.outcomes
        assert sched.processed.value == expected
        assert sum(outcomes.values()) == expected
        assert outcomes.get("hit_target", 0) == len(hits) > 0
        assert sched.progress.fraction == pytest.approx(1.0)
        assert all(r.traveled > 0 for r in hits)
