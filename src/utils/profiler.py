"""Wall-clock timing for the render path.

Provides:
    - timer(): time one block and hand (name, seconds) to a sink
    - TimerAccumulator: per-frame statistics (last, mean, worst)

TextureCompositor owns a TimerAccumulator named "render"; a host can log
``compositor.frame_timer.summary()`` every few seconds to watch frame cost
grow with the number of live strokes.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Time the enclosed block.

    Parameters
    ----------
    name : str
        Label passed to the sink
    sink : callable, optional
        ``sink(name, elapsed_seconds)``; logs at DEBUG when omitted

    Examples
    --------
    >>> with timer("render", sink=lambda n, s: logger.info(f"{n}: {s * 1000:.1f} ms")):
    ...     compositor.tick(state)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is None:
            logger.debug(f"{name}: {elapsed * 1000:.2f} ms")
        else:
            sink(name, elapsed)


class TimerAccumulator:
    """Running frame-time statistics.

    Attributes
    ----------
    name : str
    total_time : float
        Sum of all measurements (s)
    count : int
    last : float
        Latest measurement (s)
    worst : float
        Longest measurement since the last reset (s)
    """

    def __init__(self, name: str):
        self.name = name
        self.reset()

    @contextmanager
    def measure(self):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.last = time.perf_counter() - start
            self.total_time += self.last
            self.count += 1
            self.worst = max(self.worst, self.last)

    def mean(self) -> float:
        """Mean seconds per measurement; 0.0 before the first one."""
        if self.count == 0:
            return 0.0
        return self.total_time / self.count

    def summary(self) -> Dict[str, float]:
        """{"count", "mean_ms", "last_ms", "worst_ms"} for logging."""
        return {
            'count': self.count,
            'mean_ms': self.mean() * 1000.0,
            'last_ms': self.last * 1000.0,
            'worst_ms': self.worst * 1000.0,
        }

    def reset(self) -> None:
        self.total_time = 0.0
        self.count = 0
        self.last = 0.0
        self.worst = 0.0

    def __repr__(self) -> str:
        return f"TimerAccumulator({self.name}, n={self.count}, mean={self.mean() * 1000:.2f} ms)"
