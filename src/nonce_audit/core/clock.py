"""Per-thread CPU clock used to time individual signing operations."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from nonce_audit.utils.constants import MAX_CLOCK_RESOLUTION_NS
from nonce_audit.utils.errors import CapabilityUnavailable

logger = logging.getLogger(__name__)

CLOCK_NAME = "thread_time"


def cpu_clock_resolution_ns() -> int:
    """Resolution of the per-thread CPU clock in nanoseconds."""
    try:
        info = time.get_clock_info(CLOCK_NAME)
        # Probe once: some platforms advertise the clock but fail on use.
        time.thread_time_ns()
    except (AttributeError, OSError, ValueError) as exc:
        raise CapabilityUnavailable(f"{CLOCK_NAME} is not supported: {exc}") from exc
    return max(1, round(info.resolution * 1e9))


def require_cpu_clock(
    max_resolution_ns: int = MAX_CLOCK_RESOLUTION_NS,
) -> Callable[[], int]:
    """Return a nanosecond CPU clock, or raise CapabilityUnavailable.

    The timing check is skipped, not failed, when the clock is too coarse to
    separate single signing operations.
    """
    resolution = cpu_clock_resolution_ns()
    if resolution > max_resolution_ns:
        raise CapabilityUnavailable(
            f"{CLOCK_NAME} resolution {resolution} ns is coarser than {max_resolution_ns} ns"
        )
    logger.debug("Using %s with %d ns resolution", CLOCK_NAME, resolution)
    return time.thread_time_ns
