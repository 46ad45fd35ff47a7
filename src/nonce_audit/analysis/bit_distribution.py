"""LSB and MSB balance of recovered nonces."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from scipy.stats import binom

from nonce_audit.utils.constants import FALSE_POSITIVE_RATE, MIN_BIT_COUNT, NUM_BIAS_SAMPLES
from nonce_audit.utils.errors import StatisticalAnomaly
from nonce_audit.utils.types import BitCounts

logger = logging.getLogger(__name__)


def count_bits(nonces: Sequence[int], modulus: int) -> BitCounts:
    """Count nonces with bit 0 set and nonces above modulus // 2."""
    half = modulus >> 1
    lsb = sum(1 for k in nonces if k & 1)
    msb = sum(1 for k in nonces if k > half)
    return BitCounts(total=len(nonces), lsb=lsb, msb=msb)


def calibrate_min_count(
    num_samples: int, false_positive: float = FALSE_POSITIVE_RATE
) -> int:
    """Largest min_count with P(X < m or X > N - m) <= false_positive.

    X ~ Binomial(N, 1/2). Uses the exact binomial tail.
    """
    if num_samples <= 0:
        raise ValueError(f"Need a positive sample count, got {num_samples}")
    m = 0
    while m < num_samples // 2 and 2.0 * binom.cdf(m, num_samples, 0.5) <= false_positive:
        m += 1
    return m


class BitDistributionCheck:
    """Flag nonce sets whose LSB or MSB counts stray from N/2.

    Without an explicit min_count the bound follows the sample size: 410 at
    the standard 1024 nonces, otherwise calibrated from the binomial tail.
    """

    def __init__(self, modulus: int, min_count: int | None = None) -> None:
        self.modulus = modulus
        self.min_count = min_count

    def bounds(self, total: int) -> tuple[int, int]:
        min_count = self.min_count
        if min_count is None:
            if total == NUM_BIAS_SAMPLES:
                min_count = MIN_BIT_COUNT
            elif total == 0:
                min_count = 0
            else:
                min_count = calibrate_min_count(total)
        return min_count, total - min_count

    def anomalies(self, counts: BitCounts) -> list[StatisticalAnomaly]:
        lo, hi = self.bounds(counts.total)
        found = []
        for name, label, value in (
            ("lsb", "least", counts.lsb),
            ("msb", "most", counts.msb),
        ):
            if value < lo or value > hi:
                found.append(
                    StatisticalAnomaly(
                        f"bit_{name}",
                        value=value,
                        threshold=lo,
                        message=f"Bias detected in the {label} significant bit of k: {value}",
                        details={"total": counts.total, "lower": lo, "upper": hi},
                    )
                )
        return found

    def evaluate(self, nonces: Sequence[int]) -> BitCounts:
        counts = count_bits(nonces, self.modulus)
        logger.info(
            "Bit counts over %d nonces: lsb=%d msb=%d", counts.total, counts.lsb, counts.msb
        )
        return counts

    def check(self, nonces: Sequence[int]) -> BitCounts:
        counts = self.evaluate(nonces)
        for anomaly in self.anomalies(counts):
            raise anomaly
        return counts
