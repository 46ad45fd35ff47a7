"""Correlation between signing time and nonce magnitude.

A variable-time scalar multiplication (double-and-add, comb tables holding
the point at infinity) tends to finish faster for small nonces. The
correlator looks at the fastest signatures and asks whether their mean
nonce has drifted away from n/2.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from fractions import Fraction

import numpy as np

from nonce_audit.utils.constants import CUTOFF_DIVISOR, MIN_CUTOFF_INDEX, SIGMA_THRESHOLD
from nonce_audit.utils.errors import StatisticalAnomaly
from nonce_audit.utils.math_helpers import mean_of_ints
from nonce_audit.utils.types import Sample, TimingPartition

logger = logging.getLogger(__name__)


def cutoff_indices(
    num_samples: int,
    divisor: int = CUTOFF_DIVISOR,
    min_index: int = MIN_CUTOFF_INDEX,
) -> list[int]:
    """Indices into the sorted timings: N-1, then repeatedly divided, while > min_index."""
    if divisor < 2:
        raise ValueError(f"Cutoff divisor must be at least 2, got {divisor}")
    indices = []
    idx = num_samples - 1
    while idx > min_index:
        indices.append(idx)
        idx //= divisor
    return indices


class TimingCorrelator:
    """Partition samples by elapsed-time cutoffs and z-score their mean nonce."""

    def __init__(
        self,
        modulus: int,
        threshold: float = SIGMA_THRESHOLD,
        divisor: int = CUTOFF_DIVISOR,
        min_index: int = MIN_CUTOFF_INDEX,
    ) -> None:
        self.modulus = modulus
        self.threshold = threshold
        self.divisor = divisor
        self.min_index = min_index

    def partition(
        self, timings: np.ndarray, nonces: Sequence[int], cutoff: int | float
    ) -> TimingPartition:
        selected = np.flatnonzero(timings <= cutoff)
        count, mean = mean_of_ints(nonces[i] for i in selected)
        # Exact rationals until the final ratios; orders near 2^1024 overflow a float.
        half_order = Fraction(self.modulus, 2)
        deviation = float(abs(mean - half_order) / self.modulus)
        return TimingPartition(
            cutoff=cutoff,
            count=count,
            average=int(mean),
            relative_average=float(mean / half_order),
            z_score=deviation * math.sqrt(12 * count),
        )

    def partitions(
        self, timings: Sequence[int | float], nonces: Sequence[int]
    ) -> list[TimingPartition]:
        """One partition per cutoff, from the full set down to the fastest few."""
        if len(timings) != len(nonces):
            raise ValueError(
                f"Got {len(timings)} timings for {len(nonces)} nonces"
            )
        timing_arr = np.asarray(timings)
        if timing_arr.dtype.kind not in "iuf":
            raise ValueError(
                f"Timings must be integers or floats, got dtype {timing_arr.dtype}"
            )
        sorted_timings = np.sort(timing_arr)
        results = []
        for idx in cutoff_indices(len(timing_arr), self.divisor, self.min_index):
            part = self.partition(timing_arr, nonces, sorted_timings[idx].item())
            logger.info(
                "count:%d cutoff:%s relative average:%.6f sigmas:%.4f",
                part.count,
                part.cutoff,
                part.relative_average,
                part.z_score,
            )
            results.append(part)
        return results

    def from_samples(self, samples: Sequence[Sample]) -> list[TimingPartition]:
        missing = [s.index for s in samples if s.elapsed_ns is None]
        if missing:
            raise ValueError(f"{len(missing)} samples have no timing, first index {missing[0]}")
        ordered = sorted(samples, key=lambda s: s.index)
        return self.partitions(
            [s.elapsed_ns for s in ordered], [s.nonce for s in ordered]
        )

    @staticmethod
    def max_z_score(partitions: Sequence[TimingPartition]) -> float:
        return max((p.z_score for p in partitions), default=0.0)

    def anomalies(self, partitions: Sequence[TimingPartition]) -> list[StatisticalAnomaly]:
        max_sigma = self.max_z_score(partitions)
        if max_sigma < self.threshold:
            return []
        worst = max(partitions, key=lambda p: p.z_score)
        return [
            StatisticalAnomaly(
                "timing",
                value=max_sigma,
                threshold=self.threshold,
                message=(
                    f"Signatures with short timing have a biased k: {max_sigma:.2f} sigmas"
                    f" over {worst.count} samples"
                ),
                details={
                    "count": worst.count,
                    "cutoff": worst.cutoff,
                    "relative_average": worst.relative_average,
                },
            )
        ]

    def check(
        self, timings: Sequence[int | float], nonces: Sequence[int]
    ) -> list[TimingPartition]:
        results = self.partitions(timings, nonces)
        for anomaly in self.anomalies(results):
            raise anomaly
        return results
