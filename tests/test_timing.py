"""Tests for the timing/nonce correlator."""

import random

import pytest
from ecdsa import NIST256p

from nonce_audit.analysis.timing import TimingCorrelator, cutoff_indices
from nonce_audit.utils.constants import SIGMA_THRESHOLD
from nonce_audit.utils.errors import StatisticalAnomaly
from nonce_audit.utils.types import Sample

N_ORDER = NIST256p.order


def leaky_dataset(num_samples, seed, leak_fraction=0.01):
    """Fastest leak_fraction of samples get nonces in [0, n/1000)."""
    rng = random.Random(seed)
    timings = [rng.randrange(10**6, 2 * 10**6) for _ in range(num_samples)]
    order = sorted(range(num_samples), key=lambda i: timings[i])
    fast = set(order[: int(num_samples * leak_fraction)])
    nonces = [
        rng.randrange(N_ORDER // 1000) if i in fast else rng.randrange(N_ORDER)
        for i in range(num_samples)
    ]
    return timings, nonces


def independent_dataset(num_samples, seed):
    rng = random.Random(seed)
    timings = [rng.randrange(10**6, 2 * 10**6) for _ in range(num_samples)]
    nonces = [rng.randrange(N_ORDER) for _ in range(num_samples)]
    return timings, nonces


class TestCutoffSchedule:
    def test_halving(self):
        assert cutoff_indices(100) == [99, 49, 24, 12]

    def test_full_size_first(self):
        indices = cutoff_indices(50000)
        assert indices[0] == 49999
        assert indices[-1] > 10
        assert indices[-1] // 2 <= 10

    def test_too_few_samples(self):
        assert cutoff_indices(11) == []

    def test_custom_divisor(self):
        assert cutoff_indices(1000, divisor=10, min_index=5) == [999, 99, 9]

    def test_divisor_must_shrink(self):
        with pytest.raises(ValueError):
            cutoff_indices(100, divisor=1)


class TestPartition:
    def test_centered_mean_has_zero_sigma(self):
        correlator = TimingCorrelator(12)
        parts = correlator.partitions([1, 2, 3, 4] * 10, [6] * 40)
        assert all(p.z_score == pytest.approx(0.0) for p in parts)
        assert all(p.relative_average == pytest.approx(1.0) for p in parts)

    def test_counts_follow_sorted_cutoffs(self):
        timings = list(range(100, 0, -1))
        parts = TimingCorrelator(N_ORDER).partitions(timings, [1] * 100)
        assert [p.count for p in parts] == [100, 50, 25, 13]
        assert [p.cutoff for p in parts] == [100, 50, 25, 13]

    def test_ties_included_at_cutoff(self):
        parts = TimingCorrelator(N_ORDER).partitions([7] * 64, list(range(64)))
        assert all(p.count == 64 for p in parts)

    def test_z_score_formula(self):
        # all nonces zero: |0 - n/2| / (n / sqrt(12 * count)) = sqrt(3 * count)
        correlator = TimingCorrelator(N_ORDER)
        parts = correlator.partitions(list(range(48)), [0] * 48)
        assert parts[0].count == 48
        assert parts[0].z_score == pytest.approx(12.0)

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            TimingCorrelator(N_ORDER).partitions([1, 2, 3], [1, 2])


class TestLargeOrders:
    ORDER_1024 = (1 << 1024) - 105

    def test_z_score_for_1024_bit_order(self):
        parts = TimingCorrelator(self.ORDER_1024).partitions(list(range(48)), [0] * 48)
        assert parts[0].z_score == pytest.approx(12.0)
        assert parts[0].relative_average == 0.0

    def test_centered_1024_bit_nonces(self):
        half = self.ORDER_1024 // 2
        parts = TimingCorrelator(self.ORDER_1024).partitions(list(range(40)), [half] * 40)
        assert all(p.average == half for p in parts)
        assert all(p.relative_average == pytest.approx(1.0) for p in parts)
        assert all(p.z_score == pytest.approx(0.0, abs=1e-9) for p in parts)


class TestTimingInputs:
    def test_float_timings_keep_fraction(self):
        timings = [i + 0.25 for i in range(100, 0, -1)]
        parts = TimingCorrelator(N_ORDER).partitions(timings, [1] * 100)
        assert [p.count for p in parts] == [100, 50, 25, 13]
        assert [p.cutoff for p in parts] == [100.25, 50.25, 25.25, 13.25]

    def test_fractional_ties_not_merged(self):
        # truncating to integers would put all 20 samples under the first cutoff
        timings = [1.1 + i * 0.04 for i in range(20)]
        parts = TimingCorrelator(N_ORDER, min_index=1).partitions(timings, [1] * 20)
        assert [p.count for p in parts] == [20, 10, 5, 3]

    def test_cutoff_is_plain_number(self):
        parts = TimingCorrelator(N_ORDER).partitions(list(range(32)), [1] * 32)
        assert type(parts[0].cutoff) is int

    @pytest.mark.parametrize("timings", [["fast", "slow"] * 8, [1, None] * 8])
    def test_non_numeric_timings_rejected(self, timings):
        with pytest.raises(ValueError):
            TimingCorrelator(N_ORDER).partitions(timings, [1] * 16)


class TestDetection:
    def test_leaky_fast_signatures_detected(self):
        timings, nonces = leaky_dataset(10000, seed=1)
        correlator = TimingCorrelator(N_ORDER)
        parts = correlator.partitions(timings, nonces)
        assert correlator.max_z_score(parts) > SIGMA_THRESHOLD

    def test_leak_raises_with_evidence(self):
        timings, nonces = leaky_dataset(10000, seed=2)
        with pytest.raises(StatisticalAnomaly) as excinfo:
            TimingCorrelator(N_ORDER).check(timings, nonces)
        anomaly = excinfo.value
        assert anomaly.check == "timing"
        assert anomaly.value > SIGMA_THRESHOLD
        assert anomaly.details["relative_average"] < 0.5
        assert anomaly.details["count"] <= 100

    @pytest.mark.parametrize("seed", range(5))
    def test_independent_below_threshold(self, seed):
        timings, nonces = independent_dataset(4000, seed)
        correlator = TimingCorrelator(N_ORDER)
        parts = correlator.check(timings, nonces)
        assert correlator.max_z_score(parts) < SIGMA_THRESHOLD

    def test_no_partitions_no_anomaly(self):
        correlator = TimingCorrelator(N_ORDER)
        assert correlator.max_z_score([]) == 0.0
        assert correlator.anomalies([]) == []


class TestFromSamples:
    def make_samples(self, timings, nonces):
        return [
            Sample(index=i, message=b"", signature=b"", challenge=0, nonce=k, elapsed_ns=t)
            for i, (t, k) in enumerate(zip(timings, nonces))
        ]

    def test_matches_parallel_arrays(self):
        timings, nonces = independent_dataset(500, seed=9)
        correlator = TimingCorrelator(N_ORDER)
        samples = self.make_samples(timings, nonces)
        assert correlator.from_samples(samples) == correlator.partitions(timings, nonces)

    def test_order_restored_by_index(self):
        timings, nonces = leaky_dataset(2000, seed=4, leak_fraction=0.05)
        correlator = TimingCorrelator(N_ORDER)
        samples = self.make_samples(timings, nonces)
        shuffled = list(reversed(samples))
        assert correlator.from_samples(shuffled) == correlator.partitions(timings, nonces)

    def test_missing_timing(self):
        samples = self.make_samples([1, 2], [3, 4])
        samples[1].elapsed_ns = None
        with pytest.raises(ValueError):
            TimingCorrelator(N_ORDER).from_samples(samples)
