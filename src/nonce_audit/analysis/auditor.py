"""Run every nonce detector against one signer and collect the evidence."""

from __future__ import annotations

import logging
from collections.abc import Callable

from nonce_audit.analysis.bias import BiasStatistic
from nonce_audit.analysis.bit_distribution import BitDistributionCheck
from nonce_audit.analysis.timing import TimingCorrelator
from nonce_audit.core.clock import require_cpu_clock
from nonce_audit.core.nonce_recovery import NonceRecoverer
from nonce_audit.core.sampler import collect_samples, is_deterministic, messages_to_sign
from nonce_audit.core.signer import EcdsaSigner
from nonce_audit.utils.errors import CapabilityUnavailable
from nonce_audit.utils.types import AuditConfig, AuditReport, Sample

logger = logging.getLogger(__name__)


class NonceAuditor:
    """Drive sampling and the bias, bit and timing detectors for one signer.

    Each run builds its own sample list and report; nothing is shared
    between runs.
    """

    def __init__(
        self,
        signer: EcdsaSigner,
        config: AuditConfig | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.signer = signer
        self.config = config or AuditConfig()
        self.curve = signer.curve_parameters
        self.recoverer = NonceRecoverer(
            signer.private_scalar,
            self.curve,
            hash_name=signer.hash_name,
            truncate_digest=self.config.truncate_digest,
        )
        self._clock = clock

    def _new_report(self) -> AuditReport:
        return AuditReport(curve=self.signer.curve_name, algorithm=self.signer.algorithm)

    def sample(self, count: int, clock: Callable[[], int] | None = None) -> tuple[list[Sample], bool]:
        deterministic = is_deterministic(self.signer.sign)
        messages = messages_to_sign(count, deterministic)
        return collect_samples(self.signer.sign, self.recoverer, messages, clock), deterministic

    def run_bias(self, report: AuditReport | None = None) -> AuditReport:
        """LSB/MSB counts and every characteristic-function multiplier."""
        report = report or self._new_report()
        samples, report.deterministic = self.sample(self.config.num_samples)
        nonces = [s.nonce for s in samples]
        report.num_samples = len(nonces)
        report.nonces = nonces

        bits = BitDistributionCheck(self.curve.order, self.config.min_count)
        report.bit_counts = bits.evaluate(nonces)
        report.anomalies.extend(bits.anomalies(report.bit_counts))

        stat = BiasStatistic(
            self.curve.order,
            threshold=self.config.bias_threshold,
            word_bits=self.config.bias_multiplier_bits,
        )
        report.bias_results = stat.scores(nonces)
        report.anomalies.extend(stat.anomalies(report.bias_results))
        return report

    def run_timing(self, report: AuditReport | None = None) -> AuditReport:
        """Timing/nonce correlation; recorded as skipped without a usable clock."""
        report = report or self._new_report()
        clock = self._clock
        if clock is None:
            try:
                clock = require_cpu_clock()
            except CapabilityUnavailable as exc:
                logger.warning("Skipping timing check: %s", exc)
                report.timing_skipped = str(exc)
                return report

        samples, report.deterministic = self.sample(self.config.timing_samples, clock)
        if not report.num_samples:
            report.num_samples = len(samples)
        correlator = TimingCorrelator(
            self.curve.order,
            threshold=self.config.sigma_threshold,
            divisor=self.config.cutoff_divisor,
            min_index=self.config.min_cutoff_index,
        )
        report.timing_partitions = correlator.from_samples(samples)
        report.max_z_score = correlator.max_z_score(report.timing_partitions)
        report.anomalies.extend(correlator.anomalies(report.timing_partitions))
        return report

    def run(self, timing: bool = True) -> AuditReport:
        report = self.run_bias()
        if timing:
            self.run_timing(report)
        for anomaly in report.anomalies:
            logger.warning("%s", anomaly)
        return report
