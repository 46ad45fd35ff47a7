"""Main entry point: python -m nonce_audit"""

from __future__ import annotations

import argparse
import csv
import logging
import os
import sys
from datetime import datetime

from nonce_audit import __version__
from nonce_audit.analysis.auditor import NonceAuditor
from nonce_audit.core.sampler import check_distinct_r, check_randomized, is_deterministic
from nonce_audit.core.signer import CURVES, EcdsaSigner
from nonce_audit.utils.constants import (
    BIAS_THRESHOLD,
    DEFAULT_ALGORITHM,
    DEFAULT_CURVE,
    NUM_BIAS_SAMPLES,
    NUM_PROBE_SAMPLES,
    SIGMA_THRESHOLD,
)
from nonce_audit.utils.errors import StatisticalAnomaly
from nonce_audit.utils.types import AuditConfig, AuditReport

# Timing needs tens of thousands of signatures to see a weak leak; the CLI
# default stays small enough for pure-Python signing.
CLI_TIMING_SAMPLES = 5000


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nonce-audit",
        description="Detect biased or timing-leaking ECDSA nonces",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--curve", default=DEFAULT_CURVE, choices=sorted(CURVES))
    common.add_argument("--algorithm", default=DEFAULT_ALGORITHM,
                        help="Signature algorithm, e.g. SHA256WithECDSA")
    common.add_argument("--deterministic", action="store_true",
                        help="Sign with RFC 6979 nonces")

    sub = parser.add_subparsers(dest="command")

    # bias
    bias = sub.add_parser("bias", parents=[common], help="LSB/MSB and characteristic function tests")
    bias.add_argument("--samples", type=int, default=NUM_BIAS_SAMPLES)
    bias.add_argument("--min-count", type=int, default=None,
                      help="Lower bound on LSB/MSB counts (default: derived from --samples)")
    bias.add_argument("--threshold", type=float, default=BIAS_THRESHOLD)
    bias.add_argument("--truncate-digest", action="store_true",
                      help="Truncate digests longer than the order")
    bias.add_argument("--timing", action="store_true", help="Also run the timing test")
    bias.add_argument("--timing-samples", type=int, default=CLI_TIMING_SAMPLES)
    bias.add_argument("--plot", action="store_true", help="Save plots to --out-dir")
    bias.add_argument("--csv", action="store_true", help="Export results CSV")
    bias.add_argument("--out-dir", default="~/Desktop", help="Directory for CSV and plots")

    # timing
    timing = sub.add_parser("timing", parents=[common], help="Timing/nonce correlation test")
    timing.add_argument("--samples", type=int, default=CLI_TIMING_SAMPLES)
    timing.add_argument("--sigmas", type=float, default=SIGMA_THRESHOLD)
    timing.add_argument("--truncate-digest", action="store_true")
    timing.add_argument("--plot", action="store_true", help="Save plots to --out-dir")
    timing.add_argument("--csv", action="store_true", help="Export results CSV")
    timing.add_argument("--out-dir", default="~/Desktop", help="Directory for CSV and plots")

    # probe
    probe = sub.add_parser("probe", parents=[common], help="Distinct r and randomization probes")
    probe.add_argument("--samples", type=int, default=NUM_PROBE_SAMPLES)

    return parser


def make_signer(args: argparse.Namespace) -> EcdsaSigner:
    return EcdsaSigner.generate(
        curve=args.curve,
        algorithm=args.algorithm,
        deterministic=args.deterministic,
    )


def print_report(report: AuditReport) -> None:
    print()
    print("=" * 50)
    print(f" RESULTS  {report.algorithm} / {report.curve}")
    print("=" * 50)
    print(f"  Samples:             {report.num_samples}")
    print(f"  Deterministic:       {report.deterministic}")
    if report.bit_counts is not None:
        print(f"  LSB count:           {report.bit_counts.lsb}")
        print(f"  MSB count:           {report.bit_counts.msb}")
    for result in report.bias_results:
        print(f"  Bias {result.label:15s} {result.score:.4f}")
    if report.timing_skipped:
        print(f"  Timing:              SKIPPED ({report.timing_skipped})")
    elif report.max_z_score is not None:
        print(f"  Timing max sigmas:   {report.max_z_score:.4f}")
    print("=" * 50)
    if report.passed:
        print("  PASS")
    else:
        for anomaly in report.anomalies:
            print(f"  FAIL {anomaly.check}: {anomaly}")


def export_csv(report: AuditReport, out_dir: str) -> str:
    """Write report rows to <out_dir>/nonce_audit_<timestamp>.csv"""
    out_dir = os.path.expanduser(out_dir)
    os.makedirs(out_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = os.path.join(out_dir, f"nonce_audit_{timestamp}.csv")

    with open(filepath, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["metric", "value"])
        for metric, value in report.as_rows():
            writer.writerow([metric, value])
        for part in report.timing_partitions:
            writer.writerow([f"timing_sigma_{part.count}", part.z_score])

    print(f"Results exported to {filepath}")
    return filepath


def make_plots(report: AuditReport, auditor: NonceAuditor, out_dir: str) -> None:
    from nonce_audit.visualization.plots import PlotSuite

    plots = PlotSuite(save_dir=out_dir)
    if report.nonces:
        plots.nonce_histogram(report.nonces, auditor.curve.order)
    if report.bias_results:
        plots.bias_scores(report.bias_results, auditor.config.bias_threshold)
    if report.timing_partitions:
        plots.timing_sigmas(report.timing_partitions, auditor.config.sigma_threshold)
    print(f"Plots saved to {out_dir}")


def run_bias(args: argparse.Namespace) -> int:
    config = AuditConfig(
        num_samples=args.samples,
        timing_samples=args.timing_samples,
        min_count=args.min_count,
        bias_threshold=args.threshold,
        truncate_digest=args.truncate_digest,
    )
    auditor = NonceAuditor(make_signer(args), config)
    print(f"Signing {config.num_samples} messages with {auditor.signer!r}...")
    report = auditor.run(timing=args.timing)
    return finish(report, auditor, args)


def run_timing(args: argparse.Namespace) -> int:
    config = AuditConfig(
        timing_samples=args.samples,
        sigma_threshold=args.sigmas,
        truncate_digest=args.truncate_digest,
    )
    auditor = NonceAuditor(make_signer(args), config)
    print(f"Timing {config.timing_samples} signatures with {auditor.signer!r}...")
    report = auditor.run_timing()
    return finish(report, auditor, args)


def finish(report: AuditReport, auditor: NonceAuditor, args: argparse.Namespace) -> int:
    print_report(report)
    if args.csv:
        export_csv(report, args.out_dir)
    if args.plot:
        make_plots(report, auditor, args.out_dir)
    return 0 if report.passed else 1


def run_probe(args: argparse.Namespace) -> int:
    signer = make_signer(args)
    deterministic = is_deterministic(signer.sign)
    print(f"Signer: {signer!r} (deterministic={deterministic})")
    try:
        check_distinct_r(signer.sign, count=args.samples)
        print(f"  Distinct r over {args.samples} signatures: PASS")
        if not deterministic:
            check_randomized(signer.sign, count=args.samples)
            print(f"  Distinct signatures over {args.samples} signatures: PASS")
    except StatisticalAnomaly as exc:
        print(f"  FAIL {exc.check}: {exc}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "bias":
        return run_bias(args)
    elif args.command == "timing":
        return run_timing(args)
    elif args.command == "probe":
        return run_probe(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
