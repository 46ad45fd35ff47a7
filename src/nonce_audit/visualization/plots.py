"""Matplotlib-based 2D plots for nonce audit results."""

from __future__ import annotations

import os
from collections.abc import Sequence

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend by default

import matplotlib.pyplot as plt
import numpy as np

from nonce_audit.utils.types import BiasResult, TimingPartition


class PlotSuite:
    """Matplotlib-based 2D plots for nonce audit reports."""

    def __init__(self, save_dir: str = "~/Desktop") -> None:
        self.save_dir = os.path.expanduser(save_dir)

    def _save_or_show(
        self, fig: plt.Figure, name: str, show: bool, save: bool
    ) -> plt.Figure:
        if save:
            os.makedirs(self.save_dir, exist_ok=True)
            path = os.path.join(self.save_dir, f"nonce_audit_{name}.png")
            fig.savefig(path, dpi=150, bbox_inches="tight")
        if show:
            plt.show()
        else:
            plt.close(fig)
        return fig

    def nonce_histogram(
        self,
        nonces: Sequence[int],
        modulus: int,
        bins: int = 64,
        show: bool = False,
        save: bool = True,
    ) -> plt.Figure:
        """Histogram of k / n with the flat line a uniform nonce would give."""
        fig, ax = plt.subplots(figsize=(12, 5))
        if len(nonces) == 0:
            ax.text(0.5, 0.5, "No data", ha="center", va="center")
            return self._save_or_show(fig, "nonce_histogram", show, save)

        fractions = np.array([k / modulus for k in nonces], dtype=np.float64)
        ax.hist(fractions, bins=bins, range=(0.0, 1.0), color="steelblue", alpha=0.8)
        ax.axhline(
            y=len(nonces) / bins, color="red", linestyle="--", alpha=0.6, label="Uniform"
        )
        ax.set_xlabel("k / n")
        ax.set_ylabel("Count")
        ax.set_title(f"Recovered Nonce Distribution ({len(nonces)} samples)")
        ax.legend()
        ax.grid(True, alpha=0.3)

        return self._save_or_show(fig, "nonce_histogram", show, save)

    def bias_scores(
        self,
        results: Sequence[BiasResult],
        threshold: float,
        show: bool = False,
        save: bool = True,
    ) -> plt.Figure:
        """Bar chart of the bias score per multiplier against the threshold."""
        fig, ax = plt.subplots(figsize=(10, 5))
        labels = [r.label or str(r.multiplier) for r in results]
        scores = [r.score for r in results]
        colors = ["#e74c3c" if s > threshold else "#2ecc71" for s in scores]
        ax.bar(labels, scores, color=colors)
        ax.axhline(y=threshold, color="red", linestyle="--", alpha=0.6,
                   label=f"Threshold: {threshold}")
        ax.set_ylabel("Bias score")
        ax.set_title("Characteristic Function Bias per Multiplier")
        ax.legend()
        ax.grid(True, axis="y", alpha=0.3)

        fig.tight_layout()
        return self._save_or_show(fig, "bias_scores", show, save)

    def timing_sigmas(
        self,
        partitions: Sequence[TimingPartition],
        threshold: float,
        show: bool = False,
        save: bool = True,
    ) -> plt.Figure:
        """z-score and relative average nonce per timing cutoff."""
        if not partitions:
            fig, ax = plt.subplots()
            ax.text(0.5, 0.5, "No data", ha="center", va="center")
            return self._save_or_show(fig, "timing_sigmas", show, save)

        counts = [p.count for p in partitions]
        sigmas = [p.z_score for p in partitions]
        relative = [p.relative_average for p in partitions]

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

        ax1.plot(counts, sigmas, marker="o", color="blue")
        ax1.axhline(y=threshold, color="red", linestyle="--", alpha=0.5,
                    label=f"Threshold: {threshold} sigma")
        ax1.set_ylabel("Sigmas")
        ax1.set_title("Deviation of Mean Nonce for Fastest Signatures")
        ax1.legend()
        ax1.grid(True, alpha=0.3)

        ax2.plot(counts, relative, marker="o", color="green")
        ax2.axhline(y=1.0, color="gray", linestyle="--", alpha=0.5)
        ax2.set_xscale("log")
        ax2.set_xlabel("Samples at or below cutoff")
        ax2.set_ylabel("Average / (n/2)")
        ax2.grid(True, alpha=0.3)

        fig.tight_layout()
        return self._save_or_show(fig, "timing_sigmas", show, save)
