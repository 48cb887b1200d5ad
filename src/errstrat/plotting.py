from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from .metrics import ErrorMetric

logger = logging.getLogger(__name__)

_MAX_LABELS = 40


def plot_q_by_stratum(
    *,
    metrics: Sequence[ErrorMetric],
    out_png: str | Path,
    title: str,
    xlabel: str,
) -> Optional[Path]:
    """Bar plot of the shrunk Q score per stratum. Undefined strata are left out.

    Returns None (and writes nothing) when no stratum has a defined Q score.
    """
    out_png = Path(out_png)
    labels: List[str] = []
    values: List[float] = []
    for m in metrics:
        if m.q_score is None:
            continue
        labels.append(m.covariate)
        values.append(float(m.q_score))
    if not values:
        logger.debug("Nothing to plot for %s", title)
        return None

    out_png.parent.mkdir(parents=True, exist_ok=True)

    plt.figure(figsize=(max(6.0, 0.25 * len(values)), 4.0))
    plt.bar(range(len(values)), values)
    plt.xlabel(xlabel)
    plt.ylabel("Empirical Q")
    plt.title(title)
    if len(labels) <= _MAX_LABELS:
        plt.xticks(range(len(labels)), labels, rotation=90)
    else:
        step = len(labels) // _MAX_LABELS + 1
        idx = list(range(0, len(labels), step))
        plt.xticks(idx, [labels[i] for i in idx], rotation=90)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
    return out_png


def plot_error_totals(
    *,
    suffixes: Sequence[str],
    rates: Sequence[Optional[float]],
    out_png: str | Path,
    title: str = "Raw error rate per aggregation",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    ys = [r if r is not None else 0.0 for r in rates]

    plt.figure(figsize=(max(6.0, 0.35 * len(ys)), 4.0))
    plt.bar(range(len(ys)), ys)
    plt.ylabel("Error bases / total bases")
    plt.title(title)
    plt.xticks(range(len(suffixes)), list(suffixes), rotation=90)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
