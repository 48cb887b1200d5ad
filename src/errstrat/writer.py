"""Metric file output.

One tab-separated file per aggregation, named ``<prefix>.<suffix>``. ``##`` lines carry
provenance, followed by a header row: one column per stratifier, then the metric
fields. Undefined values are written as ``NA``.
"""

from __future__ import annotations

import logging
from dataclasses import astuple
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from . import __version__
from .aggregation import BaseErrorAggregation
from .metrics import ErrorMetric
from .stratifiers import render_value
from .validation import check_output_writable

logger = logging.getLogger(__name__)


def metrics_path(prefix: str | Path, suffix: str) -> Path:
    return Path(f"{prefix}.{suffix}")


def _fmt(value: Any) -> str:
    if value is None:
        return "NA"
    if isinstance(value, float):
        return f"{value:.6f}"
    return str(value)


def check_outputs_writable(prefix: str | Path, aggregations: Sequence[BaseErrorAggregation]) -> None:
    for agg in aggregations:
        check_output_writable(metrics_path(prefix, agg.suffix))


def write_metrics_file(
    path: str | Path,
    aggregation: BaseErrorAggregation,
    prior_q: int,
    *,
    command: Optional[str] = None,
) -> List[ErrorMetric]:
    """Finalize ``aggregation`` and write its metrics; returns the metrics written."""
    keyed = aggregation.keyed_metrics(prior_q)
    metric_cls = aggregation.error_type.metric_class

    with open(path, "wt", encoding="utf-8") as fh:
        fh.write(f"## errstrat {__version__}\n")
        if command:
            fh.write(f"## COMMAND\t{command}\n")
        fh.write(f"## DIRECTIVE\t{aggregation.error_type.name}:{':'.join(aggregation.stratifier.names)}\n")
        fh.write(f"## PRIOR_Q\t{prior_q}\n")
        fh.write(f"## METRICS CLASS\t{metric_cls.__module__}.{metric_cls.__name__}\n")
        header = list(aggregation.stratifier.names) + metric_cls.column_names()
        fh.write("\t".join(header) + "\n")
        for key, metric in keyed:
            row = [render_value(v) for v in key] + [_fmt(v) for v in astuple(metric)]
            fh.write("\t".join(row) + "\n")

    logger.debug("Wrote %d metrics to %s", len(keyed), path)
    return [m for _, m in keyed]


def summarize_metrics(metrics: Sequence[ErrorMetric]) -> Dict[str, Any]:
    total = sum(m.total_bases for m in metrics)
    errors = sum(m.error_bases for m in metrics)
    return {
        "strata": len(metrics),
        "total_bases": total,
        "error_bases": errors,
        "raw_error_rate": (errors / total) if total else None,
    }


def write_all_metrics(
    prefix: str | Path,
    aggregations: Sequence[BaseErrorAggregation],
    prior_q: int,
    *,
    command: Optional[str] = None,
) -> Dict[str, Dict[str, Any]]:
    """Write every aggregation and return a per-suffix summary (path and totals)."""
    out: Dict[str, Dict[str, Any]] = {}
    for agg in aggregations:
        path = metrics_path(prefix, agg.suffix)
        metrics = write_metrics_file(path, agg, prior_q, command=command)
        summary = summarize_metrics(metrics)
        summary["path"] = str(path)
        summary["stratifiers"] = list(agg.stratifier.names)
        summary["error_type"] = agg.error_type.name
        out[agg.suffix] = summary
    logger.info("Wrote %d metric files with prefix %s", len(out), prefix)
    return out

