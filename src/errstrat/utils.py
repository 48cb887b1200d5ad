from __future__ import annotations

import gzip
import json
import logging
import math
from pathlib import Path
from typing import Any, Optional, TextIO

logger = logging.getLogger(__name__)

_COMPLEMENT = str.maketrans("ACGTNacgtn", "TGCANtgcan")


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def phred_to_error_prob(q: float) -> float:
    # Guard against negative values (can occur if qualities are missing).
    if q <= 0:
        return 1.0
    return 10 ** (-q / 10)


def error_prob_to_phred(p: float) -> float:
    p = clamp(p, 1e-300, 1.0)
    return -10.0 * math.log10(p)


def reverse_complement(seq: str) -> str:
    return seq.translate(_COMPLEMENT)[::-1]


def shrunk_error_rate(errors: int, total: int, prior: float, weight: float = 1.0) -> Optional[float]:
    """Posterior mean error rate under a Beta prior centred on ``prior``.

    The prior carries ``weight`` pseudo-observations, i.e. Beta(weight * prior,
    weight * (1 - prior)), so the estimate is ``(errors + weight * prior) / (total + weight)``.
    Strata with few observations are pulled toward ``prior``; large strata converge
    to ``errors / total``. Returns None when ``total`` is zero.
    """
    if total <= 0:
        return None
    return (errors + weight * prior) / (total + weight)


def q_score(rate: Optional[float]) -> Optional[float]:
    if rate is None:
        return None
    return error_prob_to_phred(rate)


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def write_json(path: str | Path, obj: Any) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)
