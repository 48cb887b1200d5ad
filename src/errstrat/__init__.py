"""ErrStrat: empirical sequencing-error rates stratified by per-base attributes.

Public API is intentionally small; most users should use the CLI:

    errstrat collect --bam ... --ref ... --vcf ... --output ...

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
