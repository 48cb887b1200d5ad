from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from .aggregation import DEFAULT_DIRECTIVES
from .errors import ConfigurationError
from .stratifiers import DEFAULT_LONG_HOMOPOLYMER


@dataclass
class CollectionSettings:
    """Options for one metric collection run."""

    directives: List[str] = field(default_factory=lambda: list(DEFAULT_DIRECTIVES))
    min_mapping_quality: int = 20
    min_base_quality: int = 20
    # phred-scaled prior error used to shrink per-stratum rates
    prior_q: int = 30
    # 0 means unbounded
    max_loci: int = 0
    long_homopolymer: int = DEFAULT_LONG_HOMOPOLYMER
    # probability of keeping a locus (downsampling)
    probability: float = 1.0
    seed: int = 42
    progress_interval: int = 100_000
    # reference bases on each side of a locus made available to stratifiers
    window: int = 10

    def validate(self) -> "CollectionSettings":
        """Raise ConfigurationError listing every out-of-range option."""
        errors: List[str] = []
        if self.min_mapping_quality < 0:
            errors.append(f"min_mapping_quality must be non-negative. found value: {self.min_mapping_quality}")
        if self.min_base_quality < 0:
            errors.append(f"min_base_quality must be non-negative. found value: {self.min_base_quality}")
        if self.prior_q < 0:
            errors.append(f"prior_q must be non-negative. found value: {self.prior_q}")
        if self.max_loci < 0:
            errors.append(f"max_loci must be non-negative. found value: {self.max_loci}")
        if self.long_homopolymer < 0:
            errors.append(f"long_homopolymer must be non-negative. found value: {self.long_homopolymer}")
        if not 0.0 <= self.probability <= 1.0:
            errors.append(f"probability must be between 0 and 1. found value: {self.probability}")
        if self.progress_interval <= 0:
            errors.append(f"progress_interval must be positive. found value: {self.progress_interval}")
        if self.window < 2:
            errors.append(f"window must be at least 2. found value: {self.window}")
        elif self.window <= self.long_homopolymer:
            # BINNED_HOMOPOLYMER needs to see a full long run inside the window
            errors.append(
                f"window must be larger than long_homopolymer ({self.long_homopolymer}). "
                f"found value: {self.window}"
            )
        if not self.directives:
            errors.append("at least one directive is required")
        if errors:
            raise ConfigurationError("Invalid settings:\n  " + "\n  ".join(errors))
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
