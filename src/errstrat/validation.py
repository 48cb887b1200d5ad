from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Sequence, Tuple

from .errors import InputConsistencyError

logger = logging.getLogger(__name__)


_UCSC_PREFIX = "chr"


def check_exists(path: str | Path, what: str) -> None:
    if not Path(path).exists():
        raise InputConsistencyError(f"{what} does not exist: {path}")


def check_bam_index(bam_path: str | Path) -> None:
    """Ensure a BAM has an index; raise with fix instructions."""
    bam = Path(bam_path)
    candidates = [
        bam.with_suffix(bam.suffix + ".bai"),
        bam.with_suffix(".bai"),
        bam.with_suffix(bam.suffix + ".csi"),
    ]
    if any(p.exists() for p in candidates):
        return
    raise InputConsistencyError("BAM is not indexed. Run: samtools index " + str(bam))


def check_vcf_index(vcf_path: str | Path) -> None:
    """Ensure the known-variants VCF can be queried by position."""
    vcf = Path(vcf_path)
    if vcf.suffix == ".bcf":
        if not vcf.with_suffix(vcf.suffix + ".csi").exists():
            raise InputConsistencyError("BCF is not indexed. Run: bcftools index " + str(vcf))
        return
    if vcf.suffixes[-2:] == [".vcf", ".gz"]:
        if vcf.with_suffix(vcf.suffix + ".tbi").exists() or vcf.with_suffix(vcf.suffix + ".csi").exists():
            return
        raise InputConsistencyError("Cannot query VCF file: not tabix indexed. Run: tabix -p vcf " + str(vcf))
    raise InputConsistencyError(
        "Cannot query VCF file: it must be bgzip-compressed and indexed. Run: bgzip -c "
        + str(vcf)
        + " > "
        + str(vcf)
        + ".gz; tabix -p vcf "
        + str(vcf)
        + ".gz"
    )


def check_sort_order(header: Mapping[str, object]) -> None:
    """The locus walk needs coordinate-sorted input."""
    hd = header.get("HD") or {}
    so = hd.get("SO") if isinstance(hd, Mapping) else None
    if so != "coordinate":
        raise InputConsistencyError(f"Input BAM must be sorted by coordinate (found SO={so}).")


def check_same_dictionary(
    bam_contigs: Sequence[Tuple[str, int]],
    ref_contigs: Sequence[Tuple[str, int]],
) -> None:
    """BAM header and reference FASTA must describe the same sequences."""
    if list(bam_contigs) == list(ref_contigs):
        return
    ref = dict(ref_contigs)
    for name, length in bam_contigs:
        if name not in ref:
            raise InputConsistencyError(f"Sequence dictionaries differ: {name} is missing from the reference.")
        if ref[name] != length:
            raise InputConsistencyError(
                f"Sequence dictionaries differ: {name} has length {length} in the BAM "
                f"and {ref[name]} in the reference."
            )
    if len(bam_contigs) != len(ref_contigs):
        raise InputConsistencyError(
            f"Sequence dictionaries differ: BAM has {len(bam_contigs)} sequences, reference has {len(ref_contigs)}."
        )
    raise InputConsistencyError("Sequence dictionaries differ in sequence order.")


def check_output_writable(path: str | Path) -> None:
    p = Path(path)
    parent = p.parent if str(p.parent) else Path(".")
    if not parent.exists():
        raise InputConsistencyError(f"Output directory does not exist: {parent}")
    if p.exists() and p.is_dir():
        raise InputConsistencyError(f"Output path is a directory: {p}")


def detect_contig_style(contigs: Iterable[str]) -> str:
    """Infer contig style: 'ucsc' if most contigs start with 'chr', else 'ensembl'."""
    names = [c for c in contigs if c]
    if not names:
        return "unknown"
    chr_like = [c for c in names if c.startswith(_UCSC_PREFIX)]
    if len(chr_like) >= max(1, int(0.5 * len(names))):
        return "ucsc"
    return "ensembl"


def warn_on_contig_style_mismatch(bam_contigs: Iterable[str], vcf_contigs: Iterable[str]) -> None:
    """Known variants on differently named contigs would silently never match."""
    vcf_names = list(vcf_contigs)
    if not vcf_names:
        return
    bam_style = detect_contig_style(bam_contigs)
    vcf_style = detect_contig_style(vcf_names)
    if "unknown" not in (bam_style, vcf_style) and bam_style != vcf_style:
        logger.warning(
            "Contig style mismatch detected (VCF=%s, BAM=%s). Known variants may not be excluded.",
            vcf_style,
            bam_style,
        )
