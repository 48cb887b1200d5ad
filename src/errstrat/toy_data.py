from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pysam

from .utils import ensure_outdir, write_json

TOY_CONTIG = "chr1"
TOY_LENGTH = 240
TOY_HOMOPOLYMER = (100, 107)  # 0-based half-open run of A


def _write_fasta(path: Path, contig: str, seq: str) -> None:
    lines = [f">{contig}"]
    for i in range(0, len(seq), 60):
        lines.append(seq[i : i + 60])
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _mutate_base(base: str) -> str:
    for alt in ["A", "C", "G", "T"]:
        if alt != base:
            return alt
    return "A"


def toy_reference() -> str:
    rng = random.Random(11)
    seq = [rng.choice("ACGT") for _ in range(TOY_LENGTH)]
    start, end = TOY_HOMOPOLYMER
    seq[start - 1] = "C"
    for i in range(start, end):
        seq[i] = "A"
    seq[end] = "G"
    return "".join(seq)


def make_read(
    name: str,
    start0: int,
    seq: str,
    *,
    cigar: Optional[List[Tuple[int, int]]] = None,
    flag: int = 0,
    mapq: int = 60,
    mate_start0: int = -1,
    template_length: int = 0,
    read_group: Optional[str] = "toy",
    nm: Optional[int] = None,
) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = seq
    a.flag = flag
    a.reference_id = 0
    a.reference_start = start0
    a.mapping_quality = mapq
    a.cigartuples = cigar if cigar is not None else [(0, len(seq))]
    a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
    if flag & 0x1:
        a.next_reference_id = 0
        a.next_reference_start = mate_start0
        a.template_length = template_length
    if read_group is not None:
        a.set_tag("RG", read_group, value_type="Z")
    if nm is not None:
        a.set_tag("NM", nm, value_type="i")
    return a


def _with_mismatches(ref: str, start0: int, length: int, positions0: Sequence[int]) -> str:
    seq = list(ref[start0 : start0 + length])
    for p in positions0:
        rel = p - start0
        if 0 <= rel < len(seq):
            seq[rel] = _mutate_base(seq[rel])
    return "".join(seq)


def write_bam(path: Path, reads: List[pysam.AlignedSegment], contig: str, length: int) -> Path:
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": contig, "LN": length}],
        "RG": [{"ID": "toy", "SM": "TOY"}],
    }
    reads = sorted(reads, key=lambda r: r.reference_start)
    with pysam.AlignmentFile(str(path), "wb", header=header) as bam:
        for r in reads:
            bam.write(r)
    pysam.index(str(path))
    return path


def write_known_variants(
    path_vcf: Path,
    contig: str,
    length: int,
    records: Sequence[Tuple[int, str, str, Optional[str]]],
) -> Path:
    """Write a bgzipped, tabix-indexed VCF; records are (pos0, ref, alt, filter or None)."""
    header = pysam.VariantHeader()
    header.add_meta("fileformat", "VCFv4.2")
    header.contigs.add(contig, length=length)
    header.filters.add("LowQual", None, None, "Low quality")

    with pysam.VariantFile(str(path_vcf), "w", header=header) as vcf:
        for pos0, ref_base, alt_base, filt in records:
            rec = vcf.new_record(
                contig=contig,
                start=pos0,
                stop=pos0 + len(ref_base),
                alleles=(ref_base, alt_base),
                qual=60,
                filter=filt,
            )
            vcf.write(rec)

    vcf_gz = Path(str(path_vcf) + ".gz")
    pysam.tabix_compress(str(path_vcf), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True)
    return vcf_gz


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create a tiny reference, BAM, and known-variants VCF for demos/tests.

    The BAM holds one overlapping read pair (one mismatch shared by both mates, one in
    read 1 only), an unpaired read with a 3 bp deletion, an unpaired read with a 2 bp
    insertion and a few clean reads. The VCF has one PASS site (chr1:150) and one
    filtered site (chr1:160).

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)

    contig = TOY_CONTIG
    ref_seq = toy_reference()
    ref_fa = outdir_p / "toy_ref.fa"
    _write_fasta(ref_fa, contig, ref_seq)
    pysam.faidx(str(ref_fa))

    reads: List[pysam.AlignedSegment] = []

    # Overlapping pair: read1 20..70, read2 40..90
    r1 = _with_mismatches(ref_seq, 20, 50, [45, 50])
    r2 = _with_mismatches(ref_seq, 40, 50, [50])
    reads.append(
        make_read("pair1", 20, r1, flag=0x1 | 0x2 | 0x20 | 0x40, mate_start0=40, template_length=70, nm=2)
    )
    reads.append(
        make_read("pair1", 40, r2, flag=0x1 | 0x2 | 0x10 | 0x80, mate_start0=20, template_length=-70, nm=1)
    )

    # 3 bp deletion of reference 100..103 (inside the homopolymer)
    del_seq = ref_seq[80:100] + ref_seq[103:130]
    reads.append(make_read("del1", 80, del_seq, cigar=[(0, 20), (2, 3), (0, 27)], nm=3))

    # 2 bp insertion after reference 114
    ins_seq = ref_seq[90:115] + "TT" + ref_seq[115:138]
    reads.append(make_read("ins1", 90, ins_seq, cigar=[(0, 25), (1, 2), (0, 23)], nm=2))

    for i in range(6):
        start0 = 120 + 10 * i
        reads.append(make_read(f"clean{i}", start0, ref_seq[start0 : start0 + 50], flag=0x10 if i % 2 else 0))

    bam_path = write_bam(outdir_p / "toy.bam", reads, contig, len(ref_seq))

    known = [
        (149, ref_seq[149], _mutate_base(ref_seq[149]), "PASS"),
        (159, ref_seq[159], _mutate_base(ref_seq[159]), "LowQual"),
    ]
    vcf_gz = write_known_variants(outdir_p / "known.vcf", contig, len(ref_seq), known)

    summary = {
        "ref_fa": str(ref_fa),
        "bam": str(bam_path),
        "known_vcf": str(vcf_gz),
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
