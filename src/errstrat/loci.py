"""Locus source and known-variant lookup backed by pysam.

:func:`iter_locus_contexts` walks a coordinate-sorted BAM with ``pileup`` and yields one
:class:`~errstrat.models.LocusContext` per covered reference position, in ascending
order. :class:`VariantOverlapOracle` answers whether an unfiltered known variant
overlaps a locus.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

import pysam

from .intervals import Interval
from .models import AlignmentType, BaseObservation, Locus, LocusContext
from .validation import check_vcf_index

logger = logging.getLogger(__name__)

_MAX_DEPTH = 1_000_000


def deletion_length_at(read: pysam.AlignedSegment, pos0: int) -> int:
    """Length of the CIGAR deletion covering reference position ``pos0`` (0 if none).

    Walks the CIGAR once, tracking the reference position of each operation.
    """
    if read.cigartuples is None:
        return 0
    ref_pos = read.reference_start
    for op, length in read.cigartuples:
        if op in (0, 7, 8, 3):  # M, =, X, N: consume ref
            ref_pos += length
        elif op == 2:  # D
            if ref_pos <= pos0 < ref_pos + length:
                return length
            ref_pos += length
        if ref_pos > pos0:
            break
    return 0


def _read_length(read: pysam.AlignedSegment) -> int:
    if read.query_length:
        return int(read.query_length)
    return int(read.infer_query_length() or 0)


def observation_from_read(
    read: pysam.AlignedSegment,
    alignment_type: AlignmentType,
    *,
    offset: int,
    base: Optional[str] = None,
    quality: Optional[int] = None,
    indel_length: int = 0,
) -> BaseObservation:
    return BaseObservation(
        qname=str(read.query_name),
        alignment_type=alignment_type,
        offset=int(offset),
        base=base,
        quality=quality,
        is_reverse=bool(read.is_reverse),
        is_paired=bool(read.is_paired),
        is_read1=bool(read.is_read1),
        is_read2=bool(read.is_read2),
        mate_unmapped=bool(read.mate_is_unmapped),
        mapping_quality=int(read.mapping_quality),
        read_group=str(read.get_tag("RG")) if read.has_tag("RG") else None,
        read_length=_read_length(read),
        template_length=int(read.template_length),
        mismatches=int(read.get_tag("NM")) if read.has_tag("NM") else None,
        indel_length=int(indel_length),
        record_start=int(read.reference_start),
    )


def _column_context(
    column: pysam.PileupColumn,
    contig: str,
    ref_seq: str,
    ref_start: int,
    window: int,
    min_mapping_quality: int,
    min_base_quality: int,
) -> LocusContext:
    pos0 = int(column.reference_pos)
    idx = pos0 - ref_start
    lo = max(0, idx - window)
    hi = min(len(ref_seq), idx + window + 1)

    ctx = LocusContext(
        locus=Locus(contig, pos0 + 1),
        ref_base=ref_seq[idx],
        reference_window=ref_seq[lo:hi],
        window_offset=idx - lo,
    )

    for pr in column.pileups:
        if pr.is_refskip:
            continue
        read = pr.alignment
        if read.mapping_quality < min_mapping_quality:
            continue
        if pr.is_del:
            ctx.deleted.append(
                observation_from_read(
                    read,
                    AlignmentType.DELETION,
                    offset=pr.query_position_or_next,
                    indel_length=deletion_length_at(read, pos0),
                )
            )
            continue

        qpos = pr.query_position
        seq = read.query_sequence
        if qpos is None or seq is None:
            continue
        quals = read.query_qualities
        bq = int(quals[qpos]) if quals is not None else 0
        if bq >= min_base_quality:
            ctx.aligned.append(
                observation_from_read(
                    read,
                    AlignmentType.MATCH,
                    offset=qpos,
                    base=seq[qpos].upper(),
                    quality=bq,
                )
            )
        # pysam reports an insertion on the base preceding it
        if pr.indel > 0:
            ctx.inserted.append(
                observation_from_read(
                    read,
                    AlignmentType.INSERTION,
                    offset=qpos + 1,
                    indel_length=pr.indel,
                )
            )
    return ctx


def iter_locus_contexts(
    bam_path: str | Path,
    ref_path: str | Path,
    *,
    intervals: Optional[Sequence[Interval]] = None,
    min_mapping_quality: int = 20,
    min_base_quality: int = 20,
    window: int = 10,
) -> Iterator[LocusContext]:
    """Yield a LocusContext for every covered position, in reference order.

    Duplicate, secondary, QC-failed and unmapped reads are excluded by the pileup;
    reads below ``min_mapping_quality`` are dropped, as are aligned bases below
    ``min_base_quality`` (deletions and insertions have no base quality and are kept).
    Overlapping mates are not clipped, so both mates are reported at shared positions.
    """
    with pysam.AlignmentFile(str(bam_path), "rb") as bam, pysam.FastaFile(str(ref_path)) as fasta:
        regions: List[Interval]
        if intervals is None:
            regions = [Interval(c, 0, int(n)) for c, n in zip(bam.references, bam.lengths)]
        else:
            regions = list(intervals)

        for region in regions:
            contig_len = int(fasta.get_reference_length(region.contig))
            ref_start = max(0, region.start0 - window)
            ref_end = min(contig_len, region.end0 + window)
            ref_seq = fasta.fetch(region.contig, ref_start, ref_end).upper()
            logger.debug("Walking %s:%d-%d", region.contig, region.start0 + 1, region.end0)

            for column in bam.pileup(
                region.contig,
                region.start0,
                region.end0,
                truncate=True,
                stepper="all",
                min_base_quality=0,
                ignore_overlaps=False,
                ignore_orphans=False,
                max_depth=_MAX_DEPTH,
            ):
                ctx = _column_context(
                    column, region.contig, ref_seq, ref_start, window, min_mapping_quality, min_base_quality
                )
                if ctx.aligned or ctx.deleted or ctx.inserted:
                    yield ctx


def is_filtered(rec: pysam.VariantRecord) -> bool:
    # In pysam, rec.filter.keys() returns set of filter names; PASS may be absent when empty.
    filt = list(rec.filter.keys())
    return len(filt) > 0 and not (len(filt) == 1 and filt[0] == "PASS")


class VariantOverlapOracle:
    """Answers whether any unfiltered known variant overlaps a locus.

    The VCF must be indexed; it is queried once per examined locus.
    """

    def __init__(self, vcf_path: str | Path) -> None:
        check_vcf_index(vcf_path)
        self._vcf = pysam.VariantFile(str(vcf_path))
        self.contigs = set(self._vcf.header.contigs)
        self.queries = 0

    def __call__(self, locus: Locus) -> bool:
        return self.overlaps(locus)

    def overlaps(self, locus: Locus) -> bool:
        self.queries += 1
        if self.contigs and locus.contig not in self.contigs:
            return False
        try:
            records = self._vcf.fetch(locus.contig, locus.position - 1, locus.position)
        except ValueError:
            # contig has no entry in the index: no variants there
            logger.debug("Contig %s not present in the VCF index", locus.contig)
            return False
        for rec in records:
            if not is_filtered(rec):
                return True
        return False

    def close(self) -> None:
        self._vcf.close()

    def __enter__(self) -> "VariantOverlapOracle":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
