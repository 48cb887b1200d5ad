from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pysam

from . import __version__
from .aggregation import DEFAULT_DIRECTIVES, BaseErrorAggregation, ErrorType, build_aggregations
from .config import CollectionSettings
from .intervals import load_intervals
from .loci import VariantOverlapOracle, iter_locus_contexts
from .pipeline import LocusPipeline
from .plotting import plot_error_totals, plot_q_by_stratum
from .report import render_report
from .stratifiers import Stratification, describe
from .toy_data import make_toy_data
from .utils import ensure_outdir, write_json
from .validation import (
    check_bam_index,
    check_exists,
    check_same_dictionary,
    check_sort_order,
    check_vcf_index,
    warn_on_contig_style_mismatch,
)
from .writer import check_outputs_writable, metrics_path, write_all_metrics


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    msg = f"{err.__class__.__name__}: {err}"
    sys.stderr.write(msg + "\n")
    if log_path is not None and log_path.exists():
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="errstrat",
        description=(
            "ErrStrat: stratified sequencing error metrics. Walks an aligned BAM against its "
            "reference, skips known variant sites, and reports empirical error rates broken "
            "down by read and reference features."
        ),
    )
    p.add_argument("--version", action="version", version=f"errstrat {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # list-options
    # -----------------
    sub.add_parser(
        "list-options",
        help="List error types, stratifiers and the default directives.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny reference, BAM, and known-variants VCF for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # collect
    # -----------------
    defaults = CollectionSettings()
    c = sub.add_parser(
        "collect",
        help="Collect stratified error metrics from a BAM.",
    )
    c.add_argument("--bam", required=True, type=_path_exists, help="Input BAM (coordinate sorted, indexed).")
    c.add_argument("--ref", required=True, type=_path_exists, help="Reference FASTA the BAM was aligned to.")
    c.add_argument(
        "--vcf",
        required=True,
        type=_path_exists,
        help="Known variants (.vcf.gz with tabix index, or indexed .bcf). Sites with unfiltered records are skipped.",
    )
    c.add_argument(
        "--output",
        required=True,
        help="Output prefix. Metric files are written as <prefix>.<suffix>.",
    )
    c.add_argument(
        "--intervals",
        nargs="+",
        type=_path_exists,
        default=None,
        help="BED file(s) restricting the loci examined. Several files are intersected.",
    )
    c.add_argument(
        "--directive",
        action="append",
        default=None,
        help=(
            "ERROR_TYPE(:STRATIFIER)* to collect; repeatable. Defaults to the full default set "
            "(see 'errstrat list-options')."
        ),
    )
    c.add_argument(
        "--min-mapping-quality",
        type=int,
        default=defaults.min_mapping_quality,
        help="Reads below this mapping quality are ignored.",
    )
    c.add_argument(
        "--min-base-quality",
        type=int,
        default=defaults.min_base_quality,
        help="Aligned bases below this base quality are ignored.",
    )
    c.add_argument(
        "--prior-q",
        type=int,
        default=defaults.prior_q,
        help="Phred-scaled prior error rate used to shrink per-stratum estimates.",
    )
    c.add_argument(
        "--max-loci",
        type=int,
        default=defaults.max_loci,
        help="Stop after processing this many loci (0 = no limit).",
    )
    c.add_argument(
        "--long-homopolymer",
        type=int,
        default=defaults.long_homopolymer,
        help="Shortest homopolymer counted as long by BINNED_HOMOPOLYMER.",
    )
    c.add_argument(
        "--window",
        type=int,
        default=defaults.window,
        help="Reference bases on each side of a locus available to stratifiers (must exceed --long-homopolymer).",
    )
    c.add_argument(
        "--probability",
        type=float,
        default=defaults.probability,
        help="Probability of examining a locus (downsampling).",
    )
    c.add_argument("--seed", type=int, default=defaults.seed, help="Seed for downsampling.")
    c.add_argument(
        "--progress-interval",
        type=int,
        default=defaults.progress_interval,
        help="Log progress every N processed loci.",
    )
    c.add_argument("--no-report", action="store_true", help="Do not write the HTML report and plots.")
    c.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    c.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "ErrStrat quickstart (copy/paste):",
        "",
        "1) Default metrics over the whole genome:",
        "   errstrat collect \\",
        "     --bam sample.bam \\",
        "     --ref ref.fa \\",
        "     --vcf dbsnp.vcf.gz \\",
        "     --output results/sample",
        "   Outputs: results/sample.error_by_all, ..., results/sample.report.html",
        "",
        "2) A few custom directives over target intervals:",
        "   errstrat collect \\",
        "     --bam sample.bam --ref ref.fa --vcf dbsnp.vcf.gz \\",
        "     --intervals targets.bed \\",
        "     --directive ERROR:READ_ORDINALITY:CYCLE \\",
        "     --directive INDEL_ERROR:HOMOPOLYMER \\",
        "     --output results/targets",
        "",
        "3) Quick look on 10% of loci:",
        "   errstrat collect \\",
        "     --bam sample.bam --ref ref.fa --vcf dbsnp.vcf.gz \\",
        "     --probability 0.1 --max-loci 1000000 \\",
        "     --output results/quick",
        "",
        "Tip: use --dry-run to validate inputs and directives without reading any locus.",
        "     'errstrat list-options' prints every error type and stratifier.",
    ]
    print("\n".join(lines))
    return 0


def cmd_list_options() -> int:
    lines = ["Error types:"]
    for et in ErrorType:
        lines.append(f"  {et.name:26s} suffix={et.suffix:20s} {et.description}")
    lines.append("")
    lines.append("Stratifiers:")
    for st in Stratification:
        lines.append(f"  {st.name:26s} suffix={st.suffix:24s} {describe(st)}")
    lines.append("")
    lines.append("Default directives:")
    lines.extend(f"  {d}" for d in DEFAULT_DIRECTIVES)
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def _settings_from_args(args: argparse.Namespace) -> CollectionSettings:
    return CollectionSettings(
        directives=list(args.directive) if args.directive else list(DEFAULT_DIRECTIVES),
        min_mapping_quality=int(args.min_mapping_quality),
        min_base_quality=int(args.min_base_quality),
        prior_q=int(args.prior_q),
        max_loci=int(args.max_loci),
        long_homopolymer=int(args.long_homopolymer),
        probability=float(args.probability),
        seed=int(args.seed),
        progress_interval=int(args.progress_interval),
        window=int(args.window),
    )


def _check_inputs(args: argparse.Namespace) -> List[str]:
    """Validate BAM/reference/VCF together; returns the BAM contig order."""
    check_exists(args.bam, "BAM")
    check_exists(args.ref, "Reference FASTA")
    check_exists(args.vcf, "Known variants VCF")
    check_bam_index(args.bam)
    check_vcf_index(args.vcf)

    with pysam.AlignmentFile(args.bam, "rb") as bam:
        check_sort_order(bam.header.to_dict())
        bam_contigs = list(zip(bam.references, (int(n) for n in bam.lengths)))
    with pysam.FastaFile(args.ref) as fasta:
        ref_contigs = list(zip(fasta.references, (int(n) for n in fasta.lengths)))
    check_same_dictionary(bam_contigs, ref_contigs)

    with pysam.VariantFile(args.vcf) as vcf:
        vcf_contigs = list(vcf.header.contigs)
    warn_on_contig_style_mismatch([c for c, _ in bam_contigs], vcf_contigs)
    return [c for c, _ in bam_contigs]


def _plot_aggregations(
    aggregations: Sequence[BaseErrorAggregation],
    summaries: Dict[str, Dict[str, object]],
    prior_q: int,
    plots_dir: Path,
) -> Dict[str, str]:
    """Plot Q per stratum for single-stratifier aggregations; paths are relative to the report."""
    plots: Dict[str, str] = {}
    totals_png = plots_dir / "raw_error_rates.png"
    plot_error_totals(
        suffixes=list(summaries),
        rates=[s["raw_error_rate"] for s in summaries.values()],  # type: ignore[misc]
        out_png=totals_png,
    )
    plots["raw_error_rates"] = str(Path(plots_dir.name) / totals_png.name)

    for agg in aggregations:
        strats = agg.stratifier.stratifiers
        if len(strats) != 1 or strats[0].kind == Stratification.ALL:
            continue
        out = plot_q_by_stratum(
            metrics=agg.metrics(prior_q),
            out_png=plots_dir / f"{agg.suffix}.png",
            title=agg.suffix,
            xlabel=strats[0].name,
        )
        if out is not None:
            plots[agg.suffix] = str(Path(plots_dir.name) / out.name)
    return plots


def cmd_collect(args: argparse.Namespace) -> int:
    prefix = Path(args.output).expanduser().resolve()
    log_path = Path(f"{prefix}.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("errstrat")
    logger.info("errstrat %s", __version__)

    try:
        settings = _settings_from_args(args).validate()
        aggregations = build_aggregations(settings.directives, long_homopolymer=settings.long_homopolymer)
        contig_order = _check_inputs(args)
        intervals = load_intervals(args.intervals, contig_order)

        if args.dry_run:
            if prefix.parent.exists():
                check_outputs_writable(prefix, aggregations)
            print("Dry-run: inputs look OK.")
            print(f"Directives: {len(aggregations)}")
            if intervals is not None:
                print(f"Intervals: {len(intervals)} ({sum(len(iv) for iv in intervals)} bp)")
            print("Planned outputs:")
            for agg in aggregations:
                print(f"  {metrics_path(prefix, agg.suffix)}")
            print(f"  {prefix}.summary.json")
            if not args.no_report:
                print(f"  {prefix}.report.html")
            return 0

        ensure_outdir(prefix.parent)
        check_outputs_writable(prefix, aggregations)

        with VariantOverlapOracle(args.vcf) as oracle:
            loci = iter_locus_contexts(
                args.bam,
                args.ref,
                intervals=intervals,
                min_mapping_quality=settings.min_mapping_quality,
                min_base_quality=settings.min_base_quality,
                window=settings.window,
            )
            pipeline = LocusPipeline(
                aggregations,
                variant_oracle=oracle,
                probability=settings.probability,
                max_loci=settings.max_loci,
                seed=settings.seed,
                progress=True,
                progress_interval=settings.progress_interval,
            )
            try:
                counts = pipeline.run(loci)
            finally:
                loci.close()

        summaries = write_all_metrics(prefix, aggregations, settings.prior_q, command=args.command_line)

        inputs = {
            "bam": str(args.bam),
            "ref": str(args.ref),
            "vcf": str(args.vcf),
            "intervals": ", ".join(args.intervals) if args.intervals else None,
        }
        write_json(
            Path(f"{prefix}.summary.json"),
            {
                "version": __version__,
                "inputs": inputs,
                "settings": settings.to_dict(),
                "counts": counts.to_dict(),
                "aggregations": summaries,
            },
        )

        if not args.no_report:
            plots_dir = Path(f"{prefix}.plots")
            plots = _plot_aggregations(aggregations, summaries, settings.prior_q, plots_dir)
            report_path = render_report(
                out_path=Path(f"{prefix}.report.html"),
                version=__version__,
                inputs=inputs,
                settings=settings.to_dict(),
                counts=counts.to_dict(),
                aggregations=summaries,
                plots=plots,
            )
            print(str(report_path))
        else:
            print(f"{prefix}.summary.json")
        return 0
    except Exception as e:
        return _handle_error(e, log_path=None if args.dry_run else log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.command_line = " ".join(["errstrat"] + list(sys.argv[1:] if argv is None else argv))

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "list-options":
        return cmd_list_options()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "collect":
        return cmd_collect(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
