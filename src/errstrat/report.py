from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Template

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>ErrStrat Report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>ErrStrat Report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>BAM</th><td><code>{{ inputs.bam }}</code></td></tr>
      <tr><th>Reference</th><td><code>{{ inputs.ref }}</code></td></tr>
      <tr><th>Known variants</th><td><code>{{ inputs.vcf }}</code></td></tr>
      <tr><th>Intervals</th><td><code>{{ inputs.intervals or "whole genome" }}</code></td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Settings</h3>
    <table>
      <tr><th>Prior error (phred)</th><td>{{ settings.prior_q }}</td></tr>
      <tr><th>Min mapping quality</th><td>{{ settings.min_mapping_quality }}</td></tr>
      <tr><th>Min base quality</th><td>{{ settings.min_base_quality }}</td></tr>
      <tr><th>Long homopolymer</th><td>{{ settings.long_homopolymer }}</td></tr>
      <tr><th>Locus probability</th><td>{{ settings.probability }}</td></tr>
      <tr><th>Max loci</th><td>{{ settings.max_loci or "unlimited" }}</td></tr>
    </table>
  </div>
</div>

<h2>Loci</h2>
<table>
  <tr><th>Examined</th><td>{{ counts.loci_total }}</td></tr>
  <tr><th>Processed</th><td>{{ counts.loci_processed }}</td></tr>
  <tr><th>Skipped (known variant)</th><td>{{ counts.loci_skipped }}</td></tr>
  <tr><th>Downsampled away</th><td>{{ counts.loci_downsampled }}</td></tr>
  <tr><th>Runtime (s)</th><td>{{ "%.1f"|format(counts.runtime_seconds) }}</td></tr>
</table>

<h2>Metric files</h2>
<table>
  <tr><th>Suffix</th><th>Strata</th><th>Total bases</th><th>Error bases</th><th>Raw error rate</th><th>File</th></tr>
  {% for suffix, agg in aggregations.items() %}
  <tr>
    <td>{{ suffix }}</td>
    <td>{{ agg.strata }}</td>
    <td>{{ agg.total_bases }}</td>
    <td>{{ agg.error_bases }}</td>
    <td>{% if agg.raw_error_rate is not none %}{{ "%.3e"|format(agg.raw_error_rate) }}{% else %}NA{% endif %}</td>
    <td><code>{{ agg.path }}</code></td>
  </tr>
  {% endfor %}
</table>

{% if plots %}
<h2>Plots</h2>
<div class="grid">
  {% for name, path in plots.items() %}
  <div class="card">
    <h3>{{ name }}</h3>
    <img src="{{ path }}" alt="{{ name }}">
  </div>
  {% endfor %}
</div>
{% endif %}

<h2>Interpretation notes</h2>
<ul>
  <li>Every difference from the reference outside known variant sites is counted as an error.</li>
  <li>Rates are shrunk toward the prior error, so sparse strata do not report 0 or 1.</li>
  <li>NA marks strata where a stratifier did not apply, or a rate with no bases behind it.</li>
</ul>

<hr>
<p class="small">ErrStrat {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    out_path: str | Path,
    version: str,
    inputs: Dict[str, Any],
    settings: Dict[str, Any],
    counts: Dict[str, Any],
    aggregations: Dict[str, Dict[str, Any]],
    plots: Optional[Dict[str, str]] = None,
) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        inputs=inputs,
        settings=settings,
        counts=counts,
        aggregations=aggregations,
        plots=plots or {},
    )

    out_path.write_text(html, encoding="utf-8")
    logger.info("Report written: %s", out_path)
    return out_path
