"""
End-to-end generation: model -> extraction -> resolution -> render + report.

Everything here is a pure function of the metadata document. Per-struct
extraction and rendering may run on a thread pool; results are always
collected in struct declaration order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .model import load_document
from .renderer import RenderConfig, render_sections, render_struct
from .report import build_report
from .xref import extract_struct, known_bare_names, resolve_document

log = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    document: object
    resolution: object
    sections: dict[str, str]
    markdown: str
    report: object

    @property
    def ok(self):
        return self.report.ok


def _ordered_map(fn, items, workers):
    if workers <= 1 or len(items) <= 1:
        return [fn(item) for item in items]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(fn, items))


def extract_all(doc, *, workers=1):
    known = known_bare_names(doc)
    chunks = _ordered_map(lambda s: list(extract_struct(s, known)), doc.structs, workers)
    return [occ for chunk in chunks for occ in chunk]


def generate(doc, cfg=None, *, workers=1):
    if cfg is None:
        cfg = RenderConfig()

    occurrences = extract_all(doc, workers=workers)
    resolution = resolve_document(doc, occurrences)

    rendered = _ordered_map(lambda s: render_struct(s, resolution, cfg), doc.structs, workers)
    sections = {s.name: text for s, text in zip(doc.structs, rendered)}
    markdown = render_sections(rendered, cfg, structs=doc.structs)

    report = build_report(resolution.occurrences, doc.anomalies, resolution.hint_conflicts)
    log.debug(
        "confdoc: %d structs, %d references, verdict %s",
        len(doc.structs),
        len(resolution),
        report.verdict.value,
    )
    return GenerationResult(
        document=doc,
        resolution=resolution,
        sections=sections,
        markdown=markdown,
        report=report,
    )


def generate_from_data(data, cfg=None, *, strict=True, workers=1):
    return generate(load_document(data, strict=strict), cfg, workers=workers)
