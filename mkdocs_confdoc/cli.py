#!/usr/bin/env python3
"""
Render a configuration metadata document to Markdown outside of MkDocs.

Usage:
    python -m mkdocs_confdoc.cli config-metadata.json -o configuration.md
    python -m mkdocs_confdoc.cli config-metadata.json --split docs/config
    python -m mkdocs_confdoc.cli config-metadata.json --report-json report.json

Exit status: 0 when every reference resolves and the schema is clean,
1 when diagnostics were reported, 2 when the metadata cannot be loaded.
"""

import argparse
import json
import logging
import os
import sys

from .model import SchemaError, load_document_file
from .pipeline import generate
from .renderer import RenderConfig, render_single, render_toc

log = logging.getLogger("mkdocs_confdoc")


def _parse_sections(values):
    sections = {}
    for item in values or []:
        name, sep, label = item.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"expected NAME=LABEL, got {item!r}")
        sections[name.strip()] = label.strip()
    return sections


def write_split(result, out_dir, cfg):
    os.makedirs(out_dir, exist_ok=True)
    doc = result.document
    links = {s.name: f"{s.name}.md" for s in doc.structs}
    written = []
    for struct in doc.structs:
        page_cfg = RenderConfig(
            heading_level=1,
            section_names=cfg.section_names,
            struct_pages={n: ("" if n == struct.name else u) for n, u in links.items()},
            toc=False,
        )
        path = os.path.join(out_dir, f"{struct.name}.md")
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_single(doc, result.resolution, struct.name, page_cfg))
        written.append(path)

    index_cfg = RenderConfig(struct_pages=links)
    index = os.path.join(out_dir, "index.md")
    with open(index, "w", encoding="utf-8") as f:
        f.write(f"# {cfg.title or 'Configuration Reference'}\n\n")
        f.write(render_toc(doc.structs, index_cfg) + "\n")
    written.append(index)
    return written


def build_parser():
    p = argparse.ArgumentParser(
        prog="mkdocs-confdoc",
        description="Generate a configuration reference from struct metadata",
    )
    p.add_argument("metadata", help="JSON metadata document")
    out = p.add_mutually_exclusive_group()
    out.add_argument("-o", "--output", help="Write the rendered Markdown here (default: stdout)")
    out.add_argument("--split", metavar="DIR", help="Write one page per struct into DIR")
    p.add_argument("--report-json", metavar="FILE", help="Write the diagnostics report as JSON")
    p.add_argument(
        "--section",
        action="append",
        metavar="NAME=LABEL",
        help="TOML section label for a struct, e.g. NodeConfig=[node] (repeatable)",
    )
    p.add_argument("--title", default="Configuration Reference", help="Document title")
    p.add_argument("--heading-level", type=int, default=2, help="Struct heading level")
    p.add_argument("--no-toc", action="store_true", help="Omit the table of contents")
    p.add_argument(
        "--lenient",
        action="store_true",
        help="Report required fields with defaults as anomalies instead of aborting",
    )
    p.add_argument("--workers", type=int, default=1, help="Render threads (default: 1)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        sections = _parse_sections(args.section)
    except argparse.ArgumentTypeError as exc:
        p.error(str(exc))

    try:
        doc = load_document_file(args.metadata, strict=not args.lenient)
    except SchemaError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"error: cannot read {args.metadata}: {exc}", file=sys.stderr)
        return 2

    cfg = RenderConfig(
        heading_level=args.heading_level,
        section_names=sections,
        toc=not args.no_toc,
        title=args.title,
    )
    result = generate(doc, cfg, workers=args.workers)

    if args.split:
        for path in write_split(result, args.split, cfg):
            log.debug("wrote %s", path)
    elif args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(result.markdown)
    else:
        sys.stdout.write(result.markdown)

    if args.report_json:
        with open(args.report_json, "w", encoding="utf-8") as f:
            json.dump(result.report.to_dict(), f, indent=2)
            f.write("\n")

    print(result.report.format_text(), file=sys.stderr)
    return result.report.exit_code


if __name__ == "__main__":
    sys.exit(main())
