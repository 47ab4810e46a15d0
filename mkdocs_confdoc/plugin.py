"""
MkDocs plugin for generating configuration reference pages.

Hooks into the MkDocs build lifecycle: loads the metadata document, runs
cross-reference resolution once, reports unresolved references and schema
anomalies, and renders the reference as generated pages (one page, or one
page per struct). Also expands ``::: confdoc:struct`` directives in
hand-written pages.
"""

from __future__ import annotations

import logging
import os
import re
from mkdocs.config import config_options
from mkdocs.config.base import Config as MkDocsConfig
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import File

from .model import SchemaError, load_document_file
from .pipeline import generate
from .renderer import (
    RenderConfig,
    anchor_id,
    render_sections,
    render_single,
    render_struct,
    render_toc,
)

log = logging.getLogger("mkdocs.plugins.confdoc")

_DIRECTIVE_RE = re.compile(
    r"^(?P<indent>[ \t]*):::[ \t]+confdoc:(?P<directive>struct|all)\s*\n"
    r"(?P<body>(?:(?P=indent)[ \t]+:\w+:.*\n)*)",
    re.MULTILINE,
)
_OPTION_RE = re.compile(r"^\s+:(\w+):\s*(.+)$", re.MULTILINE)

_INDEX = "__INDEX__"


class ConfdocConfig(MkDocsConfig):
    metadata_file = config_options.Type(str, default="")
    output_dir = config_options.Type(str, default="config")
    nav_title = config_options.Type(str, default="Configuration Reference")
    split_pages = config_options.Type(bool, default=False)
    heading_level = config_options.Type(int, default=2)
    section_names = config_options.Type(dict, default={})
    toc = config_options.Type(bool, default=True)
    lenient_schema = config_options.Type(bool, default=False)
    strict = config_options.Type(bool, default=False)
    workers = config_options.Type(int, default=1)


def _rel_link(target_uri, current_uri):
    if target_uri == current_uri:
        return ""
    from_dir = os.path.dirname(current_uri) or "."
    return os.path.relpath(target_uri, from_dir).replace(os.sep, "/")


class ConfdocPlugin(BasePlugin[ConfdocConfig]):

    def __init__(self):
        super().__init__()
        self._doc = None
        self._result = None
        self._pages = {}
        self._struct_uris = {}
        self._tmpfiles = []

    # ── Loading and diagnostics ──

    def _metadata_path(self, config_dir):
        path = self.config["metadata_file"]
        if not path:
            return ""
        if not os.path.isabs(path):
            path = os.path.normpath(os.path.join(config_dir, path))
        return path

    def _load(self, path):
        strict_schema = not self.config["lenient_schema"]
        try:
            return load_document_file(path, strict=strict_schema)
        except SchemaError as exc:
            raise PluginError(f"confdoc: invalid metadata in {path}: {exc}") from exc
        except OSError as exc:
            raise PluginError(f"confdoc: cannot read metadata file {path}: {exc}") from exc

    def _report(self, report):
        for entry in report.unresolved:
            log.warning(
                "confdoc: unresolved reference %s in %s (%s #%d, %s)",
                entry.identifier,
                entry.owner,
                entry.slot,
                entry.index,
                entry.reason,
            )
        for a in report.anomalies:
            where = f"{a.struct}::{a.field}" if a.field else a.struct
            log.warning("confdoc: %s: %s: %s", where, a.kind, a.message)
        for c in report.hint_conflicts:
            log.info("confdoc: %s", c.message)

        if not report.ok:
            summary = report.format_text().splitlines()[-1]
            if self.config["strict"]:
                raise PluginError(f"confdoc: {summary}")
            log.warning("confdoc: %s", summary)

    # ── Page layout ──

    def _index_uri(self):
        return f"{self.config['output_dir'].strip('/')}/index.md"

    def _plan_pages(self):
        self._pages.clear()
        self._struct_uris.clear()
        index = self._index_uri()
        self._pages[index] = _INDEX
        out = self.config["output_dir"].strip("/")
        for struct in self._doc.structs:
            if self.config["split_pages"]:
                uri = f"{out}/{struct.name}.md"
                self._pages[uri] = struct.name
            else:
                uri = index
            self._struct_uris[struct.name] = uri

    def _rcfg(self, current_uri, *, toc=None, title=None):
        links = {name: _rel_link(uri, current_uri) for name, uri in self._struct_uris.items()}
        return RenderConfig(
            heading_level=self.config["heading_level"],
            section_names=self.config["section_names"],
            struct_pages=links,
            toc=self.config["toc"] if toc is None else toc,
            title=title,
        )

    def _build_nav_tree(self):
        if not self.config["split_pages"]:
            return self._index_uri()
        nav = [{"Overview": self._index_uri()}]
        for struct in self._doc.structs:
            nav.append({struct.name: self._struct_uris[struct.name]})
        return nav

    def _inject_nav(self, config):
        title = self.config["nav_title"]
        section = {title: self._build_nav_tree()}
        nav = config.get("nav")
        if nav is None:
            config["nav"] = [section]
            return
        for i, item in enumerate(nav):
            if isinstance(item, dict) and title in item:
                nav[i] = section
                return
        nav.append(section)

    # ── MkDocs lifecycle hooks ──

    def on_config(self, config, **kwargs):
        config_dir = os.path.dirname(config.get("config_file_path", "") or "") or os.getcwd()
        self._doc = None
        self._result = None
        self._pages.clear()
        self._struct_uris.clear()
        self._tmpfiles.clear()

        path = self._metadata_path(config_dir)
        if not path:
            log.warning("confdoc: no metadata_file configured, nothing to generate")
            return config

        self._doc = self._load(path)
        self._result = generate(self._doc, RenderConfig(), workers=self.config["workers"])
        log.info(
            "confdoc: %d structs loaded from %s, %d references checked",
            len(self._doc.structs),
            path,
            len(self._result.resolution),
        )
        self._report(self._result.report)

        self._plan_pages()
        self._inject_nav(config)
        return config

    def on_files(self, files, *, config, **kwargs):
        for uri in sorted(self._pages):
            try:
                f = File.generated(config, uri, content="")
            except (AttributeError, TypeError):
                f = File(
                    uri,
                    config["docs_dir"],
                    config["site_dir"],
                    config.get("use_directory_urls", True),
                )
                dest = os.path.join(config["docs_dir"], uri)
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                open(dest, "w").close()
                self._tmpfiles.append(dest)
            f.edit_uri = None
            files.append(f)
        return files

    def on_page_markdown(self, markdown, *, page, config, files, **kwargs):
        src_uri = getattr(page.file, "src_uri", None) or page.file.src_path
        if self._doc is None:
            return markdown

        if src_uri in self._pages:
            target = self._pages[src_uri]
            if target == _INDEX:
                return self._mk_index(src_uri)
            return self._mk_struct_page(src_uri, target)

        return _DIRECTIVE_RE.sub(lambda m: self._handle_directive(m, src_uri), markdown)

    def on_post_build(self, *, config, **kwargs):
        docs_dir = config["docs_dir"]
        for p in self._tmpfiles:
            try:
                os.remove(p)
            except OSError:
                pass
            d = os.path.dirname(p)
            while d != docs_dir:
                try:
                    os.rmdir(d)
                except OSError:
                    break
                d = os.path.dirname(d)

    # ── Page rendering ──

    def _mk_index(self, uri):
        title = self.config["nav_title"]
        resolution = self._result.resolution
        if not self.config["split_pages"]:
            cfg = self._rcfg(uri, title=title)
            sections = [render_struct(s, resolution, cfg) for s in self._doc.structs]
            return render_sections(sections, cfg, structs=self._doc.structs)

        cfg = self._rcfg(uri, toc=True)
        n = len(self._doc.structs)
        lines = [
            f"# {title}",
            "",
            f"This reference covers {n} configuration {'struct' if n == 1 else 'structs'}.",
            "",
            render_toc(self._doc.structs, cfg),
            "",
        ]
        return "\n".join(lines)

    def _mk_struct_page(self, uri, name):
        cfg = self._rcfg(uri, toc=False)
        cfg.heading_level = 1
        return render_single(self._doc, self._result.resolution, name, cfg)

    def _handle_directive(self, match, current_uri):
        directive = match.group("directive")
        opts = {}
        for m in _OPTION_RE.finditer(match.group("body")):
            opts[m.group(1)] = m.group(2).strip()
        cfg = self._rcfg(current_uri, toc=False)
        if "heading_level" in opts:
            try:
                cfg.heading_level = int(opts["heading_level"])
            except ValueError:
                pass
        resolution = self._result.resolution
        if directive == "all":
            sections = [render_struct(s, resolution, cfg) for s in self._doc.structs]
            return render_sections(sections, cfg)
        name = opts.get("name", "")
        if not name:
            return "<!-- confdoc: missing :name: for confdoc:struct -->\n"
        return render_single(self._doc, resolution, name, cfg)

    def struct_url(self, name, current_uri):
        """Link from ``current_uri`` to the rendered struct, or None if unknown."""
        uri = self._struct_uris.get(name)
        if uri is None:
            return None
        return f"{_rel_link(uri, current_uri)}#{anchor_id(name)}"
