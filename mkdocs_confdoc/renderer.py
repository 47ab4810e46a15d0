"""
Markdown renderer for configuration structs.

Takes the metadata model plus resolved cross-references and turns them into
Markdown with anchors, a per-struct field table, deprecation admonitions,
notes and TOML example blocks. Output depends only on the input, so two
runs over the same document produce identical text.
"""

from __future__ import annotations

from .xref import (
    SLOT_DEFAULT,
    SLOT_DEPRECATED,
    SLOT_DESCRIPTION,
    ConstantTarget,
    Resolved,
    note_slot,
)

_REQUIRED_LABELS = {True: "yes", False: "no", None: "—"}


def anchor_id(struct, field=None):
    if field:
        return f"field-{struct}-{field}"
    return f"struct-{struct}"


class RenderConfig:
    def __init__(
        self,
        *,
        heading_level=2,
        section_names=None,
        struct_pages=None,
        toc=True,
        title=None,
    ):
        self.heading_level = heading_level
        self.section_names = dict(section_names or {})
        # struct name -> page link prefix ("" means same page)
        self.struct_pages = dict(struct_pages or {})
        self.toc = toc
        self.title = title


def _heading(text, level):
    return f"{'#' * min(level, 6)} {text}"


def _cell(text):
    if not text:
        return ""
    return text.replace("|", "\\|").replace("\r\n", "\n").replace("\n", "<br>")


def target_url(target, cfg):
    page = cfg.struct_pages.get(target.struct, "")
    return f"{page}#{anchor_id(target.struct, target.field)}"


def render_reference(occ, cfg):
    if isinstance(occ.outcome, Resolved):
        target = occ.outcome.target
        if isinstance(target, ConstantTarget):
            return f"`{target.name}` (`{target.value}`)"
        return f"[`{occ.token}`]({target_url(target, cfg)})"
    # Unresolved: drop the reference markup, keep the name visible
    return f"`{occ.token}`"


def render_text(text, occurrences, cfg):
    if not text or not occurrences:
        return text or ""
    parts = []
    last = 0
    for occ in occurrences:
        start, end = occ.span
        parts.append(text[last:start])
        parts.append(render_reference(occ, cfg))
        last = end
    parts.append(text[last:])
    return "".join(parts)


def _slot_text(text, resolution, struct, field, slot, cfg):
    return render_text(text, resolution.for_slot(struct, field, slot), cfg)


def _field_table(struct, resolution, cfg):
    rows = ["| Field | Default | Units | Required |", "|---|---|---|---|"]
    for fd in struct.fields:
        name = f"[`{fd.name}`](#{anchor_id(struct.name, fd.name)})"
        if fd.is_deprecated:
            name += " *(deprecated)*"
        default = ""
        if fd.default_value is not None:
            default = _slot_text(
                fd.default_value, resolution, struct.name, fd.name, SLOT_DEFAULT, cfg
            )
        rows.append(
            f"| {name} | {_cell(default)} | {_cell(fd.units or '')} "
            f"| {_REQUIRED_LABELS[fd.required]} |"
        )
    return rows


def render_field(struct, fd, resolution, cfg):
    level = cfg.heading_level + 1
    sname = struct.name
    parts = [f'<a id="{anchor_id(sname, fd.name)}"></a>', "", _heading(f"`{fd.name}`", level), ""]

    if fd.is_deprecated:
        text = _slot_text(fd.deprecated, resolution, sname, fd.name, SLOT_DEPRECATED, cfg)
        parts.append('!!! warning "Deprecated"')
        for line in (text or "This field is deprecated.").split("\n"):
            parts.append(f"    {line}" if line else "")
        parts.append("")

    desc = _slot_text(fd.description, resolution, sname, fd.name, SLOT_DESCRIPTION, cfg)
    if desc:
        parts += [desc, ""]

    if fd.default_value is not None:
        default = _slot_text(fd.default_value, resolution, sname, fd.name, SLOT_DEFAULT, cfg)
        parts += [f"**Default:** {default}", ""]
    if fd.units:
        parts += [f"**Units:** {fd.units}", ""]
    if fd.required is not None:
        parts += [f"**Required:** {_REQUIRED_LABELS[fd.required]}", ""]

    if fd.notes:
        parts += ["**Notes:**", ""]
        for i, note in enumerate(fd.notes):
            text = _slot_text(note, resolution, sname, fd.name, note_slot(i), cfg)
            lines = text.split("\n")
            marker = f"{i + 1}. "
            parts.append(f"{marker}{lines[0]}")
            indent = " " * len(marker)
            parts += [f"{indent}{ln}" if ln else "" for ln in lines[1:]]
        parts.append("")

    if fd.toml_example is not None:
        parts += ["**Example:**", "", "```toml", fd.toml_example.rstrip("\n"), "```", ""]

    return "\n".join(parts)


def render_struct(struct, resolution, cfg=None):
    if cfg is None:
        cfg = RenderConfig()

    parts = [f'<a id="{anchor_id(struct.name)}"></a>', ""]
    parts += [_heading(f"`{struct.name}`", cfg.heading_level), ""]
    section = cfg.section_names.get(struct.name)
    if section:
        parts += [f"TOML section: `{section}`", ""]

    desc = _slot_text(struct.description, resolution, struct.name, None, SLOT_DESCRIPTION, cfg)
    if desc:
        parts += [desc, ""]

    if not struct.fields:
        parts.append("_This struct has no fields._")
        parts.append("")
        return "\n".join(parts)

    parts += _field_table(struct, resolution, cfg)
    parts.append("")
    for fd in struct.fields:
        parts.append(render_field(struct, fd, resolution, cfg))
    return "\n".join(parts)


def render_toc(structs, cfg):
    lines = []
    for s in structs:
        page = cfg.struct_pages.get(s.name, "")
        lines.append(f"- [`{s.name}`]({page}#{anchor_id(s.name)})")
    return "\n".join(lines)


def render_sections(sections, cfg=None, *, structs=()):
    """Join already rendered struct sections into one document."""
    if cfg is None:
        cfg = RenderConfig()
    parts = []
    if cfg.title:
        parts += [_heading(cfg.title, max(1, cfg.heading_level - 1)), ""]
    if cfg.toc and structs:
        parts += [render_toc(structs, cfg), ""]
    parts.append("\n---\n\n".join(sections))
    text = "\n".join(parts)
    return text.rstrip("\n") + "\n"


def render_document(doc, resolution, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    sections = [render_struct(s, resolution, cfg) for s in doc.structs]
    return render_sections(sections, cfg, structs=doc.structs)


def render_single(doc, resolution, name, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    struct = doc.get_struct(name)
    if struct is None:
        return f"<!-- confdoc: struct '{name}' not found -->\n"
    return render_struct(struct, resolution, cfg)
