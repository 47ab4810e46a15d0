"""
Metadata model for configuration structs.

Loads the canonical metadata document (structs, fields and the
referenced-constants hint map) into frozen dataclasses, rejecting
structural violations with SchemaError and collecting softer schema
anomalies alongside the model.
"""

from __future__ import annotations

import json
import re
import tomllib
from dataclasses import dataclass, field
from types import MappingProxyType

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ANOMALY_REQUIRED_WITH_DEFAULT = "required-with-default"
ANOMALY_MALFORMED_EXAMPLE = "malformed-example"


class ConfdocError(Exception):
    pass


class SchemaError(ConfdocError, ValueError):
    """Malformed or contradictory metadata document."""

    def __init__(self, message, *, location="", struct=None, field=None):
        self.location = location
        self.struct = struct
        self.field = field
        self.message = message
        super().__init__(f"{location}: {message}" if location else message)


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    description: str
    default_value: str | None = None
    notes: tuple[str, ...] = ()
    deprecated: str | None = None
    toml_example: str | None = None
    required: bool | None = None
    units: str | None = None

    @property
    def is_deprecated(self):
        return self.deprecated is not None


@dataclass(frozen=True)
class StructDescriptor:
    name: str
    description: str
    fields: tuple[FieldDescriptor, ...] = ()

    def get_field(self, name):
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class SchemaAnomaly:
    struct: str
    field: str | None
    kind: str
    message: str


@dataclass(frozen=True)
class MetadataDocument:
    structs: tuple[StructDescriptor, ...]
    referenced_constants: MappingProxyType = field(
        default_factory=lambda: MappingProxyType({})
    )
    anomalies: tuple[SchemaAnomaly, ...] = ()

    def get_struct(self, name):
        for s in self.structs:
            if s.name == name:
                return s
        return None

    @property
    def struct_names(self):
        return [s.name for s in self.structs]


# ── loading ──


def _require(mapping, key, kind, location, **ctx):
    if key not in mapping:
        raise SchemaError(f"missing required key '{key}'", location=location, **ctx)
    value = mapping[key]
    if not isinstance(value, kind):
        raise SchemaError(
            f"'{key}' must be {_type_label(kind)}, got {type(value).__name__}",
            location=location,
            **ctx,
        )
    return value


def _optional(mapping, key, kind, location, **ctx):
    value = mapping.get(key)
    if value is None:
        return None
    if not isinstance(value, kind):
        raise SchemaError(
            f"'{key}' must be {_type_label(kind)} or null, got {type(value).__name__}",
            location=location,
            **ctx,
        )
    return value


def _type_label(kind):
    return {str: "a string", bool: "a boolean", list: "a list", dict: "an object"}.get(
        kind, kind.__name__
    )


def _check_ident(name, what, location, **ctx):
    if not _IDENT_RE.match(name):
        raise SchemaError(f"{what} name '{name}' is not an identifier", location=location, **ctx)


def _load_field(raw, sname, location):
    if not isinstance(raw, dict):
        raise SchemaError("field entry must be an object", location=location, struct=sname)
    name = _require(raw, "name", str, location, struct=sname)
    ctx = {"struct": sname, "field": name}
    _check_ident(name, "field", location, **ctx)
    description = _require(raw, "description", str, location, **ctx)

    notes = _optional(raw, "notes", list, location, **ctx) or []
    for i, note in enumerate(notes):
        if not isinstance(note, str):
            raise SchemaError(f"notes[{i}] must be a string", location=location, **ctx)

    return FieldDescriptor(
        name=name,
        description=description,
        default_value=_optional(raw, "default_value", str, location, **ctx),
        notes=tuple(notes),
        deprecated=_optional(raw, "deprecated", str, location, **ctx),
        toml_example=_optional(raw, "toml_example", str, location, **ctx),
        required=_optional(raw, "required", bool, location, **ctx),
        units=_optional(raw, "units", str, location, **ctx),
    )


def _load_struct(raw, location):
    if not isinstance(raw, dict):
        raise SchemaError("struct entry must be an object", location=location)
    name = _require(raw, "name", str, location)
    _check_ident(name, "struct", location, struct=name)
    description = _require(raw, "description", str, location, struct=name)
    raw_fields = _optional(raw, "fields", list, location, struct=name) or []

    fields = []
    seen = set()
    for i, rf in enumerate(raw_fields):
        floc = f"{location}.fields[{i}]"
        fd = _load_field(rf, name, floc)
        if fd.name in seen:
            raise SchemaError(
                f"duplicate field '{name}::{fd.name}'", location=floc, struct=name, field=fd.name
            )
        seen.add(fd.name)
        fields.append(fd)
    return StructDescriptor(name=name, description=description, fields=tuple(fields))


def _load_constants(raw):
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SchemaError(
            "'referenced_constants' must be an object", location="referenced_constants"
        )
    out = {}
    for key, value in raw.items():
        if value is None or isinstance(value, str):
            out[key] = value
        else:
            out[key] = json.dumps(value)
    return out


def _field_anomalies(struct, fd, location, strict):
    found = []
    if fd.required is True and fd.default_value is not None:
        msg = f"field is required but declares default {fd.default_value!r}"
        if strict:
            raise SchemaError(msg, location=location, struct=struct.name, field=fd.name)
        found.append(
            SchemaAnomaly(struct.name, fd.name, ANOMALY_REQUIRED_WITH_DEFAULT, msg)
        )
    if fd.toml_example is not None:
        try:
            tomllib.loads(fd.toml_example)
        except tomllib.TOMLDecodeError as exc:
            found.append(
                SchemaAnomaly(
                    struct.name,
                    fd.name,
                    ANOMALY_MALFORMED_EXAMPLE,
                    f"toml_example is not well-formed TOML: {exc}",
                )
            )
    return found


def load_document(data, *, strict=True):
    """Build a MetadataDocument from the parsed JSON mapping.

    With ``strict`` (the default) a field that is both required and
    defaulted raises SchemaError; otherwise it is kept and recorded as
    an anomaly. Duplicate names and type errors always raise.
    """
    if not isinstance(data, dict):
        raise SchemaError("metadata document must be an object")
    raw_structs = _require(data, "structs", list, "")

    structs = []
    anomalies = []
    seen = set()
    for i, rs in enumerate(raw_structs):
        loc = f"structs[{i}]"
        sd = _load_struct(rs, loc)
        if sd.name in seen:
            raise SchemaError(f"duplicate struct '{sd.name}'", location=loc, struct=sd.name)
        seen.add(sd.name)
        for j, fd in enumerate(sd.fields):
            anomalies += _field_anomalies(sd, fd, f"{loc}.fields[{j}]", strict)
        structs.append(sd)

    constants = _load_constants(data.get("referenced_constants"))
    return MetadataDocument(
        structs=tuple(structs),
        referenced_constants=MappingProxyType(constants),
        anomalies=tuple(anomalies),
    )


def load_document_file(path, *, strict=True):
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise SchemaError(f"invalid JSON: {exc}", location=str(path)) from exc
    except UnicodeDecodeError as exc:
        raise SchemaError(f"invalid UTF-8: {exc}", location=str(path)) from exc
    return load_document(data, strict=strict)
