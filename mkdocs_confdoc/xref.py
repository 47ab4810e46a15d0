"""
Cross-reference extraction and resolution.

Free-text slots (descriptions, notes, deprecation notices and default
values) mark references rustdoc-style, e.g. ``[`NodeConfig::miner`]`` or
``[NodeConfig]``. The extractor turns every marked token into a
ReferenceOccurrence carrying its exact provenance; the resolver binds each
one against the struct/field index and the referenced-constants hint map.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from enum import Enum

log = logging.getLogger(__name__)

# [`Ident`], [Ident], [`A::b`], [A::b::c]; not [text](url) or [text][ref]
_TOKEN_RE = re.compile(
    r"(?<![\]\\])\[(?P<tick>`?)(?P<ident>[A-Za-z_]\w*(?:::[A-Za-z_]\w*)*)(?P=tick)\](?![(\[])"
)
_FENCE_RE = re.compile(r"^[ \t]*```.*?^[ \t]*```[ \t]*$", re.MULTILINE | re.DOTALL)
_CODE_SPAN_RE = re.compile(r"(?<!`)`[^`\n]+`(?!`)")

SLOT_DESCRIPTION = "description"
SLOT_DEPRECATED = "deprecated"
SLOT_DEFAULT = "default_value"


def note_slot(i):
    return f"notes[{i}]"


# ── outcomes ──


class UnresolvedReason(Enum):
    UNKNOWN_STRUCT = "unknown-struct"
    UNKNOWN_FIELD = "unknown-field"
    HINT_UNBOUND = "hint-unbound"


@dataclass(frozen=True)
class RefTarget:
    struct: str
    field: str | None = None

    @property
    def identifier(self):
        return f"{self.struct}::{self.field}" if self.field else self.struct


@dataclass(frozen=True)
class ConstantTarget:
    name: str
    value: str


class Pending:
    """Outcome placeholder before resolution."""

    def __repr__(self):
        return "PENDING"


PENDING = Pending()


@dataclass(frozen=True)
class Resolved:
    target: RefTarget | ConstantTarget


@dataclass(frozen=True)
class Unresolved:
    reason: UnresolvedReason


@dataclass(frozen=True)
class ReferenceOccurrence:
    token: str
    struct: str
    field: str | None
    slot: str
    index: int
    span: tuple[int, int]
    outcome: Pending | Resolved | Unresolved = PENDING

    @property
    def owner(self):
        return f"{self.struct}::{self.field}" if self.field else self.struct

    @property
    def is_resolved(self):
        return isinstance(self.outcome, Resolved)

    @property
    def is_pending(self):
        return self.outcome is PENDING


# ── extraction ──


def _fenced_ranges(text):
    return [(m.start(), m.end()) for m in _FENCE_RE.finditer(text)]


def _code_span_ranges(text):
    # Blank out the ticks of reference tokens so [`A::b`] is not read as code
    masked = list(text)
    for m in _TOKEN_RE.finditer(text):
        if m.group("tick"):
            masked[m.start("tick")] = " "
            masked[m.end("ident")] = " "
    return [(m.start(), m.end()) for m in _CODE_SPAN_RE.finditer("".join(masked))]


def _in_ranges(pos, ranges):
    return any(start <= pos < end for start, end in ranges)


def field_slots(fd):
    """Text slots of a field, in diagnostic order."""
    yield SLOT_DESCRIPTION, fd.description
    for i, note in enumerate(fd.notes):
        yield note_slot(i), note
    if fd.deprecated is not None:
        yield SLOT_DEPRECATED, fd.deprecated
    if fd.default_value is not None:
        yield SLOT_DEFAULT, fd.default_value


def find_tokens(text, known_bare):
    """Yield (identifier, (start, end)) for every marked reference in text.

    Qualified identifiers always count; a bare identifier only counts when
    it is in ``known_bare`` (struct names and hinted constants).
    """
    if not text or "[" not in text:
        return
    skipped = _fenced_ranges(text) + _code_span_ranges(text)
    for m in _TOKEN_RE.finditer(text):
        if skipped and _in_ranges(m.start(), skipped):
            continue
        ident = m.group("ident")
        if "::" not in ident and ident not in known_bare:
            continue
        yield ident, m.span()


def extract_text(text, struct, field, slot, known_bare):
    for index, (ident, span) in enumerate(find_tokens(text, known_bare)):
        yield ReferenceOccurrence(
            token=ident, struct=struct, field=field, slot=slot, index=index, span=span
        )


def extract_field(struct, fd, known_bare):
    for slot, text in field_slots(fd):
        yield from extract_text(text, struct.name, fd.name, slot, known_bare)


def extract_struct(struct, known_bare):
    yield from extract_text(struct.description, struct.name, None, SLOT_DESCRIPTION, known_bare)
    for fd in struct.fields:
        yield from extract_field(struct, fd, known_bare)


def known_bare_names(doc):
    return frozenset(doc.struct_names) | frozenset(doc.referenced_constants)


def extract_document(doc):
    known = known_bare_names(doc)
    for struct in doc.structs:
        yield from extract_struct(struct, known)


# ── resolution ──


class SymbolIndex:
    """Every ``Struct`` and ``Struct::field`` identifier of a document."""

    def __init__(self):
        self._targets = {}
        self._structs = set()

    @classmethod
    def from_document(cls, doc):
        index = cls()
        for struct in doc.structs:
            index._structs.add(struct.name)
            index._targets[struct.name] = RefTarget(struct.name)
            for fd in struct.fields:
                index._targets[f"{struct.name}::{fd.name}"] = RefTarget(struct.name, fd.name)
        return index

    def lookup(self, identifier):
        return self._targets.get(identifier)

    def has_struct(self, name):
        return name in self._structs

    def __contains__(self, identifier):
        return identifier in self._targets

    def __len__(self):
        return len(self._targets)


@dataclass(frozen=True)
class HintConflict:
    identifier: str
    message: str


def cross_check_hints(hints, index):
    conflicts = []
    for ident in sorted(hints):
        if hints[ident] is None and ident in index:
            conflicts.append(
                HintConflict(
                    ident,
                    f"'{ident}' is documented in the schema but the hint marks it unbound",
                )
            )
    return conflicts


class Resolver:
    def __init__(self, index, hints=None):
        self.index = index
        self.hints = hints if hints is not None else {}

    def outcome_for(self, identifier):
        # An explicit null hint wins over the index
        if identifier in self.hints and self.hints[identifier] is None:
            return Unresolved(UnresolvedReason.HINT_UNBOUND)
        target = self.index.lookup(identifier)
        if target is not None:
            return Resolved(target)
        if identifier in self.hints:
            return Resolved(ConstantTarget(identifier, self.hints[identifier]))
        owner, sep, _ = identifier.partition("::")
        if sep and self.index.has_struct(owner):
            return Unresolved(UnresolvedReason.UNKNOWN_FIELD)
        return Unresolved(UnresolvedReason.UNKNOWN_STRUCT)

    def resolve(self, occ):
        return replace(occ, outcome=self.outcome_for(occ.token))

    def resolve_all(self, occurrences):
        return [self.resolve(o) for o in occurrences]


class Resolution:
    """Resolved occurrences of one document, addressable by text slot."""

    def __init__(self, occurrences, hint_conflicts=()):
        self.occurrences = tuple(occurrences)
        self.hint_conflicts = tuple(hint_conflicts)
        self._by_slot = {}
        for occ in self.occurrences:
            self._by_slot.setdefault((occ.struct, occ.field, occ.slot), []).append(occ)

    def for_slot(self, struct, field, slot):
        return self._by_slot.get((struct, field, slot), [])

    @property
    def unresolved(self):
        return [o for o in self.occurrences if not o.is_resolved]

    def __len__(self):
        return len(self.occurrences)

    def __iter__(self):
        return iter(self.occurrences)


def resolve_document(doc, occurrences=None):
    index = SymbolIndex.from_document(doc)
    hints = doc.referenced_constants
    conflicts = cross_check_hints(hints, index)
    if occurrences is None:
        occurrences = extract_document(doc)
    resolver = Resolver(index, hints)
    resolved = resolver.resolve_all(occurrences)
    log.debug(
        "confdoc: resolved %d references against %d identifiers",
        len(resolved),
        len(index),
    )
    return Resolution(resolved, conflicts)
