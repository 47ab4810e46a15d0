"""
Diagnostics for a generation run.

Collects unresolved cross-references and schema anomalies into a report
and decides the overall verdict. Independent of the renderer: a failed
run can still come with a best-effort document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Verdict(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class UnresolvedEntry:
    identifier: str
    struct: str
    field: str | None
    slot: str
    index: int
    reason: str

    @property
    def owner(self):
        return f"{self.struct}::{self.field}" if self.field else self.struct


@dataclass
class DiagnosticsReport:
    unresolved: list[UnresolvedEntry] = field(default_factory=list)
    anomalies: list = field(default_factory=list)
    hint_conflicts: list = field(default_factory=list)

    @property
    def verdict(self):
        if self.unresolved or self.anomalies:
            return Verdict.FAILURE
        return Verdict.SUCCESS

    @property
    def ok(self):
        return self.verdict is Verdict.SUCCESS

    @property
    def exit_code(self):
        return 0 if self.ok else 1

    def unresolved_by_owner(self):
        grouped = {}
        for entry in self.unresolved:
            grouped.setdefault(entry.owner, []).append(entry)
        return grouped

    def to_dict(self):
        return {
            "verdict": self.verdict.value,
            "unresolved": [
                {
                    "identifier": e.identifier,
                    "struct": e.struct,
                    "field": e.field,
                    "slot": e.slot,
                    "index": e.index,
                    "reason": e.reason,
                }
                for e in self.unresolved
            ],
            "anomalies": [
                {"struct": a.struct, "field": a.field, "kind": a.kind, "message": a.message}
                for a in self.anomalies
            ],
            "hint_conflicts": [
                {"identifier": c.identifier, "message": c.message} for c in self.hint_conflicts
            ],
        }

    def format_text(self):
        lines = []
        for owner, entries in self.unresolved_by_owner().items():
            lines.append(f"{owner}:")
            for e in entries:
                lines.append(
                    f"  unresolved reference {e.identifier} in {e.slot} #{e.index} ({e.reason})"
                )
        for a in self.anomalies:
            where = f"{a.struct}::{a.field}" if a.field else a.struct
            lines.append(f"{where}: {a.kind}: {a.message}")
        for c in self.hint_conflicts:
            lines.append(f"note: {c.message}")
        n_unres = len(self.unresolved)
        n_anom = len(self.anomalies)
        lines.append(
            f"{self.verdict.value}: {n_unres} unresolved "
            f"{'reference' if n_unres == 1 else 'references'}, "
            f"{n_anom} {'anomaly' if n_anom == 1 else 'anomalies'}"
        )
        return "\n".join(lines)


def build_report(occurrences, anomalies=(), hint_conflicts=()):
    unresolved = []
    for occ in occurrences:
        if occ.is_resolved:
            continue
        # A pending occurrence never went through the resolver
        reason = getattr(occ.outcome, "reason", None)
        unresolved.append(
            UnresolvedEntry(
                identifier=occ.token,
                struct=occ.struct,
                field=occ.field,
                slot=occ.slot,
                index=occ.index,
                reason=reason.value if reason is not None else "pending",
            )
        )
    return DiagnosticsReport(
        unresolved=unresolved,
        anomalies=list(anomalies),
        hint_conflicts=list(hint_conflicts),
    )
