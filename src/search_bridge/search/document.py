"""In-memory document records exchanged with index databases."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TermEntry:
    """Within-document frequency and positions of one term."""

    wdf: int = 0
    positions: list[int] = field(default_factory=list)


@dataclass
class Document:
    """A document: opaque data payload, indexed terms and value slots.

    Value slots are addressed by name. Numeric slots are accepted and
    stored under their decimal string.
    """

    data: str = ""
    terms: dict[str, TermEntry] = field(default_factory=dict)
    values: dict[str, str] = field(default_factory=dict)
    doc_id: int | None = None

    def set_data(self, data: str) -> None:
        self.data = data

    def get_data(self) -> str:
        return self.data

    def add_term(self, term: str, wdf_inc: int = 1) -> None:
        entry = self.terms.setdefault(term, TermEntry())
        entry.wdf += wdf_inc

    def add_boolean_term(self, term: str) -> None:
        self.add_term(term, wdf_inc=0)

    def add_posting(self, term: str, position: int, wdf_inc: int = 1) -> None:
        entry = self.terms.setdefault(term, TermEntry())
        entry.wdf += wdf_inc
        entry.positions.append(position)

    def add_value(self, slot: str | int, value: str) -> None:
        self.values[str(slot)] = value

    def get_value(self, slot: str | int) -> str:
        return self.values.get(str(slot), "")

    @property
    def length(self) -> int:
        return sum(entry.wdf for entry in self.terms.values())
