"""Typed records exchanged with the assay store.

These mirror the persisted JSON shapes (camelCase keys) and provide
from_dict/to_dict converters, replacing untyped dict[str, Any] payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .core.prefixes import expand_prefix, expand_prefixes


def _nest(value: Any) -> list[str] | None:
    if value is None:
        return None
    return expand_prefixes(list(value))


@dataclass
class Annotation:
    """A chosen value for one assignment of an assay."""

    prop_uri: str
    value_uri: str | None
    group_nest: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Annotation:
        return cls(
            prop_uri=expand_prefix(data["propURI"]),
            value_uri=expand_prefix(data.get("valueURI")),
            group_nest=_nest(data.get("groupNest")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"propURI": self.prop_uri, "valueURI": self.value_uri}
        if self.group_nest:
            result["groupNest"] = list(self.group_nest)
        return result


@dataclass
class TextLabel:
    """A free-text literal attached to an assignment (or to the assay text if prop_uri is None)."""

    prop_uri: str | None
    text: str
    group_nest: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextLabel:
        return cls(
            prop_uri=expand_prefix(data.get("propURI")),
            text=data.get("text") or "",
            group_nest=_nest(data.get("groupNest")),
        )


@dataclass
class SchemaBranch:
    """Directive to graft a whole sub-template at a group position."""

    schema_uri: str
    group_nest: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaBranch:
        return cls(schema_uri=expand_prefix(data["schemaURI"]), group_nest=_nest(data.get("groupNest")))

    def to_dict(self) -> dict[str, Any]:
        return {"schemaURI": self.schema_uri, "groupNest": self.group_nest}


@dataclass
class SchemaDuplication:
    """Directive to clone a repeatable group a fixed number of times."""

    multiplicity: int
    group_nest: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaDuplication:
        return cls(multiplicity=int(data["multiplicity"]), group_nest=_nest(data.get("groupNest")))

    def to_dict(self) -> dict[str, Any]:
        return {"multiplicity": self.multiplicity, "groupNest": self.group_nest}


@dataclass
class Assay:
    """The parts of an assay record that the vocabulary engine consumes."""

    assay_id: str | None = None
    schema_uri: str | None = None
    text: str = ""
    branches: list[SchemaBranch] = field(default_factory=list)
    duplications: list[SchemaDuplication] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)
    text_labels: list[TextLabel] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Assay:
        """Create an Assay from a persisted JSON record.

        Args:
            data: Dictionary with assayID, schemaURI, schemaBranches, schemaDuplication,
                annotations and textLabels

        Returns:
            Assay instance
        """
        assay_id = data.get("assayID")
        return cls(
            assay_id=str(assay_id) if assay_id is not None else None,
            schema_uri=expand_prefix(data.get("schemaURI")),
            text=data.get("text") or "",
            branches=[SchemaBranch.from_dict(b) for b in data.get("schemaBranches") or []],
            duplications=[SchemaDuplication.from_dict(d) for d in data.get("schemaDuplication") or []],
            annotations=[Annotation.from_dict(a) for a in data.get("annotations") or []],
            text_labels=[TextLabel.from_dict(t) for t in data.get("textLabels") or []],
        )
