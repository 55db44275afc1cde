"""Curation templates: groups of assignments, and the selection trees composed for them.

A template (``Schema``) is a tree of ``Group``s, each holding ``Assignment``s
(annotatable fields). Each assignment carries ``Value`` directives that say
which ontology branches to include, exclude or relabel. Group nesting paths
(``group_nest``) are listed innermost group first; the root group is never part
of a nest.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import TemplateFormatError
from .prefixes import expand_prefix


class Specify(str, Enum):
    """How a template value applies to the ontology."""

    ITEM = "item"  # single term
    WHOLEBRANCH = "wholebranch"  # term and all of its descendants
    EXCLUDE = "exclude"  # remove a single term
    EXCLUDEBRANCH = "excludebranch"  # remove a term and its descendants
    CONTAINER = "container"  # grouping branch, not itself selectable


INCLUSIONS = (Specify.ITEM, Specify.WHOLEBRANCH, Specify.CONTAINER)
EXCLUSIONS = (Specify.EXCLUDE, Specify.EXCLUDEBRANCH)


# ----------------------------------------------------------------------
# Group nest helpers
# ----------------------------------------------------------------------


def key_prop_group(prop_uri: str | None, group_nest: Sequence[str] | None) -> str:
    """Unique key for an assignment position."""
    return "::".join([prop_uri or "", *(group_nest or [])])


def same_group_nest(nest1: Sequence[str] | None, nest2: Sequence[str] | None) -> bool:
    return list(nest1 or []) == list(nest2 or [])


def same_prop_group_nest(
    prop1: str | None, nest1: Sequence[str] | None, prop2: str | None, nest2: Sequence[str] | None
) -> bool:
    return (prop1 or "") == (prop2 or "") and same_group_nest(nest1, nest2)


def strip_index(group_nest: Sequence[str] | None) -> list[str]:
    """Remove duplication suffixes (``@2``) from each group URI."""
    return [g.split("@", 1)[0] for g in group_nest or []]


# ----------------------------------------------------------------------
# Template structure
# ----------------------------------------------------------------------


@dataclass
class Value:
    """A value directive inside an assignment."""

    uri: str
    name: str | None = None
    descr: str | None = None
    spec: Specify = Specify.ITEM
    parent_uri: str | None = None
    alt_labels: list[str] | None = None
    external_urls: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Value:
        try:
            spec = Specify(str(data.get("spec", "item")).lower())
        except ValueError as e:
            raise TemplateFormatError(f"Invalid value spec: {data.get('spec')}") from e
        if not data.get("uri"):
            raise TemplateFormatError(f"Value is missing its URI: {data}")
        return cls(
            uri=expand_prefix(data["uri"]),
            name=data.get("name"),
            descr=data.get("descr"),
            spec=spec,
            parent_uri=expand_prefix(data.get("parentURI")),
            alt_labels=data.get("altLabels"),
            external_urls=data.get("externalURLs"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"uri": self.uri, "spec": self.spec.value}
        if self.name is not None:
            result["name"] = self.name
        if self.descr is not None:
            result["descr"] = self.descr
        if self.parent_uri is not None:
            result["parentURI"] = self.parent_uri
        if self.alt_labels:
            result["altLabels"] = list(self.alt_labels)
        if self.external_urls:
            result["externalURLs"] = list(self.external_urls)
        return result


@dataclass(eq=False)
class Assignment:
    """An annotatable field, identified by property URI and its group position.

    ``origin`` is the provenance tag of the graft directive that contributed the
    assignment (None for assignments of the base template).
    """

    name: str
    prop_uri: str
    descr: str | None = None
    values: list[Value] = field(default_factory=list)
    parent: Group | None = field(default=None, repr=False)
    origin: str | None = None

    def group_nest(self) -> list[str]:
        return self.parent.nest_including_self() if self.parent is not None else []

    def clone(self, parent: Group | None) -> Assignment:
        return Assignment(
            name=self.name,
            prop_uri=self.prop_uri,
            descr=self.descr,
            values=copy.deepcopy(self.values),
            parent=parent,
            origin=self.origin,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], parent: Group | None = None) -> Assignment:
        if not data.get("propURI"):
            raise TemplateFormatError(f"Assignment is missing propURI: {data.get('name')}")
        return cls(
            name=data.get("name", ""),
            prop_uri=expand_prefix(data["propURI"]),
            descr=data.get("descr"),
            values=[Value.from_dict(v) for v in data.get("values") or []],
            parent=parent,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "descr": self.descr,
            "propURI": self.prop_uri,
            "values": [v.to_dict() for v in self.values],
        }


@dataclass(eq=False)
class Group:
    """A (possibly repeatable) section of a template."""

    name: str
    group_uri: str | None = None
    descr: str | None = None
    can_duplicate: bool = False
    assignments: list[Assignment] = field(default_factory=list)
    sub_groups: list[Group] = field(default_factory=list)
    parent: Group | None = field(default=None, repr=False)

    def group_nest(self) -> list[str]:
        """Nest of the enclosing groups (not including this one)."""
        return self.parent.nest_including_self() if self.parent is not None else []

    def nest_including_self(self) -> list[str]:
        nest = []
        group: Group | None = self
        while group is not None and group.parent is not None:
            nest.append(group.group_uri or "")
            group = group.parent
        return nest

    def clone(self, parent: Group | None) -> Group:
        dup = Group(
            name=self.name,
            group_uri=self.group_uri,
            descr=self.descr,
            can_duplicate=self.can_duplicate,
            parent=parent,
        )
        dup.assignments = [a.clone(dup) for a in self.assignments]
        dup.sub_groups = [g.clone(dup) for g in self.sub_groups]
        return dup

    def flattened_groups(self) -> list[Group]:
        """All descendant groups in pre-order (not including this one)."""
        result = []
        for group in self.sub_groups:
            result.append(group)
            result.extend(group.flattened_groups())
        return result

    def flattened_assignments(self) -> list[Assignment]:
        result = list(self.assignments)
        for group in self.sub_groups:
            result.extend(group.flattened_assignments())
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], parent: Group | None = None) -> Group:
        group = cls(
            name=data.get("name", ""),
            group_uri=expand_prefix(data.get("groupURI")),
            descr=data.get("descr"),
            can_duplicate=bool(data.get("canDuplicate", False)),
            parent=parent,
        )
        if parent is not None and not group.group_uri:
            raise TemplateFormatError(f"Group is missing groupURI: {group.name}")
        group.assignments = [Assignment.from_dict(a, group) for a in data.get("assignments") or []]
        group.sub_groups = [Group.from_dict(g, group) for g in data.get("subGroups") or []]
        return group

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "descr": self.descr,
            "groupURI": self.group_uri,
            "canDuplicate": self.can_duplicate,
            "assignments": [a.to_dict() for a in self.assignments],
            "subGroups": [g.to_dict() for g in self.sub_groups],
        }


class Schema:
    """A curation template."""

    def __init__(self, schema_prefix: str | None = None, root: Group | None = None):
        self.schema_prefix = schema_prefix
        self.root = root if root is not None else Group(name="common assay template")

    def clone(self) -> Schema:
        return Schema(self.schema_prefix, self.root.clone(None))

    def find_group_by_nest(self, group_nest: Sequence[str] | None) -> Group | None:
        """Locate a group by its nest path; an empty nest means the root."""
        group = self.root
        for uri in reversed(list(group_nest or [])):
            group = next((g for g in group.sub_groups if g.group_uri == uri), None)
            if group is None:
                return None
        return group

    def find_assignment_by_property(self, prop_uri: str, group_nest: Sequence[str] | None = None) -> list[Assignment]:
        """Find assignments by property, optionally constrained to a group position.

        If no assignment matches the nest exactly, duplication suffixes are ignored
        on both sides as a best-effort repair of stale group references.
        """
        candidates = [a for a in self.root.flattened_assignments() if a.prop_uri == prop_uri]
        if group_nest is None:
            return candidates
        exact = [a for a in candidates if same_group_nest(a.group_nest(), group_nest)]
        if exact:
            return exact
        loose = strip_index(group_nest)
        return [a for a in candidates if strip_index(a.group_nest()) == loose]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schema:
        if not isinstance(data, dict) or "root" not in data:
            raise TemplateFormatError("Template must be an object with a 'root' group")
        return cls(schema_prefix=expand_prefix(data.get("schemaPrefix")), root=Group.from_dict(data["root"]))

    def to_dict(self) -> dict[str, Any]:
        return {"schemaPrefix": self.schema_prefix, "root": self.root.to_dict()}


# ----------------------------------------------------------------------
# Selection trees
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class SelectionNode:
    """One selectable (or grouping) term in a flattened selection tree."""

    uri: str
    label: str | None
    descr: str | None = None
    alt_labels: tuple[str, ...] | None = None
    external_urls: tuple[str, ...] | None = None
    parent_index: int = -1
    depth: int = 0
    child_count: int = 0
    schema_count: int = 0
    in_schema: bool = True
    is_provisional: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "label": self.label,
            "descr": self.descr,
            "altLabels": list(self.alt_labels) if self.alt_labels else None,
            "externalURLs": list(self.external_urls) if self.external_urls else None,
            "parentIndex": self.parent_index,
            "depth": self.depth,
            "childCount": self.child_count,
            "schemaCount": self.schema_count,
            "inSchema": self.in_schema,
            "isProvisional": self.is_provisional,
        }


class SchemaTree:
    """The pre-order flattened selection tree for one assignment."""

    def __init__(self, flat: Sequence[SelectionNode], assignment: Assignment | None = None):
        self._flat = tuple(flat)
        self._assignment = assignment
        self._index: dict[str, int] = {}
        self._children: list[list[int]] = [[] for _ in self._flat]
        for idx, node in enumerate(self._flat):
            self._index.setdefault(node.uri, idx)
            if node.parent_index >= 0:
                self._children[node.parent_index].append(idx)

    def get_flat(self) -> tuple[SelectionNode, ...]:
        return self._flat

    def get_assignment(self) -> Assignment | None:
        return self._assignment

    def get_node(self, uri: str | None) -> SelectionNode | None:
        idx = self._index.get(uri) if uri is not None else None
        return self._flat[idx] if idx is not None else None

    def get_node_index(self, uri: str) -> int:
        return self._index.get(uri, -1)

    def get_parent(self, node: SelectionNode) -> SelectionNode | None:
        return self._flat[node.parent_index] if node.parent_index >= 0 else None

    def get_children(self, uri: str) -> list[SelectionNode]:
        idx = self._index.get(uri)
        if idx is None:
            return []
        return [self._flat[i] for i in self._children[idx]]

    def get_lineage(self, uri: str) -> list[str]:
        """The URI followed by its ancestors up to the tree root; empty if absent."""
        lineage = []
        node = self.get_node(uri)
        while node is not None:
            lineage.append(node.uri)
            node = self.get_parent(node)
        return lineage

    def get_branch_uris(self, uri: str) -> list[str]:
        """The URI and every URI beneath it; empty if absent."""
        idx = self._index.get(uri)
        if idx is None:
            return []
        result = []
        stack = [idx]
        while stack:
            i = stack.pop()
            result.append(self._flat[i].uri)
            stack.extend(reversed(self._children[i]))
        return result

    def __len__(self) -> int:
        return len(self._flat)

    def __iter__(self) -> Iterator[SelectionNode]:
        return iter(self._flat)

    def __contains__(self, uri: object) -> bool:
        return uri in self._index
