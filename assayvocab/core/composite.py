"""Composition of the selection tree for one template assignment.

The assignment's value directives pick branches out of the baseline ontology.
Each inclusion starts as an independent fragment; provisional terms are hung
onto the fragments, exclusions are pruned, and the fragments are then merged
into a single tree (via their common baseline ancestors, or under a blank
placeholder root when they have none) and flattened in pre-order.

Working nodes live in one arena list and refer to each other by index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .ontology import OntologyBranch, OntologyTree
from .provisional import ProvisionalCache
from .template import EXCLUSIONS, INCLUSIONS, Assignment, SchemaTree, SelectionNode, Specify, Value

logger = logging.getLogger(__name__)


@dataclass
class _Node:
    uri: str | None
    label: str | None = None
    descr: str | None = None
    alt_labels: list[str] | None = None
    external_urls: list[str] | None = None
    parent: int | None = None
    children: list[int] = field(default_factory=list)
    in_schema: bool = True
    is_provisional: bool = False


@dataclass
class _Fragment:
    root: int
    map: dict[str, int] = field(default_factory=dict)
    source_parent_uri: str | None = None


class CompositeTree:
    """Assembles the selection tree of an assignment from ontology pieces."""

    def __init__(self, ontology: OntologyTree, assignment: Assignment, provisional: ProvisionalCache | None = None):
        self.ontology = ontology
        self.assignment = assignment
        self.provisional = provisional
        self._nodes: list[_Node] = []

    def compose(self) -> SchemaTree:
        """Build the tree; an assignment with nothing eligible gives an empty tree."""
        self._nodes = []
        fragments: list[_Fragment] = []

        for value in self.assignment.values:
            if value.spec in INCLUSIONS:
                self._include(value, fragments)

        for frag in fragments:
            self._augment_provisional(frag)

        for value in self.assignment.values:
            if value.spec in EXCLUSIONS:
                self._exclude(value, fragments)

        if not fragments:
            return SchemaTree([], self.assignment)

        logger.debug(f"Merging {len(fragments)} fragments for {self.assignment.prop_uri}")
        self._graft_contained(fragments)

        tree = fragments[0]
        for other in fragments[1:]:
            # may have become graftable since the previous pass
            parent = tree.map.get(other.source_parent_uri) if other.source_parent_uri is not None else None
            if parent is not None:
                self._graft(tree, parent, other.root)
            else:
                tree = self._merge(tree, other)

        return SchemaTree(self._flatten(tree), self.assignment)

    # ------------------------------------------------------------------
    # Arena helpers
    # ------------------------------------------------------------------

    def _remap(self, uri: str | None) -> str | None:
        return self.provisional.remap_maybe(uri) if self.provisional is not None else uri

    def _new_node(self, node: _Node) -> int:
        self._nodes.append(node)
        return len(self._nodes) - 1

    def _node_from_value(self, value: Value) -> int:
        return self._new_node(
            _Node(
                uri=self._remap(value.uri),
                label=value.name,
                descr=value.descr,
                alt_labels=value.alt_labels,
                external_urls=value.external_urls,
            )
        )

    def _node_from_branch(self, branch: OntologyBranch) -> int:
        return self._new_node(
            _Node(
                uri=self._remap(branch.uri),
                label=branch.label,
                descr=self.ontology.get_descr(branch.uri),
                alt_labels=self.ontology.get_alt_labels(branch.uri),
                external_urls=self.ontology.get_external_urls(branch.uri),
            )
        )

    def _copy_branch(self, branch: OntologyBranch, mapping: dict[str, int]) -> int:
        """Copy an ontology branch and everything beneath it into the arena."""
        top = self._node_from_branch(branch)
        stack = [(top, branch)]
        while stack:
            idx, src = stack.pop()
            mapping[self._nodes[idx].uri] = idx
            for child in self.ontology.get_children(src):
                cidx = self._node_from_branch(child)
                self._nodes[cidx].parent = idx
                self._nodes[idx].children.append(cidx)
                stack.append((cidx, child))
        return top

    def _attach(self, parent: int, child: int) -> None:
        self._nodes[child].parent = parent
        self._nodes[parent].children.append(child)

    def _detach(self, idx: int) -> None:
        node = self._nodes[idx]
        if node.parent is not None:
            self._nodes[node.parent].children.remove(idx)
            node.parent = None

    def _subtree(self, idx: int) -> list[int]:
        result = []
        stack = [idx]
        while stack:
            i = stack.pop()
            result.append(i)
            stack.extend(self._nodes[i].children)
        return result

    def _is_ancestor(self, ancestor: int, idx: int | None) -> bool:
        while idx is not None:
            if idx == ancestor:
                return True
            idx = self._nodes[idx].parent
        return False

    def _apply_item_details(self, idx: int, value: Value) -> None:
        node = self._nodes[idx]
        if value.name:
            node.label = value.name
        if value.descr:
            node.descr = value.descr
        if value.alt_labels:
            node.alt_labels = value.alt_labels
        if value.external_urls:
            node.external_urls = value.external_urls

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _include(self, value: Value, fragments: list[_Fragment]) -> None:
        branch = self.ontology.get_branch(value.uri)
        if branch is None:
            # not in the ontology: only meaningful as a request to add a new item
            if value.spec == Specify.ITEM:
                self._include_new_item(value, fragments)
            return

        uri = self._remap(value.uri)
        parent_uri = self._remap(value.parent_uri)
        already = False
        for frag in fragments:
            idx = frag.map.get(uri)
            if idx is None:
                continue
            already = True
            if value.spec == Specify.ITEM:
                self._apply_item_details(idx, value)
                self._nodes[idx].in_schema = True

            # an explicit parent relocates the existing node
            parent = frag.map.get(parent_uri) if parent_uri else None
            if parent is not None and idx != frag.root and not self._is_ancestor(idx, parent):
                self._detach(idx)
                self._attach(parent, idx)
        if already:
            return

        frag = _Fragment(root=-1)
        frag.root = self._copy_branch(branch, frag.map)
        if value.spec == Specify.ITEM:
            self._apply_item_details(frag.root, value)
        elif value.spec == Specify.CONTAINER:
            self._nodes[frag.root].in_schema = False

        if value.parent_uri is not None:
            frag.source_parent_uri = parent_uri
        elif branch.parent is not None:
            frag.source_parent_uri = self._remap(branch.parent)
        fragments.append(frag)

    def _include_new_item(self, value: Value, fragments: list[_Fragment]) -> None:
        parent_uri = self._remap(value.parent_uri) if value.parent_uri else None
        hosted = False
        if parent_uri is not None:
            for frag in fragments:
                parent = frag.map.get(parent_uri)
                if parent is None:
                    continue
                idx = self._node_from_value(value)
                self._attach(parent, idx)
                frag.map[self._nodes[idx].uri] = idx
                hosted = True
        if hosted:
            return

        # a fresh root, possibly to be grafted once its parent shows up
        idx = self._node_from_value(value)
        fragments.append(_Fragment(root=idx, map={self._nodes[idx].uri: idx}, source_parent_uri=parent_uri))

    def _augment_provisional(self, frag: _Fragment) -> None:
        """Hang provisional terms onto the fragment, repeating so that chains attach."""
        if self.provisional is None:
            return
        pending = self.provisional.get_all_terms()
        while pending:
            remaining = []
            for term in pending:
                parent = frag.map.get(self._remap(term.parent_uri))
                uri = self._remap(term.uri)
                if parent is None or uri in frag.map:
                    remaining.append(term)
                    continue
                idx = self._new_node(_Node(uri=uri, label=term.label, descr=term.description, is_provisional=True))
                self._attach(parent, idx)
                frag.map[uri] = idx
            if len(remaining) == len(pending):
                break
            pending = remaining

    def _exclude(self, value: Value, fragments: list[_Fragment]) -> None:
        uri = self._remap(value.uri)
        for frag in list(fragments):
            if self._nodes[frag.root].uri == uri:
                fragments.remove(frag)
                continue
            idx = frag.map.get(uri)
            if idx is None:
                continue
            self._detach(idx)
            for i in self._subtree(idx):
                frag.map.pop(self._nodes[i].uri, None)

    def _graft_contained(self, fragments: list[_Fragment]) -> None:
        """Graft every fragment whose source parent is already present inside another one."""
        n = 0
        while n < len(fragments):
            frag = fragments[n]
            host = None
            if frag.source_parent_uri is not None:
                host = next(
                    (f for f in fragments if f is not frag and frag.source_parent_uri in f.map),
                    None,
                )
            if host is not None:
                self._graft(host, host.map[frag.source_parent_uri], frag.root)
                del fragments[n]
            else:
                n += 1

    def _graft(self, frag: _Fragment, parent: int, idx: int) -> None:
        """Merge the subtree at idx into the fragment beneath parent, joining nodes by URI."""
        uri = self._nodes[idx].uri
        existing = frag.map.get(uri) if uri is not None else None
        if existing is None:
            self._detach(idx)
            self._attach(parent, idx)
            for i in self._subtree(idx):
                if self._nodes[i].uri is not None:
                    frag.map[self._nodes[i].uri] = i
            return

        self._nodes[existing].in_schema = self._nodes[existing].in_schema or self._nodes[idx].in_schema
        for child in list(self._nodes[idx].children):
            self._graft(frag, existing, child)

    def _trunk(self, uri: str | None) -> list[str | None]:
        """Baseline ancestors starting at uri, ending with a None sentinel."""
        trunk: list[str | None] = []
        branch = self.ontology.get_branch(uri)
        while branch is not None:
            trunk.append(self._remap(branch.uri))
            branch = self.ontology.get_parent(branch)
        trunk.append(None)
        return trunk

    def _extend_trunk(self, frag: _Fragment, trunk: list[str | None], best: int) -> None:
        """Add filler ancestors above the fragment root, up to trunk[best]."""
        for uri in trunk[: best + 1]:
            if uri is None and self._nodes[frag.root].uri is None:
                continue
            if uri is not None and uri in frag.map:
                continue
            branch = self.ontology.get_branch(uri)
            if branch is not None:
                parent = self._node_from_branch(branch)
            else:
                parent = self._new_node(_Node(uri=uri))
            self._nodes[parent].in_schema = False
            self._attach(parent, frag.root)
            if uri is not None:
                frag.map[uri] = parent
            frag.root = parent

    def _merge(self, tree1: _Fragment, tree2: _Fragment) -> _Fragment:
        """Join two disjoint fragments at their closest shared baseline ancestor.

        The alignment picks the trunk positions (i, j) with the smallest i + j;
        fragments with nothing in common end up side by side under a blank root.
        """
        trunk1 = self._trunk(tree1.source_parent_uri)
        trunk2 = self._trunk(tree2.source_parent_uri)

        best1 = best2 = len(trunk1) + len(trunk2)
        for i, uri1 in enumerate(trunk1):
            for j, uri2 in enumerate(trunk2):
                if uri1 == uri2 and i + j < best1 + best2:
                    best1, best2 = i, j

        if trunk1[best1] is None and trunk2[best2] is None:
            tree1.source_parent_uri = None
            tree2.source_parent_uri = None
            trunk1, trunk2 = [None], [None]
            best1 = best2 = 0

        self._extend_trunk(tree1, trunk1, best1)
        self._extend_trunk(tree2, trunk2, best2)

        root2 = self._nodes[tree2.root]
        if root2.uri is None:
            for child in list(root2.children):
                self._graft(tree1, tree1.root, child)
        else:
            self._graft(tree1, tree1.root, tree2.root)
        return tree1

    def _flatten(self, frag: _Fragment) -> list[SelectionNode]:
        """Pre-order flattening; a blank root is dropped and its children become top level."""
        root = self._nodes[frag.root]
        starts = root.children if root.uri is None else [frag.root]

        records: list[dict] = []
        stack: list[tuple[int, int]] = [(idx, -1) for idx in reversed(starts)]
        while stack:
            idx, parent_index = stack.pop()
            node = self._nodes[idx]
            record = {
                "uri": node.uri,
                "label": node.label,
                "descr": node.descr,
                "alt_labels": tuple(node.alt_labels) if node.alt_labels else None,
                "external_urls": tuple(node.external_urls) if node.external_urls else None,
                "parent_index": parent_index,
                "depth": 0,
                "child_count": 0,
                "schema_count": 0,
                "in_schema": node.in_schema,
                "is_provisional": node.is_provisional,
            }
            if parent_index >= 0:
                record["depth"] = records[parent_index]["depth"] + 1
                look = parent_index
                while look >= 0:
                    records[look]["child_count"] += 1
                    if node.in_schema:
                        records[look]["schema_count"] += 1
                    look = records[look]["parent_index"]
            own_index = len(records)
            records.append(record)
            stack.extend((child, own_index) for child in reversed(node.children))

        return [SelectionNode(**record) for record in records]
