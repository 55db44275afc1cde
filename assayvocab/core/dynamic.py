"""Dynamic templates: a base template with branch grafts and group duplications applied."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..types import SchemaBranch, SchemaDuplication
from .template import Group, Schema, key_prop_group, same_group_nest

logger = logging.getLogger(__name__)

SchemaResolver = Callable[[str], "Schema | None"]


@dataclass
class SubTemplate:
    """The independent template that owns an assignment, and the assignment's nest within it."""

    schema: Schema
    group_nest: list[str]


class SchemaDynamic:
    """Composes the per-assay template from a base template plus its directives.

    With no directives the base template is returned as-is (not cloned) and the
    result is not composite. Otherwise the base is cloned once, duplications are
    applied to a fixed point, then each branch is grafted (re-running duplication
    after every successful graft, since grafted material may need duplicating).
    """

    def __init__(
        self,
        schema: Schema,
        branches: Sequence[SchemaBranch] | None = None,
        duplications: Sequence[SchemaDuplication] | None = None,
        resolver: SchemaResolver | None = None,
    ):
        self._input_schema = schema
        self._branches = list(branches or [])
        self._duplications = list(duplications or [])
        self._resolver = resolver
        self._schema = schema
        self._modified = False
        self._origins: dict[str, SchemaBranch] = {}  # provenance tag -> branch directive
        self._branched: dict[str, SchemaBranch] = {}  # assignment key -> branch directive
        self._roster: list[SchemaDuplication] = []  # duplications yet to be applied

        if not self._branches and not self._duplications:
            return
        self._schema = schema.clone()

        self._prepare_duplication()
        self._apply_duplication()
        self._perform_grafting()
        self._post_process()

    @staticmethod
    def composite_schema(
        schema: Schema,
        branches: Sequence[SchemaBranch] | None = None,
        duplications: Sequence[SchemaDuplication] | None = None,
        resolver: SchemaResolver | None = None,
    ) -> Schema:
        """Shortcut for SchemaDynamic(...).get_result()."""
        return SchemaDynamic(schema, branches, duplications, resolver).get_result()

    def get_input_schema(self) -> Schema:
        return self._input_schema

    def get_input_branches(self) -> list[SchemaBranch]:
        return self._branches

    def get_input_duplications(self) -> list[SchemaDuplication]:
        return self._duplications

    def is_composite(self) -> bool:
        """True if at least one graft or duplication was actually applied."""
        return self._modified

    def get_result(self) -> Schema:
        return self._schema

    def relative_assignment(self, prop_uri: str, group_nest: Sequence[str] | None) -> SubTemplate | None:
        """Find which independent template owns the assignment at this position.

        Grafted assignments are reported against their branch template, with the
        nest trimmed to its position inside that template and duplication suffixes
        stripped. Everything else belongs to the composed template itself.

        Returns:
            SubTemplate, or None if no such assignment exists
        """
        nest = list(group_nest or [])
        if not self._schema.find_assignment_by_property(prop_uri, nest):
            return None

        branch = self._branched.get(key_prop_group(prop_uri, nest))
        if branch is None:
            return SubTemplate(self._schema, nest)

        branch_schema = self._resolve(branch.schema_uri)
        if branch_schema is None:
            return None
        trimmed = nest[: len(nest) - len(branch.group_nest or [])]
        return SubTemplate(branch_schema, [g.split("@", 1)[0] for g in trimmed])

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def _resolve(self, schema_uri: str) -> Schema | None:
        return self._resolver(schema_uri) if self._resolver is not None else None

    def _prepare_duplication(self) -> None:
        for dupl in self._duplications:
            if dupl.multiplicity <= 1:
                continue
            self._roster.append(SchemaDuplication(dupl.multiplicity, list(dupl.group_nest or [])))

    def _apply_duplication(self) -> None:
        while self._roster:
            progressed = False
            for dupl in list(self._roster):
                if self._effect_duplication(dupl):
                    self._roster.remove(dupl)
                    progressed = True
                    self._modified = True
            if not progressed:
                break
        if self._roster:
            logger.debug(f"{len(self._roster)} duplication directives did not match any group (yet)")

    def _effect_duplication(self, dupl: SchemaDuplication) -> bool:
        """Apply one duplication directive if its group exists; the first match wins."""
        for group in self._schema.root.flattened_groups():
            if group.parent is None or not same_group_nest(dupl.group_nest, group.nest_including_self()):
                continue

            siblings = group.parent.sub_groups
            idx = next(n for n, g in enumerate(siblings) if g is group)
            base_uri = group.group_uri
            for n in range(2, dupl.multiplicity + 1):
                extra = group.clone(group.parent)
                extra.group_uri = f"{base_uri}@{n}"
                idx += 1
                siblings.insert(idx, extra)
            group.group_uri = f"{base_uri}@1"
            return True
        return False

    def _perform_grafting(self) -> None:
        for n, branch in enumerate(self._branches):
            branch_schema = self._resolve(branch.schema_uri)
            if branch_schema is None:
                logger.debug(f"Branch template not found, skipping graft: {branch.schema_uri}")
                continue
            origin = f"{n}:{branch.schema_uri}"
            if self._graft_schema(branch_schema, branch, origin):
                self._origins[origin] = branch
                self._apply_duplication()
                self._modified = True

    def _graft_schema(self, sub_schema: Schema, branch: SchemaBranch, origin: str) -> bool:
        parent = self._schema.find_group_by_nest(branch.group_nest)
        if parent is None:
            logger.debug(f"No group at {branch.group_nest} for graft of {branch.schema_uri}")
            return False

        for assn in sub_schema.root.assignments:
            child = assn.clone(parent)
            child.origin = origin
            parent.assignments.append(child)

        grafted: list[Group] = []
        for group in sub_schema.root.sub_groups:
            child_group = group.clone(parent)
            parent.sub_groups.append(child_group)
            grafted.append(child_group)
        for group in grafted:
            for assn in group.flattened_assignments():
                assn.origin = origin
        return True

    def _post_process(self) -> None:
        """Key the provenance tags by assignment position, now that positions are final."""
        for assn in self._schema.root.flattened_assignments():
            branch = self._origins.get(assn.origin) if assn.origin is not None else None
            if branch is not None:
                self._branched[key_prop_group(assn.prop_uri, assn.group_nest())] = branch
