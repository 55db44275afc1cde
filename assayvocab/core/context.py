"""Service context holding the shared vocabulary state.

One VocabContext bundles the baseline ontology, the provisional term cache, the
template registry and the axiom rules, and hands out the per-request machinery
(composed trees, dynamic templates, winnowing) built on top of them.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from ..types import Assay, SchemaBranch, SchemaDuplication
from .axioms import AxiomVocab, load_axiom_dir
from .composite import CompositeTree
from .dynamic import SchemaDynamic
from .ontology import OntologyTree
from .prefixes import expand_prefix
from .provisional import ProvisionalCache
from .template import Assignment, Schema, SchemaTree, key_prop_group
from .winnow import KeywordContent, WinnowAxioms, filter_uri

if TYPE_CHECKING:
    from ..config import VocabConfig

logger = logging.getLogger(__name__)


class VocabContext:
    """Shared ontology, provisional terms, templates and axioms."""

    def __init__(
        self,
        ontology: OntologyTree,
        provisional: ProvisionalCache | None = None,
        templates: Iterable[Schema] | None = None,
        default_template: str | None = None,
        axioms: AxiomVocab | None = None,
    ):
        self.ontology = ontology
        self.provisional = provisional if provisional is not None else ProvisionalCache()
        self.axioms = axioms if axioms is not None else AxiomVocab()
        self.default_template = expand_prefix(default_template)
        self._tree_cache: dict[str, SchemaTree] = {}
        self._cache_lock = threading.Lock()
        self.templates: dict[str, Schema] = {}
        for schema in templates or []:
            self.add_template(schema)

    @classmethod
    def from_config(cls, config: VocabConfig) -> VocabContext:
        """Load everything named by a configuration."""
        from ..data_loader import load_templates, provisional_source

        if config.ontology_path is None:
            raise ValueError("An ontology snapshot path is required")
        ontology = OntologyTree.load(config.ontology_path)

        provisional = ProvisionalCache()
        if config.provisional_path is not None:
            provisional = ProvisionalCache.loaded(provisional_source(config.provisional_path))

        templates = load_templates(config.templates_dir) if config.templates_dir is not None else []
        axioms = load_axiom_dir(config.axioms_dir) if config.axioms_dir is not None else None

        return cls(
            ontology,
            provisional=provisional,
            templates=templates,
            default_template=config.default_template,
            axioms=axioms,
        )

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def add_template(self, schema: Schema) -> None:
        if not schema.schema_prefix:
            raise ValueError("Template must have a schemaPrefix to be registered")
        self.templates[schema.schema_prefix] = schema
        self.clear_tree_cache()

    def resolve_schema(self, schema_uri: str | None) -> Schema | None:
        """Look up a template; None selects the default template."""
        if schema_uri is None:
            schema_uri = self.default_template
        if schema_uri is None:
            return None
        return self.templates.get(schema_uri)

    def dynamic_schema(
        self,
        schema_uri: str | None,
        branches: Sequence[SchemaBranch] | None = None,
        duplications: Sequence[SchemaDuplication] | None = None,
    ) -> SchemaDynamic | None:
        """Compose the per-assay template; None if the base template is unknown."""
        schema = self.resolve_schema(schema_uri)
        if schema is None:
            logger.debug(f"Template not found: {schema_uri}")
            return None
        return SchemaDynamic(schema, branches, duplications, resolver=self.resolve_schema)

    # ------------------------------------------------------------------
    # Trees
    # ------------------------------------------------------------------

    def obtain_tree_for(self, assignment: Assignment) -> SchemaTree:
        return CompositeTree(self.ontology, assignment, self.provisional).compose()

    def obtain_tree(self, schema: Schema, prop_uri: str, group_nest: Sequence[str] | None = None) -> SchemaTree | None:
        """The composed tree for an assignment of a template, or None if there is no such assignment.

        Trees for registered templates are cached until the provisional terms are refreshed.
        """
        assignments = schema.find_assignment_by_property(prop_uri, list(group_nest or []))
        if not assignments:
            return None

        registered = schema.schema_prefix is not None and self.templates.get(schema.schema_prefix) is schema
        if not registered:
            return self.obtain_tree_for(assignments[0])

        key = f"{schema.schema_prefix}::{key_prop_group(prop_uri, group_nest)}"
        with self._cache_lock:
            tree = self._tree_cache.get(key)
        if tree is None:
            tree = self.obtain_tree_for(assignments[0])
            with self._cache_lock:
                self._tree_cache[key] = tree
        return tree

    def clear_tree_cache(self) -> None:
        with self._cache_lock:
            self._tree_cache = {}

    def refresh_provisional(self) -> None:
        """Reload the provisional terms; composed trees are invalidated."""
        self.provisional.update()
        self.clear_tree_cache()

    # ------------------------------------------------------------------
    # Axioms
    # ------------------------------------------------------------------

    def set_axioms(self, axioms: AxiomVocab) -> None:
        self.axioms = axioms

    def reload_axioms(self, directory: Path) -> None:
        self.axioms = load_axiom_dir(directory)

    def winnow(self) -> WinnowAxioms:
        return WinnowAxioms(self.axioms, self.obtain_tree)

    def legal_values(self, assay: Assay, prop_uri: str, group_nest: Sequence[str] | None = None) -> set[str] | None:
        """Winnow one assignment of an assay given all of its other annotations.

        Returns:
            Allowed value URIs, or None when the axioms have no opinion (or the
            assignment cannot be resolved)
        """
        graft = self.dynamic_schema(assay.schema_uri, assay.branches, assay.duplications)
        if graft is None:
            return None
        subt = graft.relative_assignment(prop_uri, group_nest)
        if subt is None:
            return None
        tree = self.obtain_tree(subt.schema, prop_uri, subt.group_nest)
        if tree is None:
            return None

        winnow = self.winnow()
        subjects = []
        for annot in assay.annotations:
            subject = winnow.annotation_to_subject(graft, annot)
            if subject is not None:
                subjects.append(subject)
        keywords = [KeywordContent(label.text, label.prop_uri) for label in assay.text_labels if label.text]
        if assay.text:
            keywords.append(KeywordContent(assay.text, None))
        return filter_uri(winnow.winnow_branch(subjects, keywords, tree))

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> VocabContext:
        """A context pinned to the current provisional terms and axioms."""
        snap = VocabContext(
            self.ontology,
            provisional=self.provisional.snapshot(),
            default_template=self.default_template,
            axioms=AxiomVocab(self.axioms.get_rules()),
        )
        snap.templates = dict(self.templates)
        return snap
