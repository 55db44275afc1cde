"""Constraint propagation: narrow an assignment's legal values using triggered axioms.

Given the values already chosen elsewhere on an assay (subjects) and its free
text (keywords), every rule whose conditions hold contributes its impact to one
of three pools: whitelist (LIMIT), exclusive whitelist (LIMIT, exclusive) or
blacklist (EXCLUDE). The legal values of the impacted tree are then:

- never a blacklisted value;
- if any exclusive rule fired, only values common to the impacts of all of them;
- otherwise anything, if no plain LIMIT rule fired, or else members of the whitelist.

The NotApplicable placeholder is an implicit member of every tree, and only an
EXCLUDE rule can take it away. When no rule fires at all the answer is None
("no opinion"), which is different from an empty set ("nothing is legal").
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from ..types import Annotation
from .axioms import AxiomRule, AxiomTerm, AxiomType, AxiomVocab
from .dynamic import SchemaDynamic
from .prefixes import URI_ABSENCE, URI_NOTAPPLICABLE
from .template import Assignment, Schema, SchemaTree, key_prop_group, same_group_nest, same_prop_group_nest

logger = logging.getLogger(__name__)

TreeProvider = Callable[[Schema, str, "Sequence[str] | None"], "SchemaTree | None"]

# branches whose values never trigger anything
SPECIAL_EXCLUSIONS = frozenset({URI_ABSENCE})


@dataclass
class SubjectContent:
    """A chosen value, and the selection tree of the assignment it was chosen for."""

    uri: str
    tree: SchemaTree


@dataclass
class KeywordContent:
    """A literal belonging to an assignment, or the main assay text when prop_uri is None."""

    text: str
    prop_uri: str | None = None
    substrate: str = field(init=False, repr=False)

    def __post_init__(self):
        self.substrate = " " + " ".join(self.text.split()) + " "

    def matches(self, text: str, prop_uri: str | None) -> bool:
        """Whole-word phrase match within the same property."""
        if prop_uri != self.prop_uri:
            return False
        return f" {text} " in self.substrate


@dataclass(frozen=True)
class WinnowResult:
    """Outcome of winnowing: exactly one of uri or literal is set."""

    uri: str | None = None
    literal: str | None = None


@dataclass
class _Process:
    subject_trees: list[SchemaTree] = field(default_factory=list)
    subject_lineages: list[list[str]] = field(default_factory=list)  # [uri, parent, ..., root]
    keywords: list[KeywordContent] = field(default_factory=list)
    impact_tree: SchemaTree | None = None
    impact_values: set[str] = field(default_factory=set)


def filter_uri(results: set[WinnowResult] | None) -> set[str] | None:
    if results is None:
        return None
    return {r.uri for r in results if r.uri is not None}


def filter_literal(results: set[WinnowResult] | None) -> set[str] | None:
    if results is None:
        return None
    return {r.literal for r in results if r.literal is not None}


def _term_fits(term: AxiomTerm, assignment: Assignment | None) -> bool:
    """Check a term's optional property/group constraint against an assignment."""
    if term.prop_uri is None:
        return True
    if assignment is None or term.prop_uri != assignment.prop_uri:
        return False
    return term.group_nest is None or same_group_nest(term.group_nest, assignment.group_nest())


def _term_matches_lineage(term: AxiomTerm, lineage: list[str]) -> bool:
    if term.whole_branch:
        return term.value_uri in lineage
    return lineage[0] == term.value_uri


class WinnowAxioms:
    """Applies a set of axioms to partially annotated assays."""

    def __init__(self, axioms: AxiomVocab, obtain_tree: TreeProvider | None = None):
        self.axioms = axioms
        self.obtain_tree = obtain_tree

    # ------------------------------------------------------------------
    # Core evaluation
    # ------------------------------------------------------------------

    def winnow_branch(
        self,
        subjects: Sequence[SubjectContent],
        keywords: Sequence[KeywordContent] | None,
        impact_tree: SchemaTree,
    ) -> set[WinnowResult] | None:
        """Compute the legal values of impact_tree.

        Returns:
            Set of allowed URIs as results, or None if no rule had anything to say.
            An empty set means every value has been ruled out.
        """
        proc = self._setup(subjects, keywords, impact_tree)

        whitelist: set[str] = set()
        whiteexcl: set[str] | None = None  # intersection over exclusive rules
        blacklist: set[str] = set()
        triggered = False
        for rule in self.axioms.get_rules():
            if not self._is_triggered(proc, rule):
                continue
            triggered = True
            impact = self._assemble_impact(proc, rule)
            if rule.type == AxiomType.LIMIT and rule.exclusive:
                whiteexcl = impact if whiteexcl is None else whiteexcl & impact
            elif rule.type == AxiomType.LIMIT:
                whitelist.update(impact)
            elif rule.type == AxiomType.EXCLUDE:
                blacklist.update(impact)

        if not triggered:
            return None

        allowed = set()
        for uri in proc.impact_values:
            if uri in blacklist:
                continue
            if uri == URI_NOTAPPLICABLE:
                allowed.add(uri)
            elif whiteexcl is not None:
                if uri in whiteexcl:
                    allowed.add(uri)
            elif not whitelist or uri in whitelist:
                allowed.add(uri)
        logger.debug(f"Winnowed {len(proc.impact_values)} values down to {len(allowed)}")
        return {WinnowResult(uri=uri) for uri in allowed}

    def implied_literals(
        self,
        subjects: Sequence[SubjectContent],
        keywords: Sequence[KeywordContent] | None,
        assignment: Assignment,
    ) -> set[WinnowResult] | None:
        """Literal values that triggered rules imply for a text assignment; None if nothing."""
        proc = self._setup(subjects, keywords, None)
        results: set[WinnowResult] | None = None
        for rule in self.axioms.get_rules():
            literals = [
                term.value_label
                for term in rule.impact
                if term.value_uri is None and term.value_label is not None and term.prop_uri == assignment.prop_uri
            ]
            if not literals or not self._is_triggered(proc, rule):
                continue
            if results is None:
                results = set()
            results.update(WinnowResult(literal=text) for text in literals)
        return results

    def branch_triggers(
        self,
        subjects: Sequence[SubjectContent],
        keywords: Sequence[KeywordContent] | None,
        impact_tree: SchemaTree,
    ) -> list[AxiomRule]:
        """The rules that fire with respect to a tree (useful to explain a winnowing)."""
        proc = self._setup(subjects, keywords, impact_tree)
        return [rule for rule in self.axioms.get_rules() if self._is_triggered(proc, rule)]

    # ------------------------------------------------------------------
    # Assay-level operations
    # ------------------------------------------------------------------

    def violating_axioms(
        self,
        graft: SchemaDynamic,
        annotations: Sequence[Annotation],
        obtain_tree: TreeProvider | None = None,
        keywords: Sequence[KeywordContent] | None = None,
    ) -> list[Annotation]:
        """Report the annotations that contradict the axioms, given all the others."""
        obtain_tree = obtain_tree or self.obtain_tree
        schema = graft.get_result()

        groups: dict[str, tuple[Annotation, SchemaTree, list[SubjectContent]]] = {}
        for annot in annotations:
            if annot.value_uri is None:
                continue
            key = key_prop_group(annot.prop_uri, annot.group_nest)
            if key not in groups:
                if not schema.find_assignment_by_property(annot.prop_uri, annot.group_nest or []):
                    continue  # orphaned
                tree = self._relative_tree(graft, annot.prop_uri, annot.group_nest, obtain_tree)
                if tree is None:
                    continue
                groups[key] = (annot, tree, [])
            groups[key][2].append(SubjectContent(annot.value_uri, groups[key][1]))

        subjects = [subj for _, _, subjs in groups.values() for subj in subjs]

        violations = []
        for first, tree, subjs in groups.values():
            applicable = filter_uri(self.winnow_branch(subjects, keywords, tree))
            if applicable is None:
                continue
            for subj in subjs:
                if subj.uri not in applicable:
                    violations.append(Annotation(first.prop_uri, subj.uri, first.group_nest))
        if violations:
            logger.debug(f"Found {len(violations)} annotations in violation of axioms")
        return violations

    def find_justification_triggers(
        self,
        graft: SchemaDynamic,
        annotations: Sequence[Annotation],
        target: Annotation,
        obtain_tree: TreeProvider | None = None,
    ) -> list[str] | None:
        """Which of the annotations caused rules bearing on the target's assignment to fire.

        Returns:
            Triggering value URIs (empty if there are no usable subjects), or None if the
            target's assignment cannot be resolved
        """
        obtain_tree = obtain_tree or self.obtain_tree
        subjects = self._subjects_for(graft, annotations, obtain_tree)
        if not subjects:
            return []

        subt = graft.relative_assignment(target.prop_uri, target.group_nest)
        if subt is None:
            return None
        target_tree = obtain_tree(subt.schema, target.prop_uri, subt.group_nest) if obtain_tree else None
        if target_tree is None:
            return None

        proc = self._setup(subjects, None, target_tree)
        triggers: set[str] = set()
        for rule in self.axioms.get_rules():
            if rule.subject is not None and self._is_triggered(proc, rule):
                triggers.update(self._subject_matches(proc, rule))
        return sorted(triggers)

    def find_literal_triggers(
        self,
        graft: SchemaDynamic,
        annotations: Sequence[Annotation],
        assignment: Assignment,
        literal: str,
        obtain_tree: TreeProvider | None = None,
    ) -> list[str] | None:
        """Which of the annotations caused a given literal to be implied for an assignment."""
        obtain_tree = obtain_tree or self.obtain_tree
        subjects = self._subjects_for(graft, annotations, obtain_tree)
        if not subjects:
            return []
        if graft.relative_assignment(assignment.prop_uri, assignment.group_nest()) is None:
            return None

        proc = self._setup(subjects, None, None)
        triggers: set[str] = set()
        for rule in self.axioms.get_rules():
            if rule.subject is None:
                continue
            implies = any(
                term.value_uri is None and term.prop_uri == assignment.prop_uri and term.value_label == literal
                for term in rule.impact
            )
            if implies and self._is_triggered(proc, rule):
                triggers.update(self._subject_matches(proc, rule))
        return sorted(triggers)

    def find_violation_triggers(
        self,
        graft: SchemaDynamic,
        annotations: Sequence[Annotation],
        target: Annotation,
        obtain_tree: TreeProvider | None = None,
    ) -> list[str]:
        """Which of the other annotations are responsible for the target being disallowed."""
        obtain_tree = obtain_tree or self.obtain_tree
        subjects: list[SubjectContent] = []
        target_tree = None
        for annot in annotations:
            subj = self.annotation_to_subject(graft, annot, obtain_tree)
            if subj is None:
                continue
            if annot.value_uri == target.value_uri and same_prop_group_nest(
                annot.prop_uri, annot.group_nest, target.prop_uri, target.group_nest
            ):
                target_tree = subj.tree
            else:
                subjects.append(subj)
        if not subjects or target_tree is None:
            return []

        proc = self._setup(subjects, None, target_tree)
        triggers: set[str] = set()
        for rule in self.axioms.get_rules():
            triggers.update(self._which_triggered_exclude(proc, rule, target.value_uri) or [])
        return sorted(triggers)

    def annotation_to_subject(
        self, graft: SchemaDynamic, annotation: Annotation, obtain_tree: TreeProvider | None = None
    ) -> SubjectContent | None:
        """Pair an annotation with its assignment's tree; None if orphaned or treeless."""
        obtain_tree = obtain_tree or self.obtain_tree
        if annotation.value_uri is None:
            return None
        if not graft.get_result().find_assignment_by_property(annotation.prop_uri, annotation.group_nest or []):
            return None
        tree = self._relative_tree(graft, annotation.prop_uri, annotation.group_nest, obtain_tree)
        if tree is None:
            return None
        return SubjectContent(annotation.value_uri, tree)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _relative_tree(
        graft: SchemaDynamic, prop_uri: str, group_nest: Sequence[str] | None, obtain_tree: TreeProvider | None
    ) -> SchemaTree | None:
        if obtain_tree is None:
            return None
        subt = graft.relative_assignment(prop_uri, group_nest)
        if subt is None:
            return None
        return obtain_tree(subt.schema, prop_uri, subt.group_nest)

    def _subjects_for(
        self, graft: SchemaDynamic, annotations: Sequence[Annotation], obtain_tree: TreeProvider | None
    ) -> list[SubjectContent]:
        subjects = []
        for annot in annotations:
            subj = self.annotation_to_subject(graft, annot, obtain_tree)
            if subj is not None:
                subjects.append(subj)
        return subjects

    @staticmethod
    def _setup(
        subjects: Sequence[SubjectContent],
        keywords: Sequence[KeywordContent] | None,
        impact_tree: SchemaTree | None,
    ) -> _Process:
        proc = _Process(impact_tree=impact_tree, keywords=list(keywords or []))
        for subject in subjects:
            lineage = subject.tree.get_lineage(subject.uri)
            if not lineage or any(uri in SPECIAL_EXCLUSIONS for uri in lineage):
                continue
            proc.subject_trees.append(subject.tree)
            proc.subject_lineages.append(lineage)

        if impact_tree is not None:
            proc.impact_values.update(node.uri for node in impact_tree.get_flat())
        proc.impact_values.add(URI_NOTAPPLICABLE)
        return proc

    @staticmethod
    def _is_impacted(proc: _Process, rule: AxiomRule) -> bool:
        """Cheap pre-filter: could the rule affect anything in the impact tree?"""
        assignment = proc.impact_tree.get_assignment() if proc.impact_tree is not None else None
        return any(
            term.value_uri in proc.impact_values and _term_fits(term, assignment) for term in rule.impact
        )

    def _is_triggered(self, proc: _Process, rule: AxiomRule) -> bool:
        if proc.impact_tree is not None and not self._is_impacted(proc, rule):
            return False

        if rule.subject is not None:
            for term in rule.subject:
                matched = any(
                    _term_fits(term, tree.get_assignment()) and _term_matches_lineage(term, lineage)
                    for tree, lineage in zip(proc.subject_trees, proc.subject_lineages)
                )
                if not matched:
                    return False
            return True
        if rule.keyword is not None:
            return any(kc.matches(rule.keyword.text, rule.keyword.prop_uri) for kc in proc.keywords)
        return False

    @staticmethod
    def _subject_matches(proc: _Process, rule: AxiomRule) -> list[str]:
        """The subject values that satisfy any term of the rule's subject."""
        uris = []
        for term in rule.subject or []:
            for tree, lineage in zip(proc.subject_trees, proc.subject_lineages):
                if _term_fits(term, tree.get_assignment()) and _term_matches_lineage(term, lineage):
                    uris.append(lineage[0])
        return uris

    def _which_triggered_exclude(self, proc: _Process, rule: AxiomRule, target_uri: str | None) -> list[str] | None:
        """Subject values through which the rule keeps target_uri out; None if it does not."""
        if rule.subject is None or not self._is_impacted(proc, rule):
            return None
        uris = self._subject_matches(proc, rule)
        if not uris:
            return None

        impact = self._assemble_impact(proc, rule)
        if rule.type == AxiomType.LIMIT:
            return None if target_uri in impact else uris
        if rule.type == AxiomType.EXCLUDE:
            return uris if target_uri in impact else None
        return None

    @staticmethod
    def _assemble_impact(proc: _Process, rule: AxiomRule) -> set[str]:
        """Union of the rule's impact values, with whole-branch terms expanded over the tree."""
        assignment = proc.impact_tree.get_assignment() if proc.impact_tree is not None else None
        values: set[str] = set()
        for term in rule.impact:
            if term.value_uri is None or not _term_fits(term, assignment):
                continue
            if term.whole_branch and proc.impact_tree is not None and term.value_uri in proc.impact_tree:
                values.update(proc.impact_tree.get_branch_uris(term.value_uri))
            else:
                values.add(term.value_uri)
        return values
