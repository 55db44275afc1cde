"""Vocabulary composition and axiom evaluation.

Leaf-first: the baseline ontology, the provisional overlay, dynamic templates,
per-assignment tree composition, axiom rules, and winnowing.
"""

from .axioms import (
    AxiomKeyword,
    AxiomRule,
    AxiomTerm,
    AxiomType,
    AxiomVocab,
    load_axiom_dir,
    merge_axiom_files,
)
from .composite import CompositeTree
from .context import VocabContext
from .dynamic import SchemaDynamic, SubTemplate
from .ontology import OntologyBranch, OntologyTerm, OntologyTree, parse_obo_file
from .prefixes import URI_ABSENCE, URI_NOTAPPLICABLE, collapse_prefix, expand_prefix
from .provisional import ProvisionalCache, ProvisionalRole, ProvisionalTerm
from .template import (
    Assignment,
    Group,
    Schema,
    SchemaTree,
    SelectionNode,
    Specify,
    Value,
    key_prop_group,
    same_group_nest,
    same_prop_group_nest,
    strip_index,
)
from .winnow import (
    KeywordContent,
    SubjectContent,
    WinnowAxioms,
    WinnowResult,
    filter_literal,
    filter_uri,
)

__all__ = [
    # Ontology
    "OntologyTerm",
    "OntologyBranch",
    "OntologyTree",
    "parse_obo_file",
    # Prefixes
    "expand_prefix",
    "collapse_prefix",
    "URI_ABSENCE",
    "URI_NOTAPPLICABLE",
    # Provisional terms
    "ProvisionalCache",
    "ProvisionalRole",
    "ProvisionalTerm",
    # Templates
    "Specify",
    "Value",
    "Assignment",
    "Group",
    "Schema",
    "SchemaTree",
    "SelectionNode",
    "key_prop_group",
    "same_group_nest",
    "same_prop_group_nest",
    "strip_index",
    # Composition
    "SchemaDynamic",
    "SubTemplate",
    "CompositeTree",
    # Axioms
    "AxiomType",
    "AxiomTerm",
    "AxiomKeyword",
    "AxiomRule",
    "AxiomVocab",
    "merge_axiom_files",
    "load_axiom_dir",
    # Winnowing
    "SubjectContent",
    "KeywordContent",
    "WinnowResult",
    "WinnowAxioms",
    "filter_uri",
    "filter_literal",
    # Context
    "VocabContext",
]
