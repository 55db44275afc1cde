"""Ontology tree composition and axiom-based constraint propagation for assay annotation."""

# core first: it imports .types, which in turn only needs core.prefixes
from .core import (
    AxiomVocab,
    CompositeTree,
    OntologyTree,
    ProvisionalCache,
    Schema,
    SchemaDynamic,
    SchemaTree,
    VocabContext,
    WinnowAxioms,
)
from .errors import (
    AxiomFormatError,
    OntologyFormatError,
    RemapCycleError,
    TemplateFormatError,
    VocabError,
)
from .types import Annotation, Assay, SchemaBranch, SchemaDuplication, TextLabel

__version__ = "0.1.0"

__all__ = [
    # Core
    "OntologyTree",
    "ProvisionalCache",
    "Schema",
    "SchemaDynamic",
    "SchemaTree",
    "CompositeTree",
    "AxiomVocab",
    "WinnowAxioms",
    "VocabContext",
    # Records
    "Annotation",
    "Assay",
    "SchemaBranch",
    "SchemaDuplication",
    "TextLabel",
    # Errors
    "VocabError",
    "OntologyFormatError",
    "RemapCycleError",
    "AxiomFormatError",
    "TemplateFormatError",
]
