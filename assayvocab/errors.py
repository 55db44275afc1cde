"""Exception hierarchy for vocabulary composition and axiom evaluation."""

from __future__ import annotations

from typing import Any


class VocabError(Exception):
    """Base class for all errors raised by assayvocab."""

    pass


class OntologyFormatError(VocabError):
    """Raised when an ontology snapshot cannot be decoded."""

    pass


class TemplateFormatError(VocabError):
    """Raised when a template document is structurally invalid."""

    pass


class RemapCycleError(VocabError):
    """Raised when a chain of provisional remappings revisits a URI."""

    def __init__(self, path: list[str]):
        self.path = path
        super().__init__("Provisional remapping cycle: " + " -> ".join(path))


class AxiomFormatError(VocabError):
    """Raised when an axiom rule record is malformed.

    The offending JSON record is attached as ``record``.
    """

    def __init__(self, message: str, record: Any = None):
        self.record = record
        if record is not None:
            message = f"{message} for rule: {record}"
        super().__init__(message)
