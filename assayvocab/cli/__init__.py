"""CLI package for assayvocab.

Usage:
    # As a module
    python -m assayvocab.cli --ontology vocab.bin.gz --templates templates/ tree --prop bao:BAO_0002854

    # Import functions
    from assayvocab.cli import main, create_parser
"""

from .args import create_parser
from .main import build_ontology, check_axioms, main

__all__ = [
    # Entry point
    "main",
    # Argument parsing
    "create_parser",
    # Commands
    "build_ontology",
    "check_axioms",
]
