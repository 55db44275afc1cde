"""Argument parser for the assayvocab CLI."""

from __future__ import annotations

import argparse
from pathlib import Path


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="assayvocab",
        description="Compose assay annotation trees and evaluate axiom rules",
    )

    # Data locations (fall back to ASSAYVOCAB_* environment variables)
    parser.add_argument(
        "--ontology",
        type=Path,
        help="Ontology snapshot file (.bin or .bin.gz)",
    )
    parser.add_argument(
        "--templates",
        type=Path,
        help="Directory of template JSON files",
    )
    parser.add_argument(
        "--default-template",
        help="Template URI to use when an assay does not name one",
    )
    parser.add_argument(
        "--axioms",
        type=Path,
        help="Directory of axiom rule JSON files",
    )
    parser.add_argument(
        "--provisional",
        type=Path,
        help="Provisional terms file (JSON array or JSONL)",
    )

    # Logging
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show detailed logging output",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write (verbose) logs to this file",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build-ontology", help="Compile OBO files into an ontology snapshot")
    build.add_argument("obo_files", type=Path, nargs="+", help="OBO files to include")
    build.add_argument("--output", "-o", type=Path, required=True, help="Snapshot file to write")

    tree = commands.add_parser("tree", help="Print the composed selection tree of an assignment")
    tree.add_argument("--template", help="Template URI (default: the default template)")
    tree.add_argument("--prop", required=True, help="Property URI of the assignment")
    tree.add_argument(
        "--group",
        action="append",
        default=[],
        help="Group URI, innermost first (repeatable)",
    )
    tree.add_argument("--json", action="store_true", help="Print the flattened nodes as JSON")

    winnow = commands.add_parser("winnow", help="Print the legal values of an assignment for an assay")
    winnow.add_argument("--assay", type=Path, required=True, help="Assay JSON/JSONL file")
    winnow.add_argument("--assay-id", help="Pick one assay from the file (default: the first)")
    winnow.add_argument("--prop", required=True, help="Property URI of the assignment")
    winnow.add_argument(
        "--group",
        action="append",
        default=[],
        help="Group URI, innermost first (repeatable)",
    )

    check = commands.add_parser("check-axioms", help="Report annotations that contradict the axioms")
    check.add_argument("--assays", type=Path, required=True, help="Assay JSONL file")
    check.add_argument("--output", "-o", type=Path, help="Write the report JSON here instead of stdout")

    axioms = commands.add_parser("axioms", help="Show the merged axiom rules")
    axioms.add_argument("--dump", action="store_true", help="Print the rules as JSON rather than one per line")
    axioms.add_argument("--labels", action="store_true", help="Annotate URIs with ontology labels")

    return parser
