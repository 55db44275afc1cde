"""Main entry point for the assayvocab CLI."""

from __future__ import annotations

import json
import logging
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv(override=True)

from tqdm import tqdm  # noqa: E402

from ..config import VocabConfig  # noqa: E402
from ..core.axioms import AxiomVocab, load_axiom_dir  # noqa: E402
from ..core.context import VocabContext  # noqa: E402
from ..core.ontology import OntologyTree, parse_obo_file  # noqa: E402
from ..core.prefixes import collapse_prefix, expand_prefix, expand_prefixes  # noqa: E402
from ..data_loader import iter_assays, load_assays  # noqa: E402
from ..errors import VocabError  # noqa: E402
from ..tracing import setup_logging  # noqa: E402
from .args import create_parser  # noqa: E402

logger = logging.getLogger(__name__)


def build_ontology(obo_files: list[Path], output: Path) -> OntologyTree:
    """Parse OBO files and write the compiled snapshot."""
    terms = []
    for path in tqdm(obo_files, desc="Parsing ontologies", unit="file"):
        terms.extend(parse_obo_file(path))
    tree = OntologyTree.from_terms(terms)
    tree.save(output)
    print(f"Wrote {tree.count_uri()} terms to {output}")
    return tree


def print_tree(
    context: VocabContext, template: str | None, prop_uri: str, group_nest: list[str], as_json: bool
) -> bool:
    schema = context.resolve_schema(template)
    if schema is None:
        print(f"Template not found: {template or '(default)'}", file=sys.stderr)
        return False
    tree = context.obtain_tree(schema, prop_uri, group_nest)
    if tree is None:
        print(f"No assignment for {prop_uri} {group_nest}", file=sys.stderr)
        return False

    if as_json:
        print(json.dumps([node.to_dict() for node in tree.get_flat()], indent=2))
        return True
    for node in tree.get_flat():
        flags = ""
        if not node.in_schema:
            flags += " (container)"
        if node.is_provisional:
            flags += " (provisional)"
        print(f"{'  ' * node.depth}{node.label} <{collapse_prefix(node.uri)}>{flags}")
    return True


def print_winnow(
    context: VocabContext, assay_path: Path, assay_id: str | None, prop_uri: str, group_nest: list[str]
) -> bool:
    assays = load_assays(assay_path, assay_id)
    if not assays:
        print(f"No assays in {assay_path}", file=sys.stderr)
        return False
    legal = context.legal_values(assays[0], prop_uri, group_nest)
    if legal is None:
        print("No opinion: no axioms apply")
        return True
    for uri in sorted(legal):
        label = context.ontology.get_label(uri)
        print(f"{collapse_prefix(uri)}\t{label or ''}")
    return True


def check_axioms(context: VocabContext, assays_path: Path, output: Path | None) -> int:
    """Report violating annotations for every assay; returns the number of violations."""
    winnow = context.winnow()
    report = []
    total = 0

    pbar = tqdm(list(iter_assays(assays_path)), desc="Checking assays", unit="assay")
    for assay in pbar:
        pbar.set_postfix_str(f"{assay.assay_id}")
        graft = context.dynamic_schema(assay.schema_uri, assay.branches, assay.duplications)
        if graft is None:
            logger.warning(f"Assay {assay.assay_id}: template not found ({assay.schema_uri})")
            continue
        violations = winnow.violating_axioms(graft, assay.annotations)
        if not violations:
            continue
        total += len(violations)
        entries = []
        for annot in violations:
            entry = annot.to_dict()
            entry["triggers"] = winnow.find_violation_triggers(graft, assay.annotations, annot)
            entries.append(entry)
        report.append({"assayID": assay.assay_id, "violations": entries})
    pbar.close()

    text = json.dumps(report, indent=2)
    if output:
        with open(output, "w") as f:
            f.write(text)
        print(f"Report saved to: {output}")
    else:
        print(text)
    return total


def print_axioms(axioms: AxiomVocab, ontology: OntologyTree | None, dump: bool) -> None:
    labeler = ontology.get_label if ontology is not None else None
    if dump:
        axioms.serialize(sys.stdout, labeler)
        print()
        return
    for rule in axioms.get_rules():
        print(rule)


def _load_context(parser: ArgumentParser, config: VocabConfig) -> VocabContext:
    if config.ontology_path is None:
        parser.error("--ontology (or ASSAYVOCAB_ONTOLOGY) is required")
    return VocabContext.from_config(config)


def run(args: Namespace, parser: ArgumentParser) -> int:
    config = VocabConfig.from_args(args)
    setup_logging(config.verbose, config.log_file)
    logger.debug(f"Configuration: {config.to_dict()}")

    if args.command == "build-ontology":
        build_ontology(args.obo_files, args.output)
        return 0

    if args.command == "axioms":
        if config.axioms_dir is None:
            parser.error("--axioms (or ASSAYVOCAB_AXIOMS) is required")
        ontology = OntologyTree.load(config.ontology_path) if args.labels and config.ontology_path else None
        print_axioms(load_axiom_dir(config.axioms_dir), ontology, args.dump)
        return 0

    context = _load_context(parser, config)
    prop_uri = expand_prefix(args.prop) if hasattr(args, "prop") else None
    group_nest = expand_prefixes(getattr(args, "group", None) or []) or []

    if args.command == "tree":
        return 0 if print_tree(context, expand_prefix(args.template), prop_uri, group_nest, args.json) else 1
    if args.command == "winnow":
        return 0 if print_winnow(context, args.assay, args.assay_id, prop_uri, group_nest) else 1
    if args.command == "check-axioms":
        return 1 if check_axioms(context, args.assays, args.output) else 0

    parser.error(f"Unknown command: {args.command}")
    return 2


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the assayvocab CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    try:
        code = run(args, parser)
    except (VocabError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
