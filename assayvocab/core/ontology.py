"""Baseline ontology hierarchy compiled from one or more source ontologies.

The tree is built once (from OBO files or a prebuilt snapshot) and is treated as
immutable afterwards. Branches live in a URI-keyed arena: each branch refers to
its parent and children by URI rather than by object reference.
"""

from __future__ import annotations

import gzip
import logging
import re
import struct
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

from ..errors import OntologyFormatError
from .prefixes import collapse_prefix, expand_prefix, obo_id_to_uri

logger = logging.getLogger(__name__)

MAGIC_NUMBER = 0xDEADBEEF
CURRENT_VERSION = 1
END_OF_HIERARCHY = -2


@dataclass
class OntologyTerm:
    """Represents a term read from a vocabulary source."""

    term_id: str
    name: str
    definition: str | None = None
    synonyms: list[str] = field(default_factory=list)
    parents: list[str] = field(default_factory=list)  # is_a relationships
    xrefs: list[str] = field(default_factory=list)
    obsolete: bool = False


def _finish_term(current: dict[str, Any] | None, terms: list[OntologyTerm]) -> None:
    if not current or not current.get("id"):
        return
    terms.append(
        OntologyTerm(
            term_id=current["id"],
            name=current.get("name", ""),
            definition=current.get("def"),
            synonyms=current.get("synonyms", []),
            parents=current.get("parents", []),
            xrefs=current.get("xrefs", []),
            obsolete=current.get("obsolete", False),
        )
    )


def parse_obo_file(filepath: Path) -> list[OntologyTerm]:
    """Parse an OBO file and extract terms.

    Args:
        filepath: Path to the OBO file

    Returns:
        List of OntologyTerm objects (obsolete terms included, flagged)
    """
    terms: list[OntologyTerm] = []
    current: dict[str, Any] | None = None

    with open(filepath, encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if line == "[Term]":
                _finish_term(current, terms)
                current = {"synonyms": [], "parents": [], "xrefs": []}

            elif line.startswith("[") and line.endswith("]"):
                # End of terms section (e.g., [Typedef])
                _finish_term(current, terms)
                current = None

            elif current is not None:
                if line.startswith("id:"):
                    current["id"] = line[3:].strip()
                elif line.startswith("name:"):
                    current["name"] = line[5:].strip()
                elif line.startswith("def:"):
                    match = re.search(r'"([^"]*)"', line)
                    if match:
                        current["def"] = match.group(1)
                elif line.startswith("synonym:"):
                    match = re.search(r'"([^"]*)"', line)
                    if match:
                        current["synonyms"].append(match.group(1))
                elif line.startswith("is_a:"):
                    # Format: "is_a: GO:0000001 ! name"
                    current["parents"].append(line[5:].strip().split(" ")[0])
                elif line.startswith("xref:"):
                    current["xrefs"].append(line[5:].strip().split(" ")[0])
                elif line.startswith("is_obsolete:"):
                    current["obsolete"] = line[12:].strip() == "true"

        _finish_term(current, terms)

    return terms


@dataclass
class OntologyBranch:
    """A node in the baseline hierarchy.

    ``parent`` and ``children`` hold URIs into the owning tree's arena.
    """

    uri: str
    label: str
    parent: str | None = None
    children: list[str] = field(default_factory=list)
    descendants: int = 0


class OntologyTree:
    """Distilled representation of the ontology basis."""

    def __init__(self):
        self._roots: list[str] = []
        self._branches: dict[str, OntologyBranch] = {}
        self._descr: dict[str, str] = {}
        self._alt_labels: dict[str, list[str]] = {}
        self._external_urls: dict[str, list[str]] = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_terms(cls, terms: Iterable[OntologyTerm]) -> OntologyTree:
        """Build the hierarchy from a vocabulary source.

        Branches are placed in waves: a term is linked only once its first parent
        has been placed, repeating until nothing more can be placed. Terms whose
        parent never appears are dropped.
        """
        tree = cls()
        pool: list[tuple[str, OntologyTerm]] = [(obo_id_to_uri(t.term_id), t) for t in terms if not t.obsolete]
        info: dict[str, OntologyTerm] = {}

        while True:
            remaining: list[tuple[str, OntologyTerm]] = []
            for uri, term in pool:
                if uri in tree._branches:
                    continue  # duplicate definition, first one wins
                if not term.parents:
                    tree._branches[uri] = OntologyBranch(uri, term.name)
                    tree._roots.append(uri)
                else:
                    parent = tree._branches.get(obo_id_to_uri(term.parents[0]))
                    if parent is None:
                        remaining.append((uri, term))
                        continue
                    tree._branches[uri] = OntologyBranch(uri, term.name, parent=parent.uri)
                    parent.children.append(uri)
                info[uri] = term
            if len(remaining) == len(pool):
                break
            pool = remaining

        if pool:
            logger.debug(f"Dropped {len(pool)} orphaned terms")

        for uri, term in info.items():
            if term.definition:
                tree._descr[uri] = term.definition
            if term.synonyms:
                tree._alt_labels[uri] = list(term.synonyms)
            urls = [x for x in term.xrefs if x.startswith("http://") or x.startswith("https://")]
            if urls:
                tree._external_urls[uri] = urls

        tree._finalize()
        return tree

    @classmethod
    def from_obo_files(cls, paths: Iterable[Path]) -> OntologyTree:
        """Build a tree by concatenating the terms of several OBO files."""
        terms: list[OntologyTerm] = []
        for path in paths:
            parsed = parse_obo_file(Path(path))
            logger.info(f"Parsed {len(parsed)} terms from {path}")
            terms.extend(parsed)
        return cls.from_terms(terms)

    def _finalize(self) -> None:
        """Sort roots/children by label and recompute descendant counts."""
        self._sort_by_label(self._roots)
        for branch in self._branches.values():
            branch.descendants = 0
        for uri in self._roots:
            self._count_descendants(uri)

    def _sort_by_label(self, uris: list[str]) -> None:
        uris.sort(key=lambda u: self._branches[u].label.lower())

    def _count_descendants(self, root_uri: str) -> None:
        # Iterative post-order so that deep ontologies do not exhaust the stack
        order: list[str] = []
        stack = [root_uri]
        while stack:
            uri = stack.pop()
            order.append(uri)
            branch = self._branches[uri]
            self._sort_by_label(branch.children)
            stack.extend(branch.children)
        for uri in reversed(order):
            branch = self._branches[uri]
            if branch.parent is not None:
                self._branches[branch.parent].descendants += 1 + branch.descendants

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def count_uri(self) -> int:
        return len(self._branches)

    def count_descr(self) -> int:
        return len(self._descr)

    def count_alt_labels(self) -> int:
        return len(self._alt_labels)

    def count_external_urls(self) -> int:
        return len(self._external_urls)

    def get_roots(self) -> list[OntologyBranch]:
        return [self._branches[uri] for uri in self._roots]

    def get_branch(self, uri: str | None) -> OntologyBranch | None:
        if uri is None:
            return None
        return self._branches.get(uri)

    def get_parent(self, branch: OntologyBranch) -> OntologyBranch | None:
        return self._branches.get(branch.parent) if branch.parent is not None else None

    def get_children(self, branch: OntologyBranch) -> list[OntologyBranch]:
        return [self._branches[uri] for uri in branch.children]

    def get_label(self, uri: str) -> str | None:
        branch = self._branches.get(uri)
        return branch.label if branch else None

    def get_descr(self, uri: str) -> str | None:
        return self._descr.get(uri)

    def get_alt_labels(self, uri: str) -> list[str] | None:
        return self._alt_labels.get(uri)

    def get_external_urls(self, uri: str) -> list[str] | None:
        return self._external_urls.get(uri)

    def get_lineage(self, uri: str) -> list[str]:
        """Return the URI followed by each of its ancestors, ending at the root."""
        lineage = []
        branch = self._branches.get(uri)
        while branch is not None:
            lineage.append(branch.uri)
            branch = self.get_parent(branch)
        return lineage

    def __contains__(self, uri: object) -> bool:
        return uri in self._branches

    def __len__(self) -> int:
        return len(self._branches)

    # ------------------------------------------------------------------
    # Binary serialization
    # ------------------------------------------------------------------

    def serialize(self, ostr: BinaryIO) -> None:
        """Write the tree using the concise binary snapshot format."""
        ostr.write(struct.pack(">Ii", MAGIC_NUMBER, CURRENT_VERSION))

        # Hierarchy in pre-order, so that every parent index is already known
        index: dict[str, int] = {}
        stack = list(reversed(self._roots))
        while stack:
            branch = self._branches[stack.pop()]
            pidx = -1 if branch.parent is None else index[branch.parent]
            ostr.write(struct.pack(">i", pidx))
            _write_utf(ostr, collapse_prefix(branch.uri))
            _write_utf(ostr, branch.label)
            index[branch.uri] = len(index)
            stack.extend(reversed(branch.children))
        ostr.write(struct.pack(">i", END_OF_HIERARCHY))

        ostr.write(struct.pack(">i", len(self._descr)))
        for uri, descr in self._descr.items():
            _write_utf(ostr, uri)
            _write_utf(ostr, descr)

        for table in (self._alt_labels, self._external_urls):
            ostr.write(struct.pack(">i", len(table)))
            for uri, values in table.items():
                _write_utf(ostr, uri)
                ostr.write(struct.pack(">i", len(values)))
                for value in values:
                    _write_utf(ostr, value)

    @classmethod
    def deserialize(cls, istr: BinaryIO) -> OntologyTree:
        """Unpack a tree from a snapshot, raising OntologyFormatError if anything is wrong."""
        magic = _read_uint(istr)
        if magic != MAGIC_NUMBER:
            raise OntologyFormatError("Not a vocabulary file.")
        version = _read_int(istr)
        if version != CURRENT_VERSION:
            raise OntologyFormatError(f"Vocabulary file is the wrong version ({version}).")

        tree = cls()
        order: list[str] = []
        while True:
            pidx = _read_int(istr)
            if pidx == END_OF_HIERARCHY:
                break
            uri = expand_prefix(_read_utf(istr))
            label = _read_utf(istr)
            if pidx >= len(order) or pidx < -1:
                raise OntologyFormatError(f"Invalid parent index {pidx} for <{uri}>")
            parent = order[pidx] if pidx >= 0 else None
            tree._branches[uri] = OntologyBranch(uri, label, parent=parent)
            if parent is None:
                tree._roots.append(uri)
            else:
                tree._branches[parent].children.append(uri)
            order.append(uri)

        for _ in range(_read_int(istr)):
            uri = _read_utf(istr)
            tree._descr[uri] = _read_utf(istr)
        for table in (tree._alt_labels, tree._external_urls):
            for _ in range(_read_int(istr)):
                uri = _read_utf(istr)
                table[uri] = [_read_utf(istr) for _ in range(_read_int(istr))]

        # ordering and counts are not persisted
        tree._finalize()
        return tree

    def save(self, path: Path) -> None:
        """Write a snapshot file, gzip-compressed when the name ends in .gz."""
        path = Path(path)
        opener = gzip.open if path.suffix == ".gz" else open
        with opener(path, "wb") as f:
            self.serialize(f)
        logger.info(f"Saved ontology snapshot with {self.count_uri()} terms to {path}")

    @classmethod
    def load(cls, path: Path) -> OntologyTree:
        """Load a snapshot file written by save()."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Ontology snapshot not found: {path}")
        opener = gzip.open if path.suffix == ".gz" else open
        with opener(path, "rb") as f:
            tree = cls.deserialize(f)
        logger.info(f"Loaded ontology snapshot with {tree.count_uri()} terms from {path}")
        return tree


# ----------------------------------------------------------------------
# Big-endian primitives with length-prefixed modified UTF-8 strings
# ----------------------------------------------------------------------


def _read_exact(istr: BinaryIO, size: int) -> bytes:
    data = istr.read(size)
    if len(data) != size:
        raise OntologyFormatError("Unexpected end of vocabulary file.")
    return data


def _read_int(istr: BinaryIO) -> int:
    return struct.unpack(">i", _read_exact(istr, 4))[0]


def _read_uint(istr: BinaryIO) -> int:
    return struct.unpack(">I", _read_exact(istr, 4))[0]


def _write_utf(ostr: BinaryIO, text: str) -> None:
    """Write a length-prefixed string in modified UTF-8."""
    units = text.encode("utf-16-be", "surrogatepass")
    chars = "".join(chr(int.from_bytes(units[i : i + 2], "big")) for i in range(0, len(units), 2))
    raw = chars.encode("utf-8", "surrogatepass").replace(b"\x00", b"\xc0\x80")
    if len(raw) > 0xFFFF:
        raise OntologyFormatError(f"String too long to serialize ({len(raw)} bytes)")
    ostr.write(struct.pack(">H", len(raw)))
    ostr.write(raw)


def _read_utf(istr: BinaryIO) -> str:
    (size,) = struct.unpack(">H", _read_exact(istr, 2))
    raw = _read_exact(istr, size).replace(b"\xc0\x80", b"\x00")
    try:
        text = raw.decode("utf-8", "surrogatepass")
        return text.encode("utf-16-be", "surrogatepass").decode("utf-16-be")
    except UnicodeError as e:
        raise OntologyFormatError(f"Invalid string encoding: {e}") from e
