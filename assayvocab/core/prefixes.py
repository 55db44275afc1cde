"""URI prefix table and hard-coded placeholder terms.

Ontology URIs are stored expanded in memory and collapsed (``bao:BAO_0000190``)
when serialized. Axiom files and templates may use either form.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

PREFIXES: dict[str, str] = {
    "bao:": "http://www.bioassayontology.org/bao#",
    "bat:": "http://www.bioassayontology.org/bat#",
    "bas:": "http://www.bioassayontology.org/bas#",
    "bae:": "http://www.bioassayexpress.org/bae#",
    "obo:": "http://purl.obolibrary.org/obo/",
    "rdf:": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs:": "http://www.w3.org/2000/01/rdf-schema#",
    "xsd:": "http://www.w3.org/2001/XMLSchema#",
    "owl:": "http://www.w3.org/2002/07/owl#",
    "dc:": "http://purl.org/dc/elements/1.1/",
    "dto:": "http://www.drugtargetontology.org/dto/",
    "geneid:": "http://www.ncbi.nlm.nih.gov/gene/",
    "taxon:": "http://purl.uniprot.org/taxonomy/",
    "uniprot:": "http://purl.uniprot.org/uniprot/",
}

# Placeholder terms used to explain why an annotation is missing
URI_ABSENCE = PREFIXES["bat:"] + "Absence"
URI_NOTAPPLICABLE = PREFIXES["bat:"] + "NotApplicable"
URI_NOTDETERMINED = PREFIXES["bat:"] + "NotDetermined"
URI_UNKNOWN = PREFIXES["bat:"] + "Unknown"
URI_AMBIGUOUS = PREFIXES["bat:"] + "Ambiguous"
URI_MISSING = PREFIXES["bat:"] + "Missing"
URI_DUBIOUS = PREFIXES["bat:"] + "Dubious"
URI_REQUIRESTERM = PREFIXES["bat:"] + "RequiresTerm"
URI_NEEDSCHECKING = PREFIXES["bat:"] + "NeedsChecking"

ABSENCE_TERMS = (
    URI_NOTAPPLICABLE,
    URI_NOTDETERMINED,
    URI_UNKNOWN,
    URI_AMBIGUOUS,
    URI_MISSING,
    URI_DUBIOUS,
    URI_REQUIRESTERM,
    URI_NEEDSCHECKING,
)
ABSENCE_SET = frozenset(ABSENCE_TERMS)

# OBO identifiers such as GO:0008150 map onto the obo: namespace as GO_0008150
OBO_ID = re.compile(r"^([A-Za-z][A-Za-z0-9]*):([A-Za-z0-9_]+)$")


def expand_prefix(uri: str | None) -> str | None:
    """Expand an abbreviated URI (``bao:BAO_0000190``) into its full form.

    Strings without a known prefix are returned unchanged.
    """
    if uri is None:
        return None
    for pfx, base in PREFIXES.items():
        if uri.startswith(pfx):
            return base + uri[len(pfx) :]
    return uri


def collapse_prefix(uri: str | None) -> str | None:
    """Inverse of expand_prefix: abbreviate a URI using the longest matching base."""
    if uri is None:
        return None
    best = None
    for pfx, base in PREFIXES.items():
        if uri.startswith(base) and (best is None or len(base) > len(PREFIXES[best])):
            best = pfx
    if best is None:
        return uri
    return best + uri[len(PREFIXES[best]) :]


def expand_prefixes(uris: Iterable[str] | None) -> list[str] | None:
    if uris is None:
        return None
    return [expand_prefix(u) for u in uris]


def collapse_prefixes(uris: Iterable[str] | None) -> list[str] | None:
    if uris is None:
        return None
    return [collapse_prefix(u) for u in uris]


def obo_id_to_uri(term_id: str) -> str:
    """Convert an OBO-style identifier into a URI.

    ``GO:0008150`` becomes ``http://purl.obolibrary.org/obo/GO_0008150``; anything
    with a registered prefix or that is already a URI is expanded as usual.
    """
    if "://" in term_id:
        return term_id
    expanded = expand_prefix(term_id)
    if expanded != term_id:
        return expanded
    match = OBO_ID.match(term_id)
    if match:
        return f"{PREFIXES['obo:']}{match.group(1)}_{match.group(2)}"
    return term_id
