"""Shared test data: a small ontology and a pair of templates.

Ontology (children sorted by label)::

    R  root
      C1  alpha
        C2  beta
        C3  gamma
          C4  delta
      X   subject
    S  separate
      S1  separate child
    ABSENCE  absence
      NOT_DETERMINED  not determined
"""

from __future__ import annotations

from typing import Any

from assayvocab.core.ontology import OntologyTerm, OntologyTree
from assayvocab.core.prefixes import PREFIXES, URI_ABSENCE, URI_NOTDETERMINED
from assayvocab.core.template import Assignment, Group, Schema, Specify, Value

BAO = PREFIXES["bao:"]
BAS = PREFIXES["bas:"]

R = BAO + "BAO_0000001"
C1 = BAO + "BAO_0000002"
C2 = BAO + "BAO_0000003"
C3 = BAO + "BAO_0000004"
C4 = BAO + "BAO_0000005"
X = BAO + "BAO_0000006"
S = BAO + "BAO_0000010"
S1 = BAO + "BAO_0000011"
ABSENCE = URI_ABSENCE
NOT_DETERMINED = URI_NOTDETERMINED

PROP_TARGET = BAO + "BAX_0000001"
PROP_SUBJECT = BAO + "BAX_0000002"
PROP_SOLVENT = BAO + "BAX_0000062"
PROP_EXTRA = BAO + "BAX_0000070"
PROP_TEXT = BAO + "BAX_0000080"

GROUP_COMPONENT = BAO + "BAX_0000034"
GROUP_SOLVENT = BAO + "BAX_0000036"

COMMON_TEMPLATE = BAS + "CommonTemplate"
BRANCH_TEMPLATE = BAS + "SolventBranch#"


def ontology_terms() -> list[OntologyTerm]:
    return [
        OntologyTerm("bao:BAO_0000001", "root"),
        OntologyTerm("bao:BAO_0000002", "alpha", definition="first branch", parents=["bao:BAO_0000001"]),
        OntologyTerm("bao:BAO_0000004", "gamma", parents=["bao:BAO_0000002"], synonyms=["third"]),
        OntologyTerm("bao:BAO_0000003", "beta", parents=["bao:BAO_0000002"]),
        OntologyTerm("bao:BAO_0000005", "delta", parents=["bao:BAO_0000004"], xrefs=["https://example.org/delta"]),
        OntologyTerm("bao:BAO_0000006", "subject", parents=["bao:BAO_0000001"]),
        OntologyTerm("bao:BAO_0000010", "separate"),
        OntologyTerm("bao:BAO_0000011", "separate child", parents=["bao:BAO_0000010"]),
        OntologyTerm("bat:Absence", "absence"),
        OntologyTerm("bat:NotDetermined", "not determined", parents=["bat:Absence"]),
    ]


def build_ontology() -> OntologyTree:
    return OntologyTree.from_terms(ontology_terms())


def assignment(prop_uri: str, *values: tuple[str, Specify] | Value) -> Assignment:
    """A free-standing assignment with the given (uri, spec) values."""
    assn = Assignment(name="test", prop_uri=prop_uri)
    for value in values:
        assn.values.append(value if isinstance(value, Value) else Value(uri=value[0], spec=value[1]))
    return assn


COMMON_TEMPLATE_JSON: dict[str, Any] = {
    "schemaPrefix": "bas:CommonTemplate",
    "root": {
        "name": "common",
        "assignments": [
            {
                "name": "target",
                "propURI": "bao:BAX_0000001",
                "values": [{"uri": "bao:BAO_0000002", "spec": "wholebranch"}],
            },
            {
                "name": "subject",
                "propURI": "bao:BAX_0000002",
                "values": [
                    {"uri": "bao:BAO_0000001", "spec": "wholebranch"},
                    {"uri": "bat:Absence", "spec": "wholebranch"},
                ],
            },
            {"name": "notes", "propURI": "bao:BAX_0000080", "values": []},
        ],
        "subGroups": [
            {
                "name": "component",
                "groupURI": "bao:BAX_0000034",
                "canDuplicate": True,
                "assignments": [
                    {
                        "name": "solvent",
                        "propURI": "bao:BAX_0000062",
                        "values": [{"uri": "bao:BAO_0000010", "spec": "wholebranch"}],
                    }
                ],
            }
        ],
    },
}

BRANCH_TEMPLATE_JSON: dict[str, Any] = {
    "schemaPrefix": "bas:SolventBranch#",
    "root": {
        "name": "solvent branch",
        "assignments": [
            {
                "name": "extra",
                "propURI": "bao:BAX_0000070",
                "values": [{"uri": "bao:BAO_0000003", "spec": "item"}],
            }
        ],
        "subGroups": [
            {
                "name": "solvent",
                "groupURI": "bao:BAX_0000036",
                "canDuplicate": True,
                "assignments": [
                    {
                        "name": "solvent",
                        "propURI": "bao:BAX_0000062",
                        "values": [{"uri": "bao:BAO_0000011", "spec": "item"}],
                    }
                ],
            }
        ],
    },
}


def common_template() -> Schema:
    return Schema.from_dict(COMMON_TEMPLATE_JSON)


def branch_template() -> Schema:
    return Schema.from_dict(BRANCH_TEMPLATE_JSON)


def simple_schema() -> Schema:
    """Root assignment prop1, and a group holding prop2."""
    schema = Schema("http://something/schema")
    root = schema.root
    root.assignments.append(Assignment("assn1", "http://something/prop1", parent=root))
    group = Group("group", "http://something/group", parent=root)
    root.sub_groups.append(group)
    group.assignments.append(Assignment("assn2", "http://something/prop2", parent=group))
    return schema
