from __future__ import annotations

import pytest

from assayvocab.core.axioms import AxiomVocab
from assayvocab.core.context import VocabContext
from assayvocab.core.ontology import OntologyTree
from assayvocab.core.provisional import ProvisionalCache
from assayvocab.core.template import Schema

from .helpers import COMMON_TEMPLATE, branch_template, build_ontology, common_template


@pytest.fixture
def ontology() -> OntologyTree:
    return build_ontology()


@pytest.fixture
def common() -> Schema:
    return common_template()


@pytest.fixture
def branch() -> Schema:
    return branch_template()


@pytest.fixture
def resolver(branch):
    templates = {branch.schema_prefix: branch}
    return templates.get


@pytest.fixture
def provisional() -> ProvisionalCache:
    return ProvisionalCache()


@pytest.fixture
def context(ontology, common, branch) -> VocabContext:
    return VocabContext(
        ontology,
        provisional=ProvisionalCache(),
        templates=[common, branch],
        default_template=COMMON_TEMPLATE,
        axioms=AxiomVocab(),
    )
