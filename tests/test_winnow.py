"""Tests for axiom-driven winnowing of legal values."""

from __future__ import annotations

from typing import Any

import pytest

from assayvocab.core.axioms import AxiomRule, AxiomVocab
from assayvocab.core.prefixes import URI_NOTAPPLICABLE
from assayvocab.core.winnow import (
    KeywordContent,
    SubjectContent,
    WinnowAxioms,
    WinnowResult,
    filter_literal,
    filter_uri,
)
from assayvocab.types import Annotation, Assay, SchemaBranch, TextLabel

from .helpers import (
    ABSENCE,
    BRANCH_TEMPLATE,
    C1,
    C2,
    C3,
    C4,
    GROUP_SOLVENT,
    NOT_DETERMINED,
    PROP_SOLVENT,
    PROP_SUBJECT,
    PROP_TARGET,
    PROP_TEXT,
    R,
    S,
    S1,
    X,
)

NA = URI_NOTAPPLICABLE


def _term(uri: str | None = None, **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = dict(extra)
    if uri is not None:
        data["valueURI"] = uri
    return data


def _rule(kind: str, subject: Any, impact: Any, **extra: Any) -> dict[str, Any]:
    return {"type": kind, "subject": subject, "impact": impact, **extra}


def _winnow(*rules: dict[str, Any]) -> WinnowAxioms:
    return WinnowAxioms(AxiomVocab.from_json(list(rules)))


@pytest.fixture
def target_tree(context, common):
    return context.obtain_tree(common, PROP_TARGET)


@pytest.fixture
def subject_tree(context, common):
    return context.obtain_tree(common, PROP_SUBJECT)


@pytest.fixture
def subject_x(subject_tree):
    return SubjectContent(X, subject_tree)


class TestWinnowBranch:
    def test_no_rules_no_opinion(self, target_tree, subject_x):
        assert _winnow().winnow_branch([subject_x], None, target_tree) is None

    def test_limit(self, target_tree, subject_x):
        result = _winnow(_rule("limit", _term(X), _term(C2))).winnow_branch([subject_x], None, target_tree)
        assert filter_uri(result) == {C2, NA}

    def test_exclude(self, target_tree, subject_x):
        result = _winnow(_rule("exclude", _term(X), _term(C2))).winnow_branch([subject_x], None, target_tree)
        assert filter_uri(result) == {C1, C3, C4, NA}

    def test_limit_whole_branch_impact(self, target_tree, subject_x):
        winnow = _winnow(_rule("limit", _term(X), _term(C3, wholeBranch=True)))
        assert filter_uri(winnow.winnow_branch([subject_x], None, target_tree)) == {C3, C4, NA}

    def test_limit_rules_union(self, target_tree, subject_x):
        winnow = _winnow(_rule("limit", _term(X), _term(C2)), _rule("limit", _term(X), _term(C4)))
        assert filter_uri(winnow.winnow_branch([subject_x], None, target_tree)) == {C2, C4, NA}

    def test_exclusive_rules_intersect(self, target_tree, subject_x):
        winnow = _winnow(
            _rule("limit", _term(X), [_term(C2), _term(C3)], exclusive=True),
            _rule("limit", _term(X), [_term(C3), _term(C4)], exclusive=True),
            _rule("limit", _term(X), _term(C1)),
        )
        assert filter_uri(winnow.winnow_branch([subject_x], None, target_tree)) == {C3, NA}

    def test_exclude_beats_limit(self, target_tree, subject_x):
        winnow = _winnow(
            _rule("limit", _term(X), [_term(C2), _term(C3)]),
            _rule("exclude", _term(X), _term(C3)),
        )
        assert filter_uri(winnow.winnow_branch([subject_x], None, target_tree)) == {C2, NA}

    def test_exclude_not_applicable(self, target_tree, subject_x):
        winnow = _winnow(_rule("exclude", _term(X), _term(NA)))
        assert filter_uri(winnow.winnow_branch([subject_x], None, target_tree)) == {C1, C2, C3, C4}

    def test_everything_ruled_out(self, target_tree, subject_x):
        winnow = _winnow(
            _rule("limit", _term(X), _term(C2), exclusive=True),
            _rule("exclude", _term(X), [_term(C2), _term(NA)]),
        )
        assert winnow.winnow_branch([subject_x], None, target_tree) == set()

    def test_impact_outside_tree_ignored(self, target_tree, subject_x):
        winnow = _winnow(_rule("limit", _term(X), _term(S)))
        assert winnow.winnow_branch([subject_x], None, target_tree) is None

    def test_impact_property_constraint(self, target_tree, subject_x):
        elsewhere = _winnow(_rule("limit", _term(X), _term(C2, propURI=PROP_SOLVENT)))
        assert elsewhere.winnow_branch([subject_x], None, target_tree) is None
        here = _winnow(_rule("limit", _term(X), _term(C2, propURI=PROP_TARGET)))
        assert filter_uri(here.winnow_branch([subject_x], None, target_tree)) == {C2, NA}

    def test_results_are_uris(self, target_tree, subject_x):
        result = _winnow(_rule("limit", _term(X), _term(C2))).winnow_branch([subject_x], None, target_tree)
        assert WinnowResult(uri=C2) in result
        assert filter_literal(result) == set()
        assert filter_uri(None) is None


class TestSubjects:
    def test_subject_not_present(self, target_tree, subject_tree):
        winnow = _winnow(_rule("limit", _term(X), _term(C2)))
        assert winnow.winnow_branch([SubjectContent(C1, subject_tree)], None, target_tree) is None

    def test_whole_branch_subject(self, target_tree, subject_x):
        assert _winnow(_rule("limit", _term(R), _term(C2))).winnow_branch([subject_x], None, target_tree) is None
        winnow = _winnow(_rule("limit", _term(R, wholeBranch=True), _term(C2)))
        assert filter_uri(winnow.winnow_branch([subject_x], None, target_tree)) == {C2, NA}

    def test_absence_never_triggers(self, target_tree, subject_tree):
        winnow = _winnow(_rule("exclude", _term(ABSENCE, wholeBranch=True), _term(C2)))
        subject = SubjectContent(NOT_DETERMINED, subject_tree)
        assert winnow.winnow_branch([subject], None, target_tree) is None

    def test_subject_outside_tree_ignored(self, target_tree, subject_tree):
        winnow = _winnow(_rule("limit", _term(S1), _term(C2)))
        assert winnow.winnow_branch([SubjectContent(S1, subject_tree)], None, target_tree) is None

    def test_all_subject_terms_required(self, target_tree, subject_tree, subject_x):
        winnow = _winnow(_rule("limit", [_term(X), _term(C4)], _term(C2)))
        assert winnow.winnow_branch([subject_x], None, target_tree) is None
        both = [subject_x, SubjectContent(C4, subject_tree)]
        assert filter_uri(winnow.winnow_branch(both, None, target_tree)) == {C2, NA}

    def test_subject_property_constraint(self, target_tree, subject_x):
        wrong = _winnow(_rule("limit", _term(X, propURI=PROP_TARGET), _term(C2)))
        assert wrong.winnow_branch([subject_x], None, target_tree) is None
        right = _winnow(_rule("limit", _term(X, propURI=PROP_SUBJECT), _term(C2)))
        assert filter_uri(right.winnow_branch([subject_x], None, target_tree)) == {C2, NA}


class TestKeywords:
    RULE = {"type": "limit", "keyword": {"text": "cell free"}, "impact": {"valueURI": C2}}

    def test_keyword_content(self):
        content = KeywordContent("an  assay\nusing cell free extract", None)
        assert content.matches("cell free", None)
        assert content.matches("an assay", None)
        assert not content.matches("cell fr", None)
        assert not content.matches("cell free", PROP_TEXT)

    def test_keyword_triggers(self, target_tree):
        winnow = _winnow(self.RULE)
        keywords = [KeywordContent("uses a cell free system", None)]
        assert filter_uri(winnow.winnow_branch([], keywords, target_tree)) == {C2, NA}

    def test_keyword_needs_whole_words(self, target_tree):
        winnow = _winnow(self.RULE)
        keywords = [KeywordContent("uses a cell freezer", None)]
        assert winnow.winnow_branch([], keywords, target_tree) is None

    def test_keyword_scoped_to_property(self, target_tree):
        rule = dict(self.RULE, keyword={"text": "cell free", "propURI": PROP_TEXT})
        winnow = _winnow(rule)
        assert winnow.winnow_branch([], [KeywordContent("cell free", None)], target_tree) is None
        result = winnow.winnow_branch([], [KeywordContent("cell free", PROP_TEXT)], target_tree)
        assert filter_uri(result) == {C2, NA}


class TestLiterals:
    def test_implied_literals(self, common, subject_x):
        notes = common.find_assignment_by_property(PROP_TEXT)[0]
        winnow = _winnow(_rule("limit", _term(X), [_term(None, valueLabel="implied", propURI=PROP_TEXT), _term(C2)]))
        assert filter_literal(winnow.implied_literals([subject_x], None, notes)) == {"implied"}
        assert winnow.implied_literals([], None, notes) is None

    def test_literals_for_other_assignments_ignored(self, common, subject_x):
        notes = common.find_assignment_by_property(PROP_TEXT)[0]
        winnow = _winnow(_rule("limit", _term(X), _term(None, valueLabel="implied", propURI=PROP_TARGET)))
        assert winnow.implied_literals([subject_x], None, notes) is None


class TestAssayLevel:
    RULES = [
        _rule("limit", _term(X), _term(C2, propURI=PROP_TARGET)),
        _rule("limit", _term(X), _term(None, valueLabel="implied", propURI=PROP_TEXT)),
    ]

    @pytest.fixture
    def winnow(self, context):
        context.set_axioms(AxiomVocab.from_json(self.RULES))
        return context.winnow()

    @pytest.fixture
    def graft(self, context):
        return context.dynamic_schema(None)

    def test_violating_axioms(self, winnow, graft):
        annotations = [Annotation(PROP_SUBJECT, X), Annotation(PROP_TARGET, C3)]
        assert winnow.violating_axioms(graft, annotations) == [Annotation(PROP_TARGET, C3)]

    def test_no_violations(self, winnow, graft):
        annotations = [Annotation(PROP_SUBJECT, X), Annotation(PROP_TARGET, C2)]
        assert winnow.violating_axioms(graft, annotations) == []

    def test_orphaned_annotations_skipped(self, winnow, graft):
        annotations = [Annotation(PROP_SUBJECT, X), Annotation("http://nowhere", C3), Annotation(PROP_TARGET, None)]
        assert winnow.violating_axioms(graft, annotations) == []

    def test_violation_triggers(self, winnow, graft):
        annotations = [Annotation(PROP_SUBJECT, X), Annotation(PROP_TARGET, C3)]
        assert winnow.find_violation_triggers(graft, annotations, Annotation(PROP_TARGET, C3)) == [X]
        assert winnow.find_violation_triggers(graft, annotations, Annotation(PROP_TARGET, C2)) == []

    def test_justification_triggers(self, winnow, graft):
        annotations = [Annotation(PROP_SUBJECT, X), Annotation(PROP_TARGET, C2)]
        assert winnow.find_justification_triggers(graft, annotations, Annotation(PROP_TARGET, C2)) == [X]
        assert winnow.find_justification_triggers(graft, [], Annotation(PROP_TARGET, C2)) == []
        assert winnow.find_justification_triggers(graft, annotations, Annotation("http://nowhere", C2)) is None

    def test_literal_triggers(self, winnow, graft):
        notes = graft.get_result().find_assignment_by_property(PROP_TEXT)[0]
        annotations = [Annotation(PROP_SUBJECT, X)]
        assert winnow.find_literal_triggers(graft, annotations, notes, "implied") == [X]
        assert winnow.find_literal_triggers(graft, annotations, notes, "other") == []

    def test_branch_triggers(self, winnow, target_tree, subject_x):
        rules = winnow.branch_triggers([subject_x], None, target_tree)
        assert len(rules) == 1
        assert rules[0].impact[0].value_uri == C2


class TestLegalValues:
    def test_limit(self, context):
        context.set_axioms(AxiomVocab.from_json([_rule("limit", _term(X), _term(C2))]))
        assay = Assay(annotations=[Annotation(PROP_SUBJECT, X)])
        assert context.legal_values(assay, PROP_TARGET) == {C2, NA}

    def test_no_opinion(self, context):
        assay = Assay(annotations=[Annotation(PROP_SUBJECT, X)])
        assert context.legal_values(assay, PROP_TARGET) is None

    def test_unknown_assignment(self, context):
        context.set_axioms(AxiomVocab.from_json([_rule("limit", _term(X), _term(C2))]))
        assay = Assay(annotations=[Annotation(PROP_SUBJECT, X)])
        assert context.legal_values(assay, "http://nowhere") is None
        assert context.legal_values(Assay(schema_uri="http://unknown"), PROP_TARGET) is None

    def test_text_label_keyword(self, context):
        rule = {"type": "limit", "keyword": {"text": "cell free", "propURI": PROP_TEXT}, "impact": {"valueURI": C2}}
        context.set_axioms(AxiomVocab.from_json([rule]))
        assay = Assay(text_labels=[TextLabel(PROP_TEXT, "a cell free system")])
        assert context.legal_values(assay, PROP_TARGET) == {C2, NA}

    def test_assay_text_keyword(self, context):
        rule = {"type": "exclude", "keyword": {"text": "cell free"}, "impact": {"valueURI": C2}}
        context.set_axioms(AxiomVocab.from_json([rule]))
        assay = Assay(text="This is a cell free assay.")
        assert context.legal_values(assay, PROP_TARGET) == {C1, C3, C4, NA}

    def test_grafted_assignment(self, context):
        context.set_axioms(AxiomVocab.from_json([_rule("exclude", _term(X), _term(S1))]))
        assay = Assay(
            branches=[SchemaBranch(BRANCH_TEMPLATE, None)],
            annotations=[Annotation(PROP_SUBJECT, X)],
        )
        assert context.legal_values(assay, PROP_SOLVENT, [GROUP_SOLVENT]) == {NA}

    def test_null_text_label(self, context):
        rule = {"type": "limit", "keyword": {"text": "cell free", "propURI": PROP_TEXT}, "impact": {"valueURI": C2}}
        context.set_axioms(AxiomVocab.from_json([rule]))
        assay = Assay.from_dict({"textLabels": [{"propURI": "bao:BAX_0000080", "text": None}]})
        assert assay.text_labels[0].text == ""
        assert context.legal_values(assay, PROP_TARGET) is None


class TestExcludeViolations:
    def test_excluded_annotations_reported(self, context):
        rule = _rule("exclude", _term(X), [_term(C3), _term(C4)])
        context.set_axioms(AxiomVocab.from_json([rule]))
        graft = context.dynamic_schema(None)
        annotations = [
            Annotation(PROP_SUBJECT, X),
            Annotation(PROP_TARGET, C3),
            Annotation(PROP_TARGET, C2),
            Annotation(PROP_TARGET, C4),
        ]
        violations = context.winnow().violating_axioms(graft, annotations)
        assert violations == [Annotation(PROP_TARGET, C3), Annotation(PROP_TARGET, C4)]

    def test_exclusions_untriggered_without_subject(self, context):
        context.set_axioms(AxiomVocab.from_json([_rule("exclude", _term(X), [_term(C3), _term(C4)])]))
        graft = context.dynamic_schema(None)
        annotations = [Annotation(PROP_TARGET, C3), Annotation(PROP_TARGET, C4)]
        assert context.winnow().violating_axioms(graft, annotations) == []
