"""Axiom rules: declarative constraints on which values an assignment may take.

JSON format is an array of rules, each of the form::

    {
        "type": "limit" | "exclude",
        "exclusive": bool (optional),
        "subject": term(s)  OR  "keyword": {"text": ..., "propURI": ...},
        "impact": term(s)
    }

where ``term(s)`` is either a single object or an array of objects with the
fields ``valueURI`` (may be prefix-abbreviated), ``valueLabel``,
``wholeBranch``, ``propURI`` and ``groupNest``.

A subject with several terms only applies when all of them match. A LIMIT rule
restricts the impacted assignment to its impact values (union across rules, or
intersection for exclusive rules); an EXCLUDE rule removes them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

from ..errors import AxiomFormatError
from .prefixes import collapse_prefix, collapse_prefixes, expand_prefix, expand_prefixes
from .template import same_prop_group_nest

logger = logging.getLogger(__name__)

Labeler = Callable[[str | None], str | None]


class AxiomType(str, Enum):
    LIMIT = "limit"  # presence of the subject implies the impact values exclusively
    EXCLUDE = "exclude"  # presence of the subject makes the impact values ineligible


@dataclass(eq=False)
class AxiomTerm:
    """A value reference within a rule (subject or impact side)."""

    value_uri: str | None = None
    whole_branch: bool = False
    value_label: str | None = None  # literal, when value_uri is None
    prop_uri: str | None = None
    group_nest: list[str] | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AxiomTerm):
            return NotImplemented
        return (
            self.value_uri == other.value_uri
            and self.whole_branch == other.whole_branch
            and self.value_label == other.value_label
            and same_prop_group_nest(self.prop_uri, self.group_nest, other.prop_uri, other.group_nest)
        )

    def __hash__(self) -> int:
        return hash((self.value_uri, self.value_label, self.prop_uri or "", tuple(self.group_nest or [])))

    def __str__(self) -> str:
        text = f"{collapse_prefix(self.value_uri)}/{str(self.whole_branch).lower()}"
        if self.value_label is not None:
            text += f'/"{self.value_label}"'
        if self.prop_uri is not None:
            text += f"/{collapse_prefix(self.prop_uri)}"
        if self.group_nest is not None:
            text += f"/{collapse_prefixes(self.group_nest)}"
        return text

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AxiomTerm:
        group_nest = data.get("groupNest")
        return cls(
            value_uri=expand_prefix(data.get("valueURI")),
            whole_branch=bool(data.get("wholeBranch", False)),
            value_label=data.get("valueLabel"),
            prop_uri=expand_prefix(data.get("propURI")),
            group_nest=expand_prefixes(group_nest) if group_nest is not None else None,
        )

    def to_dict(self, labeler: Labeler | None = None) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if labeler is not None:
            result["label"] = labeler(self.value_uri)
        result["valueURI"] = self.value_uri
        result["wholeBranch"] = self.whole_branch
        if self.value_label is not None:
            result["valueLabel"] = self.value_label
        if self.prop_uri is not None:
            result["propURI"] = self.prop_uri
        if self.group_nest is not None:
            result["groupNest"] = list(self.group_nest)
        return result


@dataclass(frozen=True)
class AxiomKeyword:
    """A phrase that must appear (on word boundaries) in a text field.

    ``prop_uri`` of None means the main assay text.
    """

    text: str
    prop_uri: str | None = None

    def __str__(self) -> str:
        return f"{self.text}/{self.prop_uri}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AxiomKeyword:
        return cls(text=str(data.get("text") or ""), prop_uri=expand_prefix(data.get("propURI")))

    def to_dict(self, labeler: Labeler | None = None) -> dict[str, Any]:
        result: dict[str, Any] = {"text": self.text}
        if self.prop_uri is not None:
            result["propURI"] = self.prop_uri
            if labeler is not None:
                result["propLabel"] = labeler(self.prop_uri)
        return result


@dataclass
class AxiomRule:
    """One axiom: either a subject (list of terms) or a keyword triggers the impact."""

    type: AxiomType
    subject: list[AxiomTerm] | None = None
    keyword: AxiomKeyword | None = None
    impact: list[AxiomTerm] = field(default_factory=list)
    exclusive: bool = False

    def __str__(self) -> str:
        parts = [f"{self.type.name} type axiom; "]
        if self.exclusive:
            parts.append("exclusive; ")
        if self.subject is not None:
            parts.append("subject: [" + ",".join(str(t) for t in self.subject) + "]")
        if self.keyword is not None:
            parts.append(f"keyword: [{self.keyword}]")
        parts.append(", impacts: [" + ",".join(str(t) for t in self.impact) + "]")
        return "".join(parts)

    def merge_key(self) -> str:
        """Rules sharing this key differ only in their impact lists."""
        subject = "[" + ",".join(str(t) for t in self.subject) + "]" if self.subject is not None else None
        return f"{self.type.name}::{subject}::{self.keyword}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AxiomRule:
        """Parse one rule record.

        Raises:
            AxiomFormatError: If the type is unknown, the subject/keyword choice is not
                exactly one of the two, or the impact is missing or empty
        """
        raw_type = data.get("type")
        try:
            rule_type = AxiomType(str(raw_type).lower())
        except ValueError:
            raise AxiomFormatError(f"Invalid rule type: {raw_type}", data) from None

        has_subject, has_keyword = "subject" in data, isinstance(data.get("keyword"), dict)
        if has_subject == has_keyword:
            raise AxiomFormatError("Rule must provide either subject or keyword", data)

        subject = _parse_terms(data["subject"], "subject", data) if has_subject else None
        keyword = AxiomKeyword.from_dict(data["keyword"]) if has_keyword else None
        if keyword is not None and not keyword.text:
            raise AxiomFormatError("Keyword must provide text", data)

        if "impact" not in data:
            raise AxiomFormatError("Rule must provide impact", data)
        impact = _parse_terms(data["impact"], "impact", data)
        if not impact:
            raise AxiomFormatError("Rule impact must not be empty", data)

        return cls(
            type=rule_type,
            subject=subject,
            keyword=keyword,
            impact=impact,
            exclusive=bool(data.get("exclusive", False)),
        )

    def to_dict(self, labeler: Labeler | None = None) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value}
        if self.exclusive:
            result["exclusive"] = True
        if self.subject is not None:
            result["subject"] = _format_terms(self.subject, labeler)
        if self.keyword is not None:
            result["keyword"] = self.keyword.to_dict(labeler)
        result["impact"] = _format_terms(self.impact, labeler)
        return result


def _parse_terms(blob: Any, what: str, record: dict[str, Any]) -> list[AxiomTerm]:
    if isinstance(blob, dict):
        return [AxiomTerm.from_dict(blob)]
    if isinstance(blob, list):
        # items that are not objects are skipped individually
        return [AxiomTerm.from_dict(item) for item in blob if isinstance(item, dict)]
    raise AxiomFormatError(f"Rule {what} must be an object or array", record)


def _format_terms(terms: list[AxiomTerm], labeler: Labeler | None) -> dict[str, Any] | list[dict[str, Any]]:
    formatted = [t.to_dict(labeler) for t in terms]
    return formatted[0] if len(formatted) == 1 else formatted


class AxiomVocab:
    """An ordered collection of axiom rules."""

    def __init__(self, rules: Iterable[AxiomRule] | None = None):
        self._rules: list[AxiomRule] = list(rules or [])

    def num_rules(self) -> int:
        return len(self._rules)

    def get_rule(self, idx: int) -> AxiomRule:
        return self._rules[idx]

    def get_rules(self) -> list[AxiomRule]:
        return list(self._rules)

    def add_rule(self, rule: AxiomRule) -> None:
        self._rules.append(rule)

    def set_rule(self, idx: int, rule: AxiomRule) -> None:
        self._rules[idx] = rule

    def delete_rule(self, idx: int) -> None:
        del self._rules[idx]

    def delete_all_rules(self) -> None:
        self._rules.clear()

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def to_json(self, labeler: Labeler | None = None) -> list[dict[str, Any]]:
        return [rule.to_dict(labeler) for rule in self._rules]

    @classmethod
    def from_json(cls, data: Any) -> AxiomVocab:
        """Build from a decoded JSON array; non-object entries are skipped."""
        if not isinstance(data, list):
            raise AxiomFormatError("Axiom file must contain a JSON array")
        return cls(AxiomRule.from_dict(item) for item in data if isinstance(item, dict))

    def serialize(self, fp: TextIO, labeler: Labeler | None = None) -> None:
        """Write the rules as indented JSON, optionally with human-readable labels."""
        json.dump(self.to_json(labeler), fp, indent=2)

    @classmethod
    def deserialize(cls, fp: TextIO) -> AxiomVocab:
        try:
            data = json.load(fp)
        except json.JSONDecodeError as e:
            raise AxiomFormatError(f"Invalid axiom JSON: {e}") from e
        return cls.from_json(data)

    def save(self, path: Path, labeler: Labeler | None = None) -> None:
        with open(path, "w", encoding="utf-8") as f:
            self.serialize(f, labeler)

    @classmethod
    def load(cls, path: Path) -> AxiomVocab:
        with open(path, encoding="utf-8") as f:
            return cls.deserialize(f)


# ----------------------------------------------------------------------
# Multi-file merging
# ----------------------------------------------------------------------


def merge_rules(current: AxiomRule, extra: AxiomRule) -> None:
    """Union the impact of extra into current; a shared value widens to whole-branch if either is."""
    for look in extra.impact:
        found = False
        for find in current.impact:
            if look == find:
                found = True
                break
            if look.value_uri is not None and look.value_uri == find.value_uri:
                find.whole_branch = find.whole_branch or look.whole_branch
                found = True
                break
        if not found:
            current.impact.append(look)


def merge_axiom_files(paths: Iterable[Path]) -> AxiomVocab:
    """Load several rule files in order, merging rules that share type, subject and keyword."""
    merged = AxiomVocab()
    already: dict[str, AxiomRule] = {}
    for path in paths:
        vocab = AxiomVocab.load(path)
        logger.debug(f"Loaded {vocab.num_rules()} axioms from {path}")
        for rule in vocab.get_rules():
            key = rule.merge_key()
            existing = already.get(key)
            if existing is None:
                merged.add_rule(rule)
                already[key] = rule
            else:
                merge_rules(existing, rule)
    return merged


def load_axiom_dir(directory: Path) -> AxiomVocab:
    """Load and merge every *.json file in a directory, ordered by name."""
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Axiom directory not found: {directory}")
    vocab = merge_axiom_files(sorted(directory.glob("*.json")))
    logger.info(f"Loaded {vocab.num_rules()} axioms from {directory}")
    return vocab
