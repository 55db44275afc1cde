"""Cache of provisional (curator-proposed) terms.

Proposed terms sit underneath existing ontology branches until they are approved.
An approved term may be remapped to its final URI, and remappings can chain. The
cache is rebuilt wholesale from the term source on every update() call, and the
new maps are swapped in under one lock so readers never see a partial view.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import RemapCycleError

logger = logging.getLogger(__name__)


class ProvisionalRole(str, Enum):
    """Intended fate of a provisional term."""

    PRIVATE = "private"  # should not leave the internal system
    PUBLIC = "public"  # to be upgraded to a public ontology
    DEPRECATED = "deprecated"  # should be deleted


class ProvisionalTerm(BaseModel):
    """A proposed term as persisted by the term store."""

    model_config = ConfigDict(populate_by_name=True)

    provisional_id: int | None = Field(default=None, alias="provisionalID")
    parent_uri: str | None = Field(default=None, alias="parentURI")
    label: str = ""
    uri: str
    description: str | None = None
    explanation: str | None = None
    proposer_id: str | None = Field(default=None, alias="proposerID")
    role: ProvisionalRole | None = None
    created_time: datetime | None = Field(default=None, alias="createdTime")
    modified_time: datetime | None = Field(default=None, alias="modifiedTime")
    remapped_to: str | None = Field(default=None, alias="remappedTo")
    bridge_status: str | None = Field(default=None, alias="bridgeStatus")
    bridge_url: str | None = Field(default=None, alias="bridgeURL")
    bridge_token: str | None = Field(default=None, alias="bridgeToken")


TermSource = Callable[[], Iterable[ProvisionalTerm | Mapping[str, Any]]]


def _resolve(remap: Mapping[str, str], uri: str | None) -> str | None:
    """Follow a remapping chain; None if the URI is not remapped at all."""
    if uri is None:
        return None
    target = remap.get(uri)
    if target is None:
        return None
    seen = [uri]
    while target is not None:
        if target in seen:
            raise RemapCycleError(seen + [target])
        seen.append(target)
        target = remap.get(target)
    return seen[-1]


class ProvisionalCache:
    """Stores provisional terms so they can be quickly applied to composed branches."""

    def __init__(self, source: TermSource | None = None):
        self._source = source
        self._lock = threading.Lock()
        self._map_uri: dict[str, ProvisionalTerm] = {}  # final URI -> term
        self._map_parent: dict[str, list[ProvisionalTerm]] = {}  # final parent URI -> terms
        self._remap: dict[str, str] = {}  # original URI -> remapped URI

    @classmethod
    def loaded(cls, source: TermSource | None = None) -> ProvisionalCache:
        """Convenience constructor: create and load."""
        cache = cls(source)
        cache.update()
        return cache

    def update(self, terms: Iterable[ProvisionalTerm | Mapping[str, Any]] | None = None) -> None:
        """Reload all provisional terms from the source (or the given list).

        Raises:
            RemapCycleError: If the remappings contain a cycle; the previous state is kept
        """
        if terms is None:
            terms = self._source() if self._source is not None else []
        all_terms = [t if isinstance(t, ProvisionalTerm) else ProvisionalTerm.model_validate(t) for t in terms]

        # remappings first, since they determine the keys of everything else
        remap: dict[str, str] = {}
        for term in all_terms:
            if term.remapped_to and term.remapped_to.strip() and term.remapped_to != term.uri:
                remap[term.uri] = term.remapped_to

        map_uri: dict[str, ProvisionalTerm] = {}
        map_parent: dict[str, list[ProvisionalTerm]] = {}
        for term in all_terms:
            term_uri = _resolve(remap, term.uri) or term.uri
            parent_uri = _resolve(remap, term.parent_uri) or term.parent_uri
            map_uri[term_uri] = term
            if parent_uri is not None:
                map_parent.setdefault(parent_uri, []).append(term)

        with self._lock:
            self._map_uri = map_uri
            self._map_parent = map_parent
            self._remap = remap

        logger.info(f"Provisional cache updated: {len(map_uri)} terms, {len(remap)} remappings")

    def snapshot(self) -> ProvisionalCache:
        """A cache frozen at the current state (later updates to self are not seen)."""
        frozen = ProvisionalCache(self._source)
        with self._lock:
            frozen._map_uri = self._map_uri
            frozen._map_parent = self._map_parent
            frozen._remap = self._remap
        return frozen

    def remap(self, uri: str | None) -> str | None:
        """Return the final URI for a remapped term, or None if it is not remapped.

        Raises:
            RemapCycleError: If the remapping chain revisits a URI
        """
        with self._lock:
            remap = self._remap
        return _resolve(remap, uri)

    def remap_maybe(self, uri: str | None) -> str | None:
        """As remap(), but returns the original URI if it is not remapped."""
        target = self.remap(uri)
        return uri if target is None else target

    def num_terms(self) -> int:
        with self._lock:
            return len(self._map_uri)

    def num_remappings(self) -> int:
        with self._lock:
            return len(self._remap)

    def get_all_terms(self) -> list[ProvisionalTerm]:
        with self._lock:
            return list(self._map_uri.values())

    def get_term(self, uri: str) -> ProvisionalTerm | None:
        """Fetch a term by its final URI (a URI that has been remapped away is not found)."""
        with self._lock:
            return self._map_uri.get(uri)

    def get_children(self, parent_uri: str) -> list[ProvisionalTerm]:
        with self._lock:
            return list(self._map_parent.get(parent_uri, []))
