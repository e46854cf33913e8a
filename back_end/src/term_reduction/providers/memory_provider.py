"""
In-memory providers.

Deterministic, dictionary-backed collaborators used in unit tests and for
callers that already hold similarities / annotations in memory.
"""

import logging
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from ..exceptions import TermLookupError
from .base_provider import BaseAnnotationProvider, BaseSimilarityProvider

logger = logging.getLogger(__name__)


class InMemorySimilarityProvider(BaseSimilarityProvider):
    """
    Similarity lookups from a dict of (a, b) -> score.

    Pairs are symmetric: (a, b) also answers (b, a). A term compared with
    itself is 1.0. Scores may be registered per ontology by passing
    `{ontology: {(a, b): score}}` as `by_ontology`.
    """

    def __init__(
        self,
        pairs: Optional[Mapping[Tuple[str, str], float]] = None,
        by_ontology: Optional[Mapping[str, Mapping[Tuple[str, str], float]]] = None
    ):
        self._scores: Dict[Tuple[str, str, str], float] = {}
        for (a, b), score in (pairs or {}).items():
            self._register("", a, b, score)
        for ontology, ontology_pairs in (by_ontology or {}).items():
            for (a, b), score in ontology_pairs.items():
                self._register(ontology, a, b, score)

        # Lookup counter, lets tests assert cache behaviour
        self.calls = 0

    def _register(self, ontology: str, a: str, b: str, score: float) -> None:
        first, second = sorted((a, b))
        self._scores[(ontology, first, second)] = float(score)

    def similarity(self, a: str, b: str, ontology: Optional[str] = None) -> float:
        self.calls += 1
        if a == b:
            return 1.0

        first, second = sorted((a, b))
        for key in ((ontology or "", first, second), ("", first, second)):
            if key in self._scores:
                return self._scores[key]

        raise TermLookupError(
            f"No similarity registered for ({a}, {b}) in ontology {ontology!r}", labels=(a, b)
        )


class InMemoryAnnotationProvider(BaseAnnotationProvider):
    """Annotation lookups from plain dictionaries."""

    def __init__(
        self,
        names: Optional[Mapping[str, str]] = None,
        sizes: Optional[Mapping[str, int]] = None,
        ancestors: Optional[Mapping[str, Iterable[str]]] = None
    ):
        self._names = dict(names or {})
        self._sizes = dict(sizes or {})
        self._ancestors = {term: frozenset(parents) for term, parents in (ancestors or {}).items()}

    def display_name(self, label: str) -> str:
        try:
            return self._names[label]
        except KeyError:
            raise TermLookupError(f"No display name for term '{label}'", labels=(label,)) from None

    def ancestors(self, label: str) -> FrozenSet[str]:
        try:
            return self._ancestors[label]
        except KeyError:
            raise TermLookupError(f"No ancestors for term '{label}'", labels=(label,)) from None

    def term_size(self, label: str) -> int:
        try:
            return int(self._sizes[label])
        except KeyError:
            raise TermLookupError(f"No size for term '{label}'", labels=(label,)) from None
