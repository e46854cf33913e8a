"""
Base Provider Abstract Classes

Ports for the two external collaborators of the reduction pipeline:

- BaseSimilarityProvider: pairwise semantic similarity between two terms
- BaseAnnotationProvider: term metadata (display name, ancestors, size)

Implementations must raise TermLookupError (a LookupError) when a term cannot
be resolved; they must never substitute a default value for a failed lookup.
"""

import logging
from abc import ABC, abstractmethod
from typing import FrozenSet, Optional

logger = logging.getLogger(__name__)


class BaseSimilarityProvider(ABC):
    """
    Abstract base class for semantic similarity collaborators.

    Subclasses must implement:
    - similarity(a, b, ontology) -> float in [0, 1]
    """

    #: Thread-safe implementations can be queried from a worker pool
    thread_safe: bool = True

    @abstractmethod
    def similarity(self, a: str, b: str, ontology: Optional[str] = None) -> float:
        """
        Similarity between two terms.

        Args:
            a: First term identifier
            b: Second term identifier
            ontology: Ontology / namespace context (e.g. 'BP', 'MF', 'CC')

        Returns:
            Similarity in [0, 1]

        Raises:
            TermLookupError: If the collaborator cannot score the pair
        """
        pass


class BaseAnnotationProvider(ABC):
    """
    Abstract base class for term annotation collaborators.

    Subclasses must implement display_name, ancestors and term_size.
    """

    @abstractmethod
    def display_name(self, label: str) -> str:
        """Human-readable name of a term."""
        pass

    @abstractmethod
    def ancestors(self, label: str) -> FrozenSet[str]:
        """All ontology ancestors of a term (not including the term itself)."""
        pass

    @abstractmethod
    def term_size(self, label: str) -> int:
        """Number of annotated entities for a term (>= 0)."""
        pass
