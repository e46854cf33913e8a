"""
Linkage rules for agglomerative clustering.

A rule gives the distance from every cluster k to the union of clusters a and b,
knowing only d(k, a), d(k, b) and the cluster sizes (Lance-Williams form).
None of the rules below need the distances to be a metric.
"""

from abc import ABC, abstractmethod
from typing import Dict, Union

import numpy as np

from ..exceptions import ConfigurationError


class LinkageRule(ABC):
    """Distance update applied when two clusters merge."""

    name: str = ""

    @abstractmethod
    def update(self, d_a: np.ndarray, d_b: np.ndarray, size_a: int, size_b: int) -> np.ndarray:
        """Distances from every cluster to the merged cluster a | b."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class CompleteLinkage(LinkageRule):
    """Maximum pairwise distance between members."""

    name = "complete"

    def update(self, d_a, d_b, size_a, size_b):
        return np.maximum(d_a, d_b)


class SingleLinkage(LinkageRule):
    """Minimum pairwise distance between members."""

    name = "single"

    def update(self, d_a, d_b, size_a, size_b):
        return np.minimum(d_a, d_b)


class AverageLinkage(LinkageRule):
    """Mean pairwise distance between members (UPGMA)."""

    name = "average"

    def update(self, d_a, d_b, size_a, size_b):
        return (size_a * d_a + size_b * d_b) / (size_a + size_b)


LINKAGE_RULES: Dict[str, type] = {
    'complete': CompleteLinkage,
    'single': SingleLinkage,
    'average': AverageLinkage
}


def get_linkage_rule(linkage: Union[str, LinkageRule]) -> LinkageRule:
    """
    Resolve a linkage rule by name.

    Raises:
        ConfigurationError: If the name is unknown
    """
    if isinstance(linkage, LinkageRule):
        return linkage
    try:
        return LINKAGE_RULES[str(linkage).lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown linkage '{linkage}'. Options: {sorted(LINKAGE_RULES)}"
        ) from None
