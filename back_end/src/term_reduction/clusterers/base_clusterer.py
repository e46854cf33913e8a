"""
Base Clusterer Abstract Class

Defines the interface for all agglomerative clustering strategies used by the
cluster reducer. A strategy only builds the merge tree (dendrogram); cutting
the tree into flat clusters is done by the reducer, so strategies can be
swapped without touching the cutting and assembly logic.

Labels are always sorted lexically before a strategy sees the distances, so
every strategy produces the same tree regardless of input label order.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from ..exceptions import DimensionMismatchError
from ..similarity_matrix import SimilarityMatrix

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Dendrogram:
    """
    Merge tree over a sorted label set.

    linkage_matrix follows the scipy convention: row k merges nodes
    [left, right] at [height] into a node of [size] leaves, which gets id n + k.
    """
    labels: Tuple[str, ...]
    linkage_matrix: np.ndarray
    linkage: str

    @property
    def num_leaves(self) -> int:
        return len(self.labels)

    def merge_heights(self) -> np.ndarray:
        """Merge heights in merge order."""
        return self.linkage_matrix[:, 2].copy()


class BaseClusterer(ABC):
    """
    Abstract base class for all agglomerative clustering strategies.

    Subclasses must implement:
    - _build_linkage(distances: np.ndarray) -> np.ndarray
    """

    def __init__(self, algorithm_name: str, hyperparameters: Dict):
        """
        Initialize the base clusterer.

        Args:
            algorithm_name: Name of clustering algorithm (e.g., 'agglomerative', 'scipy')
            hyperparameters: Dict of algorithm-specific hyperparameters
        """
        self.algorithm_name = algorithm_name
        self.hyperparameters = hyperparameters

        logger.debug(f"Initialized {self.__class__.__name__}: algorithm={algorithm_name}")

    @property
    @abstractmethod
    def linkage_name(self) -> str:
        """Name of the linkage rule ('complete', 'single', 'average')."""
        pass

    @abstractmethod
    def _build_linkage(self, distances: np.ndarray) -> np.ndarray:
        """
        Build a linkage matrix from a square distance array.

        This method must be implemented by subclasses.

        Args:
            distances: Symmetric (n, n) distance array with zero diagonal, n >= 2,
                       rows in lexical label order

        Returns:
            np.ndarray: Linkage matrix of shape (n - 1, 4)
        """
        pass

    def build_dendrogram(self, matrix: SimilarityMatrix) -> Dendrogram:
        """
        Cluster a similarity matrix into a dendrogram over d = 1 - sim.

        Args:
            matrix: Validated similarity matrix

        Returns:
            Dendrogram over the lexically sorted labels
        """
        ordered = matrix.sorted()
        n = len(ordered)

        if n <= 1:
            return Dendrogram(ordered.labels, _frozen(np.zeros((0, 4))), self.linkage_name)

        distances = ordered.distances()
        np.fill_diagonal(distances, 0.0)

        logger.debug(f"Running {self.algorithm_name} clustering ({self.linkage_name} linkage) on {n} labels")
        linkage_matrix = np.asarray(self._build_linkage(distances), dtype=float)

        if linkage_matrix.shape != (n - 1, 4):
            raise DimensionMismatchError(
                f"{self.__class__.__name__} returned linkage of shape {linkage_matrix.shape}, "
                f"expected {(n - 1, 4)}"
            )

        return Dendrogram(ordered.labels, _frozen(linkage_matrix), self.linkage_name)

    def get_hyperparameters(self) -> Dict:
        """Get clustering hyperparameters."""
        return self.hyperparameters.copy()


def _frozen(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array
