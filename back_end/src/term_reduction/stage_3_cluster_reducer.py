"""
Cluster Reducer - Stage 3

Partitions the labels of a similarity matrix into clusters:

1. Distances d(a, b) = 1 - sim(a, b) (not necessarily a metric)
2. Agglomerative clustering, complete linkage by default, recording merge heights
3. Cut at height 1 - threshold: labels whose last common merge is at or
   below the cut share a cluster

Cluster ids run 1..K in order of each cluster's lexically smallest label, so
the partition is identical for any input label order.
"""

import math
import logging
import numbers
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
from scipy.cluster.hierarchy import fcluster
from sklearn.metrics import silhouette_score

from .clusterers import AgglomerativeClusterer, BaseClusterer, Dendrogram
from .exceptions import InvalidThresholdError
from .similarity_matrix import SimilarityMatrix, as_similarity_matrix

logger = logging.getLogger(__name__)

# Absorbs float error between 1 - sim and 1 - threshold (not applied at threshold 1.0)
CUT_TOLERANCE = 1e-12


class Partition(Mapping):
    """
    Read-only mapping of label -> cluster id covering every input label once.

    Attributes:
        threshold: Similarity threshold the tree was cut at
        linkage: Linkage rule used to build the tree
        dendrogram: The merge tree that was cut (None for an empty input)
        metadata: Cluster count, sizes and quality metrics
    """

    def __init__(
        self,
        assignments: Dict[str, int],
        threshold: float,
        linkage: str,
        dendrogram: Optional[Dendrogram] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        self._assignments = MappingProxyType(dict(assignments))
        self.threshold = threshold
        self.linkage = linkage
        self.dendrogram = dendrogram
        self.metadata = MappingProxyType(dict(metadata or {}))

        clusters: Dict[int, List[str]] = {}
        for label in sorted(self._assignments):
            clusters.setdefault(self._assignments[label], []).append(label)
        self._clusters = MappingProxyType({cid: tuple(members) for cid, members in sorted(clusters.items())})

    def __getitem__(self, label: str) -> int:
        return self._assignments[label]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._assignments))

    def __len__(self) -> int:
        return len(self._assignments)

    def __repr__(self) -> str:
        return f"Partition(labels={len(self)}, clusters={self.num_clusters}, threshold={self.threshold})"

    @property
    def clusters(self) -> Mapping:
        """Cluster id -> sorted tuple of member labels."""
        return self._clusters

    @property
    def cluster_ids(self) -> Tuple[int, ...]:
        return tuple(self._clusters)

    @property
    def num_clusters(self) -> int:
        return len(self._clusters)

    def members(self, cluster_id: int) -> Tuple[str, ...]:
        return self._clusters[cluster_id]

    def as_sets(self) -> set:
        """Clusters as a set of frozensets, independent of cluster numbering."""
        return {frozenset(members) for members in self._clusters.values()}


def validate_threshold(threshold, name: str = "threshold") -> float:
    """
    Check that a similarity threshold is a finite number in (0, 1].

    Raises:
        InvalidThresholdError: Otherwise
    """
    if isinstance(threshold, bool) or not isinstance(threshold, numbers.Real):
        raise InvalidThresholdError(threshold, name)
    value = float(threshold)
    if math.isnan(value) or not 0.0 < value <= 1.0:
        raise InvalidThresholdError(threshold, name)
    return value


def cut_dendrogram(dendrogram: Dendrogram, height: float) -> Dict[str, int]:
    """
    Flat clusters of a dendrogram cut at `height`.

    Two labels share a cluster when they are joined by merges of height
    <= height. Cluster ids are numbered 1..K by smallest member label.
    """
    labels = dendrogram.labels
    if len(labels) <= 1:
        return {label: 1 for label in labels}

    # No tolerance at height 0: only identical terms may merge there
    cutoff = height + CUT_TOLERANCE if height > 0 else 0.0
    flat_clusters = fcluster(np.array(dendrogram.linkage_matrix, dtype=float), t=cutoff, criterion='distance')

    # Renumber by first leaf; leaves are in lexical label order
    cluster_ids: Dict[int, int] = {}
    assignments: Dict[str, int] = {}
    for label, flat_id in zip(labels, flat_clusters):
        if flat_id not in cluster_ids:
            cluster_ids[flat_id] = len(cluster_ids) + 1
        assignments[label] = cluster_ids[flat_id]
    return assignments


class ClusterReducer:
    """
    Cuts a hierarchical clustering of the similarity matrix at a threshold.

    Args:
        clusterer: Clustering strategy (default: complete-linkage AgglomerativeClusterer)
        compute_quality_metrics: Add a silhouette score to the partition metadata
    """

    def __init__(self, clusterer: Optional[BaseClusterer] = None, compute_quality_metrics: bool = True):
        self.clusterer = clusterer or AgglomerativeClusterer('complete')
        self.compute_quality_metrics = compute_quality_metrics

    def reduce(self, matrix: SimilarityMatrix, threshold: float) -> Partition:
        """
        Partition the labels of `matrix` at a similarity threshold.

        Args:
            matrix: Similarity matrix (or labelled square DataFrame)
            threshold: Minimum similarity in (0, 1]

        Returns:
            Partition covering every label of the matrix

        Raises:
            InvalidThresholdError: If threshold is not in (0, 1]
            DimensionMismatchError: If the matrix is not square / symmetric
        """
        threshold = validate_threshold(threshold)
        matrix = as_similarity_matrix(matrix)
        linkage = self.clusterer.linkage_name

        if len(matrix) == 0:
            logger.warning("Empty similarity matrix, returning empty partition")
            return Partition({}, threshold, linkage, metadata={'num_labels': 0, 'num_clusters': 0})

        dendrogram = self.clusterer.build_dendrogram(matrix)
        assignments = cut_dendrogram(dendrogram, 1.0 - threshold)
        metadata = self._compute_metadata(matrix, dendrogram, assignments)

        logger.info(
            f"Reduced {len(matrix)} labels to {metadata['num_clusters']} clusters "
            f"(threshold={threshold}, linkage={linkage})"
        )
        return Partition(assignments, threshold, linkage, dendrogram=dendrogram, metadata=metadata)

    def _compute_metadata(self, matrix: SimilarityMatrix, dendrogram: Dendrogram,
                          assignments: Dict[str, int]) -> Dict[str, Any]:
        """
        Compute clustering metadata and quality metrics.

        Returns:
            Dict with clustering metadata
        """
        labels = dendrogram.labels
        cluster_labels = np.array([assignments[label] for label in labels])
        sizes = np.bincount(cluster_labels)[1:]
        num_clusters = len(sizes)

        metadata = {
            'algorithm': self.clusterer.algorithm_name,
            'hyperparameters': self.clusterer.get_hyperparameters(),
            'num_labels': len(labels),
            'num_clusters': num_clusters,
            'num_singletons': int(np.sum(sizes == 1)),
            'cluster_size_stats': {
                'min': int(sizes.min()),
                'max': int(sizes.max()),
                'mean': float(np.mean(sizes)),
                'median': float(np.median(sizes))
            },
            'silhouette_score': None
        }

        # Silhouette needs 2 <= clusters <= n - 1
        if self.compute_quality_metrics and 2 <= num_clusters <= len(labels) - 1:
            distances = matrix.subset(labels).distances()
            np.fill_diagonal(distances, 0.0)
            try:
                metadata['silhouette_score'] = float(
                    silhouette_score(distances, cluster_labels, metric='precomputed')
                )
            except ValueError as e:
                logger.warning(f"Failed to compute silhouette score: {e}")

        return metadata
