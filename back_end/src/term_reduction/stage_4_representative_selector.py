"""
Representative Selector - Stage 4

Picks the highest-scoring label of each cluster as its representative
(the "parent" of every member). Ties go to the lexically smallest label.

An optional second pass groups the representatives themselves by
re-running the cluster reducer on them at a looser threshold.
"""

import logging
from typing import Dict, Mapping, Optional

from .exceptions import MissingScoreError
from .similarity_matrix import SimilarityMatrix
from .stage_3_cluster_reducer import ClusterReducer, Partition, validate_threshold

logger = logging.getLogger(__name__)


class RepresentativeSelector:
    """Chooses cluster representatives; stateless."""

    def select(self, partition: Partition, scores: Mapping[str, float]) -> Dict[int, str]:
        """
        Representative of every cluster.

        Args:
            partition: Label -> cluster id
            scores: Label -> score (higher is better)

        Returns:
            Dict of cluster id -> representative label

        Raises:
            MissingScoreError: If a partitioned label has no score
        """
        missing = [label for label in partition if label not in scores]
        if missing:
            raise MissingScoreError(missing)

        representatives = {
            cluster_id: min(members, key=lambda label: (-scores[label], label))
            for cluster_id, members in partition.clusters.items()
        }

        logger.debug(f"Selected {len(representatives)} representatives")
        return representatives

    def select_nested(
        self,
        representatives: Mapping[int, str],
        matrix: SimilarityMatrix,
        scores: Mapping[str, float],
        secondary_threshold: float,
        reducer: Optional[ClusterReducer] = None
    ) -> Dict[str, str]:
        """
        Group representatives that are near-duplicates at a looser threshold.

        Args:
            representatives: Cluster id -> representative label
            matrix: Similarity matrix containing every representative
            scores: Label -> score
            secondary_threshold: Similarity threshold for grouping representatives
            reducer: Cluster reducer to reuse (default: complete linkage)

        Returns:
            Dict of representative -> representative of its group
        """
        secondary_threshold = validate_threshold(secondary_threshold, "secondary_threshold")
        reducer = reducer or ClusterReducer()

        rep_labels = sorted(set(representatives.values()))
        group_partition = reducer.reduce(matrix.subset(rep_labels), secondary_threshold)
        group_reps = self.select(group_partition, scores)

        groups = {label: group_reps[group_partition[label]] for label in rep_labels}
        logger.info(
            f"Grouped {len(rep_labels)} representatives into {group_partition.num_clusters} groups "
            f"(secondary_threshold={secondary_threshold})"
        )
        return groups
