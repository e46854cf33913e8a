"""
Result Assembler - Stage 5

Joins cluster assignment, representative, score and annotations into one
row per label, and derives the reduced similarity matrix between
representatives (values copied from the input matrix, not recomputed).

Annotations are optional: without an annotation provider, or when a lookup
fails, display names fall back to the raw identifiers and size / ancestry
columns are left empty.
"""

import logging
from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple

import pandas as pd

from .exceptions import DimensionMismatchError, MissingScoreError
from .providers.base_provider import BaseAnnotationProvider
from .similarity_matrix import SimilarityMatrix
from .stage_3_cluster_reducer import Partition

logger = logging.getLogger(__name__)

COLUMNS = [
    'label', 'cluster', 'parent', 'score', 'size', 'term',
    'parent_sim_score', 'parent_term', 'parent_is_ancestor', 'group', 'group_term'
]


@dataclass(frozen=True)
class TermAssignment:
    """Reduction result for a single label."""
    label: str
    cluster: int
    parent: str
    score: float
    term: str
    parent_term: str
    parent_sim_score: float
    size: Optional[int] = None
    parent_is_ancestor: Optional[bool] = None
    group: Optional[str] = None
    group_term: Optional[str] = None

    @property
    def is_representative(self) -> bool:
        return self.label == self.parent

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReducedAssignment:
    """
    Complete, immutable result of one reduction.

    Rows are ordered by cluster id, then score (descending), then label.
    """
    rows: Tuple[TermAssignment, ...]
    representatives: Mapping[int, str]
    reduced_matrix: SimilarityMatrix
    threshold: float
    secondary_threshold: Optional[float] = None
    _by_label: Mapping[str, TermAssignment] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'representatives', MappingProxyType(dict(self.representatives)))
        object.__setattr__(self, '_by_label', MappingProxyType({row.label: row for row in self.rows}))

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[TermAssignment]:
        return iter(self.rows)

    def __getitem__(self, label: str) -> TermAssignment:
        return self._by_label[label]

    def __contains__(self, label) -> bool:
        return label in self._by_label

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(row.label for row in self.rows)

    @property
    def num_clusters(self) -> int:
        return len(self.representatives)

    def parents(self) -> Dict[str, str]:
        """Label -> representative."""
        return {row.label: row.parent for row in self.rows}

    def to_dataframe(self) -> pd.DataFrame:
        """One row per label with the COLUMNS layout."""
        return pd.DataFrame([row.to_dict() for row in self.rows], columns=COLUMNS)


class ResultAssembler:
    """
    Assembles ReducedAssignment objects.

    Args:
        annotation_provider: Source of display names, sizes and ancestors (optional)
    """

    def __init__(self, annotation_provider: Optional[BaseAnnotationProvider] = None):
        self.annotation_provider = annotation_provider

    def assemble(
        self,
        partition: Partition,
        representatives: Mapping[int, str],
        scores: Mapping[str, float],
        matrix: SimilarityMatrix,
        groups: Optional[Mapping[str, str]] = None,
        secondary_threshold: Optional[float] = None
    ) -> ReducedAssignment:
        """
        Build the per-label result table and the reduced matrix.

        Args:
            partition: Label -> cluster id
            representatives: Cluster id -> representative label
            scores: Label -> score
            matrix: Similarity matrix the partition was computed from
            groups: Representative -> group representative (optional)
            secondary_threshold: Threshold used to compute `groups`

        Raises:
            DimensionMismatchError: If partition, representatives and matrix disagree
            MissingScoreError: If a label has no score
        """
        self._check_consistency(partition, representatives, matrix, groups)

        missing = [label for label in partition if label not in scores]
        if missing:
            raise MissingScoreError(missing)

        labels = sorted(partition, key=lambda label: (partition[label], -scores[label], label))
        wanted_names = set(labels) | set((groups or {}).values())
        names = self._resolve_names(wanted_names)
        sizes = self._resolve_sizes(labels)
        ancestors = self._resolve_ancestors(labels)

        rows: List[TermAssignment] = []
        for label in labels:
            cluster_id = partition[label]
            parent = representatives[cluster_id]
            group = groups.get(parent) if groups else None
            label_ancestors = ancestors.get(label)

            rows.append(TermAssignment(
                label=label,
                cluster=cluster_id,
                parent=parent,
                score=float(scores[label]),
                term=names[label],
                parent_term=names[parent],
                parent_sim_score=matrix.similarity(label, parent),
                size=sizes.get(label),
                parent_is_ancestor=None if label_ancestors is None else parent in label_ancestors,
                group=group,
                group_term=names[group] if group is not None else None
            ))

        reduced = self.reduced_matrix(representatives, matrix)

        logger.info(f"Assembled {len(rows)} assignments into {len(representatives)} representatives")
        return ReducedAssignment(
            rows=tuple(rows),
            representatives=dict(sorted(representatives.items())),
            reduced_matrix=reduced,
            threshold=partition.threshold,
            secondary_threshold=secondary_threshold
        )

    def reduced_matrix(self, representatives: Mapping[int, str], matrix: SimilarityMatrix) -> SimilarityMatrix:
        """Similarities between representatives, ordered by cluster id."""
        ordered = [representatives[cluster_id] for cluster_id in sorted(representatives)]
        if len(set(ordered)) != len(ordered):
            raise DimensionMismatchError(f"Representatives are not distinct: {ordered}")
        return matrix.subset(ordered)

    def _check_consistency(self, partition, representatives, matrix, groups) -> None:
        if set(partition) != set(matrix.labels):
            only_partition = sorted(set(partition) - set(matrix.labels))
            only_matrix = sorted(set(matrix.labels) - set(partition))
            raise DimensionMismatchError(
                f"Partition and matrix labels differ: partition only={only_partition[:10]}, "
                f"matrix only={only_matrix[:10]}"
            )

        if set(representatives) != set(partition.cluster_ids):
            raise DimensionMismatchError(
                f"Representatives cover clusters {sorted(representatives)}, "
                f"partition has clusters {list(partition.cluster_ids)}"
            )

        for cluster_id, representative in representatives.items():
            if partition.get(representative) != cluster_id:
                raise DimensionMismatchError(
                    f"Representative '{representative}' is not a member of cluster {cluster_id}"
                )

        if groups:
            unknown = sorted(set(representatives.values()) - set(groups))
            if unknown:
                raise DimensionMismatchError(f"No group for representatives: {unknown[:10]}")

    # === ANNOTATIONS ===

    def _resolve_names(self, labels) -> Dict[str, str]:
        names = {label: label for label in labels}
        if self.annotation_provider is None:
            return names

        failed = 0
        for label in labels:
            try:
                names[label] = self.annotation_provider.display_name(label)
            except LookupError as e:
                logger.debug(f"No display name for '{label}': {e}")
                failed += 1

        if failed:
            logger.warning(f"Display name lookup failed for {failed} labels, using identifiers")
        return names

    def _resolve_sizes(self, labels) -> Dict[str, Optional[int]]:
        if self.annotation_provider is None:
            return {}

        sizes: Dict[str, Optional[int]] = {}
        for label in labels:
            try:
                sizes[label] = int(self.annotation_provider.term_size(label))
            except LookupError as e:
                logger.debug(f"No size for '{label}': {e}")
                sizes[label] = None
        return sizes

    def _resolve_ancestors(self, labels) -> Dict[str, Optional[FrozenSet[str]]]:
        if self.annotation_provider is None:
            return {}

        ancestors: Dict[str, Optional[FrozenSet[str]]] = {}
        failed = 0
        for label in labels:
            try:
                ancestors[label] = frozenset(self.annotation_provider.ancestors(label))
            except LookupError as e:
                logger.debug(f"No ancestors for '{label}': {e}")
                ancestors[label] = None
                failed += 1

        if failed:
            logger.warning(f"Ancestor lookup failed for {failed} labels")
        return ancestors
