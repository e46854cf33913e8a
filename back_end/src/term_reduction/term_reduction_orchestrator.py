"""
Term Reduction Orchestrator - Main Pipeline Coordinator

Coordinates the reduction pipeline:
1. Stage 1: Similarity matrix construction (external similarity collaborator)
2. Stage 2: Score resolution (provided / uniqueness / size)
3. Stage 3: Hierarchical clustering cut at the similarity threshold
4. Stage 4: Representative selection (+ optional grouping of representatives)
5. Stage 5: Result assembly and reduced similarity matrix

reduce_sim_matrix() and calculate_sim_matrix() are the plain-function entry
points; TermReductionOrchestrator wires the same stages from configuration.
"""

import sqlite3
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .clusterers import AgglomerativeClusterer, BaseClusterer, ScipyLinkageClusterer
from .config import get_config, load_config, validate_config
from .exceptions import ConfigurationError
from .lookup_cache import LookupCache
from .providers import (
    BaseAnnotationProvider, BaseSimilarityProvider, HTTPSimilarityProvider, SQLiteAnnotationProvider
)
from .similarity_matrix import SimilarityMatrix, as_similarity_matrix
from .stage_1_matrix_builder import MatrixBuilder, calculate_sim_matrix
from .stage_2_score_resolver import ScoreResolver, SizeLookup
from .stage_3_cluster_reducer import ClusterReducer, validate_threshold
from .stage_4_representative_selector import RepresentativeSelector
from .stage_5_result_assembler import ReducedAssignment, ResultAssembler

logger = logging.getLogger(__name__)


def create_clusterer(name: str = 'agglomerative', linkage: str = 'complete') -> BaseClusterer:
    """
    Instantiate a clustering strategy by name.

    Raises:
        ConfigurationError: If the clusterer name is unknown
    """
    if name == 'agglomerative':
        return AgglomerativeClusterer(linkage)
    if name == 'scipy':
        return ScipyLinkageClusterer(linkage)
    raise ConfigurationError(f"Unknown clusterer '{name}'. Options: ['agglomerative', 'scipy']")


def reduce_sim_matrix(
    matrix: SimilarityMatrix,
    scores: Optional[Mapping[str, float]] = None,
    threshold: float = 0.7,
    size_lookup: Optional[SizeLookup] = None,
    *,
    score_method: Optional[str] = None,
    annotation_provider: Optional[BaseAnnotationProvider] = None,
    secondary_threshold: Optional[float] = None,
    clusterer: Optional[BaseClusterer] = None,
    compute_quality_metrics: bool = True
) -> ReducedAssignment:
    """
    Reduce a set of terms to cluster representatives.

    Args:
        matrix: Similarity matrix (or labelled square DataFrame)
        scores: Label -> score, higher is better (None = fallback scoring)
        threshold: Minimum similarity within a cluster, in (0, 1]
        size_lookup: label -> term size, used for size scoring
        score_method: Fallback scoring when scores is None ('uniqueness' or 'size').
                      Defaults to 'size' when a size lookup is available, else 'uniqueness'.
        annotation_provider: Display names / sizes / ancestors for the output (optional)
        secondary_threshold: Looser threshold for grouping representatives (optional)
        clusterer: Clustering strategy (default: complete-linkage AgglomerativeClusterer)
        compute_quality_metrics: Add a silhouette score to the partition metadata

    Returns:
        ReducedAssignment with one row per label

    Raises:
        InvalidThresholdError, DimensionMismatchError, MissingScoreError, TermLookupError
    """
    threshold = validate_threshold(threshold)
    if secondary_threshold is not None:
        secondary_threshold = validate_threshold(secondary_threshold, "secondary_threshold")
        if secondary_threshold > threshold:
            logger.warning(
                f"secondary_threshold {secondary_threshold} is stricter than threshold {threshold}; "
                f"groups will mostly be singletons"
            )

    matrix = as_similarity_matrix(matrix)

    if size_lookup is None and annotation_provider is not None and score_method == 'size':
        size_lookup = annotation_provider.term_size
    if score_method is None:
        score_method = 'size' if size_lookup is not None else 'uniqueness'

    resolved = ScoreResolver(score_method).resolve(matrix.labels, scores, matrix, size_lookup)

    reducer = ClusterReducer(clusterer, compute_quality_metrics=compute_quality_metrics)
    partition = reducer.reduce(matrix, threshold)

    selector = RepresentativeSelector()
    representatives = selector.select(partition, resolved)

    groups = None
    if secondary_threshold is not None:
        groups = selector.select_nested(representatives, matrix, resolved, secondary_threshold, reducer)

    return ResultAssembler(annotation_provider).assemble(
        partition, representatives, resolved, matrix,
        groups=groups, secondary_threshold=secondary_threshold
    )


class TermReductionOrchestrator:
    """
    Config-driven façade over the reduction pipeline.

    Collaborators can be injected; otherwise they are built from config:
    HTTPSimilarityProvider from `similarity_service`, SQLiteAnnotationProvider
    from `annotation.db_path`, and a LookupCache persisted at `matrix.cache_path`.
    """

    def __init__(
        self,
        config: Optional[Union[Dict[str, Any], str, Path]] = None,
        similarity_provider: Optional[BaseSimilarityProvider] = None,
        annotation_provider: Optional[BaseAnnotationProvider] = None,
        cache: Optional[LookupCache] = None
    ):
        """
        Initialize orchestrator.

        Args:
            config: Config dict, path to a YAML file, or None for the defaults
            similarity_provider: Similarity collaborator (default: HTTP service from config)
            annotation_provider: Annotation collaborator (default: SQLite db from config, if set)
            cache: Caller-owned lookup cache (default: one persisted at matrix.cache_path)
        """
        if isinstance(config, (str, Path)):
            self.config = load_config(config)
        else:
            self.config = config if config is not None else get_config()
            validate_config(self.config)

        matrix_config = self.config['matrix']
        if cache is None:
            cache = LookupCache(matrix_config.get('cache_path'))
            cache.load()
        self.cache = cache

        clustering_config = self.config['clustering']
        self.clusterer = create_clusterer(clustering_config['clusterer'], clustering_config['linkage'])

        # Opens a database connection; keep after every step that can raise
        self._owned_connection: Optional[sqlite3.Connection] = None
        self.similarity_provider = similarity_provider
        self.annotation_provider = annotation_provider or self._build_annotation_provider()

        logger.info(
            f"TermReductionOrchestrator initialized: threshold={self.config['reduction']['threshold']}, "
            f"clusterer={clustering_config['clusterer']}, linkage={clustering_config['linkage']}"
        )

    def _build_annotation_provider(self) -> Optional[BaseAnnotationProvider]:
        db_path = self.config.get('annotation', {}).get('db_path')
        if not db_path:
            return None
        if not Path(db_path).exists():
            raise ConfigurationError(f"Annotation database not found: {db_path}")
        self._owned_connection = sqlite3.connect(db_path)
        return SQLiteAnnotationProvider(self._owned_connection)

    def _get_similarity_provider(self) -> BaseSimilarityProvider:
        if self.similarity_provider is None:
            service = self.config['similarity_service']
            self.similarity_provider = HTTPSimilarityProvider(
                base_url=service['base_url'],
                measure=service['measure'],
                timeout=service['timeout']
            )
        return self.similarity_provider

    def build_matrix(self, labels: Iterable[str], ontology: Optional[str] = None) -> SimilarityMatrix:
        """Stage 1: similarity matrix for `labels`."""
        matrix_config = self.config['matrix']
        builder = MatrixBuilder(
            self._get_similarity_provider(),
            cache=self.cache,
            max_workers=matrix_config['max_workers'],
            show_progress=matrix_config['show_progress'],
            tolerance=matrix_config['tolerance']
        )
        return builder.build(labels, ontology or self.config['similarity_service'].get('ontology'))

    def reduce(
        self,
        matrix: SimilarityMatrix,
        scores: Optional[Mapping[str, float]] = None,
        size_lookup: Optional[SizeLookup] = None
    ) -> ReducedAssignment:
        """Stages 2-5 with thresholds and scoring from config."""
        reduction = self.config['reduction']
        score_method = self.config['scoring']['method']
        if score_method == 'size' and size_lookup is None and self.annotation_provider is not None:
            size_lookup = self.annotation_provider.term_size

        return reduce_sim_matrix(
            matrix,
            scores=scores,
            threshold=reduction['threshold'],
            size_lookup=size_lookup,
            score_method=score_method,
            annotation_provider=self.annotation_provider,
            secondary_threshold=reduction.get('secondary_threshold'),
            clusterer=self.clusterer,
            compute_quality_metrics=self.config['clustering'].get('compute_quality_metrics', True)
        )

    def run(
        self,
        labels: Iterable[str],
        scores: Optional[Mapping[str, float]] = None,
        ontology: Optional[str] = None
    ) -> ReducedAssignment:
        """Build the matrix for `labels` and reduce it."""
        matrix = self.build_matrix(labels, ontology)
        result = self.reduce(matrix, scores)
        self.cache.save()
        return result

    def get_stats(self) -> Dict:
        """Lookup cache statistics."""
        return self.cache.get_stats()

    def close(self) -> None:
        """Close the annotation database connection opened from config."""
        if self._owned_connection is not None:
            self._owned_connection.close()
            self._owned_connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


__all__ = [
    'TermReductionOrchestrator',
    'create_clusterer',
    'reduce_sim_matrix',
    'calculate_sim_matrix'
]
