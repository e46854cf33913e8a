"""
Term Reduction Module

Reduces a set of ontology terms to a smaller set of representatives by
hierarchical clustering of their pairwise semantic similarity:
- Stage 1: Similarity matrix construction (pairwise lookups, optional cache / thread pool)
- Stage 2: Score resolution (provided scores, uniqueness or term size)
- Stage 3: Complete-linkage clustering cut at 1 - threshold
- Stage 4: Representative selection (+ optional grouping at a secondary threshold)
- Stage 5: Result assembly (per-label table + reduced similarity matrix)

Components:

Collaborators (providers):
- BaseSimilarityProvider, BaseAnnotationProvider (abstract base classes)
- HTTPSimilarityProvider, SQLiteAnnotationProvider, SQLiteSimilarityProvider
- InMemorySimilarityProvider, InMemoryAnnotationProvider

Clusterers:
- AgglomerativeClusterer (in-house, deterministic tie-breaking)
- ScipyLinkageClusterer
- BaseClusterer (abstract base class)

Entry points:
- calculate_sim_matrix(labels, provider, ontology)
- reduce_sim_matrix(matrix, scores, threshold, size_lookup)
- TermReductionOrchestrator (config-driven pipeline)
"""

from .exceptions import (
    TermReductionError,
    DimensionMismatchError,
    MissingScoreError,
    InvalidThresholdError,
    TermLookupError,
    ConfigurationError
)
from .similarity_matrix import SimilarityMatrix, as_similarity_matrix
from .lookup_cache import LookupCache
from .providers import (
    BaseAnnotationProvider,
    BaseSimilarityProvider,
    HTTPSimilarityProvider,
    InMemoryAnnotationProvider,
    InMemorySimilarityProvider,
    SQLiteAnnotationProvider,
    SQLiteSimilarityProvider
)
from .clusterers import AgglomerativeClusterer, BaseClusterer, Dendrogram, ScipyLinkageClusterer

# Stages
from .stage_1_matrix_builder import MatrixBuilder, calculate_sim_matrix
from .stage_2_score_resolver import ScoreResolver, term_uniqueness
from .stage_3_cluster_reducer import ClusterReducer, Partition
from .stage_4_representative_selector import RepresentativeSelector
from .stage_5_result_assembler import ReducedAssignment, ResultAssembler, TermAssignment

# Main entry points
from .term_reduction_orchestrator import TermReductionOrchestrator, create_clusterer, reduce_sim_matrix

__all__ = [
    # Errors
    'TermReductionError',
    'DimensionMismatchError',
    'MissingScoreError',
    'InvalidThresholdError',
    'TermLookupError',
    'ConfigurationError',
    # Data
    'SimilarityMatrix',
    'as_similarity_matrix',
    'LookupCache',
    # Providers
    'BaseAnnotationProvider',
    'BaseSimilarityProvider',
    'HTTPSimilarityProvider',
    'InMemoryAnnotationProvider',
    'InMemorySimilarityProvider',
    'SQLiteAnnotationProvider',
    'SQLiteSimilarityProvider',
    # Clusterers
    'AgglomerativeClusterer',
    'BaseClusterer',
    'Dendrogram',
    'ScipyLinkageClusterer',
    # Stages
    'MatrixBuilder',
    'ScoreResolver',
    'ClusterReducer',
    'Partition',
    'RepresentativeSelector',
    'ResultAssembler',
    'ReducedAssignment',
    'TermAssignment',
    'term_uniqueness',
    # Entry points
    'calculate_sim_matrix',
    'reduce_sim_matrix',
    'create_clusterer',
    'TermReductionOrchestrator'
]
