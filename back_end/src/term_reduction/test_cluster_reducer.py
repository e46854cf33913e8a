"""
Tests for Stage 3: ClusterReducer / Partition / cut_dendrogram
"""

import math

import numpy as np
import pandas as pd
import pytest
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import squareform

from .clusterers import AgglomerativeClusterer, ScipyLinkageClusterer
from .exceptions import DimensionMismatchError, InvalidThresholdError
from .similarity_matrix import SimilarityMatrix
from .stage_3_cluster_reducer import CUT_TOLERANCE, ClusterReducer, Partition, cut_dendrogram, validate_threshold


@pytest.fixture
def abc_matrix():
    return SimilarityMatrix(
        [[1.0, 0.9, 0.2], [0.9, 1.0, 0.2], [0.2, 0.2, 1.0]],
        ["A", "B", "C"]
    )


@pytest.fixture
def random_matrix():
    """Twelve labels with strictly positive random similarities."""
    rng = np.random.default_rng(7)
    n = 12
    values = rng.uniform(0.05, 0.95, size=(n, n))
    values = (values + values.T) / 2
    np.fill_diagonal(values, 1.0)
    labels = [f"GO:{i:04d}" for i in range(n)]
    return SimilarityMatrix(values, labels)


class TestValidateThreshold:
    """Test suite for threshold validation."""

    @pytest.mark.parametrize("threshold", [0.0, -0.1, 1.01, math.nan, math.inf, "0.7", None, True])
    def test_invalid(self, threshold):
        with pytest.raises(InvalidThresholdError) as exc_info:
            validate_threshold(threshold)
        assert exc_info.value.threshold is threshold

    @pytest.mark.parametrize("threshold", [1e-9, 0.5, 1, 1.0])
    def test_valid(self, threshold):
        assert validate_threshold(threshold) == float(threshold)

    def test_reduce_rejects_bad_threshold(self, abc_matrix):
        """Test the error is raised before any clustering happens."""
        with pytest.raises(InvalidThresholdError, match="1.5"):
            ClusterReducer().reduce(abc_matrix, 1.5)


class TestClusterReducer:
    """Test suite for ClusterReducer."""

    @pytest.fixture
    def reducer(self):
        return ClusterReducer()

    def test_worked_example(self, reducer, abc_matrix):
        """Test {A, B} merge at 0.7 and C stays alone."""
        partition = reducer.reduce(abc_matrix, 0.7)

        assert partition.as_sets() == {frozenset({"A", "B"}), frozenset({"C"})}
        assert partition["A"] == partition["B"] == 1
        assert partition["C"] == 2
        assert partition.num_clusters == 2

    def test_worked_example_strict_threshold(self, reducer, abc_matrix):
        """Test no merges at 0.95."""
        partition = reducer.reduce(abc_matrix, 0.95)
        assert partition.as_sets() == {frozenset({"A"}), frozenset({"B"}), frozenset({"C"})}

    def test_threshold_equal_to_similarity_merges(self, reducer, abc_matrix):
        """Test a pair exactly at the threshold is merged."""
        partition = reducer.reduce(abc_matrix, 0.9)
        assert partition["A"] == partition["B"]

    def test_partition_totality(self, reducer, random_matrix):
        """Test every label lands in exactly one cluster."""
        for threshold in (0.1, 0.3, 0.5, 0.7, 0.9):
            partition = reducer.reduce(random_matrix, threshold)
            assert set(partition) == set(random_matrix.labels)
            members = [label for cluster in partition.clusters.values() for label in cluster]
            assert sorted(members) == sorted(random_matrix.labels)

    def test_threshold_monotonicity(self, reducer, random_matrix):
        """Test a stricter threshold never yields fewer clusters."""
        thresholds = np.linspace(0.01, 1.0, 25)
        counts = [reducer.reduce(random_matrix, float(t)).num_clusters for t in thresholds]
        assert counts == sorted(counts)

    def test_clusters_are_nested_across_thresholds(self, reducer, random_matrix):
        """Test clusters at a stricter threshold refine the looser ones."""
        loose = reducer.reduce(random_matrix, 0.4)
        strict = reducer.reduce(random_matrix, 0.8)
        for cluster in strict.clusters.values():
            assert len({loose[label] for label in cluster}) == 1

    def test_complete_linkage_guarantee(self, reducer, random_matrix):
        """Test every pair inside a cluster meets the threshold."""
        threshold = 0.6
        partition = reducer.reduce(random_matrix, threshold)
        for cluster in partition.clusters.values():
            for a in cluster:
                for b in cluster:
                    assert random_matrix.similarity(a, b) >= threshold - 1e-12

    def test_order_independence(self, reducer, random_matrix):
        """Test shuffled label order gives the identical partition."""
        expected = reducer.reduce(random_matrix, 0.6)
        rng = np.random.default_rng(3)
        for _ in range(5):
            order = list(rng.permutation(random_matrix.labels))
            partition = reducer.reduce(random_matrix.reorder(order), 0.6)
            assert dict(partition) == dict(expected)

    def test_threshold_one_gives_singletons(self, reducer, random_matrix):
        partition = reducer.reduce(random_matrix, 1.0)
        assert partition.num_clusters == len(random_matrix)

    def test_tiny_threshold_gives_one_cluster(self, reducer, random_matrix):
        partition = reducer.reduce(random_matrix, 1e-9)
        assert partition.num_clusters == 1
        assert partition.members(1) == random_matrix.labels

    def test_identical_terms_merge_at_threshold_one(self, reducer):
        """Test similarity 1.0 pairs still merge at the strictest threshold."""
        matrix = SimilarityMatrix([[1.0, 1.0], [1.0, 1.0]], ["x", "y"])
        assert reducer.reduce(matrix, 1.0).num_clusters == 1

    def test_near_identical_terms_split_at_threshold_one(self, reducer):
        """Test threshold 1.0 keeps apart terms whose similarity is just below 1."""
        sim = 1.0 - 1e-13
        matrix = SimilarityMatrix([[1.0, sim], [sim, 1.0]], ["x", "y"])
        assert reducer.reduce(matrix, 1.0).num_clusters == 2

    def test_single_label(self, reducer):
        partition = reducer.reduce(SimilarityMatrix([[1.0]], ["A"]), 0.7)
        assert dict(partition) == {"A": 1}
        assert partition.metadata['silhouette_score'] is None

    def test_empty_matrix(self, reducer):
        partition = reducer.reduce(SimilarityMatrix([], []), 0.7)
        assert len(partition) == 0
        assert partition.num_clusters == 0

    def test_cluster_ids_follow_smallest_label(self, reducer):
        """Test cluster ids are numbered by each cluster's smallest label."""
        matrix = SimilarityMatrix.from_pairs(
            ["z", "b", "y", "a"],
            {("z", "a"): 0.9, ("b", "y"): 0.9, ("z", "b"): 0.1,
             ("z", "y"): 0.1, ("a", "b"): 0.1, ("a", "y"): 0.1}
        )
        partition = reducer.reduce(matrix, 0.5)
        assert partition["a"] == partition["z"] == 1
        assert partition["b"] == partition["y"] == 2

    def test_accepts_dataframe(self, reducer, abc_matrix):
        partition = reducer.reduce(abc_matrix.to_dataframe(), 0.7)
        assert partition.num_clusters == 2

    def test_rejects_asymmetric_dataframe(self, reducer):
        df = pd.DataFrame([[1.0, 0.9], [0.2, 1.0]], index=["A", "B"], columns=["A", "B"])
        with pytest.raises(DimensionMismatchError, match="symmetric"):
            reducer.reduce(df, 0.7)

    def test_metadata(self, reducer, random_matrix):
        """Test metadata and silhouette score."""
        partition = reducer.reduce(random_matrix, 0.5)
        metadata = partition.metadata

        assert metadata['algorithm'] == 'agglomerative'
        assert metadata['num_labels'] == 12
        assert metadata['num_clusters'] == partition.num_clusters
        assert metadata['cluster_size_stats']['max'] == max(len(c) for c in partition.clusters.values())
        if 2 <= partition.num_clusters <= 11:
            assert -1.0 <= metadata['silhouette_score'] <= 1.0

    def test_quality_metrics_can_be_disabled(self, abc_matrix):
        partition = ClusterReducer(compute_quality_metrics=False).reduce(abc_matrix, 0.7)
        assert partition.metadata['silhouette_score'] is None

    def test_scipy_clusterer(self, abc_matrix):
        """Test the scipy strategy plugs into the reducer."""
        partition = ClusterReducer(ScipyLinkageClusterer()).reduce(abc_matrix, 0.7)
        assert partition.as_sets() == {frozenset({"A", "B"}), frozenset({"C"})}
        assert partition.metadata['algorithm'] == 'scipy'


class TestCutDendrogram:
    """Test suite for cutting a dendrogram into flat clusters."""

    @pytest.mark.parametrize("threshold", [0.2, 0.5, 0.7, 0.9])
    def test_matches_scipy_fcluster(self, random_matrix, threshold):
        """Test the cut groups labels exactly as scipy's distance criterion does."""
        dendrogram = AgglomerativeClusterer('complete').build_dendrogram(random_matrix)
        assert dendrogram.labels == random_matrix.labels

        distances = random_matrix.distances()
        np.fill_diagonal(distances, 0.0)
        z = linkage(squareform(distances, checks=False), method='complete')
        expected_ids = fcluster(z, t=1.0 - threshold + CUT_TOLERANCE, criterion='distance')

        expected, actual = {}, {}
        for label, flat_id in zip(random_matrix.labels, expected_ids):
            expected.setdefault(flat_id, set()).add(label)
        for label, cluster_id in cut_dendrogram(dendrogram, 1.0 - threshold).items():
            actual.setdefault(cluster_id, set()).add(label)

        assert {frozenset(m) for m in actual.values()} == {frozenset(m) for m in expected.values()}

    def test_ids_numbered_by_smallest_label(self, random_matrix):
        dendrogram = AgglomerativeClusterer('complete').build_dendrogram(random_matrix)
        assignments = cut_dendrogram(dendrogram, 0.5)

        first_seen = []
        for label in dendrogram.labels:
            if assignments[label] not in first_seen:
                first_seen.append(assignments[label])
        assert first_seen == list(range(1, len(first_seen) + 1))

    def test_single_label(self):
        dendrogram = AgglomerativeClusterer('complete').build_dendrogram(SimilarityMatrix([[1.0]], ["A"]))
        assert cut_dendrogram(dendrogram, 0.3) == {"A": 1}


class TestPartition:
    """Test suite for the Partition mapping."""

    def test_mapping_interface(self):
        partition = Partition({"b": 1, "a": 1, "c": 2}, threshold=0.7, linkage="complete")

        assert list(partition) == ["a", "b", "c"]
        assert len(partition) == 3
        assert partition.clusters == {1: ("a", "b"), 2: ("c",)}
        assert partition.cluster_ids == (1, 2)
        assert partition.members(2) == ("c",)

    def test_read_only(self):
        partition = Partition({"a": 1}, threshold=0.7, linkage="complete")
        with pytest.raises(TypeError):
            partition["a"] = 2
