"""
Similarity Matrix - validated, read-only pairwise similarity values

A SimilarityMatrix is square, symmetric, has a unit diagonal and holds values
in [0, 1]. Rows and columns share one ordered tuple of unique labels.
Every check failure raises DimensionMismatchError with enough context
(shape, offending labels or pair) to diagnose the input.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .exceptions import DimensionMismatchError

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-8


class SimilarityMatrix:
    """
    Immutable similarity matrix indexed by label.

    Attributes:
        labels: Row/column labels in matrix order
        values: Read-only numpy array of shape (n, n)
    """

    def __init__(
        self,
        values,
        labels: Sequence[str],
        tolerance: float = DEFAULT_TOLERANCE
    ):
        """
        Validate and wrap a square similarity array.

        Args:
            values: Array-like of shape (n, n)
            labels: n unique labels in row/column order
            tolerance: Allowed absolute deviation for symmetry, range and diagonal checks

        Raises:
            DimensionMismatchError: If the array or labels violate any matrix invariant
        """
        labels = tuple(str(label) for label in labels)
        try:
            array = np.array(values, dtype=float)
        except (TypeError, ValueError) as e:
            raise DimensionMismatchError(f"Similarity values are not numeric: {e}") from e

        if array.size == 0 and not labels:
            array = np.zeros((0, 0), dtype=float)

        _validate(array, labels, tolerance)

        # Clip tiny numeric excursions and force exact symmetry / unit diagonal
        array = np.clip((array + array.T) / 2.0, 0.0, 1.0)
        np.fill_diagonal(array, 1.0)
        array.setflags(write=False)

        self._values = array
        self._labels = labels
        self._index = {label: i for i, label in enumerate(labels)}
        self.tolerance = tolerance

    # === CONSTRUCTORS ===

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, tolerance: float = DEFAULT_TOLERANCE) -> "SimilarityMatrix":
        """
        Build from a square DataFrame whose index and columns hold the labels.

        Columns are aligned to the index order; a DataFrame whose columns are
        not the same label set as its index is rejected.
        """
        index_labels = [str(x) for x in df.index]
        column_labels = [str(x) for x in df.columns]

        if df.shape[0] != df.shape[1]:
            raise DimensionMismatchError(f"Similarity matrix must be square, got shape {df.shape}")

        if set(index_labels) != set(column_labels):
            only_rows = sorted(set(index_labels) - set(column_labels))
            only_cols = sorted(set(column_labels) - set(index_labels))
            raise DimensionMismatchError(
                f"Row and column labels differ: rows only={only_rows}, columns only={only_cols}"
            )

        aligned = df.copy()
        aligned.index = index_labels
        aligned.columns = column_labels
        aligned = aligned.loc[index_labels, index_labels]
        return cls(aligned.to_numpy(dtype=float), index_labels, tolerance=tolerance)

    @classmethod
    def from_pairs(
        cls,
        labels: Iterable[str],
        pairs: Mapping[Tuple[str, str], float],
        tolerance: float = DEFAULT_TOLERANCE
    ) -> "SimilarityMatrix":
        """
        Build from a mapping of (label_a, label_b) -> similarity.

        Each unordered pair only needs to appear once. Missing pairs are an
        error; the diagonal defaults to 1.0.
        """
        labels = list(dict.fromkeys(str(label) for label in labels))
        index = {label: i for i, label in enumerate(labels)}
        n = len(labels)
        array = np.full((n, n), np.nan)
        np.fill_diagonal(array, 1.0)

        for (a, b), value in pairs.items():
            a, b = str(a), str(b)
            if a not in index or b not in index:
                continue
            i, j = index[a], index[b]
            if not np.isnan(array[i, j]) and i != j and abs(array[i, j] - value) > tolerance:
                raise DimensionMismatchError(
                    f"Conflicting similarities for pair ({a}, {b}): {array[i, j]} vs {value}"
                )
            array[i, j] = value
            array[j, i] = value

        return cls(array, labels, tolerance=tolerance)

    # === ACCESSORS ===

    @property
    def labels(self) -> Tuple[str, ...]:
        return self._labels

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def shape(self) -> Tuple[int, int]:
        return self._values.shape

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, label) -> bool:
        return label in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SimilarityMatrix):
            return NotImplemented
        return self._labels == other._labels and np.array_equal(self._values, other._values)

    def __hash__(self) -> int:
        return hash((self._labels, self._values.tobytes()))

    def __repr__(self) -> str:
        return f"SimilarityMatrix(n={len(self)})"

    def index_of(self, label: str) -> int:
        """Row index of a label."""
        try:
            return self._index[label]
        except KeyError:
            raise DimensionMismatchError(f"Label '{label}' is not in the similarity matrix") from None

    def similarity(self, a: str, b: str) -> float:
        """Similarity between two labels."""
        return float(self._values[self.index_of(a), self.index_of(b)])

    def row(self, label: str) -> Dict[str, float]:
        """All similarities of one label, keyed by label."""
        i = self.index_of(label)
        return {other: float(v) for other, v in zip(self._labels, self._values[i])}

    def distances(self) -> np.ndarray:
        """Distance array d = 1 - sim (writable copy)."""
        return 1.0 - self._values

    # === DERIVED MATRICES ===

    def subset(self, labels: Iterable[str]) -> "SimilarityMatrix":
        """
        Restrict to the given labels, in the order given.

        Raises:
            DimensionMismatchError: If any label is not in the matrix
        """
        labels = list(dict.fromkeys(labels))
        missing = [label for label in labels if label not in self._index]
        if missing:
            raise DimensionMismatchError(f"Labels not in similarity matrix: {sorted(missing)}")

        idx = [self._index[label] for label in labels]
        return SimilarityMatrix(self._values[np.ix_(idx, idx)], labels, tolerance=self.tolerance)

    def reorder(self, labels: Sequence[str]) -> "SimilarityMatrix":
        """Same matrix with rows/columns permuted to `labels` (must be a permutation)."""
        if len(labels) != len(self._labels) or set(labels) != set(self._labels):
            raise DimensionMismatchError(
                f"Reorder requires a permutation of the {len(self._labels)} matrix labels"
            )
        return self.subset(labels)

    def sorted(self) -> "SimilarityMatrix":
        """Matrix with labels in lexical order."""
        return self.reorder(sorted(self._labels))

    def to_dataframe(self) -> pd.DataFrame:
        """Copy of the matrix as a labelled DataFrame."""
        return pd.DataFrame(self._values.copy(), index=list(self._labels), columns=list(self._labels))


def _validate(array: np.ndarray, labels: Tuple[str, ...], tolerance: float) -> None:
    """Check every SimilarityMatrix invariant, raising DimensionMismatchError on the first failure."""
    if array.ndim != 2 or array.shape[0] != array.shape[1]:
        raise DimensionMismatchError(f"Similarity matrix must be square, got shape {array.shape}")

    n = array.shape[0]
    if len(labels) != n:
        raise DimensionMismatchError(
            f"Got {len(labels)} labels for a {n}x{n} similarity matrix"
        )

    if len(set(labels)) != n:
        duplicates = sorted(label for label, count in Counter(labels).items() if count > 1)
        raise DimensionMismatchError(f"Duplicate labels in similarity matrix: {duplicates}")

    if n == 0:
        return

    missing = np.argwhere(~np.isfinite(array))
    if len(missing):
        pairs = _describe_pairs(missing, labels)
        raise DimensionMismatchError(
            f"Similarity matrix has {len(missing)} missing/non-finite entries, e.g. {pairs}"
        )

    out_of_range = np.argwhere((array < -tolerance) | (array > 1.0 + tolerance))
    if len(out_of_range):
        pairs = _describe_pairs(out_of_range, labels)
        raise DimensionMismatchError(f"Similarity values outside [0, 1] at {pairs}")

    asymmetric = np.argwhere(np.abs(array - array.T) > tolerance)
    if len(asymmetric):
        pairs = _describe_pairs(asymmetric, labels)
        raise DimensionMismatchError(f"Similarity matrix is not symmetric at {pairs}")

    bad_diagonal = np.flatnonzero(np.abs(np.diag(array) - 1.0) > tolerance)
    if len(bad_diagonal):
        raise DimensionMismatchError(
            f"Similarity matrix diagonal must be 1.0; offending labels: "
            f"{[labels[i] for i in bad_diagonal[:5]]}"
        )


def _describe_pairs(positions: np.ndarray, labels: Sequence[str], limit: int = 5) -> List[Tuple[str, str]]:
    return [(labels[i], labels[j]) for i, j in positions[:limit]]


def as_similarity_matrix(matrix, tolerance: Optional[float] = None) -> SimilarityMatrix:
    """
    Coerce a SimilarityMatrix or labelled DataFrame into a SimilarityMatrix.

    Raises:
        DimensionMismatchError: If the input cannot be interpreted as a labelled square matrix
    """
    if isinstance(matrix, SimilarityMatrix):
        return matrix
    if isinstance(matrix, pd.DataFrame):
        return SimilarityMatrix.from_dataframe(
            matrix, tolerance=DEFAULT_TOLERANCE if tolerance is None else tolerance
        )
    raise DimensionMismatchError(
        f"Expected a SimilarityMatrix or labelled pandas DataFrame, got {type(matrix).__name__}"
    )
