"""
Score Resolver - Stage 2

Produces one importance score per label (higher is better):

1. Provided scores, which must cover every label
2. Otherwise uniqueness: u(l) = 1 - mean(sim(l, l') for l' != l), 1.0 for a lone label
3. Otherwise term size from the annotation collaborator, when requested

Scores are not normalized; they are only compared within one resolution.
"""

import math
import numbers
import logging
from typing import Callable, Dict, Iterable, Mapping, Optional

import numpy as np

from .exceptions import ConfigurationError, DimensionMismatchError, MissingScoreError, TermLookupError
from .similarity_matrix import SimilarityMatrix

logger = logging.getLogger(__name__)

SCORE_METHODS = ('uniqueness', 'size')

SizeLookup = Callable[[str], int]


def term_uniqueness(matrix: SimilarityMatrix) -> Dict[str, float]:
    """
    Uniqueness of every label in a similarity matrix.

    Labels that are equally similar to everything get identical scores; the
    representative tie-break then falls back to label order.
    """
    n = len(matrix)
    if n == 0:
        return {}
    if n == 1:
        return {matrix.labels[0]: 1.0}

    values = matrix.values
    mean_other = (values.sum(axis=1) - np.diag(values)) / (n - 1)
    return {label: float(1.0 - mean) for label, mean in zip(matrix.labels, mean_other)}


class ScoreResolver:
    """
    Resolves label scores from provided values or fallback metrics.

    Args:
        method: Fallback when no scores are provided ('uniqueness' or 'size')
    """

    def __init__(self, method: str = 'uniqueness'):
        self.method = _check_method(method)

    def resolve(
        self,
        labels: Iterable[str],
        provided_scores: Optional[Mapping[str, float]] = None,
        matrix: Optional[SimilarityMatrix] = None,
        size_lookup: Optional[SizeLookup] = None,
        method: Optional[str] = None
    ) -> Dict[str, float]:
        """
        Resolve a score for every label.

        Args:
            labels: Labels needing a score
            provided_scores: Caller scores (optional)
            matrix: Similarity matrix, required for uniqueness scoring
            size_lookup: label -> term size, required for size scoring
            method: Override of the fallback method for this call

        Returns:
            Dict of label -> score covering exactly `labels`

        Raises:
            MissingScoreError: If provided_scores misses any label
            TermLookupError: If size scoring cannot resolve a label
            DimensionMismatchError: If uniqueness is needed and labels are not all in the matrix
        """
        labels = sorted(set(labels))
        method = _check_method(method or self.method)

        if provided_scores is not None:
            return self._from_provided(labels, provided_scores)

        if method == 'size':
            if size_lookup is not None:
                return self._from_sizes(labels, size_lookup)
            logger.warning("Size scoring requested without a size lookup, falling back to uniqueness")

        if matrix is None:
            raise DimensionMismatchError("Uniqueness scoring requires a similarity matrix")

        scores = term_uniqueness(matrix.subset(labels))
        logger.info(f"Resolved uniqueness scores for {len(scores)} labels")
        return scores

    def _from_provided(self, labels, provided_scores: Mapping[str, float]) -> Dict[str, float]:
        scores: Dict[str, float] = {}
        missing = []

        for label in labels:
            value = provided_scores.get(label)
            try:
                value = float(value)
            except (TypeError, ValueError):
                missing.append(label)
                continue
            if not math.isfinite(value):
                missing.append(label)
                continue
            scores[label] = value

        if missing:
            logger.error(f"Provided scores miss {len(missing)} of {len(labels)} labels")
            raise MissingScoreError(missing)

        extra = set(provided_scores) - set(labels)
        if extra:
            logger.debug(f"Ignoring {len(extra)} scores for labels outside the matrix")

        return scores

    def _from_sizes(self, labels, size_lookup: SizeLookup) -> Dict[str, float]:
        scores: Dict[str, float] = {}
        failed = []

        for label in labels:
            try:
                size = size_lookup(label)
            except LookupError as e:
                logger.debug(f"Size lookup failed for '{label}': {e}")
                failed.append(label)
                continue

            if not _is_valid_size(size):
                logger.debug(f"Invalid size {size!r} for '{label}'")
                failed.append(label)
                continue
            scores[label] = float(size)

        if failed:
            logger.error(f"Term size lookup failed for {len(failed)} labels")
            raise TermLookupError(
                f"Could not resolve term size for {len(failed)} label(s): {', '.join(failed[:10])}",
                labels=failed
            )

        logger.info(f"Resolved size scores for {len(scores)} labels")
        return scores


def _check_method(method: str) -> str:
    if method not in SCORE_METHODS:
        raise ConfigurationError(f"Unknown score method '{method}'. Options: {list(SCORE_METHODS)}")
    return method


def _is_valid_size(size) -> bool:
    """Non-negative whole number; integral floats (e.g. 10.0 from pandas) are accepted."""
    if isinstance(size, bool) or not isinstance(size, numbers.Real):
        return False
    value = float(size)
    return value.is_integer() and value >= 0
