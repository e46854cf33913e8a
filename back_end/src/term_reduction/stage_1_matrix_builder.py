"""
Matrix Builder - Stage 1

Assembles a SimilarityMatrix for a set of term identifiers by asking an
external similarity collaborator for every unordered pair.

Pair lookups are independent and may run on a thread pool; results are
written back in fixed (row, column) order, so the matrix does not depend on
completion order. A caller-owned LookupCache, when given, is consulted before
each lookup and receives every successful lookup. Failures surface as
TermLookupError; nothing is retried or defaulted to 0.
"""

import math
import logging
import concurrent.futures
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from .exceptions import TermLookupError
from .lookup_cache import LookupCache
from .providers.base_provider import BaseSimilarityProvider
from .similarity_matrix import DEFAULT_TOLERANCE, SimilarityMatrix

logger = logging.getLogger(__name__)

Pair = Tuple[int, int]


class MatrixBuilder:
    """
    Builds similarity matrices from pairwise lookups.

    Features:
    - Optional parallel lookups (ThreadPoolExecutor)
    - Caller-owned lookup cache
    - Deterministic label order (lexical)
    """

    def __init__(
        self,
        provider: BaseSimilarityProvider,
        cache: Optional[LookupCache] = None,
        max_workers: int = 1,
        show_progress: bool = False,
        tolerance: float = DEFAULT_TOLERANCE
    ):
        """
        Initialize matrix builder.

        Args:
            provider: Similarity collaborator
            cache: Caller-owned lookup cache (optional)
            max_workers: Parallel lookups; forced to 1 for providers that are not thread safe
            show_progress: Show a tqdm progress bar while looking up pairs
            tolerance: Validation tolerance passed to SimilarityMatrix
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.provider = provider
        self.cache = cache
        self.max_workers = max_workers if getattr(provider, 'thread_safe', True) else 1
        self.show_progress = show_progress
        self.tolerance = tolerance

        if self.max_workers != max_workers:
            logger.info(f"{provider.__class__.__name__} is not thread safe, using serial lookups")

    def build(self, labels: Iterable[str], ontology: Optional[str] = None) -> SimilarityMatrix:
        """
        Build the similarity matrix for a set of labels.

        Args:
            labels: Term identifiers (duplicates are ignored)
            ontology: Ontology context forwarded to the provider

        Returns:
            SimilarityMatrix with labels in lexical order

        Raises:
            TermLookupError: If any pairwise lookup fails
            DimensionMismatchError: If the provider returns inconsistent values
        """
        labels = sorted({str(label) for label in labels})
        n = len(labels)

        pairs = [(i, j) for i in range(n) for j in range(i + 1, n)]
        values: Dict[Pair, float] = {}
        pending: List[Pair] = []

        for i, j in pairs:
            cached = self.cache.get(labels[i], labels[j], ontology) if self.cache is not None else None
            if cached is None:
                pending.append((i, j))
            else:
                values[(i, j)] = cached

        logger.info(
            f"Building {n}x{n} similarity matrix: {len(pairs)} pairs, "
            f"{len(pairs) - len(pending)} cached, {len(pending)} to look up"
        )

        if pending:
            values.update(self._lookup_pairs(labels, pending, ontology))

        array = np.eye(n, dtype=float)
        for i, j in pairs:
            array[i, j] = values[(i, j)]
            array[j, i] = values[(i, j)]

        return SimilarityMatrix(array, labels, tolerance=self.tolerance)

    def _lookup_pairs(self, labels: List[str], pending: List[Pair], ontology: Optional[str]) -> Dict[Pair, float]:
        results: Dict[Pair, float] = {}

        with tqdm(total=len(pending), desc="Similarity lookups", unit="pair",
                  disable=not self.show_progress) as pbar:
            if self.max_workers == 1 or len(pending) == 1:
                for i, j in pending:
                    results[(i, j)] = self._lookup_one(labels[i], labels[j], ontology)
                    pbar.update(1)
                return results

            with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                future_to_pair = {
                    executor.submit(self._lookup_one, labels[i], labels[j], ontology): (i, j)
                    for i, j in pending
                }

                try:
                    for future in concurrent.futures.as_completed(future_to_pair):
                        results[future_to_pair[future]] = future.result()
                        pbar.update(1)
                except Exception:
                    for future in future_to_pair:
                        future.cancel()
                    raise

        return results

    def _lookup_one(self, a: str, b: str, ontology: Optional[str]) -> float:
        try:
            value = self.provider.similarity(a, b, ontology)
        except TermLookupError:
            raise
        except (LookupError, OSError) as e:
            logger.error(f"Similarity lookup failed for ({a}, {b}): {e}")
            raise TermLookupError(f"Similarity lookup failed for ({a}, {b}): {e}", labels=(a, b)) from e

        try:
            value = float(value)
        except (TypeError, ValueError):
            raise TermLookupError(f"Non-numeric similarity {value!r} for ({a}, {b})", labels=(a, b)) from None

        if math.isnan(value) or not -self.tolerance <= value <= 1.0 + self.tolerance:
            raise TermLookupError(f"Similarity {value} for ({a}, {b}) is outside [0, 1]", labels=(a, b))

        if self.cache is not None:
            self.cache.put(a, b, value, ontology)
        return value


def calculate_sim_matrix(
    labels: Iterable[str],
    provider: BaseSimilarityProvider,
    ontology: Optional[str] = None,
    *,
    cache: Optional[LookupCache] = None,
    max_workers: int = 1,
    show_progress: bool = False,
    tolerance: float = DEFAULT_TOLERANCE
) -> SimilarityMatrix:
    """
    Build a similarity matrix for `labels` from pairwise provider lookups.

    See MatrixBuilder for details.
    """
    builder = MatrixBuilder(
        provider,
        cache=cache,
        max_workers=max_workers,
        show_progress=show_progress,
        tolerance=tolerance
    )
    return builder.build(labels, ontology)
