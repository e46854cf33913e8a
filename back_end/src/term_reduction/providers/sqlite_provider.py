"""
SQLite Providers - annotation and precomputed similarity lookups

Expected schema:

    terms(term_id TEXT PRIMARY KEY, name TEXT, size INTEGER)
    term_ancestors(term_id TEXT, ancestor_id TEXT)
    term_similarity(term1 TEXT, term2 TEXT, ontology TEXT, score REAL)

term_similarity rows may be stored in either order; the lookup checks both.
Rows with an empty ontology apply to every ontology.
"""

import sqlite3
import logging
from typing import FrozenSet, Optional

from ..exceptions import TermLookupError
from .base_provider import BaseAnnotationProvider, BaseSimilarityProvider

logger = logging.getLogger(__name__)


class SQLiteAnnotationProvider(BaseAnnotationProvider):
    """
    Annotation collaborator backed by an annotation database.

    This class only reads; it never writes to the connection.
    """

    def __init__(self, db_connection: sqlite3.Connection):
        """
        Args:
            db_connection: SQLite database connection object
        """
        self.db = db_connection
        self.db.row_factory = sqlite3.Row

    def _fetch_term(self, label: str) -> sqlite3.Row:
        try:
            cursor = self.db.cursor()
            cursor.execute("""
                SELECT term_id, name, size
                FROM terms WHERE term_id = ?
            """, (label,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Annotation query failed for '{label}': {e}")
            raise TermLookupError(f"Annotation lookup failed for '{label}': {e}", labels=(label,)) from e

        if row is None:
            raise TermLookupError(f"Term '{label}' not found in annotation database", labels=(label,))
        return row

    def display_name(self, label: str) -> str:
        row = self._fetch_term(label)
        if row['name'] is None:
            raise TermLookupError(f"Term '{label}' has no name", labels=(label,))
        return str(row['name'])

    def term_size(self, label: str) -> int:
        row = self._fetch_term(label)
        if row['size'] is None:
            raise TermLookupError(f"Term '{label}' has no size", labels=(label,))
        return int(row['size'])

    def ancestors(self, label: str) -> FrozenSet[str]:
        self._fetch_term(label)
        try:
            cursor = self.db.cursor()
            cursor.execute("""
                SELECT ancestor_id FROM term_ancestors
                WHERE term_id = ? AND ancestor_id != term_id
            """, (label,))
            return frozenset(row['ancestor_id'] for row in cursor.fetchall())
        except sqlite3.Error as e:
            logger.error(f"Ancestor query failed for '{label}': {e}")
            raise TermLookupError(f"Ancestor lookup failed for '{label}': {e}", labels=(label,)) from e


class SQLiteSimilarityProvider(BaseSimilarityProvider):
    """Similarity collaborator reading precomputed scores from term_similarity."""

    # sqlite3 connections are bound to their creating thread
    thread_safe = False

    def __init__(self, db_connection: sqlite3.Connection):
        self.db = db_connection
        self.db.row_factory = sqlite3.Row

    def similarity(self, a: str, b: str, ontology: Optional[str] = None) -> float:
        if a == b:
            return 1.0

        try:
            cursor = self.db.cursor()
            cursor.execute("""
                SELECT score FROM term_similarity
                WHERE ((term1 = ? AND term2 = ?) OR (term1 = ? AND term2 = ?))
                  AND (ontology = ? OR ontology IS NULL OR ontology = '')
                ORDER BY CASE WHEN ontology = ? THEN 0 ELSE 1 END
                LIMIT 1
            """, (a, b, b, a, ontology or '', ontology or ''))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Similarity query failed for ({a}, {b}): {e}")
            raise TermLookupError(f"Similarity lookup failed for ({a}, {b}): {e}", labels=(a, b)) from e

        if row is None or row['score'] is None:
            raise TermLookupError(
                f"No precomputed similarity for ({a}, {b}) in ontology {ontology!r}", labels=(a, b)
            )
        return float(row['score'])
