"""
Tests for Similarity and Annotation Providers

This module tests the in-memory, HTTP and SQLite collaborators.
"""

import sqlite3

import pytest
import requests
from unittest.mock import Mock, patch

from .exceptions import TermLookupError
from .providers import (
    HTTPSimilarityProvider,
    InMemoryAnnotationProvider,
    InMemorySimilarityProvider,
    SQLiteAnnotationProvider,
    SQLiteSimilarityProvider
)


class TestInMemorySimilarityProvider:
    """Test suite for InMemorySimilarityProvider."""

    def test_symmetric_lookup(self):
        """Test (a, b) also answers (b, a)."""
        provider = InMemorySimilarityProvider({("GO:1", "GO:2"): 0.4})
        assert provider.similarity("GO:1", "GO:2") == 0.4
        assert provider.similarity("GO:2", "GO:1") == 0.4
        assert provider.calls == 2

    def test_self_similarity(self):
        """Test a term is fully similar to itself."""
        provider = InMemorySimilarityProvider()
        assert provider.similarity("GO:1", "GO:1") == 1.0

    def test_ontology_specific_scores(self):
        """Test per-ontology scores win over the shared ones."""
        provider = InMemorySimilarityProvider(
            {("GO:1", "GO:2"): 0.4},
            by_ontology={"MF": {("GO:1", "GO:2"): 0.7}}
        )
        assert provider.similarity("GO:1", "GO:2", "MF") == 0.7
        assert provider.similarity("GO:1", "GO:2", "BP") == 0.4

    def test_missing_pair(self):
        """Test missing pairs raise instead of defaulting."""
        provider = InMemorySimilarityProvider({("GO:1", "GO:2"): 0.4})
        with pytest.raises(TermLookupError) as exc_info:
            provider.similarity("GO:1", "GO:3")
        assert exc_info.value.labels == ("GO:1", "GO:3")


class TestInMemoryAnnotationProvider:
    """Test suite for InMemoryAnnotationProvider."""

    @pytest.fixture
    def provider(self):
        return InMemoryAnnotationProvider(
            names={"GO:1": "apoptosis"},
            sizes={"GO:1": 12},
            ancestors={"GO:1": ["GO:0"]}
        )

    def test_lookups(self, provider):
        """Test all three annotation lookups."""
        assert provider.display_name("GO:1") == "apoptosis"
        assert provider.term_size("GO:1") == 12
        assert provider.ancestors("GO:1") == frozenset({"GO:0"})

    def test_unknown_term(self, provider):
        """Test unknown terms raise TermLookupError (a LookupError)."""
        with pytest.raises(LookupError):
            provider.display_name("GO:9")
        with pytest.raises(TermLookupError):
            provider.term_size("GO:9")
        with pytest.raises(TermLookupError):
            provider.ancestors("GO:9")


class TestHTTPSimilarityProvider:
    """Test suite for HTTPSimilarityProvider."""

    @pytest.fixture
    def provider(self):
        return HTTPSimilarityProvider("http://sim.test/", measure="Lin", timeout=5)

    def _response(self, payload):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = payload
        return response

    @patch('requests.post')
    def test_similarity_request(self, mock_post, provider):
        """Test the request body and parsed response."""
        mock_post.return_value = self._response({"similarity": 0.42})

        assert provider.similarity("GO:1", "GO:2", "BP") == 0.42
        mock_post.assert_called_once_with(
            "http://sim.test/similarity",
            json={"term1": "GO:1", "term2": "GO:2", "ontology": "BP", "measure": "Lin"},
            timeout=5
        )

    @patch('requests.post')
    def test_same_term_skips_request(self, mock_post, provider):
        """Test identical terms are answered locally."""
        assert provider.similarity("GO:1", "GO:1") == 1.0
        mock_post.assert_not_called()

    @patch('requests.post')
    def test_request_failure(self, mock_post, provider):
        """Test transport failures surface as TermLookupError."""
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(TermLookupError, match="refused"):
            provider.similarity("GO:1", "GO:2")

    @patch('requests.post')
    def test_timeout(self, mock_post, provider):
        """Test timeouts are not retried."""
        mock_post.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(TermLookupError):
            provider.similarity("GO:1", "GO:2")
        assert mock_post.call_count == 1

    @patch('requests.post')
    def test_invalid_json(self, mock_post, provider):
        """Test undecodable bodies surface as TermLookupError."""
        response = self._response(None)
        response.json.side_effect = ValueError("not json")
        mock_post.return_value = response
        with pytest.raises(TermLookupError, match="Invalid"):
            provider.similarity("GO:1", "GO:2")

    @patch('requests.post')
    def test_missing_field(self, mock_post, provider):
        """Test a response without a similarity field is rejected."""
        mock_post.return_value = self._response({"score": 0.3})
        with pytest.raises(TermLookupError, match="no 'similarity'"):
            provider.similarity("GO:1", "GO:2")

    @patch('requests.post')
    def test_out_of_range(self, mock_post, provider):
        """Test a similarity outside [0, 1] is rejected."""
        mock_post.return_value = self._response({"similarity": 1.7})
        with pytest.raises(TermLookupError, match="outside"):
            provider.similarity("GO:1", "GO:2")


class TestSQLiteProviders:
    """Test suite for SQLite-backed providers."""

    @pytest.fixture
    def db_connection(self):
        """Create an in-memory annotation database for testing."""
        conn = sqlite3.connect(':memory:')

        conn.execute("""
            CREATE TABLE terms (
                term_id TEXT PRIMARY KEY,
                name TEXT,
                size INTEGER
            )
        """)
        conn.execute("""
            CREATE TABLE term_ancestors (
                term_id TEXT NOT NULL,
                ancestor_id TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE term_similarity (
                term1 TEXT NOT NULL,
                term2 TEXT NOT NULL,
                ontology TEXT,
                score REAL
            )
        """)

        conn.executemany("INSERT INTO terms VALUES (?, ?, ?)", [
            ("GO:1", "cell death", 120),
            ("GO:2", "apoptosis", 40),
            ("GO:3", None, None)
        ])
        conn.executemany("INSERT INTO term_ancestors VALUES (?, ?)", [
            ("GO:2", "GO:1"),
            ("GO:2", "GO:0"),
            ("GO:2", "GO:2")
        ])
        conn.executemany("INSERT INTO term_similarity VALUES (?, ?, ?, ?)", [
            ("GO:1", "GO:2", "", 0.6),
            ("GO:2", "GO:1", "BP", 0.8)
        ])
        conn.commit()
        return conn

    def test_annotation_lookups(self, db_connection):
        """Test name, size and ancestors come from the database."""
        provider = SQLiteAnnotationProvider(db_connection)
        assert provider.display_name("GO:2") == "apoptosis"
        assert provider.term_size("GO:1") == 120
        assert provider.ancestors("GO:2") == frozenset({"GO:0", "GO:1"})
        assert provider.ancestors("GO:1") == frozenset()

    def test_annotation_missing_term(self, db_connection):
        """Test unknown terms raise TermLookupError."""
        provider = SQLiteAnnotationProvider(db_connection)
        with pytest.raises(TermLookupError, match="not found"):
            provider.display_name("GO:9")

    def test_annotation_null_columns(self, db_connection):
        """Test NULL name / size are treated as missing."""
        provider = SQLiteAnnotationProvider(db_connection)
        with pytest.raises(TermLookupError):
            provider.display_name("GO:3")
        with pytest.raises(TermLookupError):
            provider.term_size("GO:3")

    def test_annotation_query_error(self):
        """Test database errors surface as TermLookupError."""
        provider = SQLiteAnnotationProvider(sqlite3.connect(':memory:'))
        with pytest.raises(TermLookupError, match="failed"):
            provider.term_size("GO:1")

    def test_similarity_prefers_exact_ontology(self, db_connection):
        """Test ontology-specific rows win and either row order matches."""
        provider = SQLiteSimilarityProvider(db_connection)
        assert provider.similarity("GO:1", "GO:2", "BP") == 0.8
        assert provider.similarity("GO:2", "GO:1", "MF") == 0.6
        assert provider.similarity("GO:1", "GO:2") == 0.6

    def test_similarity_missing_pair(self, db_connection):
        """Test a missing pair raises TermLookupError."""
        provider = SQLiteSimilarityProvider(db_connection)
        with pytest.raises(TermLookupError):
            provider.similarity("GO:1", "GO:3")

    def test_similarity_not_thread_safe(self):
        """Test the SQLite provider opts out of thread pools."""
        assert SQLiteSimilarityProvider.thread_safe is False
        assert HTTPSimilarityProvider.thread_safe is True
