"""
HTTP Similarity Provider - semantic similarity from a remote service

POSTs each pair to `{base_url}/similarity` with a JSON body
{"term1", "term2", "ontology", "measure"} and reads the "similarity" field of
the JSON response. The provider does not retry: any request failure, timeout
or malformed response is raised as TermLookupError and retry policy is left
to the caller.
"""

import math
import logging
from typing import Optional

import requests

from ..exceptions import TermLookupError
from .base_provider import BaseSimilarityProvider

logger = logging.getLogger(__name__)


class HTTPSimilarityProvider(BaseSimilarityProvider):
    """
    Similarity collaborator backed by an HTTP service.

    Hyperparameters:
    - measure: Similarity measure requested from the service (e.g. 'Rel', 'Lin', 'Wang')
    - timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        measure: str = "Rel",
        timeout: float = 30,
        endpoint: str = "similarity"
    ):
        """
        Initialize HTTP similarity provider.

        Args:
            base_url: Service root URL (e.g. 'http://localhost:8000')
            measure: Similarity measure name forwarded to the service
            timeout: Request timeout in seconds
            endpoint: Path of the similarity endpoint
        """
        self.base_url = base_url.rstrip('/')
        self.api_endpoint = f"{self.base_url}/{endpoint.lstrip('/')}"
        self.measure = measure
        self.timeout = timeout

        logger.info(f"Initialized {self.__class__.__name__}: url={self.api_endpoint}, measure={measure}")

    def similarity(self, a: str, b: str, ontology: Optional[str] = None) -> float:
        if a == b:
            return 1.0

        try:
            response = requests.post(
                self.api_endpoint,
                json={
                    "term1": a,
                    "term2": b,
                    "ontology": ontology,
                    "measure": self.measure
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Similarity request failed for ({a}, {b}): {e}")
            raise TermLookupError(f"Similarity lookup failed for ({a}, {b}): {e}", labels=(a, b)) from e
        except ValueError as e:
            logger.error(f"Similarity service returned invalid JSON for ({a}, {b}): {e}")
            raise TermLookupError(f"Invalid similarity response for ({a}, {b})", labels=(a, b)) from e

        value = payload.get('similarity') if isinstance(payload, dict) else None
        if value is None:
            raise TermLookupError(f"Similarity response for ({a}, {b}) has no 'similarity' field", labels=(a, b))

        try:
            value = float(value)
        except (TypeError, ValueError):
            raise TermLookupError(
                f"Non-numeric similarity {value!r} for ({a}, {b})", labels=(a, b)
            ) from None

        if math.isnan(value) or not 0.0 <= value <= 1.0:
            raise TermLookupError(f"Similarity {value} for ({a}, {b}) is outside [0, 1]", labels=(a, b))

        return value
