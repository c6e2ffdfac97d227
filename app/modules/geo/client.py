"""
Client for the public French geography API (geo.api.gouv.fr).

Used only to enrich city views with the department name, which is not
persisted locally. Injected into the routers as a FastAPI dependency so
tests can replace it.
"""
from functools import lru_cache
from typing import Optional
import logging

import requests
from pydantic import BaseModel, ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from app.common.errors import ExternalServiceError
from app.core.config import settings

logger = logging.getLogger(__name__)


class GeoDepartment(BaseModel):
    """Department as returned by /departements/{code}."""
    nom: str
    code: str
    codeRegion: Optional[str] = None


class GeoApiClient:
    """Thin synchronous client with an explicit timeout and retries on 5xx."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or self._build_session()

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=2,
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"]
        )
        session.mount("https://", HTTPAdapter(max_retries=retry))
        session.mount("http://", HTTPAdapter(max_retries=retry))
        return session

    def get_department(self, code: str) -> GeoDepartment:
        """
        Fetch a department by its INSEE code.

        Raises:
            ExternalServiceError: on network failure, non-200 status or
                unexpected payload
        """
        url = f"{self.base_url}/departements/{code}"
        try:
            response = self.session.get(
                url,
                params={"fields": "nom,code,codeRegion"},
                timeout=self.timeout
            )
            response.raise_for_status()
            return GeoDepartment.model_validate(response.json())
        except requests.RequestException as e:
            logger.error(f"geo.api.gouv.fr request failed for department {code}: {e}")
            raise ExternalServiceError(
                f"Impossible de récupérer le département {code} depuis geo.api.gouv.fr"
            ) from e
        except (ValueError, ValidationError) as e:
            logger.error(f"Unexpected geo.api.gouv.fr payload for department {code}: {e}")
            raise ExternalServiceError(
                f"Réponse invalide de geo.api.gouv.fr pour le département {code}"
            ) from e


@lru_cache
def get_geo_client() -> GeoApiClient:
    return GeoApiClient(settings.GEO_API_BASE_URL, timeout=settings.GEO_API_TIMEOUT)
