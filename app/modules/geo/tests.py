"""
Tests para el cliente de geo.api.gouv.fr (sin acceso a la red)
"""

import pytest
import requests

from app.common.errors import ExternalServiceError
from app.modules.geo.client import GeoApiClient


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self.payload is None:
            raise ValueError("no JSON")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response


class TestGeoApiClient:
    """Tests para GeoApiClient.get_department"""

    def test_get_department(self):
        session = FakeSession(FakeResponse({"nom": "Hérault", "code": "34", "codeRegion": "76"}))
        client = GeoApiClient("https://geo.example/", timeout=2.5, session=session)

        department = client.get_department("34")

        assert department.nom == "Hérault"
        assert department.codeRegion == "76"
        url, params, timeout = session.requests[0]
        assert url == "https://geo.example/departements/34"
        assert params == {"fields": "nom,code,codeRegion"}
        assert timeout == 2.5

    def test_http_error(self):
        client = GeoApiClient("https://geo.example", session=FakeSession(FakeResponse(status_code=404)))
        with pytest.raises(ExternalServiceError):
            client.get_department("00")

    def test_timeout(self):
        client = GeoApiClient("https://geo.example", session=FakeSession(error=requests.Timeout("slow")))
        with pytest.raises(ExternalServiceError):
            client.get_department("34")

    def test_invalid_payload(self):
        client = GeoApiClient("https://geo.example", session=FakeSession(FakeResponse({"code": "34"})))
        with pytest.raises(ExternalServiceError):
            client.get_department("34")

    def test_non_json_body(self):
        client = GeoApiClient("https://geo.example", session=FakeSession(FakeResponse(None)))
        with pytest.raises(ExternalServiceError):
            client.get_department("34")
