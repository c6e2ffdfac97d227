"""
Fixtures compartidos: base SQLite en memoria, TestClient y un cliente
falso de geo.api.gouv.fr (los tests nunca salen a la red).
"""
import os

# Debe definirse antes de importar app.*
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.common.errors import ExternalServiceError
from app.database.database import Base, SessionLocal, sync_engine
from app.main import app
from app.modules.geo.client import GeoDepartment, get_geo_client
from app.modules.locations.crud import CityCrud, DepartmentCrud, RegionCrud
from app.modules.locations.models import City


class FakeGeoClient:
    """Stand-in for GeoApiClient with canned department names."""

    NAMES = {"75": "Paris", "34": "Hérault", "13": "Bouches-du-Rhône"}

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def get_department(self, code: str) -> GeoDepartment:
        self.calls.append(code)
        if self.fail:
            raise ExternalServiceError(f"Impossible de récupérer le département {code} depuis geo.api.gouv.fr")
        return GeoDepartment(nom=self.NAMES.get(code, f"Département {code}"), code=code, codeRegion="11")


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=sync_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture
def geo_client():
    return FakeGeoClient()


@pytest.fixture
def client(db_session, geo_client):
    app.dependency_overrides[get_geo_client] = lambda: geo_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_geography(db_session):
    """
    Île-de-France (11) > Paris (75) with four cities, Occitanie (76) > Hérault (34)
    with two cities. Populations of department 75: 100, 300, 200, 300.
    """
    regions = RegionCrud(db_session)
    departments = DepartmentCrud(db_session)
    cities = CityCrud(db_session)

    idf = regions.create("11", "Île-de-France")
    occitanie = regions.create("76", "Occitanie")
    paris = departments.create("75", idf)
    herault = departments.create("34", occitanie)

    def city(nom, population, department):
        return cities.create(City(
            nom=nom,
            nb_habitants=population,
            population_municipale=population,
            population_comptee_a_part=0,
            population_totale=population,
            department=department
        ))

    created = {
        "petite": city("Petite", 100, paris),
        "grande_a": city("Grande A", 300, paris),
        "moyenne": city("Moyenne", 200, paris),
        "grande_b": city("Grande B", 300, paris),
        "montpellier": city("Montpellier", 295542, herault),
        "sete": city("Sète", 44558, herault),
    }
    return {
        "regions": {"idf": idf, "occitanie": occitanie},
        "departments": {"75": paris, "34": herault},
        "cities": created,
    }
