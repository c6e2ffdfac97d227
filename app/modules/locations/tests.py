"""
Tests para el módulo de Locations

Cubren:
- Consultas del CRUD (rangos, prefijos, top-N, paginación)
- Reglas de negocio de los servicios (duplicados, padres inexistentes)
- Borrado en cascada región > departamentos > ciudades
- Endpoints HTTP y traducción de errores a códigos de estado
"""

import pytest
from sqlalchemy.orm import Session

from app.common.errors import (
    CityAlreadyExistsError,
    CityNotFoundError,
    DepartmentAlreadyExistsError,
    DepartmentMissingError,
    DepartmentNotFoundError,
    DuplicateKeyError,
    InvalidQueryError,
    RegionAlreadyExistsError,
    RegionMissingError,
    RegionNotFoundError,
)
from app.modules.locations.crud import CityCrud, DepartmentCrud, RegionCrud
from app.modules.locations.models import City, Department, Region
from app.modules.locations.schemas import (
    CityCreate,
    CityUpdate,
    DepartmentCreate,
    DepartmentUpdate,
    EntityRef,
    RegionCreate,
    RegionUpdate,
)
from app.modules.locations.service import CityService, DepartmentService, RegionService


def names(cities):
    return [city.nom for city in cities]


# ===== TESTS DE CRUD =====

class TestCityCrud:
    """Tests para las consultas de CityCrud"""

    def test_population_between_is_inclusive(self, db_session: Session, sample_geography):
        result = CityCrud(db_session).by_population_between(200, 300)
        assert sorted(names(result)) == ["Grande A", "Grande B", "Moyenne"]

    def test_population_greater_than_is_strict(self, db_session: Session, sample_geography):
        result = CityCrud(db_session).by_population_greater_than(300)
        assert sorted(names(result)) == ["Montpellier", "Sète"]

    def test_top_n_breaks_ties_by_id(self, db_session: Session, sample_geography):
        """Poblaciones {100, 300, 200, 300}: top-3 = los dos 300 (ID asc) y luego 200"""
        cities = sample_geography["cities"]
        paris = sample_geography["departments"]["75"]

        result = CityCrud(db_session).by_department_sorted_by_population_desc(paris, 3)

        assert [city.id for city in result] == [
            cities["grande_a"].id,
            cities["grande_b"].id,
            cities["moyenne"].id,
        ]
        assert all(city.department_id == paris.id for city in result)

    def test_top_n_returns_at_most_n(self, db_session: Session, sample_geography):
        paris = sample_geography["departments"]["75"]
        assert len(CityCrud(db_session).by_department_sorted_by_population_desc(paris, 10)) == 4

    def test_prefix_is_case_sensitive(self, db_session: Session, sample_geography):
        crud = CityCrud(db_session)
        assert sorted(names(crud.by_name_prefix("Grande"))) == ["Grande A", "Grande B"]
        assert crud.by_name_prefix("grande") == []

    def test_department_filters(self, db_session: Session, sample_geography):
        crud = CityCrud(db_session)
        paris = sample_geography["departments"]["75"]

        assert sorted(names(crud.by_department_and_population_greater_than(paris, 150))) == [
            "Grande A", "Grande B", "Moyenne"
        ]
        assert names(crud.by_department_and_population_between(paris, 100, 150)) == ["Petite"]
        assert len(crud.by_department(paris)) == 4

    def test_list_page_is_ordered_by_id(self, db_session: Session, sample_geography):
        crud = CityCrud(db_session)
        first, total = crud.list_page(0, 4)
        second, _ = crud.list_page(1, 4)

        assert total == 6
        ids = [city.id for city in first + second]
        assert ids == sorted(ids)
        assert len(second) == 2

    def test_exists_checks(self, db_session: Session, sample_geography):
        crud = CityCrud(db_session)
        paris = sample_geography["departments"]["75"]
        herault = sample_geography["departments"]["34"]

        assert crud.exists_by_name("Petite")
        assert crud.exists_by_name_and_department("Petite", paris)
        assert not crud.exists_by_name_and_department("Petite", herault)
        assert crud.find_by_name("Sète").department_id == herault.id

    def test_duplicate_name_in_department_raises_duplicate_key(self, db_session: Session, sample_geography):
        paris = sample_geography["departments"]["75"]
        with pytest.raises(DuplicateKeyError):
            CityCrud(db_session).create(City(nom="Petite", nb_habitants=5, department=paris))


class TestRegionCrud:
    """Tests para RegionCrud"""

    def test_lookup_by_code_and_name(self, db_session: Session, sample_geography):
        crud = RegionCrud(db_session)
        assert crud.find_by_code("11").nom == "Île-de-France"
        assert crud.find_by_name("Occitanie").code == "76"
        assert crud.exists_by_code("76")
        assert crud.exists_by_name("Île-de-France")
        assert crud.find_by_code("99") is None

    def test_duplicate_code_raises_duplicate_key(self, db_session: Session, sample_geography):
        with pytest.raises(DuplicateKeyError):
            RegionCrud(db_session).create("11", "Autre")

    def test_delete_cascades_to_departments_and_cities(self, db_session: Session, sample_geography):
        idf = sample_geography["regions"]["idf"]
        RegionCrud(db_session).delete(idf)

        assert db_session.query(Region).count() == 1
        assert [d.code for d in db_session.query(Department).all()] == ["34"]
        assert sorted(names(db_session.query(City).all())) == ["Montpellier", "Sète"]

    def test_delete_all_cascades(self, db_session: Session, sample_geography):
        orphan = DepartmentCrud(db_session).create("2A", None)

        RegionCrud(db_session).delete_all()

        assert db_session.query(Region).count() == 0
        assert db_session.query(City).count() == 0
        assert [d.id for d in db_session.query(Department).all()] == [orphan.id]


# ===== TESTS DE SERVICIOS =====

class TestRegionService:
    """Tests para RegionService"""

    def test_create_rejects_duplicate_code(self, db_session: Session, sample_geography):
        with pytest.raises(RegionAlreadyExistsError):
            RegionService(db_session).create_region(RegionCreate(code="11", nom="IDF"))

    def test_update_replaces_code_and_name(self, db_session: Session, sample_geography):
        idf = sample_geography["regions"]["idf"]
        updated = RegionService(db_session).update_region(idf.id, RegionUpdate(code="110", nom="IDF"))
        assert (updated.code, updated.nom) == ("110", "IDF")

    def test_update_rejects_code_of_other_region(self, db_session: Session, sample_geography):
        idf = sample_geography["regions"]["idf"]
        with pytest.raises(RegionAlreadyExistsError):
            RegionService(db_session).update_region(idf.id, RegionUpdate(code="76", nom="IDF"))

    def test_missing_region(self, db_session: Session):
        service = RegionService(db_session)
        with pytest.raises(RegionNotFoundError):
            service.get_region_by_id(404)
        with pytest.raises(RegionNotFoundError):
            service.delete_region(404)


class TestDepartmentService:
    """Tests para DepartmentService"""

    def test_create_rebinds_region_by_id(self, db_session: Session, sample_geography):
        idf = sample_geography["regions"]["idf"]
        department = DepartmentService(db_session).create_department(
            DepartmentCreate(code="92", region=EntityRef(id=idf.id))
        )
        assert department.region.code == "11"

    def test_create_without_region(self, db_session: Session):
        department = DepartmentService(db_session).create_department(DepartmentCreate(code="2B"))
        assert department.region_id is None

    def test_create_with_unknown_region(self, db_session: Session):
        with pytest.raises(RegionMissingError):
            DepartmentService(db_session).create_department(
                DepartmentCreate(code="92", region=EntityRef(id=999))
            )

    def test_create_rejects_duplicate_code(self, db_session: Session, sample_geography):
        with pytest.raises(DepartmentAlreadyExistsError):
            DepartmentService(db_session).create_department(DepartmentCreate(code="75"))

    def test_update_replaces_code_and_region(self, db_session: Session, sample_geography):
        paris = sample_geography["departments"]["75"]
        occitanie = sample_geography["regions"]["occitanie"]

        updated = DepartmentService(db_session).update_department(
            paris.id, DepartmentUpdate(code="750", region=EntityRef(id=occitanie.id))
        )
        assert updated.code == "750"
        assert updated.region_id == occitanie.id

    def test_get_by_code(self, db_session: Session, sample_geography):
        service = DepartmentService(db_session)
        assert service.get_department_by_code("34").code == "34"
        with pytest.raises(DepartmentNotFoundError):
            service.get_department_by_code("00")


class TestCityService:
    """Tests para CityService"""

    def test_create_city(self, db_session: Session, sample_geography):
        paris = sample_geography["departments"]["75"]
        city = CityService(db_session).create_city(
            CityCreate(nom="Nouvelle", nb_habitants=1500, departement=EntityRef(id=paris.id))
        )
        assert city.id is not None
        assert city.department.code == "75"
        assert city.population_totale == 1500

    def test_create_requires_department(self, db_session: Session, sample_geography):
        service = CityService(db_session)
        with pytest.raises(DepartmentMissingError):
            service.create_city(CityCreate(nom="Nouvelle", nb_habitants=10))
        with pytest.raises(DepartmentMissingError):
            service.create_city(CityCreate(nom="Nouvelle", nb_habitants=10, departement=EntityRef(id=999)))

    def test_same_name_allowed_in_other_department(self, db_session: Session, sample_geography):
        herault = sample_geography["departments"]["34"]
        city = CityService(db_session).create_city(
            CityCreate(nom="Petite", nb_habitants=10, departement=EntityRef(id=herault.id))
        )
        assert city.department_id == herault.id

    def test_create_rejects_duplicate_in_department(self, db_session: Session, sample_geography):
        paris = sample_geography["departments"]["75"]
        with pytest.raises(CityAlreadyExistsError):
            CityService(db_session).create_city(
                CityCreate(nom="Petite", nb_habitants=10, departement=EntityRef(id=paris.id))
            )

    def test_update_only_changes_name_and_population(self, db_session: Session, sample_geography):
        petite = sample_geography["cities"]["petite"]
        updated = CityService(db_session).update_city(petite.id, CityUpdate(nom="Plus Grande", nb_habitants=150))

        assert updated.nom == "Plus Grande"
        assert updated.nb_habitants == 150
        assert updated.population_totale == 100

    def test_delete_missing_city(self, db_session: Session):
        with pytest.raises(CityNotFoundError):
            CityService(db_session).delete_city(12345)

    def test_empty_filters_raise_not_found(self, db_session: Session, sample_geography):
        service = CityService(db_session)
        with pytest.raises(CityNotFoundError):
            service.search_by_prefix("ZZZ")
        with pytest.raises(CityNotFoundError):
            service.search_by_min_population(10_000_000)
        with pytest.raises(CityNotFoundError):
            service.search_by_population_range(1000, 2000)
        with pytest.raises(CityNotFoundError):
            service.search_by_department_and_min_population("75", 1000)

    def test_invalid_ranges(self, db_session: Session, sample_geography):
        service = CityService(db_session)
        with pytest.raises(InvalidQueryError):
            service.search_by_population_range(500, 100)
        with pytest.raises(InvalidQueryError):
            service.search_by_min_population(-1)
        with pytest.raises(InvalidQueryError):
            service.get_top_cities_by_department_code("75", 0)

    def test_unknown_department_code(self, db_session: Session, sample_geography):
        with pytest.raises(DepartmentNotFoundError):
            CityService(db_session).search_by_department_and_population_range("00", 0, 10)

    def test_empty_page_is_not_an_error(self, db_session: Session):
        page = CityService(db_session).get_cities_page(0, 10)
        assert page.content == []
        assert page.total_elements == 0
        assert page.total_pages == 0

    def test_city_view_uses_geo_client(self, db_session: Session, sample_geography, geo_client):
        sete = sample_geography["cities"]["sete"]
        view = CityService(db_session, geo_client).get_city_view(sete.id)

        assert view.nom_ville == "Sète"
        assert view.code_departement == "34"
        assert view.nom_departement == "Hérault"
        assert geo_client.calls == ["34"]


# ===== TESTS DE ENDPOINTS =====

class TestRegionEndpoints:
    """Tests para /regions"""

    def test_list_empty_returns_204(self, client):
        response = client.get("/regions")
        assert response.status_code == 204

    def test_crud_flow(self, client):
        response = client.post("/regions", json={"code": "84", "nom": "Auvergne-Rhône-Alpes"})
        assert response.status_code == 201
        region_id = response.json()["id"]

        assert client.get(f"/regions/{region_id}").json()["nom"] == "Auvergne-Rhône-Alpes"

        response = client.put(f"/regions/{region_id}", json={"code": "84", "nom": "AURA"})
        assert response.status_code == 200
        assert response.json()["nom"] == "AURA"

        assert client.delete(f"/regions/{region_id}").status_code == 204
        assert client.get(f"/regions/{region_id}").status_code == 404

    def test_duplicate_code_returns_409(self, client, sample_geography):
        response = client.post("/regions", json={"code": "11", "nom": "IDF"})
        assert response.status_code == 409

    def test_validation_returns_400(self, client):
        response = client.post("/regions", json={"code": "", "nom": "Sans code"})
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_update_missing_region_returns_404(self, client):
        assert client.put("/regions/999", json={"code": "01", "nom": "Nulle part"}).status_code == 404

    def test_delete_all_cascades(self, client, sample_geography):
        assert client.delete("/regions").status_code == 204
        assert client.get("/regions").status_code == 204
        assert client.get("/villes").json()["totalElements"] == 0


class TestDepartmentEndpoints:
    """Tests para /departements"""

    def test_create_and_get(self, client, sample_geography):
        region_id = sample_geography["regions"]["idf"].id
        response = client.post("/departements", json={"code": "92", "region": {"id": region_id}})

        assert response.status_code == 201
        body = response.json()
        assert body["region"]["code"] == "11"
        assert client.get(f"/departements/{body['id']}").json()["code"] == "92"

    def test_duplicate_code_returns_400_without_state_change(self, client, sample_geography):
        before = client.get("/departements").json()

        response = client.post("/departements", json={"code": "75"})

        assert response.status_code == 400
        assert client.get("/departements").json() == before

    def test_update_and_delete_missing(self, client):
        assert client.put("/departements/999", json={"code": "01"}).status_code == 404
        assert client.delete("/departements/999").status_code == 404

    def test_pdf_export(self, client, sample_geography):
        response = client.get("/departements/75/villes/pdf-export")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == 'attachment; filename="top_villes.pdf"'
        assert response.content.startswith(b"%PDF")

    def test_pdf_export_unknown_department(self, client):
        assert client.get("/departements/00/villes/pdf-export").status_code == 404

    def test_csv_export_enriched(self, client, sample_geography, geo_client):
        response = client.get("/departements/34/villes/csv-export", params={"enrich": True})

        assert response.status_code == 200
        lines = response.content.decode("utf-8").splitlines()
        assert lines[0] == "NOM VILLE;POPULATION;CODE DEPARTEMENT;NOM DEPARTEMENT"
        assert lines[1] == "Montpellier;295542;34;Hérault"
        assert geo_client.calls == ["34"]


class TestCityEndpoints:
    """Tests para /villes"""

    def test_paginated_listing(self, client, sample_geography):
        body = client.get("/villes", params={"page": 1, "size": 4}).json()

        assert body["page"] == 1
        assert body["size"] == 4
        assert body["totalElements"] == 6
        assert body["totalPages"] == 2
        assert len(body["content"]) == 2

    def test_default_page_size(self, client, sample_geography):
        body = client.get("/villes").json()
        assert body["size"] == 100
        assert body["content"][0]["departement"]["code"] == "75"

    @pytest.mark.parametrize("size", [0, -1, 1001])
    def test_page_size_out_of_bounds_returns_400(self, client, sample_geography, size):
        response = client.get("/villes", params={"page": 0, "size": size})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidQueryError"

    def test_negative_page_returns_400(self, client, sample_geography):
        assert client.get("/villes", params={"page": -1}).status_code == 400

    def test_create_city(self, client, sample_geography):
        department_id = sample_geography["departments"]["34"].id
        response = client.post("/villes", json={
            "nom": "Béziers",
            "nbHabitants": 79041,
            "codeCommune": "032",
            "departement": {"id": department_id}
        })

        assert response.status_code == 201
        body = response.json()
        assert body["nbHabitants"] == 79041
        assert body["populationTotale"] == 79041
        assert body["departement"]["id"] == department_id

    def test_create_duplicate_city_returns_400(self, client, sample_geography):
        department_id = sample_geography["departments"]["75"].id
        response = client.post("/villes", json={
            "nom": "Petite", "nbHabitants": 10, "departement": {"id": department_id}
        })
        assert response.status_code == 400

    def test_create_city_validation(self, client, sample_geography):
        department_id = sample_geography["departments"]["75"].id
        response = client.post("/villes", json={
            "nom": "X", "nbHabitants": 0, "departement": {"id": department_id}
        })
        assert response.status_code == 400

    def test_update_and_delete(self, client, sample_geography):
        city_id = sample_geography["cities"]["petite"].id

        response = client.put(f"/villes/{city_id}", json={"nom": "Renommée", "nbHabitants": 120})
        assert response.status_code == 200
        assert response.json()["nom"] == "Renommée"

        assert client.delete(f"/villes/{city_id}").status_code == 204
        assert client.get(f"/villes/{city_id}").status_code == 404
        assert client.delete(f"/villes/{city_id}").status_code == 404

    def test_top_villes_by_department(self, client, sample_geography):
        cities = sample_geography["cities"]
        department_id = sample_geography["departments"]["75"].id

        response = client.get(f"/villes/departement/{department_id}/top-villes", params={"maxResults": 3})

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [
            cities["grande_a"].id, cities["grande_b"].id, cities["moyenne"].id
        ]

    def test_top_villes_default_and_unknown_department(self, client, sample_geography):
        department_id = sample_geography["departments"]["75"].id
        assert len(client.get(f"/villes/departement/{department_id}/top-villes").json()) == 4
        assert client.get("/villes/departement/999/top-villes").status_code == 404

    def test_top_villes_pdf_export(self, client, sample_geography):
        department_id = sample_geography["departments"]["75"].id
        response = client.get(f"/villes/departement/{department_id}/top-villes/pdf-export")
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    def test_department_population_range(self, client, sample_geography):
        department_id = sample_geography["departments"]["75"].id
        response = client.get(
            f"/villes/departement/{department_id}/population",
            params={"minPopulation": 150, "maxPopulation": 250}
        )
        assert response.status_code == 200
        assert [c["nom"] for c in response.json()] == ["Moyenne"]

    def test_prefix_search_empty_returns_404(self, client, sample_geography):
        response = client.get("/villes/search", params={"prefix": "ZZZ"})

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "CityNotFoundError"
        assert "ZZZ" in body["message"]

    def test_prefix_search(self, client, sample_geography):
        response = client.get("/villes/search", params={"prefix": "Mont"})
        assert [c["nom"] for c in response.json()] == ["Montpellier"]

    def test_population_searches(self, client, sample_geography):
        response = client.get("/villes/search/by-min-population", params={"minPopulation": 200})
        assert sorted(c["nom"] for c in response.json()) == [
            "Grande A", "Grande B", "Montpellier", "Sète"
        ]

        response = client.get(
            "/villes/search/by-population-range",
            params={"minPopulation": 100, "maxPopulation": 200}
        )
        assert sorted(c["nom"] for c in response.json()) == ["Moyenne", "Petite"]

        response = client.get(
            "/villes/search/by-population-range",
            params={"minPopulation": 300, "maxPopulation": 100}
        )
        assert response.status_code == 400

    def test_department_searches(self, client, sample_geography):
        response = client.get(
            "/villes/search/by-departement-and-min-population",
            params={"departementCode": "34", "minPopulation": 50000}
        )
        assert [c["nom"] for c in response.json()] == ["Montpellier"]

        response = client.get(
            "/villes/search/by-departement-and-population-range",
            params={"departementCode": "34", "minPopulation": 1, "maxPopulation": 10}
        )
        assert response.status_code == 404

        response = client.get(
            "/villes/search/top-n-by-departement",
            params={"departementCode": "00", "n": 3}
        )
        assert response.status_code == 404

    def test_top_n_by_department_code(self, client, sample_geography):
        response = client.get(
            "/villes/search/top-n-by-departement",
            params={"departementCode": "34", "n": 1}
        )
        assert [c["nom"] for c in response.json()] == ["Montpellier"]

    def test_city_view(self, client, sample_geography, geo_client):
        city_id = sample_geography["cities"]["montpellier"].id
        response = client.get(f"/villes/{city_id}/view")

        assert response.status_code == 200
        assert response.json() == {
            "nomVille": "Montpellier",
            "nombreHabitants": 295542,
            "codeDepartement": "34",
            "nomDepartement": "Hérault"
        }

    def test_city_view_geo_failure_returns_502(self, client, sample_geography, geo_client):
        geo_client.fail = True
        city_id = sample_geography["cities"]["montpellier"].id
        assert client.get(f"/villes/{city_id}/view").status_code == 502


class TestApplicationEndpoints:
    """Tests para / y /health"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "environment": "test"}

    def test_root(self, client):
        assert client.get("/").json()["version"] == "1.0.0"
