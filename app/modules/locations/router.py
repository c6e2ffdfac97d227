"""
API routes for French regions, departments and cities.
Endpoints públicos: no requieren autenticación.

Los servicios lanzan errores de dominio (app.common.errors); los
exception handlers registrados en app.main los convierten en 400/404/409/502.
"""
import io
from typing import List
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database.database import get_db
from app.modules.geo.client import GeoApiClient, get_geo_client
from app.modules.reports.renderers import (
    write_cities_csv,
    write_department_cities_pdf,
    write_top_cities_pdf,
)
from app.modules.reports.utils import create_file_response
from . import schemas
from .service import CityService, DepartmentService, RegionService, to_city_view

regions_router = APIRouter(prefix="/regions", tags=["Regions"])
departements_router = APIRouter(prefix="/departements", tags=["Departements"])
villes_router = APIRouter(prefix="/villes", tags=["Villes"])


# ===== Regions =====

@regions_router.get(
    "",
    response_model=List[schemas.RegionOut],
    summary="Get all regions",
    responses={204: {"description": "No regions found"}}
)
def get_regions(db: Session = Depends(get_db)):
    """Obtener todas las regiones; 204 si no hay ninguna."""
    regions = RegionService(db).get_all_regions()
    if not regions:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return regions


@regions_router.get("/{region_id}", response_model=schemas.RegionOut, summary="Get region by ID")
def get_region(region_id: int, db: Session = Depends(get_db)):
    return RegionService(db).get_region_by_id(region_id)


@regions_router.post(
    "",
    response_model=schemas.RegionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create region",
    description="Crea una región. 409 si el código ya existe."
)
def create_region(region: schemas.RegionCreate, db: Session = Depends(get_db)):
    return RegionService(db).create_region(region)


@regions_router.put("/{region_id}", response_model=schemas.RegionOut, summary="Update region")
def update_region(region_id: int, region: schemas.RegionUpdate, db: Session = Depends(get_db)):
    """Reemplaza el código y el nombre de la región."""
    return RegionService(db).update_region(region_id, region)


@regions_router.delete(
    "/{region_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete region",
    description="Borra la región con sus departamentos y ciudades."
)
def delete_region(region_id: int, db: Session = Depends(get_db)):
    RegionService(db).delete_region(region_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@regions_router.delete("", status_code=status.HTTP_204_NO_CONTENT, summary="Delete all regions")
def delete_all_regions(db: Session = Depends(get_db)):
    RegionService(db).delete_all_regions()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===== Departements =====

@departements_router.get("", response_model=List[schemas.DepartmentOut], summary="Get all departments")
def get_departements(db: Session = Depends(get_db)):
    return DepartmentService(db).get_all_departments()


@departements_router.get("/{department_id}", response_model=schemas.DepartmentOut, summary="Get department by ID")
def get_departement(department_id: int, db: Session = Depends(get_db)):
    return DepartmentService(db).get_department_by_id(department_id)


@departements_router.post(
    "",
    response_model=schemas.DepartmentOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create department",
    description="""
    Crea un departamento. Si se indica `region.id`, la región debe existir.
    400 si el código ya existe.
    """
)
def create_departement(department: schemas.DepartmentCreate, db: Session = Depends(get_db)):
    return DepartmentService(db).create_department(department)


@departements_router.put("/{department_id}", response_model=schemas.DepartmentOut, summary="Update department")
def update_departement(department_id: int, department: schemas.DepartmentUpdate, db: Session = Depends(get_db)):
    """Reemplaza el código y la región del departamento."""
    return DepartmentService(db).update_department(department_id, department)


@departements_router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete department")
def delete_departement(department_id: int, db: Session = Depends(get_db)):
    DepartmentService(db).delete_department(department_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@departements_router.get(
    "/{code}/villes/pdf-export",
    response_class=Response,
    summary="Export department cities to PDF",
    responses={200: {"content": {"application/pdf": {}}}}
)
def export_departement_villes_pdf(code: str, db: Session = Depends(get_db)):
    """Descarga un PDF con las ciudades del departamento y su población."""
    cities = CityService(db).get_department_city_views(code)
    buffer = io.BytesIO()
    write_department_cities_pdf(code, cities, buffer)
    return create_file_response(buffer.getvalue(), "top_villes.pdf", "application/pdf")


@departements_router.get(
    "/{code}/villes/csv-export",
    response_class=Response,
    summary="Export department cities to CSV",
    responses={200: {"content": {"text/csv": {}}}}
)
def export_departement_villes_csv(
    code: str,
    enrich: bool = Query(False, description="Completar NOM DEPARTEMENT con geo.api.gouv.fr"),
    db: Session = Depends(get_db),
    geo_client: GeoApiClient = Depends(get_geo_client)
):
    cities = CityService(db, geo_client).get_department_city_views(code, enrich=enrich)
    buffer = io.BytesIO()
    write_cities_csv(cities, buffer)
    return create_file_response(buffer.getvalue(), f"villes_{code}.csv", "text/csv; charset=utf-8")


# ===== Villes =====

@villes_router.get("", response_model=schemas.CityPage, summary="Get cities (paginated)")
def get_villes(
    page: int = Query(0, description="Número de página (0-indexed)"),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, description="Tamaño de página"),
    db: Session = Depends(get_db)
):
    return CityService(db).get_cities_page(page, size)


@villes_router.get(
    "/search",
    response_model=List[schemas.CityOut],
    summary="Search cities by name prefix",
    description="Búsqueda sensible a mayúsculas. 404 si ninguna ciudad coincide."
)
def search_villes_by_prefix(
    prefix: str = Query(..., min_length=1, description="Prefijo del nombre"),
    db: Session = Depends(get_db)
):
    return CityService(db).search_by_prefix(prefix)


@villes_router.get("/search/by-min-population", response_model=List[schemas.CityOut])
def search_villes_by_min_population(
    min_population: int = Query(..., alias="minPopulation"),
    db: Session = Depends(get_db)
):
    """Ciudades con población estrictamente mayor que minPopulation."""
    return CityService(db).search_by_min_population(min_population)


@villes_router.get("/search/by-population-range", response_model=List[schemas.CityOut])
def search_villes_by_population_range(
    min_population: int = Query(..., alias="minPopulation"),
    max_population: int = Query(..., alias="maxPopulation"),
    db: Session = Depends(get_db)
):
    """Ciudades con minPopulation <= población <= maxPopulation."""
    return CityService(db).search_by_population_range(min_population, max_population)


@villes_router.get("/search/by-departement-and-min-population", response_model=List[schemas.CityOut])
def search_villes_by_departement_and_min_population(
    departement_code: str = Query(..., alias="departementCode"),
    min_population: int = Query(..., alias="minPopulation"),
    db: Session = Depends(get_db)
):
    return CityService(db).search_by_department_and_min_population(departement_code, min_population)


@villes_router.get("/search/by-departement-and-population-range", response_model=List[schemas.CityOut])
def search_villes_by_departement_and_population_range(
    departement_code: str = Query(..., alias="departementCode"),
    min_population: int = Query(..., alias="minPopulation"),
    max_population: int = Query(..., alias="maxPopulation"),
    db: Session = Depends(get_db)
):
    return CityService(db).search_by_department_and_population_range(
        departement_code, min_population, max_population
    )


@villes_router.get("/search/top-n-by-departement", response_model=List[schemas.CityOut])
def search_top_n_villes_by_departement(
    departement_code: str = Query(..., alias="departementCode"),
    n: int = Query(..., description="Número de ciudades"),
    db: Session = Depends(get_db)
):
    return CityService(db).get_top_cities_by_department_code(departement_code, n)


@villes_router.get(
    "/departement/{department_id}/top-villes",
    response_model=List[schemas.CityOut],
    summary="Top N cities of a department"
)
def get_top_villes_by_departement(
    department_id: int,
    max_results: int = Query(settings.DEFAULT_TOP_CITIES, alias="maxResults"),
    db: Session = Depends(get_db)
):
    """Ciudades más pobladas del departamento; empates por ID ascendente."""
    return CityService(db).get_top_cities_by_department_id(department_id, max_results)


@villes_router.get(
    "/departement/{department_id}/top-villes/pdf-export",
    response_class=Response,
    summary="Export top N cities of a department to PDF",
    responses={200: {"content": {"application/pdf": {}}}}
)
def export_top_villes_pdf(
    department_id: int,
    max_results: int = Query(settings.DEFAULT_TOP_CITIES, alias="maxResults"),
    db: Session = Depends(get_db)
):
    cities = CityService(db).get_top_cities_by_department_id(department_id, max_results)
    buffer = io.BytesIO()
    write_top_cities_pdf([to_city_view(city) for city in cities], buffer)
    return create_file_response(buffer.getvalue(), "top_villes.pdf", "application/pdf")


@villes_router.get("/departement/{department_id}/population", response_model=List[schemas.CityOut])
def get_villes_by_departement_and_population(
    department_id: int,
    min_population: int = Query(..., alias="minPopulation"),
    max_population: int = Query(..., alias="maxPopulation"),
    db: Session = Depends(get_db)
):
    return CityService(db).get_cities_by_department_id_and_population(
        department_id, min_population, max_population
    )


@villes_router.get("/{city_id}", response_model=schemas.CityOut, summary="Get city by ID")
def get_ville(city_id: int, db: Session = Depends(get_db)):
    return CityService(db).get_city_by_id(city_id)


@villes_router.get(
    "/{city_id}/view",
    response_model=schemas.CityView,
    summary="Get city view with department name",
    description="Completa el nombre del departamento con geo.api.gouv.fr. 502 si la API no responde."
)
def get_ville_view(
    city_id: int,
    db: Session = Depends(get_db),
    geo_client: GeoApiClient = Depends(get_geo_client)
):
    return CityService(db, geo_client).get_city_view(city_id)


@villes_router.post(
    "",
    response_model=schemas.CityOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create city",
    description="""
    Crea una ciudad en un departamento existente (`departement.id`).
    400 si ya existe una ciudad con ese nombre en el departamento.
    """
)
def create_ville(city: schemas.CityCreate, db: Session = Depends(get_db)):
    return CityService(db).create_city(city)


@villes_router.put("/{city_id}", response_model=schemas.CityOut, summary="Update city")
def update_ville(city_id: int, city: schemas.CityUpdate, db: Session = Depends(get_db)):
    """Solo se modifican el nombre y el número de habitantes."""
    return CityService(db).update_city(city_id, city)


@villes_router.delete("/{city_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete city")
def delete_ville(city_id: int, db: Session = Depends(get_db)):
    CityService(db).delete_city(city_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
