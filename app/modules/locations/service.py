"""
Servicios de negocio para regiones, departamentos y ciudades.

Validan parámetros, resuelven las entidades padre por ID o código y
delegan en las clases CRUD. Los errores se expresan con las excepciones
de app.common.errors; el router las traduce a HTTP.
"""
from math import ceil
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from app.common.errors import (
    CityAlreadyExistsError,
    CityNotFoundError,
    DepartmentAlreadyExistsError,
    DepartmentMissingError,
    DepartmentNotFoundError,
    InvalidQueryError,
    RegionAlreadyExistsError,
    RegionMissingError,
    RegionNotFoundError,
)
from app.core.config import settings
from app.modules.geo.client import GeoApiClient
from .crud import CityCrud, DepartmentCrud, RegionCrud
from .models import City, Department, Region
from .schemas import (
    CityCreate,
    CityPage,
    CityOut,
    CityUpdate,
    CityView,
    DepartmentCreate,
    DepartmentUpdate,
    EntityRef,
    RegionCreate,
    RegionUpdate,
)

logger = logging.getLogger(__name__)


def _check_population_range(min_population: int, max_population: Optional[int] = None):
    if min_population < 0:
        raise InvalidQueryError("La population minimale doit être positive.")
    if max_population is not None and max_population < min_population:
        raise InvalidQueryError(
            f"La population maximale ({max_population}) doit être supérieure ou égale "
            f"à la population minimale ({min_population})."
        )


class RegionService:
    """Servicio para gestión de regiones"""

    def __init__(self, db: Session):
        self.crud = RegionCrud(db)

    def get_all_regions(self) -> List[Region]:
        return self.crud.get_all()

    def get_region_by_id(self, region_id: int) -> Region:
        region = self.crud.get_by_id(region_id)
        if not region:
            raise RegionNotFoundError(f"La région avec l'ID {region_id} n'existe pas.")
        return region

    def get_region_by_code(self, code: str) -> Region:
        region = self.crud.find_by_code(code)
        if not region:
            raise RegionNotFoundError(f"La région avec le code {code} n'existe pas.")
        return region

    def get_region_by_name(self, nom: str) -> Region:
        region = self.crud.find_by_name(nom)
        if not region:
            raise RegionNotFoundError(f"La région avec le nom {nom} n'existe pas.")
        return region

    def create_region(self, region_data: RegionCreate) -> Region:
        if self.crud.exists_by_code(region_data.code):
            raise RegionAlreadyExistsError(f"La région avec le code {region_data.code} existe déjà.")
        return self.crud.create(region_data.code, region_data.nom)

    def update_region(self, region_id: int, region_data: RegionUpdate) -> Region:
        region = self.get_region_by_id(region_id)
        if self.crud.exists_by_code(region_data.code, exclude_id=region_id):
            raise RegionAlreadyExistsError(f"La région avec le code {region_data.code} existe déjà.")
        return self.crud.update(region, region_data.code, region_data.nom)

    def delete_region(self, region_id: int) -> None:
        region = self.get_region_by_id(region_id)
        code = region.code
        self.crud.delete(region)
        logger.info(f"Region {code} deleted with its departments and cities")

    def delete_all_regions(self) -> None:
        self.crud.delete_all()
        logger.info("All regions deleted with their departments and cities")


class DepartmentService:
    """Servicio para gestión de departamentos"""

    def __init__(self, db: Session):
        self.crud = DepartmentCrud(db)
        self.regions = RegionCrud(db)

    def get_all_departments(self) -> List[Department]:
        return self.crud.get_all()

    def get_department_by_id(self, department_id: int) -> Department:
        department = self.crud.get_by_id(department_id)
        if not department:
            raise DepartmentNotFoundError(f"Département non trouvé avec ID : {department_id}")
        return department

    def get_department_by_code(self, code: str) -> Department:
        department = self.crud.find_by_code(code)
        if not department:
            raise DepartmentNotFoundError(f"Département non trouvé avec le code : {code}")
        return department

    def _resolve_region(self, region_ref: Optional[EntityRef]) -> Optional[Region]:
        """Sustituye la referencia parcial por la región persistida."""
        if region_ref is None or region_ref.id is None:
            return None
        region = self.regions.get_by_id(region_ref.id)
        if not region:
            raise RegionMissingError(f"La région avec l'ID {region_ref.id} n'existe pas.")
        return region

    def create_department(self, department_data: DepartmentCreate) -> Department:
        if self.crud.exists_by_code(department_data.code):
            raise DepartmentAlreadyExistsError(
                f"Le département avec le code {department_data.code} existe déjà."
            )
        region = self._resolve_region(department_data.region)
        return self.crud.create(department_data.code, region)

    def update_department(self, department_id: int, department_data: DepartmentUpdate) -> Department:
        department = self.get_department_by_id(department_id)
        if self.crud.exists_by_code(department_data.code, exclude_id=department_id):
            raise DepartmentAlreadyExistsError(
                f"Le département avec le code {department_data.code} existe déjà."
            )
        region = self._resolve_region(department_data.region)
        return self.crud.update(department, department_data.code, region)

    def delete_department(self, department_id: int) -> None:
        department = self.get_department_by_id(department_id)
        self.crud.delete(department)


class CityService:
    """Servicio para ciudades: CRUD y búsquedas por población"""

    def __init__(self, db: Session, geo_client: Optional[GeoApiClient] = None):
        self.crud = CityCrud(db)
        self.departments = DepartmentService(db)
        self.geo_client = geo_client

    # ===== CRUD =====

    def get_cities_page(self, page: int = 0, size: Optional[int] = None) -> CityPage:
        if size is None:
            size = settings.DEFAULT_PAGE_SIZE
        if page < 0:
            raise InvalidQueryError("Le numéro de page doit être positif.")
        if size < 1 or size > settings.MAX_PAGE_SIZE:
            raise InvalidQueryError(f"La taille de page doit être comprise entre 1 et {settings.MAX_PAGE_SIZE}.")

        cities, total = self.crud.list_page(page, size)
        return CityPage(
            content=[CityOut.model_validate(city) for city in cities],
            page=page,
            size=size,
            total_elements=total,
            total_pages=ceil(total / size) if total else 0
        )

    def get_city_by_id(self, city_id: int) -> City:
        city = self.crud.get_by_id(city_id)
        if not city:
            raise CityNotFoundError(f"Ville non trouvée avec ID : {city_id}")
        return city

    def get_city_by_name(self, nom: str) -> City:
        city = self.crud.find_by_name(nom)
        if not city:
            raise CityNotFoundError(f"Ville non trouvée avec nom : {nom}")
        return city

    def create_city(self, city_data: CityCreate) -> City:
        """
        Crear una ciudad.

        El departamento recibido es una referencia parcial: se vuelve a
        cargar por ID antes de insertar.

        Raises:
            DepartmentMissingError: si no se indica departamento o no existe
            CityAlreadyExistsError: si ya existe una ciudad con ese nombre en el departamento
        """
        department_ref = city_data.departement
        if department_ref is None or department_ref.id is None:
            raise DepartmentMissingError("Département non renseigné ou introuvable.")
        department = self.departments.crud.get_by_id(department_ref.id)
        if not department:
            raise DepartmentMissingError("Département non renseigné ou introuvable.")

        if self.crud.exists_by_name_and_department(city_data.nom, department):
            raise CityAlreadyExistsError("La ville existe déjà.")

        population_totale = city_data.population_totale
        if population_totale is None:
            population_totale = city_data.nb_habitants

        city = City(
            nom=city_data.nom,
            nb_habitants=city_data.nb_habitants,
            code_arrondissement=city_data.code_arrondissement,
            code_canton=city_data.code_canton,
            code_commune=city_data.code_commune,
            population_municipale=city_data.population_municipale,
            population_comptee_a_part=city_data.population_comptee_a_part,
            population_totale=population_totale,
            department=department
        )
        return self.crud.create(city)

    def update_city(self, city_id: int, city_data: CityUpdate) -> City:
        city = self.get_city_by_id(city_id)
        return self.crud.update(city, city_data.nom, city_data.nb_habitants)

    def delete_city(self, city_id: int) -> None:
        city = self.get_city_by_id(city_id)
        self.crud.delete(city)

    # ===== Consultas por departamento =====

    def get_top_cities_by_department_id(self, department_id: int, max_results: int) -> List[City]:
        if max_results < 1:
            raise InvalidQueryError("Le nombre de villes demandé doit être au moins 1.")
        department = self.departments.get_department_by_id(department_id)
        return self.crud.by_department_sorted_by_population_desc(department, max_results)

    def get_top_cities_by_department_code(self, department_code: str, n: int) -> List[City]:
        if n < 1:
            raise InvalidQueryError("Le nombre de villes demandé doit être au moins 1.")
        department = self.departments.get_department_by_code(department_code)
        return self.crud.by_department_sorted_by_population_desc(department, n)

    def get_cities_by_department_id_and_population(
        self,
        department_id: int,
        min_population: int,
        max_population: int
    ) -> List[City]:
        _check_population_range(min_population, max_population)
        department = self.departments.get_department_by_id(department_id)
        return self._by_department_between(department, min_population, max_population)

    def get_cities_by_department_code(self, department_code: str) -> List[City]:
        department = self.departments.get_department_by_code(department_code)
        return self.crud.by_department(department)

    # ===== Búsquedas =====

    def search_by_prefix(self, prefix: str) -> List[City]:
        if not prefix:
            raise InvalidQueryError("Le préfixe de recherche ne peut pas être vide.")
        result = self.crud.by_name_prefix(prefix)
        if not result:
            raise CityNotFoundError(f"Aucune ville dont le nom commence par {prefix} n'a été trouvée.")
        return result

    def search_by_min_population(self, min_population: int) -> List[City]:
        _check_population_range(min_population)
        result = self.crud.by_population_greater_than(min_population)
        if not result:
            raise CityNotFoundError(f"Aucune ville n'a une population supérieure à {min_population}.")
        return result

    def search_by_population_range(self, min_population: int, max_population: int) -> List[City]:
        _check_population_range(min_population, max_population)
        result = self.crud.by_population_between(min_population, max_population)
        if not result:
            raise CityNotFoundError(
                f"Aucune ville n'a une population comprise entre {min_population} et {max_population}."
            )
        return result

    def search_by_department_and_min_population(self, department_code: str, min_population: int) -> List[City]:
        _check_population_range(min_population)
        department = self.departments.get_department_by_code(department_code)
        result = self.crud.by_department_and_population_greater_than(department, min_population)
        if not result:
            raise CityNotFoundError(
                f"Aucune ville n'a une population supérieure à {min_population} "
                f"dans le département {department.code}."
            )
        return result

    def search_by_department_and_population_range(
        self,
        department_code: str,
        min_population: int,
        max_population: int
    ) -> List[City]:
        _check_population_range(min_population, max_population)
        department = self.departments.get_department_by_code(department_code)
        return self._by_department_between(department, min_population, max_population)

    def _by_department_between(self, department: Department, min_population: int, max_population: int) -> List[City]:
        result = self.crud.by_department_and_population_between(department, min_population, max_population)
        if not result:
            raise CityNotFoundError(
                f"Aucune ville n'a une population comprise entre {min_population} et {max_population} "
                f"dans le département {department.code}."
            )
        return result

    # ===== Vistas para reportes =====

    def _department_name(self, department_code: str) -> Optional[str]:
        if self.geo_client is None:
            return None
        return self.geo_client.get_department(department_code).nom

    def get_city_view(self, city_id: int) -> CityView:
        """Vista de la ciudad con el nombre del departamento de geo.api.gouv.fr."""
        city = self.get_city_by_id(city_id)
        return to_city_view(city, self._department_name(city.department.code))

    def get_department_city_views(self, department_code: str, enrich: bool = False) -> List[CityView]:
        cities = self.get_cities_by_department_code(department_code)
        nom_departement = self._department_name(department_code) if enrich else None
        return [to_city_view(city, nom_departement) for city in cities]


def to_city_view(city: City, nom_departement: Optional[str] = None) -> CityView:
    return CityView(
        nom_ville=city.nom,
        nombre_habitants=city.nb_habitants,
        code_departement=city.department.code if city.department else None,
        nom_departement=nom_departement
    )
