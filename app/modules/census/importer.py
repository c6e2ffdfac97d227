"""
Importación del recensement INSEE (archivo CSV separado por ';').

Para cada fila se resuelve (o crea) la región y el departamento, usando
caches en memoria por código para evitar una consulta por fila, y se
inserta la comuna una sola vez. Los errores de una fila se registran y
la importación continúa; solo un fallo al leer el archivo es fatal.
"""
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.common.errors import CensusFileError, GeoDataError
from app.common.validators import clean_field, parse_population, validate_code
from app.core.config import settings
from app.modules.locations.crud import CityCrud, DepartmentCrud, RegionCrud
from app.modules.locations.models import City, Department, Region

logger = logging.getLogger(__name__)

DELIMITER = ";"

# Posición de cada columna en el archivo
CODE_REGION = 0
NOM_REGION = 1
CODE_DEPARTEMENT = 2
CODE_ARRONDISSEMENT = 3
CODE_CANTON = 4
CODE_COMMUNE = 5
NOM_COMMUNE = 6
POPULATION_MUNICIPALE = 7
POPULATION_COMPTEE_A_PART = 8
POPULATION_TOTALE = 9
COLUMN_COUNT = 10


@dataclass
class CensusRow:
    code_region: str
    nom_region: str
    code_departement: str
    code_arrondissement: str
    code_canton: str
    code_commune: str
    nom_commune: str
    population_municipale: int
    population_comptee_a_part: int
    population_totale: int


@dataclass
class ImportReport:
    rows_read: int = 0
    regions_created: int = 0
    departments_created: int = 0
    cities_created: int = 0
    cities_skipped: int = 0
    rows_rejected: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def split_line(line: str) -> List[str]:
    return [clean_field(field) for field in line.split(DELIMITER)]


def parse_row(fields: List[str]) -> CensusRow:
    """
    Construye una fila a partir de los campos ya separados.

    Raises:
        ValueError: si faltan columnas, un código es inválido o una
            población no es un entero
    """
    if len(fields) < COLUMN_COUNT:
        raise ValueError(f"expected {COLUMN_COUNT} columns, got {len(fields)}")
    for position in (CODE_REGION, CODE_DEPARTEMENT):
        if not validate_code(fields[position]):
            raise ValueError(f"invalid INSEE code: {fields[position]!r}")

    return CensusRow(
        code_region=fields[CODE_REGION],
        nom_region=fields[NOM_REGION],
        code_departement=fields[CODE_DEPARTEMENT],
        code_arrondissement=fields[CODE_ARRONDISSEMENT],
        code_canton=fields[CODE_CANTON],
        code_commune=fields[CODE_COMMUNE],
        nom_commune=fields[NOM_COMMUNE],
        population_municipale=parse_population(fields[POPULATION_MUNICIPALE]),
        population_comptee_a_part=parse_population(fields[POPULATION_COMPTEE_A_PART]),
        population_totale=parse_population(fields[POPULATION_TOTALE]),
    )


def load_lines(path: str, encoding: str = "utf-8") -> List[str]:
    """Lee todas las líneas del archivo; cualquier error de lectura es fatal."""
    try:
        return Path(path).read_text(encoding=encoding).splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise CensusFileError(f"Impossible de lire le fichier de recensement {path}: {e}") from e


class CensusImporter:
    """
    Importador de un solo uso: las caches viven lo que dura la instancia.
    No es thread-safe; se ejecuta en un único hilo con su propia sesión.
    """

    def __init__(self, db: Session, city_uniqueness: Optional[str] = None):
        self.db = db
        self.regions = RegionCrud(db)
        self.departments = DepartmentCrud(db)
        self.cities = CityCrud(db)
        self.city_uniqueness = city_uniqueness or settings.CENSUS_CITY_UNIQUENESS
        self.region_cache: Dict[str, Region] = {}
        self.department_cache: Dict[str, Department] = {}
        self.report = ImportReport()

    def run(self, path: str, encoding: Optional[str] = None) -> ImportReport:
        lines = load_lines(path, encoding or settings.CENSUS_ENCODING)
        if not lines:
            raise CensusFileError(f"Le fichier de recensement {path} est vide (en-tête manquant).")

        logger.info(f"Importing census file {path} ({len(lines) - 1} data rows)")

        # La primera línea es el encabezado
        for line_number, line in enumerate(lines[1:], start=2):
            if not line.strip():
                continue
            self.import_line(line_number, line)

        logger.info(f"Census import finished: {self.report.as_dict()}")
        return self.report

    def import_line(self, line_number: int, line: str) -> Optional[City]:
        """Procesa una fila; devuelve la ciudad insertada o None si se omite."""
        self.report.rows_read += 1
        fields = split_line(line)

        try:
            row = parse_row(fields)
        except ValueError as e:
            self.report.rows_rejected += 1
            logger.error(f"Line {line_number}: cannot parse {fields}: {e}")
            return None

        try:
            region = self.resolve_region(row)

            if region.nom != row.nom_region:
                self.report.rows_rejected += 1
                logger.error(
                    f"Line {line_number}: inconsistency, region code {row.code_region} "
                    f"has different names: {region.nom} and {row.nom_region}"
                )
                return None

            department = self.resolve_department(row, region)
        except (GeoDataError, SQLAlchemyError) as e:
            self.db.rollback()
            self.report.rows_rejected += 1
            logger.error(f"Line {line_number}: error processing {fields}: {e}")
            return None

        city = City(
            nom=row.nom_commune,
            nb_habitants=row.population_totale,
            code_arrondissement=row.code_arrondissement,
            code_canton=row.code_canton,
            code_commune=row.code_commune,
            population_municipale=row.population_municipale,
            population_comptee_a_part=row.population_comptee_a_part,
            population_totale=row.population_totale,
            department=department,
        )
        return self.save_city(line_number, city, department)

    def resolve_region(self, row: CensusRow) -> Region:
        region = self.region_cache.get(row.code_region)
        if region is None:
            region = self.regions.find_by_code(row.code_region)
            if region is None:
                region = self.regions.create(row.code_region, row.nom_region)
                self.report.regions_created += 1
                logger.debug(f"Region {region.code} created")
            self.region_cache[row.code_region] = region
        return region

    def resolve_department(self, row: CensusRow, region: Region) -> Department:
        department = self.department_cache.get(row.code_departement)
        if department is None:
            department = self.departments.find_by_code(row.code_departement)
            if department is None:
                department = self.departments.create(row.code_departement, region)
                self.report.departments_created += 1
                logger.debug(f"Department {department.code} created")
            self.department_cache[row.code_departement] = department
        return department

    def city_exists(self, city: City, department: Department) -> bool:
        if self.city_uniqueness == "name_and_department":
            return self.cities.exists_by_name_and_department(city.nom, department)
        # Comprobación global por nombre (comportamiento histórico)
        return self.cities.exists_by_name(city.nom)

    def save_city(self, line_number: int, city: City, department: Department) -> Optional[City]:
        try:
            if self.city_exists(city, department):
                self.report.cities_skipped += 1
                return None
            created = self.cities.create(city)
        except (GeoDataError, SQLAlchemyError) as e:
            self.db.rollback()
            self.report.rows_rejected += 1
            logger.error(f"Line {line_number}: error saving city {city.nom}: {e}")
            return None

        self.report.cities_created += 1
        return created


def import_census_file(db: Session, path: str, encoding: Optional[str] = None) -> ImportReport:
    """Atajo usado por el script y la tarea Celery."""
    return CensusImporter(db).run(path, encoding)
