"""
CRUD operations for locations (regions, departments and cities).

Cada operación de escritura confirma su propia transacción y hace rollback
si falla. Las violaciones de restricciones únicas se traducen a
DuplicateKeyError para distinguirlas de otros fallos de la base de datos.
"""
from typing import List, Optional, Tuple
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.common.errors import DuplicateKeyError
from .models import Region, Department, City

logger = logging.getLogger(__name__)


class BaseCrud:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateKeyError(f"Violación de restricción única: {e.orig}") from e
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _save(self, instance):
        self.db.add(instance)
        self._commit()
        self.db.refresh(instance)
        return instance


class RegionCrud(BaseCrud):
    """Operaciones CRUD para regiones"""

    def get_all(self) -> List[Region]:
        return self.db.query(Region).order_by(Region.id).all()

    def get_by_id(self, region_id: int) -> Optional[Region]:
        return self.db.get(Region, region_id)

    def find_by_code(self, code: str) -> Optional[Region]:
        return self.db.query(Region).filter(Region.code == code).first()

    def find_by_name(self, nom: str) -> Optional[Region]:
        return self.db.query(Region).filter(Region.nom == nom).order_by(Region.id).first()

    def exists_by_code(self, code: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(Region.id).filter(Region.code == code)
        if exclude_id is not None:
            query = query.filter(Region.id != exclude_id)
        return self.db.query(query.exists()).scalar()

    def exists_by_name(self, nom: str) -> bool:
        return self.db.query(self.db.query(Region.id).filter(Region.nom == nom).exists()).scalar()

    def create(self, code: str, nom: str) -> Region:
        return self._save(Region(code=code, nom=nom))

    def update(self, region: Region, code: str, nom: str) -> Region:
        region.code = code
        region.nom = nom
        return self._save(region)

    def delete(self, region: Region) -> None:
        """Borra la región y, en la misma transacción, sus departamentos y ciudades."""
        department_ids = select(Department.id).where(Department.region_id == region.id)
        try:
            self.db.query(City).filter(City.department_id.in_(department_ids)).delete(synchronize_session=False)
            self.db.query(Department).filter(Department.region_id == region.id).delete(synchronize_session=False)
            self.db.query(Region).filter(Region.id == region.id).delete(synchronize_session=False)
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._commit()
        self.db.expire_all()

    def delete_all(self) -> None:
        """Borra todas las regiones con sus departamentos y ciudades."""
        department_ids = select(Department.id).where(Department.region_id.isnot(None))
        try:
            self.db.query(City).filter(City.department_id.in_(department_ids)).delete(synchronize_session=False)
            self.db.query(Department).filter(Department.region_id.isnot(None)).delete(synchronize_session=False)
            self.db.query(Region).delete(synchronize_session=False)
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._commit()
        self.db.expire_all()

    def count(self) -> int:
        return self.db.query(func.count(Region.id)).scalar()


class DepartmentCrud(BaseCrud):
    """Operaciones CRUD para departamentos"""

    def get_all(self) -> List[Department]:
        return self.db.query(Department).order_by(Department.id).all()

    def get_by_id(self, department_id: int) -> Optional[Department]:
        return self.db.get(Department, department_id)

    def find_by_code(self, code: str) -> Optional[Department]:
        return self.db.query(Department).filter(Department.code == code).first()

    def exists_by_code(self, code: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(Department.id).filter(Department.code == code)
        if exclude_id is not None:
            query = query.filter(Department.id != exclude_id)
        return self.db.query(query.exists()).scalar()

    def create(self, code: str, region: Optional[Region]) -> Department:
        return self._save(Department(code=code, region=region))

    def update(self, department: Department, code: str, region: Optional[Region]) -> Department:
        department.code = code
        department.region = region
        return self._save(department)

    def delete(self, department: Department) -> None:
        """Borra el departamento y sus ciudades en la misma transacción."""
        try:
            self.db.query(City).filter(City.department_id == department.id).delete(synchronize_session=False)
            self.db.query(Department).filter(Department.id == department.id).delete(synchronize_session=False)
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._commit()
        self.db.expire_all()

    def count(self) -> int:
        return self.db.query(func.count(Department.id)).scalar()


class CityCrud(BaseCrud):
    """Operaciones CRUD y consultas de población para ciudades"""

    def get_by_id(self, city_id: int) -> Optional[City]:
        return self.db.get(City, city_id)

    def find_by_name(self, nom: str) -> Optional[City]:
        return self.db.query(City).filter(City.nom == nom).order_by(City.id).first()

    def exists_by_name(self, nom: str) -> bool:
        return self.db.query(self.db.query(City.id).filter(City.nom == nom).exists()).scalar()

    def exists_by_name_and_department(self, nom: str, department: Department) -> bool:
        query = self.db.query(City.id).filter(City.nom == nom, City.department_id == department.id)
        return self.db.query(query.exists()).scalar()

    def create(self, city: City) -> City:
        """Inserta una ciudad cuyo departamento ya está resuelto."""
        return self._save(city)

    def update(self, city: City, nom: str, nb_habitants: int) -> City:
        city.nom = nom
        city.nb_habitants = nb_habitants
        return self._save(city)

    def delete(self, city: City) -> None:
        self.db.delete(city)
        self._commit()

    def list_page(self, page: int, size: int) -> Tuple[List[City], int]:
        """Página ordenada por ID ascendente (page es 0-indexed)."""
        total = self.db.query(func.count(City.id)).scalar()
        items = (
            self.db.query(City)
            .order_by(City.id)
            .offset(page * size)
            .limit(size)
            .all()
        )
        return items, total

    def by_name_prefix(self, prefix: str) -> List[City]:
        """Búsqueda por prefijo sensible a mayúsculas (independiente de la collation)."""
        return (
            self.db.query(City)
            .filter(func.substr(City.nom, 1, len(prefix)) == prefix)
            .order_by(City.nom, City.id)
            .all()
        )

    def by_population_greater_than(self, min_population: int) -> List[City]:
        return (
            self.db.query(City)
            .filter(City.nb_habitants > min_population)
            .order_by(City.id)
            .all()
        )

    def by_population_between(self, min_population: int, max_population: int) -> List[City]:
        return (
            self.db.query(City)
            .filter(City.nb_habitants.between(min_population, max_population))
            .order_by(City.id)
            .all()
        )

    def by_department_and_population_greater_than(self, department: Department, min_population: int) -> List[City]:
        return (
            self.db.query(City)
            .filter(City.department_id == department.id, City.nb_habitants > min_population)
            .order_by(City.id)
            .all()
        )

    def by_department_and_population_between(
        self,
        department: Department,
        min_population: int,
        max_population: int
    ) -> List[City]:
        return (
            self.db.query(City)
            .filter(
                City.department_id == department.id,
                City.nb_habitants.between(min_population, max_population)
            )
            .order_by(City.id)
            .all()
        )

    def by_department_sorted_by_population_desc(self, department: Department, limit: int) -> List[City]:
        """Top-N del departamento; los empates se resuelven por ID ascendente."""
        return (
            self.db.query(City)
            .filter(City.department_id == department.id)
            .order_by(City.nb_habitants.desc(), City.id.asc())
            .limit(limit)
            .all()
        )

    def by_department(self, department: Department) -> List[City]:
        return (
            self.db.query(City)
            .filter(City.department_id == department.id)
            .order_by(City.nb_habitants.desc(), City.id.asc())
            .all()
        )

    def count(self) -> int:
        return self.db.query(func.count(City.id)).scalar()
