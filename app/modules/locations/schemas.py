"""
Pydantic schemas for locations (regions, departments and cities).
Los campos viajan en camelCase (nbHabitants, codeCommune...).
"""
from typing import List, Optional
from pydantic import AliasChoices, BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = {"from_attributes": True, "alias_generator": to_camel, "populate_by_name": True}


class EntityRef(CamelModel):
    """Referencia parcial a una entidad padre (solo el ID)."""
    id: Optional[int] = Field(None, description="ID de la entidad")


# ===== Regions =====

class RegionBase(CamelModel):
    code: str = Field(..., min_length=1, max_length=10, description="Código INSEE de la región")
    nom: str = Field(..., min_length=1, max_length=100, description="Nombre de la región")


class RegionCreate(RegionBase):
    pass


class RegionUpdate(RegionBase):
    pass


class RegionOut(RegionBase):
    id: int


# ===== Departments =====

class DepartmentBase(CamelModel):
    code: str = Field(..., min_length=1, max_length=10, description="Código INSEE del departamento")


class DepartmentCreate(DepartmentBase):
    region: Optional[EntityRef] = Field(None, description="Región a la que pertenece")


class DepartmentUpdate(DepartmentCreate):
    pass


class DepartmentOut(DepartmentBase):
    id: int
    region: Optional[RegionOut] = None


class DepartmentSummary(DepartmentBase):
    """Departamento embebido en la salida de ciudades."""
    id: int
    region_id: Optional[int] = None


# ===== Cities =====

class CityBase(CamelModel):
    nom: str = Field(..., min_length=2, max_length=100, description="Nombre de la comuna")
    nb_habitants: int = Field(..., ge=1, description="Número de habitantes")


class CityCreate(CityBase):
    code_arrondissement: Optional[str] = Field(None, max_length=10)
    code_canton: Optional[str] = Field(None, max_length=10)
    code_commune: Optional[str] = Field(None, max_length=10)
    population_municipale: int = Field(0, ge=0)
    population_comptee_a_part: int = Field(0, ge=0)
    population_totale: Optional[int] = Field(None, ge=0, description="Por defecto igual a nbHabitants")
    departement: Optional[EntityRef] = Field(None, description="Departamento (se requiere su ID)")


class CityUpdate(CityBase):
    """Solo el nombre y el número de habitantes son modificables."""
    pass


class CityOut(CamelModel):
    id: int
    nom: str
    nb_habitants: int
    code_arrondissement: Optional[str] = None
    code_canton: Optional[str] = None
    code_commune: Optional[str] = None
    population_municipale: int = 0
    population_comptee_a_part: int = 0
    population_totale: int = 0
    departement: Optional[DepartmentSummary] = Field(
        None,
        validation_alias=AliasChoices("department", "departement"),
        serialization_alias="departement"
    )


class CityPage(CamelModel):
    """Página de ciudades (page es 0-indexed)."""
    content: List[CityOut] = Field(default_factory=list)
    page: int
    size: int
    total_elements: int
    total_pages: int


class CityView(CamelModel):
    """Vista de ciudad para reportes y enriquecimiento con geo.api.gouv.fr."""
    nom_ville: str
    nombre_habitants: int
    code_departement: Optional[str] = None
    nom_departement: Optional[str] = None
