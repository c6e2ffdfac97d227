"""
Models for French regions, departments and cities (communes).
"""
from sqlalchemy import BigInteger, Column, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database.database import Base


class Region(Base):
    """
    Modelo para regiones de Francia.
    Se crean principalmente durante la importación del recensement.
    """
    __tablename__ = "regions"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(10), nullable=False, unique=True, index=True)  # Código INSEE
    nom = Column(String(100), nullable=False, index=True)

    def __str__(self):
        return f"{self.nom} ({self.code})"


class Department(Base):
    """
    Modelo para departamentos.
    El nombre no se persiste: solo el código y la región.
    """
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(10), nullable=False, unique=True, index=True)  # Código INSEE
    # Nullable por compatibilidad con departamentos creados por API sin región
    region_id = Column(Integer, ForeignKey("regions.id", ondelete="CASCADE"), nullable=True, index=True)

    region = relationship("Region", lazy="joined")

    def __str__(self):
        return self.code


class City(Base):
    """
    Modelo para ciudades/comunas.
    Unicidad de negocio: (nom, department_id).
    """
    __tablename__ = "cities"
    __table_args__ = (
        UniqueConstraint("nom", "department_id", name="uq_cities_nom_department"),
        Index("ix_cities_department_population", "department_id", "nb_habitants"),
    )

    id = Column(Integer, primary_key=True, index=True)
    nom = Column(String(100), nullable=False, index=True)
    nb_habitants = Column(BigInteger, nullable=False, index=True)
    code_arrondissement = Column(String(10), nullable=True)
    code_canton = Column(String(10), nullable=True)
    code_commune = Column(String(10), nullable=True)
    population_municipale = Column(BigInteger, nullable=False, default=0)
    population_comptee_a_part = Column(BigInteger, nullable=False, default=0)
    population_totale = Column(BigInteger, nullable=False, default=0)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True)

    department = relationship("Department", lazy="joined")

    def __str__(self):
        return f"{self.nom} ({self.department.code})"
