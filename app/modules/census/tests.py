"""
Tests para la importación del recensement

Cubren:
- Parseo de filas y de poblaciones con separador de miles
- Creación de región, departamento y comuna a partir de una fila
- Reimportación idempotente
- Filas rechazadas (población inválida, nombre de región incoherente)
- Errores fatales de lectura del archivo
"""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.common.errors import CensusFileError
from app.common.validators import clean_field, parse_population, validate_code
from app.modules.census.importer import CensusImporter, import_census_file, parse_row, split_line
from app.modules.locations.models import City, Department, Region

HEADER = (
    "Code région;Nom de la région;Code département;Code arrondissement;Code canton;"
    "Code commune;Nom de la commune;Population municipale;Population comptée à part;Population totale"
)
PARIS = "11;Île-de-France;75;751;01;056;Paris;2165423;12345;2177768"


@pytest.fixture
def census_file(tmp_path):
    """Escribe un archivo de recensement con el encabezado y las líneas dadas"""
    def write(*lines, encoding="utf-8"):
        path = tmp_path / "recensement.csv"
        path.write_text("\n".join((HEADER,) + lines) + "\n", encoding=encoding)
        return str(path)
    return write


# ===== TESTS DE PARSEO =====

class TestPopulationParsing:
    """Tests para parse_population"""

    def test_plain_integer(self):
        assert parse_population("2177768") == 2177768

    def test_thousands_separators(self):
        assert parse_population("2 165 423") == 2165423
        assert parse_population("2 165\u202f423") == 2165423

    @pytest.mark.parametrize("value", ["", "   ", "12a", "-5", "1.5", None])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError):
            parse_population(value)


class TestRowParsing:
    """Tests para split_line / parse_row"""

    def test_parse_paris(self):
        row = parse_row(split_line(PARIS))

        assert row.code_region == "11"
        assert row.nom_region == "Île-de-France"
        assert row.code_departement == "75"
        assert row.nom_commune == "Paris"
        assert row.population_municipale == 2165423
        assert row.population_comptee_a_part == 12345
        assert row.population_totale == 2177768

    def test_fields_are_trimmed(self):
        row = parse_row(split_line("\ufeff11 ; Île-de-France ;75;751;01;056; Paris ;1;0;1"))
        assert row.code_region == "11"
        assert row.nom_commune == "Paris"

    def test_missing_columns(self):
        with pytest.raises(ValueError):
            parse_row(split_line("11;Île-de-France;75"))

    def test_invalid_department_code(self):
        with pytest.raises(ValueError):
            parse_row(split_line("11;Île-de-France;;751;01;056;Paris;1;0;1"))

    def test_validate_code(self):
        assert validate_code("2A")
        assert not validate_code("")
        assert not validate_code("7-5")
        assert not validate_code("X" * 11)
        assert clean_field("\ufeff 84 ") == "84"


# ===== TESTS DE IMPORTACIÓN =====

class TestCensusImporter:
    """Tests para CensusImporter"""

    def test_single_row_creates_full_hierarchy(self, db_session: Session, census_file):
        report = CensusImporter(db_session).run(census_file(PARIS))

        region = db_session.query(Region).one()
        department = db_session.query(Department).one()
        city = db_session.query(City).one()

        assert (region.code, region.nom) == ("11", "Île-de-France")
        assert department.code == "75"
        assert department.region_id == region.id
        assert city.nom == "Paris"
        assert city.department_id == department.id
        assert city.nb_habitants == 2177768
        assert city.population_totale == city.nb_habitants
        assert (city.code_arrondissement, city.code_canton, city.code_commune) == ("751", "01", "056")

        assert report.rows_read == 1
        assert report.regions_created == 1
        assert report.departments_created == 1
        assert report.cities_created == 1
        assert report.rows_rejected == 0

    def test_population_with_spaces(self, db_session: Session, census_file):
        CensusImporter(db_session).run(census_file("11;Île-de-France;75;751;01;056;Paris;2 165 423;12 345;2 177 768"))

        city = db_session.query(City).one()
        assert city.population_municipale == 2165423
        assert city.nb_habitants == 2177768

    def test_reimport_is_idempotent(self, db_session: Session, census_file):
        path = census_file(
            PARIS,
            "11;Île-de-France;92;921;01;012;Boulogne-Billancourt;120071;1000;121071",
            "76;Occitanie;34;343;01;172;Montpellier;295542;2000;297542",
        )

        CensusImporter(db_session).run(path)
        report = CensusImporter(db_session).run(path)

        assert db_session.query(Region).count() == 2
        assert db_session.query(Department).count() == 3
        assert db_session.query(City).count() == 3
        assert report.regions_created == 0
        assert report.departments_created == 0
        assert report.cities_created == 0
        assert report.cities_skipped == 3

    def test_regions_and_departments_resolved_once(self, db_session: Session, census_file):
        report = CensusImporter(db_session).run(census_file(
            PARIS,
            "11;Île-de-France;75;751;02;999;Paris Bis;10;0;10",
        ))

        assert report.regions_created == 1
        assert report.departments_created == 1
        assert report.cities_created == 2
        assert {c.department_id for c in db_session.query(City).all()} == {db_session.query(Department).one().id}

    def test_region_name_inconsistency_skips_row(self, db_session: Session, census_file):
        report = CensusImporter(db_session).run(census_file(
            PARIS,
            "11;Ile de France;77;771;01;288;Melun;40000;500;40500",
        ))

        assert db_session.query(Region).one().nom == "Île-de-France"
        assert [d.code for d in db_session.query(Department).all()] == ["75"]
        assert [c.nom for c in db_session.query(City).all()] == ["Paris"]
        assert report.rows_rejected == 1

    def test_invalid_population_row_is_skipped(self, db_session: Session, census_file):
        report = CensusImporter(db_session).run(census_file(
            "76;Occitanie;34;343;01;172;Montpellier;abc;2000;297542",
            PARIS,
        ))

        assert [c.nom for c in db_session.query(City).all()] == ["Paris"]
        assert report.rows_read == 2
        assert report.rows_rejected == 1

    def test_blank_lines_are_ignored(self, db_session: Session, census_file):
        report = CensusImporter(db_session).run(census_file("", PARIS, "   "))
        assert report.rows_read == 1
        assert report.cities_created == 1

    def test_header_only(self, db_session: Session, census_file):
        report = CensusImporter(db_session).run(census_file())
        assert report.rows_read == 0
        assert db_session.query(City).count() == 0

    def test_global_name_uniqueness(self, db_session: Session, census_file):
        path = census_file(
            "84;Auvergne-Rhône-Alpes;03;031;01;310;Valence;500;0;500",
            "84;Auvergne-Rhône-Alpes;26;261;01;362;Valence;64000;0;64000",
        )
        report = CensusImporter(db_session, city_uniqueness="name").run(path)

        assert db_session.query(City).count() == 1
        assert report.cities_skipped == 1

    def test_name_and_department_uniqueness(self, db_session: Session, census_file):
        path = census_file(
            "84;Auvergne-Rhône-Alpes;03;031;01;310;Valence;500;0;500",
            "84;Auvergne-Rhône-Alpes;26;261;01;362;Valence;64000;0;64000",
        )
        report = CensusImporter(db_session, city_uniqueness="name_and_department").run(path)

        assert db_session.query(City).count() == 2
        assert report.cities_skipped == 0

    def test_latin1_file(self, db_session: Session, census_file):
        path = census_file("76;Occitanie;34;343;01;301;Sète;44558;600;45158", encoding="latin-1")
        import_census_file(db_session, path, encoding="latin-1")
        assert db_session.query(City).one().nom == "Sète"


class TestCensusImporterRecovery:
    """Una consulta fallida no debe bloquear las filas siguientes"""

    MONTPELLIER = "76;Occitanie;34;343;01;172;Montpellier;295542;2000;297542"

    @pytest.fixture
    def rollbacks(self, db_session: Session, monkeypatch):
        calls = []
        real_rollback = db_session.rollback

        def tracking_rollback():
            calls.append(True)
            real_rollback()

        monkeypatch.setattr(db_session, "rollback", tracking_rollback)
        return calls

    def test_failed_city_lookup_rolls_back(self, db_session: Session, census_file, monkeypatch, rollbacks):
        importer = CensusImporter(db_session)
        exists_by_name = importer.cities.exists_by_name

        def failing_exists_by_name(nom):
            if nom == "Montpellier":
                raise OperationalError("SELECT", {}, Exception("current transaction is aborted"))
            return exists_by_name(nom)

        monkeypatch.setattr(importer.cities, "exists_by_name", failing_exists_by_name)

        report = importer.run(census_file(self.MONTPELLIER, PARIS))

        assert rollbacks == [True]
        assert report.rows_rejected == 1
        assert report.cities_created == 1
        assert [c.nom for c in db_session.query(City).all()] == ["Paris"]

    def test_failed_department_lookup_rolls_back(self, db_session: Session, census_file, monkeypatch, rollbacks):
        importer = CensusImporter(db_session)
        find_by_code = importer.departments.find_by_code

        def failing_find_by_code(code):
            if code == "34":
                raise OperationalError("SELECT", {}, Exception("current transaction is aborted"))
            return find_by_code(code)

        monkeypatch.setattr(importer.departments, "find_by_code", failing_find_by_code)

        report = importer.run(census_file(self.MONTPELLIER, PARIS))

        assert rollbacks == [True]
        assert report.rows_rejected == 1
        assert [d.code for d in db_session.query(Department).all()] == ["75"]
        assert [c.nom for c in db_session.query(City).all()] == ["Paris"]


class TestCensusFileErrors:
    """Errores fatales al leer el archivo"""

    def test_missing_file(self, db_session: Session, tmp_path):
        with pytest.raises(CensusFileError):
            CensusImporter(db_session).run(str(tmp_path / "absent.csv"))

    def test_empty_file(self, db_session: Session, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(CensusFileError):
            CensusImporter(db_session).run(str(path))

    def test_wrong_encoding(self, db_session: Session, tmp_path):
        path = tmp_path / "latin1.csv"
        path.write_bytes((HEADER + "\n76;Occitanie;34;343;01;301;Sète;1;0;1\n").encode("latin-1"))
        with pytest.raises(CensusFileError):
            CensusImporter(db_session).run(str(path), encoding="utf-8")


class TestCensusTask:
    """Tarea Celery ejecutada en modo eager (sin broker)"""

    def test_task_returns_report(self, db_session: Session, census_file):
        from app.modules.census.tasks import import_census_file as import_task

        result = import_task.apply(args=[census_file(PARIS)])

        body = result.get()
        assert body["status"] == "completed"
        assert body["cities_created"] == 1
        assert db_session.query(City).one().nom == "Paris"

    def test_task_fails_on_missing_file(self, db_session: Session, tmp_path):
        from app.modules.census.tasks import import_census_file as import_task

        result = import_task.apply(args=[str(tmp_path / "absent.csv")])

        assert result.failed()
        with pytest.raises(CensusFileError):
            result.get()
