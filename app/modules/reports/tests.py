"""
Tests para los renderers de reportes (CSV y PDF)
"""

import io

import pytest

from app.common.errors import ReportWriteError
from app.modules.locations.schemas import CityView
from app.modules.reports.renderers import (
    write_cities_csv,
    write_department_cities_pdf,
    write_top_cities_pdf,
)
from app.modules.reports.utils import create_file_response, format_report_value


class BrokenSink(io.BytesIO):
    """Sink que falla en la primera escritura"""

    def write(self, data):
        raise OSError("disk full")


@pytest.fixture
def city_views():
    return [
        CityView(nom_ville="Montpellier", nombre_habitants=295542, code_departement="34", nom_departement="Hérault"),
        CityView(nom_ville="Sète", nombre_habitants=44558, code_departement="34", nom_departement=None),
    ]


class TestCsvRenderer:
    """Tests para write_cities_csv"""

    def test_header_and_rows(self, city_views):
        sink = io.BytesIO()
        write_cities_csv(city_views, sink)

        lines = sink.getvalue().decode("utf-8").split("\r\n")
        assert lines[0] == "NOM VILLE;POPULATION;CODE DEPARTEMENT;NOM DEPARTEMENT"
        assert lines[1] == "Montpellier;295542;34;Hérault"
        assert lines[2] == "Sète;44558;34;"
        assert lines[3] == ""

    def test_empty_list_writes_header_only(self):
        sink = io.BytesIO()
        write_cities_csv([], sink)
        assert sink.getvalue() == b"NOM VILLE;POPULATION;CODE DEPARTEMENT;NOM DEPARTEMENT\r\n"

    def test_delimiter_in_value_is_quoted(self):
        sink = io.BytesIO()
        write_cities_csv([CityView(nom_ville="A;B", nombre_habitants=1)], sink)
        assert sink.getvalue().decode("utf-8").split("\r\n")[1] == '"A;B";1;;'

    def test_broken_sink(self, city_views):
        with pytest.raises(ReportWriteError):
            write_cities_csv(city_views, BrokenSink())


class TestPdfRenderer:
    """Tests para los reportes PDF"""

    def test_department_report(self, city_views):
        sink = io.BytesIO()
        write_department_cities_pdf("34", city_views, sink)
        assert sink.getvalue().startswith(b"%PDF")

    def test_top_report(self, city_views):
        sink = io.BytesIO()
        write_top_cities_pdf(city_views, sink)
        assert sink.getvalue().startswith(b"%PDF")

    def test_empty_report(self):
        sink = io.BytesIO()
        write_top_cities_pdf([], sink)
        assert sink.getvalue().startswith(b"%PDF")

    def test_broken_sink(self, city_views):
        with pytest.raises(ReportWriteError):
            write_department_cities_pdf("34", city_views, BrokenSink())


class TestReportUtils:
    """Tests para las utilidades de reportes"""

    def test_format_report_value(self):
        assert format_report_value(None) == ""
        assert format_report_value("Sète") == "Sète"
        assert format_report_value(12) == "12"

    def test_file_response_headers(self):
        response = create_file_response(b"data", "villes_34.csv", "text/csv; charset=utf-8")
        assert response.headers["content-disposition"] == 'attachment; filename="villes_34.csv"'
        assert response.body == b"data"
