"""
Report renderers for city lists.

Renderers are pure functions of the given city views: they write to a
caller-supplied binary sink, flush it before returning and never touch
the database. Any failure of the sink is raised as ReportWriteError.
"""

import csv
import io
from typing import Any, BinaryIO, Dict, List, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.common.errors import ReportWriteError
from app.modules.locations.schemas import CityView

from .utils import (
    REPORT_HEADERS,
    format_report_value,
    prepare_city_population_rows,
    prepare_city_views_rows,
)

CSV_DELIMITER = ";"


def write_cities_csv(cities: Sequence[CityView], sink: BinaryIO) -> None:
    """
    Write the four-column city report as UTF-8 CSV, one record per city.

    Rows are encoded and written one at a time so large lists are not
    held twice in memory.
    """
    headers = REPORT_HEADERS["cities"]
    line = io.StringIO()
    writer = csv.writer(line, delimiter=CSV_DELIMITER, lineterminator="\r\n")

    def emit(values: List[str]) -> None:
        writer.writerow(values)
        sink.write(line.getvalue().encode("utf-8"))
        line.seek(0)
        line.truncate(0)

    try:
        emit(list(headers.values()))
        for row in prepare_city_views_rows(cities):
            emit([format_report_value(row[key]) for key in headers])
        sink.flush()
    except OSError as e:
        raise ReportWriteError("Failed to generate CSV report") from e


def _title_style() -> ParagraphStyle:
    styles = getSampleStyleSheet()
    return ParagraphStyle(
        "ReportTitle",
        parent=styles["Title"],
        fontName="Helvetica-Bold",
        fontSize=18,
        alignment=TA_CENTER,
    )


def _build_table(headers: Dict[str, str], rows: List[Dict[str, Any]], width: float,
                 centered: Sequence[str]) -> Table:
    keys = list(headers)
    data = [list(headers.values())]
    data.extend([format_report_value(row[key]) for key in keys] for row in rows)

    style = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 12),
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("TOPPADDING", (0, 0), (-1, 0), 5),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 5),
    ]
    for key in centered:
        column = keys.index(key)
        style.append(("ALIGN", (column, 1), (column, -1), "CENTER"))

    table = Table(data, colWidths=[width / len(keys)] * len(keys), repeatRows=1)
    table.setStyle(TableStyle(style))
    return table


def _write_pdf(title: str, headers: Dict[str, str], rows: List[Dict[str, Any]],
               sink: BinaryIO, centered: Sequence[str]) -> None:
    try:
        document = SimpleDocTemplate(sink, pagesize=A4, title=title)
        story = [
            Paragraph(escape(title), _title_style()),
            Spacer(1, 12),
            _build_table(headers, rows, document.width, centered),
        ]
        document.build(story)
        sink.flush()
    except OSError as e:
        raise ReportWriteError("Failed to generate PDF report") from e


def write_department_cities_pdf(department_code: str, cities: Sequence[CityView], sink: BinaryIO) -> None:
    """A4 report listing every city of a department with its population."""
    _write_pdf(
        f"Liste des villes du département {department_code}",
        REPORT_HEADERS["city_population"],
        prepare_city_population_rows(cities),
        sink,
        centered=["nombre_habitants"],
    )


def write_top_cities_pdf(cities: Sequence[CityView], sink: BinaryIO) -> None:
    """A4 "Top N" report with the four city columns."""
    _write_pdf(
        f"Top {len(cities)} villes",
        REPORT_HEADERS["cities"],
        prepare_city_views_rows(cities),
        sink,
        centered=["nombre_habitants", "code_departement"],
    )
