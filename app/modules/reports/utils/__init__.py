"""
Utilities for Reports module

Row preparation and formatting helpers shared by the CSV and PDF
renderers, plus the FastAPI response used to send a rendered file.
"""

from typing import Any, Dict, List, Sequence

from fastapi import Response

from app.modules.locations.schemas import CityView


def create_file_response(content: bytes, filename: str, media_type: str) -> Response:
    """
    Create a download response for an already rendered report.

    Args:
        content: Rendered bytes
        filename: Name proposed to the browser
        media_type: MIME type of the report

    Returns:
        FastAPI Response with attachment headers
    """
    return Response(
        content=content,
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"'
        }
    )


def format_report_value(value: Any) -> str:
    """
    Format a value for a report cell.

    Args:
        value: Value to format

    Returns:
        String representation suitable for CSV/PDF cells
    """
    if value is None:
        return ""
    return str(value)


def prepare_city_views_rows(cities: Sequence[CityView]) -> List[Dict[str, Any]]:
    """Prepare city views for the four-column city report"""
    rows = []
    for city in cities:
        rows.append({
            "nom_ville": city.nom_ville,
            "nombre_habitants": city.nombre_habitants,
            "code_departement": city.code_departement,
            "nom_departement": city.nom_departement,
        })
    return rows


def prepare_city_population_rows(cities: Sequence[CityView]) -> List[Dict[str, Any]]:
    """Prepare city views for the two-column department report"""
    return [
        {"nom_ville": city.nom_ville, "nombre_habitants": city.nombre_habitants}
        for city in cities
    ]


# Column headers for each report layout
REPORT_HEADERS = {
    "cities": {
        "nom_ville": "NOM VILLE",
        "nombre_habitants": "POPULATION",
        "code_departement": "CODE DEPARTEMENT",
        "nom_departement": "NOM DEPARTEMENT",
    },
    "city_population": {
        "nom_ville": "NOM VILLE",
        "nombre_habitants": "POPULATION",
    },
}
