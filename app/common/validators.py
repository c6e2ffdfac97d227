"""
Validadores y parsers para los datos del recensement (INSEE)
"""
import re
from typing import Optional

WHITESPACE = re.compile(r'\s')


def parse_population(value: Optional[str]) -> int:
    """
    Convierte un campo de población del recensement a entero.
    El archivo usa espacios (incluido el espacio fino) como separador de miles:
    "2 165 423" -> 2165423.

    Raises:
        ValueError: si el campo está vacío, no es numérico o es negativo
    """
    if value is None:
        raise ValueError("population field is missing")

    cleaned = WHITESPACE.sub('', value)

    if not (cleaned.isascii() and cleaned.isdigit()):
        raise ValueError(f"invalid population value: {value!r}")

    return int(cleaned)


def validate_code(code: str, max_length: int = 10) -> bool:
    """
    Valida un código INSEE (región, departamento, cantón...).
    - Entre 1 y max_length caracteres
    - Solo letras y dígitos (Córcega usa 2A / 2B)
    """
    if not code or len(code) > max_length:
        return False
    return code.isalnum()


def clean_field(value: str) -> str:
    """Quita espacios y el BOM que algunos exports de Excel dejan en la primera columna."""
    return value.lstrip('\ufeff').strip()
