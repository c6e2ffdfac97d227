"""
Errores de dominio y su traducción a respuestas HTTP.

Los servicios y el importador lanzan únicamente estas excepciones; la
traducción a códigos HTTP ocurre en los exception handlers registrados
en app.main.
"""
from datetime import datetime, timezone
from typing import Dict, Type
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GeoDataError(Exception):
    """Base de todos los errores de dominio."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ===== NotFound =====

class NotFoundError(GeoDataError):
    pass


class RegionNotFoundError(NotFoundError):
    pass


class DepartmentNotFoundError(NotFoundError):
    pass


class CityNotFoundError(NotFoundError):
    pass


# ===== Duplicate =====

class DuplicateError(GeoDataError):
    pass


class DuplicateKeyError(DuplicateError):
    """Violación de una restricción única detectada por la base de datos."""


class RegionAlreadyExistsError(DuplicateError):
    pass


class DepartmentAlreadyExistsError(DuplicateError):
    pass


class CityAlreadyExistsError(DuplicateError):
    pass


# ===== Validation =====

class InvalidQueryError(GeoDataError):
    pass


# ===== DependencyMissing =====

class DependencyMissingError(GeoDataError):
    pass


class DepartmentMissingError(DependencyMissingError):
    pass


class RegionMissingError(DependencyMissingError):
    pass


# ===== External =====

class ExternalServiceError(GeoDataError):
    pass


class CensusFileError(ExternalServiceError):
    pass


class ReportWriteError(OSError):
    """The report sink failed while a renderer was writing to it."""


# Orden relevante: se usa la primera clase de la MRO presente en el mapa
ERROR_STATUS: Dict[Type[Exception], int] = {
    RegionAlreadyExistsError: status.HTTP_409_CONFLICT,
    DuplicateKeyError: status.HTTP_409_CONFLICT,
    DuplicateError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DependencyMissingError: status.HTTP_404_NOT_FOUND,
    InvalidQueryError: status.HTTP_400_BAD_REQUEST,
    ExternalServiceError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: Exception) -> int:
    for klass in type(exc).__mro__:
        if klass in ERROR_STATUS:
            return ERROR_STATUS[klass]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(status_code: int, error: str, message) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status_code,
        "error": error,
        "message": message,
    }


async def geo_data_error_handler(request: Request, exc: GeoDataError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, type(exc).__name__, exc.message)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(status.HTTP_400_BAD_REQUEST, "ValidationError", "; ".join(messages))
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            type(exc).__name__,
            f"An internal error occurred: {exc}"
        )
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GeoDataError, geo_data_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
