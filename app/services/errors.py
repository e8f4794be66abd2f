# app/services/errors.py
# Errores de dominio del motor de slots; la capa HTTP los traduce a 404/409/422
from __future__ import annotations

from typing import List, Optional


class SlotConfigError(Exception):
    """Base de los errores de configuración de layouts."""


class ValidationError(SlotConfigError, ValueError):
    """Slot malformado: se rechaza al escribir, nunca se persiste."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [message])


class NotFoundError(SlotConfigError, LookupError):
    """Draft / acceptance / versión referenciada inexistente."""


class ConflictError(SlotConfigError):
    """La escritura optimista perdió la carrera: re-leer y reintentar."""

    def __init__(self, message: str, current_version: Optional[int] = None) -> None:
        super().__init__(message)
        self.current_version = current_version


class TemplateResolutionWarning(UserWarning):
    """
    Token desconocido o renderCondition desconocida.
    No se lanza nunca: se loguea y, si el caller pasa una lista, se acumula ahí.
    """
