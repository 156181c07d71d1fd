from typing import Any, Dict, List

from .database import TIPOS_CONTACTO

REQUIRED_STR_FIELDS = ["nombre"]
OPTIONAL_STR_FIELDS = [
    "detalle_contacto",
    "actividad",
    "observacion",
]
BOOL_FIELDS = ["enviado", "respondido", "agendado", "convertido"]

MAX_STR_LEN = 255
MAX_OBSERVACION_LEN = 1000


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_positive_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v > 0


def validate_payload(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages for a recaptación
    payload. Empty list means valid.
    """
    errors: List[str] = []

    if "usuario_id" not in data or data["usuario_id"] is None:
        errors.append("Missing required field: usuario_id")
    elif not _is_positive_int(data["usuario_id"]):
        errors.append("Field 'usuario_id' must be a positive integer")

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")
        elif len(data[f]) > MAX_STR_LEN:
            errors.append(f"Field '{f}' exceeds {MAX_STR_LEN} characters")

    tipo = data.get("tipo_contacto")
    if tipo is not None and tipo not in TIPOS_CONTACTO:
        errors.append(f"Field 'tipo_contacto' has unknown value: {tipo!r}")

    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    obs = data.get("observacion")
    if isinstance(obs, str) and len(obs) > MAX_OBSERVACION_LEN:
        errors.append(f"Field 'observacion' exceeds {MAX_OBSERVACION_LEN} characters")
    for f in ("detalle_contacto", "actividad"):
        v = data.get(f)
        if isinstance(v, str) and len(v) > MAX_STR_LEN:
            errors.append(f"Field '{f}' exceeds {MAX_STR_LEN} characters")

    for f in BOOL_FIELDS:
        if f in data and not isinstance(data[f], bool):
            errors.append(f"Field '{f}' must be a boolean")

    return errors
