"""
Spreadsheet import of recaptación contacts.

Two layouts are accepted:

- legacy: one contact per row with "Nombre", "Tipo de contacto" and
  "ID Usuario" columns; the collaborator id comes straight from the sheet.
- nuevo-excel: the sales/prospects sheet. Converted leads are skipped and
  the "Colaborador" column is resolved to a staff user id by fuzzy name
  matching, falling back to the uploader's id.

Every imported record is dated inside the target month. Row-level
failures are collected and reported without aborting the batch.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import SQLAlchemyError

from pipelines.entity_resolution.resolver import CollaboratorResolver
from pipelines.entity_resolution.snapshot_cache import get_snapshot_cache
from storage.repositories.recaptacion import RecaptacionRepository
from storage.repositories.users import DirectoryError, SqlUserDirectory

from .logger import get_logger
from .normalize import format_fecha_origen, normalize_header, parse_bool, parse_date
from .schema import MAX_OBSERVACION_LEN, validate_payload

logger = get_logger()

LEGACY = "legacy"
NUEVO_EXCEL = "nuevo-excel"

LEGACY_REQUIRED = ["Nombre", "Tipo de contacto", "ID Usuario"]
TIPO_LEADS = "Leads no convertidos"
DETALLE_DEFAULT = "Importación planilla de ventas"
NOMBRE_DEFAULT = "(sin nombre)"

PREVIEW_LIMIT = 50
ERRORS_LIMIT = 20


class ImportFormatError(Exception):
    """Raised when the uploaded file as a whole cannot be imported."""
    pass


@dataclass
class SheetRow:
    number: int  # 1-based worksheet row
    values: Dict[str, Any]


@dataclass
class ImportReport:
    mode: str
    dry_run: bool = False
    inserted: int = 0
    preview: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        return "Validation succeeded (dry-run)" if self.dry_run else "Import succeeded"

    @property
    def errors_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "message": self.message,
            "inserted": 0 if self.dry_run else self.inserted,
            "errors_count": self.errors_count,
            "mode": self.mode,
        }
        if self.dry_run:
            out["preview"] = self.preview[:PREVIEW_LIMIT]
        if self.errors:
            out["errors"] = self.errors[:ERRORS_LIMIT]
        return out


def alias(row: Dict[str, Any], names: List[str]) -> Any:
    """First non-empty value among the columns named (accent/case-insensitive)."""
    for name in names:
        wanted = normalize_header(name)
        for key, value in row.items():
            if normalize_header(key) == wanted and value is not None and value != "":
                return value
    return None


def _text(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    s = str(v).strip()
    return s or None


def _coerce_id(v: Any) -> Any:
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    return v


def read_rows(path: Path) -> List[SheetRow]:
    """
    Read the first worksheet of an .xlsx file.

    The first row holds the headers. Blank rows are dropped and missing
    cells come back as None.

    Raises:
        ImportFormatError: unreadable workbook, no sheets or no data rows
    """
    try:
        wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as e:
        raise ImportFormatError(f"Could not read workbook (is it a valid .xlsx?): {e}") from e

    try:
        if not wb.sheetnames:
            raise ImportFormatError("The workbook has no sheets")
        ws = wb[wb.sheetnames[0]]
        rows_iter = ws.iter_rows(values_only=True)
        header_cells = next(rows_iter, None)
        if header_cells is None:
            raise ImportFormatError("The file is empty or has no data")
        headers = [
            str(h).strip() if h is not None else f"column_{i + 1}"
            for i, h in enumerate(header_cells)
        ]

        rows: List[SheetRow] = []
        for number, cells in enumerate(rows_iter, start=2):
            if all(c is None or (isinstance(c, str) and not c.strip()) for c in cells):
                continue
            values = {h: (cells[i] if i < len(cells) else None) for i, h in enumerate(headers)}
            rows.append(SheetRow(number=number, values=values))
    finally:
        wb.close()

    if not rows:
        raise ImportFormatError("The file is empty or has no data")
    return rows


def detect_format(rows: List[SheetRow]) -> str:
    first = rows[0].values
    headers = {normalize_header(k) for k in first}
    if all(normalize_header(c) in headers for c in LEGACY_REQUIRED):
        return LEGACY

    has_identity = (
        alias(first, ["Nombre"])
        or alias(first, ["Usuario / Celular", "Celular"])
        or alias(first, ["Colaborador"])
    )
    if not has_identity:
        raise ImportFormatError("Unknown format: expected at least Nombre / Usuario / Colaborador")
    return NUEVO_EXCEL


def make_fecha_import(mes: Optional[int] = None, anio: Optional[int] = None, today: Optional[date] = None) -> date:
    """
    Date every imported record gets: today's day, clamped to the length
    of the target month, in the target month and year (default: current).
    """
    today = today or date.today()
    year = int(anio) if anio else today.year
    month = int(mes) if mes else today.month
    if not 1 <= month <= 12:
        raise ImportFormatError(f"Invalid month: {mes}")
    day = min(today.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def with_fecha_origen(observacion: Optional[str], fecha_excel: Optional[date]) -> Optional[str]:
    if not fecha_excel:
        return observacion or None
    prefix = f"{observacion} — " if observacion else ""
    return f"{prefix}Fecha origen: {format_fecha_origen(fecha_excel)}"


def build_legacy_payload(row: Dict[str, Any], fecha: date) -> Dict[str, Any]:
    observacion = with_fecha_origen(
        _text(alias(row, ["Observacion", "Observación"])),
        parse_date(alias(row, ["Fecha"])),
    )
    return {
        "usuario_id": _coerce_id(alias(row, ["ID Usuario"])),
        "nombre": _text(alias(row, ["Nombre"])),
        "tipo_contacto": _text(alias(row, ["Tipo de contacto"])),
        "detalle_contacto": _text(alias(row, ["Detalle contacto"])),
        "actividad": _text(alias(row, ["Actividad"])),
        "fecha": fecha,
        "enviado": False,
        "respondido": False,
        "agendado": False,
        "convertido": False,
        "observacion": observacion,
    }


def build_nuevo_payload(
    row: Dict[str, Any],
    fecha: date,
    resolver: CollaboratorResolver,
    fallback_id: Optional[int],
    scope: Optional[int] = None,
) -> Optional[Dict[str, Any]]:
    """
    Payload for one sales-sheet row, or None for a converted lead.
    Rows without a name or a contact still import, with placeholders.

    Directory errors raised while resolving the collaborator propagate.
    """
    if parse_bool(alias(row, ["Convertido"])):
        return None

    nombre = _text(alias(row, ["Nombre"]))
    contacto = _text(alias(row, ["Usuario / Celular", "Celular", "Usuario", "Telefono", "Teléfono"]))

    resolution = resolver.resolve_details(_text(alias(row, ["Colaborador"])), fallback_id, scope)

    observacion = with_fecha_origen(
        _text(alias(row, ["Observacion", "Observación"])),
        parse_date(alias(row, ["Fecha"])),
    )
    if observacion:
        observacion = observacion[:MAX_OBSERVACION_LEN]

    return {
        "usuario_id": resolution.usuario_id,
        "nombre": nombre or NOMBRE_DEFAULT,
        "tipo_contacto": TIPO_LEADS,
        "detalle_contacto": contacto or DETALLE_DEFAULT,
        "actividad": _text(alias(row, ["Actividad"])),
        "observacion": observacion,
        "convertido": False,
        "fecha": fecha,
        "enviado": False,
        "respondido": False,
        "agendado": False,
        "resolucion": resolution.method,
    }


def import_recaptacion(
    path: Path,
    usuario_id: Optional[int],
    session,
    resolver: Optional[CollaboratorResolver] = None,
    dry_run: bool = False,
    mes: Optional[int] = None,
    anio: Optional[int] = None,
    local_id: Optional[int] = None,
    today: Optional[date] = None,
) -> ImportReport:
    """
    Import a recaptación spreadsheet into the database.

    Args:
        path: .xlsx file to import
        usuario_id: Uploader's user id, the fallback collaborator
        session: SQLAlchemy session; committed on success, rolled back
            on dry-run or whole-file failure
        resolver: Collaborator resolver (default: directory over session)
        dry_run: Validate and preview without writing
        mes: Target month (1-12), default current
        anio: Target year, default current
        local_id: Branch used to narrow collaborator matching

    Returns:
        ImportReport with inserted count, preview and per-row errors

    Raises:
        ImportFormatError: The file as a whole cannot be imported
    """
    rows = read_rows(path)
    mode = detect_format(rows)
    fecha = make_fecha_import(mes, anio, today)

    if resolver is None:
        directory = SqlUserDirectory(session)
        resolver = CollaboratorResolver(directory, get_snapshot_cache())
    repo = RecaptacionRepository(session)
    report = ImportReport(mode=mode, dry_run=dry_run)

    logger.info(
        "Starting recaptación import",
        file=str(path),
        mode=mode,
        rows=len(rows),
        fecha=fecha.isoformat(),
        dry_run=dry_run,
        local_id=local_id,
    )

    try:
        if mode == LEGACY:
            rows = [
                r for r in rows
                if all(alias(r.values, [c]) is not None for c in LEGACY_REQUIRED)
            ]
            if not rows:
                raise ImportFormatError("No rows with valid data were found")

        for row in rows:
            try:
                if mode == LEGACY:
                    payload = build_legacy_payload(row.values, fecha)
                else:
                    payload = build_nuevo_payload(row.values, fecha, resolver, usuario_id, local_id)
                if payload is None:
                    logger.record_row_skipped()
                    continue

                problems = validate_payload(payload)
                if problems:
                    raise ValueError("; ".join(problems))

                if dry_run:
                    report.preview.append(payload)
                    continue

                repo.add(payload)
                report.inserted += 1
                logger.record_row_inserted()
            except (DirectoryError, SQLAlchemyError, ValueError) as e:
                logger.record_row_failure(type(e).__name__)
                logger.warning("Row not imported", row=row.number, error=str(e))
                report.errors.append({"row": row.number, "error": str(e)})

        if dry_run:
            session.rollback()
        else:
            session.commit()
    except Exception as e:
        session.rollback()
        logger.error("Import aborted, transaction rolled back", file=str(path), error=str(e))
        raise

    logger.info(
        "Recaptación import finished",
        inserted=report.inserted,
        previewed=len(report.preview),
        errors=report.errors_count,
        mode=mode,
    )
    logger.log_metrics_summary()
    return report
