"""
Recaptación Repository.

Responsibilities:
- Insert and list recaptación records.
- Transaction-safe writes: each insert runs in its own savepoint.

Non-Responsibilities:
- No business logic.
- No collaborator resolution.
- No spreadsheet parsing.

Invariant:
Repositories must not encode domain decisions.
"""

from typing import Any, Dict, List, Optional

from recaptacion.database import Recaptacion

RECAPTACION_FIELDS = (
    "fecha",
    "usuario_id",
    "nombre",
    "tipo_contacto",
    "detalle_contacto",
    "actividad",
    "observacion",
    "enviado",
    "respondido",
    "agendado",
    "convertido",
)


class RecaptacionRepository:
    def __init__(self, session):
        self.session = session

    def add(self, payload: Dict[str, Any]) -> Recaptacion:
        """
        Insert one record inside a SAVEPOINT.

        A failure rolls back only this record and re-raises; the outer
        transaction stays usable for the remaining rows.
        """
        record = Recaptacion(**{k: payload[k] for k in RECAPTACION_FIELDS if k in payload})
        with self.session.begin_nested():
            self.session.add(record)
            self.session.flush()
        return record

    def list_for_month(self, mes: Optional[int] = None, anio: Optional[int] = None) -> List[Recaptacion]:
        query = self.session.query(Recaptacion)
        if mes is not None:
            query = query.filter(Recaptacion.mes == mes)
        if anio is not None:
            query = query.filter(Recaptacion.anio == anio)
        return query.order_by(Recaptacion.usuario_id.asc(), Recaptacion.id.asc()).all()

    def count(self) -> int:
        return self.session.query(Recaptacion).count()
