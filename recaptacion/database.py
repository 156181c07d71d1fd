"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for staff users and recaptación records.
"""

from datetime import date, datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, Integer, String, Date, DateTime, Boolean, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .normalize import normalize_name

Base = declarative_base()

# SQL name of normalize_name on every connection
FOLD_NAME_SQL = "fold_name"

TIPOS_CONTACTO = (
    "Socios que no asisten",
    "Inactivo 10 dias",
    "Inactivo 30 dias",
    "Inactivo 60 dias",
    "Prospectos inc. Socioplus",
    "Prosp inc Entrenadores",
    "Leads no convertidos",
    "Otro",
    "Cambio de plan",
)


class User(Base):
    """Staff user (sales collaborator). Read-only for the import."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    nombre = Column(String(255), nullable=False)
    rol = Column(String(50), nullable=True)
    local_id = Column(Integer, nullable=True, index=True)  # branch


class Recaptacion(Base):
    """Re-engagement contact assigned to a collaborator for a given month."""

    __tablename__ = "recaptacion"

    id = Column(Integer, primary_key=True, autoincrement=True)
    fecha = Column(Date, nullable=False, default=date.today)
    usuario_id = Column(Integer, nullable=False, index=True)
    nombre = Column(String(255), nullable=False)
    tipo_contacto = Column(String(64), nullable=True)
    detalle_contacto = Column(String(255), nullable=True)
    actividad = Column(String(255), nullable=True)
    observacion = Column(String(1000), nullable=True)
    enviado = Column(Boolean, nullable=False, default=False)
    respondido = Column(Boolean, nullable=False, default=False)
    agendado = Column(Boolean, nullable=False, default=False)
    convertido = Column(Boolean, nullable=False, default=False)
    mes = Column(Integer, nullable=True)  # derived from fecha
    anio = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


@event.listens_for(Recaptacion, "before_insert")
@event.listens_for(Recaptacion, "before_update")
def _derive_mes_anio(mapper, connection, target):
    if target.fecha is not None:
        target.mes = target.fecha.month
        target.anio = target.fecha.year


def create_sqlite_engine(db_path: Path):
    """
    Create an engine for the SQLite file at db_path.

    pysqlite's implicit transaction handling is switched off and BEGIN is
    emitted explicitly, otherwise SAVEPOINTs (used for per-row rollback
    during imports) do not nest inside the outer transaction.

    Every connection also gets a ``fold_name(text)`` SQL function
    (normalize_name), since SQLite's LIKE folds ASCII case only.
    """
    engine = create_engine(f"sqlite:///{db_path}")

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.create_function(FOLD_NAME_SQL, 1, normalize_name, deterministic=True)

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_sqlite_engine(db_path)
    Base.metadata.create_all(engine)


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_sqlite_engine(db_path)
    Session = sessionmaker(bind=engine)
    return Session()
