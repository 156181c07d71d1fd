import argparse
import json
from pathlib import Path

from . import __version__
from . import env
from .database import init_database, get_session
from .importer import ImportFormatError, import_recaptacion
from pipelines.entity_resolution.resolver import CollaboratorResolver
from pipelines.entity_resolution.scoring import score_breakdown
from pipelines.entity_resolution.snapshot_cache import get_snapshot_cache
from storage.repositories.recaptacion import RecaptacionRepository
from storage.repositories.users import SqlUserDirectory


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.db) if args.db else env.db_path()


def cmd_init_db(args: argparse.Namespace) -> None:
    db_path = _db_path(args)
    init_database(db_path)
    print(f"Database ready: {db_path}")


def cmd_import(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")

    db_path = _db_path(args)
    init_database(db_path)
    session = get_session(db_path)
    try:
        report = import_recaptacion(
            input_path,
            usuario_id=args.usuario_id,
            session=session,
            dry_run=args.dry_run,
            mes=args.mes,
            anio=args.anio,
            local_id=args.local_id,
        )
    except ImportFormatError as e:
        raise SystemExit(f"Import failed: {e}")
    finally:
        session.close()

    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False, default=str))


def cmd_resolve(args: argparse.Namespace) -> None:
    db_path = _db_path(args)
    if not db_path.exists():
        raise SystemExit(f"Database not found: {db_path}")
    session = get_session(db_path)
    try:
        directory = SqlUserDirectory(session)
        resolver = CollaboratorResolver(directory, get_snapshot_cache())
        result = resolver.resolve_details(args.name, args.fallback, args.local_id)
    finally:
        session.close()

    print(f"Usuario: {result.usuario_id}")
    print(f"Method: {result.method}")
    if result.candidate is not None:
        print(f"Candidate: {result.candidate.nombre} (id={result.candidate.id})")
        print(f"Breakdown: {score_breakdown(args.name, result.candidate.nombre)}")


def cmd_list(args: argparse.Namespace) -> None:
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        return
    session = get_session(db_path)
    try:
        records = RecaptacionRepository(session).list_for_month(args.mes, args.anio)
        if not records:
            print("No recaptación records.")
            return
        print(f"Found {len(records)} records in {db_path}:\n")
        for r in records:
            print(f"ID: {r.id}")
            print(f"  Fecha: {r.fecha.isoformat()}")
            print(f"  Usuario: {r.usuario_id}")
            print(f"  Nombre: {r.nombre}")
            print(f"  Tipo: {r.tipo_contacto}")
            print(f"  Contacto: {r.detalle_contacto}")
            print()
    finally:
        session.close()


def main(argv=None):
    # Load .env if present (RECAPTACION_DB, RECAPTACION_LOG_LEVEL, etc.)
    env.load_env()
    parser = argparse.ArgumentParser(prog="recaptacion", description="Recaptación spreadsheet import")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", help="Path to SQLite database (default: $RECAPTACION_DB or data/recaptacion.db)")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init-db", help="Create the database tables")
    ini.set_defaults(func=cmd_init_db)

    imp = subparsers.add_parser("import", help="Import a recaptación spreadsheet (.xlsx)")
    imp.add_argument("--input", required=True, help="Path to the .xlsx file")
    imp.add_argument("--usuario-id", type=int, required=True, help="Uploader's user id (fallback collaborator)")
    imp.add_argument("--dry-run", action="store_true", help="Validate and preview without writing")
    imp.add_argument("--mes", type=int, help="Target month 1-12 (default: current)")
    imp.add_argument("--anio", type=int, help="Target year (default: current)")
    imp.add_argument("--local-id", type=int, help="Restrict collaborator matching to a branch")
    imp.set_defaults(func=cmd_import)

    res = subparsers.add_parser("resolve", help="Resolve a collaborator name to a user id")
    res.add_argument("name", help="Collaborator name as written in the spreadsheet")
    res.add_argument("--fallback", type=int, help="Id returned when no confident match exists")
    res.add_argument("--local-id", type=int, help="Restrict matching to a branch")
    res.set_defaults(func=cmd_resolve)

    lst = subparsers.add_parser("list", help="List stored recaptación records")
    lst.add_argument("--mes", type=int, help="Filter by month")
    lst.add_argument("--anio", type=int, help="Filter by year")
    lst.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
