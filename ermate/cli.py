#!/usr/bin/env python3
"""ERMate CLI - import, export, check and arrange schema files."""

import argparse
import json
import logging
import sys
from pathlib import Path

from .errors import ErmateError
from .junction import generate_junction_table
from .layout import layout_schema
from .serialization import from_json, schema_to_dict, to_json
from .sql_generator import to_sql
from .sql_parser import from_sql
from .validation import validate, validation_summary


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _error(message):
    _json_out({"status": "error", "error": message}, code=1)


def _read_text(path):
    """File contents, or stdin for '-'."""
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _load_schema(path):
    return from_json(_read_text(path))


def _write_schema(schema, output):
    """Write the schema to `output` if given; return what goes on stdout."""
    if output:
        Path(output).write_text(to_json(schema), encoding="utf-8")
        return {"status": "ok", "file_path": output,
                "tables": len(schema.tables), "relationships": len(schema.relationships)}
    return {"status": "ok", "schema": schema_to_dict(schema)}


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_import_sql(args):
    schema = from_sql(_read_text(args.file), args.dialect)
    _json_out(_write_schema(schema, args.output))


def cmd_export_sql(args):
    sql = to_sql(_load_schema(args.file), args.dialect)
    if args.output:
        Path(args.output).write_text(sql + "\n", encoding="utf-8")
        _json_out({"status": "ok", "file_path": args.output})
    _json_out({"status": "ok", "sql": sql})


def cmd_validate(args):
    issues = validate(_load_schema(args.file))
    summary = validation_summary(issues)
    _json_out({
        "status": "ok" if summary["valid"] else "invalid",
        "issues": [issue.to_dict() for issue in issues],
        "summary": summary,
    }, code=0 if summary["valid"] else 2)


def _destination(args):
    """--output, else the input file itself (stdin input goes to stdout)."""
    if args.output:
        return args.output
    return None if args.file == "-" else args.file


def cmd_layout(args):
    schema = layout_schema(_load_schema(args.file))
    _json_out(_write_schema(schema, _destination(args)))


def cmd_junction(args):
    schema = _load_schema(args.file)
    updated = generate_junction_table(schema, args.table_a, args.table_b)
    if updated is schema:
        _error("Both tables must exist and have exactly one primary key column")
    _json_out(_write_schema(updated, _destination(args)))


def cmd_serve(args):
    import uvicorn
    from .api import app
    uvicorn.run(app, host=args.host, port=args.port)


COMMANDS = {
    "import-sql": cmd_import_sql,
    "export-sql": cmd_export_sql,
    "validate": cmd_validate,
    "layout": cmd_layout,
    "junction": cmd_junction,
    "serve": cmd_serve,
}


def build_parser():
    from .config import load_settings
    settings = load_settings()

    parser = argparse.ArgumentParser(prog="ermate", description="Relational schema modelling CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import-sql", help="Parse SQL DDL into schema JSON")
    p.add_argument("--file", required=True, help="SQL file, or - for stdin")
    p.add_argument("--dialect", default=None, choices=["PostgreSQL", "MySQL", "SQLite"])
    p.add_argument("--output", default=None)

    p = sub.add_parser("export-sql", help="Generate SQL DDL from schema JSON")
    p.add_argument("--file", required=True)
    p.add_argument("--dialect", default=None, choices=["PostgreSQL", "MySQL", "SQLite"])
    p.add_argument("--output", default=None)

    p = sub.add_parser("validate", help="Report structural issues")
    p.add_argument("--file", required=True)

    p = sub.add_parser("layout", help="Re-arrange tables hierarchically")
    p.add_argument("--file", required=True)
    p.add_argument("--output", default=None, help="Defaults to overwriting --file")

    p = sub.add_parser("junction", help="Create a junction table between two tables")
    p.add_argument("--file", required=True)
    p.add_argument("--table-a", required=True, help="ID of the first table")
    p.add_argument("--table-b", required=True, help="ID of the second table")
    p.add_argument("--output", default=None, help="Defaults to overwriting --file")

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default=settings.host)
    p.add_argument("--port", type=int, default=settings.port)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        COMMANDS[args.command](args)
    except (ErmateError, OSError) as e:
        _error(str(e))


if __name__ == "__main__":
    main()
