"""
ERMate Backend - FastAPI Application

It provides:
- REST API for the current schema (get/replace/reset, undo/redo)
- SQL import and export in PostgreSQL, MySQL and SQLite flavours
- Validation, hierarchical re-layout and free-slot placement
- Batch execution of name-based actions from the AI orchestration layer
- CORS configuration for local frontend development
"""

from typing import Optional

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .actions import Action, ActionRunner
from .config import Settings, load_settings
from .errors import ErmateError
from .junction import generate_junction_table
from .layout import find_open_position, layout_schema
from .models import Position, WireModel
from .serialization import schema_from_dict, to_json
from .sql_generator import to_sql
from .sql_parser import from_sql
from .store import SchemaStore
from .validation import validate, validation_summary


# --- Request models ---

class SqlImportRequest(WireModel):
    sql: str
    dialect: Optional[str] = None


class ActionBatchRequest(WireModel):
    actions: list[Action]
    viewport_center: Position = Position()


class JunctionRequest(WireModel):
    table_id_a: str
    table_id_b: str


def create_app(store: Optional[SchemaStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around one SchemaStore (a fresh one by default)."""
    settings = settings or load_settings()
    store = store or SchemaStore(max_history=settings.max_history)

    app = FastAPI(
        title="ERMate API",
        description="Backend API for the relational schema modeller",
        version="1.0.0",
    )
    app.state.store = store

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "tables": len(store.schema.tables)}

    # --- Schema State ---

    @app.get("/api/schema")
    async def get_schema():
        """Get the current schema state."""
        return store.get_state()

    @app.put("/api/schema")
    async def replace_schema(data: dict = Body(...)):
        """Replace the schema with imported JSON."""
        try:
            store.commit(schema_from_dict(data))
        except ErmateError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, **store.get_state()}

    @app.post("/api/schema/reset")
    async def reset_schema():
        store.reset()
        return {"success": True, **store.get_state()}

    @app.get("/api/schema/validate")
    async def validate_schema():
        """
        Validate the current schema for structural issues.

        Returns a list of issues (errors, warnings) and a summary.
        """
        issues = validate(store.schema)
        return {
            "success": True,
            "issues": [issue.to_dict() for issue in issues],
            "summary": validation_summary(issues),
        }

    # --- Undo/Redo ---

    @app.post("/api/undo")
    async def undo(steps: int = Query(default=1, ge=1, le=50)):
        done = store.undo(steps)
        return {"success": done > 0, "steps": done, **store.get_state()}

    @app.post("/api/redo")
    async def redo(steps: int = Query(default=1, ge=1, le=50)):
        done = store.redo(steps)
        return {"success": done > 0, "steps": done, **store.get_state()}

    # --- SQL / JSON ---

    @app.post("/api/import/sql")
    async def import_sql(request: SqlImportRequest):
        """Replace the schema with the tables parsed from SQL DDL."""
        try:
            schema = from_sql(request.sql, request.dialect, ids=store.ids)
        except ErmateError as e:
            raise HTTPException(status_code=400, detail=str(e))
        store.commit(schema)
        return {"success": True, **store.get_state()}

    @app.get("/api/export/sql")
    async def export_sql(dialect: Optional[str] = Query(default=None)):
        try:
            sql = to_sql(store.schema, dialect)
        except ErmateError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "sql": sql}

    @app.get("/api/export/json")
    async def export_json():
        return {"success": True, "json": to_json(store.schema)}

    # --- Layout ---

    @app.post("/api/layout")
    async def auto_layout():
        """Arrange all tables with the hierarchical layout."""
        if not store.schema.tables:
            raise HTTPException(status_code=400, detail="No tables to layout")
        store.commit(layout_schema(store.schema))
        return {"success": True, **store.get_state()}

    @app.post("/api/layout/open-position")
    async def open_position(viewport_center: Position):
        """Free grid position closest to the given viewport center."""
        position = find_open_position(store.schema.tables, viewport_center)
        return {"success": True, "position": position.model_dump()}

    # --- Editing ---

    @app.post("/api/junction")
    async def junction(request: JunctionRequest):
        """Create a junction table between two tables (by ID)."""
        changed = store.commit(generate_junction_table(
            store.schema, request.table_id_a, request.table_id_b, ids=store.ids,
        ))
        return {"success": changed, **store.get_state()}

    @app.post("/api/actions")
    async def run_actions(request: ActionBatchRequest):
        """Apply a batch of name-based actions in order."""
        runner = ActionRunner(store, viewport_center=request.viewport_center)
        messages = runner.run(request.actions)
        return {"success": True, "messages": messages, **store.get_state()}

    return app


app = create_app()


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    settings = load_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
