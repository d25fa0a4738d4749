"""
Flowguard — FastAPI Application

Endpoints:
  GET  /health               — liveness probe
  GET  /catalog              — full node catalog
  GET  /catalog/{node_type}  — one catalog entry
  POST /validate             — strict validation, no fixing
  POST /validate/fix         — validation + auto-fix + re-validation
  POST /flows                — validate and persist a flow
  GET  /flows                — list stored flows (recently updated first)
  GET  /flows/{flow_id}      — fetch one stored flow
  DELETE /flows/{flow_id}    — delete a stored flow

HTTP status codes:
  200 — success
  400 — malformed request / missing required fields
  404 — unknown node type or flow id
  422 — flow blocked from saving (structural errors, or semantic errors
        outside draft mode)
  500 — internal error
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from db.session import get_db, check_db
from db.repo import save_flow, get_flow, list_flows, delete_flow
from tools.logger import configure, log
from tools.node_catalog_loader import load_node_catalog, get_node_type, list_node_types
from tools.validate_and_fix_flow import validate_flow, validate_and_fix_flow

# --- Global catalog loaded once at startup ---
_catalog = {}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    global _catalog
    configure()
    print(">>> STARTUP: Loading node catalog...")
    try:
        _catalog = load_node_catalog()
        print(f">>> STARTUP: Catalog loaded ({_catalog.get('node_type_count', 0)} node types)")
    except Exception as e:
        print(f">>> STARTUP ERROR loading catalog: {e}")
        _catalog = {"catalog_version": "0", "node_types": {}, "node_type_count": 0}
    print(">>> STARTUP: Checking database...")
    check_db()
    print(">>> STARTUP: Ready to serve requests")
    yield


app = FastAPI(
    title="Flowguard",
    version="1.0.0",
    lifespan=lifespan,
)


# ─────────────────────────────────────────
# Request / Response Models
# ─────────────────────────────────────────

class ValidateRequest(BaseModel):
    flow: dict                             # {nodes, edges} from the editor or planner


class SaveFlowRequest(BaseModel):
    name: str
    flow: dict
    description: Optional[str] = None
    draft: Optional[bool] = False          # allow saving with semantic errors
    accept_fixes: Optional[bool] = False   # persist fixedFlow instead of the original


# ─────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────

@app.get("/health")
def health():
    return {"ok": True, "catalog_version": _catalog.get("catalog_version")}


@app.get("/catalog")
def catalog():
    return {
        "catalog_version": _catalog.get("catalog_version"),
        "node_type_count": _catalog.get("node_type_count", 0),
        "node_types": _catalog.get("node_types", {}),
    }


@app.get("/catalog/{node_type}")
def catalog_entry(node_type: str):
    entry = get_node_type(_catalog, node_type)
    if entry is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown node type '{node_type}'. Known: {', '.join(list_node_types(_catalog))}",
        )
    return entry


@app.post("/validate")
def validate(request: ValidateRequest):
    """Structural + semantic validation of a candidate flow. Never fixes."""
    if not request.flow:
        raise HTTPException(status_code=400, detail="flow is required")
    try:
        return validate_flow(request.flow, _catalog)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Validation failed: {str(e)}")


@app.post("/validate/fix")
def validate_fix(request: ValidateRequest):
    """
    Validate a flow, auto-fix the known planner mistakes and re-validate.

    fixedFlow is returned only when a fix fired; errors then describe the
    fixed flow. Accepting the warnings means adopting fixedFlow.
    """
    if not request.flow:
        raise HTTPException(status_code=400, detail="flow is required")
    try:
        return validate_and_fix_flow(request.flow, _catalog)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Validation failed: {str(e)}")


@app.post("/flows")
def create_flow(request: SaveFlowRequest, db: Session = Depends(get_db)):
    """
    Validate and persist a flow.

    Structural errors always block the save. Semantic errors block it
    unless draft=true. With accept_fixes=true the auto-fixed flow is
    stored in place of the original when any fix fired.
    """
    if not request.name.strip():
        raise HTTPException(status_code=400, detail="name is required")
    if not request.flow:
        raise HTTPException(status_code=400, detail="flow is required")

    stored = request.flow
    warnings = []
    if request.accept_fixes:
        fixed = validate_and_fix_flow(request.flow, _catalog)
        if "fixedFlow" in fixed:
            stored = fixed["fixedFlow"]
            warnings = fixed["warnings"]

    report = validate_flow(stored, _catalog)

    if report["structuralErrors"]:
        log("flows.rejected", level="warning", name=request.name,
            reason="structural", error_count=len(report["structuralErrors"]))
        raise HTTPException(status_code=422, detail={
            "message": "Flow has structural errors",
            "errors": report["errors"],
            "warnings": warnings,
        })

    if report["semanticErrors"] and not request.draft:
        log("flows.rejected", level="warning", name=request.name,
            reason="semantic", error_count=len(report["semanticErrors"]))
        raise HTTPException(status_code=422, detail={
            "message": "Flow has semantic errors (save with draft=true to keep it anyway)",
            "errors": report["errors"],
            "warnings": warnings,
        })

    try:
        row = save_flow(
            db,
            name=request.name.strip(),
            flow=stored,
            description=request.description,
            is_valid=report["isValid"],
            draft=bool(request.draft) and not report["isValid"],
            errors=report["errors"],
            warnings=warnings,
        )
        db.commit()
        db.refresh(row)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to store flow: {str(e)}")

    log("flows.saved", flow_id=str(row.id), name=row.name,
        is_valid=report["isValid"], fixes_applied=len(warnings))
    return row.to_dict()


@app.get("/flows")
def get_flows(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    try:
        rows = list_flows(db, limit=limit, offset=offset)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Query failed: {str(e)}")
    return {
        "flows": [r.to_dict(include_flow=False) for r in rows],
        "count": len(rows),
    }


@app.get("/flows/{flow_id}")
def get_flow_by_id(flow_id: str, db: Session = Depends(get_db)):
    try:
        row = get_flow(db, flow_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Query failed: {str(e)}")
    if row is None:
        raise HTTPException(status_code=404, detail=f"Flow {flow_id} not found")
    return row.to_dict()


@app.delete("/flows/{flow_id}")
def delete_flow_by_id(flow_id: str, db: Session = Depends(get_db)):
    try:
        deleted = delete_flow(db, flow_id)
        if deleted:
            db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to delete flow: {str(e)}")
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Flow {flow_id} not found")
    log("flows.deleted", flow_id=flow_id)
    return {"deleted": True, "id": flow_id}
