import json
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from .allocation import calculate_allocation, inputs_from_totals
from .classifier import RuleCache
from .config import Settings, get_settings
from .langfuse_tracer import get_tracer, initialize_tracing
from .mapping_session import MappingSession
from .models import (
    CATEGORY_CONFIG,
    DEFAULT_TARGETS,
    AllocationRequest,
    AllocationResult,
    AllocationTargets,
    ApplyResponse,
    ImportResult,
    MappingRequest,
    MappingRow,
    PFCategory,
    SessionResponse,
    TextImportRequest,
)
from .table_parser import SUPPORTED_EXTENSIONS, import_file, import_text
from .workbook import FileDecodeError

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@dataclass
class ImportSession:
    result: ImportResult
    mapping: MappingSession


class SessionStore:
    """In-process import sessions keyed by id."""

    def __init__(self):
        self._sessions: Dict[str, ImportSession] = {}
        self._lock = threading.Lock()

    def create(self, session: ImportSession) -> str:
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = session
        return session_id

    def get(self, session_id: str) -> ImportSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(
                status_code=404, detail="Import session not found. Please import a P&L first."
            )
        return session

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


def build_rule_cache(settings: Settings) -> RuleCache:
    if settings.rules_file is not None:
        return RuleCache.from_file(settings.rules_file)
    return RuleCache.with_defaults()


app = FastAPI(title="P&L Import API")

# CORS middleware for React frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.rule_cache = build_rule_cache(settings)
app.state.sessions = SessionStore()
initialize_tracing()


def session_response(session_id: str, session: ImportSession) -> SessionResponse:
    mapping = session.mapping
    totals = mapping.category_totals()
    summary = mapping.summary()
    rows = [
        MappingRow(
            account_name=item.account_name,
            amount=item.amount,
            parent_account=item.parent_account,
            category=mapping.category_for(item.account_name),
            confidence=item.confidence,
            needs_review=item.needs_review,
            has_previous_mapping=mapping.has_previous_mapping(item.account_name),
            modified=mapping.is_modified(item.account_name),
        )
        for item in mapping.items
    ]
    result = session.result
    return SessionResponse(
        session_id=session_id,
        rows=rows,
        totals=totals,
        real_revenue=totals.real_revenue,
        mapped_count=summary["mapped_count"],
        excluded_count=summary["excluded_count"],
        excluded=result.excluded,
        duplicates=result.duplicates,
        amount_column=result.amount_column.description if result.amount_column else None,
        header_row_index=result.header_row_index,
        month_count_detected=result.month_count_detected,
        reported_totals=result.reported_totals,
    )


def start_session(
    request: Request,
    result: ImportResult,
    previous_mappings: Dict[str, PFCategory],
    label: str,
) -> SessionResponse:
    tracer = get_tracer()
    trace = tracer.start(label, result.source)
    tracer.record_parse(trace, result)

    if not result.found_accounts:
        tracer.finish(trace, "no accounts found")
        raise HTTPException(
            status_code=422,
            detail="No accounts found. Please check the format of the P&L data.",
        )

    tracer.record_classification(trace, result.items)
    tracer.finish(trace, f"{len(result.items)} accounts ready for mapping")

    session = ImportSession(result=result, mapping=MappingSession(result.items, previous_mappings))
    session_id = request.app.state.sessions.create(session)
    logger.info("Started import session %s with %d accounts", session_id, len(result.items))
    return session_response(session_id, session)


@app.get("/")
def read_root():
    return {"message": "P&L Import API"}


@app.get("/categories")
def get_categories():
    """Allocation categories with display labels"""
    return {
        "categories": [
            {"value": category.value, **CATEGORY_CONFIG[category]}
            for category in PFCategory
        ]
    }


@app.post("/import/text", response_model=SessionResponse)
def import_pasted_text(payload: TextImportRequest, request: Request):
    """Parse pasted P&L text"""
    if not payload.text.strip():
        raise HTTPException(status_code=400, detail="Please paste some P&L data first")

    rules = request.app.state.rule_cache.get()
    result = import_text(payload.text, rules)
    return start_session(request, result, payload.previous_mappings, "pasted text")


@app.post("/import/file", response_model=SessionResponse)
async def import_uploaded_file(
    request: Request,
    file: UploadFile = File(...),
    previous_mappings: str = Form("{}"),
):
    """Upload and parse a P&L export (CSV, text or Excel workbook)"""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    if not file.filename.lower().endswith(tuple(SUPPORTED_EXTENSIONS)):
        raise HTTPException(
            status_code=400,
            detail=(
                f"File must be one of {', '.join(SUPPORTED_EXTENSIONS)}. "
                f"Received: {file.filename}"
            ),
        )

    try:
        previous = {
            name: PFCategory(category)
            for name, category in json.loads(previous_mappings or "{}").items()
        }
    except (ValueError, AttributeError):
        raise HTTPException(
            status_code=400,
            detail="previous_mappings must be a JSON object of account name to category",
        )

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="File is empty")

    rules = request.app.state.rule_cache.get()
    try:
        result = import_file(file.filename, contents, rules, settings.header_scan_rows)
    except FileDecodeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return start_session(request, result, previous, file.filename)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, request: Request):
    """Get the current mapping for an import"""
    session = request.app.state.sessions.get(session_id)
    return session_response(session_id, session)


@app.post("/sessions/{session_id}/map")
def map_account(session_id: str, payload: MappingRequest, request: Request):
    """Map an account to a category"""
    session = request.app.state.sessions.get(session_id)
    try:
        session.mapping.set_category(payload.account_name, payload.category)
    except KeyError:
        raise HTTPException(status_code=400, detail=f"Unknown account: {payload.account_name}")

    return {
        "message": "Account mapped successfully",
        "account_name": payload.account_name,
        "category": payload.category.value,
        "totals": session.mapping.category_totals(),
    }


@app.post("/sessions/{session_id}/apply", response_model=ApplyResponse)
def apply_mapping(session_id: str, request: Request):
    """Materialize the final account mappings"""
    session = request.app.state.sessions.get(session_id)
    totals = session.mapping.category_totals()
    return ApplyResponse(
        mappings=session.mapping.apply(),
        totals=totals,
        real_revenue=totals.real_revenue,
    )


@app.post("/sessions/{session_id}/allocation", response_model=AllocationResult)
def session_allocation(
    session_id: str,
    request: Request,
    quarter: str = "Q4",
    month_count: Optional[int] = None,
    targets: Optional[AllocationTargets] = None,
):
    """Allocation preview from the session's current category totals"""
    session = request.app.state.sessions.get(session_id)
    inputs = inputs_from_totals(
        session.mapping.category_totals(),
        quarter=quarter,
        month_count=month_count or session.result.month_count_detected,
        reported=session.result.reported_totals,
    )
    return calculate_allocation(inputs, targets or DEFAULT_TARGETS)


@app.post("/allocation", response_model=AllocationResult)
def allocation(payload: AllocationRequest):
    """Allocation preview from year-to-date figures"""
    return calculate_allocation(payload.inputs, payload.targets)
