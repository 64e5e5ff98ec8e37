import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from database import DocumentStore, connect
from errors import BackendError, FinanceTrackerError, RecordValidationError
from schemas import Expense as ExpenseSchema, Income as IncomeSchema, RecordAck, User as UserSchema
from services import EXPENSES, INCOME, USERS, RecordKind, RecordService
from shaping import describe_errors

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the document store once per process and hand it to the routes."""
    app.state.store = connect(config.DATABASE_URL, config.DATABASE_NAME, config.DATABASE_TIMEOUT_MS)
    yield
    logger.info("Closing document store")
    app.state.store.close()


app = FastAPI(title="Finance Tracker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


# ---------- Errors ----------

@app.exception_handler(FinanceTrackerError)
async def finance_error_handler(request: Request, exc: FinanceTrackerError):
    if isinstance(exc, BackendError):
        logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Bodies that are not a JSON object never reach the shapers
    error = RecordValidationError(f"Invalid input: {describe_errors(exc)}")
    return await finance_error_handler(request, error)


# ---------- Root & Health ----------

@app.get("/")
def read_root():
    return {"message": "Finance Tracker API is running"}


@app.get("/test")
def test_database(store: DocumentStore = Depends(get_store)):
    """Test endpoint to check if database is available and accessible"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    try:
        info = store.ping()
        response["database"] = "✅ Connected & Working"
        response["database_name"] = info.get("database_name")
        response["connection_status"] = "Connected"
        response["collections"] = info.get("collections", [])
    except BackendError as e:
        response["database"] = f"❌ Error: {str(e.__cause__ or e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"

    return response


# ---------- Schemas endpoint ----------

@app.get("/schema")
def get_schema():
    return {
        "User": UserSchema.model_json_schema(mode="serialization"),
        "Income": IncomeSchema.model_json_schema(mode="serialization"),
        "Expense": ExpenseSchema.model_json_schema(mode="serialization"),
    }


# ---------- Records ----------

def record_router(kind: RecordKind) -> APIRouter:
    """CRUD routes for one record type under /api/<node>."""
    router = APIRouter(prefix=f"/api/{kind.node}", tags=[kind.node])

    def get_service(store: DocumentStore = Depends(get_store)) -> RecordService:
        return RecordService(store, kind)

    @router.get("")
    @router.get("/", include_in_schema=False)
    def list_records(service: RecordService = Depends(get_service)):
        return service.list()

    @router.get("/{record_id}")
    def get_record(record_id: str, service: RecordService = Depends(get_service)):
        return service.get(record_id)

    @router.post("", status_code=201, response_model=RecordAck)
    @router.post("/", status_code=201, response_model=RecordAck, include_in_schema=False)
    def create_record(
        payload: Optional[Dict[str, Any]] = Body(None),
        service: RecordService = Depends(get_service),
    ):
        new_id = service.create(payload or {})
        return RecordAck(id=new_id, message=f"{kind.label} created")

    @router.put("/{record_id}", response_model=RecordAck)
    def update_record(
        record_id: str,
        payload: Optional[Dict[str, Any]] = Body(None),
        service: RecordService = Depends(get_service),
    ):
        service.update(record_id, payload or {})
        return RecordAck(id=record_id, message=f"{kind.label} updated")

    @router.delete("", status_code=400, include_in_schema=False)
    @router.delete("/", status_code=400, include_in_schema=False)
    def delete_without_id(service: RecordService = Depends(get_service)):
        service.delete("")

    @router.delete("/{record_id}", status_code=204)
    def delete_record(record_id: str, service: RecordService = Depends(get_service)):
        service.delete(record_id)
        return Response(status_code=204)

    return router


for _kind in (USERS, EXPENSES, INCOME):
    app.include_router(record_router(_kind))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
