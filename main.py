import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import custom_orders
import designs
import feedback
import inventory
import orders
import promotions
import users
from auth import require_admin
from database import ensure_indexes, get_db
from schemas import CustomOrder, Design, Feedback, Inventory, Order, Promotion, RetrievedInventory, User
from workflow import InvalidTransition

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = app.dependency_overrides.get(get_db, get_db)()
    try:
        ensure_indexes(database)
    except PyMongoError as exc:
        logger.error("Could not create indexes: %s", exc)
    yield


app = FastAPI(title="Fashion Commerce API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, users, inventory, promotions, custom_orders, orders, feedback, designs):
    app.include_router(module.router)

COLLECTIONS = {
    "user": User,
    "inventory": Inventory,
    "retrievedinventory": RetrievedInventory,
    "promotion": Promotion,
    "customorder": CustomOrder,
    "order": Order,
    "feedback": Feedback,
    "design": Design,
}


# Error envelopes
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0])
        errors[field] = err["msg"]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(InvalidTransition)
async def invalid_transition(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


@app.exception_handler(PyMongoError)
async def database_error(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Database error", "error": str(exc)},
    )


@app.get("/")
def root():
    return {"status": "ok", "service": "fashion-commerce-backend"}


@app.get("/schema")
def schema_overview():
    return {
        "collections": list(COLLECTIONS),
        "schemas": {name: model.model_json_schema() for name, model in COLLECTIONS.items()},
    }


@app.get("/api/admin/stats")
def admin_stats(admin=Depends(require_admin), db=Depends(get_db)):
    stats = {name: db[name].count_documents({}) for name in COLLECTIONS}
    stats["lowStock"] = db["inventory"].count_documents({"StockStatus": "low-stock"})
    stats["outOfStock"] = db["inventory"].count_documents({"StockStatus": "out-of-stock"})
    stats["pendingCustomOrders"] = db["customorder"].count_documents({"status": "pending"})
    stats["unconvertedCustomOrders"] = db["customorder"].count_documents(
        {"status": "approved", "convertedToOrder": False}
    )
    return {"success": True, "data": stats}


# Simple health
@app.get("/test")
def test_database(db=Depends(get_db)):
    status = {
        "backend": "running",
        "database": "not-configured",
        "collections": [],
    }
    try:
        status["collections"] = db.list_collection_names()[:10]
        status["database"] = "connected"
    except PyMongoError as exc:
        status["database"] = f"error: {str(exc)[:80]}"
    return status


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
