"""
server.py
REST API (FastAPI) over the SQLite store. Every route lives under /api.
"""

import logging
from typing import Any, Callable, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import db
import gallery
import store
from config import Settings, configure_logging, load_settings
from errors import ServerError
from schemas import (
    ActivitySchema,
    DonationSchema,
    ExperienceSchema,
    ExpenseSchema,
    GalleryItemSchema,
    HealthStatus,
    HeroSlideSchema,
    MemberSchema,
    Message,
    PaymentIn,
    ReorderRequest,
    WeeklyFeeRecordSchema,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def _add_collection_routes(
    router: APIRouter,
    path: str,
    name: str,
    schema: type[BaseModel],
    upsert: Callable[[dict, Optional[str]], dict],
    remove: Callable[[str], Any],
) -> None:
    """GET list, POST upsert (create without _id, update with it), DELETE by id."""
    label = store.collection(name).label

    def list_items():
        return [schema.model_validate(row) for row in store.list_rows(name)]

    def upsert_item(body: schema):  # type: ignore[valid-type]
        fields = body.model_dump(exclude={"id"})
        return schema.model_validate(upsert(fields, body.id))

    def delete_item(item_id: str):
        remove(item_id)
        return Message(msg=f"{label} removed")

    router.add_api_route(path, list_items, methods=["GET"], response_model=list[schema], name=f"list_{name}")
    router.add_api_route(path, upsert_item, methods=["POST"], response_model=schema, name=f"upsert_{name}")
    router.add_api_route(
        f"{path}/{{item_id}}", delete_item, methods=["DELETE"], response_model=Message, name=f"delete_{name}"
    )


def _plain(name: str):
    return (
        lambda fields, record_id: store.upsert(name, fields, record_id),
        lambda item_id: store.delete(name, item_id),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    db.configure(settings.db_file)
    db.init_db()
    logger.info("Academy API using database %s", settings.db_file)

    app = FastAPI(title=f"{settings.academy_name} API", version="1.0.0")
    app.state.settings = settings
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    # ---------- Errors ----------

    @app.exception_handler(ServerError)
    async def server_error_handler(request: Request, exc: ServerError):
        logger.warning("%s %s -> %d %s", request.method, request.url.path, exc.status, exc.message)
        return JSONResponse(status_code=exc.status, content={"msg": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"msg": "Server Error"})

    router = APIRouter(prefix=API_PREFIX)

    # ---------- Health ----------

    @router.get("/health-check", response_model=HealthStatus)
    def health_check():
        connected = db.ping()
        return HealthStatus(
            database="connected" if connected else "disconnected",
            db_state=1 if connected else 0,
        )

    # ---------- Gallery top-N ----------

    @router.get("/gallery/top5", response_model=list[GalleryItemSchema])
    def get_top_n():
        return [GalleryItemSchema.model_validate(row) for row in gallery.list_top_n()]

    @router.put("/gallery/toggle-top5/{item_id}", response_model=GalleryItemSchema)
    def toggle_top_n(item_id: str):
        row = gallery.toggle_top_n(item_id, limit=settings.top_n_limit, academy_name=settings.academy_name)
        return GalleryItemSchema.model_validate(row)

    @router.put("/gallery/update-order", response_model=Message)
    def update_order(body: ReorderRequest):
        gallery.reorder(
            [(item.id, item.top_n_order) for item in body.items],
            academy_name=settings.academy_name,
        )
        return Message(msg="Order updated successfully")

    # ---------- Collections ----------

    for path, name, schema in (
        ("/hero-slides", "hero_slides", HeroSlideSchema),
        ("/activities", "activities", ActivitySchema),
        ("/donations", "donations", DonationSchema),
        ("/expenses", "expenses", ExpenseSchema),
        ("/experiences", "experiences", ExperienceSchema),
    ):
        _add_collection_routes(router, path, name, schema, *_plain(name))

    _add_collection_routes(router, "/members", "members", MemberSchema, store.upsert_member, store.delete_member)
    _add_collection_routes(
        router,
        "/gallery",
        "gallery",
        GalleryItemSchema,
        gallery.upsert_item,
        lambda item_id: gallery.delete_item(item_id, academy_name=settings.academy_name),
    )

    # ---------- Weekly fees ----------

    @router.get("/weekly-fees", response_model=list[WeeklyFeeRecordSchema])
    def list_weekly_fees():
        return [WeeklyFeeRecordSchema.model_validate(r) for r in store.list_fee_records()]

    @router.get("/weekly-fees/{member_id}", response_model=WeeklyFeeRecordSchema)
    def get_member_fees(member_id: str):
        return WeeklyFeeRecordSchema.model_validate(store.get_fee_record(member_id))

    @router.post("/weekly-fees/{member_id}", response_model=WeeklyFeeRecordSchema)
    def add_payment(member_id: str, body: PaymentIn):
        record = store.add_payment(member_id, body.date, body.amount, body.status)
        return WeeklyFeeRecordSchema.model_validate(record)

    @router.put("/weekly-fees/{member_id}/{payment_id}", response_model=WeeklyFeeRecordSchema)
    def update_payment(member_id: str, payment_id: str, body: PaymentIn):
        record = store.update_payment(member_id, payment_id, body.date, body.amount, body.status)
        return WeeklyFeeRecordSchema.model_validate(record)

    @router.delete("/weekly-fees/{member_id}/{payment_id}", response_model=WeeklyFeeRecordSchema)
    def delete_payment(member_id: str, payment_id: str):
        return WeeklyFeeRecordSchema.model_validate(store.delete_payment(member_id, payment_id))

    app.include_router(router)
    return app


def main(settings: Optional[Settings] = None) -> None:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    logger.info("Starting %s API on %s:%d", settings.academy_name, settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
