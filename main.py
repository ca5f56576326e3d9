import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

import config
from db import create_db_and_tables, engine
from errors import ClothesShareError
from identity import IdentityGateway
from loader import landing_for
from logging_config import configure_logging
from routers import admin, auth, cart, items, ngo, pages, users
from routers.auth import SessionStateDep
from seed import seed_sample_data
from store import DocumentStore

logger = structlog.get_logger(__name__)

app = FastAPI(title="ClothesShare")

app.mount("/media", StaticFiles(directory=config.MEDIA_ROOT, check_dir=False), name="media")


@app.on_event("startup")
def on_startup() -> None:
    configure_logging()
    create_db_and_tables()

    with Session(engine) as session:
        store = DocumentStore(session)
        if config.SEED_SAMPLE_DATA:
            seed_sample_data(store)
        if config.ADMIN_EMAIL and config.ADMIN_PASSWORD:
            IdentityGateway(store).provision_admin(
                config.ADMIN_EMAIL, config.ADMIN_PASSWORD, config.ADMIN_NAME
            )


@app.exception_handler(ClothesShareError)
async def clothesshare_error_handler(request: Request, exc: ClothesShareError):
    logger.info(
        "request_failed",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "notice": {"kind": "error", "text": exc.message}},
    )


@app.exception_handler(PydanticValidationError)
async def payload_error_handler(request: Request, exc: PydanticValidationError):
    # payloads parsed by hand (JSON or form) skip FastAPI's own 422 handling
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors(include_url=False))})


@app.get("/")
def read_root(state: SessionStateDep):
    # If logged in, redirect to the role's dashboard
    if state.ctx.identity is not None:
        return RedirectResponse(url=landing_for(state.ctx.identity), status_code=303)

    return {
        "message": "Welcome to ClothesShare",
        "login": "/login",
        "register": "/register",
    }


app.include_router(auth.router)
app.include_router(users.router, prefix="/users")
app.include_router(items.router, prefix="/items")
app.include_router(cart.router)
app.include_router(ngo.router, prefix="/ngo")
app.include_router(admin.router, prefix="/admin")

app.include_router(pages.router)
