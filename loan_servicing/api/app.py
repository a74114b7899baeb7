"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from loan_servicing.api.dependencies import Services
from loan_servicing.api.routes import router
from loan_servicing.config import ServiceConfig
from loan_servicing.exceptions import (
    AuthenticationError,
    EntityNotFoundError,
    InvalidEntityStateError,
    LoanServicingError,
    ReferentialIntegrityError,
    ValidationError,
)
from loan_servicing.sinks import EventSink, create_sink
from loan_servicing.store import DocumentStore, create_store

logger = logging.getLogger(__name__)

# Most specific class wins; Starlette resolves handlers along the MRO.
ERROR_STATUS: dict[type[LoanServicingError], int] = {
    EntityNotFoundError: 404,
    ReferentialIntegrityError: 400,
    InvalidEntityStateError: 400,
    ValidationError: 400,
    AuthenticationError: 401,
    LoanServicingError: 500,
}


def _error_handler(status_code: int) -> Callable:
    async def handler(request: Request, exc: LoanServicingError) -> JSONResponse:
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    return handler


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


def create_app(
    config: ServiceConfig | None = None,
    store: DocumentStore | None = None,
    sink: EventSink | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    """Build the API over the given store and sink.

    Parameters
    ----------
    config : ServiceConfig | None
        Defaults to ``ServiceConfig.from_env()``.
    store : DocumentStore | None
        Defaults to the store selected by ``config``.
    sink : EventSink | None
        Defaults to the sink selected by ``config``.
    clock : Callable[[], datetime]
        Source of the current time for every service.
    """
    config = config or ServiceConfig.from_env()
    store = store if store is not None else create_store(config)
    sink = sink if sink is not None else create_sink(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Loan servicing API started with %s", type(store).__name__)
        yield
        sink.close()
        store.close()
        logger.info("Loan servicing API stopped")

    app = FastAPI(title="Loan Servicing API", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.services = Services.build(store, sink, clock=clock)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for exc_class, status_code in ERROR_STATUS.items():
        app.add_exception_handler(exc_class, _error_handler(status_code))
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    @app.get("/")
    def read_root() -> dict:
        return {"message": "Loan servicing API running"}

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "store": type(store).__name__, "counts": store.summary()}

    app.include_router(router)
    return app
