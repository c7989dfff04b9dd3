"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response

from innkeep.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .errors import register_error_handlers
from .routes import bookings, orders, rooms


def create_app() -> FastAPI:
    """Create the FastAPI app with correlation middleware and all routers."""
    app = FastAPI(
        title="Innkeep",
        docs_url=None,
        redoc_url=None,
    )

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    register_error_handlers(app)

    app.include_router(rooms.router)
    app.include_router(bookings.router)
    app.include_router(orders.router)

    return app
