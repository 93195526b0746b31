"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI

from rest_api.core.cors import configure_cors
from rest_api.core.exception_handlers import register_exception_handlers
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers.prep import router as prep_router
from rest_api.routers.public import health_router, orders_router as public_orders_router
from rest_api.routers.staff import orders_router, tables_router
from shared.config.settings import settings
from shared.security.rate_limit import limiter


def create_app() -> FastAPI:
    """Build the application: middlewares, error handlers and routers."""
    app = FastAPI(
        title="Order Flow REST API",
        description="Restaurant order lifecycle and preparation routing",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Rate limiting (slowapi reads the limiter from app state)
    app.state.limiter = limiter

    register_exception_handlers(app)
    register_middlewares(app)
    configure_cors(app)

    # Public (QR) endpoints
    app.include_router(health_router)
    app.include_router(public_orders_router)
    # Staff endpoints (Bearer JWT)
    app.include_router(prep_router)
    app.include_router(orders_router)
    app.include_router(tables_router)

    return app


app = create_app()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=True,
    )
