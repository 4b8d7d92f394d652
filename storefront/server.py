# server.py
import logging
import os
import threading
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront import (
    auth, categories, frontend, images, main_images, order_products, orders, products, search, slugs, users, wishlist
)
from storefront.db import build_engine, build_session_maker, create_tables
from storefront.errors import register_exception_handlers
from storefront.settings import Settings, settings as default_settings

log = logging.getLogger(__name__)

API_ROUTERS = (
    products.router,
    categories.router,
    images.router,
    main_images.router,
    users.router,
    search.router,
    orders.router,
    order_products.router,
    slugs.router,
    wishlist.router,
    auth.router,
)


# --- Logging Configuration ---
def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# --- App Initialization ---
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Builds a fully wired application.

    Every call gets its own engine and session factory, stored on `app.state`
    together with the settings, so several apps (one per test, say) never
    share a database.
    """
    settings = settings or Settings()
    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create database tables, the upload folder and the configured admin on startup."""
        os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
        await create_tables(engine)
        await auth.ensure_admin(app.state.session_maker, settings)
        log.info(f"{settings.PROJECT_NAME} started; uploads go to '{settings.UPLOAD_DIR}'.")
        yield
        await engine.dispose()
        log.info(f"{settings.PROJECT_NAME} stopped.")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="REST API for products, categories, users, orders, wishlists, images and search.",
        version=settings.PROJECT_VERSION,
        docs_url=settings.DOCS_URL,
        openapi_url=f"{settings.DOCS_URL}/openapi.json",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_maker = build_session_maker(engine)

    # --- CORS Middleware ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",")],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)

    api_router = APIRouter(prefix=settings.API_PREFIX)

    @api_router.get("/health", tags=["Health"])
    async def health():
        """Simple health check."""
        return {"status": "ok"}

    for router in API_ROUTERS:
        api_router.include_router(router)
    app.include_router(api_router)
    app.include_router(frontend.router)

    return app


class StorefrontServer:
    """
    An explicitly constructed HTTP server around `create_app`.

    `serve()` blocks in the calling thread; `start()`/`stop()` run the same
    server on a background thread so tests and embedding code control its
    lifetime.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.app = create_app(self.settings)
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    def _build_server(self) -> uvicorn.Server:
        config = uvicorn.Config(
            self.app,
            host=self.settings.HOST,
            port=self.settings.PORT,
            log_level=self.settings.LOG_LEVEL.lower(),
        )
        return uvicorn.Server(config)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def serve(self) -> None:
        log.info(f"Server running on port {self.settings.PORT}")
        self._server = self._build_server()
        self._server.run()

    def start(self, timeout: float = 10.0) -> None:
        if self.running:
            raise RuntimeError("Server is already running")
        self._server = self._build_server()
        self._thread = threading.Thread(target=self._server.run, name="storefront-server", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise RuntimeError(f"Server failed to start on {self.settings.HOST}:{self.settings.PORT}")
            time.sleep(0.05)
        log.info(f"Server running on port {self.settings.PORT}")

    def stop(self, timeout: float = 10.0) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
        self._server = None
        self._thread = None


def main() -> None:
    configure_logging(default_settings.LOG_LEVEL)
    StorefrontServer(default_settings).serve()


if __name__ == "__main__":
    main()
