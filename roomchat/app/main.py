from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from .api.router import router as api_router
from .core.config import Settings, load_settings
from .core.logger import get_logger
from .core.paths import get_frontend_dist_dir
from .services.backend import ChatBackend, build_backend
from .services.chat_sync import ChatSync
from .services.input_state import InputState

log = get_logger("app")

def create_app(settings: Optional[Settings] = None, backend: Optional[ChatBackend] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        chat_backend = backend or build_backend(settings)
        app.state.backend = chat_backend
        app.state.sync = ChatSync(
            chat_backend,
            InputState(),
            table=settings.chat_table,
            poll_interval=settings.poll_interval,
        )
        app.state.sync.start()
        log.info(f"Chat sync started (env={settings.env}, table={settings.chat_table})")
        try:
            yield
        finally:
            await app.state.sync.stop()
            await chat_backend.aclose()
            log.info("Chat sync stopped")

    app = FastAPI(title="roomchat", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    dist_dir = get_frontend_dist_dir(settings.frontend_dir)
    if (dist_dir / "index.html").exists():
        log.info(f"Serving frontend from {dist_dir}")

        @app.get("/", include_in_schema=False)
        async def web_index():
            return FileResponse(str(dist_dir / "index.html"))

        @app.get("/{full_path:path}", include_in_schema=False)
        async def spa_fallback(full_path: str):
            if full_path.startswith("api/") or full_path == "api":
                raise HTTPException(status_code=404)
            candidate = (dist_dir / full_path).resolve()
            if candidate.is_file() and dist_dir.resolve() in candidate.parents:
                return FileResponse(str(candidate))
            return FileResponse(str(dist_dir / "index.html"))

    return app
