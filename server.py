import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Early environment loading BEFORE building settings
here = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(here, ".env"), override=False)

from tonepad.api import actions, chat, models, session as session_api  # noqa: E402
from tonepad.config import Settings, load_settings  # noqa: E402
from tonepad.session import Session  # noqa: E402


# Basic logger for server diagnostics (inherits uvicorn handlers)
logger = logging.getLogger("tonepad.server")
if not logger.handlers:
    logger.setLevel(logging.INFO)


def create_app(session: Session | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the API around one playground session."""
    if session is None:
        session = Session(settings or load_settings())

    app = FastAPI(title="tonepad")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.session = session

    app.include_router(session_api.router)
    app.include_router(actions.router)
    app.include_router(chat.router)
    app.include_router(models.router)

    @app.get("/")
    def read_root():
        return {"Hello": "tonepad"}

    logger.info(
        "app ready model=%s chat=%s",
        session.settings.model,
        "enabled" if session.orchestrator.is_configured else "disabled (no API key)",
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8081")))
