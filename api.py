import asyncio
import logging
import sys
import time
from typing import Any, Awaitable, List, Optional

import orjson
import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from browser import SessionManager
from orchestrator import Orchestrator, RefreshScheduler
from settings import load_cfg, setup_logging
from store import build_store

logger = logging.getLogger(__name__)


def _json(data: Any, status_code: int = 200) -> Response:
    return Response(content=orjson.dumps(data), media_type="application/json", status_code=status_code)


async def _serve(label: str, message: str, coro: Awaitable[Any]) -> Response:
    try:
        return _json(await coro)
    except Exception as e:
        logger.error("%s error: %s", label, e)
        return _json({"error": str(e), "message": message}, status_code=500)


def create_app(orchestrator: Orchestrator, cors_origins: Optional[List[str]] = None) -> FastAPI:
    app = FastAPI(title="Fantasy Lobby Scraper API", docs_url=None, redoc_url=None)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["*"],
        )
    o = orchestrator

    @app.get("/")
    def health():
        return {"ok": True, "ts": int(time.time()), "browser": o.sessions.is_healthy()}

    @app.get("/upcoming-matches")
    async def upcoming_matches():
        return await _serve("Upcoming Matches", "Failed to fetch upcoming matches", o.fixtures("upcoming"))

    @app.get("/live-matches")
    async def live_matches():
        return await _serve("Live Matches", "Failed to fetch live matches", o.fixtures("live"))

    @app.get("/completed-matches")
    async def completed_matches():
        return await _serve("Completed Matches", "Failed to fetch completed matches", o.fixtures("completed"))

    @app.get("/live-matches/{match_id}")
    async def live_match(match_id: str):
        return await _serve("Live Match", "Failed to fetch live match data", o.live_match(match_id))

    @app.get("/contests/{match_id}")
    async def contests(match_id: str):
        return await _serve("Contest", "Failed to fetch contest data", o.contests(match_id))

    @app.get("/scoreboard/{match_id}")
    async def scoreboard(match_id: str):
        return await _serve("Scoreboard", "Failed to fetch scoreboard data", o.scoreboard(match_id))

    @app.get("/api/match/{match_id}/{contest_id}")
    async def roster(match_id: str, contest_id: str):
        return await _serve(
            "Player Data",
            "Failed to fetch player data. Please ensure you're logged in.",
            o.roster(match_id, contest_id),
        )

    @app.get("/reset-session")
    async def reset_session():
        return await _serve("Session Reset", "Failed to reset session", _reset(o))

    return app


async def _reset(o: Orchestrator) -> dict:
    await o.reset_session()
    return {"ok": True, "message": "Session reset done"}

# =============================================================================
# Main
# =============================================================================

async def main():
    cfg = load_cfg()
    setup_logging(cfg)

    sessions = SessionManager(cfg)
    store = build_store(cfg)
    orchestrator = Orchestrator(cfg, sessions, store)
    scheduler = RefreshScheduler(orchestrator, cfg["scheduler"]["interval_seconds"])

    try:
        logger.info("Starting server...")
        await sessions.ensure_session()
        if not await sessions.is_logged_in():
            logger.warning("Login required! Opening browser for login...")
            await sessions.launch_interactive()
            logger.warning("Please login in the browser window, close it and restart the server.")
            await sessions.wait_closed()
            return

        logger.info("Logged in. Starting background scraping...")
        scheduler.start()
        server = uvicorn.Server(uvicorn.Config(
            create_app(orchestrator, cfg["server"].get("cors_origins")),
            host=cfg["server"]["host"],
            port=cfg["server"]["port"],
            log_config=None,
        ))
        await server.serve()
    finally:
        logger.info("Shutting down gracefully...")
        await scheduler.stop()
        await sessions.close()
        await store.aclose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)
