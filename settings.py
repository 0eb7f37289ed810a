# settings.py
import copy
import logging
import os
from typing import Optional

import tomli

import site_selectors as sel

# =============================================================================
# Config (toml optional)
# =============================================================================

SITE_ROOT = "https://www.my11circle.com"

DEFAULT_CFG = {
    "site": {
        "lobby_url": f"{SITE_ROOT}/mecspa/lobby",
        "live_match_url": f"{SITE_ROOT}/mecspa/lobby/live-contests/{{match_id}}",
        "contests_url": f"{SITE_ROOT}/mecspa/lobby/contests/{{match_id}}",
        "scoreboard_url": f"{SITE_ROOT}/mecspa/lobby/scoreboard/{{match_id}}",
        "roster_url": f"{SITE_ROOT}/mecspa/lobby/create-team-new/{{match_id}}/{{contest_id}}",
        "referer": f"{SITE_ROOT}/",
    },
    "browser": {
        "headless": True,
        "session_dir": "session_data",
        "navigation_timeout_ms": 60000,
        "detail_timeout_ms": 40000,
        "selector_timeout_ms": 30000,
        "login_timeout_ms": 30000,
        "viewport": {"width": 1366, "height": 768},
        "blocked_resources": ["image", "stylesheet", "font", "media"],
        "args": [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
            "--disable-accelerated-2d-canvas",
            "--disable-gpu",
            "--disable-features=IsolateOrigins,site-per-process",
            "--disable-blink-features=AutomationControlled",
        ],
        "user_agents": [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:127.0) Gecko/20100101 Firefox/127.0",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
        ],
        "headers": {
            "Accept-Language": "en-US,en;q=0.9",
        },
    },
    "retry": {
        "session_attempts": 3,
        "session_delay": 5.0,
        "fixtures_attempts": 3,
        "fixtures_delay": 3.0,
        "detail_attempts": 3,
        "detail_delay": 2.0,
        "roster_attempts": 3,
        "roster_delay": 3.0,
        "store_attempts": 3,
        "store_delay": 2.0,
    },
    # seconds
    "ttl": {
        "fixtures_upcoming": 300,
        "fixtures_live": 60,
        "fixtures_completed": 3600,
        "live_match": 60,
        "contests": 300,
        "scoreboard": 300,
        "roster": 300,
    },
    "scheduler": {
        "interval_seconds": 30,
    },
    "store": {
        "backend": "file",  # file | firebase
        "database_url": "",
        "auth_token": "",
        "root": "data/store",
        "timeout": 12,
    },
    # ordered alternatives, first one to render wins
    "readiness": {
        "fixtures": [sel.FIXTURE_CARD],
        "live_match": list(sel.SCOREBOOK_READY),
        "contests": list(sel.CONTEST_CARD_READY),
        "scoreboard": [sel.DETAIL_CONTAINER],
    },
    "io": {
        "log": "data/scraper.log",
        "debug_dir": "data/debug",
        "debug_artifacts": False,
    },
    "server": {
        "host": "0.0.0.0",
        "port": 5000,
        "cors_origins": ["http://localhost:3000"],
    },
}


def _merge(base: dict, override: dict) -> dict:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _merge(base[k], v)
        else:
            base[k] = v
    return base


def load_cfg(path: Optional[str] = None) -> dict:
    path = path or os.getenv("SCRAPER_CONFIG", "config.toml")
    cfg = copy.deepcopy(DEFAULT_CFG)
    if os.path.exists(path):
        with open(path, "rb") as f:
            user = tomli.load(f)
        _merge(cfg, user)
    return cfg

# =============================================================================
# Logging
# =============================================================================

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_configured = False


def setup_logging(cfg: dict, level: int = logging.INFO):
    global _configured
    if _configured:
        return
    root = logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    log_path = cfg["io"]["log"]
    if log_path:
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level)
    _configured = True
