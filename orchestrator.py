# orchestrator.py
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

import scraper
from browser import SessionManager
from errors import ScraperError
from retry_policy import with_retry
from store import (
    Store,
    contests_key,
    fixtures_key,
    live_match_key,
    roster_key,
    scoreboard_key,
    utc_now,
)

logger = logging.getLogger(__name__)

FIXTURE_STATUSES = ("upcoming", "live", "completed")


def _dump(result: Any) -> Any:
    if isinstance(result, list):
        return [r.model_dump(mode="json") for r in result]
    return result.model_dump(mode="json")


class Orchestrator:
    """
    Cache-aside read path: serve the stored value while it is younger than its
    TTL, otherwise scrape once (with retries), write back and return the fresh
    payload. Every method returns plain JSON-ready data.
    """

    def __init__(self, cfg: dict, sessions: SessionManager, store: Store,
                 clock: Callable[[], datetime] = utc_now, sleep=asyncio.sleep):
        self.cfg = cfg
        self.sessions = sessions
        self.store = store
        self.clock = clock
        self._sleep = sleep

    async def _cached(self, key: str, ttl_name: str, refresh: Callable[[], Awaitable[Any]]) -> Any:
        ttl = self.cfg["ttl"][ttl_name]
        try:
            record = await self.store.get(key)
        except ScraperError as e:
            logger.warning("Cache read %s failed, scraping instead: %r", key, e)
            record = None
        if record is not None and record.is_fresh(ttl, self.clock()):
            return record.value
        return await refresh()

    async def _save(self, key: str, payload: Any) -> Any:
        try:
            await self.store.put(key, payload)
        except ScraperError as e:
            logger.error("Cache write %s failed: %r", key, e)
        return payload

    async def _scrape(self, label: str, attempts_key: str, delay_key: str,
                      extract: Callable[..., Awaitable[Any]]) -> Any:
        attempt_no = 0

        async def attempt():
            nonlocal attempt_no
            attempt_no += 1
            handle = await self.sessions.ensure_session()
            return await extract(handle, attempt_no)

        return await with_retry(
            attempt,
            max_attempts=self.cfg["retry"][attempts_key],
            base_delay=self.cfg["retry"][delay_key],
            label=label,
            sleep=self._sleep,
        )

    # -- refreshers: always scrape, always write back ------------------------

    async def refresh_fixtures(self, status: str) -> List[dict]:
        if status not in FIXTURE_STATUSES:
            raise ValueError(f"unknown fixture status: {status!r}")
        matches = await self._scrape(
            f"{status} matches", "fixtures_attempts", "fixtures_delay",
            lambda h, n: scraper.scrape_matches(h, status, self.cfg, reload=n > 1),
        )
        return await self._save(fixtures_key(status), _dump(matches))

    async def refresh_live_match(self, match_id: str) -> dict:
        detail = await self._scrape(
            f"live match {match_id}", "detail_attempts", "detail_delay",
            lambda h, n: scraper.scrape_live_match(h, match_id, self.cfg),
        )
        return await self._save(live_match_key(match_id), _dump(detail))

    async def refresh_contests(self, match_id: str) -> dict:
        contests = await self._scrape(
            f"contests {match_id}", "detail_attempts", "detail_delay",
            lambda h, n: scraper.scrape_contests(h, match_id, self.cfg),
        )
        return await self._save(contests_key(match_id), _dump(contests))

    async def refresh_scoreboard(self, match_id: str) -> dict:
        board = await self._scrape(
            f"scoreboard {match_id}", "detail_attempts", "detail_delay",
            lambda h, n: scraper.scrape_scoreboard(h, match_id, self.cfg),
        )
        return await self._save(scoreboard_key(match_id), _dump(board))

    async def refresh_roster(self, match_id: str, contest_id: str) -> dict:
        roster = await self._scrape(
            f"roster {match_id}/{contest_id}", "roster_attempts", "roster_delay",
            lambda h, n: scraper.scrape_roster(h, match_id, contest_id, self.cfg),
        )
        return await self._save(roster_key(match_id, contest_id), _dump(roster))

    # -- read path ------------------------------------------------------------

    async def fixtures(self, status: str) -> List[dict]:
        return await self._cached(fixtures_key(status), f"fixtures_{status}",
                                  lambda: self.refresh_fixtures(status))

    async def live_match(self, match_id: str) -> dict:
        return await self._cached(live_match_key(match_id), "live_match",
                                  lambda: self.refresh_live_match(match_id))

    async def contests(self, match_id: str) -> dict:
        return await self._cached(contests_key(match_id), "contests",
                                  lambda: self.refresh_contests(match_id))

    async def scoreboard(self, match_id: str) -> dict:
        return await self._cached(scoreboard_key(match_id), "scoreboard",
                                  lambda: self.refresh_scoreboard(match_id))

    async def roster(self, match_id: str, contest_id: str) -> dict:
        return await self._cached(roster_key(match_id, contest_id), "roster",
                                  lambda: self.refresh_roster(match_id, contest_id))

    async def reset_session(self):
        await self.sessions.reset()

# =============================================================================
# Background refresh
# =============================================================================

class RefreshScheduler:
    """Keeps fixture lists and live-match detail warm, independent of reads."""

    def __init__(self, orchestrator: Orchestrator, interval: float = 30):
        self.orchestrator = orchestrator
        self.interval = interval
        self.running = False
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def _guarded(self, label: str, coro: Awaitable[Any]) -> Any:
        try:
            return await coro
        except Exception as e:
            logger.error("%s failed: %r", label, e)
            return None

    async def run_cycle(self):
        o = self.orchestrator
        logger.info("Starting background scraping cycle...")
        results = await asyncio.gather(*(
            self._guarded(f"{status} matches scrape", o.refresh_fixtures(status))
            for status in FIXTURE_STATUSES
        ))
        live = dict(zip(FIXTURE_STATUSES, results))["live"] or []

        await asyncio.gather(*(
            coro
            for match in live if match.get("match_id")
            for coro in (
                self._guarded(f"Live details for {match['match_id']}", o.refresh_live_match(match["match_id"])),
                self._guarded(f"Contests for {match['match_id']}", o.refresh_contests(match["match_id"])),
            )
        ))
        logger.info("Background scraping completed (%d live matches)", len(live))

    async def _loop(self):
        while self.running:
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error("Background scraping error: %r", e)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def start(self) -> Optional[asyncio.Task]:
        if self.running:
            return self._task
        self.running = True
        self._stop.clear()
        self._task = asyncio.create_task(self._loop())
        return self._task

    async def stop(self):
        """Let the in-flight cycle finish, then exit the loop."""
        self.running = False
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
