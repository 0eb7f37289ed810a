# scraper.py
import asyncio
import logging
import os
import re
import time
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeout

import site_selectors as sel
from browser import SessionHandle
from errors import AuthenticationRequired, NoDataFound, ReadinessTimeout
from schema import (
    BatsmanLine,
    BowlerLine,
    Contest,
    ContestList,
    Innings,
    LiveMatchDetail,
    Match,
    MatchSummary,
    Roster,
    RosterPlayer,
    Scoreboard,
    ScorecardBatsman,
    ScorecardBowler,
    Team,
    TeamsJoined,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Utils
# =============================================================================

NUM = re.compile(r"[0-9]+(?:\.[0-9]+)?")
GROUPED_INT = re.compile(r"\d[\d,]*")
PLAYER_ID = re.compile(r"players/(\d+)")

ROLE_BUCKETS = ("WK", "BAT", "ALL", "BOWL")
ROLE_ALIASES = {"ALLR": "ALL", "ALL-R": "ALL"}


def clean(txt: Optional[str]) -> str:
    return " ".join((txt or "").split())


def text_of(node: Optional[Tag], selector: Optional[str] = None, default: str = "") -> str:
    if node is not None and selector:
        node = node.select_one(selector)
    if node is None:
        return default
    return clean(node.get_text(" ")) or default


def first_float(txt: Optional[str]) -> Optional[float]:
    if not txt:
        return None
    m = NUM.search(txt.replace(",", ""))
    return float(m.group(0)) if m else None


def normalize_role(token: str) -> str:
    role = clean(token).upper()
    if role.startswith("FT_"):
        role = role[3:]
    return ROLE_ALIASES.get(role, role)


async def screenshot(page: Page, path: str):
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        await page.screenshot(path=path, full_page=True)
    except Exception as e:
        logger.debug("screenshot %s failed: %r", path, e)


async def save_html(page: Page, path: str):
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(await page.content())
    except Exception as e:
        logger.debug("html dump %s failed: %r", path, e)


async def dump_debug(page: Page, name: str, cfg: dict):
    if not cfg["io"]["debug_artifacts"]:
        return
    stem = os.path.join(cfg["io"]["debug_dir"], f"{name}_{int(time.time() * 1000)}")
    await save_html(page, stem + ".html")
    await screenshot(page, stem + ".png")

# =============================================================================
# Readiness
# =============================================================================

async def wait_for_any(page: Page, selectors: Sequence[str], timeout_ms: int) -> str:
    """Try each selector in order; the first that renders within `timeout_ms` wins."""
    for selector in selectors:
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            return selector
        except PlaywrightTimeout:
            continue
    raise ReadinessTimeout(f"none of {list(selectors)} rendered")


async def dismiss_popups(page: Page, timeout_ms: int = 5000):
    try:
        await page.wait_for_selector(sel.POPUP_CLOSE, timeout=timeout_ms)
        await page.click(sel.POPUP_CLOSE)
        logger.info("Dismissed popup")
    except PlaywrightTimeout:
        pass


async def open_detail(page: Page, url: str, cfg: dict):
    await page.goto(url, wait_until="networkidle", timeout=cfg["browser"]["detail_timeout_ms"])
    await dismiss_popups(page)


async def gather_or_cancel(*aws):
    """
    Like asyncio.gather, but the first failure cancels the rest and waits for
    them, so nothing is still touching the page once this returns or raises.
    """
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for t in tasks:
            if not t.done():
                t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
    for t in tasks:
        if not t.cancelled() and t.exception() is not None:
            raise t.exception()
    return [t.result() for t in tasks]

# =============================================================================
# Fixture lists (primary page, tab switch)
# =============================================================================

def parse_fixtures(html: str, status: str) -> List[Match]:
    soup = BeautifulSoup(html, "html.parser")
    out: List[Match] = []
    for card in soup.select(sel.FIXTURE_CARD):
        logos = card.select(sel.FIXTURE_TEAM_LOGO)
        out.append(Match(
            match_id=card.get("matchid") or "",
            series_name=text_of(card, sel.FIXTURE_SERIES),
            teams={
                "A": Team(name=text_of(card, sel.FIXTURE_TEAM_A, "N/A"),
                          logo=logos[0].get("src") if logos else None),
                "B": Team(name=text_of(card, sel.FIXTURE_TEAM_B, "N/A"),
                          logo=logos[-1].get("src") if logos else None),
            },
            match_time=text_of(card, sel.FIXTURE_MATCH_STATUS),
            status=status,
        ))
    return out


async def _tab_inactive(page: Page, tab: str) -> bool:
    return await page.evaluate(
        "([sel, cls]) => { const t = document.querySelector(sel); return !!t && t.classList.contains(cls); }",
        [tab, sel.TAB_INACTIVE_CLASS],
    )


async def scrape_matches(handle: SessionHandle, status: str, cfg: dict, reload: bool = False) -> List[Match]:
    tab = sel.TAB_SELECTOR.format(tab_id=sel.STATUS_TABS[status])
    timeout = cfg["browser"]["selector_timeout_ms"]
    ready = cfg["readiness"]["fixtures"]

    async with handle.primary() as page:
        if reload:
            await page.reload(wait_until="networkidle", timeout=cfg["browser"]["navigation_timeout_ms"])
        try:
            if await _tab_inactive(page, tab):
                await gather_or_cancel(
                    page.click(tab),
                    page.wait_for_function(
                        "([sel, cls]) => !document.querySelector(sel)?.classList.contains(cls)",
                        arg=[tab, sel.TAB_INACTIVE_CLASS],
                        timeout=timeout,
                    ),
                    wait_for_any(page, ready, timeout),
                )
            else:
                await wait_for_any(page, ready, timeout)
        except PlaywrightTimeout as e:
            raise ReadinessTimeout(f"{status} tab did not settle: {e}") from e
        html = await page.content()

    matches = parse_fixtures(html, status)
    if not matches:
        raise NoDataFound(f"no {status} matches")
    return matches

# =============================================================================
# Live match (ephemeral page)
# =============================================================================

def _two(soup, selector: str) -> Dict[str, str]:
    nodes = soup.select(selector)
    return {
        "A": text_of(nodes[0], default="N/A") if nodes else "N/A",
        "B": text_of(nodes[-1], default="N/A") if nodes else "N/A",
    }


def parse_live_match(html: str, match_id: str) -> LiveMatchDetail:
    soup = BeautifulSoup(html, "html.parser")

    batsmen = []
    for el in soup.select(sel.BATSMAN_ROW):
        name = text_of(el, ".name")
        if not name:
            continue
        batsmen.append(BatsmanLine(
            name=name,
            runs=text_of(el, ".runs", "0"),
            balls=text_of(el, ".ball", "0"),
            fours=text_of(el, ".fours", "0"),
            sixes=text_of(el, ".sixes", "0"),
            on_strike="strike" in (el.get("class") or []),
        ))

    bowlers = []
    for el in soup.select(sel.BOWLER_ROW):
        name = text_of(el, ".name")
        if not name:
            continue
        bowlers.append(BowlerLine(
            name=name,
            overs=text_of(el, ".ball", "0"),
            maidens=text_of(el, ".maidens", "0"),
            runs=text_of(el, ".runs", "0"),
            wickets=text_of(el, ".wickets", "0"),
        ))

    return LiveMatchDetail(
        match_id=match_id,
        title=text_of(soup, sel.MATCH_TITLE),
        teams=_two(soup, sel.TEAM_NAME),
        batsmen=batsmen,
        bowlers=bowlers,
        this_over=[text_of(d) for d in soup.select(sel.DELIVERY)],
        summary=MatchSummary(
            score=text_of(soup, sel.SUMMARY_SCORE, "0/0"),
            overs=text_of(soup, sel.SUMMARY_OVERS, "0.0"),
            run_rate=text_of(soup, sel.SUMMARY_RUN_RATE, "0.00"),
        ),
    )


async def scrape_live_match(handle: SessionHandle, match_id: str, cfg: dict) -> LiveMatchDetail:
    async with handle.ephemeral_page() as page:
        try:
            await open_detail(page, cfg["site"]["live_match_url"].format(match_id=match_id), cfg)
            await wait_for_any(page, cfg["readiness"]["live_match"], cfg["browser"]["selector_timeout_ms"])
            detail = parse_live_match(await page.content(), match_id)
        except Exception:
            await dump_debug(page, f"live_{match_id}", cfg)
            raise
    if detail.teams["A"] == "N/A" and not detail.batsmen:
        raise NoDataFound(f"no live data for match {match_id}")
    return detail

# =============================================================================
# Contests (ephemeral page)
# =============================================================================

def parse_contest(card: Tag, match_id: str) -> Contest:
    card_id = card.get("id") or ""
    contest_id = card_id[len("ft-contest-card-"):] if card_id.startswith("ft-contest-card-") else ""
    contest_id = contest_id or card.get("contestid") or ""

    entry_text = text_of(card, sel.CONTEST_ENTRY_FEE)
    free = entry_text.lower() == "free"

    winners = text_of(card, sel.CONTEST_WINNERS).replace("Winners :", "").replace("Winners:", "").strip()

    joined = [n.replace(",", "") for n in GROUPED_INT.findall(text_of(card, sel.CONTEST_TEAMS_JOINED))]

    bar = card.select_one(sel.CONTEST_PROGRESS)
    style = bar.get("style", "") if bar is not None else ""
    m = NUM.search(style)

    return Contest(
        contest_id=contest_id,
        match_id=match_id,
        name=text_of(card, sel.CONTEST_NAME, "Unnamed Contest"),
        total_prize="Practice Contest" if free else text_of(card, sel.CONTEST_PRIZE, "0"),
        entry_fee="0" if free else (entry_text or "0"),
        winners=winners or "0",
        teams_joined=TeamsJoined(
            current=joined[0] if joined else "0",
            max=joined[1] if len(joined) > 1 else "0",
        ),
        progress=m.group(0) if m else "0",
        type="PRACTICE" if free else "CASH",
    )


def parse_contests(html: str, match_id: str) -> ContestList:
    soup = BeautifulSoup(html, "html.parser")
    contests = []
    for card in soup.select(sel.CONTEST_CARD):
        try:
            contests.append(parse_contest(card, match_id))
        except ValueError as e:
            logger.warning("Skipping contest card on match %s: %r", match_id, e)
    return ContestList(match_id=match_id, contests=contests)


async def scrape_contests(handle: SessionHandle, match_id: str, cfg: dict) -> ContestList:
    timeout = cfg["browser"]["selector_timeout_ms"]
    async with handle.ephemeral_page() as page:
        try:
            await open_detail(page, cfg["site"]["contests_url"].format(match_id=match_id), cfg)
            try:
                await page.wait_for_function(
                    "(text) => document.body && document.body.textContent.includes(text)",
                    arg=sel.CONTESTS_PAGE_TEXT,
                    timeout=timeout,
                )
            except PlaywrightTimeout as e:
                raise ReadinessTimeout(f"contests page for {match_id} never rendered") from e
            await wait_for_any(page, cfg["readiness"]["contests"], timeout)
            result = parse_contests(await page.content(), match_id)
        except Exception:
            await dump_debug(page, f"contests_{match_id}", cfg)
            raise
    if not result.contests:
        raise NoDataFound(f"no contests for match {match_id}")
    return result

# =============================================================================
# Scoreboard (ephemeral page)
# =============================================================================

def _cols(row: Tag, selector: str) -> List[str]:
    return [text_of(c) for c in row.select(selector)]


def _at(values: List[str], i: int, default: str) -> str:
    return values[i] if i < len(values) and values[i] else default


def parse_innings(banner: Tag) -> Innings:
    innings = Innings(
        team_name=text_of(banner, sel.INNINGS_TEAM, "N/A"),
        score=text_of(banner, sel.INNINGS_SCORE),
        run_rate=text_of(banner, sel.INNINGS_RUN_RATE),
    )
    card = banner.find_next_sibling()
    if card is None or sel.INNINGS_CARD_CLASS not in (card.get("class") or []):
        return innings

    innings.extras = text_of(card, sel.INNINGS_EXTRAS, "0")
    innings.total = text_of(card, sel.INNINGS_TOTAL, "0/0")

    tables = card.select(sel.SCORE_TABLE)
    if tables:
        for row in tables[0].select(sel.SCORE_ROW):
            name = text_of(row.select_one(".col-6 div"))
            if not name:
                continue
            cols = _cols(row, ".col-1")
            innings.batsmen.append(ScorecardBatsman(
                name=name,
                status=text_of(row, ".col-6 .status", "Not out"),
                runs=text_of(row, ".col-1.runs", "0"),
                balls=_at(cols, 1, "0"),
                fours=_at(cols, 2, "0"),
                sixes=_at(cols, 3, "0"),
                strike_rate=text_of(row, ".col-2", "0.00"),
            ))
    if len(tables) > 1:
        for row in tables[-1].select(sel.SCORE_ROW):
            name = text_of(row.select_one(".col-6 div"))
            if not name:
                continue
            cols = _cols(row, ".col-1")
            innings.bowlers.append(ScorecardBowler(
                name=name,
                overs=_at(cols, 0, "0"),
                maidens=_at(cols, 1, "0"),
                runs=_at(cols, 2, "0"),
                wickets=_at(cols, 3, "0"),
                economy=text_of(row, ".col-2", "0.00"),
            ))
    return innings


def parse_scoreboard(html: str, match_id: str) -> Scoreboard:
    soup = BeautifulSoup(html, "html.parser")
    container = soup.select_one(sel.DETAIL_CONTAINER) or soup
    return Scoreboard(
        match_id=match_id,
        teams=_two(container, sel.TEAM_NAME),
        current_score=text_of(container, sel.SCOREBOARD_SCORE),
        innings=[parse_innings(b) for b in container.select(sel.INNINGS_BANNER)],
    )


async def scrape_scoreboard(handle: SessionHandle, match_id: str, cfg: dict) -> Scoreboard:
    async with handle.ephemeral_page() as page:
        try:
            await page.goto(
                cfg["site"]["scoreboard_url"].format(match_id=match_id),
                wait_until="networkidle",
                timeout=cfg["browser"]["detail_timeout_ms"],
            )
            await wait_for_any(page, cfg["readiness"]["scoreboard"], cfg["browser"]["selector_timeout_ms"])
            board = parse_scoreboard(await page.content(), match_id)
        except Exception:
            await dump_debug(page, f"scoreboard_{match_id}", cfg)
            raise
    if not board.innings:
        raise NoDataFound(f"no innings for match {match_id}")
    return board

# =============================================================================
# Roster (ephemeral page)
# =============================================================================

SCROLL_TO_BOTTOM = """
async () => {
  await new Promise((resolve) => {
    let total = 0;
    const step = 300;
    const timer = setInterval(() => {
      window.scrollBy(0, step);
      total += step;
      if (total >= document.body.scrollHeight) {
        clearInterval(timer);
        resolve();
      }
    }, 100);
  });
}
"""


def parse_players(html: str, category: str) -> List[RosterPlayer]:
    soup = BeautifulSoup(html, "html.parser")
    role = normalize_role(category)
    out = []
    for box in soup.select(sel.PLAYER_BOX):
        img = box.select_one(sel.PLAYER_IMG)
        m = PLAYER_ID.search(img.get("src", "")) if img is not None else None
        out.append(RosterPlayer(
            player_id=m.group(1) if m else "",
            name=text_of(box, sel.PLAYER_NAME, "N/A"),
            team=text_of(box, sel.PLAYER_TEAM).replace("Team:", "").strip() or "N/A",
            role=role,
            credits=first_float(text_of(box, sel.PLAYER_CREDITS)) or 0,
            points=first_float(text_of(box, sel.PLAYER_POINTS)) or 0,
            selected_by=text_of(box, sel.PLAYER_SELECTED_BY),
            recent_performance=[t for t in (text_of(s) for s in box.select(sel.PLAYER_RECENT)) if t],
            is_selected="selected" in (box.get("class") or []),
        ))
    return out


def group_roster(match_id: str, contest_id: str, players: List[RosterPlayer]) -> Roster:
    buckets: Dict[str, List[RosterPlayer]] = {b: [] for b in ROLE_BUCKETS}
    for p in players:
        role = normalize_role(p.role)
        if role in buckets:
            buckets[role].append(p)
        else:
            logger.warning("Unknown role %r for player %s", p.role, p.name)
    return Roster(match_id=match_id, contest_id=contest_id, players=buckets, total_players=len(players))


async def scrape_roster(handle: SessionHandle, match_id: str, contest_id: str, cfg: dict) -> Roster:
    timeout = cfg["browser"]["selector_timeout_ms"]
    url = cfg["site"]["roster_url"].format(match_id=match_id, contest_id=contest_id)

    async with handle.ephemeral_page() as page:
        try:
            logger.info("Navigating to: %s", url)
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=cfg["browser"]["navigation_timeout_ms"],
                referer=cfg["site"]["referer"],
            )
            if await page.query_selector(sel.LOGIN_REQUIRED) is not None:
                raise AuthenticationRequired("Login required. Open browser and login manually.")
            try:
                await page.wait_for_function(
                    "([tabs, box]) => !!document.querySelector(tabs) && !!document.querySelector(box)",
                    arg=[sel.PLAYER_TABS, sel.PLAYER_BOX],
                    timeout=timeout,
                )
            except PlaywrightTimeout as e:
                raise ReadinessTimeout(f"player list for {match_id}/{contest_id} never rendered") from e

            categories = await page.eval_on_selector_all(
                sel.PLAYER_TAB_ITEMS, "tabs => tabs.map(t => t.dataset.filter).filter(Boolean)"
            )
            players: List[RosterPlayer] = []
            for category in categories:
                try:
                    await page.click(sel.PLAYER_TAB.format(category=category))
                    await page.wait_for_timeout(1000)
                    await page.evaluate(SCROLL_TO_BOTTOM)
                    found = parse_players(await page.content(), category)
                    logger.info("Found %d in %s", len(found), category)
                    players.extend(found)
                except PlaywrightError as e:
                    logger.warning("Failed category %s: %r", category, e)
        except AuthenticationRequired:
            raise
        except Exception:
            await dump_debug(page, f"roster_{match_id}_{contest_id}", cfg)
            raise

    if not players:
        raise NoDataFound("No players found. Possibly blocked or not logged in.")
    return group_roster(match_id, contest_id, players)
