import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

import scraper
from browser import SessionHandle
from conftest import FakeHandle
from errors import AuthenticationRequired, NoDataFound, ReadinessTimeout
from schema import RosterPlayer

FIXTURES_HTML = """
<div class="lobby">
  <div id="ft-fixture-card-new-1" matchid="1001">
    <div class="fixture-card-header"> Indian T20 League </div>
    <span testid="team-a-name">CSK</span>
    <span testid="team-b-name">MI</span>
    <div id="ft-team-badge"><div class="flag-containerNew"><img src="https://cdn.example/csk.png"></div></div>
    <div id="ft-team-badge"><div class="flag-containerNew"><img src="https://cdn.example/mi.png"></div></div>
    <div testid="match-status-1">2h 15m</div>
  </div>
  <div id="ft-fixture-card-new-2" matchid="1002">
    <div class="fixture-card-header">Big Bash</div>
    <span testid="team-a-name">SIX</span>
    <div testid="match-status-2">Tomorrow</div>
  </div>
</div>
"""

LIVE_HTML = """
<div class="sc-headTeamInfo">
  <div class="sc-teamInfoName">CSK</div>
  <div class="sc-match-title">CSK vs MI, Match 12</div>
  <div class="sc-teamInfoName">MI</div>
</div>
<div class="batsmen">
  <div class="batsman strike"><span class="name">R Gaikwad</span><span class="runs">45</span>
    <span class="ball">30</span><span class="fours">5</span><span class="sixes">1</span></div>
  <div class="batsman"><span class="name">S Dube</span></div>
  <div class="batsman"><span class="runs">3</span></div>
</div>
<div class="bowlers">
  <div class="bowler"><span class="name">J Bumrah</span><span class="ball">3.2</span>
    <span class="wickets">2</span><span class="runs">18</span></div>
</div>
<div class="score-book"><span class="delivery">1</span><span class="delivery"> W </span><span class="delivery">4</span></div>
<div class="match-summary"><span class="score">120/3</span></div>
"""

CONTESTS_HTML = """
<div id="ft-contest-card-555">
  <div class="contestRewampLeftHeader">Mega Contest</div>
  <div testid="newContestCardPrizeAmount-1">₹10,00,000</div>
  <div testid="entry-fee-1">₹49</div>
  <div testid="newContestnoOfWinners-1">Winners : 4,500</div>
  <div testid="wc-ps-teams-joined-count-1">12,345 / 20,000 Teams</div>
  <div class="progress-bar" style="width: 61.7%"></div>
</div>
<div id="ft-contest-card-556">
  <div class="contestRewampLeftHeader">Warm Up</div>
  <div testid="newContestCardPrizeAmount-2">₹0 Glory</div>
  <div testid="entry-fee-2">Free</div>
</div>
"""

SCOREBOARD_HTML = """
<div class="page_coninner_autoheight">
  <div class="sc-headTeamInfo"><div class="sc-teamInfoName">CSK</div><div class="sc-teamInfoName">MI</div></div>
  <div class="text-black-50 small text-center">CSK 180/5 (20)</div>
  <div class="inning-banner">
    <span class="team-name">CSK</span>
    <div class="inning-score"><span class="score">180/5</span></div>
    <span class="inning-run-rate">9.00</span>
  </div>
  <div class="innings-card">
    <div class="row header"><div class="col-2">12</div></div>
    <div class="score-table">
      <div class="row header"><div class="col-6"><div>Batter</div></div></div>
      <div class="row">
        <div class="col-6"><div>R Gaikwad</div><div class="status">c Kishan b Bumrah</div></div>
        <div class="col-1 runs">64</div><div class="col-1">40</div><div class="col-1">6</div><div class="col-1">2</div>
        <div class="col-2">160.00</div>
      </div>
      <div class="row"><div class="col-6"><div>MS Dhoni</div></div><div class="col-1 runs">20</div></div>
    </div>
    <div class="score-table">
      <div class="row header"><div class="col-6"><div>Bowler</div></div></div>
      <div class="row">
        <div class="col-6"><div>J Bumrah</div></div>
        <div class="col-1">4</div><div class="col-1">1</div><div class="col-1">22</div><div class="col-1">3</div>
        <div class="col-2">5.50</div>
      </div>
    </div>
    <div class="row total"><div class="col-5"><span>180/5</span></div></div>
  </div>
  <div class="inning-banner"><span class="team-name">MI</span></div>
</div>
"""

PLAYERS_HTML = """
<div class="player-box selected">
  <div class="player-img"><img src="https://cdn.example/players/4821/head.png"></div>
  <div class="player-name">MS Dhoni</div>
  <div class="team-name">Team: CSK</div>
  <div class="player-credits">8.5</div>
  <div class="player-points">312</div>
  <div class="selected-by">64.2%</div>
  <div class="recent-performance"><span>45</span><span></span><span>12</span></div>
</div>
<div class="player-box">
  <div class="player-name">Unknown Keeper</div>
</div>
"""


def test_parse_fixtures_maps_cards_in_order():
    matches = scraper.parse_fixtures(FIXTURES_HTML, "upcoming")
    assert [m.match_id for m in matches] == ["1001", "1002"]

    first = matches[0]
    assert first.series_name == "Indian T20 League"
    assert first.teams["A"].name == "CSK"
    assert first.teams["A"].logo == "https://cdn.example/csk.png"
    assert first.teams["B"].name == "MI"
    assert first.teams["B"].logo == "https://cdn.example/mi.png"
    assert first.match_time == "2h 15m"
    assert all(m.status == "upcoming" for m in matches)

    assert matches[1].teams["B"].name == "N/A"
    assert matches[1].teams["B"].logo is None


def test_parse_live_match_applies_defaults():
    detail = scraper.parse_live_match(LIVE_HTML, "1001")
    assert detail.title == "CSK vs MI, Match 12"
    assert detail.teams == {"A": "CSK", "B": "MI"}

    assert [b.name for b in detail.batsmen] == ["R Gaikwad", "S Dube"]
    gaikwad, dube = detail.batsmen
    assert (gaikwad.runs, gaikwad.balls, gaikwad.fours, gaikwad.sixes) == ("45", "30", "5", "1")
    assert gaikwad.on_strike and not dube.on_strike
    assert (dube.runs, dube.balls) == ("0", "0")

    bumrah = detail.bowlers[0]
    assert (bumrah.overs, bumrah.wickets, bumrah.runs, bumrah.maidens) == ("3.2", "2", "18", "0")

    assert detail.this_over == ["1", "W", "4"]
    assert detail.summary.score == "120/3"
    assert detail.summary.overs == "0.0"
    assert detail.summary.run_rate == "0.00"


def test_parse_contests_cash_contest():
    result = scraper.parse_contests(CONTESTS_HTML, "1001")
    mega = result.contests[0]
    assert mega.contest_id == "555"
    assert mega.match_id == "1001"
    assert mega.name == "Mega Contest"
    assert mega.total_prize == "₹10,00,000"
    assert mega.entry_fee == "₹49"
    assert mega.winners == "4,500"
    assert (mega.teams_joined.current, mega.teams_joined.max) == ("12345", "20000")
    assert mega.progress == "61.7"
    assert mega.type == "CASH"


def test_free_contest_becomes_practice_regardless_of_prize_text():
    practice = scraper.parse_contests(CONTESTS_HTML, "1001").contests[1]
    assert practice.contest_id == "556"
    assert practice.entry_fee == "0"
    assert practice.type == "PRACTICE"
    assert practice.total_prize == "Practice Contest"
    assert practice.winners == "0"
    assert practice.progress == "0"


def test_parse_scoreboard():
    board = scraper.parse_scoreboard(SCOREBOARD_HTML, "1001")
    assert board.teams == {"A": "CSK", "B": "MI"}
    assert board.current_score == "CSK 180/5 (20)"
    assert [i.team_name for i in board.innings] == ["CSK", "MI"]

    first = board.innings[0]
    assert (first.score, first.run_rate, first.extras, first.total) == ("180/5", "9.00", "12", "180/5")
    assert [b.name for b in first.batsmen] == ["R Gaikwad", "MS Dhoni"]
    assert first.batsmen[0].status == "c Kishan b Bumrah"
    assert (first.batsmen[0].runs, first.batsmen[0].balls, first.batsmen[0].sixes) == ("64", "40", "2")
    assert first.batsmen[1].status == "Not out"
    assert first.batsmen[1].balls == "0"
    assert first.batsmen[1].strike_rate == "0.00"

    bumrah = first.bowlers[0]
    assert (bumrah.overs, bumrah.maidens, bumrah.runs, bumrah.wickets, bumrah.economy) == ("4", "1", "22", "3", "5.50")

    second = board.innings[1]
    assert second.batsmen == [] and second.total == "0/0"


@pytest.mark.parametrize("token,expected", [
    ("ALLR", "ALL"), ("ALL-R", "ALL"), ("ALL", "ALL"), ("ft_allr", "ALL"),
    ("WK", "WK"), ("BAT", "BAT"), ("BOWL", "BOWL"), ("ft_wk", "WK"),
])
def test_normalize_role(token, expected):
    assert scraper.normalize_role(token) == expected


def test_parse_players():
    dhoni, keeper = scraper.parse_players(PLAYERS_HTML, "ft_wk")
    assert dhoni.player_id == "4821"
    assert dhoni.team == "CSK"
    assert dhoni.role == "WK"
    assert dhoni.credits == 8.5 and dhoni.points == 312
    assert dhoni.selected_by == "64.2%"
    assert dhoni.recent_performance == ["45", "12"]
    assert dhoni.is_selected

    assert keeper.player_id == ""
    assert keeper.team == "N/A"
    assert keeper.credits == 0
    assert not keeper.is_selected


def test_group_roster_buckets_role_variants():
    players = [RosterPlayer(name=n, role=r) for n, r in [
        ("a", "ALLR"), ("b", "ALL-R"), ("c", "ALL"), ("d", "WK"), ("e", "BAT"), ("f", "BOWL"),
    ]]
    roster = scraper.group_roster("1", "c1", players)
    assert [p.name for p in roster.players["ALL"]] == ["a", "b", "c"]
    assert [p.name for p in roster.players["WK"]] == ["d"]
    assert [p.name for p in roster.players["BAT"]] == ["e"]
    assert [p.name for p in roster.players["BOWL"]] == ["f"]
    assert roster.total_players == 6

# -- browser-facing paths, with stand-in pages ---------------------------------

class ScriptedPage:
    def __init__(self, html="", ready=(), login_wall=False, inactive=False, click_delay=0):
        self.html = html
        self.ready = set(ready)
        self.login_wall = login_wall
        self.inactive = inactive
        self.click_delay = click_delay
        self.waited = []
        self.visited = []
        self.clicks = []
        self.functions = []

    async def goto(self, url, **kwargs):
        self.visited.append(url)

    async def wait_for_selector(self, selector, timeout=None):
        self.waited.append(selector)
        if selector not in self.ready:
            raise PlaywrightTimeout(f"waiting for {selector}")

    async def query_selector(self, selector):
        return object() if self.login_wall and selector == 'input[name="mobile"]' else None

    async def click(self, selector):
        await asyncio.sleep(self.click_delay)
        self.clicks.append(selector)

    async def evaluate(self, expression, arg=None):
        return self.inactive

    async def wait_for_function(self, expression, arg=None, timeout=None):
        self.functions.append(arg)
        return True

    async def content(self):
        return self.html


async def test_wait_for_any_first_rendered_selector_wins():
    page = ScriptedPage(ready={".score-container", ".match-score"})
    won = await scraper.wait_for_any(page, [".score-book", ".score-container", ".match-score"], 10)
    assert won == ".score-container"
    assert page.waited == [".score-book", ".score-container"]


async def test_wait_for_any_all_time_out():
    page = ScriptedPage()
    with pytest.raises(ReadinessTimeout):
        await scraper.wait_for_any(page, [".a", ".b"], 10)
    assert page.waited == [".a", ".b"]


async def test_scrape_matches_reads_active_tab(cfg):
    page = ScriptedPage(html=FIXTURES_HTML, ready={scraper.sel.FIXTURE_CARD})
    matches = await scraper.scrape_matches(FakeHandle(page), "upcoming", cfg)
    assert len(matches) == 2


async def test_scrape_matches_switches_to_inactive_tab(cfg):
    page = ScriptedPage(html=FIXTURES_HTML, ready={scraper.sel.FIXTURE_CARD}, inactive=True)
    matches = await scraper.scrape_matches(FakeHandle(page), "live", cfg)

    tab = scraper.sel.TAB_SELECTOR.format(tab_id=scraper.sel.STATUS_TABS["live"])
    assert page.clicks == [tab]
    assert page.functions == [[tab, scraper.sel.TAB_INACTIVE_CLASS]]
    assert page.waited == [scraper.sel.FIXTURE_CARD]
    assert len(matches) == 2


class StubContext:
    def on(self, event, cb):
        pass


async def test_failed_tab_switch_leaves_nothing_running_on_the_page(cfg):
    page = ScriptedPage(html=FIXTURES_HTML, inactive=True, click_delay=0.05)
    handle = SessionHandle(StubContext(), page)

    with pytest.raises(ReadinessTimeout):
        await scraper.scrape_matches(handle, "live", cfg)
    assert not handle._lock.locked()

    await asyncio.sleep(0.1)
    assert page.clicks == []


async def test_scrape_matches_empty_list_is_no_data(cfg):
    page = ScriptedPage(html="<div></div>", ready={scraper.sel.FIXTURE_CARD})
    with pytest.raises(NoDataFound):
        await scraper.scrape_matches(FakeHandle(page), "live", cfg)


async def test_scrape_live_match_closes_page_on_failure(cfg):
    handle = FakeHandle(ScriptedPage(html=LIVE_HTML))
    with pytest.raises(ReadinessTimeout):
        await scraper.scrape_live_match(handle, "1001", cfg)
    assert handle.ephemeral_closed == 1


async def test_scrape_roster_stops_at_login_wall(cfg):
    page = ScriptedPage(login_wall=True)
    handle = FakeHandle(page)
    with pytest.raises(AuthenticationRequired):
        await scraper.scrape_roster(handle, "1001", "555", cfg)
    assert page.visited == ["https://www.my11circle.com/mecspa/lobby/create-team-new/1001/555"]
    assert handle.ephemeral_closed == 1
