from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Fixtures

class Team(BaseModel):
    name: str = "N/A"
    logo: Optional[str] = None

class Match(BaseModel):
    match_id: str
    series_name: str = ""
    teams: Dict[str, Team] = {}  # "A" / "B"
    match_time: str = ""
    status: str = "upcoming"  # upcoming|live|completed

# Live match

class BatsmanLine(BaseModel):
    name: str
    runs: str = "0"
    balls: str = "0"
    fours: str = "0"
    sixes: str = "0"
    on_strike: bool = False

class BowlerLine(BaseModel):
    name: str
    overs: str = "0"
    maidens: str = "0"
    runs: str = "0"
    wickets: str = "0"

class MatchSummary(BaseModel):
    score: str = "0/0"
    overs: str = "0.0"
    run_rate: str = "0.00"

class LiveMatchDetail(BaseModel):
    match_id: str
    title: str = ""
    teams: Dict[str, str] = {}
    is_live: bool = True
    batsmen: List[BatsmanLine] = []
    bowlers: List[BowlerLine] = []
    this_over: List[str] = []
    summary: MatchSummary = Field(default_factory=MatchSummary)

# Contests

class TeamsJoined(BaseModel):
    current: str = "0"
    max: str = "0"

class Contest(BaseModel):
    contest_id: str
    match_id: str
    name: str = "Unnamed Contest"
    total_prize: str = "0"
    entry_fee: str = "0"
    winners: str = "0"
    teams_joined: TeamsJoined = Field(default_factory=TeamsJoined)
    progress: str = "0"
    type: str = "CASH"  # CASH|PRACTICE

class ContestList(BaseModel):
    match_id: str
    contests: List[Contest] = []

# Scoreboard

class ScorecardBatsman(BaseModel):
    name: str
    status: str = "Not out"
    runs: str = "0"
    balls: str = "0"
    fours: str = "0"
    sixes: str = "0"
    strike_rate: str = "0.00"

class ScorecardBowler(BaseModel):
    name: str
    overs: str = "0"
    maidens: str = "0"
    runs: str = "0"
    wickets: str = "0"
    economy: str = "0.00"

class Innings(BaseModel):
    team_name: str = "N/A"
    score: str = ""
    run_rate: str = ""
    extras: str = "0"
    total: str = "0/0"
    batsmen: List[ScorecardBatsman] = []
    bowlers: List[ScorecardBowler] = []

class Scoreboard(BaseModel):
    match_id: str
    teams: Dict[str, str] = {}
    current_score: str = ""
    innings: List[Innings] = []

# Roster

class RosterPlayer(BaseModel):
    player_id: str = ""
    name: str = "N/A"
    team: str = "N/A"
    role: str
    credits: float = 0
    points: float = 0
    selected_by: str = ""
    recent_performance: List[str] = []
    is_selected: bool = False

class Roster(BaseModel):
    match_id: str
    contest_id: str
    players: Dict[str, List[RosterPlayer]] = {}  # WK|BAT|ALL|BOWL
    total_players: int = 0

# Cache

class CacheRecord(BaseModel):
    value: Any = None
    timestamp: str  # ISO-8601, UTC

    def written_at(self) -> datetime:
        ts = datetime.fromisoformat(self.timestamp)
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts

    def age(self, now: datetime) -> float:
        return (now - self.written_at()).total_seconds()

    def is_fresh(self, ttl: float, now: datetime) -> bool:
        return self.age(now) < ttl
