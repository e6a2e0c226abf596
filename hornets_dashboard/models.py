from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel


class Team(BaseModel):
    id: int
    abbreviation: str = ""
    city: str = ""
    conference: str = ""
    division: str = ""
    full_name: str = ""
    name: str = ""


class Player(BaseModel):
    id: int
    first_name: str = ""
    last_name: str = ""
    position: str = ""
    team: Optional[Team] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}".strip()


class GameInfo(BaseModel):
    id: int
    date: Optional[str] = None
    season: Optional[int] = None
    status: str = ""
    postseason: bool = False
    home_team_id: Optional[int] = None
    visitor_team_id: Optional[int] = None
    home_team_score: Optional[int] = None
    visitor_team_score: Optional[int] = None


class GameStat(BaseModel):
    id: int
    player: Player
    team: Team
    game: GameInfo
    min: Optional[str] = None
    pts: Optional[float] = None
    reb: Optional[float] = None
    oreb: Optional[float] = None
    dreb: Optional[float] = None
    ast: Optional[float] = None
    stl: Optional[float] = None
    blk: Optional[float] = None
    turnover: Optional[float] = None
    pf: Optional[float] = None
    fgm: Optional[float] = None
    fga: Optional[float] = None
    fg_pct: Optional[float] = None
    fg3m: Optional[float] = None
    fg3a: Optional[float] = None
    fg3_pct: Optional[float] = None
    ftm: Optional[float] = None
    fta: Optional[float] = None
    ft_pct: Optional[float] = None


class SeasonAverage(BaseModel):
    player_id: int
    season: int
    games_played: int = 0
    min: Optional[str] = None
    pts: Optional[float] = None
    reb: Optional[float] = None
    ast: Optional[float] = None
    stl: Optional[float] = None
    blk: Optional[float] = None
    turnover: Optional[float] = None
    fgm: Optional[float] = None
    fga: Optional[float] = None
    fg_pct: Optional[float] = None
    fg3_pct: Optional[float] = None
    ft_pct: Optional[float] = None


class DashboardRow(BaseModel):
    id: int
    first_name: str
    last_name: str
    position: str = ""
    games_played: int = 0
    points_per_game: Optional[float] = None
    rebounds_per_game: Optional[float] = None
    assists_per_game: Optional[float] = None
    field_goal_percentage: Optional[float] = None
    minutes_per_game: Optional[float] = None

    @property
    def has_stats(self) -> bool:
        return self.points_per_game is not None


class MetricStanding(BaseModel):
    value: float
    rank: int = 0
    percentile: float = 0.0


class ComparedPlayer(BaseModel):
    id: int
    name: str
    position: str = ""
    stats: Dict[str, MetricStanding]


class MetricComparison(BaseModel):
    leader: int
    difference: float


class ComparisonResponse(BaseModel):
    players: List[ComparedPlayer]
    comparisons: Dict[str, MetricComparison]


class SessionUser(BaseModel):
    sub: str
    email: Optional[str] = None
    email_verified: bool = False
    name: Optional[str] = None
    picture: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "SessionUser":
        """Build a session user from identity provider userinfo claims."""
        return cls(
            sub=str(claims["sub"]),
            email=claims.get("email"),
            email_verified=bool(claims.get("email_verified", False)),
            name=claims.get("name") or claims.get("nickname"),
            picture=claims.get("picture"),
        )
