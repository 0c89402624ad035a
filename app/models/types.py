# app/models/types.py
from typing_extensions import TypedDict, Literal
from typing import Dict, List, Optional

GameStatus = Literal["SCHEDULED", "IN_PROGRESS", "FINAL"]
Outcome = Literal["PENDING", "VALID", "BUST"]


class Team(TypedDict):
    id: str
    abbreviation: Optional[str]
    displayName: Optional[str]
    logoUrl: Optional[str]
    liveScore: Optional[int]


class TeamSummary(TypedDict):
    id: str
    abbreviation: str
    displayName: str
    logoUrl: Optional[str]


class Game(TypedDict):
    id: str
    name: Optional[str]
    scheduledStart: Optional[str]
    status: GameStatus
    statusDetail: Optional[str]
    clockDisplay: Optional[str]
    period: Optional[int]
    teams: List[Team]


class Player(TypedDict):
    id: str
    athleteId: str
    displayName: Optional[str]
    shortName: Optional[str]
    headshotUrl: str
    position: str
    jerseyNumber: Optional[str]
    team: TeamSummary
    matchupLabel: str
    gameId: str
    gameStart: Optional[str]
    isLocked: bool
    isLive: bool
    isOver: bool
    points: Optional[int]
    avgPoints: Optional[float]


class PickRecord(TypedDict):
    """Flat shape a pick is stored under in the key-value store."""
    userId: str
    userName: str
    date: str
    p1Id: Optional[str]
    p1Name: Optional[str]
    p1Points: Optional[int]
    p2Id: Optional[str]
    p2Name: Optional[str]
    p2Points: Optional[int]
    updatedAt: str


class PickRequest(TypedDict, total=False):
    userId: str
    userName: str
    date: Optional[str]
    p1Id: Optional[str]
    p2Id: Optional[str]


class LeaderboardEntry(TypedDict):
    userId: str
    userName: str
    p1Name: Optional[str]
    p1Points: Optional[float]
    p2Name: Optional[str]
    p2Points: Optional[float]
    total: Optional[float]


class RankedEntry(LeaderboardEntry):
    outcome: Outcome
    perfect: bool
    distance: Optional[float]
    rank: Optional[int]
    position: int


class GameScore(TypedDict):
    gameId: str
    status: Optional[GameStatus]
    statusDetail: Optional[str]
    clock: Optional[str]
    period: Optional[int]
    teamScores: Dict[str, Optional[int]]
    players: Dict[str, int]
