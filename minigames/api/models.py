from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


# --- Coin game ---------------------------------------------------------------


class CoinFace(StrEnum):
    heads = "HEADS"
    tails = "TAILS"


class GuessFeedback(StrEnum):
    wrong = "WRONG"
    correct = "CORRECT"
    game_over = "GAME_OVER"


class RoundPhase(StrEnum):
    playing = "playing"
    solved = "solved"
    exhausted = "exhausted"


class CoinGameCreateRequest(BaseModel):
    # Heads percentage the detectives have to find.
    probability: int = Field(50, ge=0, le=100)
    max_guesses: int = Field(5, ge=1, le=20)
    # Anonymous id of the maker; generated when omitted.
    creator_id: str | None = Field(None, max_length=128)


class CoinGame(BaseModel):
    code: str
    probability: int
    max_guesses: int = 5
    # Epoch milliseconds.
    timestamp: int
    creator_id: str


class CoinGamePublic(BaseModel):
    """What a detective may see about a game before joining: no probability."""

    code: str
    max_guesses: int
    timestamp: int


class FlipStats(BaseModel):
    total: int = 0
    heads: int = 0
    tails: int = 0


class CoinSession(BaseModel):
    session_id: UUID
    code: str
    target_probability: int
    max_guesses: int
    guesses_used: int = 0
    stats: FlipStats = Field(default_factory=FlipStats)
    last_result: CoinFace = CoinFace.heads
    feedback: GuessFeedback | None = None
    phase: RoundPhase = RoundPhase.playing
    auto_flipping: bool = False
    # Total at which auto-flipping last paused on a milestone.
    last_stop_total: int = 0
    last_guess: int | None = None
    created_at: datetime
    last_updated_at: datetime


class CoinSessionView(BaseModel):
    session_id: UUID
    code: str
    max_guesses: int
    guesses_used: int
    guesses_left: int
    stats: FlipStats
    last_result: CoinFace
    feedback: GuessFeedback | None
    phase: RoundPhase
    auto_flipping: bool
    # Flips per auto batch at the current total.
    batch_size: int
    last_guess: int | None
    # Only revealed once the round is over.
    target_probability: int | None = None


class JoinRequest(BaseModel):
    code: str = Field(..., max_length=6)


class FlipRequest(BaseModel):
    count: int = Field(1, ge=1, le=1000)


class AutoFlipRequest(BaseModel):
    enabled: bool


class GuessRequest(BaseModel):
    guess: int = Field(..., ge=0, le=100)


class ActivityEntry(BaseModel):
    id: str
    fields: dict[str, str]


class ActivityResponse(BaseModel):
    code: str
    entries: list[ActivityEntry]


# --- Prime Drop --------------------------------------------------------------


class RunPhase(StrEnum):
    home = "home"
    playing = "playing"
    paused = "paused"
    cleared = "cleared"


class PrimeDropCreateRequest(BaseModel):
    seed: int | None = None


class PrimeDropCommand(BaseModel):
    type: Literal["start", "pause", "resume", "home", "controls"]
    # Only read for `controls`; omitted fields keep their current value.
    left: bool | None = None
    right: bool | None = None
    touch_left: bool | None = None
    touch_right: bool | None = None
    pointer_active: bool | None = None
    pointer_x: float | None = None


class TickRequest(BaseModel):
    delta_ms: float = Field(1000 / 60, gt=0, le=250)
    steps: int = Field(1, ge=1, le=3600)


class BodyView(BaseModel):
    x: float
    y: float
    radius: float


class BallView(BodyView):
    ball_id: int
    prime: int
    source: str


class LabelView(BaseModel):
    text: str
    x: float
    y: float
    alpha: float
    divided: bool


class EventView(BaseModel):
    type: str
    payload: dict[str, int | float | str | bool]


class PrimeDropSnapshot(BaseModel):
    session_id: str
    seed: int
    phase: RunPhase
    value: int
    target: int
    elapsed_ms: float
    elapsed_label: str
    player: BodyView
    balls: list[BallView]
    labels: list[LabelView]
    events: list[EventView] = Field(default_factory=list)
