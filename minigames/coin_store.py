from __future__ import annotations

import logging
import random
import string
from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis

from minigames.api.models import (
    CoinGame,
    CoinSession,
    CoinSessionView,
    FlipStats,
    RoundPhase,
)
from minigames.coin_flip import auto_batch_for, batch_size_for, flip_batch, is_milestone
from minigames.fsm import CoinRoundFSM
from minigames.lock import session_lock
from minigames.streams import ActivityLog, publish_activity

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
CODE_ALPHABET = string.digits + string.ascii_uppercase
DEFAULT_MAX_GUESSES = 5
# A fresh code is drawn when the previous one is already taken.
MAX_CODE_ATTEMPTS = 5

_rng = random.SystemRandom()


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _game_key(app_id: str, code: str) -> str:
    return f"coin:{app_id}:game:{code}"


def _session_key(app_id: str, session_id: UUID) -> str:
    return f"coin:{app_id}:session:{session_id}"


def normalize_code(code: str) -> str:
    return code.strip().upper()


def generate_code(rng: random.Random | None = None) -> str:
    rng = rng or _rng
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def create_game(
    *,
    r: redis.Redis,
    app_id: str,
    probability: int,
    max_guesses: int = DEFAULT_MAX_GUESSES,
    creator_id: str | None = None,
) -> CoinGame:
    if not 0 <= probability <= 100:
        raise ValueError("probability must be between 0 and 100")
    if max_guesses < 1:
        raise ValueError("max_guesses must be at least 1")

    creator = creator_id or str(uuid4())
    timestamp = int(_now().timestamp() * 1000)

    for _ in range(MAX_CODE_ATTEMPTS):
        game = CoinGame(
            code=generate_code(),
            probability=probability,
            max_guesses=max_guesses,
            timestamp=timestamp,
            creator_id=creator,
        )
        # The code is the document id, so lookups on join are a single GET.
        if r.set(_game_key(app_id, game.code), game.model_dump_json(), nx=True):
            logger.info("coin game created code=%s max_guesses=%d", game.code, max_guesses)
            return game

    raise ValueError("Could not allocate a free game code")


def get_game(*, r: redis.Redis, app_id: str, code: str) -> CoinGame | None:
    raw = r.get(_game_key(app_id, normalize_code(code)))
    if not raw:
        return None
    return CoinGame.model_validate_json(raw)


def save_session(*, r: redis.Redis, app_id: str, session: CoinSession, ttl_s: int | None = None) -> None:
    session.last_updated_at = _now()
    r.set(_session_key(app_id, session.session_id), session.model_dump_json(), ex=ttl_s)


def get_session(*, r: redis.Redis, app_id: str, session_id: UUID) -> CoinSession | None:
    raw = r.get(_session_key(app_id, session_id))
    if not raw:
        return None
    return CoinSession.model_validate_json(raw)


def require_session(*, r: redis.Redis, app_id: str, session_id: UUID) -> CoinSession:
    session = get_session(r=r, app_id=app_id, session_id=session_id)
    if session is None:
        raise LookupError("Session not found")
    return session


def _record_activity(*, r: redis.Redis, app_id: str, code: str, fields: dict[str, str]) -> None:
    # The session is already saved; a lost log entry must not fail the request.
    try:
        publish_activity(r=r, log=ActivityLog(app_id=app_id, code=code), fields=fields)
    except redis.RedisError:
        logger.warning("coin activity not recorded code=%s type=%s", code, fields.get("type"), exc_info=True)


def join_game(*, r: redis.Redis, app_id: str, code: str, ttl_s: int | None = None) -> CoinSession | None:
    """Start a detective session on `code`. Returns None when no game has that code."""

    code = normalize_code(code)
    if len(code) < CODE_LENGTH:
        raise ValueError(f"Game code must be {CODE_LENGTH} characters")

    game = get_game(r=r, app_id=app_id, code=code)
    if game is None:
        return None

    now = _now()
    session = CoinSession(
        session_id=uuid4(),
        code=code,
        target_probability=game.probability,
        max_guesses=game.max_guesses or DEFAULT_MAX_GUESSES,
        created_at=now,
        last_updated_at=now,
    )
    save_session(r=r, app_id=app_id, session=session, ttl_s=ttl_s)

    _record_activity(
        r=r,
        app_id=app_id,
        code=code,
        fields={"type": "session_joined", "session_id": str(session.session_id), "ts": now.isoformat()},
    )
    logger.info("coin session joined code=%s session=%s", code, session.session_id)
    return session


def _apply_flips(*, session: CoinSession, count: int, rng: random.Random) -> None:
    batch = flip_batch(probability=session.target_probability, count=count, rng=rng)
    session.stats = FlipStats(
        total=session.stats.total + batch.count,
        heads=session.stats.heads + batch.heads,
        tails=session.stats.tails + batch.tails,
    )
    session.last_result = batch.last_result


def flip(
    *,
    r: redis.Redis,
    app_id: str,
    session_id: UUID,
    count: int = 1,
    rng: random.Random | None = None,
    ttl_s: int | None = None,
) -> CoinSession:
    with session_lock(r=r, session_id=str(session_id)):
        session = require_session(r=r, app_id=app_id, session_id=session_id)
        if session.phase != RoundPhase.playing:
            raise ValueError("Round is over")
        _apply_flips(session=session, count=count, rng=rng or _rng)
        save_session(r=r, app_id=app_id, session=session, ttl_s=ttl_s)
    return session


def set_auto_flipping(
    *,
    r: redis.Redis,
    app_id: str,
    session_id: UUID,
    enabled: bool,
    ttl_s: int | None = None,
) -> CoinSession:
    with session_lock(r=r, session_id=str(session_id)):
        session = require_session(r=r, app_id=app_id, session_id=session_id)
        if enabled and session.phase != RoundPhase.playing:
            raise ValueError("Round is over")
        session.auto_flipping = enabled
        save_session(r=r, app_id=app_id, session=session, ttl_s=ttl_s)
    return session


def auto_flip_tick(
    *,
    r: redis.Redis,
    app_id: str,
    session_id: UUID,
    rng: random.Random | None = None,
    ttl_s: int | None = None,
) -> CoinSession:
    """Flip one auto batch. Auto-flipping pauses the first time the total hits a milestone."""

    with session_lock(r=r, session_id=str(session_id)):
        session = require_session(r=r, app_id=app_id, session_id=session_id)
        if not session.auto_flipping or session.phase != RoundPhase.playing:
            return session

        # Manual flips can leave the total off the batch grid.
        _apply_flips(session=session, count=auto_batch_for(session.stats.total), rng=rng or _rng)

        total = session.stats.total
        if is_milestone(total) and session.last_stop_total != total:
            session.auto_flipping = False
            session.last_stop_total = total

        save_session(r=r, app_id=app_id, session=session, ttl_s=ttl_s)
    return session


def submit_guess(
    *,
    r: redis.Redis,
    app_id: str,
    session_id: UUID,
    guess: int,
    ttl_s: int | None = None,
) -> CoinSession:
    with session_lock(r=r, session_id=str(session_id)):
        session = require_session(r=r, app_id=app_id, session_id=session_id)
        fsm = CoinRoundFSM(session)
        fsm.record_guess(guess)
        save_session(r=r, app_id=app_id, session=session, ttl_s=ttl_s)

    if session.phase != RoundPhase.playing:
        event = "round_solved" if session.phase == RoundPhase.solved else "round_exhausted"
        _record_activity(
            r=r,
            app_id=app_id,
            code=session.code,
            fields={
                "type": event,
                "session_id": str(session.session_id),
                "guesses_used": str(session.guesses_used),
                "flips": str(session.stats.total),
                "ts": _now().isoformat(),
            },
        )
        logger.info("coin round ended code=%s session=%s outcome=%s", session.code, session.session_id, event)
    return session


def reset_session(*, r: redis.Redis, app_id: str, session_id: UUID) -> bool:
    return bool(r.delete(_session_key(app_id, session_id)))


def session_view(session: CoinSession) -> CoinSessionView:
    over = session.phase != RoundPhase.playing
    return CoinSessionView(
        session_id=session.session_id,
        code=session.code,
        max_guesses=session.max_guesses,
        guesses_used=session.guesses_used,
        guesses_left=max(0, session.max_guesses - session.guesses_used),
        stats=session.stats,
        last_result=session.last_result,
        feedback=session.feedback,
        phase=session.phase,
        auto_flipping=session.auto_flipping,
        batch_size=batch_size_for(session.stats.total),
        last_guess=session.last_guess,
        target_probability=session.target_probability if over else None,
    )
