from __future__ import annotations

import logging
import random
from uuid import uuid4

from minigames.api.models import (
    BallView,
    BodyView,
    EventView,
    LabelView,
    PrimeDropCommand,
    PrimeDropSnapshot,
    RunPhase,
)
from minigames.fsm import PrimeDropFSM
from minigames.prime_drop.events import DropEvent, EventType
from minigames.prime_drop.primes import apply_prime, pick_prime_for_drop
from minigames.prime_drop.world import Controls, PrimeDropConfig, PrimeDropWorld

logger = logging.getLogger(__name__)

START_VALUE = 1


def format_time(ms: float) -> str:
    """`MM:SS.t`, e.g. 75_250 ms -> `01:15.2`."""

    total_seconds = ms / 1000
    minutes = int(total_seconds // 60)
    seconds = int(total_seconds % 60)
    tenths = int((ms % 1000) // 100)
    return f"{minutes:02d}:{seconds:02d}.{tenths}"


class PrimeDropSession:
    """One player's Prime Drop run: screens, running value, timer and the physics world."""

    def __init__(
        self,
        *,
        session_id: str | None = None,
        seed: int | None = None,
        config: PrimeDropConfig | None = None,
    ) -> None:
        self.session_id = session_id or str(uuid4())
        # For reproducibility/debugging.
        self.seed = seed if seed is not None else random.SystemRandom().randint(1, 2**31 - 1)
        self.rng = random.Random(self.seed)
        self.config = config or PrimeDropConfig()
        self.world = PrimeDropWorld(config=self.config, rng=self.rng)
        self.fsm = PrimeDropFSM()
        self.controls = Controls(pointer_x=self.world.player_x)

        self.value = START_VALUE
        self.elapsed_ms = 0.0
        self.spawn_timer_ms = 0.0
        self.events: list[DropEvent] = []

    @property
    def phase(self) -> RunPhase:
        return self.fsm.phase

    def _emit(self, type: EventType, **payload: int | float | str | bool) -> None:
        self.events.append(DropEvent.now(type=type, elapsed_ms=self.elapsed_ms, payload=payload))

    def _reset_run(self) -> None:
        self.world.clear_balls()
        self.world.labels.clear()
        self.value = START_VALUE
        self.elapsed_ms = 0.0
        self.spawn_timer_ms = 0.0

    # --- commands ------------------------------------------------------------

    def start(self) -> None:
        self.fsm.fire("start_run")
        self._reset_run()
        self.controls.pointer_x = self.world.player_x
        self.events.clear()
        self._emit("RUN_STARTED", seed=self.seed)

    def pause(self) -> None:
        self.fsm.fire("pause_run")

    def resume(self) -> None:
        self.fsm.fire("resume_run")

    def go_home(self) -> None:
        self.fsm.fire("return_home")
        self._reset_run()
        self.world.reset_player()
        self.controls = Controls(pointer_x=self.world.player_x)

    def set_controls(self, command: PrimeDropCommand) -> None:
        c = self.controls
        for name in ("left", "right", "touch_left", "touch_right", "pointer_active"):
            value = getattr(command, name)
            if value is not None:
                setattr(c, name, value)
        if command.pointer_x is not None:
            c.pointer_x = self.world.clamp_x(command.pointer_x)

    def apply(self, command: PrimeDropCommand) -> None:
        """Run one client command. Raises ValueError when the current screen does not allow it."""

        if command.type == "start":
            self.start()
        elif command.type == "pause":
            self.pause()
        elif command.type == "resume":
            self.resume()
        elif command.type == "home":
            self.go_home()
        else:
            self.set_controls(command)

    # --- simulation ----------------------------------------------------------

    def _spawn_if_due(self, delta_ms: float) -> None:
        self.spawn_timer_ms += delta_ms
        if self.spawn_timer_ms < self.config.spawn_interval_ms:
            return
        self.spawn_timer_ms = 0.0

        draw = pick_prime_for_drop(self.value, self.rng)
        ball = self.world.spawn_ball(draw)
        self._emit("PRIME_SPAWNED", ball_id=ball.ball_id, prime=draw.value, source=draw.source)

    def tick(self, delta_ms: float) -> list[DropEvent]:
        """Advance a playing run by `delta_ms`. Returns the events this tick produced."""

        if self.phase != RunPhase.playing:
            return []

        first_new = len(self.events)
        self.world.move_player(self.controls, delta_ms)
        self._spawn_if_due(delta_ms)
        self.elapsed_ms += delta_ms

        for contact in self.world.step(delta_ms):
            ball = contact.ball
            self.world.remove_ball(ball)
            if contact.kind == "miss":
                self._emit("PRIME_MISSED", ball_id=ball.ball_id, prime=ball.prime)
                continue
            if self.phase != RunPhase.playing:
                continue

            t = apply_prime(self.value, ball.prime)
            self.value = t.after
            self.world.add_label(t.label, divided=t.divided)
            self._emit(
                "PRIME_CAUGHT",
                ball_id=ball.ball_id,
                prime=t.prime,
                divided=t.divided,
                before=t.before,
                value=t.after,
            )
            if self.value >= self.config.target:
                self.fsm.fire("reach_target")
                self._emit("RUN_CLEARED", value=self.value, elapsed_ms=self.elapsed_ms)
                logger.info(
                    "prime drop cleared session=%s value=%d time=%s",
                    self.session_id,
                    self.value,
                    format_time(self.elapsed_ms),
                )

        self.world.remove_offscreen()
        self.world.age_labels(delta_ms)
        return self.events[first_new:]

    def drain_events(self) -> list[DropEvent]:
        out, self.events = self.events, []
        return out

    def snapshot(self, *, events: list[DropEvent] | None = None) -> PrimeDropSnapshot:
        w = self.world
        cfg = self.config
        return PrimeDropSnapshot(
            session_id=self.session_id,
            seed=self.seed,
            phase=self.phase,
            value=self.value,
            target=cfg.target,
            elapsed_ms=self.elapsed_ms,
            elapsed_label=format_time(self.elapsed_ms),
            player=BodyView(x=w.player_x, y=cfg.player_y, radius=cfg.player_radius),
            balls=[
                BallView(
                    ball_id=b.ball_id,
                    prime=b.prime,
                    source=b.source,
                    x=float(b.body.position.x),
                    y=float(b.body.position.y),
                    radius=cfg.ball_radius,
                )
                for b in w.balls.values()
            ],
            labels=[
                LabelView(text=lb.text, x=lb.x, y=lb.y, alpha=lb.alpha, divided=lb.divided) for lb in w.labels
            ],
            events=[EventView(type=e.type, payload=e.payload) for e in (events or [])],
        )
