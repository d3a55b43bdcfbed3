from __future__ import annotations

import itertools
import math
import random
from dataclasses import dataclass
from typing import Any, Literal

import pymunk

from minigames.prime_drop.primes import PrimeDraw

# Tuning values are expressed per 60 Hz frame, the rate the game was designed around.
FRAME_MS = 1000 / 60

COLLISION_BALL = 1
COLLISION_PLAYER = 2
COLLISION_GROUND = 3


@dataclass(frozen=True, slots=True)
class PrimeDropConfig:
    width: float = 560.0
    height: float = 900.0
    target: int = 1000

    gravity: float = 100.0  # px/s^2, y grows downward
    # Fraction of velocity kept after one second (air friction).
    damping: float = 0.55

    ground_height: float = 60.0

    player_radius: float = 34.0
    player_offset: float = 110.0  # player centre above the bottom edge
    player_margin: float = 40.0
    player_max_speed: float = 3.0  # px/frame
    player_accel: float = 0.35  # of max speed, per frame
    player_decel: float = 0.45
    pointer_gain: float = 0.08

    ball_radius: float = 26.0
    ball_elasticity: float = 0.4
    spawn_interval_ms: float = 1600.0
    spawn_y: float = -40.0
    drop_speed_scale: float = 0.1
    initial_fall_speed: float = 1.2  # px/frame, before drop_speed_scale
    max_side_speed: float = 0.4  # px/frame
    sway_accel: float = 38.0  # px/s^2 amplitude
    sway_frequency: float = 2.4  # rad/s
    offscreen_margin: float = 120.0

    label_life_ms: float = 800.0
    label_rise: float = 0.6  # px/frame

    @property
    def player_y(self) -> float:
        return self.height - self.player_offset


@dataclass(slots=True)
class Controls:
    left: bool = False
    right: bool = False
    touch_left: bool = False
    touch_right: bool = False
    pointer_active: bool = False
    pointer_x: float = 0.0


@dataclass(slots=True)
class Ball:
    ball_id: int
    prime: int
    source: str
    body: pymunk.Body
    shape: pymunk.Circle
    swing_phase: float


@dataclass(slots=True)
class FloatingLabel:
    text: str
    x: float
    y: float
    divided: bool
    life_ms: float
    total_ms: float

    @property
    def alpha(self) -> float:
        return max(0.0, self.life_ms / self.total_ms)


@dataclass(frozen=True, slots=True)
class Contact:
    kind: Literal["catch", "miss"]
    ball: Ball


def _step_toward(current: float, target: float, step: float) -> float:
    diff = target - current
    if abs(step) >= abs(diff):
        return target
    return current + math.copysign(step, diff)


class PrimeDropWorld:
    """pymunk space holding the ground, the player and the falling prime balls."""

    def __init__(self, *, config: PrimeDropConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config or PrimeDropConfig()
        self.rng = rng or random.Random()
        cfg = self.config

        self.space = pymunk.Space()
        self.space.gravity = (0.0, cfg.gravity)
        self.space.damping = cfg.damping

        top = cfg.height - cfg.ground_height
        self.ground = pymunk.Poly(
            self.space.static_body,
            [(0.0, top), (cfg.width, top), (cfg.width, cfg.height), (0.0, cfg.height)],
        )
        self.ground.collision_type = COLLISION_GROUND

        self.player_body = pymunk.Body(body_type=pymunk.Body.KINEMATIC)
        self.player_body.position = (cfg.width / 2, cfg.player_y)
        self.player_shape = pymunk.Circle(self.player_body, cfg.player_radius)
        self.player_shape.collision_type = COLLISION_PLAYER
        self.player_velocity_x = 0.0

        self.space.add(self.ground, self.player_body, self.player_shape)

        self.balls: dict[int, Ball] = {}
        self._ball_by_shape: dict[int, Ball] = {}
        self._ids = itertools.count(1)
        self._pending: list[tuple[Literal["catch", "miss"], int]] = []
        self.labels: list[FloatingLabel] = []
        self.clock_s = 0.0

        self.space.on_collision(COLLISION_BALL, COLLISION_PLAYER, begin=self._on_player_contact)
        self.space.on_collision(COLLISION_BALL, COLLISION_GROUND, begin=self._on_ground_contact)

    # --- collision callbacks -------------------------------------------------

    def _ball_of(self, arbiter: pymunk.Arbiter) -> Ball | None:
        for shape in arbiter.shapes:
            ball = self._ball_by_shape.get(id(shape))
            if ball is not None:
                return ball
        return None

    def _on_player_contact(self, arbiter: pymunk.Arbiter, space: pymunk.Space, data: Any) -> None:
        # The player is a catcher, not an obstacle.
        arbiter.process_collision = False
        ball = self._ball_of(arbiter)
        if ball is not None:
            self._pending.append(("catch", ball.ball_id))

    def _on_ground_contact(self, arbiter: pymunk.Arbiter, space: pymunk.Space, data: Any) -> None:
        ball = self._ball_of(arbiter)
        if ball is not None:
            self._pending.append(("miss", ball.ball_id))

    # --- bodies --------------------------------------------------------------

    @property
    def player_x(self) -> float:
        return float(self.player_body.position.x)

    def reset_player(self) -> None:
        self.player_body.position = (self.config.width / 2, self.config.player_y)
        self.player_velocity_x = 0.0

    def clamp_x(self, x: float) -> float:
        cfg = self.config
        return max(cfg.player_margin, min(cfg.width - cfg.player_margin, x))

    def spawn_ball(self, draw: PrimeDraw, *, x: float | None = None, y: float | None = None) -> Ball:
        cfg = self.config
        frame_to_s = 1000 / FRAME_MS

        body = pymunk.Body(1.0, pymunk.moment_for_circle(1.0, 0, cfg.ball_radius))
        body.position = (
            x if x is not None else self.rng.uniform(cfg.player_margin, cfg.width - cfg.player_margin),
            y if y is not None else cfg.spawn_y,
        )
        body.velocity = (
            self.rng.uniform(-cfg.max_side_speed, cfg.max_side_speed) * frame_to_s,
            cfg.initial_fall_speed * cfg.drop_speed_scale * frame_to_s,
        )
        shape = pymunk.Circle(body, cfg.ball_radius)
        shape.elasticity = cfg.ball_elasticity
        shape.collision_type = COLLISION_BALL

        ball = Ball(
            ball_id=next(self._ids),
            prime=draw.value,
            source=draw.source,
            body=body,
            shape=shape,
            swing_phase=self.rng.uniform(0, 2 * math.pi),
        )
        self.space.add(body, shape)
        self.balls[ball.ball_id] = ball
        self._ball_by_shape[id(shape)] = ball
        return ball

    def remove_ball(self, ball: Ball) -> None:
        if self.balls.pop(ball.ball_id, None) is None:
            return
        self._ball_by_shape.pop(id(ball.shape), None)
        self.space.remove(ball.body, ball.shape)

    def clear_balls(self) -> None:
        for ball in list(self.balls.values()):
            self.remove_ball(ball)
        self._pending.clear()

    # --- per-tick updates ----------------------------------------------------

    def move_player(self, controls: Controls, delta_ms: float) -> None:
        cfg = self.config
        ratio = delta_ms / FRAME_MS
        max_speed = cfg.player_max_speed
        x = self.player_x

        target_vel = 0.0
        if controls.pointer_active:
            target_vel = max(-max_speed, min(max_speed, (controls.pointer_x - x) * cfg.pointer_gain))
        left = controls.left or controls.touch_left
        right = controls.right or controls.touch_right
        if left or right:
            target_vel = ((1 if right else 0) - (1 if left else 0)) * max_speed

        if target_vel != 0:
            step = max_speed * cfg.player_accel * ratio
            self.player_velocity_x = _step_toward(self.player_velocity_x, target_vel, step)
        else:
            step = max_speed * cfg.player_decel * ratio
            self.player_velocity_x = _step_toward(self.player_velocity_x, 0.0, step)

        self.player_body.position = (self.clamp_x(x + self.player_velocity_x * ratio), cfg.player_y)
        self.player_body.velocity = (0.0, 0.0)

    def _apply_sway(self) -> None:
        cfg = self.config
        for ball in self.balls.values():
            fx = math.sin(self.clock_s * cfg.sway_frequency + ball.swing_phase) * cfg.sway_accel * ball.body.mass
            ball.body.apply_force_at_local_point((fx, 0.0))

    def step(self, delta_ms: float) -> list[Contact]:
        """Advance the physics by `delta_ms` and return the ball contacts it produced, oldest first."""

        self._apply_sway()
        self.space.step(delta_ms / 1000)
        self.clock_s += delta_ms / 1000

        contacts: list[Contact] = []
        seen: set[int] = set()
        for kind, ball_id in self._pending:
            ball = self.balls.get(ball_id)
            if ball is None or ball_id in seen:
                continue
            seen.add(ball_id)
            contacts.append(Contact(kind=kind, ball=ball))
        self._pending.clear()
        return contacts

    def remove_offscreen(self) -> list[Ball]:
        limit = self.config.height + self.config.offscreen_margin
        gone = [b for b in self.balls.values() if b.body.position.y > limit]
        for ball in gone:
            self.remove_ball(ball)
        return gone

    def add_label(self, text: str, *, divided: bool) -> FloatingLabel:
        life = self.config.label_life_ms
        label = FloatingLabel(
            text=text,
            x=self.player_x,
            y=self.config.player_y - 50,
            divided=divided,
            life_ms=life,
            total_ms=life,
        )
        self.labels.append(label)
        return label

    def age_labels(self, delta_ms: float) -> None:
        ratio = delta_ms / FRAME_MS
        for label in self.labels:
            label.life_ms -= delta_ms
            label.y -= self.config.label_rise * ratio
        self.labels = [lb for lb in self.labels if lb.life_ms > 0]
