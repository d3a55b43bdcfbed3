from __future__ import annotations

import random

from minigames.prime_drop.primes import PrimeDraw
from minigames.prime_drop.world import FRAME_MS, Contact, Controls, PrimeDropWorld


def _step_until_contact(world: PrimeDropWorld, *, max_frames: int = 180) -> list[Contact]:
    for _ in range(max_frames):
        contacts = world.step(FRAME_MS)
        if contacts:
            return contacts
    return []


def test_ball_dropped_on_player_is_caught() -> None:
    world = PrimeDropWorld(rng=random.Random(5))
    cfg = world.config
    ball = world.spawn_ball(PrimeDraw(3, "base"), x=world.player_x, y=cfg.player_y - 80)

    contacts = _step_until_contact(world)
    assert [(c.kind, c.ball.ball_id) for c in contacts] == [("catch", ball.ball_id)]
    # The catcher is a sensor: the player never gets pushed.
    assert world.player_body.position.y == cfg.player_y


def test_ball_hitting_ground_is_a_miss() -> None:
    world = PrimeDropWorld(rng=random.Random(5))
    cfg = world.config
    ground_top = cfg.height - cfg.ground_height
    ball = world.spawn_ball(PrimeDraw(2, "base"), x=cfg.player_margin, y=ground_top - cfg.ball_radius - 10)

    contacts = _step_until_contact(world)
    assert [(c.kind, c.ball.ball_id) for c in contacts] == [("miss", ball.ball_id)]


def test_removed_ball_leaves_space() -> None:
    world = PrimeDropWorld()
    ball = world.spawn_ball(PrimeDraw(5, "base"))
    assert ball.body in world.space.bodies

    world.remove_ball(ball)
    world.remove_ball(ball)
    assert ball.ball_id not in world.balls
    assert ball.body not in world.space.bodies


def test_offscreen_balls_are_removed() -> None:
    world = PrimeDropWorld()
    cfg = world.config
    low = world.spawn_ball(PrimeDraw(7, "base"), x=100, y=cfg.height + cfg.offscreen_margin + 30)
    high = world.spawn_ball(PrimeDraw(7, "base"), x=100, y=100)

    gone = world.remove_offscreen()
    assert [b.ball_id for b in gone] == [low.ball_id]
    assert list(world.balls) == [high.ball_id]


def test_keys_move_player_and_clamp_to_margin() -> None:
    world = PrimeDropWorld()
    cfg = world.config
    start = world.player_x

    controls = Controls(right=True)
    world.move_player(controls, FRAME_MS)
    assert world.player_x > start

    for _ in range(600):
        world.move_player(controls, FRAME_MS)
    assert world.player_x == cfg.width - cfg.player_margin

    controls = Controls(left=True, touch_left=True)
    for _ in range(600):
        world.move_player(controls, FRAME_MS)
    assert world.player_x == cfg.player_margin


def test_player_eases_to_a_stop_when_released() -> None:
    world = PrimeDropWorld()
    for _ in range(30):
        world.move_player(Controls(right=True), FRAME_MS)
    assert world.player_velocity_x == world.config.player_max_speed

    world.move_player(Controls(), FRAME_MS)
    assert 0 < world.player_velocity_x < world.config.player_max_speed
    for _ in range(5):
        world.move_player(Controls(), FRAME_MS)
    assert world.player_velocity_x == 0


def test_pointer_pulls_player_toward_target() -> None:
    world = PrimeDropWorld()
    controls = Controls(pointer_active=True, pointer_x=100)
    for _ in range(600):
        world.move_player(controls, FRAME_MS)
    assert abs(world.player_x - 100) < 1


def test_labels_rise_fade_and_expire() -> None:
    world = PrimeDropWorld()
    label = world.add_label("÷3", divided=True)
    y0 = label.y

    world.age_labels(400)
    assert label.y < y0
    assert abs(label.alpha - 0.5) < 1e-9

    world.age_labels(400)
    assert world.labels == []
