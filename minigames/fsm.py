from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from minigames.api.models import CoinSession, GuessFeedback, RoundPhase, RunPhase


class CoinRoundFSM(StateMachine):
    """FSM wrapper around a coin session.

    - phases: playing -> solved | exhausted
    - a wrong guess with guesses left stays in playing.
    The store mutates counters; the FSM only guards transitions.
    """

    playing = State(RoundPhase.playing.value, value=RoundPhase.playing.value, initial=True)
    solved = State(RoundPhase.solved.value, value=RoundPhase.solved.value, final=True)
    exhausted = State(RoundPhase.exhausted.value, value=RoundPhase.exhausted.value, final=True)

    guessed_right = playing.to(solved)
    guessed_wrong = playing.to.itself()
    ran_out = playing.to(exhausted)

    def __init__(self, session: CoinSession):
        self.session = session
        super().__init__(start_value=session.phase.value)

    def sync_phase_to_model(self) -> None:
        self.session.phase = RoundPhase(str(self.current_state.value))

    def record_guess(self, guess: int) -> GuessFeedback:
        """Count one guess and move the round on. Raises ValueError once the round is over."""

        if self.current_state.final:
            raise ValueError("Round is over")

        s = self.session
        s.guesses_used += 1
        s.last_guess = guess

        try:
            if guess == s.target_probability:
                self.guessed_right()
                s.feedback = GuessFeedback.correct
            elif s.guesses_used >= s.max_guesses:
                self.ran_out()
                s.feedback = GuessFeedback.game_over
            else:
                self.guessed_wrong()
                s.feedback = GuessFeedback.wrong
        except TransitionNotAllowed as e:
            raise ValueError(str(e)) from e

        if self.current_state.final:
            s.auto_flipping = False
        self.sync_phase_to_model()
        return s.feedback


class PrimeDropFSM(StateMachine):
    """Screens of a Prime Drop run: home -> playing <-> paused, playing -> cleared."""

    home = State(RunPhase.home.value, value=RunPhase.home.value, initial=True)
    playing = State(RunPhase.playing.value, value=RunPhase.playing.value)
    paused = State(RunPhase.paused.value, value=RunPhase.paused.value)
    cleared = State(RunPhase.cleared.value, value=RunPhase.cleared.value)

    start_run = home.to(playing) | cleared.to(playing)
    pause_run = playing.to(paused)
    resume_run = paused.to(playing)
    reach_target = playing.to(cleared)
    return_home = home.to.itself() | playing.to(home) | paused.to(home) | cleared.to(home)

    @property
    def phase(self) -> RunPhase:
        return RunPhase(str(self.current_state.value))

    def fire(self, event: str) -> None:
        try:
            self.send(event)
        except TransitionNotAllowed as e:
            raise ValueError(f"Cannot {event.replace('_', ' ')} while {self.phase.value}") from e
