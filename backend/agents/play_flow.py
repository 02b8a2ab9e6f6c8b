"""
Pure reducer over the screens a player moves through.

  loading → intro → auth → round_play ⇄ round_result → halftime (after round 2)
          → round_play … → final_results ⇄ leaderboard
  any screen → expired (GAME_EXPIRED)

A miss keeps the player on round_play with `last_miss` set so they can try
again. Actions that make no sense on the current screen return the state
unchanged. The reducer never mutates its input.
"""
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from models.game import RoundResult, SessionView, SubmitAnswerResponse
from services.firestore_service import TOTAL_ROUNDS
from agents.game_master import HALFTIME_AFTER_ROUND


class Screen(str, Enum):
    LOADING = "loading"
    INTRO = "intro"
    AUTH = "auth"
    ROUND_PLAY = "round_play"
    ROUND_RESULT = "round_result"
    HALFTIME = "halftime"
    FINAL_RESULTS = "final_results"
    LEADERBOARD = "leaderboard"
    EXPIRED = "expired"


class ActionType(str, Enum):
    GAME_LOADED = "GAME_LOADED"
    START_GAME = "START_GAME"
    AUTH_SUCCESS = "AUTH_SUCCESS"
    AUTH_RESTORED = "AUTH_RESTORED"
    SUBMIT_ANSWER = "SUBMIT_ANSWER"
    ANSWER_RESULT = "ANSWER_RESULT"
    NEXT_ROUND = "NEXT_ROUND"
    VIEW_LEADERBOARD = "VIEW_LEADERBOARD"
    BACK_TO_RESULTS = "BACK_TO_RESULTS"
    SET_ERROR = "SET_ERROR"
    CLEAR_ERROR = "CLEAR_ERROR"
    RESUME_SESSION = "RESUME_SESSION"
    GAME_EXPIRED = "GAME_EXPIRED"


class Action(BaseModel):
    type: ActionType
    game_open: bool = False
    player_id: Optional[str] = None
    display_name: str = ""
    answer: str = ""
    result: Optional[SubmitAnswerResponse] = None
    session: Optional[SessionView] = None
    error: str = ""


class PlayState(BaseModel):
    screen: Screen = Screen.LOADING
    current_round: int = 1
    rounds: List[RoundResult] = Field(default_factory=list)
    total_score: int = 0
    authenticated: bool = False
    player_id: Optional[str] = None
    display_name: str = ""
    session_id: Optional[str] = None
    submitting: bool = False
    error: Optional[str] = None
    last_miss: Optional[str] = None


def _update(state: PlayState, **changes) -> PlayState:
    return state.model_copy(update=changes)


def _game_loaded(state: PlayState, action: Action) -> PlayState:
    if state.screen != Screen.LOADING:
        return state
    return _update(state, screen=Screen.INTRO if action.game_open else Screen.EXPIRED)


def _start_game(state: PlayState, action: Action) -> PlayState:
    if state.screen != Screen.INTRO:
        return state
    return _update(state, screen=Screen.ROUND_PLAY if state.authenticated else Screen.AUTH)


def _auth_success(state: PlayState, action: Action) -> PlayState:
    if state.screen != Screen.AUTH:
        return state
    return _update(
        state, screen=Screen.ROUND_PLAY, authenticated=True,
        player_id=action.player_id, display_name=action.display_name,
    )


def _auth_restored(state: PlayState, action: Action) -> PlayState:
    return _update(state, authenticated=True, player_id=action.player_id, display_name=action.display_name)


def _submit_answer(state: PlayState, action: Action) -> PlayState:
    if state.screen != Screen.ROUND_PLAY:
        return state
    return _update(state, submitting=True, error=None, last_miss=None)


def _answer_result(state: PlayState, action: Action) -> PlayState:
    result = action.result
    if result is None or state.screen != Screen.ROUND_PLAY:
        return state
    if not result.on_list:
        return _update(state, submitting=False, last_miss=result.submitted_answer)

    played = RoundResult(
        round_number=result.round_number,
        direction=result.direction,
        submitted_answer=result.submitted_answer,
        judged_rank=result.rank,
        on_list=True,
        round_score=result.round_score,
    )
    return _update(
        state,
        screen=Screen.ROUND_RESULT,
        submitting=False,
        last_miss=None,
        rounds=[*state.rounds, played],
        total_score=result.total_score,
        session_id=result.session_id or state.session_id,
    )


def _next_round(state: PlayState, action: Action) -> PlayState:
    if state.screen == Screen.HALFTIME:
        return _update(state, screen=Screen.ROUND_PLAY, current_round=state.current_round + 1)
    if state.screen != Screen.ROUND_RESULT:
        return state
    if state.current_round >= TOTAL_ROUNDS:
        return _update(state, screen=Screen.FINAL_RESULTS)
    if state.current_round == HALFTIME_AFTER_ROUND:
        return _update(state, screen=Screen.HALFTIME)
    return _update(state, screen=Screen.ROUND_PLAY, current_round=state.current_round + 1)


def _view_leaderboard(state: PlayState, action: Action) -> PlayState:
    if state.screen not in (Screen.FINAL_RESULTS, Screen.EXPIRED):
        return state
    return _update(state, screen=Screen.LEADERBOARD)


def _back_to_results(state: PlayState, action: Action) -> PlayState:
    if state.screen != Screen.LEADERBOARD:
        return state
    return _update(state, screen=Screen.FINAL_RESULTS)


def _set_error(state: PlayState, action: Action) -> PlayState:
    return _update(state, error=action.error, submitting=False)


def _clear_error(state: PlayState, action: Action) -> PlayState:
    return _update(state, error=None)


def _resume_session(state: PlayState, action: Action) -> PlayState:
    session = action.session
    if session is None:
        return state
    done = len(session.rounds) >= TOTAL_ROUNDS
    return _update(
        state,
        session_id=session.session_id,
        rounds=list(session.rounds),
        total_score=session.total_score,
        current_round=TOTAL_ROUNDS if done else len(session.rounds) + 1,
        screen=Screen.FINAL_RESULTS if done else Screen.ROUND_PLAY,
    )


def _game_expired(state: PlayState, action: Action) -> PlayState:
    return _update(state, screen=Screen.EXPIRED)


_HANDLERS: Dict[ActionType, Callable[[PlayState, Action], PlayState]] = {
    ActionType.GAME_LOADED: _game_loaded,
    ActionType.START_GAME: _start_game,
    ActionType.AUTH_SUCCESS: _auth_success,
    ActionType.AUTH_RESTORED: _auth_restored,
    ActionType.SUBMIT_ANSWER: _submit_answer,
    ActionType.ANSWER_RESULT: _answer_result,
    ActionType.NEXT_ROUND: _next_round,
    ActionType.VIEW_LEADERBOARD: _view_leaderboard,
    ActionType.BACK_TO_RESULTS: _back_to_results,
    ActionType.SET_ERROR: _set_error,
    ActionType.CLEAR_ERROR: _clear_error,
    ActionType.RESUME_SESSION: _resume_session,
    ActionType.GAME_EXPIRED: _game_expired,
}


def reduce(state: PlayState, action: Action) -> PlayState:
    return _HANDLERS[action.type](state, action)
