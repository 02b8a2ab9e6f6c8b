"""
Game HTTP endpoints.

Routes:
  POST /api/games                              — Create game (status generating) + schedule generation
  POST /api/games/{game_id}/content            — Ingest raw generator output through the content gate
  GET  /api/games/{game_id}                    — Public game state (ranked answers hidden)
  POST /api/games/{game_id}/activate           — Operator opens the play window (ready → active)
  POST /api/games/{game_id}/close              — Operator closes the game (active → completed)
  POST /api/games/{game_id}/answers            — Player submits an answer for a round
  GET  /api/games/{game_id}/sessions/{player}  — Resume a player's session
  GET  /api/games/{game_id}/leaderboard        — Ranked player totals
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query

from errors import (
    ContentValidationError, GameNotFoundError, HiLoError, InvalidRoundError,
    LifecycleError, RoundAlreadyRecordedError, RoundOutOfOrderError,
)
from models.game import (
    ActivateGameRequest, CreateGameRequest, CreateGameResponse, GameView,
    IngestContentRequest, LeaderboardEntry, SessionView, SubmitAnswerRequest,
    SubmitAnswerResponse,
)
from agents.game_master import GameMaster, get_game_master
from agents.game_generator import GameGenerator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["games"])


def get_game_generator(gm: GameMaster = Depends(get_game_master)) -> GameGenerator:
    return GameGenerator(gm)


def _http_error(exc: HiLoError) -> HTTPException:
    if isinstance(exc, GameNotFoundError):
        return HTTPException(status_code=404, detail="Game not found")
    if isinstance(exc, RoundAlreadyRecordedError):
        recorded = exc.recorded.model_dump(mode="json") if exc.recorded is not None else None
        return HTTPException(status_code=409, detail={"message": str(exc), "recorded": recorded})
    if isinstance(exc, (LifecycleError, RoundOutOfOrderError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (InvalidRoundError, ContentValidationError)):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.post("/games", response_model=CreateGameResponse, status_code=201)
async def create_game(
    body: CreateGameRequest,
    background_tasks: BackgroundTasks,
    gm: GameMaster = Depends(get_game_master),
    generator: GameGenerator = Depends(get_game_generator),
):
    """Create a game in `generating` and, unless disabled, generate its content in the background."""
    game = await gm.create_game(title=body.title, source=body.source)
    if body.generate:
        background_tasks.add_task(generator.generate, game.id)
    logger.info(f"Game {game.id} created (generate={body.generate})")
    return CreateGameResponse(game_id=game.id, status=game.status)


@router.post("/games/{game_id}/content", response_model=GameView)
async def ingest_content(
    game_id: str, body: IngestContentRequest, gm: GameMaster = Depends(get_game_master)
):
    try:
        game = await gm.ingest_content(game_id, body.raw)
    except HiLoError as exc:
        raise _http_error(exc) from exc
    return gm.game_view(game)


@router.get("/games/{game_id}", response_model=GameView)
async def get_game(game_id: str, gm: GameMaster = Depends(get_game_master)):
    try:
        game = await gm.get_game(game_id)
    except HiLoError as exc:
        raise _http_error(exc) from exc
    return gm.game_view(game)


@router.post("/games/{game_id}/activate", response_model=GameView)
async def activate_game(
    game_id: str, body: ActivateGameRequest, gm: GameMaster = Depends(get_game_master)
):
    try:
        game = await gm.activate_game(game_id, closes_at=body.closes_at, opens_at=body.opens_at)
    except HiLoError as exc:
        raise _http_error(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return gm.game_view(game)


@router.post("/games/{game_id}/close", response_model=GameView)
async def close_game(game_id: str, gm: GameMaster = Depends(get_game_master)):
    try:
        game = await gm.close_game(game_id)
    except HiLoError as exc:
        raise _http_error(exc) from exc
    return gm.game_view(game)


@router.post("/games/{game_id}/answers", response_model=SubmitAnswerResponse)
async def submit_answer(
    game_id: str,
    body: SubmitAnswerRequest,
    x_player_id: Optional[str] = Header(default=None),
    gm: GameMaster = Depends(get_game_master),
):
    """Judge, score and (at most once) record a player's answer for one round."""
    if not x_player_id:
        raise HTTPException(status_code=401, detail="Missing X-Player-Id header")
    try:
        return await gm.submit_answer(
            game_id,
            player_id=x_player_id,
            round_number=body.round_number,
            answer=body.answer,
            display_name=body.display_name,
        )
    except HiLoError as exc:
        raise _http_error(exc) from exc


@router.get("/games/{game_id}/sessions/{player_id}", response_model=SessionView)
async def get_session(game_id: str, player_id: str, gm: GameMaster = Depends(get_game_master)):
    try:
        return await gm.session_view(game_id, player_id)
    except HiLoError as exc:
        raise _http_error(exc) from exc


@router.get("/games/{game_id}/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    game_id: str,
    include_unplayed: bool = Query(default=True),
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    gm: GameMaster = Depends(get_game_master),
):
    try:
        return await gm.leaderboard(game_id, include_unplayed=include_unplayed, limit=limit)
    except HiLoError as exc:
        raise _http_error(exc) from exc
