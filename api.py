import asyncio
from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from blackjack import PlayerAction
from errors import BlackjackError, EmptyShoe, InsufficientFunds, InvalidArgument, InvalidOperation
from game_service import GameService
from settings import GameConfiguration, configure_logging

config = GameConfiguration.from_env()
configure_logging(config.log_level)

app = FastAPI(title="Blackjack table")

game = GameService(config)
table_lock = asyncio.Lock()


class NewGame(BaseModel):
    players: list[str]


class BetRequest(BaseModel):
    player: str
    amount: Decimal


class ActionRequest(BaseModel):
    player: str


class BankrollRequest(BaseModel):
    amount: Decimal


class ReshuffleRequest(BaseModel):
    reason: str = "Manual reshuffle"


ERROR_STATUS = [
    (InvalidArgument, 400),
    (InsufficientFunds, 402),
    (InvalidOperation, 409),
    (EmptyShoe, 503),
]


@app.exception_handler(BlackjackError)
async def blackjack_error(request: Request, exc: BlackjackError):
    status = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 400)
    return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})


@app.post("/game")
async def new_game(body: NewGame):
    async with table_lock:
        return await game.start_new_game(body.players)


@app.post("/bet")
async def bet(body: BetRequest):
    async with table_lock:
        result = await game.place_bet(body.player, body.amount)
        bankroll = await game.betting.get_player_bankroll(body.player)
    return {"message": result.message, "bankroll": bankroll, "phase": game.phase}


@app.post("/leave")
async def leave(body: ActionRequest):
    async with table_lock:
        return game.leave_table(body.player)


@app.post("/deal")
async def deal():
    async with table_lock:
        return game.deal_initial_cards()


async def _act(player: str, action: PlayerAction):
    async with table_lock:
        return await game.process_player_action(player, action)


@app.post("/hit")
async def hit(body: ActionRequest):
    return await _act(body.player, PlayerAction.HIT)


@app.post("/stand")
async def stand(body: ActionRequest):
    return await _act(body.player, PlayerAction.STAND)


@app.post("/double")
async def double(body: ActionRequest):
    return await _act(body.player, PlayerAction.DOUBLE_DOWN)


@app.post("/split")
async def split(body: ActionRequest):
    return await _act(body.player, PlayerAction.SPLIT)


@app.post("/surrender")
async def surrender(body: ActionRequest):
    return await _act(body.player, PlayerAction.SURRENDER)


@app.post("/dealer")
async def dealer():
    async with table_lock:
        game.play_dealer_turn()
        return game.get_current_game_state()


@app.get("/results")
async def results():
    async with table_lock:
        return await game.get_game_results()


@app.get("/state")
async def state():
    return game.get_current_game_state()


@app.get("/bankroll/{player}")
async def bankroll(player: str):
    return {"player": player, "bankroll": await game.betting.get_player_bankroll(player)}


@app.put("/bankroll/{player}")
async def set_bankroll(player: str, body: BankrollRequest):
    async with table_lock:
        await game.betting.set_initial_bankroll(player, config.money(body.amount))
    return {"player": player, "bankroll": await game.betting.get_player_bankroll(player)}


@app.post("/reshuffle")
async def reshuffle(body: ReshuffleRequest):
    async with table_lock:
        return game.trigger_manual_reshuffle(body.reason)
