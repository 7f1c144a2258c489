import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, model_validator

from cadence.application.config import resolve_config
from cadence.application.due_selector import QueueOrder
from cadence.application.factory import Engine, build_engine
from cadence.consts import VERSION
from cadence.domain.errors import CardNotFound, InvalidGrade, StoreUnavailable
from cadence.domain.progress.models import ReviewButton
from cadence.interface._common import (
    account_stats_to_dict,
    card_to_dict,
    deck_stats_to_dict,
    record_to_dict,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cadence.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Cadence Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Cadence Server shutting down...")


app = FastAPI(
    title="Cadence Server",
    description="Spaced-repetition scheduling and progress for flashcard decks.",
    version=VERSION,
    lifespan=lifespan,
)


def get_engine(request: Request) -> Engine:
    """The engine is built from config on first use unless one was installed."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        engine = build_engine(resolve_config())
        request.app.state.engine = engine
    return engine


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, InvalidGrade):
        return HTTPException(status_code=422, detail=e.message)
    if isinstance(e, CardNotFound):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, StoreUnavailable):
        logger.error(f"Store unavailable: {e.message}")
        return HTTPException(status_code=503, detail="Progress store unavailable, retry later")
    logger.error(f"Request failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


class ReviewRequest(BaseModel):
    user_id: int
    card_id: int
    # Either a 0-5 grade or one of the four study buttons
    grade: int | None = None
    button: str | None = None

    @model_validator(mode="after")
    def one_of_grade_or_button(self):
        if (self.grade is None) == (self.button is None):
            raise ValueError("Provide exactly one of 'grade' or 'button'")
        return self


class ResetRequest(BaseModel):
    user_id: int
    card_id: int


@app.post("/reviews")
async def record_review(req: ReviewRequest, request: Request):
    """Record a review and return the updated progress record."""
    engine = get_engine(request)
    if req.button is not None:
        try:
            grade = int(ReviewButton.parse(req.button))
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from None
    else:
        grade = req.grade

    try:
        record = await engine.reviews.record_review(req.user_id, req.card_id, grade)
    except Exception as e:
        raise _http_error(e) from e
    return record_to_dict(record)


@app.post("/reviews/reset")
async def reset_card(req: ResetRequest, request: Request):
    engine = get_engine(request)
    try:
        record = await engine.reviews.reset_card(req.user_id, req.card_id)
    except Exception as e:
        raise _http_error(e) from e
    return {"reset": record is not None, "record": record_to_dict(record) if record else None}


@app.get("/decks/{deck_id}/due")
async def due_cards(
    deck_id: int,
    request: Request,
    user_id: int,
    limit: int | None = Query(default=None, ge=0),
    shuffle: bool = False,
):
    """Cards of a deck due for the learner, in study order."""
    engine = get_engine(request)
    order = QueueOrder.SHUFFLED if shuffle else QueueOrder.DUE_DATE
    try:
        queue = await engine.selector.select_due(deck_id, user_id, limit=limit, order=order)
    except Exception as e:
        raise _http_error(e) from e
    return [card_to_dict(card) for card in queue]


@app.get("/progress/decks")
async def list_deck_progress(request: Request, user_id: int):
    engine = get_engine(request)
    try:
        summaries = await engine.aggregator.list_deck_progress(user_id)
    except Exception as e:
        raise _http_error(e) from e
    return [deck_stats_to_dict(s) for s in summaries]


@app.get("/progress/decks/{deck_id}")
async def deck_progress(deck_id: int, request: Request, user_id: int):
    engine = get_engine(request)
    try:
        stats = await engine.aggregator.deck_progress(deck_id, user_id)
    except Exception as e:
        raise _http_error(e) from e
    return deck_stats_to_dict(stats)


@app.get("/progress/account")
async def account_progress(request: Request, user_id: int):
    engine = get_engine(request)
    try:
        stats = await engine.aggregator.account_progress(user_id)
    except Exception as e:
        raise _http_error(e) from e
    return account_stats_to_dict(stats)
