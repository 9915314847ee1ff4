"""FastAPI server that exposes participant and admin endpoints."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
import logging
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Request, Response, WebSocket, WebSocketDisconnect
from pydantic import BaseModel
import uvicorn

from superlatives.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from superlatives.constants.session_constants import PARTICIPANT_ROLES
from superlatives.core.models import (
    FrozenResult,
    ParticipantIdentity,
    Standing,
    Superlative,
    SummaryEntry,
)
from superlatives.core.participant_view import ParticipantView
from superlatives.core.superlatives_manager import SuperlativesManager

logger = logging.getLogger(__name__)

_IDENTITY_COOKIE = "superlatives_identity"


def _encode_identity_cookie(identity: ParticipantIdentity) -> str:
    return f"{identity.role}|{identity.participant_id}"


def _decode_identity_cookie(value: str | None) -> ParticipantIdentity | None:
    if not value or "|" not in value:
        return None
    role, participant_id = value.split("|", 1)
    if role not in PARTICIPANT_ROLES or not participant_id:
        return None
    return ParticipantIdentity(participant_id=participant_id, role=role)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _question_payload(question: Superlative) -> dict[str, object]:
    return {
        "id": question.id,
        "title": question.title,
        "order": question.order,
        "nominees": [{"name": n.name, "image_ref": n.image_ref} for n in question.nominees],
    }


def _standing_payload(standing: Standing | None) -> dict[str, object] | None:
    if standing is None:
        return None
    return {
        "is_tie": standing.is_tie,
        "winners": [row.nominee_name for row in standing.winners],
        "ranked": [
            {
                "nominee_name": row.nominee_name,
                "image_ref": row.image_ref,
                "score": row.score,
                "graduating_votes": row.graduating_votes,
                "first_vote_at": _iso(row.first_vote_at),
            }
            for row in standing.ranked
        ],
    }


def _frozen_payload(result: FrozenResult | None) -> dict[str, object] | None:
    return result.to_document() if result is not None else None


def _summary_payload(summary: dict[str, SummaryEntry]) -> dict[str, object]:
    return {
        name: {"image_ref": entry.image_ref, "titles": list(entry.titles)}
        for name, entry in summary.items()
    }


def _view_payload(view: ParticipantView) -> dict[str, object]:
    state = view.state
    return {
        "session_started": state.session_started if state else False,
        "current_question_index": state.current_question_index if state else 0,
        "result_revealed": state.result_revealed if state else False,
        "all_questions_completed": state.all_questions_completed if state else False,
        "question": _question_payload(view.question) if view.question else None,
        "standing": _standing_payload(view.standing),
        "local_selection": view.local_selection,
        "last_notice": view.last_notice,
        "summary": _summary_payload(view.summary) if view.summary is not None else None,
    }


async def _receive_selections(websocket: WebSocket, view: ParticipantView) -> None:
    try:
        while True:
            message = await websocket.receive_json()
            nominee_name = message.get("nominee_name") if isinstance(message, dict) else None
            if nominee_name:
                await view.select(str(nominee_name))
    except WebSocketDisconnect:
        logger.debug("Participant %s left", view.identity.participant_id)


class LoginPayload(BaseModel):
    """Payload schema for choosing a role."""

    role: str


class VotePayload(BaseModel):
    """Payload schema for casting a vote."""

    question_id: str
    nominee_name: str


class RevealPayload(BaseModel):
    """Optional nominee the admin has selected locally."""

    local_selection: str | None = None


class GoToPayload(BaseModel):
    index: int


class FullResetPayload(BaseModel):
    confirm: bool = False


def _get_manager_dependency(manager: SuperlativesManager):
    def dependency() -> SuperlativesManager:
        return manager

    return dependency


def _get_identity(request: Request) -> ParticipantIdentity | None:
    return _decode_identity_cookie(request.cookies.get(_IDENTITY_COOKIE))


def _require_identity(identity: ParticipantIdentity | None) -> ParticipantIdentity:
    if identity is None:
        raise HTTPException(status_code=401, detail="Choose a role first.")
    return identity


def _require_admin(identity: ParticipantIdentity | None) -> ParticipantIdentity:
    identity = _require_identity(identity)
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Only the admin can do that.")
    return identity


def create_api_app(
    manager: SuperlativesManager,
    questions: list[Superlative] | None = None,
    join_url: str | None = None,
) -> FastAPI:
    """Create a FastAPI application wired to the provided manager.

    ``questions`` and ``join_url``, when given, are written to the store on
    startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if questions:
            await manager.load_questions(questions)
        if join_url:
            await manager.set_join_url(join_url)
            logger.info("Participants can join at %s", join_url)
        yield

    app = FastAPI(title="Superlatives API", version="0.1.0", lifespan=lifespan)
    manager_dep = _get_manager_dependency(manager)

    @app.post("/login", status_code=201)
    def login(payload: LoginPayload, response: Response) -> dict[str, object]:
        try:
            identity = SuperlativesManager.create_identity(payload.role)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        response.set_cookie(
            key=_IDENTITY_COOKIE,
            value=_encode_identity_cookie(identity),
            max_age=60 * 60 * 24,
            samesite="lax",
            httponly=True,
        )
        return {"participant_id": identity.participant_id, "role": identity.role}

    @app.get("/identity")
    def get_identity(
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        identity = _require_identity(identity)
        return {"participant_id": identity.participant_id, "role": identity.role}

    @app.get("/state")
    async def get_state(
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        snapshot = await manager.snapshot()
        state = snapshot.state
        question = snapshot.question
        payload: dict[str, Any] = {
            "session_started": state.session_started,
            "current_question_index": state.current_question_index,
            "result_revealed": state.result_revealed,
            "all_questions_completed": state.all_questions_completed,
            "join_url": state.join_url,
            "question_count": snapshot.question_count,
            "question": None,
            "standing": None,
            "frozen_result": None,
            "own_vote": None,
        }
        if question is None:
            return payload

        payload["question"] = _question_payload(question)
        payload["standing"] = _standing_payload(snapshot.standing)
        if state.result_revealed:
            payload["frozen_result"] = _frozen_payload(question.frozen_result)
        if identity is not None:
            own = await manager.get_own_vote(identity, question.id)
            payload["own_vote"] = own.nominee_name if own is not None else None
        return payload

    @app.post("/vote", status_code=201)
    async def cast_vote(
        payload: VotePayload,
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        identity = _require_identity(identity)
        result = await manager.cast_vote(identity, payload.question_id, payload.nominee_name)
        if not result.accepted:
            raise HTTPException(status_code=409, detail=result.reason)
        return {"question_id": payload.question_id, "nominee_name": payload.nominee_name}

    @app.get("/summary")
    async def get_summary(
        manager: SuperlativesManager = Depends(manager_dep),
    ) -> dict[str, object]:
        state = await manager.get_session_state()
        winners = await manager.summary() if state.all_questions_completed else {}
        return {
            "all_questions_completed": state.all_questions_completed,
            "winners": _summary_payload(winners),
        }

    @app.websocket("/ws")
    async def live_view(websocket: WebSocket) -> None:
        """Push the participant's own view of the session after every change.

        Clients send ``{"nominee_name": ...}`` to select a nominee.
        """
        identity = _decode_identity_cookie(websocket.cookies.get(_IDENTITY_COOKIE))
        if identity is None:
            await websocket.close(code=4401)
            return

        await websocket.accept()
        view = ParticipantView(manager, identity)
        await view.start()
        receiver = asyncio.create_task(_receive_selections(websocket, view))
        try:
            while not receiver.done():
                changed = asyncio.create_task(view.wait_for_change())
                await asyncio.wait({changed, receiver}, return_when=asyncio.FIRST_COMPLETED)
                if not changed.done():
                    changed.cancel()
                    break
                await websocket.send_json(_view_payload(view))
        except WebSocketDisconnect:
            logger.debug("Live view for %s disconnected", identity.participant_id)
        finally:
            receiver.cancel()
            await asyncio.gather(receiver, return_exceptions=True)
            await view.close()

    # --- Admin transitions ---

    @app.post("/admin/start")
    async def start_session(
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        return {"applied": await manager.start_session(_require_admin(identity))}

    @app.post("/admin/reveal")
    async def reveal_winner(
        payload: RevealPayload | None = None,
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        local_selection = payload.local_selection if payload is not None else None
        applied = await manager.reveal_winner(_require_admin(identity), local_selection)
        return {"applied": applied}

    @app.post("/admin/next")
    async def next_question(
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        return {"applied": await manager.next_question(_require_admin(identity))}

    @app.post("/admin/previous")
    async def previous_question(
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        return {"applied": await manager.previous_question(_require_admin(identity))}

    @app.post("/admin/goto")
    async def go_to_question(
        payload: GoToPayload,
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        return {"applied": await manager.go_to_question(_require_admin(identity), payload.index)}

    @app.post("/admin/reset-results")
    async def reset_current_results(
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        return {"applied": await manager.reset_current_results(_require_admin(identity))}

    @app.post("/admin/finish")
    async def proceed_to_final_summary(
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        return {"applied": await manager.proceed_to_final_summary(_require_admin(identity))}

    @app.post("/admin/full-reset")
    async def full_reset(
        payload: FullResetPayload,
        manager: SuperlativesManager = Depends(manager_dep),
        identity: ParticipantIdentity | None = Depends(_get_identity),
    ) -> dict[str, object]:
        admin = _require_admin(identity)
        if not payload.confirm:
            raise HTTPException(status_code=400, detail="Full reset must be confirmed.")
        return {"applied": await manager.full_reset(admin, confirm=True)}

    return app


def serve_api(
    manager: SuperlativesManager,
    questions: list[Superlative] | None = None,
    join_url: str | None = None,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Run the FastAPI server in the foreground until interrupted."""
    app = create_api_app(manager, questions=questions, join_url=join_url)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    uvicorn.Server(config).run()
