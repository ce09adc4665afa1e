"""
Control surface HTTP API.

Lets a shell (or a developer with curl) drive one engine session:
- voice capture and fragments: start/stop, push fragments, switch modes
- commands: send or clear the pending buffer, run or cancel a turn
- undo, documents, engine state, usage and recorded events

Every write emits a control.command_received event.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from logging_setup import get_logger, Component as LogComponent
from observability.event_store import event_store
from observability.events import Component as ObsComponent, EventEmitter, Severity
from voice_agent.controller import VoiceModeController
from voice_agent.engine import VoiceAgentEngine
from voice_agent.errors import user_message
from voice_agent.router import DictationMode, TranscriptFragment

logger = get_logger(LogComponent.CONTROL_SURFACE)


class FragmentRequest(BaseModel):
    text: str
    is_final: bool = False


class DictationRequest(BaseModel):
    target: str = Field("active", min_length=1, description='"active", a window number ("2", "W2") or a thought id')


class TurnRequest(BaseModel):
    text: str = Field(..., min_length=1, pattern=r"\S")


class StateResponse(BaseModel):
    is_processing: bool
    last_response: Optional[str] = None
    streaming_text: str = ""
    error: Optional[str] = None
    error_message: Optional[str] = None
    can_undo: bool = False


class VoiceResponse(BaseModel):
    phase: str
    mode: str
    target_id: Optional[str] = None
    pending: str = ""
    last_transcript: str = ""
    error: Optional[str] = None


class FragmentResponse(BaseModel):
    outcome: str
    voice: VoiceResponse


class SendResponse(BaseModel):
    sent: Optional[str] = None
    state: StateResponse


class UndoResponse(BaseModel):
    status: str
    can_undo: bool


class DocumentSummary(BaseModel):
    id: str
    type: str
    content: str
    windows: List[int] = Field(default_factory=list)


def _new_correlation_id() -> str:
    return f"cmd_{int(time.time() * 1000)}"


def create_app(engine: VoiceAgentEngine, controller: VoiceModeController) -> FastAPI:
    """Build the FastAPI app for one engine/controller pair."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        logger.info("Shutting down control surface")
        await engine.aclose()

    app = FastAPI(title="Koe Control Surface", lifespan=lifespan)
    router = APIRouter()
    emitter = EventEmitter(ObsComponent.CONTROL_SURFACE)

    def received(command: str, **fields: Any) -> None:
        emitter.emit(
            "control.command_received",
            session_id=engine.session_id,
            severity=Severity.INFO,
            correlation_id=_new_correlation_id(),
            command=command,
            **fields,
        )

    def state_response() -> StateResponse:
        state = engine.state
        return StateResponse(
            is_processing=state.is_processing,
            last_response=state.last_response,
            streaming_text=state.streaming_text,
            error=state.error,
            error_message=user_message(state.error_category) if state.error_category else None,
            can_undo=engine.can_undo(),
        )

    def voice_response() -> VoiceResponse:
        mode = controller.mode
        return VoiceResponse(
            phase=controller.phase.value,
            mode="dictation" if isinstance(mode, DictationMode) else "command",
            target_id=mode.target_id if isinstance(mode, DictationMode) else None,
            pending=controller.pending_text,
            last_transcript=controller.last_transcript,
            error=controller.error,
        )

    # --- voice ---

    @router.get("/voice", response_model=VoiceResponse)
    async def get_voice() -> VoiceResponse:
        return voice_response()

    @router.post("/voice/start", response_model=VoiceResponse)
    async def start_voice() -> VoiceResponse:
        received("voice.start")
        controller.start()
        return voice_response()

    @router.post("/voice/stop", response_model=VoiceResponse)
    async def stop_voice() -> VoiceResponse:
        received("voice.stop")
        controller.stop()
        return voice_response()

    @router.post("/voice/fragments", response_model=FragmentResponse)
    async def push_fragment(req: FragmentRequest) -> FragmentResponse:
        received("voice.fragment", is_final=req.is_final, fragment_length=len(req.text))
        outcome = controller.handle_fragment(TranscriptFragment(req.text, req.is_final))
        return FragmentResponse(
            outcome=outcome.value if outcome is not None else "ignored",
            voice=voice_response(),
        )

    @router.post("/voice/dictation", response_model=VoiceResponse)
    async def enter_dictation(req: DictationRequest) -> VoiceResponse:
        received("voice.dictation")
        if not controller.enter_dictation(req.target):
            raise HTTPException(status_code=409, detail="dictation_target_not_found")
        return voice_response()

    @router.post("/voice/command-mode", response_model=VoiceResponse)
    async def enter_command_mode() -> VoiceResponse:
        received("voice.command_mode")
        controller.enter_command_mode()
        return voice_response()

    # --- commands and turns ---

    @router.post("/commands/send", response_model=SendResponse)
    async def send_pending() -> SendResponse:
        received("commands.send", pending_length=len(controller.pending_text))
        sent = await controller.send_pending()
        return SendResponse(sent=sent, state=state_response())

    @router.post("/commands/clear", response_model=VoiceResponse)
    async def clear_pending() -> VoiceResponse:
        received("commands.clear")
        controller.clear_pending()
        return voice_response()

    @router.post("/turns", response_model=StateResponse)
    async def run_turn(req: TurnRequest) -> StateResponse:
        received("turns.run", utterance_length=len(req.text))
        await engine.process_transcript(req.text)
        return state_response()

    @router.post("/turns/cancel")
    async def cancel_turn() -> Dict[str, bool]:
        received("turns.cancel")
        return {"cancelled": engine.cancel()}

    # --- undo and documents ---

    @router.get("/undo", response_model=UndoResponse)
    async def get_undo() -> UndoResponse:
        return UndoResponse(status="ok", can_undo=engine.can_undo())

    @router.post("/undo", response_model=UndoResponse)
    async def undo() -> UndoResponse:
        received("undo")
        status = await engine.perform_undo()
        return UndoResponse(status=status, can_undo=engine.can_undo())

    @router.get("/documents", response_model=List[DocumentSummary])
    async def list_documents() -> List[DocumentSummary]:
        return [
            DocumentSummary(
                id=d.id,
                type=d.type,
                content=d.content,
                windows=[w.display_index for w in engine.workspace.windows_for_document(d.id)],
            )
            for d in engine.workspace.list_documents()
        ]

    @router.delete("/documents/{reference}")
    async def delete_document(reference: str) -> Dict[str, str]:
        received("documents.delete")
        status = await engine.delete_document(reference)
        if status == "Thought not found":
            raise HTTPException(status_code=404, detail="thought_not_found")
        return {"status": status}

    # --- read ---

    @router.get("/state", response_model=StateResponse)
    async def get_state() -> StateResponse:
        return state_response()

    @router.get("/events")
    async def get_events(
        turn_id: Optional[str] = Query(None, description="Filter by turn (correlation) id"),
        event_type: Optional[str] = Query(None, description="Filter by event_type"),
        component: Optional[str] = Query(None, description="Filter by component"),
        limit: Optional[int] = Query(None, ge=1, le=1000, description="Max events to return"),
    ) -> dict:
        events = event_store.query(
            session_id=engine.session_id,
            correlation_id=turn_id,
            event_type=event_type,
            component=component,
            limit=limit,
        )
        return {"session_id": engine.session_id, "events": events, "count": len(events)}

    @router.post("/usage/reset")
    async def reset_usage() -> Dict[str, float]:
        received("usage.reset")
        engine.guard.reset()
        return engine.guard.stats()

    @router.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "component": "control_surface",
            "dev_mode": engine.config.dev_mode,
            "usage": engine.guard.stats(),
        }

    app.include_router(router)

    return app
