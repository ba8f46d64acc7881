"""Live channel — per-session transport for form events.

Frames in:  {"event": "change" | "submit", "actor": {...params}}
Frames out: {"field_errors": {...}}
            {"field_errors": {...}, "tenant_notice": "..."}
            {"navigate": "..."}
            {"error": "..."}

One channel per connection. Events are handled one at a time in arrival
order; validation and quota logic live in the WorkflowController.
"""

import asyncio
import json
from typing import Any

import structlog

from src.provisioning.errors import StorageUnavailableError, WorkflowCompletedError
from src.provisioning.workflow import WorkflowController, WorkflowSession

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

EVENT_CHANGE = "change"
EVENT_SUBMIT = "submit"
PARAMS_KEY = "actor"

GENERIC_FAILURE = "Something went wrong. Please try again."
BINARY_FRAME_ERROR = "Frames must be JSON text."


class LiveChannel:
    """Sequences events of one session into the workflow controller."""

    def __init__(self, controller: WorkflowController, session: WorkflowSession) -> None:
        self._controller = controller
        self._session = session
        self._lock = asyncio.Lock()

    @property
    def session(self) -> WorkflowSession:
        return self._session

    async def handle_text(self, raw: str) -> dict[str, Any]:
        """Decode a text frame and handle it."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            return {"error": "Frame is not valid JSON."}
        return await self.handle(frame)

    async def handle(self, frame: Any) -> dict[str, Any]:
        async with self._lock:
            return await self._dispatch(frame)

    async def _dispatch(self, frame: Any) -> dict[str, Any]:
        if not isinstance(frame, dict):
            return {"error": "Frame must be a JSON object."}

        event = frame.get("event")
        params = frame.get(PARAMS_KEY) or {}
        if event not in (EVENT_CHANGE, EVENT_SUBMIT):
            return {"error": f"Unknown event: {event!r}."}
        if not isinstance(params, dict):
            return {"error": f"{PARAMS_KEY!r} must be an object."}

        try:
            if event == EVENT_CHANGE:
                response = await self._controller.change(self._session, params)
            else:
                response = await self._controller.submit(self._session, params)
        except WorkflowCompletedError:
            logger.info("event_after_created", frame_event=event)
            return self._controller.navigation_for(self._session).to_frame()
        except StorageUnavailableError:
            return {"error": GENERIC_FAILURE}
        except Exception:
            # The controller has already moved the session back to EDITING.
            logger.exception("live_event_failed", frame_event=event)
            return {"error": GENERIC_FAILURE}

        logger.debug("live_event", frame_event=event, state=self._session.state.value)
        return response.to_frame()
