"""Request/response command protocol for the settings surface."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from ..models import Direction, Message
from .coordinator import Coordinator
from .orchestrator import OutcomeStatus

logger = logging.getLogger(__name__)


class CommandType(Enum):
    TOGGLE_AUTO_DECIDE = "TOGGLE_AUTO_DECIDE"
    TOGGLE_CHAT_ASSIST = "TOGGLE_CHAT_ASSIST"
    TOGGLE_LEARN_TYPE = "TOGGLE_LEARN_TYPE"
    GET_SETTINGS = "GET_SETTINGS"
    GET_STATS = "GET_STATS"
    GET_PREFERENCES = "GET_PREFERENCES"
    GET_CHAT_STYLE = "GET_CHAT_STYLE"
    GET_STATE = "GET_STATE"
    RECORD_DECISION = "RECORD_DECISION"
    CHAT_OPENED = "CHAT_OPENED"
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    MESSAGE_SENT = "MESSAGE_SENT"
    GENERATE_RESPONSE = "GENERATE_RESPONSE"
    ANALYZE_ENTITY = "ANALYZE_ENTITY"
    TRIGGER_CHECK = "TRIGGER_CHECK"
    UPDATE_SETTINGS = "UPDATE_SETTINGS"


TOGGLES = {
    CommandType.TOGGLE_AUTO_DECIDE: "auto_decide",
    CommandType.TOGGLE_CHAT_ASSIST: "chat_assist",
    CommandType.TOGGLE_LEARN_TYPE: "learn_type",
}

GETTERS = {
    CommandType.GET_SETTINGS: "settings",
    CommandType.GET_STATS: "stats",
    CommandType.GET_PREFERENCES: "preferences",
    CommandType.GET_CHAT_STYLE: "chat_style",
}


@dataclass
class Command:
    """A request from the settings surface."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Command":
        payload = data.get("payload")
        if payload is None:
            payload = {k: v for k, v in data.items() if k != "type"}
        return cls(type=str(data.get("type", "")), payload=dict(payload))


@dataclass
class CommandResponse:
    """Reply to a Command. Exactly one of payload or error is meaningful."""

    success: bool
    payload: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, **self.payload}
        if self.error is not None:
            data["error"] = self.error
        return data


def ok(**payload: Any) -> CommandResponse:
    return CommandResponse(success=True, payload=payload)


def fail(error: str) -> CommandResponse:
    return CommandResponse(success=False, error=error)


Handler = Callable[[dict[str, Any]], Awaitable[CommandResponse]]


class CommandRouter:
    """Dispatches commands to coordinator operations."""

    def __init__(self, coordinator: Coordinator) -> None:
        self.coordinator = coordinator
        self.store = coordinator.store
        self._handlers: dict[CommandType, Handler] = {
            CommandType.GET_STATE: self._get_state,
            CommandType.RECORD_DECISION: self._record_decision,
            CommandType.CHAT_OPENED: self._chat_opened,
            CommandType.MESSAGE_RECEIVED: self._message_received,
            CommandType.MESSAGE_SENT: self._message_sent,
            CommandType.GENERATE_RESPONSE: self._generate_response,
            CommandType.ANALYZE_ENTITY: self._analyze_entity,
            CommandType.TRIGGER_CHECK: self._trigger_check,
            CommandType.UPDATE_SETTINGS: self._update_settings,
        }

    async def dispatch(self, command: Command | dict[str, Any]) -> CommandResponse:
        """Run a command and wrap its result."""
        if isinstance(command, dict):
            command = Command.from_dict(command)

        try:
            kind = CommandType(command.type)
        except ValueError:
            return fail(f"Unknown command type: {command.type}")

        try:
            if kind in TOGGLES:
                return self._toggle(TOGGLES[kind], command.payload)
            if kind in GETTERS:
                bucket = GETTERS[kind]
                return ok(**{bucket: self.store.get(bucket)})
            return await self._handlers[kind](command.payload)
        except Exception as e:
            logger.exception(f"Command {kind.value} failed")
            return fail(f"Command failed: {e}")

    def _toggle(self, key: str, payload: dict[str, Any]) -> CommandResponse:
        settings = self.store.get("settings")
        enabled = payload.get("enabled")
        value = bool(enabled) if enabled is not None else not settings.get(key, False)
        settings = self.store.update("settings", **{key: value})
        logger.info(f"{key} set to {value}")
        return ok(enabled=value, settings=settings)

    async def _get_state(self, payload: dict[str, Any]) -> CommandResponse:
        return ok(state=self.coordinator.state.to_dict())

    async def _record_decision(self, payload: dict[str, Any]) -> CommandResponse:
        direction = Direction.parse(payload.get("direction") or payload.get("decision"))
        if direction is None:
            return fail(f"Invalid direction: {payload.get('direction')!r}")
        result = await self.coordinator.record_decision(direction)
        return ok(**result)

    async def _chat_opened(self, payload: dict[str, Any]) -> CommandResponse:
        name = str(payload.get("name") or "").strip()
        if not name:
            return fail("Missing counterpart name")
        messages = tuple(Message.from_dict(m) for m in payload.get("messages") or [])
        context = await self.coordinator.open_chat(name, payload.get("photo"), messages)
        return ok(context=context.to_dict() if context else None)

    async def _message_received(self, payload: dict[str, Any]) -> CommandResponse:
        context = await self.coordinator.on_message_received(str(payload.get("text", "")))
        return ok(appended=context is not None)

    async def _message_sent(self, payload: dict[str, Any]) -> CommandResponse:
        retrained = await self.coordinator.on_message_sent(str(payload.get("text", "")))
        return ok(retrained=retrained)

    async def _generate_response(self, payload: dict[str, Any]) -> CommandResponse:
        outcome = await self.coordinator.generate(
            is_follow_up=payload.get("is_follow_up"),
            is_opener=bool(payload.get("is_opener", False)),
        )
        if outcome is None:
            return fail("No active conversation")
        if outcome.status is OutcomeStatus.APPLIED:
            return ok(suggestion=outcome.value.to_dict(), status=outcome.status.value)
        if outcome.status is OutcomeStatus.STALE:
            return ok(suggestion=None, status=outcome.status.value)
        if outcome.status is OutcomeStatus.BUSY:
            return fail("Another request is in progress")
        return fail(outcome.error or "Generation failed")

    async def _analyze_entity(self, payload: dict[str, Any]) -> CommandResponse:
        outcome = await self.coordinator.analyze_current()
        if outcome is None:
            return fail("No entity detected")
        analysis = outcome.value.to_dict() if outcome.value is not None else None
        return ok(analysis=analysis, status=outcome.status.value)

    async def _trigger_check(self, payload: dict[str, Any]) -> CommandResponse:
        return ok(changes=self.coordinator.trigger_check())

    async def _update_settings(self, payload: dict[str, Any]) -> CommandResponse:
        known = self.store.get("settings")
        updates = {k: v for k, v in payload.items() if k in known}
        ignored = sorted(set(payload) - set(updates))
        settings = self.store.update("settings", **updates)
        return ok(settings=settings, ignored=ignored)
