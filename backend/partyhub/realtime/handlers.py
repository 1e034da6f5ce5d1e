from __future__ import annotations

import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..game.commands import ApplyResult, Command
from ..game.models import Room, Variant
from ..game.service import GameService
from .events import (
    CREATE_ROOM,
    ERROR_EVENT,
    JOIN_ROOM,
    LEAVE_ROOM,
    STATE_EVENT,
    inbound_commands,
    namespace_for,
)

logger = logging.getLogger(__name__)


def register_socketio_handlers(socketio: SocketIO, service: GameService) -> None:
    def _deliver(room: Room, result: ApplyResult) -> None:
        ns = namespace_for(room.variant)
        for out in result.events:
            if out.to is None:
                socketio.emit(out.event, out.payload, to=room.code, namespace=ns)
                continue
            sid = service.sid_of(room, out.to)
            if sid:
                socketio.emit(out.event, out.payload, to=sid, namespace=ns)

        if result.state_changed:
            for sid, payload in service.state_payloads(room):
                socketio.emit(STATE_EVENT, payload, to=sid, namespace=ns)

    def publish(room: Room, result: ApplyResult) -> None:
        # Best-effort; a failed delivery is never retried.
        try:
            _deliver(room, result)
        except Exception:
            logger.warning("broadcast failed room=%s", room.code, exc_info=True)

    service.publish = publish

    def _reject(result: ApplyResult) -> dict[str, Any]:
        emit(ERROR_EVENT, {"error": result.error, "message": result.notice})
        return {"ok": False, "error": result.error}

    def _identity(payload: dict) -> tuple[str, str]:
        room_code = str(payload.get("roomCode") or "").strip().upper()
        user_id = str(payload.get("userId") or payload.get("hostId") or "").strip()

        session = service.session(request.sid)
        if session is not None:
            code, player_id = session
            if not room_code:
                room_code = code
            if not user_id and code == room_code:
                user_id = player_id
        return room_code, user_id

    def _create_handler(variant: Variant):
        def on_create_room(data=None):
            payload = data if isinstance(data, dict) else {}
            host_id = str(payload.get("hostId") or payload.get("userId") or "").strip()
            room, result = service.create_room(
                variant,
                host_id,
                str(payload.get("nickname", "")).strip(),
                avatar=str(payload.get("avatar") or "").strip(),
                is_vip=bool(payload.get("isVip")),
                sid=request.sid,
            )
            if room is None or not result.ok:
                return _reject(result)

            join_room(room.code)
            publish(room, result)
            return {"ok": True, "roomCode": room.code}

        return on_create_room

    def _command_handler(variant: Variant, name: str):
        def on_command(data=None):
            payload = data if isinstance(data, dict) else {}
            room_code, user_id = _identity(payload)
            command = Command(name, player_id=user_id or None, data=payload, sid=request.sid)

            room, result = service.dispatch(variant, room_code, command)
            if room is None or not result.ok:
                return _reject(result)

            if name == JOIN_ROOM:
                join_room(room.code)
            elif name == LEAVE_ROOM:
                leave_room(room.code)
            publish(room, result)
            return {"ok": True}

        return on_command

    def on_disconnect(reason=None):
        room, result = service.disconnect(request.sid)
        if room is not None and result.ok:
            publish(room, result)

    for variant, engine in service.engines.items():
        ns = namespace_for(variant)
        socketio.on(CREATE_ROOM, namespace=ns)(_create_handler(variant))
        for name in inbound_commands(engine.legal):
            socketio.on(name, namespace=ns)(_command_handler(variant, name))
        socketio.on("disconnect", namespace=ns)(on_disconnect)
