from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

import websockets
from websockets.asyncio.server import ServerConnection, serve

from holdem.game import GameEngine
from holdem.models import GameSettings, Rejection, build_action, create_player

LOGGER = logging.getLogger("holdem_room")

# RoomServer is the single authoritative mutator: every engine call happens
# under one lock, and the full room state is re-sent after each change.
# The turn clock lives here; the engine only sees the resulting fold.


@dataclass
class ClientSession:
    player_id: str
    name: str
    websocket: ServerConnection


@dataclass
class PendingTimeout:
    player_id: str
    deadline: float
    extended: bool = False
    timer_task: Optional[asyncio.Task] = None


class RoomServer:
    def __init__(self, settings: GameSettings, room_id: str = "R-1") -> None:
        self.engine = GameEngine(settings)
        self.room_id = room_id
        self.host_id: Optional[str] = None
        self.is_game_started = False
        self.sessions: Dict[str, ClientSession] = {}
        self.pending: Optional[PendingTimeout] = None
        self.lock = asyncio.Lock()

    @property
    def settings(self) -> GameSettings:
        return self.engine.settings

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        async with serve(self._handle_connection, host, port):
            LOGGER.info("Room %s listening on %s:%s", self.room_id, host, port)
            await asyncio.Future()

    # Connections -------------------------------------------------------

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return
        player_id = hello.get("id")
        name = hello.get("name") or player_id
        if not isinstance(player_id, str) or not player_id.strip() or not isinstance(name, str):
            await self._send_error(websocket, code="BAD_SCHEMA", msg="id required")
            await websocket.close()
            return
        player_id = player_id.strip()

        session = await self._join(player_id, name.strip(), websocket)
        if session is None:
            await self._send_error(websocket, code="ROOM_FULL", msg="No seats available")
            await websocket.close()
            return

        await self._send_json(websocket, "welcome", {
            "room_id": self.room_id,
            "player_id": player_id,
            "host_id": self.host_id,
            "settings": self.settings.to_dict(),
        })
        await self._publish_state()

        try:
            async for raw in websocket:
                await self._dispatch(session, self._decode(raw))
        except websockets.ConnectionClosed:
            pass
        finally:
            await self._leave(session)

    async def _join(self, player_id: str, name: str, websocket: ServerConnection) -> Optional[ClientSession]:
        async with self.lock:
            player = self.engine.find_player(player_id)
            if player is not None:
                self.engine.set_connected(player_id, True)
                LOGGER.info("Player %s reconnected", player_id)
            else:
                seat = self.engine.find_available_seat()
                if seat < 0:
                    return None
                player = create_player(player_id, name, seat, self.settings.starting_chips)
                if not self.engine.add_player(player):
                    return None
            if self.host_id is None:
                self.host_id = player_id
            previous = self.sessions.get(player_id)
            session = ClientSession(player_id=player_id, name=player.name, websocket=websocket)
            self.sessions[player_id] = session
        if previous is not None and previous.websocket is not websocket:
            await previous.websocket.close(code=4000, reason="Replaced by new connection")
        return session

    async def _leave(self, session: ClientSession) -> None:
        async with self.lock:
            current = self.sessions.get(session.player_id)
            if current is not session:
                return
            self.sessions.pop(session.player_id, None)
            # The seat stays; a turn left hanging is settled by the clock.
            self.engine.set_connected(session.player_id, False)
        LOGGER.info("Player %s disconnected", session.player_id)
        await self._publish_state()

    # Commands ----------------------------------------------------------

    async def _dispatch(self, session: ClientSession, message: Dict[str, object]) -> None:
        handlers: Dict[str, Callable[[ClientSession, Dict[str, object]], Awaitable[None]]] = {
            "start": self._handle_start,
            "next_hand": self._handle_next_hand,
            "action": self._handle_action,
            "tip": self._handle_tip,
            "add_chips": self._handle_add_chips,
            "request_extension": self._handle_extension,
            "kick": self._handle_kick,
        }
        handler = handlers.get(str(message.get("type")))
        if handler is None:
            await self._send_error(session.websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")
            return
        await handler(session, message)

    async def _handle_start(self, session: ClientSession, message: Dict[str, object]) -> None:
        if not await self._require_host(session):
            return
        async with self.lock:
            started = self.engine.start_hand()
            reason = None if started else self.engine.get_start_hand_error()
            if started:
                self.is_game_started = True
                self._restart_timer_locked()
        if not started:
            await self._send_error(session.websocket, code="CANNOT_START", msg=reason or "Cannot start hand")
            return
        await self._publish_state()

    async def _handle_next_hand(self, session: ClientSession, message: Dict[str, object]) -> None:
        if not await self._require_host(session):
            return
        async with self.lock:
            started = self.engine.next_hand()
            reason = None if started else self.engine.get_start_hand_error()
            if started:
                self._restart_timer_locked()
        if not started:
            await self._send_error(session.websocket, code="CANNOT_START", msg=reason or "Cannot start hand")
        await self._publish_state()

    async def _handle_action(self, session: ClientSession, message: Dict[str, object]) -> None:
        action = build_action(str(message.get("action")), message.get("amount"))  # type: ignore[arg-type]
        if isinstance(action, Rejection):
            await self._send_error(session.websocket, code=action.value, msg="Malformed action")
            return
        async with self.lock:
            outcome = self.engine.submit(session.player_id, action)
            if outcome.ok:
                self._restart_timer_locked()
        if not outcome.ok:
            assert outcome.rejection is not None
            LOGGER.warning(
                "Rejected action player=%s action=%s reason=%s",
                session.player_id,
                action.type.value,
                outcome.rejection.value,
            )
            await self._send_error(session.websocket, code=outcome.rejection.value, msg="Action rejected")
            return
        LOGGER.debug("Applied action player=%s action=%s", session.player_id, action)
        await self._publish_state()

    async def _handle_tip(self, session: ClientSession, message: Dict[str, object]) -> None:
        to_id = message.get("to")
        amount = message.get("amount")
        if not isinstance(to_id, str) or not isinstance(amount, int) or isinstance(amount, bool):
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="tip needs to and amount")
            return
        async with self.lock:
            ok = self.engine.tip(session.player_id, to_id, amount)
        if not ok:
            await self._send_error(session.websocket, code="TIP_REJECTED", msg="Tip rejected")
            return
        await self._broadcast("tip", {"from": session.player_id, "to": to_id, "amount": amount})
        await self._publish_state()

    async def _handle_add_chips(self, session: ClientSession, message: Dict[str, object]) -> None:
        if not await self._require_host(session):
            return
        amount = message.get("amount")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="amount must be positive")
            return
        async with self.lock:
            self.engine.add_chips_to_all(amount)
        await self._publish_state()

    async def _handle_extension(self, session: ClientSession, message: Dict[str, object]) -> None:
        async with self.lock:
            granted = self._extend_timer_locked(session.player_id)
        if not granted:
            await self._send_error(session.websocket, code="EXTENSION_DENIED", msg="No extension available")
            return
        await self._publish_state()

    async def _handle_kick(self, session: ClientSession, message: Dict[str, object]) -> None:
        if not await self._require_host(session):
            return
        target = message.get("player_id")
        if not isinstance(target, str) or target == session.player_id:
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="player_id required")
            return
        async with self.lock:
            removed = self.engine.remove_player(target)
            kicked = self.sessions.pop(target, None) if removed else None
            if removed and self._turn_changed_locked():
                self._restart_timer_locked()
        if not removed:
            await self._send_error(session.websocket, code=Rejection.UNKNOWN_PLAYER.value, msg="No such player")
            return
        LOGGER.info("Player %s kicked by host", target)
        if kicked is not None:
            await self._send_json(kicked.websocket, "kicked", {"reason": message.get("reason")})
            await kicked.websocket.close(code=4401, reason="Kicked by host")
        await self._publish_state()

    async def _require_host(self, session: ClientSession) -> bool:
        if session.player_id == self.host_id:
            return True
        await self._send_error(session.websocket, code="NOT_HOST", msg="Only the host can do that")
        return False

    # Turn clock --------------------------------------------------------

    def _restart_timer_locked(self) -> None:
        """Drop any pending timeout and arm one for whoever holds the turn now."""
        self._cancel_timer_locked()
        current = self.engine.current_player()
        limit = self.settings.turn_time_limit
        if current is None or limit <= 0:
            return
        self._arm_timer_locked(current.id, time.monotonic() + limit, extended=False)

    def _turn_changed_locked(self) -> bool:
        current = self.engine.current_player()
        current_id = current.id if current else None
        pending_id = self.pending.player_id if self.pending else None
        return current_id != pending_id

    def _extend_timer_locked(self, player_id: str) -> bool:
        pending = self.pending
        if pending is None or pending.player_id != player_id or pending.extended:
            return False
        deadline = pending.deadline + self.settings.extension_time
        self._cancel_timer_locked()
        self._arm_timer_locked(player_id, deadline, extended=True)
        LOGGER.info("Extension granted to %s", player_id)
        return True

    def _arm_timer_locked(self, player_id: str, deadline: float, extended: bool) -> None:
        self.pending = PendingTimeout(player_id=player_id, deadline=deadline, extended=extended)
        self.pending.timer_task = asyncio.create_task(self._run_timer(player_id, deadline))

    def _cancel_timer_locked(self) -> None:
        if self.pending and self.pending.timer_task:
            self.pending.timer_task.cancel()
        self.pending = None

    async def _run_timer(self, player_id: str, deadline: float) -> None:
        await asyncio.sleep(max(0.0, deadline - time.monotonic()))
        await self._timer_expired(player_id, deadline)

    async def _timer_expired(self, player_id: str, deadline: float) -> None:
        async with self.lock:
            pending = self.pending
            # A newer turn or an extension replaced this timer.
            if pending is None or pending.player_id != player_id or pending.deadline != deadline:
                return
            self.pending = None
            folded = self.engine.handle_turn_timeout(player_id)
            if folded:
                self._restart_timer_locked()
        if folded:
            LOGGER.info("Player %s timed out", player_id)
            await self._publish_state()

    def _time_remaining_ms(self) -> Optional[int]:
        if self.pending is None:
            return None
        return max(0, int((self.pending.deadline - time.monotonic()) * 1000))

    # Broadcast ---------------------------------------------------------

    async def _publish_state(self) -> None:
        async with self.lock:
            events = self.engine.drain_events()
            room = self.engine.room_state(self.room_id, self.host_id, self.is_game_started)
            remaining = self._time_remaining_ms()
            extended = bool(self.pending and self.pending.extended)
            targets = list(self.sessions.values())
        if events:
            await self._broadcast("events", {"events": events})
        sends = []
        for session in targets:
            payload = room.to_dict(viewer=session.player_id)
            payload["turn_time_remaining_ms"] = remaining
            payload["turn_extended"] = extended
            sends.append(self._send_json(session.websocket, "room_state", payload))
        if sends:
            await asyncio.gather(*sends, return_exceptions=True)

    async def _broadcast(self, msg_type: str, payload: Dict[str, object]) -> None:
        async with self.lock:
            targets: List[ServerConnection] = [session.websocket for session in self.sessions.values()]
        if not targets:
            return
        message = self._envelope(msg_type, payload)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)

    async def _send_json(self, websocket: ServerConnection, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: ServerConnection, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: ServerConnection) -> Optional[Dict[str, object]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw) -> Dict[str, object]:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return {}
        return message if isinstance(message, dict) else {}
