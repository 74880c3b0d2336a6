from typing import Any
from uuid import uuid4

import jwt
import pytest

from teamboard_api.core.config import get_settings
from teamboard_api.models.enums import BoardEventName
from teamboard_api.realtime.broadcaster import RoomBroadcaster
from teamboard_api.realtime.namespace import BoardNamespace
from teamboard_api.realtime.presence import PresenceTracker
from teamboard_api.realtime.registry import RoomRegistry, board_room, workspace_room
from teamboard_api.schemas.responses import UserSummaryData
from teamboard_api.services import tasks as task_service
from teamboard_api.services.events import BoardEvent


class FakeTransport:
    """记录投递的事件，可指定投递必然失败的连接。"""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.sent: list[tuple[str | None, str, Any]] = []
        self.failing = failing or set()

    async def emit(self, event: str, data: Any = None, to: str | None = None, namespace: str | None = None) -> None:
        if to in self.failing:
            raise RuntimeError("connection reset")
        self.sent.append((to, event, data))

    def to(self, sid: str) -> list[tuple[str, Any]]:
        return [(event, data) for target, event, data in self.sent if target == sid]

    def events_for(self, sid: str) -> list[str]:
        return [event for event, _ in self.to(sid)]


def _summary(name: str) -> UserSummaryData:
    return UserSummaryData(id=uuid4(), email=f"{name}@example.com", display_name=name)


def _token(email: str, name: str) -> str:
    settings = get_settings()
    claims = {"sub": f"sub-{email}", "email": email, "name": name}
    return jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_algorithms[0])


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def namespace(session_factory, transport) -> BoardNamespace:
    registry = RoomRegistry()
    presence = PresenceTracker(registry)
    broadcaster = RoomBroadcaster(registry, transport)
    ns = BoardNamespace(registry, presence, broadcaster, session_factory)

    sessions: dict[str, dict] = {}

    async def get_session(sid, namespace=None):
        return sessions.get(sid, {})

    async def save_session(sid, session, namespace=None):
        sessions[sid] = session

    ns.get_session = get_session
    ns.save_session = save_session
    return ns


async def _connect(ns: BoardNamespace, sid: str, user) -> None:
    await ns.on_connect(sid, {}, {"token": _token(user.email, user.display_name)})


def test_registry_tracks_first_connection_per_user():
    registry = RoomRegistry()
    alice = _summary("alice")
    room = board_room("b1")

    assert registry.join("s1", room, alice) is True
    assert registry.join("s2", room, alice) is False
    assert registry.rooms_of("s1") == {room}

    assert registry.leave("s1", room) == alice
    assert registry.user_present(room, alice.id)
    assert registry.leave("s1", room) is None

    registry.join("s2", workspace_room("w1"), alice)
    left = registry.leave_all("s2")
    assert {item[0] for item in left} == {room, workspace_room("w1")}
    assert registry.members(room) == {}


def test_presence_dedups_users_and_drops_stale_signals():
    registry = RoomRegistry()
    presence = PresenceTracker(registry)
    alice, bob = _summary("alice"), _summary("bob")
    registry.join("s1", board_room("b1"), alice)
    registry.join("s2", board_room("b1"), alice)
    registry.join("s3", board_room("b1"), bob)

    assert [user.id for user in presence.online_users("b1")] == [alice.id, bob.id]

    room = board_room("b1")
    assert presence.record_signal(room, alice.id, "cursor", {"x": 1.0, "y": 1.0}, sid="s1", sent_at=10)
    assert not presence.record_signal(room, alice.id, "cursor", {"x": 0.0, "y": 0.0}, sid="s1", sent_at=5)
    assert [signal.payload for signal in presence.signals(room)] == [{"x": 1.0, "y": 1.0}]

    presence.forget(room, alice.id)
    assert presence.signals(room) == []

    with pytest.raises(ValueError):
        presence.record_signal(room, alice.id, "shout", {})


def test_client_timestamps_never_block_server_ordered_signals():
    presence = PresenceTracker(RoomRegistry())
    alice = _summary("alice")
    room = board_room("b1")

    # 毫秒级客户端时间戳之后，无时间戳的信号仍按到达顺序生效。
    assert presence.record_signal(room, alice.id, "typing", {"is_typing": True}, sid="s1", sent_at=1.76e12)
    assert presence.record_signal(room, alice.id, "typing", {"is_typing": False}, sid="s1")
    assert [signal.payload for signal in presence.signals(room)] == [{"is_typing": False}]

    # 另一连接的时间戳不与当前连接比较。
    assert presence.record_signal(room, alice.id, "typing", {"is_typing": True}, sid="s1", sent_at=1.76e12)
    assert presence.record_signal(room, alice.id, "typing", {"is_typing": False}, sid="s2", sent_at=3.0)
    assert [signal.payload for signal in presence.signals(room)] == [{"is_typing": False}]


def test_signals_are_listed_in_arrival_order():
    presence = PresenceTracker(RoomRegistry())
    alice, bob = _summary("alice"), _summary("bob")
    room = board_room("b1")

    presence.record_signal(room, bob.id, "focus", {"task_id": "t2", "focused": True})
    presence.record_signal(room, alice.id, "cursor", {"x": 1.0, "y": 2.0})
    presence.record_signal(room, bob.id, "cursor", {"x": 3.0, "y": 4.0})

    assert [(signal.user_id, signal.kind) for signal in presence.signals(room)] == [
        (bob.id, "focus"),
        (alice.id, "cursor"),
        (bob.id, "cursor"),
    ]
    assert [signal.kind for signal in presence.signals(room, exclude_user=bob.id)] == ["cursor"]
    assert presence.signals(room, exclude_user=bob.id)[0].to_dict() == {
        "user_id": str(alice.id),
        "kind": "cursor",
        "x": 1.0,
        "y": 2.0,
    }


@pytest.mark.asyncio
async def test_broadcaster_skips_failed_connections():
    registry = RoomRegistry()
    transport = FakeTransport(failing={"s2"})
    broadcaster = RoomBroadcaster(registry, transport)
    for sid, name in (("s1", "alice"), ("s2", "bob"), ("s3", "carol")):
        registry.join(sid, board_room("b1"), _summary(name))

    delivered = await broadcaster.broadcast("b1", "taskMoved", {"id": "t1"})

    assert delivered == 2
    assert {target for target, _, _ in transport.sent} == {"s1", "s3"}


@pytest.mark.asyncio
async def test_board_event_reaches_originator_too(namespace, transport, world):
    await _connect(namespace, "sid-b", world.member)
    await namespace.trigger_event("join-board", "sid-b", {"board_id": str(world.board.id)})
    transport.sent.clear()

    event = BoardEvent(board_id=world.board.id, name=BoardEventName.TASK_MOVED, payload={"id": "t1"})
    assert await namespace.broadcaster.broadcast_event(event) == 1
    assert transport.to("sid-b") == [("taskMoved", {"id": "t1"})]


@pytest.mark.asyncio
async def test_connect_requires_valid_token(namespace):
    with pytest.raises(ConnectionRefusedError):
        await namespace.on_connect("sid-x", {}, None)
    with pytest.raises(ConnectionRefusedError):
        await namespace.on_connect("sid-x", {}, {"token": "not-a-jwt"})


@pytest.mark.asyncio
async def test_join_board_announces_presence(namespace, transport, world):
    await _connect(namespace, "sid-b", world.member)
    await _connect(namespace, "sid-c", world.viewer)

    ack = await namespace.trigger_event("join-board", "sid-b", {"board_id": str(world.board.id)})
    assert ack["ok"] is True
    assert [user["id"] for user in ack["users"]] == [str(world.member.id)]
    assert transport.events_for("sid-b") == ["joined-board"]

    ack = await namespace.trigger_event("join-board", "sid-c", {"boardId": str(world.board.id)})
    assert {user["id"] for user in ack["users"]} == {str(world.member.id), str(world.viewer.id)}
    assert transport.events_for("sid-b") == ["joined-board", "user-joined"]
    _, payload = transport.to("sid-b")[-1]
    assert payload["user"]["id"] == str(world.viewer.id)


@pytest.mark.asyncio
async def test_join_board_replays_current_signals(namespace, transport, world):
    board_id = str(world.board.id)
    await _connect(namespace, "sid-b", world.member)
    await _connect(namespace, "sid-c", world.viewer)
    await namespace.trigger_event("join-board", "sid-b", {"board_id": board_id})
    await namespace.trigger_event("typing-start", "sid-b", {"board_id": board_id, "task_id": "t1"})

    ack = await namespace.trigger_event("join-board", "sid-c", {"board_id": board_id})

    assert ack["signals"] == [
        {"user_id": str(world.member.id), "kind": "typing", "task_id": "t1", "is_typing": True}
    ]
    event, payload = transport.to("sid-c")[0]
    assert event == "joined-board"
    assert payload["signals"] == ack["signals"]

    ack = await namespace.trigger_event("join-board", "sid-b", {"board_id": board_id})
    assert ack["signals"] == []


@pytest.mark.asyncio
async def test_outsider_cannot_join_board(namespace, transport, world):
    await _connect(namespace, "sid-d", world.outsider)

    ack = await namespace.trigger_event("join-board", "sid-d", {"board_id": str(world.board.id)})

    assert ack["ok"] is False
    assert ack["error"]["code"] == "FORBIDDEN"
    assert transport.events_for("sid-d") == ["error"]
    assert not namespace.registry.is_member("sid-d", board_room(world.board.id))


@pytest.mark.asyncio
async def test_join_board_requires_board_id(namespace, world):
    await _connect(namespace, "sid-b", world.member)

    ack = await namespace.trigger_event("join-board", "sid-b", {})

    assert ack["ok"] is False
    assert ack["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_signals_are_relayed_to_others_only(namespace, transport, world):
    board_id = str(world.board.id)
    await _connect(namespace, "sid-b", world.member)
    await _connect(namespace, "sid-c", world.viewer)

    ack = await namespace.trigger_event("typing-start", "sid-b", {"board_id": board_id, "task_id": "t1"})
    assert ack["ok"] is False

    await namespace.trigger_event("join-board", "sid-b", {"board_id": board_id})
    await namespace.trigger_event("join-board", "sid-c", {"board_id": board_id})
    transport.sent.clear()

    ack = await namespace.trigger_event("typing-start", "sid-b", {"board_id": board_id, "task_id": "t1"})
    assert ack == {"ok": True}
    assert transport.events_for("sid-b") == []
    event, payload = transport.to("sid-c")[0]
    assert event == "user-typing"
    assert payload["is_typing"] is True
    assert payload["task_id"] == "t1"

    await namespace.trigger_event("cursor-move", "sid-c", {"board_id": board_id, "x": 4, "y": 2, "sent_at": 100})
    stale = await namespace.trigger_event(
        "cursor-move", "sid-c", {"board_id": board_id, "x": 1, "y": 1, "sent_at": 50}
    )
    assert stale == {"ok": True, "stale": True}
    assert transport.events_for("sid-b") == ["cursor-update"]
    _, cursor = transport.to("sid-b")[0]
    assert (cursor["x"], cursor["y"]) == (4.0, 2.0)

    # 不带时间戳的后续信号不受先前客户端时间戳影响。
    ack = await namespace.trigger_event("cursor-move", "sid-c", {"board_id": board_id, "x": 7, "y": 7})
    assert ack == {"ok": True}

    task_id = str(uuid4())
    await namespace.trigger_event("task-focus", "sid-c", {"board_id": board_id, "task_id": task_id})
    _, focused = transport.to("sid-b")[-1]
    assert focused == {
        "board_id": board_id,
        "user": focused["user"],
        "task_id": task_id,
        "focused": True,
    }


@pytest.mark.asyncio
async def test_disconnect_notifies_remaining_members(namespace, transport, world):
    board_id = str(world.board.id)
    await _connect(namespace, "sid-b", world.member)
    await _connect(namespace, "sid-c", world.viewer)
    await namespace.trigger_event("join-board", "sid-b", {"board_id": board_id})
    await namespace.trigger_event("join-board", "sid-c", {"board_id": board_id})
    transport.sent.clear()

    await namespace.on_disconnect("sid-c", "client disconnect")

    assert transport.events_for("sid-b") == ["user-left"]
    online = await namespace.trigger_event("get-online-users", "sid-b", {"board_id": board_id})
    assert [user["id"] for user in online["users"]] == [str(world.member.id)]


@pytest.mark.asyncio
async def test_second_tab_does_not_duplicate_presence(namespace, transport, world):
    board_id = str(world.board.id)
    await _connect(namespace, "sid-b1", world.member)
    await _connect(namespace, "sid-b2", world.member)
    await _connect(namespace, "sid-c", world.viewer)
    await namespace.trigger_event("join-board", "sid-c", {"board_id": board_id})
    await namespace.trigger_event("join-board", "sid-b1", {"board_id": board_id})
    await namespace.trigger_event("join-board", "sid-b2", {"board_id": board_id})

    assert transport.events_for("sid-c").count("user-joined") == 1
    assert len(namespace.presence.online_users(world.board.id)) == 2

    await namespace.trigger_event("leave-board", "sid-b1", {"board_id": board_id})
    assert "user-left" not in transport.events_for("sid-c")


@pytest.mark.asyncio
async def test_join_workspace_room(namespace, transport, world):
    await _connect(namespace, "sid-c", world.viewer)

    ack = await namespace.trigger_event("join-workspace", "sid-c", {"workspace_id": str(world.workspace.id)})

    assert ack["ok"] is True
    assert transport.events_for("sid-c") == ["joined-workspace"]
    assert namespace.registry.is_member("sid-c", workspace_room(world.workspace.id))


@pytest.mark.asyncio
async def test_ping_replies_with_pong(namespace, transport, world):
    await _connect(namespace, "sid-b", world.member)

    ack = await namespace.trigger_event("ping", "sid-b", None)

    assert ack["ok"] is True
    assert transport.events_for("sid-b") == ["pong"]


@pytest.mark.asyncio
async def test_service_mutation_fans_out_to_board_room(namespace, transport, world, db_session, events):
    board_id = str(world.board.id)
    await _connect(namespace, "sid-b", world.member)
    await _connect(namespace, "sid-c", world.viewer)
    await namespace.trigger_event("join-board", "sid-b", {"board_id": board_id})
    await namespace.trigger_event("join-board", "sid-c", {"board_id": board_id})
    transport.sent.clear()

    task = task_service.create_task(
        db_session,
        actor_id=world.member.id,
        board_id=world.board.id,
        column_id="todo",
        title="ship it",
        events=events,
    )
    for event in events.events:
        await namespace.broadcaster.broadcast_event(event)

    for sid in ("sid-b", "sid-c"):
        assert transport.to(sid) == [("taskCreated", events.events[0].payload)]
    assert events.events[0].payload["id"] == str(task.id)
