import asyncio
import json

from fastapi import WebSocketDisconnect

from meadow.app.server import QueuedSnapshot, SimulationController, SnapshotBuffer
from meadow.sim.core.config import SimulationConfig


class RecordingSocket:
    def __init__(self) -> None:
        self.messages = []

    async def send_text(self, text: str) -> None:
        self.messages.append(json.loads(text))

    @property
    def ticks(self):
        return [message["tick"] for message in self.messages]


class ClosedSocket:
    async def send_text(self, text: str) -> None:
        raise WebSocketDisconnect(code=1006)


def _controller(**overrides) -> SimulationController:
    values = {"initial_population": 4, "initial_food": 1}
    values.update(overrides)
    return SimulationController(SimulationConfig(**values))


def _ack(controller: SimulationController, socket, tick: int) -> None:
    controller.receive(socket, json.dumps({"type": "ack", "tick": tick}))


def test_queue_stays_small_without_clients() -> None:
    controller = _controller()

    async def exercise() -> None:
        for _ in range(500):
            await controller.advance()

    asyncio.run(exercise())
    assert controller.tick == 500
    assert controller.buffer.ticks == [500]


def test_ack_drops_delivered_snapshots() -> None:
    controller = _controller()
    socket = RecordingSocket()

    async def exercise() -> None:
        await controller.connect(socket)
        await controller.advance()
        await controller.advance()

    asyncio.run(exercise())
    assert socket.ticks == [1, 2]
    assert controller.buffer.ticks == [1, 2]
    _ack(controller, socket, 1)
    assert controller.buffer.ticks == [2]


def test_slowest_client_holds_the_queue() -> None:
    controller = _controller()
    fast = RecordingSocket()
    slow = RecordingSocket()

    async def exercise() -> None:
        await controller.connect(fast)
        await controller.connect(slow)
        for _ in range(3):
            await controller.advance()

    asyncio.run(exercise())
    _ack(controller, fast, 3)
    _ack(controller, slow, 1)
    assert controller.buffer.ticks == [2, 3]

    controller.disconnect(slow)
    assert controller.buffer.ticks == []


def test_unacknowledged_queue_is_capped() -> None:
    controller = SimulationController(SimulationConfig(initial_population=2, initial_food=1), queue_limit=8)
    socket = RecordingSocket()

    async def exercise() -> None:
        await controller.connect(socket)
        for _ in range(20):
            await controller.advance()

    asyncio.run(exercise())
    assert len(socket.messages) == 20
    assert controller.buffer.ticks == list(range(13, 21))


def test_late_joiner_receives_the_latest_frame() -> None:
    controller = _controller()
    socket = RecordingSocket()

    async def exercise() -> None:
        for _ in range(5):
            await controller.advance()
        await controller.connect(socket)

    asyncio.run(exercise())
    assert socket.ticks == [5]


def test_malformed_messages_are_ignored() -> None:
    controller = _controller()
    socket = RecordingSocket()

    async def exercise() -> None:
        await controller.connect(socket)
        await controller.advance()

    asyncio.run(exercise())
    controller.receive(socket, "not json")
    controller.receive(socket, json.dumps(["ack", 1]))
    controller.receive(socket, json.dumps({"type": "ack", "tick": "1"}))
    assert controller.buffer.ticks == [1]


def test_closed_socket_is_detached_on_delivery() -> None:
    controller = _controller()
    socket = ClosedSocket()

    async def exercise() -> None:
        await controller.connect(socket)
        await controller.advance()

    asyncio.run(exercise())
    assert controller.buffer.clients == []
    assert controller.status()["clients"] == 0


def test_snapshot_message_shape() -> None:
    controller = _controller()
    message = json.loads(json.dumps(controller.world.snapshot().to_message()))

    assert message["type"] == "snapshot"
    assert message["tick"] == 0
    payload = message["payload"]
    assert len(payload["herbivores"]) == 4
    assert len(payload["foods"]) == 1
    assert len(payload["walls"]) == 4
    assert payload["world"]["finished"] is False
    assert payload["metadata"]["seed"] == 42
    assert payload["metrics"]["population"] == 4


def test_controller_stops_when_world_finishes() -> None:
    controller = _controller(duration=0.02, time_step=0.01)
    controller.running = True

    async def exercise() -> list:
        return [await controller.advance() for _ in range(3)]

    results = asyncio.run(exercise())
    assert results == [True, True, False]
    assert controller.tick == 2
    assert controller.world.finished
    assert controller.running is False


def test_start_runs_the_loop_to_the_end() -> None:
    controller = _controller(duration=0.05, time_step=0.01)
    controller.set_speed(5.0)

    async def exercise() -> bool:
        assert await controller.start()
        await asyncio.wait_for(controller._task, timeout=5.0)
        return await controller.start()

    restarted = asyncio.run(exercise())
    assert controller.tick == 5
    assert controller.running is False
    assert restarted is False
    assert controller.buffer.ticks == [5]


def test_reset_clears_queue_and_world() -> None:
    controller = _controller()

    async def exercise() -> None:
        await controller.advance()
        await controller.reset()

    asyncio.run(exercise())
    assert controller.tick == 0
    assert controller.buffer.ticks == [0]


def test_speed_is_clamped() -> None:
    controller = _controller()
    assert controller.set_speed(50) == 5.0
    assert controller.set_speed(0) == 0.1
    assert controller.set_speed("2") == 2.0


def test_buffer_capacity_is_at_least_one() -> None:
    buffer = SnapshotBuffer(capacity=0)
    buffer.attach("viewer")
    buffer.push(QueuedSnapshot(tick=1, payload="{}"))
    buffer.push(QueuedSnapshot(tick=2, payload="{}"))
    assert buffer.ticks == [2]
    assert [entry.tick for entry in buffer.pending("viewer")] == [2]
