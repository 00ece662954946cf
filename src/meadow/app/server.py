from __future__ import annotations

import asyncio
import json
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Hashable, List

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from ..sim.core.config import AppConfig, SimulationConfig
from ..sim.core.world import World

MIN_SPEED = 0.1
MAX_SPEED = 5.0


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SnapshotBuffer:
    """Serialised snapshots waiting for delivery or acknowledgement.

    Each connected client has a send cursor and an ack cursor. Entries every
    client has acknowledged are dropped, the buffer never holds more than
    `capacity` entries, and with no client attached only the newest entry is
    retained so a late joiner still receives the current frame.
    """

    def __init__(self, capacity: int = 64):
        self._entries: deque[QueuedSnapshot] = deque(maxlen=max(1, capacity))
        self._sent: Dict[Hashable, int] = {}
        self._acked: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def ticks(self) -> List[int]:
        return [entry.tick for entry in self._entries]

    @property
    def clients(self) -> List[Hashable]:
        return list(self._sent)

    def attach(self, client: Hashable) -> None:
        self._sent[client] = -1
        self._acked[client] = -1

    def detach(self, client: Hashable) -> None:
        self._sent.pop(client, None)
        self._acked.pop(client, None)
        self._trim()

    def push(self, entry: QueuedSnapshot) -> None:
        self._entries.append(entry)
        self._trim()

    def pending(self, client: Hashable) -> List[QueuedSnapshot]:
        cursor = self._sent.get(client, -1)
        return [entry for entry in self._entries if entry.tick > cursor]

    def mark_sent(self, client: Hashable, tick: int) -> None:
        if client in self._sent:
            self._sent[client] = max(self._sent[client], tick)

    def acknowledge(self, client: Hashable, tick: int) -> None:
        if client in self._acked:
            self._acked[client] = max(self._acked[client], tick)
            self._trim()

    def restart(self) -> None:
        self._entries.clear()
        for client in self._sent:
            self._sent[client] = -1
            self._acked[client] = -1

    def _trim(self) -> None:
        if not self._acked:
            while len(self._entries) > 1:
                self._entries.popleft()
            return
        floor = min(self._acked.values())
        while self._entries and self._entries[0].tick <= floor:
            self._entries.popleft()


class SimulationController:
    """Owns the World for the web viewer and paces it on the event loop."""

    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1, queue_limit: int = 64):
        self.config = config
        self.world = World(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.speed_multiplier = 1.0
        self.running = False
        self.buffer = SnapshotBuffer(queue_limit)
        self._sockets: Dict[Hashable, WebSocket] = {}
        self._world_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.world.tick

    def status(self) -> Dict[str, Any]:
        metrics = self.world.metrics or self.world.snapshot().metrics
        return {
            "running": self.running,
            "tick": self.tick,
            "finished": self.world.finished,
            "speed": self.speed_multiplier,
            "clients": len(self._sockets),
            "queued": len(self.buffer),
            "metrics": asdict(metrics),
        }

    async def start(self) -> bool:
        """Resume pacing; a finished run stays stopped until it is reset."""
        if self.world.finished:
            self.running = False
            return False
        self.running = True
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        return True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def reset(self) -> None:
        async with self._world_lock:
            self.world.reset()
        self.buffer.restart()
        await self.publish()

    def set_speed(self, multiplier: float) -> float:
        self.speed_multiplier = max(MIN_SPEED, min(MAX_SPEED, float(multiplier)))
        return self.speed_multiplier

    async def advance(self) -> bool:
        """Step the world once. Returns False when the run has already ended."""
        async with self._world_lock:
            if self.world.finished:
                self.running = False
                return False
            self.world.step()
            finished = self.world.finished
        if finished:
            self.running = False
        if finished or self.tick % self.broadcast_interval == 0:
            await self.publish()
        return True

    async def _run(self) -> None:
        while self.running:
            if not await self.advance():
                break
            await asyncio.sleep(self.config.time_step / self.speed_multiplier)

    async def publish(self) -> None:
        snapshot = self.world.snapshot()
        self.buffer.push(QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(snapshot.to_message())))
        for key in list(self._sockets):
            await self._deliver(key)

    async def connect(self, websocket: WebSocket) -> None:
        key = id(websocket)
        self._sockets[key] = websocket
        self.buffer.attach(key)
        await self._deliver(key)

    def disconnect(self, websocket: WebSocket) -> None:
        key = id(websocket)
        self._sockets.pop(key, None)
        self.buffer.detach(key)

    def receive(self, websocket: WebSocket, message: str) -> None:
        try:
            payload = json.loads(message)
        except json.JSONDecodeError:
            return
        if not isinstance(payload, dict) or payload.get("type") != "ack":
            return
        tick = payload.get("tick")
        if isinstance(tick, int):
            self.buffer.acknowledge(id(websocket), tick)

    async def _deliver(self, key: Hashable) -> None:
        websocket = self._sockets.get(key)
        if websocket is None:
            return
        try:
            for entry in self.buffer.pending(key):
                await websocket.send_text(entry.payload)
                self.buffer.mark_sent(key, entry.tick)
        except WebSocketDisconnect:
            self.disconnect(websocket)


class SpeedRequest(BaseModel):
    multiplier: float = 1.0


app_config = AppConfig()
controller = SimulationController(app_config.simulation, broadcast_interval=app_config.broadcast_interval)
static_dir = Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(_: FastAPI):
    await controller.start()
    yield
    await controller.shutdown()


app = FastAPI(title="Meadow Herbivore Simulation", lifespan=lifespan)
app.mount("/static", StaticFiles(directory=static_dir), name="static")


@app.get("/")
async def index() -> FileResponse:
    return FileResponse(static_dir / "index.html")


@app.get("/api/status")
async def status() -> JSONResponse:
    return JSONResponse(controller.status())


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    await controller.start()
    return JSONResponse({"running": controller.running, "finished": controller.world.finished})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    await controller.stop()
    return JSONResponse({"running": controller.running})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(request: SpeedRequest) -> JSONResponse:
    return JSONResponse({"multiplier": controller.set_speed(request.multiplier)})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    await controller.connect(websocket)
    try:
        while True:
            controller.receive(websocket, await websocket.receive_text())
    except WebSocketDisconnect:
        controller.disconnect(websocket)


__all__ = ["app", "controller", "SimulationController", "SnapshotBuffer"]
