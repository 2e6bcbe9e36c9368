# FILE: dashboard/api.py
# PURPOSE: FastAPI app serving the process list over HTTP and a websocket.
import json
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List
from urllib.parse import urlparse

import psutil
from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse

from .processes import ProcessList, SORT_METHODS

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: str):
        for connection in self.active_connections[:]:
            try:
                await connection.send_text(message)
            except Exception:
                self.disconnect(connection)


def same_origin(request: Request):
    """Refuses state-changing requests made from another site's page."""
    origin = request.headers.get("origin")
    if origin is None:
        return
    if urlparse(origin).netloc != request.headers.get("host"):
        logger.warning("refused %s %s from origin %s", request.method, request.url.path, origin)
        raise HTTPException(status_code=403, detail="Cross-origin request refused.")


HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="en" class="dark">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>VSM Process List</title>
    <script src="https://cdn.tailwindcss.com"></script>
    <style>
        html.dark body { background-color: #111827; color: #e5e7eb; }
        html.dark .card { background-color: #1f2937; }
        .sort-button.active { color: #3b82f6; }
    </style>
</head>
<body class="p-4 md:p-6">
    <div class="max-w-7xl mx-auto">
        <header class="mb-6 flex items-center justify-between">
            <div>
                <h1 class="text-3xl font-bold">VSM Process List</h1>
                <p id="networkStatus" class="text-gray-400"></p>
            </div>
            <button id="toggleAll" onclick="toggleAll()" class="px-3 py-1 text-sm rounded bg-gray-700 hover:bg-gray-600">Show all</button>
        </header>
        <div class="card shadow-lg rounded-lg p-4 md:p-6 overflow-x-auto">
            <table class="min-w-full divide-y divide-gray-700">
                <thead>
                    <tr>
                        <th class="px-4 py-3 text-left text-xs uppercase"><button class="sort-button" data-sort="p" onclick="setSort('p')">PID</button></th>
                        <th class="px-4 py-3 text-left text-xs uppercase">Command</th>
                        <th class="px-4 py-3 text-right text-xs uppercase"><button class="sort-button" data-sort="c" onclick="setSort('c')">CPU%</button></th>
                        <th class="px-4 py-3 text-right text-xs uppercase"><button class="sort-button" data-sort="m" onclick="setSort('m')">Mem%</button></th>
                        <th class="px-4 py-3 text-right text-xs uppercase">Tx MB/s</th>
                        <th class="px-4 py-3 text-right text-xs uppercase">Rx MB/s</th>
                        <th class="px-4 py-3 text-right text-xs uppercase">W MB/s</th>
                        <th class="px-4 py-3 text-right text-xs uppercase">R MB/s</th>
                        <th class="px-4 py-3 text-left text-xs uppercase">Actions</th>
                    </tr>
                </thead>
                <tbody id="processTableBody" class="divide-y divide-gray-700"></tbody>
            </table>
        </div>
    </div>

    <script>
        const processTableBody = document.getElementById('processTableBody');
        const fmt = (v, digits) => v.toFixed(digits);

        function updateDashboard(data) {
            document.getElementById('networkStatus').textContent =
                data.network ? '' : 'Per-process network stats unavailable';
            document.getElementById('toggleAll').textContent = data.show_all ? 'Show matched' : 'Show all';
            document.querySelectorAll('.sort-button').forEach(b =>
                b.classList.toggle('active', b.dataset.sort === data.sort));

            const rows = data.processes.map(proc => {
                const tr = document.createElement('tr');
                tr.className = 'hover:bg-gray-700';
                const cells = [
                    [String(proc.pid), 'px-4 py-2'],
                    [proc.command, 'px-4 py-2 font-semibold'],
                    [fmt(proc.cpu, 1), 'px-4 py-2 text-right'],
                    [fmt(proc.mem, 1), 'px-4 py-2 text-right'],
                    [fmt(proc.out_mbps, 3), 'px-4 py-2 text-right'],
                    [fmt(proc.in_mbps, 3), 'px-4 py-2 text-right'],
                    [fmt(proc.write_mbps, 3), 'px-4 py-2 text-right'],
                    [fmt(proc.read_mbps, 3), 'px-4 py-2 text-right'],
                ];
                cells.forEach(([text, cls]) => {
                    const td = document.createElement('td');
                    td.className = cls;
                    td.textContent = text;
                    tr.appendChild(td);
                });
                const action = document.createElement('td');
                action.className = 'px-4 py-2';
                const button = document.createElement('button');
                button.className = 'px-3 py-1 text-xs text-white bg-red-600 rounded hover:bg-red-700';
                button.textContent = 'Terminate';
                button.addEventListener('click', () => terminateProcess(proc.pid));
                action.appendChild(button);
                tr.appendChild(action);
                return tr;
            });
            processTableBody.replaceChildren(...rows);
        }

        async function post(url) {
            const response = await fetch(url, { method: 'POST' });
            return response.json();
        }

        async function setSort(method) {
            updateDashboard(await post('/api/processes/sort/' + method));
        }

        async function toggleAll() {
            updateDashboard(await post('/api/processes/toggle-all'));
        }

        async function terminateProcess(pid) {
            if (!confirm('Are you sure you want to terminate process ' + pid + '?')) return;
            const result = await post('/api/process/' + pid + '/terminate');
            alert(result.message || result.detail);
        }

        const ws = new WebSocket('ws://' + window.location.host + '/ws');
        ws.onmessage = (event) => updateDashboard(JSON.parse(event.data));
    </script>
</body>
</html>
"""


def create_app(processes: ProcessList, push_interval: float = None) -> FastAPI:
    """Builds the dashboard app around an already running ProcessList."""
    manager = ConnectionManager()
    push_interval = push_interval or processes.interval

    async def broadcast_data():
        while True:
            await manager.broadcast(json.dumps(processes.snapshot()))
            await asyncio.sleep(push_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(broadcast_data())
        yield
        task.cancel()

    app = FastAPI(lifespan=lifespan)
    app.state.processes = processes
    app.state.manager = manager

    @app.get("/", response_class=HTMLResponse)
    async def get_root():
        return HTML_TEMPLATE

    @app.get("/api/processes", response_class=JSONResponse)
    async def api_processes():
        return processes.snapshot()

    @app.post("/api/processes/sort/{method}", response_class=JSONResponse, dependencies=[Depends(same_origin)])
    async def api_sort(method: str):
        if method not in SORT_METHODS:
            raise HTTPException(status_code=400, detail=f"Unknown sort method '{method}'.")
        processes.set_sort(method)
        return processes.snapshot()

    @app.post("/api/processes/toggle-all", response_class=JSONResponse, dependencies=[Depends(same_origin)])
    async def api_toggle_all():
        # update() does blocking /proc reads
        await asyncio.to_thread(processes.toggle_all)
        return processes.snapshot()

    @app.post("/api/process/{pid}/terminate", response_class=JSONResponse, dependencies=[Depends(same_origin)])
    async def api_terminate_process(pid: int):
        try:
            p = psutil.Process(pid)
            name = p.name()
            p.terminate()
            message = f"Successfully sent termination signal to process {pid} ({name})."
            logger.info(message)
            return {"status": "success", "message": message}
        except psutil.NoSuchProcess:
            raise HTTPException(status_code=404, detail=f"Process with PID {pid} not found.")
        except psutil.AccessDenied:
            raise HTTPException(status_code=403, detail=f"Access denied. Cannot terminate process {pid}.")

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await manager.connect(websocket)
        try:
            await websocket.send_text(json.dumps(processes.snapshot()))
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            manager.disconnect(websocket)

    return app
