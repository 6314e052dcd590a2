"""FastAPI server — HTTP transport for the PromptHub tools and resources."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from prompthub import __version__
from prompthub.config import EVENT_LOG_FILE, LOG_LEVEL, PROMPTS_FILE, SERVER_HOST, SERVER_NAME, SERVER_PORT
from prompthub.errors import ErrorCode, PromptHubError
from prompthub.events import EventBus
from prompthub.models import SearchQuery
from prompthub.router import PromptRouter
from prompthub.tools import create_default_registry, list_resources, read_resource
from prompthub.vault import InMemoryVault

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

_STATUS_FOR_CODE = {
    ErrorCode.PROMPT_NOT_FOUND: 404,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.ACCESS_DENIED: 403,
}


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------


class ToolArguments(BaseModel):
    """Tool arguments are passed through as-is; the tool registry checks them."""

    model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_default_router() -> PromptRouter:
    """Router over the configured prompts file, or an empty vault if there is none."""
    path = Path(PROMPTS_FILE)
    if path.exists():
        vault = InMemoryVault.from_file(path)
    else:
        vault = InMemoryVault()
        logger.info(f"No prompts file at {path}; starting with an empty vault")
    event_bus = EventBus(Path(EVENT_LOG_FILE)) if EVENT_LOG_FILE else EventBus()
    return PromptRouter(vault, event_bus=event_bus)


def _http_error(error: PromptHubError) -> HTTPException:
    return HTTPException(status_code=_STATUS_FOR_CODE.get(error.code, 500), detail=error.to_dict())


def create_app(router: PromptRouter | None = None) -> FastAPI:
    router = router or create_default_router()
    tools = create_default_registry(router)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await router.initialize()
        logger.info(f"{SERVER_NAME} ready with tools: {tools.names()}")
        yield

    app = FastAPI(title="PromptHub", version=__version__, description="PromptHub MCP server", lifespan=lifespan)
    app.state.router = router
    app.state.tools = tools

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Server info
    # -----------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "name": SERVER_NAME, "version": __version__}

    @app.get("/providers")
    async def providers() -> list[dict]:
        return router.adapters.describe()

    @app.get("/events")
    async def events(limit: int = 50, offset: int = 0, type: str | None = None) -> list[dict]:
        """Recent execution events (polling fallback for the stream)."""
        return [e.to_dict() for e in router.event_bus.recent(limit, offset, type_prefix=type)]

    @app.websocket("/events/stream")
    async def event_stream(websocket: WebSocket, type: str | None = None):
        """Push execution events live, optionally narrowed to a type prefix like `dag.`."""
        queue = router.event_bus.subscribe(type)
        await websocket.accept()
        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event.to_dict())
        except WebSocketDisconnect:
            logger.debug("Event stream client disconnected")
        finally:
            router.event_bus.unsubscribe(queue)

    # -----------------------------------------------------------------------
    # Tools
    # -----------------------------------------------------------------------

    @app.get("/tools")
    async def list_tools() -> dict:
        return {"tools": [t.to_dict() for t in tools.list_tools()]}

    @app.post("/tools/{name}")
    async def call_tool(name: str, args: ToolArguments) -> dict:
        """Invoke a tool. Tool failures are reported in the result, not as HTTP errors."""
        return await tools.dispatch(name, args.model_dump())

    # -----------------------------------------------------------------------
    # Resources
    # -----------------------------------------------------------------------

    @app.get("/resources")
    async def resources() -> dict:
        return {"resources": list_resources()}

    @app.get("/resources/read")
    async def resource(uri: str) -> dict:
        try:
            return await read_resource(router, uri)
        except PromptHubError as e:
            raise _http_error(e)

    # -----------------------------------------------------------------------
    # Prompts (REST convenience)
    # -----------------------------------------------------------------------

    @app.get("/prompts")
    async def search(q: str = "", tag: list[str] | None = Query(None), author: str | None = None,
                     limit: int = 10, offset: int = 0) -> list[dict]:
        query = SearchQuery(text=q, tags=tag, author=author, limit=limit, offset=offset)
        try:
            results = await router.search_prompts(query)
        except PromptHubError as e:
            raise _http_error(e)
        return [p.to_dict() for p in results]

    @app.get("/prompts/{prompt_id}")
    async def prompt_info(prompt_id: str, version: str | None = None) -> dict:
        try:
            return await router.get_prompt_info(prompt_id, version)
        except PromptHubError as e:
            raise _http_error(e)

    return app


app = create_app()


def main():
    """Start the PromptHub server."""
    print(f"Starting {SERVER_NAME} v{__version__} on {SERVER_HOST}:{SERVER_PORT}")
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
