"""Snapshot and mapping HTTP endpoints.

``GET /`` serves the value cache; ``/fieldMap.json`` and ``/valuesMap.json``
serve and replace the mappings; ``/health`` reports mapping readiness.
Replacement is wholesale: the posted object becomes the new map.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from mqtt2influxdb.exceptions import MappingLoadError, MappingPersistError
from mqtt2influxdb.models import MappingConfig, MatchMode
from mqtt2influxdb.state import MappingStore, ValueCache

_logger = logging.getLogger(__name__)

CACHE_KEY = web.AppKey("cache", ValueCache)
STORE_KEY = web.AppKey("store", MappingStore)
MODE_KEY = web.AppKey("mode", MatchMode)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,HEAD,PUT,PATCH,POST,DELETE",
    "Access-Control-Allow-Headers": "Content-Type",
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        response: web.StreamResponse = web.Response(status=204)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(_CORS_HEADERS)
            raise
    response.headers.update(_CORS_HEADERS)
    return response


async def get_snapshot(request: web.Request) -> web.Response:
    return web.json_response(request.app[CACHE_KEY].snapshot())


async def get_field_map(request: web.Request) -> web.Response:
    return web.json_response(request.app[STORE_KEY].field_map())


async def get_values_map(request: web.Request) -> web.Response:
    return web.json_response(request.app[STORE_KEY].values_map())


async def get_health(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    body = {
        "ready": store.is_ready,
        "mode": str(request.app[MODE_KEY]),
        "sources": store.sources,
    }
    return web.json_response(body, status=200 if store.is_ready else 503)


async def _replace(
    request: web.Request,
    name: str,
    replace: Callable[[Any], MappingConfig],
) -> web.Response:
    try:
        body = await request.json()
    except ValueError:
        return web.json_response({"error": f"{name} body is not valid JSON"}, status=400)

    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, replace, body)
    except MappingLoadError as exc:
        return web.json_response({"error": str(exc)}, status=400)
    except MappingPersistError as exc:
        _logger.error("Error saving %s file: %s", name, exc)
        return web.json_response({"error": str(exc)}, status=500)
    return web.Response(status=200)


async def post_field_map(request: web.Request) -> web.Response:
    return await _replace(request, "fieldMap.json", request.app[STORE_KEY].replace_field_map)


async def post_values_map(request: web.Request) -> web.Response:
    return await _replace(request, "valuesMap.json", request.app[STORE_KEY].replace_values_map)


def build_app(*, cache: ValueCache, store: MappingStore, mode: MatchMode) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    app[CACHE_KEY] = cache
    app[STORE_KEY] = store
    app[MODE_KEY] = mode
    app.router.add_get("/", get_snapshot)
    app.router.add_get("/health", get_health)
    app.router.add_get("/fieldMap.json", get_field_map)
    app.router.add_post("/fieldMap.json", post_field_map)
    app.router.add_get("/valuesMap.json", get_values_map)
    app.router.add_post("/valuesMap.json", post_values_map)
    return app


async def start_http_server(app: web.Application, *, host: str, port: int) -> web.AppRunner:
    """Bind *app* and return the runner; call ``runner.cleanup()`` to stop."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    _logger.info("HTTP server listening on %s:%s", host, port)
    return runner
