"""ASGI JSON adapter exposing an explorer session.

This adapter provides a framework-agnostic ASGI application that can be
served by any ASGI server (uvicorn, hypercorn, daphne) or mounted inside
a FastAPI/Starlette app.
"""

import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import parse_qs

from promscope.adapters.frameworks.query_params import (
    _parse_bool_param,
    _parse_contains_param,
    _parse_group_by_param,
    _parse_label_filters,
    _parse_name_param,
    _parse_timestamp_param,
)
from promscope.adapters.storage.layout import InMemoryLayoutStorage
from promscope.core.exceptions import ManualParseFailure
from promscope.core.models import to_jsonable
from promscope.core.ports import LayoutStoragePort
from promscope.runtime.session import ExplorerSession

logger = logging.getLogger(__name__)

Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

JSON_CONTENT_TYPE = "application/json"


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary.

    Args:
        scope: ASGI scope dictionary containing request metadata.

    Returns:
        Dictionary mapping parameter names to lists of values.
        Returns empty dict if query_string is missing or empty.
    """
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string)


async def _read_body(receive: Receive) -> bytes:
    """Collect the full request body from ``http.request`` messages."""
    chunks: list[bytes] = []
    while True:
        message = await receive()
        if message["type"] != "http.request":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value.
        body: Response body as string (will be encoded to bytes).
    """
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


def _dump_json(payload: Any) -> str:
    return json.dumps(to_jsonable(payload), allow_nan=False)


async def _send_json(send: Send, status: int, payload: Any) -> None:
    await _send_response(send, status, JSON_CONTENT_TYPE, _dump_json(payload))


async def _handle_endpoint(
    send: Send,
    endpoint_func: Callable[[], Coroutine[Any, Any, Any]],
    log_message: str,
) -> None:
    """Execute an endpoint function with error handling and send response.

    Args:
        send: ASGI send callable for writing response.
        endpoint_func: Async function returning a JSON-serialisable payload.
        log_message: Message to log on error.
    """
    try:
        payload = await endpoint_func()
        body = _dump_json(payload)
    except Exception:
        logger.exception(log_message)
        await _send_json(send, 500, {"error": "Internal Server Error"})
        return
    await _send_response(send, 200, JSON_CONTENT_TYPE, body)


def create_asgi_app(
    session: ExplorerSession,
    layout_storage: LayoutStoragePort | None = None,
) -> ASGIApp:
    """Create an ASGI app serving JSON views of ``session``.

    Routes:
        ``POST /ingest``: parse the request body as exposition text.
        ``GET /discover``, ``/catalog``, ``/status``.
        ``GET /histogram``, ``/rate``, ``/summary``, ``/counter``,
        ``/scalar``, ``/widget``: views of the metric in ``?name=``.
        ``GET``/``PUT /layout``: the persisted dashboard document.

    Args:
        session: Session whose history the views are computed from.
        layout_storage: Layout document store; in-memory when omitted.

    Returns:
        ASGI application callable.
    """
    layouts = layout_storage or InMemoryLayoutStorage()
    layout_key = session.config.storage_key

    async def ingest(scope: Scope, receive: Receive, send: Send) -> None:
        params = _parse_query_params(scope)
        body = await _read_body(receive)
        try:
            snapshot = session.ingest_manual(
                body.decode("utf-8", errors="replace"),
                _parse_timestamp_param(params),
            )
        except ManualParseFailure as failure:
            await _send_json(
                send,
                400,
                {"error": str(failure), "type": failure.kind, "title": failure.title},
            )
            return
        await _send_json(
            send,
            200,
            {"timestamp": snapshot.timestamp, "metrics": len(snapshot.series)},
        )

    async def layout(scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("method") == "PUT":
            try:
                document = json.loads(await _read_body(receive) or b"{}")
            except json.JSONDecodeError:
                await _send_json(send, 400, {"error": "Invalid JSON document"})
                return

            async def save() -> dict[str, Any]:
                await layouts.save(layout_key, document)
                return await layouts.load(layout_key)

            await _handle_endpoint(send, save, "Error saving layout")
        else:
            await _handle_endpoint(
                send, lambda: layouts.load(layout_key), "Error loading layout"
            )

    def view(scope: Scope) -> Callable[[], Coroutine[Any, Any, Any]] | None:
        """Resolve a read-only view route to its payload builder."""
        params = _parse_query_params(scope)
        name = _parse_name_param(params)
        group_by = _parse_group_by_param(params)
        builders: dict[str, Callable[[], Any]] = {
            "/discover": lambda: session.discover().to_dict(),
            "/catalog": lambda: [group.to_dict() for group in session.catalog()],
            "/status": session.status,
            "/histogram": lambda: session.histogram(name, group_by).to_dict(),
            "/rate": lambda: session.rate(
                name,
                _parse_label_filters(params),
                _parse_contains_param(params),
            ).to_dict(),
            "/summary": lambda: session.summary(
                name, _parse_bool_param(params, "grouped")
            ).to_dict(),
            "/counter": lambda: [
                {"name": row.name, "value": row.value}
                for row in session.counter(name, group_by)
            ],
            "/scalar": lambda: {
                "name": name,
                "value": session.scalar(name, _parse_label_filters(params)),
            },
            "/widget": lambda: session.widget(name, group_by).to_dict(),
        }
        builder = builders.get(scope["path"])
        if builder is None:
            return None

        async def endpoint() -> Any:
            return builder()

        return endpoint

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]
        if path == "/ingest" and scope.get("method") == "POST":
            await ingest(scope, receive, send)
        elif path == "/layout":
            await layout(scope, receive, send)
        elif (endpoint := view(scope)) is not None:
            await _handle_endpoint(send, endpoint, f"Error building {path} view")
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app
