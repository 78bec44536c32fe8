import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request

from shared.exceptions import RequestCanceledError, RequestTimeoutError


@asynccontextmanager
async def request_deadline(request: Request) -> AsyncIterator[None]:
    """Bound the enclosed work by the configured request timeout and by the
    client connection.

    Work is not started for a client that has already disconnected. Work that
    overruns, or whose client disconnects while it runs, is cancelled, so the
    request session rolls back instead of committing a late write.
    """
    if await request.is_disconnected():
        raise RequestCanceledError()

    task = asyncio.current_task()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, task))
    timeout = request.app.state.settings.REQUEST_TIMEOUT_SECONDS
    try:
        async with asyncio.timeout(timeout):
            yield
    except TimeoutError as exc:
        raise RequestTimeoutError() from exc
    except asyncio.CancelledError:
        # Only a cancel sent by the watcher becomes a 499
        sent_by_watcher = (
            watcher.done() and not watcher.cancelled() and watcher.exception() is None
        )
        if sent_by_watcher and task.uncancel() == 0:
            raise RequestCanceledError() from None
        raise
    finally:
        watcher.cancel()


async def _cancel_on_disconnect(request: Request, task: asyncio.Task) -> None:
    # The body has already been read, so the next message of interest is the
    # disconnect.
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            break
    task.cancel()
