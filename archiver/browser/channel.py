"""Request/response bridge between the host and archive pages.

The host can only *evaluate a script in the page and read back its result*,
while requests originate in the page.  The bridge turns that around: the host
keeps asking the page-side ``window.ipcClient`` for its next outbound call and
hands back the answer to the previous one in the same round trip::

    host                                    page
    ----                                    ----
    advanceQueue(null)              ──▶     next request (or null)
    handler(request)
    advanceQueue({data: ...})       ──▶     next request (or null)
    ...

A ``null`` answer ends the loop; the next qualifying page load restarts it.
Requests are handled strictly one at a time in the order the page produced
them.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from archiver.errors import HandlerFailure, HandlerMissingError

logger = logging.getLogger(__name__)

Evaluator = Callable[[str], Awaitable[Any]]
IpcHandler = Callable[[Any], Awaitable[Any]]


def advance_queue_script(arg: Optional[dict[str, Any]]) -> str:
    """Script delivering *arg* to the page client and returning its next request."""
    return (
        "(window.ipcClient && window.ipcClient.advanceQueue)"
        f" ? window.ipcClient.advanceQueue({json.dumps(arg, default=str)})"
        " : null"
    )


class MessageChannel:
    """Single-slot, sequential request/response loop over script evaluation.

    At most one loop runs per channel.  :meth:`start` bumps the generation
    counter and cancels the previous loop, so a restart (e.g. after a new page
    load) discards in-flight state instead of interleaving with it.
    """

    def __init__(
        self,
        evaluate: Evaluator,
        handler: Optional[IpcHandler] = None,
    ) -> None:
        self._evaluate = evaluate
        self._handler = handler
        self._generation = 0
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_handler(self, handler: Optional[IpcHandler]) -> None:
        self._handler = handler

    def start(self) -> asyncio.Task[None]:
        """(Re)start the loop, discarding any loop already running."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(self._run(self._generation))
        return self._task

    def close(self) -> None:
        """Stop the current loop without starting a new one."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _run(self, generation: int) -> None:
        try:
            request = await self._evaluate(advance_queue_script(None))
            while request is not None:
                if generation != self._generation:
                    return
                response = await self._dispatch(request)
                if generation != self._generation:
                    return
                request = await self._evaluate(advance_queue_script(response))
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            # Usually the page navigated away mid round-trip.
            logger.debug("IPC channel closed: %s", exc)

    async def _dispatch(self, request: Any) -> dict[str, Any]:
        try:
            if self._handler is None:
                raise HandlerMissingError()
            return {"data": await self._handler(request)}
        except HandlerFailure as exc:
            return {"error": exc.payload}
        except HandlerMissingError as exc:
            logger.warning("IPC request rejected: %s", exc)
            return {"error": str(exc)}
        except Exception as exc:  # noqa: BLE001
            logger.warning("IPC handler failed: %s", exc)
            return {"error": str(exc)}
