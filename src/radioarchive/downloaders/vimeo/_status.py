#!/usr/bin/python3

import asyncio
import sys
from contextvars import ContextVar

from ...models import messages as messages
from ...output import BaseMessageHandler

# status queue for downloading tasks; episode and stream tasks report through this
# messages are dropped when no queue is installed (library use without handlers)
status_queue_ctx: ContextVar[asyncio.Queue | None] = ContextVar("status_queue", default=None)


def report(message: messages.BaseMessage) -> None:
    status_queue = status_queue_ctx.get()
    if status_queue is not None:
        status_queue.put_nowait(message)


# marks the end of the queue
_CLOSE = messages.BaseMessage()


class StatusManager:
    """
    Installs a status queue for the current context and forwards queued messages to the given
    handlers until the block exits.  Messages still queued at exit are flushed before returning.
    """

    def __init__(self, handlers: list[BaseMessageHandler]):
        self.handlers = list(handlers)
        self.queue: asyncio.Queue[messages.BaseMessage] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    async def __aenter__(self) -> "StatusManager":
        status_queue_ctx.set(self.queue)
        self._task = asyncio.create_task(self._run())
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._task:
            # wake the forwarding task so it can drain the queue and exit
            self.queue.put_nowait(_CLOSE)
            await self._task

    async def _run(self) -> None:
        while True:
            message = await self.queue.get()
            if message is _CLOSE:
                return
            for handler in list(self.handlers):
                try:
                    await handler.handle_message(message)
                except Exception as exc:
                    # a broken handler is detached; the remaining ones keep draining the queue
                    self.handlers = [h for h in self.handlers if h is not handler]
                    print(
                        f"Status handler {type(handler).__name__} failed and was removed: "
                        f"{type(exc).__name__}: {exc}",
                        file=sys.stderr,
                    )
