from __future__ import annotations

import logging
from typing import Iterable

from .context import SessionContext
from .events import CommandSent
from .progress import estimate
from .source import Command


class CommandWriter:
    def __init__(self, ctx: SessionContext):
        self.ctx = ctx
        self.lines_sent = 0
        self.bytes_sent = 0

    def run(self, commands: Iterable[Command]) -> int:
        ctx = self.ctx
        for command in commands:
            ctx.pool.acquire()
            data = command.to_bytes()
            try:
                ctx.channel.write(data)
            except OSError:
                logging.debug("write failed at line %d; stopping reader", command.line_number)
                ctx.request_shutdown()
                raise
            elapsed_ms = ctx.elapsed_ms()
            self.lines_sent += 1
            self.bytes_sent += len(data)

            ctx.sink.command_sent(CommandSent(elapsed_ms, command.line_number, command.text))
            if ctx.progress and ctx.total_bytes > 0:
                ctx.sink.progress(
                    estimate(elapsed_ms, command.offset, ctx.total_bytes, line_number=command.line_number)
                )
        return self.lines_sent
