from __future__ import annotations

import io
import os
import re
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator

from .constants import LINE_TERMINATOR

# everything from the first ';' or '(' to the end of the line is a comment
COMMENT_RE = re.compile(r"[;(]+.*[\n)]*")


class CommandSourceError(OSError):
    pass


def sanitize(line: str) -> str:
    return COMMENT_RE.sub("", line).strip()


@dataclass(frozen=True, slots=True)
class Command:
    text: str
    line_number: int
    offset: int  # source bytes consumed once this line is read

    def to_bytes(self) -> bytes:
        return self.text.encode("utf-8") + LINE_TERMINATOR


class CommandSource:
    """Sanitized, non-empty commands in source order.

    Comment and blank lines are dropped here, so they never reach the writer
    and never cost window credit. ``total_bytes`` is the raw source size and
    ``Command.offset`` the position within it, which is what progress is
    measured against.
    """

    def __init__(self, stream: BinaryIO, total_bytes: int, name: str = "<memory>"):
        self.stream = stream
        self.total_bytes = total_bytes
        self.name = name
        self.skipped = 0

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "CommandSource":
        try:
            f = open(path, "rb")
        except OSError as exc:
            raise CommandSourceError(f"cannot open command file {path}: {exc}") from exc
        total_bytes = os.fstat(f.fileno()).st_size
        return cls(f, total_bytes, name=os.fspath(path))

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "CommandSource":
        text = "".join(line if line.endswith("\n") else line + "\n" for line in lines)
        data = text.encode("utf-8")
        return cls(io.BytesIO(data), len(data))

    def __iter__(self) -> Iterator[Command]:
        offset = 0
        line_number = 0
        while True:
            try:
                raw = self.stream.readline()
            except OSError as exc:
                raise CommandSourceError(f"cannot read command file {self.name}: {exc}") from exc
            if not raw:
                break
            line_number += 1
            offset += len(raw)
            text = sanitize(raw.decode("utf-8", errors="replace"))
            if not text:
                self.skipped += 1
                continue
            yield Command(text=text, line_number=line_number, offset=offset)

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> "CommandSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
