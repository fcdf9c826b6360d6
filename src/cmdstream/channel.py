from __future__ import annotations

import logging
import select
import socket
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import serial

from .constants import DEFAULT_BAUDRATE, DEFAULT_READ_TIMEOUT_S

if TYPE_CHECKING:
    from .config import Settings


class ChannelError(OSError):
    pass


class ChannelOpenError(ChannelError):
    pass


@runtime_checkable
class Channel(Protocol):
    """Duplex byte channel to the receiver.

    The writer loop only calls ``write`` and the reader loop only calls
    ``read``, so implementations need no locking between the two.
    """

    def write(self, data: bytes) -> None:
        """Writes the whole buffer or raises ``ChannelError``."""
        ...

    def read(self) -> bytes:
        """Returns available bytes, or ``b""`` once an idle slice expires.

        Raises ``OSError`` when the channel is closed or broken.
        """
        ...

    def close(self) -> None:
        ...


class SerialChannel:
    def __init__(self, ser: serial.Serial):
        self.ser = ser

    @classmethod
    def open(
        cls,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        read_timeout_s: float = DEFAULT_READ_TIMEOUT_S,
    ) -> "SerialChannel":
        try:
            ser = serial.Serial(
                port,
                baudrate,
                timeout=read_timeout_s,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
            )
        except (serial.SerialException, ValueError) as exc:
            raise ChannelOpenError(f"cannot open serial port {port}: {exc}") from exc
        # asserting DTR resets most Arduino-style boards
        ser.dtr = True
        ser.rts = True
        logging.debug("opened %s at %d bps", port, baudrate)
        return cls(ser)

    def write(self, data: bytes) -> None:
        try:
            self.ser.write(data)
        except serial.SerialException as exc:
            raise ChannelError(f"serial write failed: {exc}") from exc

    def read(self) -> bytes:
        data = self.ser.read(1)
        if data:
            waiting = self.ser.in_waiting
            if waiting:
                data += self.ser.read(waiting)
        return data

    def close(self) -> None:
        self.ser.close()


class TcpChannel:
    """Channel over a TCP serial bridge (ser2net, ESP-Link and the like)."""

    def __init__(self, sock: socket.socket, read_timeout_s: float = DEFAULT_READ_TIMEOUT_S):
        self.sock = sock
        self.read_timeout_s = read_timeout_s

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        read_timeout_s: float = DEFAULT_READ_TIMEOUT_S,
        connect_timeout_s: float = 5.0,
    ) -> "TcpChannel":
        try:
            sock = socket.create_connection((host, port), timeout=connect_timeout_s)
        except OSError as exc:
            raise ChannelOpenError(f"cannot connect to {host}:{port}: {exc}") from exc
        sock.settimeout(None)
        logging.debug("connected to %s:%d", host, port)
        return cls(sock, read_timeout_s)

    def write(self, data: bytes) -> None:
        try:
            self.sock.sendall(data)
        except OSError as exc:
            raise ChannelError(f"tcp write failed: {exc}") from exc

    def read(self) -> bytes:
        ready, _, _ = select.select([self.sock], [], [], self.read_timeout_s)
        if not ready:
            return b""
        data = self.sock.recv(4096)
        if not data:
            raise ChannelError("connection closed by peer")
        return data

    def close(self) -> None:
        self.sock.close()


def open_channel(settings: "Settings") -> Channel:
    if settings.connection_type == "tcp":
        return TcpChannel.connect(settings.host, settings.tcp_port, read_timeout_s=settings.read_timeout_s)
    return SerialChannel.open(settings.port, settings.baudrate, read_timeout_s=settings.read_timeout_s)
