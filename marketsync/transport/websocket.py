"""WebSocket session transport built on the websockets asyncio client."""

import asyncio
from http import HTTPStatus
from typing import Optional

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
)

from ..config.defaults import TransportParams
from ..data.models import TradeIntent
from ..data.parsers import EventCodec
from ..errors import AuthenticationError, ProtocolError, TransportError
from ..state.models import DisconnectReason
from .base import LifecycleKind, LifecycleSignal, SessionTransport

logger = structlog.get_logger(__name__)

_AUTH_STATUSES = {HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN}


class WebSocketTransport(SessionTransport):
    """Session transport over a single WebSocket connection."""

    def __init__(self, params: TransportParams, codec: Optional[EventCodec] = None):
        super().__init__()
        self.params = params
        self.codec = codec or EventCodec()
        self.logger = logger.bind(url=params.url)

        self._connection: Optional[ClientConnection] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._closing_reason: Optional[DisconnectReason] = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    async def connect(self, token: str) -> None:
        if self._connection is not None:
            raise TransportError("Transport is already connected", url=self.params.url)
        if not token:
            raise AuthenticationError("No credential available")

        try:
            connection = await connect(
                self.params.url,
                additional_headers={"Authorization": f"Bearer {token}"},
                open_timeout=self.params.open_timeout_seconds,
                ping_interval=self.params.ping_interval_seconds,
                close_timeout=self.params.close_timeout_seconds,
            )
        except InvalidStatus as e:
            status = e.response.status_code
            if status in _AUTH_STATUSES:
                raise AuthenticationError(
                    f"Server rejected credential (HTTP {status})",
                    status_code=status
                ) from e
            raise TransportError(
                f"Handshake rejected (HTTP {status})",
                url=self.params.url
            ) from e
        except (InvalidURI, InvalidHandshake, OSError, TimeoutError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Could not connect: {e}",
                url=self.params.url,
                context={"error_type": type(e).__name__}
            ) from e

        self.generation += 1
        generation = self.generation
        self._connection = connection
        self._closing_reason = None
        self._outbox = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._write_loop(connection, self._outbox))
        self._reader_task = asyncio.create_task(self._read_loop(connection, generation))

        self.logger.info("Transport connected", generation=generation)
        self._publish_lifecycle(LifecycleSignal(LifecycleKind.CONNECTED, generation))

    async def disconnect(self, reason: DisconnectReason = DisconnectReason.LOGOUT) -> None:
        connection = self._connection
        if connection is None:
            return

        self._closing_reason = reason
        self.logger.info("Closing transport", reason=reason.value, generation=self.generation)
        await connection.close()

        reader = self._reader_task
        if reader is not None and reader is not asyncio.current_task():
            await asyncio.gather(reader, return_exceptions=True)

    def send(self, intent: TradeIntent) -> None:
        if self._connection is None or self._outbox is None:
            raise TransportError("Transport is not connected", url=self.params.url)
        self._outbox.put_nowait(self.codec.encode_intent(intent))

    async def _write_loop(self, connection: ClientConnection, outbox: asyncio.Queue) -> None:
        while True:
            frame = await outbox.get()
            try:
                await connection.send(frame)
            except ConnectionClosed:
                # The reader reports the closure
                return

    async def _read_loop(self, connection: ClientConnection, generation: int) -> None:
        reason = DisconnectReason.TRANSPORT_CLOSED
        error: Optional[Exception] = None
        try:
            async for raw in connection:
                try:
                    event = self.codec.decode_raw(raw)
                except ProtocolError as e:
                    self.logger.warning(
                        "Rejected inbound frame",
                        error=str(e),
                        error_type=type(e).__name__,
                        generation=generation
                    )
                    self._publish_lifecycle(LifecycleSignal(
                        LifecycleKind.ERROR, generation, error=e
                    ))
                    continue
                self._publish_event(event)
        except ConnectionClosedError as e:
            reason = DisconnectReason.TRANSPORT_ERROR
            error = TransportError(
                "Connection lost",
                url=self.params.url,
                close_code=e.rcvd.code if e.rcvd else None
            )
        except Exception as e:
            reason = DisconnectReason.TRANSPORT_ERROR
            error = TransportError(
                "Inbound reader failed",
                url=self.params.url,
                context={"error_type": type(e).__name__}
            )
            self.logger.error(
                "Inbound reader failed",
                error=str(e),
                error_type=type(e).__name__,
                generation=generation,
                exc_info=True
            )
        finally:
            try:
                # The socket must not outlive its reader
                if self._connection is connection:
                    await connection.close()
            finally:
                self._finish(generation, reason, error)

    def _finish(self, generation: int, reason: DisconnectReason, error: Optional[Exception]) -> None:
        if generation != self.generation or self._connection is None:
            return

        if self._closing_reason is not None:
            reason = self._closing_reason
            error = None

        if self._writer_task is not None:
            self._writer_task.cancel()
        self._connection = None
        self._outbox = None
        self._writer_task = None
        self._reader_task = None
        self._closing_reason = None

        self.logger.info("Transport disconnected", reason=reason.value, generation=generation)
        self._publish_lifecycle(LifecycleSignal(
            LifecycleKind.DISCONNECTED, generation, reason=reason, error=error
        ))
