"""
User data stream: a stream session bound to a listen key.

The listen key is issued by the control channel, used as the subscription
path, and kept alive by a renewal loop for as long as the session is open.
A keep-alive failure never fails the stream; the loop is torn down and set
up again once after a fixed backoff.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from binance_stream.config.configs import StreamConfig
from binance_stream.errors.errors import BinanceStreamError, RenewalFailure
from binance_stream.ports.beautifier import Beautifier
from binance_stream.ports.socket import SocketFactory
from binance_stream.stream.session import StreamSession
from binance_stream.stream.types import SessionEvent, SessionState

if TYPE_CHECKING:
    from binance_stream.rest.control import ControlChannel

logger = logging.getLogger(__name__)


class UserDataStreamSession(StreamSession):
    """
    Private account stream keyed by a renewable listen key.

    Usage:
        async with ControlChannel(config.control) as control:
            session = UserDataStreamSession(control, config.stream)
            session.on("executionReport", handle_fill)
            await session.start()
            # ... later ...
            await session.close(release=True)
    """

    def __init__(
        self,
        control: ControlChannel,
        config: Optional[StreamConfig] = None,
        *,
        socket_factory: Optional[SocketFactory] = None,
        beautifier: Optional[Beautifier] = None,
        name: str = "user_data_stream",
    ) -> None:
        super().__init__(
            "",
            config,
            socket_factory=socket_factory,
            beautifier=beautifier,
            name=name,
        )
        self._control = control

        self._acquiring = False  # listen key request in flight
        self._close_while_acquiring = False
        self._renewal_task: Optional[asyncio.Task[None]] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._close_listener_armed = False

    @property
    def listen_key(self) -> Optional[str]:
        """Current listen key, None before the first start."""
        return self.path or None

    @property
    def renewing(self) -> bool:
        return self._renewal_task is not None and not self._renewal_task.done()

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    async def restart(self, interval_s: Optional[float] = None) -> None:
        """
        Start the stream with a fresh listen key, or renew the live connection.

        Raises:
            RequestError: If the listen key cannot be issued
            TransportError: If the control channel is unreachable
        """
        if self._acquiring:
            logger.debug(f"[{self._name}] Restart ignored, listen key request in flight")
            return

        if self._state == SessionState.CLOSED:
            self._acquiring = True
            self._close_while_acquiring = False
            try:
                listen_key = await self._control.create_listen_key()
            finally:
                self._acquiring = False

            if self._close_while_acquiring:
                self._close_while_acquiring = False
                logger.info(f"[{self._name}] Close requested while acquiring listen key, not connecting")
                return

            self._path = listen_key
            logger.info(f"[{self._name}] Listen key acquired")
            self._setup_keep_alive()

        await super().restart(interval_s)

    async def close(self, release: bool = False) -> None:
        """
        Close the session.

        Args:
            release: Also invalidate the listen key on the server
        """
        if self._acquiring:
            self._close_while_acquiring = True
        self._request_close()

        if release and self._path:
            listen_key = self._path
            try:
                await self._control.close_listen_key(listen_key)
            except BinanceStreamError as e:
                logger.warning(f"[{self._name}] Failed to release listen key: {e}")
            else:
                logger.info(f"[{self._name}] Listen key released")

    # --- Renewal ---

    def _setup_keep_alive(self) -> None:
        """Arm the renewal loop; one close listener per activation."""
        self._cancel_renewal()
        self._renewal_task = asyncio.get_running_loop().create_task(
            self._renewal_loop(self._path), name=f"{self._name}_renewal"
        )
        if not self._close_listener_armed:
            self.once(SessionEvent.CLOSE, self._handle_session_closed)
            self._close_listener_armed = True

    async def _renewal_loop(self, listen_key: str) -> None:
        interval_s = self._config.renewal_interval_s
        try:
            while True:
                await asyncio.sleep(interval_s)
                try:
                    await self._control.keep_alive_listen_key(listen_key)
                except BinanceStreamError as e:
                    failure = RenewalFailure(
                        f"Listen key keep-alive failed: {e}",
                        listen_key=listen_key,
                        component=type(self).__name__,
                    )
                    self._handle_renewal_failure(failure)
                    return
                logger.debug(f"[{self._name}] Listen key kept alive")
        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Renewal loop cancelled")

    def _handle_renewal_failure(self, failure: RenewalFailure) -> None:
        backoff_s = self._config.renewal_retry_backoff_s
        logger.warning(f"[{self._name}] {failure}; setting up renewal again in {backoff_s:.0f}s")
        self._renewal_task = None
        if self._retry_handle is not None:
            self._retry_handle.cancel()
        self._retry_handle = asyncio.get_running_loop().call_later(backoff_s, self._retry_keep_alive)

    def _retry_keep_alive(self) -> None:
        self._retry_handle = None
        if self._state == SessionState.CLOSED:
            logger.debug(f"[{self._name}] Session closed, renewal not re-armed")
            return
        self._setup_keep_alive()

    def _cancel_renewal(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
        task, self._renewal_task = self._renewal_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _handle_session_closed(self) -> None:
        self._close_listener_armed = False
        self._cancel_renewal()

    def _url_for_log(self) -> str:
        # The listen key grants access to account data
        return self._url_prefix() + ("<listen key>" if self._path else "")
