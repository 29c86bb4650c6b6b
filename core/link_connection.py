"""
IEC 60870-5-101 unbalanced transmission, controlling (primary) station.

An IEC101Connection drives one secondary station over a ByteChannel that
carries FT1.2 frames:
- Link initialization: REQUEST_LINK_STATUS, then RESET_REMOTE_LINK
- SEND/CONFIRM of user data with an alternating frame count bit (FCB)
- REQUEST/RESPOND of class 1 and class 2 data, periodic or on demand
- Repetition of an unanswered request, unchanged, up to link_max_retries times

The primary keeps exactly one request outstanding. The receive loop hands
each secondary frame to the waiting request and delivers the ASDU of a
USER_DATA response to the listener. A response with the ACD bit set makes
the next poll a class 1 request.

Threads:
- The receive loop (one daemon thread) parses frames in arrival order.
- The TimeoutManager worker runs the periodic poll.
- Callers send from their own threads; _request_lock serializes requests.
Lock order: _request_lock, _state_lock.

Any framing, checksum, element, timeout or transport error closes the
connection and is reported once through on_connection_lost(cause).
"""

import queue
import threading
from enum import Enum
from typing import Callable, List, Optional

from iec60870py.core.channel import ByteChannel
from iec60870py.core.config import IEC60870Config
from iec60870py.core.connection import ConnectionEventListener
from iec60870py.core.exceptions import (
    IEC60870CommunicationError,
    IEC60870Error,
    IEC60870ProtocolError,
    IEC60870TimeoutError,
    IEC60870UnsupportedTypeError,
)
from iec60870py.core.functions import ApplicationFunctions
from iec60870py.core.timeout import TimeoutManager, TimeoutTask
from iec60870py.layers.application import ApplicationLayer
from iec60870py.layers.asdu import ASdu
from iec60870py.layers.link import (
    ControlField,
    LinkFrame,
    LinkFrameKind,
    LinkLayer,
    SecondaryFunction,
)
from iec60870py.utils.logging import get_logger, log_frame

POLL_TIMER = "poll"

# A station without class data may answer the status request with NACK_NO_DATA
_LINK_STATUS_REPLIES = (SecondaryFunction.LINK_STATUS, SecondaryFunction.NACK_NO_DATA)


class LinkState(Enum):
    """Link layer lifecycle of an IEC101Connection."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    ACTIVE = "active"


def _function_of(frame: LinkFrame) -> Optional[int]:
    return frame.control.function if frame.control is not None else None


def _is_ack(frame: LinkFrame) -> bool:
    return frame.kind is LinkFrameKind.SINGLE_ACK or (
        frame.kind is LinkFrameKind.FIXED and _function_of(frame) == SecondaryFunction.ACK
    )


def _is_nack(frame: LinkFrame) -> bool:
    return frame.kind is LinkFrameKind.SINGLE_NACK or _function_of(frame) == SecondaryFunction.NACK


class IEC101Connection(ApplicationFunctions):
    """
    Primary station of an unbalanced IEC 60870-5-101 link.

    Usage:
        connection = IEC101Connection(channel, IEC60870Config(link_address=3))
        connection.start(listener)      # receive loop running
        connection.initialize()         # link status + reset, polling starts
        connection.interrogation(common_address=1)
        ...
        connection.close()

    The application functions (interrogation, commands, file transfer) are
    the same as on a -104 Connection and go out as confirmed user data.
    """

    def __init__(
        self,
        channel: ByteChannel,
        config: Optional[IEC60870Config] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize connection.

        Args:
            channel: Byte channel to the secondary station (owned by the connection from now on)
            config: Configuration settings; link_address selects the secondary station
            name: Label used in log messages (defaults to the channel description)
        """
        self.config = config or IEC60870Config()
        self.config.validate()
        self.name = name or channel.description

        self._channel = channel
        self._address = self.config.link_address
        self._link = LinkLayer(self.config.link_address_length, self.config.field_widths)
        self._application = ApplicationLayer(self.config.originator_address)
        self._logger = get_logger("link")

        self._state_lock = threading.Lock()
        self._request_lock = threading.RLock()
        # Secondary frames for the waiting request; None once closed
        self._responses: "queue.Queue[Optional[LinkFrame]]" = queue.Queue()

        # Guarded by _state_lock
        self._state = LinkState.IDLE
        self._access_demand = False
        self._poll_class_1_next = True
        self._closed = False
        self._close_cause: Optional[Exception] = None

        self._listener: Optional[ConnectionEventListener] = None
        self._close_callbacks: List[Callable[["IEC101Connection"], None]] = []
        self._timeouts = TimeoutManager(name=f"iec60870-link-timer-{self.name}")
        self._reader: Optional[threading.Thread] = None

    @property
    def state(self) -> LinkState:
        with self._state_lock:
            return self._state

    @property
    def is_closed(self) -> bool:
        with self._state_lock:
            return self._closed

    @property
    def close_cause(self) -> Optional[Exception]:
        """Exception that closed the connection, None if open or closed locally."""
        with self._state_lock:
            return self._close_cause

    @property
    def link_address(self) -> int:
        return self._address

    @property
    def broadcast_address(self) -> Optional[int]:
        """All-ones link address for the configured width, None without link address."""
        if self.config.link_address_length == 0:
            return None
        return (1 << (8 * self.config.link_address_length)) - 1

    @property
    def access_demand(self) -> bool:
        """True while the secondary signals class 1 data (ACD of its last response)."""
        with self._state_lock:
            return self._access_demand

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, listener: Optional[ConnectionEventListener] = None) -> None:
        """
        Start the receive loop and timer worker.

        Raises:
            IEC60870ProtocolError: If the connection was already started
            IEC60870CommunicationError: If the connection is closed
        """
        with self._state_lock:
            self._check_open()
            if self._reader is not None:
                raise IEC60870ProtocolError(f"{self.name}: connection already started")
            self._listener = listener or ConnectionEventListener()
            self._reader = threading.Thread(
                target=self._receive_loop,
                name=f"iec60870-link-reader-{self.name}",
                daemon=True,
            )
        self._timeouts.start()
        self._reader.start()

    def add_close_callback(self, callback: Callable[["IEC101Connection"], None]) -> None:
        """Register callback(connection) to run after the connection closes."""
        self._close_callbacks.append(callback)

    def initialize(self) -> None:
        """
        Bring the link up: request the link status, then reset the remote link.

        On success the link is ACTIVE, on_connection_ready fires and periodic
        polling starts when poll_interval is positive.

        Raises:
            IEC60870TimeoutError: If the secondary does not answer (connection is closed)
            IEC60870ProtocolError: If the connection is not started, or the secondary
                answers with an unexpected function (link stays IDLE)
            IEC60870CommunicationError: If the connection closes meanwhile
        """
        with self._state_lock:
            self._check_open()
            if self._reader is None:
                raise IEC60870ProtocolError(f"{self.name}: connection not started")
            if self._state is LinkState.ACTIVE:
                return
            self._state = LinkState.INITIALIZING

        self._logger.info(f"{self.name}: initializing link to station {self._address}")
        status = self._request(
            self._link.build_request_link_status(self._address), "REQUEST_LINK_STATUS"
        )
        if _function_of(status) not in _LINK_STATUS_REPLIES:
            self._abort_initialization(f"unexpected response to REQUEST_LINK_STATUS: {status!r}")

        reply = self._request(
            self._link.build_reset_remote_link(self._address), "RESET_REMOTE_LINK"
        )
        if not _is_ack(reply):
            self._abort_initialization(f"unexpected response to RESET_REMOTE_LINK: {reply!r}")

        with self._state_lock:
            self._check_open()
            self._state = LinkState.ACTIVE
            self._poll_class_1_next = True
        self._logger.info(f"{self.name}: link to station {self._address} initialized")
        self._schedule_poll(self.config.poll_interval)
        self._notify("on_connection_ready")

    def _abort_initialization(self, reason: str) -> None:
        with self._state_lock:
            if self._state is LinkState.INITIALIZING:
                self._state = LinkState.IDLE
        raise IEC60870ProtocolError(f"{self.name}: {reason}")

    def close(self) -> None:
        """Close the connection. Safe to call repeatedly."""
        self._close(None)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the receive loop to finish."""
        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout)

    def __enter__(self) -> "IEC101Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _check_open(self) -> None:
        # Caller holds _state_lock
        if self._closed:
            raise IEC60870CommunicationError(f"{self.name}: connection is closed")

    def _check_active(self) -> None:
        with self._state_lock:
            self._check_open()
            if self._state is not LinkState.ACTIVE:
                raise IEC60870ProtocolError(
                    f"{self.name}: link to station {self._address} is not initialized"
                )

    def _raise_if_closed(self, during: str) -> None:
        with self._state_lock:
            if self._closed:
                raise IEC60870CommunicationError(
                    f"{self.name}: connection closed during {during}: {self._close_cause}"
                )

    def _close(self, cause: Optional[Exception]) -> None:
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            self._close_cause = cause
            self._state = LinkState.IDLE

        self._timeouts.cancel()
        self._responses.put(None)
        try:
            self._channel.close()
        except OSError as e:
            self._logger.debug(f"{self.name}: error closing channel: {e}")

        if cause is None:
            self._logger.info(f"{self.name}: connection closed")
        else:
            self._logger.error(f"{self.name}: connection lost: {cause}")

        self._notify("on_connection_lost", cause)
        for callback in list(self._close_callbacks):
            try:
                callback(self)
            except Exception:
                self._logger.exception(f"{self.name}: close callback failed")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def send(self, asdu: ASdu, confirmed: bool = True) -> None:
        """
        Send an ASDU as user data.

        Confirmed user data (SEND/CONFIRM) waits for the secondary's ACK.
        Unconfirmed user data (SEND/NO REPLY) returns once written; it is
        always used for the broadcast address.

        Args:
            asdu: ASDU to send
            confirmed: USER_DATA_CONFIRMED (default) or USER_DATA_NO_REPLY

        Raises:
            IEC60870ProtocolError: If the link is not initialized, or the secondary
                rejects the frame (NACK) or answers with another function
            IEC60870TimeoutError: If no response arrives after all repetitions
                (connection is closed)
            IEC60870FrameError: If the ASDU cannot be encoded (nothing is sent)
            IEC60870CommunicationError: If the channel fails (connection is closed)
        """
        self._check_active()
        if not confirmed or self._address == self.broadcast_address:
            with self._request_lock:
                self._write(self._link.build_user_data(self._address, asdu, confirmed=False))
            return

        with self._request_lock:
            data = self._link.build_user_data(self._address, asdu)
            response = self._request(data, "USER_DATA_CONFIRMED")
        if _is_nack(response):
            raise IEC60870ProtocolError(
                f"{self.name}: station {self._address} rejected user data", type_id=asdu.type_id
            )
        if not _is_ack(response):
            raise IEC60870ProtocolError(
                f"{self.name}: unexpected response to user data: {response!r}",
                type_id=asdu.type_id,
            )

    def request_class_1_data(self) -> Optional[ASdu]:
        """
        Poll class 1 (event) data once.

        Returns:
            The ASDU of the response, also delivered to the listener; None when
            the station has no data or answered with an unsupported ASDU
        """
        return self._request_class_data(1)

    def request_class_2_data(self) -> Optional[ASdu]:
        """Poll class 2 (cyclic) data once. See request_class_1_data()."""
        return self._request_class_data(2)

    def _request_class_data(self, data_class: int) -> Optional[ASdu]:
        self._check_active()
        description = f"REQUEST_CLASS_{data_class}_DATA"
        with self._request_lock:
            data = self._link.build_request_class_data(self._address, data_class)
            response = self._request(data, description)
        if response.kind is LinkFrameKind.VARIABLE:
            return response.asdu
        if response.kind is LinkFrameKind.SINGLE_ACK:
            return None
        if _function_of(response) == SecondaryFunction.NACK_NO_DATA:
            return None
        raise IEC60870ProtocolError(
            f"{self.name}: unexpected response to {description}: {response!r}"
        )

    def _request(self, data: bytes, description: str) -> LinkFrame:
        """
        Transmit a primary frame and wait for the secondary's response.

        An unanswered frame is repeated unchanged, FCB included, so the
        secondary recognizes the repetition.

        Raises:
            IEC60870TimeoutError: If every repetition goes unanswered (connection is closed)
            IEC60870CommunicationError: If the connection closes meanwhile
        """
        timeout = self.config.link_response_timeout
        attempts = self.config.link_max_retries + 1
        with self._request_lock:
            self._discard_late_responses()
            for attempt in range(1, attempts + 1):
                self._raise_if_closed(description)
                if attempt > 1:
                    self._logger.info(
                        f"{self.name}: no response to {description}, "
                        f"repeating (attempt {attempt}/{attempts})"
                    )
                self._write(data)
                try:
                    response = self._responses.get(timeout=timeout)
                except queue.Empty:
                    continue
                if response is None:
                    self._raise_if_closed(description)
                    continue
                return response

        error = IEC60870TimeoutError(
            f"{self.name}: no response to {description} from station {self._address} "
            f"after {attempts} attempt(s)",
            timeout_seconds=timeout,
        )
        self._close(error)
        raise error

    def _discard_late_responses(self) -> None:
        # Caller holds _request_lock
        while True:
            try:
                frame = self._responses.get_nowait()
            except queue.Empty:
                return
            if frame is not None:
                self._logger.debug(f"{self.name}: discarding late response {frame!r}")

    def _write(self, data: bytes) -> None:
        if self.config.log_raw_frames:
            log_frame(data, "TX", self._logger)
        try:
            self._channel.write(data)
        except IEC60870CommunicationError as e:
            self._close(e)
            raise

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    def _receive_loop(self) -> None:
        while not self.is_closed:
            try:
                data = self._link.read_frame(self._channel)
                if self.config.log_raw_frames:
                    log_frame(data, "RX", self._logger)
                try:
                    frame, _ = self._link.parse_frame(data)
                except IEC60870UnsupportedTypeError as e:
                    self._handle_unsupported(e)
                    continue
                self._handle_frame(frame)
            except IEC60870Error as e:
                self._close(e)
                return

    def _handle_frame(self, frame: LinkFrame) -> None:
        self._logger.debug(f"{self.name}: RX {frame!r}")
        if frame.control is not None:
            if not self._accept_control(frame):
                return
            self._update_access_demand(frame.control)
        if frame.asdu is not None:
            self._notify("on_asdu_received", frame.asdu)
        self._responses.put(frame)

    def _accept_control(self, frame: LinkFrame) -> bool:
        if frame.control.prm:
            self._logger.warning(f"{self.name}: ignoring primary frame {frame!r}")
            return False
        if self.config.link_address_length and frame.address != self._address:
            self._logger.warning(
                f"{self.name}: ignoring frame from station {frame.address}, "
                f"expected {self._address}"
            )
            return False
        return True

    def _handle_unsupported(self, error: IEC60870UnsupportedTypeError) -> None:
        frame = error.frame
        if frame is None:
            raise error
        if not self._accept_control(frame):
            return
        self._update_access_demand(frame.control)
        self._logger.warning(f"{self.name}: {error}")
        self._notify("on_unsupported_asdu", error)
        self._responses.put(frame)

    def _update_access_demand(self, control: ControlField) -> None:
        with self._state_lock:
            self._access_demand = control.fcb_acd
        if control.fcv_dfc:
            self._logger.warning(f"{self.name}: station {self._address} signals data flow control")

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _schedule_poll(self, delay: float) -> None:
        if self.config.poll_interval > 0 and not self.is_closed:
            self._timeouts.add_timer_task(TimeoutTask(delay, self._on_poll, POLL_TIMER))

    def _on_poll(self) -> None:
        with self._state_lock:
            if self._closed or self._state is not LinkState.ACTIVE:
                return
            if self._access_demand:
                data_class = 1
            else:
                data_class = 1 if self._poll_class_1_next else 2
                self._poll_class_1_next = not self._poll_class_1_next
        try:
            self._request_class_data(data_class)
        except (IEC60870CommunicationError, IEC60870TimeoutError) as e:
            # Already closed and reported through on_connection_lost
            self._logger.debug(f"{self.name}: poll failed: {e}")
            return
        except IEC60870ProtocolError as e:
            self._logger.warning(f"{self.name}: {e}")
        self._schedule_poll(0 if self.access_demand else self.config.poll_interval)

    # ------------------------------------------------------------------
    # Listener dispatch
    # ------------------------------------------------------------------

    def _notify(self, event: str, *args) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            getattr(listener, event)(*args)
        except Exception:
            self._logger.exception(f"{self.name}: listener {event} failed")

    def __repr__(self) -> str:
        with self._state_lock:
            status = "closed" if self._closed else self._state.name.lower()
            return (
                f"IEC101Connection({self.name}, {status}, station={self._address}, "
                f"acd={self._access_demand})"
            )
