"""
IEC 60870-5-104 connection state machine.

A Connection owns one byte channel and implements the APCI procedures on it:
- STARTDT/STOPDT handshake (either side may initiate)
- Numbered I-frame transfer with send/receive sequence counters (mod 32768)
- Acknowledgment by S-frames after w received I-frames or T2 expiry
- Flow control: at most k unacknowledged I-frames in flight
- T1: acknowledgment timeout for sent I-frames and TESTFR_ACT
- T3: idle timeout, checks the link with TESTFR_ACT

Threads:
- The receive loop (one daemon thread) decodes frames in arrival order.
- The TimeoutManager worker runs timer callbacks.
- Callers send from their own threads.

Counters, timer handles and lifecycle state are only touched under
_state_lock. Encoding, decoding and channel I/O run outside it. _send_lock
keeps I-frame numbering and transmission order identical, and N(R) is read
under _write_lock so acknowledgments leave in ascending order.
Lock order: _send_lock, _write_lock, _state_lock.

Lifecycle:
    STOPPED -> STARTING -> STARTED -> STOPPING -> STOPPED

Any framing, sequencing, element, timeout or transport error closes the
connection and is reported once through on_connection_lost(cause).
Unsupported ASDU types are acknowledged like any I-frame and reported
through on_unsupported_asdu(error) without closing.
"""

import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Callable, List, Optional

from iec60870py.core.channel import ByteChannel
from iec60870py.core.config import IEC60870Config
from iec60870py.core.exceptions import (
    IEC60870CommunicationError,
    IEC60870Error,
    IEC60870ProtocolError,
    IEC60870SequenceError,
    IEC60870TimeoutError,
    IEC60870UnsupportedTypeError,
)
from iec60870py.core.functions import ApplicationFunctions
from iec60870py.core.timeout import TimeoutManager, TimeoutTask
from iec60870py.layers.apdu import SEQUENCE_MODULUS, APdu, ApciType, set_receive_sequence
from iec60870py.layers.application import ApplicationLayer
from iec60870py.layers.asdu import ASdu
from iec60870py.utils.logging import get_logger, log_apdu, log_frame

# Timer identities
T1_TIMER = "t1"
T2_TIMER = "t2"
T3_TIMER = "t3"
TESTFR_TIMER = "testfr"
HANDSHAKE_TIMER = "handshake"


class ConnectionState(Enum):
    """Data transfer lifecycle of a connection."""

    STOPPED = "stopped"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"


class ConnectionEventListener:
    """
    Receives the events of one Connection or IEC101Connection.

    Subclass and override what you need. Callbacks run on the connection's
    receive or timer thread; they must not block for long.
    """

    def on_connection_ready(self) -> None:
        """Data transfer has started (STARTDT done, or the -101 link is initialized)."""
        pass

    def on_asdu_received(self, asdu: ASdu) -> None:
        """An I-frame or -101 user data response with a decodable ASDU arrived."""
        pass

    def on_connection_lost(self, cause: Optional[Exception]) -> None:
        """The connection was closed; cause is None for a local close()."""
        pass

    def on_unsupported_asdu(self, error: IEC60870UnsupportedTypeError) -> None:
        """A frame with an unknown type id arrived. The connection stays up."""
        get_logger().warning(f"Ignoring ASDU: {error}")


class _RecordingStream:
    """Channel wrapper that keeps the bytes of the frame being read."""

    def __init__(self, channel: ByteChannel):
        self._channel = channel
        self.data = bytearray()

    def read(self, count: int) -> bytes:
        chunk = self._channel.read(count)
        self.data.extend(chunk)
        return chunk


class Connection(ApplicationFunctions):
    """
    One IEC 60870-5-104 association over a byte channel.

    Usage:
        connection = Connection(SocketChannel(sock), config)
        connection.start(listener)          # receive loop running
        connection.start_data_transfer()    # STARTDT handshake
        connection.interrogation(common_address=1)
        ...
        connection.close()
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
            channel: Connected byte channel (owned by the connection from now on)
            config: Configuration settings (uses defaults if not provided)
            name: Label used in log messages (defaults to the channel description)
        """
        self.config = config or IEC60870Config()
        self.config.validate()
        self.name = name or channel.description

        self._channel = channel
        self._widths = self.config.field_widths
        self._application = ApplicationLayer(self.config.originator_address)
        self._logger = get_logger()

        self._state_lock = threading.Lock()
        self._window_open = threading.Condition(self._state_lock)
        self._send_lock = threading.Lock()
        self._write_lock = threading.Lock()

        # Guarded by _state_lock
        self._state = ConnectionState.STOPPED
        self._send_seq = 0
        self._receive_seq = 0
        self._ack_sent_up_to = 0  # Last N(R) transmitted to the peer
        self._peer_ack = 0  # Oldest own I-frame not yet acknowledged
        self._last_frame_sent_at = 0.0
        self._handshake_attempts = 0
        self._closed = False
        self._close_cause: Optional[Exception] = None

        self._listener: Optional[ConnectionEventListener] = None
        self._close_callbacks: List[Callable[["Connection"], None]] = []
        self._startdt_confirmed = threading.Event()
        self._stopdt_confirmed = threading.Event()
        self._timeouts = TimeoutManager(name=f"iec60870-timer-{self.name}")
        self._reader: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # State inspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
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
    def send_sequence_number(self) -> int:
        with self._state_lock:
            return self._send_seq

    @property
    def receive_sequence_number(self) -> int:
        with self._state_lock:
            return self._receive_seq

    @property
    def outstanding_count(self) -> int:
        """Number of sent I-frames not yet acknowledged by the peer."""
        with self._state_lock:
            return self._outstanding_count()

    @property
    def last_frame_sent_at(self) -> float:
        """time.monotonic() of the last transmitted frame (0.0 if none)."""
        with self._state_lock:
            return self._last_frame_sent_at

    def _outstanding_count(self) -> int:
        return (self._send_seq - self._peer_ack) % SEQUENCE_MODULUS

    def _pending_ack_count(self) -> int:
        return (self._receive_seq - self._ack_sent_up_to) % SEQUENCE_MODULUS

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, listener: Optional[ConnectionEventListener] = None) -> None:
        """
        Start the receive loop and timer worker.

        Args:
            listener: Event consumer for this connection

        Raises:
            IEC60870ProtocolError: If the connection was already started
            IEC60870CommunicationError: If the connection is closed
        """
        with self._state_lock:
            if self._closed:
                raise IEC60870CommunicationError(f"{self.name}: connection is closed")
            if self._reader is not None:
                raise IEC60870ProtocolError(f"{self.name}: connection already started")
            self._listener = listener or ConnectionEventListener()
            self._reader = threading.Thread(
                target=self._receive_loop,
                name=f"iec60870-reader-{self.name}",
                daemon=True,
            )
        self._timeouts.start()
        self._restart_idle_timer()
        self._reader.start()

    def add_close_callback(self, callback: Callable[["Connection"], None]) -> None:
        """Register callback(connection) to run after the connection closes."""
        self._close_callbacks.append(callback)

    def start_data_transfer(self, timeout: Optional[float] = None) -> None:
        """
        Send STARTDT_ACT and wait for STARTDT_CON.

        STARTDT_ACT is repeated every handshake_poll_interval, at most
        max_handshake_retries times, until confirmed.

        Args:
            timeout: Seconds to wait (config.handshake_timeout if None)

        Raises:
            IEC60870TimeoutError: If no confirmation arrives (connection is closed)
            IEC60870ProtocolError: If a STOPDT handshake is in progress
            IEC60870CommunicationError: If the connection closes meanwhile
        """
        timeout = self.config.handshake_timeout if timeout is None else timeout
        with self._state_lock:
            self._check_open()
            if self._state is ConnectionState.STARTED:
                return
            if self._state is not ConnectionState.STOPPED:
                raise IEC60870ProtocolError(
                    f"{self.name}: cannot start data transfer in state {self._state.name}"
                )
            self._state = ConnectionState.STARTING
            self._handshake_attempts = 1
            self._startdt_confirmed.clear()

        self._logger.info(f"{self.name}: starting data transfer")
        self._send_control(ApciType.STARTDT_ACT)
        self._schedule_handshake_poll()

        if not self._startdt_confirmed.wait(timeout):
            error = IEC60870TimeoutError(
                f"{self.name}: no STARTDT confirmation within {timeout}s", timeout_seconds=timeout
            )
            self._close(error)
            raise error
        self._raise_if_closed("STARTDT handshake")
        self._logger.info(f"{self.name}: data transfer started")
        self._notify("on_connection_ready")

    def stop_data_transfer(self, timeout: Optional[float] = None) -> None:
        """
        Send STOPDT_ACT and wait for STOPDT_CON.

        Raises:
            IEC60870TimeoutError: If no confirmation arrives (connection is closed)
            IEC60870ProtocolError: If data transfer is not started
            IEC60870CommunicationError: If the connection closes meanwhile
        """
        timeout = self.config.handshake_timeout if timeout is None else timeout
        with self._state_lock:
            self._check_open()
            if self._state is ConnectionState.STOPPED:
                return
            if self._state is not ConnectionState.STARTED:
                raise IEC60870ProtocolError(
                    f"{self.name}: cannot stop data transfer in state {self._state.name}"
                )
            self._state = ConnectionState.STOPPING
            self._handshake_attempts = 1
            self._stopdt_confirmed.clear()

        self._logger.info(f"{self.name}: stopping data transfer")
        self._send_control(ApciType.STOPDT_ACT)
        self._schedule_handshake_poll()

        if not self._stopdt_confirmed.wait(timeout):
            error = IEC60870TimeoutError(
                f"{self.name}: no STOPDT confirmation within {timeout}s", timeout_seconds=timeout
            )
            self._close(error)
            raise error
        self._raise_if_closed("STOPDT handshake")
        self._logger.info(f"{self.name}: data transfer stopped")

    def close(self) -> None:
        """Close the connection. Safe to call repeatedly."""
        self._close(None)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the receive loop to finish."""
        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout)

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _check_open(self) -> None:
        # Caller holds _state_lock
        if self._closed:
            raise IEC60870CommunicationError(f"{self.name}: connection is closed")

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
            self._state = ConnectionState.STOPPED
            self._window_open.notify_all()

        self._timeouts.cancel()
        # Release threads blocked in a handshake
        self._startdt_confirmed.set()
        self._stopdt_confirmed.set()
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
    # Sending
    # ------------------------------------------------------------------

    def send(self, asdu: ASdu) -> None:
        """
        Send an ASDU in an I-frame.

        Blocks while k I-frames are unacknowledged.

        Args:
            asdu: ASDU to send

        Raises:
            IEC60870ProtocolError: If data transfer is not started
            IEC60870TimeoutError: If the send window stays full for t1 seconds
            IEC60870FrameError: If the ASDU cannot be encoded (nothing is sent)
            IEC60870CommunicationError: If the channel fails (connection is closed)
        """
        with self._send_lock:
            with self._window_open:
                self._check_can_send()
                deadline = time.monotonic() + self.config.t1
                while self._outstanding_count() >= self.config.k:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise IEC60870TimeoutError(
                            f"{self.name}: send window full "
                            f"({self.config.k} unacknowledged I-frames)",
                            timeout_seconds=self.config.t1,
                        )
                    self._window_open.wait(remaining)
                    self._check_can_send()
                send_seq = self._send_seq

            # N(R) is stamped once the frame holds its place in the write order
            apdu = APdu(ApciType.I_FORMAT, send_seq, 0, asdu)
            data = bytearray(apdu.to_bytes(self._widths))

            with self._writing():
                with self._state_lock:
                    self._check_can_send()
                    receive_seq = self._receive_seq
                    self._send_seq = (send_seq + 1) % SEQUENCE_MODULUS
                    # The I-frame acknowledges everything received so far
                    self._ack_sent_up_to = receive_seq
                    self._timeouts.cancel_task(T2_TIMER)
                    if self._timeouts.get_task(T1_TIMER) is None:
                        self._schedule(T1_TIMER, self.config.t1, self._on_t1_timeout)
                apdu.receive_seq = receive_seq
                set_receive_sequence(data, receive_seq)
                self._write_frame(apdu, bytes(data))

    def _check_can_send(self) -> None:
        # Caller holds _state_lock
        self._check_open()
        if self._state is not ConnectionState.STARTED:
            raise IEC60870ProtocolError(
                f"{self.name}: cannot send ASDU in state {self._state.name}"
            )

    def _send_control(self, apci_type: ApciType) -> None:
        apdu = APdu(apci_type)
        with self._writing():
            self._write_frame(apdu, apdu.to_bytes(self._widths))

    def _send_s_frame(self) -> None:
        with self._writing():
            with self._state_lock:
                if self._closed:
                    return
                receive_seq = self._receive_seq
                self._ack_sent_up_to = receive_seq
                self._timeouts.cancel_task(T2_TIMER)
            apdu = APdu(ApciType.S_FORMAT, receive_seq=receive_seq)
            self._write_frame(apdu, apdu.to_bytes(self._widths))

    @contextmanager
    def _writing(self):
        """Hold the write lock; a channel failure closes the connection and is re-raised."""
        try:
            with self._write_lock:
                yield
        except IEC60870CommunicationError as e:
            self._close(e)
            raise

    def _write_frame(self, apdu: APdu, data: bytes) -> None:
        # Caller holds _write_lock
        if self.config.log_raw_frames:
            log_frame(data, "TX", self._logger)
        log_apdu(apdu, "TX", self._logger)
        self._channel.write(data)
        with self._state_lock:
            self._last_frame_sent_at = time.monotonic()
        self._restart_idle_timer()

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    def _receive_loop(self) -> None:
        while not self.is_closed:
            stream = self._channel
            if self.config.log_raw_frames:
                stream = _RecordingStream(self._channel)
            try:
                try:
                    apdu = APdu.decode(stream, self._widths)
                except IEC60870UnsupportedTypeError as e:
                    self._log_received(stream)
                    self._handle_unsupported(e)
                    continue
                self._log_received(stream)
                self._handle_apdu(apdu)
            except IEC60870Error as e:
                self._close(e)
                return

    def _log_received(self, stream) -> None:
        if isinstance(stream, _RecordingStream):
            log_frame(bytes(stream.data), "RX", self._logger)

    def _handle_apdu(self, apdu: APdu) -> None:
        log_apdu(apdu, "RX", self._logger)
        self._restart_idle_timer()

        apci_type = apdu.apci_type
        if apci_type is ApciType.I_FORMAT:
            self._handle_i_frame(apdu)
        elif apci_type is ApciType.S_FORMAT:
            with self._state_lock:
                self._update_peer_ack(apdu.receive_seq)
        elif apci_type is ApciType.STARTDT_ACT:
            self._handle_startdt_act()
        elif apci_type is ApciType.STARTDT_CON:
            self._handle_startdt_con()
        elif apci_type is ApciType.STOPDT_ACT:
            self._handle_stopdt_act()
        elif apci_type is ApciType.STOPDT_CON:
            self._handle_stopdt_con()
        elif apci_type is ApciType.TESTFR_ACT:
            self._send_control(ApciType.TESTFR_CON)
        elif apci_type is ApciType.TESTFR_CON:
            self._timeouts.cancel_task(TESTFR_TIMER)

    def _handle_i_frame(self, apdu: APdu) -> None:
        send_ack = False
        with self._state_lock:
            if self._state not in (ConnectionState.STARTED, ConnectionState.STOPPING):
                raise IEC60870ProtocolError(
                    f"{self.name}: I-frame received in state {self._state.name}"
                )
            if apdu.send_seq != self._receive_seq:
                raise IEC60870SequenceError(
                    f"{self.name}: received send sequence number {apdu.send_seq}, "
                    f"expected {self._receive_seq}",
                    expected=self._receive_seq,
                    actual=apdu.send_seq,
                )
            self._update_peer_ack(apdu.receive_seq)
            self._receive_seq = (self._receive_seq + 1) % SEQUENCE_MODULUS
            if self._pending_ack_count() >= self.config.w:
                send_ack = True
            elif self._timeouts.get_task(T2_TIMER) is None:
                self._schedule(T2_TIMER, self.config.t2, self._on_t2_timeout)

        if send_ack:
            self._send_s_frame()
        if apdu.asdu is not None:
            self._notify("on_asdu_received", apdu.asdu)

    def _handle_unsupported(self, error: IEC60870UnsupportedTypeError) -> None:
        if error.apdu is None:
            raise error
        self._handle_apdu(error.apdu)
        self._logger.warning(f"{self.name}: {error}")
        self._notify("on_unsupported_asdu", error)

    def _update_peer_ack(self, receive_seq: int) -> None:
        # Caller holds _state_lock
        outstanding = self._outstanding_count()
        acknowledged = (receive_seq - self._peer_ack) % SEQUENCE_MODULUS
        if acknowledged > outstanding:
            raise IEC60870SequenceError(
                f"{self.name}: acknowledgment {receive_seq} outside window "
                f"{self._peer_ack}..{self._send_seq}",
                expected=self._send_seq,
                actual=receive_seq,
            )
        if acknowledged:
            self._peer_ack = receive_seq
            self._window_open.notify_all()
        if self._peer_ack == self._send_seq:
            self._timeouts.cancel_task(T1_TIMER)

    def _handle_startdt_act(self) -> None:
        with self._state_lock:
            previous = self._state
            self._state = ConnectionState.STARTED
            self._timeouts.cancel_task(HANDSHAKE_TIMER)
        self._send_control(ApciType.STARTDT_CON)
        if previous is ConnectionState.STARTING:
            # Both sides sent STARTDT_ACT; treat the peer's as confirmation
            self._startdt_confirmed.set()
        elif previous is not ConnectionState.STARTED:
            self._logger.info(f"{self.name}: data transfer started by peer")
            self._notify("on_connection_ready")

    def _handle_startdt_con(self) -> None:
        with self._state_lock:
            if self._state is not ConnectionState.STARTING:
                self._logger.warning(
                    f"{self.name}: unexpected STARTDT_CON in state {self._state.name}"
                )
                return
            self._state = ConnectionState.STARTED
            self._timeouts.cancel_task(HANDSHAKE_TIMER)
        self._startdt_confirmed.set()

    def _handle_stopdt_act(self) -> None:
        with self._state_lock:
            pending = self._pending_ack_count() > 0
        if pending:
            self._send_s_frame()
        with self._state_lock:
            previous = self._state
            self._state = ConnectionState.STOPPED
            self._timeouts.cancel_task(HANDSHAKE_TIMER)
        self._send_control(ApciType.STOPDT_CON)
        if previous is ConnectionState.STOPPING:
            self._stopdt_confirmed.set()
        self._logger.info(f"{self.name}: data transfer stopped by peer")

    def _handle_stopdt_con(self) -> None:
        with self._state_lock:
            if self._state is not ConnectionState.STOPPING:
                self._logger.warning(
                    f"{self.name}: unexpected STOPDT_CON in state {self._state.name}"
                )
                return
            self._state = ConnectionState.STOPPED
            self._timeouts.cancel_task(HANDSHAKE_TIMER)
        self._stopdt_confirmed.set()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _schedule(self, identity: str, timeout: float, callback: Callable[[], None]) -> None:
        self._timeouts.add_timer_task(TimeoutTask(timeout, callback, identity))

    def _schedule_handshake_poll(self) -> None:
        self._schedule(
            HANDSHAKE_TIMER, self.config.handshake_poll_interval, self._on_handshake_poll
        )

    def _restart_idle_timer(self) -> None:
        if not self.is_closed:
            self._schedule(T3_TIMER, self.config.t3, self._on_idle_timeout)

    def _run_guarded(self, action: Callable[[], None]) -> None:
        """Run a transmit from a timer thread; failures already closed the connection."""
        try:
            action()
        except IEC60870CommunicationError as e:
            self._logger.debug(f"{self.name}: timer transmit failed: {e}")

    def _on_t1_timeout(self) -> None:
        with self._state_lock:
            if self._closed:
                return
            outstanding = self._outstanding_count()
        if outstanding:
            self._close(
                IEC60870TimeoutError(
                    f"{self.name}: {outstanding} I-frame(s) not acknowledged within t1",
                    timeout_seconds=self.config.t1,
                )
            )

    def _on_t2_timeout(self) -> None:
        with self._state_lock:
            if self._closed or self._pending_ack_count() == 0:
                return
        self._logger.debug(f"{self.name}: t2 expired, acknowledging received I-frames")
        self._run_guarded(self._send_s_frame)

    def _on_idle_timeout(self) -> None:
        with self._state_lock:
            if self._closed or self._timeouts.get_task(TESTFR_TIMER) is not None:
                return
            self._schedule(TESTFR_TIMER, self.config.t1, self._on_testfr_timeout)
        self._logger.debug(f"{self.name}: t3 expired, sending TESTFR_ACT")
        self._run_guarded(lambda: self._send_control(ApciType.TESTFR_ACT))

    def _on_testfr_timeout(self) -> None:
        self._close(
            IEC60870TimeoutError(
                f"{self.name}: no TESTFR confirmation within t1",
                timeout_seconds=self.config.t1,
            )
        )

    def _on_handshake_poll(self) -> None:
        with self._state_lock:
            if self._closed:
                return
            if self._state is ConnectionState.STARTING:
                apci_type = ApciType.STARTDT_ACT
            elif self._state is ConnectionState.STOPPING:
                apci_type = ApciType.STOPDT_ACT
            else:
                return
            if self._handshake_attempts > self.config.max_handshake_retries:
                return
            self._handshake_attempts += 1
            attempt = self._handshake_attempts
        self._logger.debug(f"{self.name}: repeating {apci_type.name} (attempt {attempt})")
        self._run_guarded(lambda: self._send_control(apci_type))
        self._schedule_handshake_poll()

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
            # A faulty consumer must not break sequence number handling
            self._logger.exception(f"{self.name}: listener {event} failed")

    def __repr__(self) -> str:
        with self._state_lock:
            status = "closed" if self._closed else self._state.name.lower()
            return (
                f"Connection({self.name}, {status}, ssn={self._send_seq}, "
                f"rsn={self._receive_seq}, outstanding={self._outstanding_count()})"
            )
