"""Tests for the IEC 60870-5-104 connection state machine.

The connection under test talks to a scripted peer over a socket pair.
"""

import queue
import socket
import threading
import time
from dataclasses import dataclass

import pytest
from iec60870py.core.channel import SocketChannel
from iec60870py.core.config import CauseOfTransmission, FieldWidths, IEC60870Config
from iec60870py.core.connection import (
    T1_TIMER,
    Connection,
    ConnectionEventListener,
    ConnectionState,
)
from iec60870py.core.exceptions import (
    IEC60870CommunicationError,
    IEC60870ProtocolError,
    IEC60870SequenceError,
    IEC60870TimeoutError,
)
from iec60870py.elements.types import ASduType
from iec60870py.layers.apdu import SEQUENCE_MODULUS, APdu, ApciType
from iec60870py.layers.application import ApplicationLayer
from iec60870py.layers.asdu import ASdu

WAIT = 2.0


def _wait_for(predicate, timeout: float = WAIT) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class _Peer:
    """Remote end of the socket pair, reading and writing raw APDUs."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.sock.settimeout(WAIT)

    def read(self, count: int) -> bytes:
        data = bytearray()
        while len(data) < count:
            chunk = self.sock.recv(count - len(data))
            if not chunk:
                raise EOFError("connection closed")
            data.extend(chunk)
        return bytes(data)

    def receive(self) -> APdu:
        return APdu.decode(self, FieldWidths())

    def send(self, apdu: APdu) -> None:
        self.sock.sendall(apdu.to_bytes())

    def send_control(self, apci_type: ApciType) -> None:
        self.send(APdu(apci_type))

    def send_i_frame(self, send_seq: int, receive_seq: int = 0) -> None:
        asdu = ApplicationLayer().build_interrogation(common_address=1)
        self.send(APdu(ApciType.I_FORMAT, send_seq, receive_seq, asdu))


@dataclass
class _GatedASdu(ASdu):
    """ASDU whose encoding waits until the gate is opened."""

    def __post_init__(self):
        self.entered = threading.Event()
        self.gate = threading.Event()

    def encode(self, buffer, offset, widths):
        self.entered.set()
        assert self.gate.wait(WAIT)
        return super().encode(buffer, offset, widths)


class _Listener(ConnectionEventListener):
    def __init__(self):
        self.ready = threading.Event()
        self.lost = threading.Event()
        self.causes = []
        self.asdus = queue.Queue()
        self.unsupported = queue.Queue()

    def on_connection_ready(self):
        self.ready.set()

    def on_asdu_received(self, asdu):
        self.asdus.put(asdu)

    def on_connection_lost(self, cause):
        self.causes.append(cause)
        self.lost.set()

    def on_unsupported_asdu(self, error):
        self.unsupported.put(error)


class TestConnection:
    """Tests for Connection against a scripted peer."""

    def setup_method(self):
        """Set up test fixtures."""
        self.local, self.remote = socket.socketpair()
        self.peer = _Peer(self.remote)
        self.listener = _Listener()
        self.connection = None

    def teardown_method(self):
        """Close both ends."""
        if self.connection is not None:
            self.connection.close()
        self.remote.close()

    def _connect(self, **overrides) -> Connection:
        settings = dict(
            t1=1.0, t2=0.5, t3=5.0, k=3, w=2, handshake_timeout=1.0, handshake_poll_interval=5.0
        )
        settings.update(overrides)
        self.connection = Connection(
            SocketChannel(self.local), IEC60870Config(**settings), name="test"
        )
        self.connection.start(self.listener)
        return self.connection

    def _start_by_peer(self, **overrides) -> Connection:
        connection = self._connect(**overrides)
        self.peer.send_control(ApciType.STARTDT_ACT)
        assert self.peer.receive().apci_type is ApciType.STARTDT_CON
        assert self.listener.ready.wait(WAIT)
        return connection

    def _wait_lost(self):
        assert self.listener.lost.wait(WAIT)
        return self.listener.causes[0]

    def test_startdt_from_peer(self):
        """Test that STARTDT_ACT is confirmed and reported as ready."""
        connection = self._start_by_peer()
        assert connection.state is ConnectionState.STARTED

    def test_start_data_transfer(self):
        """Test the local STARTDT handshake."""
        connection = self._connect()
        received = []

        def answer():
            received.append(self.peer.receive().apci_type)
            self.peer.send_control(ApciType.STARTDT_CON)

        thread = threading.Thread(target=answer)
        thread.start()
        connection.start_data_transfer(timeout=WAIT)
        thread.join(WAIT)
        assert received == [ApciType.STARTDT_ACT]
        assert connection.state is ConnectionState.STARTED
        assert self.listener.ready.is_set()

    def test_start_data_transfer_timeout(self):
        """Test that a missing STARTDT_CON closes the connection."""
        connection = self._connect()
        with pytest.raises(IEC60870TimeoutError):
            connection.start_data_transfer(timeout=0.2)
        assert connection.is_closed
        assert isinstance(self._wait_lost(), IEC60870TimeoutError)

    def test_stop_data_transfer(self):
        """Test the local STOPDT handshake."""
        connection = self._start_by_peer()
        received = []

        def answer():
            received.append(self.peer.receive().apci_type)
            self.peer.send_control(ApciType.STOPDT_CON)

        thread = threading.Thread(target=answer)
        thread.start()
        connection.stop_data_transfer(timeout=WAIT)
        thread.join(WAIT)
        assert received == [ApciType.STOPDT_ACT]
        assert connection.state is ConnectionState.STOPPED

    def test_stopdt_from_peer(self):
        """Test that STOPDT_ACT is confirmed and stops data transfer."""
        connection = self._start_by_peer()
        self.peer.send_control(ApciType.STOPDT_ACT)
        assert self.peer.receive().apci_type is ApciType.STOPDT_CON
        assert connection.state is ConnectionState.STOPPED
        with pytest.raises(IEC60870ProtocolError):
            connection.interrogation(common_address=1)

    def test_stopdt_acknowledges_received_frames(self):
        """Test that pending I-frames are acknowledged before STOPDT_CON."""
        self._start_by_peer()
        self.peer.send_i_frame(0)
        self.peer.send_control(ApciType.STOPDT_ACT)
        s_frame = self.peer.receive()
        assert s_frame.is_s_format
        assert s_frame.receive_seq == 1
        assert self.peer.receive().apci_type is ApciType.STOPDT_CON

    def test_testfr_answered(self):
        """Test that TESTFR_ACT is confirmed in any state."""
        self._connect()
        self.peer.send_control(ApciType.TESTFR_ACT)
        assert self.peer.receive().apci_type is ApciType.TESTFR_CON

    def test_receive_i_frame(self):
        """Test that an I-frame is delivered and counted."""
        connection = self._start_by_peer()
        self.peer.send_i_frame(0)
        asdu = self.listener.asdus.get(timeout=WAIT)
        assert asdu.type_id == ASduType.C_IC_NA_1
        assert connection.receive_sequence_number == 1

    def test_w_frames_acknowledged(self):
        """Test that w received I-frames trigger an S-frame."""
        self._start_by_peer()
        self.peer.send_i_frame(0)
        self.peer.send_i_frame(1)
        s_frame = self.peer.receive()
        assert s_frame.is_s_format
        assert s_frame.receive_seq == 2

    def test_t2_acknowledges(self):
        """Test that a single I-frame is acknowledged after t2."""
        self._start_by_peer()
        started = time.monotonic()
        self.peer.send_i_frame(0)
        s_frame = self.peer.receive()
        assert s_frame.is_s_format
        assert s_frame.receive_seq == 1
        assert time.monotonic() - started >= 0.4

    def test_wrong_send_sequence_closes(self):
        """Test that a sequence gap closes without delivering the ASDU."""
        connection = self._start_by_peer()
        self.peer.send_i_frame(5)
        cause = self._wait_lost()
        assert isinstance(cause, IEC60870SequenceError)
        assert cause.expected == 0
        assert cause.actual == 5
        assert self.listener.asdus.empty()
        assert connection.close_cause is cause

    def test_i_frame_before_startdt_closes(self):
        """Test that I-frames are only accepted after STARTDT."""
        self._connect()
        self.peer.send_i_frame(0)
        assert isinstance(self._wait_lost(), IEC60870ProtocolError)

    def test_send_requires_started(self):
        """Test that sending in STOPPED raises."""
        connection = self._connect()
        with pytest.raises(IEC60870ProtocolError):
            connection.interrogation(common_address=1)

    def test_send_numbers_and_acknowledgment(self):
        """Test send sequence numbers and partial acknowledgment."""
        connection = self._start_by_peer()
        connection.interrogation(common_address=1)
        connection.interrogation(common_address=1)
        assert [self.peer.receive().send_seq for _ in range(2)] == [0, 1]
        assert connection.send_sequence_number == 2
        assert connection.outstanding_count == 2

        self.peer.send(APdu(ApciType.S_FORMAT, receive_seq=1))
        assert _wait_for(lambda: connection.outstanding_count == 1)
        assert connection._timeouts.get_task(T1_TIMER) is not None

        self.peer.send(APdu(ApciType.S_FORMAT, receive_seq=2))
        assert _wait_for(lambda: connection.outstanding_count == 0)
        assert _wait_for(lambda: connection._timeouts.get_task(T1_TIMER) is None)

    def test_i_frame_carries_acknowledgment(self):
        """Test that a sent I-frame acknowledges received I-frames."""
        connection = self._start_by_peer()
        self.peer.send_i_frame(0)
        self.listener.asdus.get(timeout=WAIT)
        connection.interrogation(common_address=1)
        frame = self.peer.receive()
        assert frame.is_i_format
        assert frame.receive_seq == 1

    def test_acknowledgment_numbers_stay_ordered(self):
        """Test that an I-frame sent after an S-frame never carries an older N(R)."""
        connection = self._start_by_peer(w=1)
        base = ApplicationLayer().build_interrogation(common_address=1)
        asdu = _GatedASdu(base.type_id, base.cause, base.common_address, base.objects)
        sender = threading.Thread(target=connection.send, args=(asdu,))
        sender.start()
        assert asdu.entered.wait(WAIT)

        # The peer's I-frame forces an S-frame while our I-frame is being encoded
        self.peer.send_i_frame(0)
        s_frame = self.peer.receive()
        assert s_frame.is_s_format
        assert s_frame.receive_seq == 1

        asdu.gate.set()
        sender.join(WAIT)
        frame = self.peer.receive()
        assert frame.is_i_format
        assert frame.send_seq == 0
        assert frame.receive_seq == 1
        assert not connection.is_closed

    def test_sequence_wraparound(self):
        """Test that send sequence numbers wrap at 32768."""
        connection = self._start_by_peer()
        with connection._state_lock:
            connection._send_seq = SEQUENCE_MODULUS - 1
            connection._peer_ack = SEQUENCE_MODULUS - 1
        connection.interrogation(common_address=1)
        assert self.peer.receive().send_seq == SEQUENCE_MODULUS - 1
        assert connection.send_sequence_number == 0
        assert connection.outstanding_count == 1
        self.peer.send(APdu(ApciType.S_FORMAT, receive_seq=0))
        assert _wait_for(lambda: connection.outstanding_count == 0)

    def test_window_blocks_at_k(self):
        """Test that send blocks while k I-frames are unacknowledged."""
        connection = self._start_by_peer()
        for _ in range(3):
            connection.interrogation(common_address=1)
        sender = threading.Thread(target=connection.interrogation, args=(1,))
        sender.start()
        sender.join(0.2)
        assert sender.is_alive()

        self.peer.send(APdu(ApciType.S_FORMAT, receive_seq=1))
        sender.join(WAIT)
        assert not sender.is_alive()
        assert connection.send_sequence_number == 4

    def test_acknowledgment_outside_window_closes(self):
        """Test that acknowledging unsent frames closes the connection."""
        self._start_by_peer()
        self.peer.send(APdu(ApciType.S_FORMAT, receive_seq=3))
        assert isinstance(self._wait_lost(), IEC60870SequenceError)

    def test_t1_expiry_closes(self):
        """Test that an unacknowledged I-frame closes after t1."""
        connection = self._start_by_peer()
        connection.interrogation(common_address=1)
        cause = self._wait_lost()
        assert isinstance(cause, IEC60870TimeoutError)
        assert connection.state is ConnectionState.STOPPED
        time.sleep(0.1)
        assert len(self.listener.causes) == 1

    def test_idle_link_is_tested(self):
        """Test that TESTFR_ACT is sent after t3 without traffic."""
        connection = self._connect(t3=0.2)
        assert self.peer.receive().apci_type is ApciType.TESTFR_ACT
        self.peer.send_control(ApciType.TESTFR_CON)
        time.sleep(0.1)
        assert not connection.is_closed

    def test_unanswered_test_frame_closes(self):
        """Test that a missing TESTFR_CON closes after t1."""
        self._connect(t1=0.5, t2=0.2, t3=0.2)
        assert isinstance(self._wait_lost(), IEC60870TimeoutError)

    def test_file_transfer_functions(self):
        """Test that file transfer calls send FILE_TRANSFER ASDUs in order."""
        connection = self._start_by_peer(k=12)
        connection.file_ready(1, 0x10, name_of_file=2, length=3)
        connection.section_ready(1, 0x10, 2, 1, 3)
        connection.select_and_call(1, 0x10, 2, action=2)
        connection.file_segment(1, 0x10, 2, 1, b"\x01\x02\x03")
        connection.last_section(1, 0x10, 2, 1, action=3, checksum=6)
        connection.ack_file(1, 0x10, 2, action=1)
        expected = [
            ASduType.F_FR_NA_1,
            ASduType.F_SR_NA_1,
            ASduType.F_SC_NA_1,
            ASduType.F_SG_NA_1,
            ASduType.F_LS_NA_1,
            ASduType.F_AF_NA_1,
        ]
        frames = [self.peer.receive() for _ in expected]
        assert [frame.asdu.type_id for frame in frames] == expected
        assert all(frame.asdu.cause == CauseOfTransmission.FILE_TRANSFER for frame in frames)
        assert frames[3].asdu.objects[0].elements[0][2].data == b"\x01\x02\x03"
        assert not connection.is_closed

    def test_unsupported_asdu_acknowledged(self):
        """Test that an unknown type id advances the receive counter without closing."""
        connection = self._start_by_peer()
        self.remote.sendall(bytes.fromhex("680E00000000" "140106000100000000AA"))
        error = self.listener.unsupported.get(timeout=WAIT)
        assert error.type_id == 0x14
        assert connection.receive_sequence_number == 1
        assert not connection.is_closed

        self.peer.send_i_frame(1)
        self.listener.asdus.get(timeout=WAIT)
        assert connection.receive_sequence_number == 2

    def test_listener_failure_keeps_connection(self):
        """Test that a raising listener does not break the receive loop."""

        class Failing(_Listener):
            def on_asdu_received(self, asdu):
                super().on_asdu_received(asdu)
                raise RuntimeError("consumer failed")

        self.listener = Failing()
        connection = self._start_by_peer()
        self.peer.send_i_frame(0)
        self.peer.send_i_frame(1)
        self.listener.asdus.get(timeout=WAIT)
        self.listener.asdus.get(timeout=WAIT)
        assert connection.receive_sequence_number == 2
        assert not connection.is_closed

    def test_peer_disconnect(self):
        """Test that EOF closes with a communication error."""
        self._connect()
        self.remote.close()
        assert isinstance(self._wait_lost(), IEC60870CommunicationError)

    def test_close_is_idempotent(self):
        """Test that repeated close reports loss once with no cause."""
        connection = self._connect()
        connection.close()
        connection.close()
        assert connection.is_closed
        assert connection.close_cause is None
        assert self.listener.causes == [None]

    def test_close_callbacks(self):
        """Test that close callbacks receive the connection."""
        connection = self._connect()
        closed = []
        connection.add_close_callback(closed.append)
        connection.close()
        assert closed == [connection]

    def test_start_twice(self):
        """Test lifecycle errors of start."""
        connection = self._connect()
        with pytest.raises(IEC60870ProtocolError):
            connection.start(self.listener)
        connection.close()
        with pytest.raises(IEC60870CommunicationError):
            connection.start_data_transfer()

    def test_repr(self):
        """Test readable representation."""
        connection = self._connect()
        assert repr(connection) == "Connection(test, stopped, ssn=0, rsn=0, outstanding=0)"
