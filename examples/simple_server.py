#!/usr/bin/env python3
"""
Minimal IEC 60870-5-104 controlled station.

Answers station interrogations with a few measured values and confirms
single commands. Run it and point basic_client.py at 127.0.0.1.
"""

import time

from iec60870py import (
    ASdu,
    ASduType,
    CauseOfTransmission,
    ConnectionEventListener,
    IEC104Server,
    IEC60870Config,
    InformationObject,
    ServerEventListener,
)
from iec60870py.elements.quality import Quality, SinglePointWithQuality
from iec60870py.elements.values import ShortFloat
from iec60870py.utils.logging import setup_logging

COMMON_ADDRESS = 1


class StationListener(ConnectionEventListener):
    """Handles the commands of one client connection."""

    def __init__(self, connection):
        self.connection = connection
        self.breaker_closed = False

    def on_asdu_received(self, asdu):
        if asdu.common_address != COMMON_ADDRESS:
            reply = ASdu(
                type_id=asdu.type_id,
                cause=CauseOfTransmission.UNKNOWN_COMMON_ADDRESS_OF_ASDU,
                common_address=asdu.common_address,
                objects=asdu.objects,
                is_negative=True,
            )
            self.connection.send(reply)
            return

        if asdu.type_id == ASduType.C_IC_NA_1:
            self.connection.send_confirmation(asdu)
            self.connection.send(self._measurements())
            self.connection.send(self._status())
            self.connection.send_activation_termination(asdu)
        elif asdu.type_id == ASduType.C_SC_NA_1:
            command = asdu.objects[0].elements[0][0]
            if not command.select:
                self.breaker_closed = command.on
            self.connection.send_confirmation(asdu)
        else:
            self.connection.send_confirmation(asdu, negative=True)

    def _measurements(self):
        return ASdu(
            type_id=ASduType.M_ME_NC_1,
            cause=CauseOfTransmission.INTERROGATED_BY_STATION,
            common_address=COMMON_ADDRESS,
            is_sequence=True,
            objects=[
                InformationObject(
                    1000,
                    [[ShortFloat(230.1), Quality()], [ShortFloat(49.98), Quality()]],
                )
            ],
        )

    def _status(self):
        return ASdu(
            type_id=ASduType.M_SP_NA_1,
            cause=CauseOfTransmission.INTERROGATED_BY_STATION,
            common_address=COMMON_ADDRESS,
            objects=[
                InformationObject(5000, [[SinglePointWithQuality(on=self.breaker_closed)]])
            ],
        )


class Station(ServerEventListener):
    def on_connection_accepted(self, connection):
        print(f"Client connected: {connection.name}")
        return StationListener(connection)

    def on_connection_closed(self, connection):
        print(f"Client disconnected: {connection.name}")


def main():
    setup_logging(level="INFO")
    config = IEC60870Config(host="0.0.0.0", port=2404, max_connections=4)

    with IEC104Server(config) as server:
        server.start(Station())
        print(f"Listening on port {server.port}, Ctrl+C to stop")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            print("\nStopping")


if __name__ == "__main__":
    main()
