#!/usr/bin/env python3
"""
Basic IEC 60870-5-104 client usage examples.

This script demonstrates how to connect to a controlled station, run a
station interrogation and send commands.
"""

import time

from iec60870py import (
    CauseOfTransmission,
    ConnectionEventListener,
    IEC104Client,
    IEC60870Config,
)
from iec60870py.elements.commands import DoubleCommandState
from iec60870py.utils.logging import setup_logging


class PrintingListener(ConnectionEventListener):
    """Prints every received ASDU."""

    def on_connection_ready(self):
        print("Data transfer started")

    def on_asdu_received(self, asdu):
        print(f"  {asdu}")
        if asdu.cause == CauseOfTransmission.ACTIVATION_TERMINATION:
            print("  (command finished)")

    def on_connection_lost(self, cause):
        print(f"Connection closed: {cause or 'by request'}")


def interrogation_example():
    """Station interrogation followed by a counter interrogation."""
    setup_logging(level="INFO")

    config = IEC60870Config(
        host="192.168.1.100",  # Replace with your station IP
        port=2404,             # Standard IEC 60870-5-104 port
        t1=15.0,
        t2=10.0,
        t3=20.0,
    )

    client = IEC104Client(config)

    try:
        with client.connect(PrintingListener()) as connection:
            print("\n--- Station Interrogation ---")
            connection.interrogation(common_address=1)
            time.sleep(2)

            print("\n--- Counter Interrogation ---")
            connection.counter_interrogation(common_address=1)
            time.sleep(2)
    except Exception as e:
        print(f"Error: {e}")


def control_example():
    """Example of sending commands."""
    setup_logging(level="INFO")

    config = IEC60870Config(host="192.168.1.100", port=2404)
    client = IEC104Client(config)

    try:
        with client.connect(PrintingListener()) as connection:
            # Direct execute - switch on single point 5000
            print("Single command: ON at IOA 5000")
            connection.single_command(common_address=1, address=5000, on=True)
            time.sleep(1)

            # Select before execute
            print("Double command: select then execute OFF at IOA 5001")
            connection.double_command(1, 5001, DoubleCommandState.OFF, select=True)
            time.sleep(1)
            connection.double_command(1, 5001, DoubleCommandState.OFF, select=False)
            time.sleep(1)

            print("Set-point: 42.5 at IOA 6000")
            connection.set_short_float(common_address=1, address=6000, value=42.5)
            time.sleep(1)
    except Exception as e:
        print(f"Error: {e}")


def clock_sync_example():
    """Synchronize the station clock to the current UTC time."""
    setup_logging(level="DEBUG")

    config = IEC60870Config(host="192.168.1.100", port=2404, log_raw_frames=True)
    client = IEC104Client(config)

    with client.connect(PrintingListener()) as connection:
        connection.synchronize_clocks(common_address=1)
        time.sleep(1)


if __name__ == "__main__":
    print("IEC 60870-5-104 Client Examples")
    print("=" * 40)
    print("\nNote: Update the host address in each example")
    print("before running against a real station.\n")

    # Uncomment the example you want to run:
    # interrogation_example()
    # control_example()
    # clock_sync_example()
