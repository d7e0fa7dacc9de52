"""
MIDI port I/O for the DAW link.

A background thread reads the input port and queues messages; the main loop
drains the queue with process_pending_messages(), so every engine handler
runs on the main thread. Output is synchronous and never queued: a message
that cannot be sent right now is dropped.
"""

import queue
import threading
import time
from typing import Callable, Optional

import mido

from decksync.logging_config import get_logger

logger = get_logger(__name__)

QUEUE_SIZE = 1000
POLL_INTERVAL = 0.001


def find_port(names: list[str], pattern: str) -> Optional[str]:
    """
    First port name containing pattern (case-insensitive).

    Args:
        names: Available port names
        pattern: Substring to look for, e.g. "CubaseToNode"
    """
    pattern_lower = pattern.lower()
    for name in names:
        if pattern_lower in name.lower():
            return name
    return None


class MIDIInterface:
    """
    MIDI link to the DAW with background input reading.

    Either port may be missing: without output, sends are dropped with a
    warning; without input, no feedback arrives and the bridge runs blind.
    """

    def __init__(self, on_message: Callable[[mido.Message], None]):
        """
        Initialize MIDI interface.

        Args:
            on_message: Callback for incoming MIDI messages (called from the main loop)
        """
        self._on_message = on_message

        self._input_port: Optional[mido.ports.BaseInput] = None
        self._output_port: Optional[mido.ports.BaseOutput] = None

        self._running = threading.Event()
        self._input_thread: Optional[threading.Thread] = None
        self._message_queue: queue.Queue = queue.Queue(maxsize=QUEUE_SIZE)
        self._port_lock = threading.Lock()

        self._dropped_messages = 0
        self._processed_messages = 0
        self._sent_messages = 0
        self._failed_sends = 0

    @property
    def has_output(self) -> bool:
        with self._port_lock:
            return self._output_port is not None

    @property
    def input_port_name(self) -> Optional[str]:
        return self._input_port.name if self._input_port else None

    @property
    def output_port_name(self) -> Optional[str]:
        return self._output_port.name if self._output_port else None

    def open(self, input_pattern: Optional[str], output_pattern: Optional[str]) -> tuple[Optional[str], Optional[str]]:
        """
        Open the first ports whose names match the patterns and start reading input.

        A pattern that matches nothing is logged with the available names and
        that side stays closed.

        Args:
            input_pattern: Input port name pattern (None to skip input)
            output_pattern: Output port name pattern (None to skip output)

        Returns:
            (input_name, output_name) actually opened

        Raises:
            IOError: If a matching port exists but cannot be opened
        """
        input_name = self._resolve(input_pattern, self.list_input_ports(), "input")
        output_name = self._resolve(output_pattern, self.list_output_ports(), "output")

        with self._port_lock:
            try:
                if input_name:
                    self._input_port = mido.open_input(input_name)
                    logger.info(f"MIDI in connected: {input_name}")
                if output_name:
                    self._output_port = mido.open_output(output_name)
                    logger.info(f"MIDI out connected: {output_name}")
            except Exception as e:
                self._close_ports()
                raise IOError(f"Failed to open MIDI ports: {e}") from e

        if self._input_port:
            self._running.set()
            self._input_thread = threading.Thread(target=self._input_loop, daemon=True, name="MIDIInputThread")
            self._input_thread.start()
            logger.debug("Started MIDI input thread")

        return input_name, output_name

    def close(self) -> None:
        """Stop the input thread, close ports and drain what is left in the queue."""
        if self._input_thread and self._input_thread.is_alive():
            self._running.clear()
            self._input_thread.join(timeout=2.0)
            if self._input_thread.is_alive():
                logger.warning("Input thread did not stop gracefully")
        self._input_thread = None

        with self._port_lock:
            self._close_ports()

        remaining = self.process_pending_messages()
        if remaining:
            logger.debug(f"Processed {remaining} remaining messages on shutdown")
        logger.debug(f"MIDI interface closed. Stats: {self.get_stats()}")

    def send_message(self, msg: mido.Message) -> bool:
        """
        Send a message to the DAW.

        Returns:
            True if sent, False if no output is open or the port failed
        """
        with self._port_lock:
            if not self._output_port:
                logger.warning(f"Cannot send {msg.type}: no MIDI output connected")
                self._failed_sends += 1
                return False

            try:
                self._output_port.send(msg)
            except Exception as e:
                logger.error(f"Error sending MIDI message {msg}: {e}")
                self._failed_sends += 1
                return False

        self._sent_messages += 1
        return True

    def process_pending_messages(self) -> int:
        """
        Deliver all queued input messages to the callback (call from the main loop).

        Returns:
            Number of messages processed
        """
        count = 0
        while True:
            try:
                msg = self._message_queue.get_nowait()
            except queue.Empty:
                return count

            try:
                self._on_message(msg)
            except Exception as e:
                logger.exception(f"Error processing MIDI message {msg}: {e}")
            self._processed_messages += 1
            count += 1

    def get_stats(self) -> dict[str, int]:
        return {
            "processed": self._processed_messages,
            "dropped": self._dropped_messages,
            "queued": self._message_queue.qsize(),
            "sent": self._sent_messages,
            "failed_sends": self._failed_sends,
        }

    def _input_loop(self) -> None:
        logger.debug("MIDI input loop started")

        while self._running.is_set():
            try:
                with self._port_lock:
                    if not self._input_port:
                        break
                    for msg in self._input_port.iter_pending():
                        try:
                            self._message_queue.put_nowait(msg)
                        except queue.Full:
                            self._dropped_messages += 1
                            if self._dropped_messages % 100 == 0:
                                logger.warning(f"Dropped {self._dropped_messages} MIDI messages (queue full)")

                # iter_pending() does not block
                time.sleep(POLL_INTERVAL)

            except Exception as e:
                logger.exception(f"Error in MIDI input loop: {e}")

        logger.debug("MIDI input loop stopped")

    def _close_ports(self) -> None:
        for port in (self._input_port, self._output_port):
            if port is None:
                continue
            try:
                port.close()
                logger.info(f"Closed MIDI port: {port.name}")
            except Exception as e:
                logger.error(f"Error closing MIDI port {port.name}: {e}")
        self._input_port = None
        self._output_port = None

    @staticmethod
    def _resolve(pattern: Optional[str], available: list[str], direction: str) -> Optional[str]:
        if pattern is None:
            return None
        name = find_port(available, pattern)
        if name is None:
            logger.warning(f"No MIDI {direction} matching '{pattern}'. Available: {', '.join(available) or '(none)'}")
        return name

    @staticmethod
    def list_input_ports() -> list[str]:
        try:
            return mido.get_input_names()
        except Exception as e:
            logger.error(f"Failed to list input ports: {e}")
            return []

    @staticmethod
    def list_output_ports() -> list[str]:
        try:
            return mido.get_output_names()
        except Exception as e:
            logger.error(f"Failed to list output ports: {e}")
            return []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
