#!/usr/bin/env python3
"""
Demo script for the decksync bridge.

This script demonstrates:
- Loading a configuration (or using defaults)
- Connecting to the DAW's MIDI ports
- Simulating a deck with a few command buttons and an articulation page
- Printing UI commits and track changes in real-time

Pass a config JSON path as the first argument to override defaults.
"""

import logging
import sys
import threading

from decksync.config import EngineConfig, load_config
from decksync.controls import ButtonKind, ButtonMode, VisualState
from decksync.engine import SyncEngine
from decksync.events import ContextAppeared, DeviceConnected
from decksync.logging_config import get_logger, set_module_level, setup_logging
from decksync.surface import SurfaceHost

# Set up rich logging to see what's happening
setup_logging(level=logging.INFO)

logger = get_logger(__name__)

# Enable debug logging for specific modules to see gating decisions
set_module_level("decksync.dispatcher", logging.DEBUG)
set_module_level("decksync.feedback", logging.DEBUG)

DEVICE_ID = "demo-deck"


class ConsoleSurface(SurfaceHost):
    """Prints what a real deck would display."""

    def set_control_visual_state(self, context_id: str, active: bool) -> None:
        print(f"[KEY] {context_id:16s} -> {'ON' if active else 'off'}")

    def render_key(self, context_id: str, visual_state: VisualState) -> None:
        marker = "*" if visual_state.selected else " "
        print(f"[ART] {context_id:16s} {marker} {visual_state.label or '-':20s} {visual_state.color}")


def on_track(track_name: str):
    print(f"\n{'=' * 60}")
    print(f"[TRACK] {track_name}")
    print(f"{'=' * 60}\n")


def main():
    """Main demo function."""
    config = load_config(sys.argv[1]) if len(sys.argv) > 1 else EngineConfig()

    engine = SyncEngine(surface=ConsoleSurface(), config=config)
    engine.on_track_change(on_track)

    print("\n1. Connecting to DAW MIDI ports...")
    try:
        input_name, output_name = engine.connect_midi()
    except IOError as e:
        print(f"   ✗ Failed to connect: {e}")
        return
    print(f"   in:  {input_name or '(none)'}")
    print(f"   out: {output_name or '(none)'}")

    print("\n2. Showing a simulated deck...")
    events = [DeviceConnected(device_id=DEVICE_ID)]
    events += [
        ContextAppeared(
            device_id=DEVICE_ID,
            context_id=f"cmd-{index}",
            control=engine.protocol.command_slot(index),
            mode=ButtonMode.TOGGLE if index % 2 else ButtonMode.MOMENTARY,
        )
        for index in range(4)
    ]
    events.append(ContextAppeared(device_id=DEVICE_ID, context_id="art-title", button_kind=ButtonKind.ARTICULATION))
    events += [
        ContextAppeared(device_id=DEVICE_ID, context_id=f"art-{slot}", button_kind=ButtonKind.ARTICULATION, slot=slot)
        for slot in range(4)
    ]
    engine.handle_all(events)

    print("\nListening for DAW feedback... (Press Ctrl+C to exit)")
    print("Select tracks in the DAW to see profiles and resyncs.\n")

    stop = threading.Event()
    try:
        engine.run(stop)
    except KeyboardInterrupt:
        print("\n\nShutting down...")
    finally:
        engine.disconnect_midi()
        print("✓ Disconnected")


if __name__ == "__main__":
    main()
