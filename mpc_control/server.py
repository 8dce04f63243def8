#!/usr/bin/env python3
"""
WebSocket Server for MPC Vehicle Control

This module provides the websocket server the driving simulator connects to.
Each telemetry event runs one MPC pipeline cycle and is answered with a steer
event carrying the actuator commands and the display trajectories. Frames use
the socket.io text convention: ``42`` followed by a JSON array
``["event", {...}]``.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Any, Optional, Union

import websockets

from mpc_control.component_modes import ComponentMode, parse_component_flags
from mpc_control.config import (
    ACTUATION_DELAY_MS,
    TERM_BLUE,
    TERM_RESET,
    WS_HOST,
    WS_PORT,
    MPCConfig,
)
from mpc_control.data_collector import DataCollector
from mpc_control.pipeline import MPCPipeline

EVENT_PREFIX = "42"
MANUAL_MESSAGE = '42["manual",{}]'


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record based on its level.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        if record.levelno == logging.INFO:
            return record.getMessage()
        else:
            return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


def extract_event_payload(message: str) -> str:
    """Extract the JSON array from an event frame.

    The payload runs from the first ``[`` through the last ``}]``. Frames
    containing ``null`` carry no payload.

    Args:
        message: Frame text, including the ``42`` prefix.

    Returns:
        The JSON array text, or an empty string if there is none.
    """
    if "null" in message:
        return ""
    start = message.find("[")
    end = message.rfind("}]")
    if start != -1 and end != -1:
        return message[start : end + 2]
    return ""


def encode_event(event: str, data: Any) -> str:
    """Encode an event frame: ``42["event",{...}]``."""
    return EVENT_PREFIX + json.dumps([event, data], separators=(",", ":"))


class MPCServer:
    """Websocket server running the MPC pipeline for a connected simulator.

    Attributes:
        host: Interface to listen on.
        port: Port to listen on.
        latency: Seconds to wait before sending each steer reply, mimicking
            real actuation delay.
        pipeline: Per-cycle MPC pipeline.
        data_collector: Optional CSV recorder shared with the pipeline.
        should_stop: Flag indicating whether to stop serving.
    """

    def __init__(
        self,
        host: str = WS_HOST,
        port: int = WS_PORT,
        latency_ms: float = ACTUATION_DELAY_MS,
        config: Optional[MPCConfig] = None,
        component_mode: Optional[ComponentMode] = None,
        data_collector: Optional[DataCollector] = None,
    ) -> None:
        """Initialize the server.

        Args:
            host: Interface to listen on.
            port: Port to listen on (1-65535).
            latency_ms: Simulated actuation latency before replying (milliseconds).
            config: Controller configuration. Default: ``MPCConfig()``.
            component_mode: Active optional stages. Default: all enabled.
            data_collector: Optional CSV recorder.

        Raises:
            ValueError: If port or latency is out of range.
        """
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port: {port}")
        if latency_ms < 0:
            raise ValueError(f"Latency must be non-negative, got {latency_ms}")

        self.host: str = host
        self.port: int = port
        self.latency: float = latency_ms / 1000.0
        self.should_stop: bool = False
        self._stop_event: Optional[asyncio.Event] = None

        if component_mode is None:
            component_mode = ComponentMode()
        logging.info(f"{TERM_BLUE}Component Configuration: {component_mode}{TERM_RESET}")

        self.data_collector = data_collector
        self.pipeline = MPCPipeline(
            config=config, component_mode=component_mode, data_collector=data_collector
        )

    def handle_message(self, message: Union[str, bytes]) -> Optional[str]:
        """Parse one frame and compute the reply.

        Args:
            message: Raw frame from the websocket.

        Returns:
            Reply frame, or None if the frame needs no reply.
        """
        if isinstance(message, bytes):
            try:
                message = message.decode("utf-8")
            except UnicodeDecodeError as e:
                logging.error(f"Error decoding frame {message[:32]!r}: {e}")
                return None

        if len(message) <= 2 or not message.startswith(EVENT_PREFIX):
            return None

        payload = extract_event_payload(message)
        if not payload:
            return MANUAL_MESSAGE

        try:
            event = json.loads(payload)
        except json.JSONDecodeError as e:
            logging.error(f"Error parsing JSON: {e}")
            return None

        if not isinstance(event, list) or len(event) < 2:
            logging.debug(f"Ignoring malformed event: {payload}")
            return None

        if event[0] != "telemetry":
            logging.debug(f"Ignoring event '{event[0]}'")
            return None

        result = self.pipeline.process(event[1])
        if result.solution is not None:
            logging.debug(
                f"steer={result.command.steering_angle:+.3f} "
                f"throttle={result.command.throttle:+.3f} "
                f"solve={result.solution.solve_time * 1000:.1f}ms"
            )
        return encode_event("steer", result.command.to_dict())

    async def handle_connection(self, websocket: Any) -> None:
        """Serve one simulator connection, one frame at a time."""
        logging.info(f"{TERM_BLUE}✓ Connected{TERM_RESET}")
        try:
            async for message in websocket:
                reply = self.handle_message(message)
                if reply is None:
                    continue
                if reply != MANUAL_MESSAGE and self.latency > 0:
                    await asyncio.sleep(self.latency)
                await websocket.send(reply)
        except websockets.exceptions.ConnectionClosed:
            logging.warning("Connection closed by simulator")
        finally:
            logging.info("Disconnected")

    async def serve(self) -> None:
        """Listen for simulator connections until ``stop`` is called."""
        self._stop_event = asyncio.Event()
        if self.should_stop:
            self._stop_event.set()

        async with websockets.serve(self.handle_connection, self.host, self.port):
            logging.info(f"{TERM_BLUE}Listening on ws://{self.host}:{self.port}{TERM_RESET}")
            await self._stop_event.wait()

        logging.info(
            f"Processed {self.pipeline.cycle_count} cycles "
            f"({self.pipeline.rejected_count} rejected)"
        )

    def stop(self) -> None:
        """Signal the server to stop."""
        self.should_stop = True
        if self._stop_event is not None:
            self._stop_event.set()

    def __enter__(self) -> "MPCServer":
        """Context manager entry point.

        Returns:
            Self reference for use in with statement.
        """
        if self.data_collector is not None:
            self.data_collector.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit point - ensures cleanup is called."""
        if self.data_collector is not None:
            self.data_collector.cleanup()


async def main(
    host: str = WS_HOST,
    port: int = WS_PORT,
    latency_ms: float = ACTUATION_DELAY_MS,
    output_dir: str = ".",
    record: bool = True,
    component_mode: Optional[ComponentMode] = None,
) -> None:
    """Main entry point for the websocket server.

    Creates an MPCServer, sets up signal handlers for graceful shutdown, and
    serves until interrupted.

    Args:
        host: Interface to listen on.
        port: Port to listen on.
        latency_ms: Simulated actuation latency before replying (milliseconds).
        output_dir: Base directory for recorded runs.
        record: If False, no CSV files are written.
        component_mode: ComponentMode configuration for component isolation testing.
    """
    data_collector = DataCollector(output_dir=output_dir) if record else None

    with MPCServer(
        host=host,
        port=port,
        latency_ms=latency_ms,
        component_mode=component_mode,
        data_collector=data_collector,
    ) as server:
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            server.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, signal_handler)
            except NotImplementedError:
                # Not available on Windows event loops; Ctrl+C raises KeyboardInterrupt
                pass

        await server.serve()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MPC controller websocket server")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--host", default=WS_HOST, help=f"Interface to listen on (default: {WS_HOST})")
    parser.add_argument("--port", type=int, default=WS_PORT, help=f"Port to listen on (default: {WS_PORT})")
    parser.add_argument(
        "--latency-ms",
        type=float,
        default=ACTUATION_DELAY_MS,
        help=f"Simulated actuation latency before each reply (default: {ACTUATION_DELAY_MS})",
    )
    parser.add_argument(
        "--output-dir", default=".", help="Base directory for recorded runs (default: .)"
    )
    parser.add_argument("--no-record", action="store_true", help="Do not write CSV files")
    return parser


def cli_main(argv: Optional[list] = None) -> None:
    """Command-line entry point."""
    component_mode, remaining_args = parse_component_flags(argv)
    args = build_parser().parse_args(remaining_args)

    setup_logging(args.verbose)

    try:
        asyncio.run(
            main(
                host=args.host,
                port=args.port,
                latency_ms=args.latency_ms,
                output_dir=args.output_dir,
                record=not args.no_record,
                component_mode=component_mode,
            )
        )
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli_main()
