#!/usr/bin/env python3
"""
WebSocket Control Server

This module accepts simulator connections, runs one receding-horizon control
session per connection and answers every telemetry message with a steer
command (or the manual acknowledgement when the simulator is driven by hand).

Each session owns its controller, so independent vehicles never share solver
state. The horizon solve is CPU bound and runs in a worker thread, which lets
the event loop keep serving other sessions while one of them is solving.
"""

import asyncio
import logging
import signal
import time
from typing import Any, Optional, Set, Union

import websockets
from websockets.exceptions import ConnectionClosed

from .config import TERM_BLUE, TERM_ORANGE, TERM_RESET, ControllerConfig, ServerConfig
from .controller import STATUS_OK, ControlCommand, MPCController
from .data_collector import DataCollector
from .errors import MalformedTelemetry
from .protocol import TELEMETRY_EVENT, decode_frame, encode_manual, encode_steer, parse_telemetry

logger = logging.getLogger(__name__)


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
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
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        root = logging.getLogger()
        root.setLevel(logging.INFO)
        root.addHandler(handler)


class ControlSession:
    """One simulator connection and the controller that serves it.

    Attributes:
        session_id: Sequence number of the connection, for log messages.
        controller: Controller owned by this session.
        data_collector: Optional CSV recorder.
        cycles: Number of commands sent.
        fallbacks: Number of commands produced by the fallback policy.
        skipped: Number of telemetry messages dropped as malformed.
    """

    def __init__(
        self,
        websocket: Any,
        controller: MPCController,
        server_config: Optional[ServerConfig] = None,
        data_collector: Optional[DataCollector] = None,
        session_id: int = 0,
    ) -> None:
        self.websocket = websocket
        self.controller = controller
        self.server_config = server_config or ServerConfig()
        self.data_collector = data_collector
        self.session_id = session_id

        self.cycles: int = 0
        self.fallbacks: int = 0
        self.skipped: int = 0
        self._announced: bool = False

    async def handle_frame(self, frame: Union[str, bytes]) -> Optional[str]:
        """Process one inbound frame to completion.

        Args:
            frame: Raw websocket frame.

        Returns:
            The reply frame, or None if nothing should be sent.

        Raises:
            MalformedTelemetry: If the frame or its telemetry payload is invalid.
        """
        event = decode_frame(frame)
        if event is None:
            return None
        # Any event without data means the simulator is driven by hand
        if event.payload is None:
            return encode_manual()
        if event.name != TELEMETRY_EVENT:
            return None

        telemetry = parse_telemetry(event.payload)
        if self.data_collector is not None:
            self.data_collector.log_telemetry(time.time(), telemetry)

        command = await asyncio.to_thread(self.controller.step, telemetry)
        self._account(command)

        if self.data_collector is not None:
            self.data_collector.log_command(time.time(), command)
        return encode_steer(command)

    def _account(self, command: ControlCommand) -> None:
        self.cycles += 1
        if command.status != STATUS_OK:
            self.fallbacks += 1
        elif not self._announced:
            logger.info(f"{TERM_BLUE}✓ Session {self.session_id}: running receding-horizon control{TERM_RESET}")
            self._announced = True

    async def run(self) -> None:
        """Serve the connection until the peer closes it."""
        delay = self.server_config.actuation_delay
        try:
            async for message in self.websocket:
                try:
                    reply = await self.handle_frame(message)
                except MalformedTelemetry as e:
                    self.skipped += 1
                    logger.warning(f"Session {self.session_id}: skipping malformed telemetry: {e}")
                    continue
                except Exception as e:
                    self.skipped += 1
                    logger.error(f"Session {self.session_id}: unexpected error processing message: {e}", exc_info=True)
                    continue

                if reply is None:
                    continue
                if delay > 0:
                    await asyncio.sleep(delay)
                await self.websocket.send(reply)
        except ConnectionClosed:
            # A solve in flight when the peer left is discarded here
            logger.info(f"Session {self.session_id}: connection closed by simulator")

        logger.info(
            f"Session {self.session_id} ended: {self.cycles} commands, "
            f"{self.fallbacks} fallbacks, {self.skipped} skipped"
        )


class ControlServer:
    """WebSocket server that spawns one ControlSession per connection."""

    def __init__(
        self,
        controller_config: Optional[ControllerConfig] = None,
        server_config: Optional[ServerConfig] = None,
    ) -> None:
        self.controller_config = controller_config or ControllerConfig()
        self.server_config = server_config or ServerConfig()
        self.sessions: Set[ControlSession] = set()
        self._session_count: int = 0

    def create_session(self, websocket: Any) -> ControlSession:
        """Build a session with a fresh controller (and recorder, if enabled)."""
        self._session_count += 1
        session_id = self._session_count

        collector = None
        if self.server_config.record:
            collector = DataCollector(output_dir=self.server_config.output_dir, suffix=f"s{session_id}")

        return ControlSession(
            websocket,
            MPCController(self.controller_config),
            server_config=self.server_config,
            data_collector=collector,
            session_id=session_id,
        )

    async def handler(self, websocket: Any) -> None:
        """Connection handler passed to websockets.serve."""
        session = self.create_session(websocket)
        self.sessions.add(session)
        logger.info(f"{TERM_BLUE}✓ Simulator connected (session {session.session_id}){TERM_RESET}")
        try:
            if session.data_collector is not None:
                with session.data_collector:
                    await session.run()
            else:
                await session.run()
        finally:
            self.sessions.discard(session)

    async def serve(self, stop: Optional[asyncio.Event] = None) -> None:
        """Listen until the stop event is set.

        Args:
            stop: Event that ends the server. If None, serve forever.
        """
        stop = stop or asyncio.Event()
        host, port = self.server_config.host, self.server_config.port
        async with websockets.serve(self.handler, host, port):
            logger.info(f"{TERM_BLUE}Listening on ws://{host}:{port}{TERM_RESET}")
            await stop.wait()
        logger.info(f"{TERM_ORANGE}Server stopped{TERM_RESET}")


async def main(
    controller_config: Optional[ControllerConfig] = None, server_config: Optional[ServerConfig] = None
) -> None:
    """Run the control server until SIGINT/SIGTERM.

    Args:
        controller_config: Vehicle profile shared by all sessions.
        server_config: Endpoint and session behaviour.
    """
    server = ControlServer(controller_config, server_config)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler() -> None:
        """Handle shutdown signals (SIGINT, SIGTERM)."""
        logger.info("\nShutdown signal received...")
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await server.serve(stop)
