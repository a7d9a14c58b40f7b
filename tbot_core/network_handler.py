# tbot_core/network_handler.py
import asyncio
import errno
import socket
import ssl
import logging
from typing import Callable, List, Optional, Set

from tbot_core.app_config import AppConfig
from tbot_core.irc.irc_events import ConnectionClosed, NetworkError, TransportEvent
from tbot_core.irc.irc_protocol import handle_server_message
from tbot_core.irc.registration_handler import RegistrationHandler

logger = logging.getLogger("tbot.network")

READ_CHUNK_SIZE = 4096
STOP_WAIT_TIMEOUT = 1.0
WRITER_CLOSE_TIMEOUT = 5.0
# Longest partial line kept while waiting for its newline.
MAX_LINE_BUFFER = 8192


class TransportError(Exception):
    """Raised synchronously when a connection attempt cannot even be started."""


def classify_network_error(exc: BaseException) -> str:
    """Maps a connection-level exception to a short errno-style code."""
    if isinstance(exc, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(exc, ssl.SSLError):
        return "ESSL"
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "ETIMEDOUT"
    if isinstance(exc, ConnectionResetError):
        return "ECONNRESET"
    if isinstance(exc, ConnectionRefusedError):
        return "ECONNREFUSED"
    if isinstance(exc, asyncio.IncompleteReadError):
        return "ECONNRESET"
    if isinstance(exc, OSError) and exc.errno in errno.errorcode:
        return errno.errorcode[exc.errno]
    return "EUNKNOWN"


def mask_secrets(line: str) -> str:
    upper = line.upper()
    if upper.startswith("PASS "):
        return "PASS ******"
    if upper.startswith("AUTHENTICATE ") and line[len("AUTHENTICATE "):] not in ("PLAIN", "*", "+"):
        return "AUTHENTICATE ******"
    return line


def split_message(text: str, max_length: int) -> List[str]:
    """Flattens CR/LF and cuts text into chunks of at most max_length characters."""
    flat = text.replace("\r", "").replace("\n", " ")
    if max_length <= 0:
        return [flat] if flat else []
    return [flat[i:i + max_length] for i in range(0, len(flat), max_length)]


class NetworkHandler:
    """
    Owns the TCP/TLS connection to the IRC server.

    Every server line is turned into at most one transport event on
    ``event_queue``; each network task ends with exactly one terminal
    ConnectionClosed or NetworkError event.
    """

    def __init__(self, config: AppConfig, event_queue: "asyncio.Queue[TransportEvent]"):
        self.config = config
        self.server_config = config.server
        self.bot_config = config.bot
        self.event_queue = event_queue
        self.connected = False
        self.current_nick: str = self.server_config.nick
        self.joined_channels: Set[str] = set()
        self.registration_handler = RegistrationHandler(self, self.server_config)
        self.buffer: bytes = b""

        self._network_task: Optional[asyncio.Task] = None
        self._send_task: Optional[asyncio.Task] = None
        self._send_queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._stop_event = asyncio.Event()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._terminal_event_sent = False

    # --- helpers used by the protocol handlers ---

    def emit(self, event: TransportEvent) -> None:
        self.event_queue.put_nowait(event)

    def is_channel_name(self, name: Optional[str]) -> bool:
        return bool(name) and name[0] in self.bot_config.channel_prefixes

    def is_own_nick(self, nick: Optional[str]) -> bool:
        return bool(nick) and bool(self.current_nick) and nick.lower() == self.current_nick.lower()

    def is_connected(self) -> bool:
        return self.connected and self._writer is not None and not self._writer.is_closing()

    @property
    def task_running(self) -> bool:
        return self._network_task is not None and not self._network_task.done()

    # --- lifecycle ---

    def connect(self) -> None:
        """Starts a new network task. Raises TransportError if that is not possible right now."""
        if self.task_running:
            raise TransportError("A network task is already running.")
        if not self.server_config.address or not self.server_config.nick:
            raise TransportError("Server address or nick not configured.")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise TransportError(f"No running event loop: {e}") from e

        self._stop_event.clear()
        self._terminal_event_sent = False
        self.current_nick = self.server_config.nick
        logger.info(f"Connecting to {self.server_config.address}:{self.server_config.port} (SSL: {self.server_config.ssl})")
        self._network_task = loop.create_task(self.network_loop(), name="tbot-network")

    async def stop(self) -> bool:
        """Stop the network task, cancelling it if it does not finish in time."""
        if self._network_task is None or self._network_task.done():
            self._network_task = None
            return True

        logger.info("Stopping network handler...")
        self._stop_event.set()
        task = self._network_task
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=STOP_WAIT_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Network task did not complete in time, cancelling...")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.info("Network task successfully cancelled.")
        self._network_task = None
        return True

    async def disconnect(self, reason: Optional[str] = None, on_complete: Optional[Callable[[], None]] = None) -> None:
        """Sends QUIT, stops the network task and closes the socket, then calls on_complete."""
        logger.debug(f"disconnect called. Connected: {self.is_connected()}")
        if self.is_connected():
            await self.send_raw(f"QUIT :{reason or self.bot_config.quit_message}")
        await self.stop()
        await self._reset_connection_state()
        if on_complete is not None:
            on_complete()

    async def _connect_socket(self) -> None:
        cfg = self.server_config
        ssl_context = None
        if cfg.ssl:
            ssl_context = ssl.create_default_context()
            ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2
            if not cfg.verify_ssl_cert:
                logger.warning("SSL certificate verification DISABLED.")
                ssl_context.check_hostname = False
                ssl_context.verify_mode = ssl.CERT_NONE

        self._reader, self._writer = await asyncio.wait_for(
            asyncio.open_connection(cfg.address, cfg.port, ssl=ssl_context),
            timeout=cfg.connection_timeout,
        )
        self.connected = True
        logger.info(f"Successfully connected to {cfg.address}:{cfg.port}. SSL: {cfg.ssl}")

        if self.bot_config.flood_protection:
            self._send_task = asyncio.create_task(self._send_loop(), name="tbot-sender")

        await self.registration_handler.on_connection_established()

    async def network_loop(self) -> None:
        terminal_event: Optional[TransportEvent] = None
        try:
            await self._connect_socket()
            while not self._stop_event.is_set():
                data_chunk = await self._reader.read(READ_CHUNK_SIZE)
                if not data_chunk:
                    logger.info("Connection closed by server (empty read).")
                    terminal_event = ConnectionClosed(reason="Connection closed by server")
                    break
                await self._process_received_data(data_chunk)
        except asyncio.CancelledError:
            logger.info("Network loop task cancelled.")
            terminal_event = ConnectionClosed(reason="Network task cancelled")
        except (OSError, asyncio.TimeoutError, asyncio.IncompleteReadError) as e:
            code = classify_network_error(e)
            logger.error(f"Network error ({code}): {e}")
            terminal_event = NetworkError(code=code, message=str(e) or type(e).__name__)
        except Exception as e:
            logger.critical(f"Critical error in network_loop: {e}", exc_info=True)
            terminal_event = NetworkError(code="EUNKNOWN", message=str(e))
        finally:
            await self._reset_connection_state()
            self._emit_terminal(terminal_event or ConnectionClosed(reason="Disconnected"))
            logger.info("Network loop cleanup complete.")

    def _emit_terminal(self, event: TransportEvent) -> None:
        if self._terminal_event_sent:
            return
        self._terminal_event_sent = True
        self.emit(event)

    async def _reset_connection_state(self) -> None:
        self.connected = False
        self.joined_channels.clear()
        self.registration_handler.reset_registration_state()

        if self._send_task is not None and self._send_task is not asyncio.current_task():
            self._send_task.cancel()
        self._send_task = None
        while not self._send_queue.empty():
            self._send_queue.get_nowait()

        writer_to_close = self._writer
        self._reader = None
        self._writer = None
        if writer_to_close is not None and not writer_to_close.is_closing():
            writer_to_close.close()
            try:
                await asyncio.wait_for(writer_to_close.wait_closed(), timeout=WRITER_CLOSE_TIMEOUT)
            except (asyncio.TimeoutError, OSError) as e:
                logger.debug(f"Error waiting for writer to close: {e}")
        self.buffer = b""

    async def _process_received_data(self, data: bytes) -> None:
        self.buffer += data
        while b"\n" in self.buffer:
            line, self.buffer = self.buffer.split(b"\n", 1)
            decoded_line = line.rstrip(b"\r").decode(self.server_config.encoding, errors="replace")
            if not decoded_line:
                continue
            logger.debug(f"S << {decoded_line}")
            await handle_server_message(self, decoded_line)
        if len(self.buffer) > MAX_LINE_BUFFER:
            logger.warning(f"Discarding {len(self.buffer)} bytes of unterminated input.")
            self.buffer = b""

    # --- sending ---

    async def send_raw(self, data: str) -> None:
        if not self._writer or self._writer.is_closing():
            logger.error(f"send_raw: StreamWriter None or closing. Cannot send: {mask_secrets(data.strip())}")
            return
        try:
            if not data.endswith("\r\n"):
                data += "\r\n"
            self._writer.write(data.encode(self.server_config.encoding, errors="replace"))
            await self._writer.drain()
            logger.debug(f"C >> {mask_secrets(data.strip())}")
        except (OSError, RuntimeError) as e:
            logger.error(f"Network error sending data ({mask_secrets(data.strip())}): {e}")
            # Closing the writer makes the read loop end and report the failure.
            if self._writer is not None:
                self._writer.close()

    async def _send_loop(self) -> None:
        delay = self.bot_config.flood_protection_delay
        while True:
            line = await self._send_queue.get()
            await self.send_raw(line)
            await asyncio.sleep(delay)

    async def _queue_line(self, line: str) -> None:
        if self._send_task is not None and not self._send_task.done():
            await self._send_queue.put(line)
        else:
            await self.send_raw(line)

    async def say(self, target: str, text: str) -> None:
        for chunk in split_message(text, self.bot_config.message_split):
            await self._queue_line(f"PRIVMSG {target} :{chunk}")

    async def join(self, channel: str) -> None:
        await self.send_raw(f"JOIN {channel}")
