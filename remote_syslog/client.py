"""Syslog client: a writer thread draining a bounded packet queue onto UDP, TCP or TLS."""

import logging
import queue
import random
import socket
import ssl
import threading

from remote_syslog.packet import Packet

logger = logging.getLogger(__name__)

PROTOCOLS = ("udp", "tcp", "tls")
UDP_MAX_SIZE = 1024


class SyslogClient:
    """Ships packets put on ``packets`` to a remote syslog collector.

    Producers put ``Packet`` objects on the bounded ``packets`` queue; a full
    queue blocks the producer. The writer thread connects lazily, reconnects
    with exponential backoff and retries the packet it was holding. Every
    connection or write failure is pushed on ``errors`` for the owner to
    report; none of them stop the writer.
    """

    def __init__(
        self,
        host: str,
        port: int,
        protocol: str = "udp",
        client_hostname: str = "",
        ssl_context: ssl.SSLContext | None = None,
        connect_timeout: float = 30.0,
        write_timeout: float = 30.0,
        tcp_max_line_length: int = 99990,
        buffer_size: int = 100,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 60.0,
    ):
        if protocol not in PROTOCOLS:
            raise ValueError(f"unsupported protocol {protocol!r}")
        self._host = host
        self._port = port
        self._protocol = protocol
        self._ssl_context = ssl_context
        self._connect_timeout = connect_timeout
        self._write_timeout = write_timeout
        self._max_line_length = tcp_max_line_length
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self.client_hostname = client_hostname or socket.gethostname()
        self.packets: queue.Queue = queue.Queue(maxsize=buffer_size)
        self.errors: queue.Queue = queue.Queue()
        self._sock: socket.socket | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._sent = 0

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def sent(self) -> int:
        with self._lock:
            return self._sent

    @property
    def address(self) -> str:
        return f"{self._host}:{self._port}"

    def start(self):
        """Start the writer thread."""
        self._thread = threading.Thread(
            target=self._writer_loop, name="syslog-writer", daemon=True,
        )
        self._thread.start()

    def close(self):
        """Stop the writer thread and close the connection.

        Packets still queued are dropped.
        """
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)
        self._disconnect()

    def connect(self) -> bool:
        """Open the connection. Returns True on success."""
        try:
            if self._protocol == "udp":
                family, kind, proto, _, addr = socket.getaddrinfo(
                    self._host, self._port, type=socket.SOCK_DGRAM,
                )[0]
                sock = socket.socket(family, kind, proto)
                sock.connect(addr)
            else:
                sock = socket.create_connection(
                    (self._host, self._port), timeout=self._connect_timeout,
                )
                if self._protocol == "tls":
                    ctx = self._ssl_context or ssl.create_default_context()
                    try:
                        sock = ctx.wrap_socket(sock, server_hostname=self._host)
                    except OSError:
                        sock.close()
                        raise
            sock.settimeout(self._write_timeout)
        except OSError as e:
            self._report(e)
            return False
        self._sock = sock
        logger.info("Connected to %s over %s", self.address, self._protocol)
        return True

    def connect_with_backoff(self, max_attempts: int = 0) -> bool:
        """Retry ``connect`` with exponential backoff and jitter.

        Args:
            max_attempts: Max number of attempts (0 = unlimited until closed).

        Returns:
            True if connected, False if attempts ran out or the client closed.
        """
        attempt = 0
        while not self._stop.is_set():
            attempt += 1
            if self.connect():
                return True

            if max_attempts > 0 and attempt >= max_attempts:
                logger.error("Exhausted %d connection attempts to %s", max_attempts, self.address)
                return False

            delay = min(self._retry_base_delay * (2 ** (attempt - 1)), self._retry_max_delay)
            total_delay = delay + random.uniform(0, delay * 0.3)
            logger.info("Retrying %s in %.1fs (attempt %d)...", self.address, total_delay, attempt)
            self._stop.wait(total_delay)

        return False

    def encode(self, packet: Packet) -> bytes:
        """Wire bytes for *packet*: a datagram for UDP, a newline-framed line otherwise."""
        if self._protocol == "udp":
            return packet.generate(UDP_MAX_SIZE).encode("utf-8")
        return packet.generate(self._max_line_length).encode("utf-8") + b"\n"

    def write(self, packet: Packet) -> bool:
        """Send one packet on the current connection. Returns True on success."""
        if not self._sock:
            return False
        try:
            self._sock.sendall(self.encode(packet))
        except OSError as e:
            self._report(e)
            self._disconnect()
            return False
        with self._lock:
            self._sent += 1
        return True

    def _writer_loop(self):
        while not self._stop.is_set():
            try:
                packet = self.packets.get(timeout=0.5)
            except queue.Empty:
                continue
            self._deliver(packet)

    def _deliver(self, packet: Packet):
        """Write *packet*, reconnecting as often as needed until closed."""
        while not self._stop.is_set():
            if not self.connected and not self.connect_with_backoff():
                return
            if self.write(packet):
                return

    def _disconnect(self):
        if self._sock:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None

    def _report(self, error: Exception):
        logger.debug("Syslog transport error on %s: %s", self.address, error)
        self.errors.put(error)
