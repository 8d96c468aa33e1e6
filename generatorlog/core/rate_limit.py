"""
Rate limiting for GeneratorLog.

Two layers are used:
- RateLimiter: a fixed-window counter owned by the application instance and
  applied to API-key endpoints (the device toggle).
- auth_limiter: a slowapi Limiter guarding the password endpoints.

Both key clients by get_real_client_ip(), which only trusts X-Forwarded-For
from configured proxies.
"""
import ipaddress
import math
import threading
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable

from fastapi import Request
from slowapi import Limiter

from generatorlog.core.config import get_settings
from generatorlog.core.logger import get_logger

logger = get_logger(__name__)

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@lru_cache(maxsize=8)
def parse_trusted_proxies(proxy_config: str) -> tuple[IPNetwork, ...]:
    """
    Parse a comma-separated list of trusted proxies into networks.

    Supports both individual IPs and CIDR notation, e.g.
    "10.0.0.1,10.0.0.2,172.16.0.0/28". A single IP becomes a /32 (or /128).
    Results are cached per configuration string.
    """
    networks = []
    for proxy in proxy_config.split(","):
        proxy = proxy.strip()
        if not proxy:
            continue
        try:
            networks.append(ipaddress.ip_network(proxy, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy: {proxy}")

    return tuple(networks)


def is_trusted_proxy(address: str, trusted: tuple[IPNetwork, ...]) -> bool:
    if not trusted:
        return False
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return any(ip in network for network in trusted)


def get_real_client_ip(request: Request) -> str:
    """
    Get the real client IP address for rate limiting.

    X-Forwarded-For is honoured only when the direct peer is a trusted
    proxy; the rightmost non-trusted address in the chain is the client.

    Args:
        request: The incoming request.

    Returns:
        The client IP address to use for rate limiting.
    """
    direct_client_ip = request.client.host if request.client else "unknown"
    trusted = parse_trusted_proxies(get_settings().trusted_proxies)

    if not is_trusted_proxy(direct_client_ip, trusted):
        return direct_client_ip

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if not x_forwarded_for:
        return direct_client_ip

    ips = [ip.strip() for ip in x_forwarded_for.split(",")]
    for ip in reversed(ips):
        if ip and not is_trusted_proxy(ip, trusted):
            return ip

    # Every hop is a trusted proxy, use the original source
    return ips[0] if ips[0] else direct_client_ip


# Password endpoints (enroll, login, password change)
auth_limiter = Limiter(key_func=get_real_client_ip)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int | None = None


@dataclass
class _ClientWindow:
    lock: threading.Lock = field(default_factory=threading.Lock)
    count: int = 0
    window_end: float = float("-inf")
    # Set by sweep() once the entry is dropped from the map
    evicted: bool = False


class RateLimiter:
    """
    Fixed-window request counter keyed by client id.

    A client may send `limit` requests per window; the window starts with the
    first request after the previous one elapsed. Expired windows are swept
    by a background thread every `sweep_interval` seconds (None disables the
    thread; call sweep() directly). Call close() to stop the sweeper.

    Each client has its own lock, so updates for one client are serialized
    and different clients never wait on each other's counting. The map lock
    is held only to look up or create a client's entry.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 1.0,
        sweep_interval: float | None = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._clients: dict[str, _ClientWindow] = {}
        self._clients_lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

        if sweep_interval is not None:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                args=(sweep_interval,),
                name="rate-limit-sweeper",
                daemon=True,
            )
            self._sweeper.start()

    def _window_for(self, client_id: str) -> _ClientWindow:
        with self._clients_lock:
            window = self._clients.get(client_id)
            if window is None:
                window = self._clients[client_id] = _ClientWindow()
            return window

    def check_limit(self, client_id: str) -> RateLimitResult:
        """Count one request for client_id and decide whether it may proceed."""
        while True:
            window = self._window_for(client_id)
            with window.lock:
                if window.evicted:
                    # Swept between lookup and lock; take the fresh entry
                    continue

                now = self._clock()
                if now > window.window_end:
                    window.count = 1
                    window.window_end = now + self.window_seconds
                    return RateLimitResult(allowed=True, remaining=self.limit - 1)

                if window.count < self.limit:
                    window.count += 1
                    return RateLimitResult(allowed=True, remaining=self.limit - window.count)

                retry_after = max(1, math.ceil(window.window_end - now))
                return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

    def sweep(self) -> int:
        """Drop records whose window has elapsed. Returns how many were removed."""
        removed = 0
        with self._clients_lock:
            for client_id, window in list(self._clients.items()):
                # A busy entry is being counted right now, so it is not stale
                if not window.lock.acquire(blocking=False):
                    continue
                try:
                    if self._clock() > window.window_end:
                        window.evicted = True
                        del self._clients[client_id]
                        removed += 1
                finally:
                    window.lock.release()
        return removed

    def _sweep_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            removed = self.sweep()
            if removed:
                logger.debug(f"Rate limiter swept {removed} expired client windows")

    def active_clients(self) -> int:
        """Number of clients currently holding a window."""
        with self._clients_lock:
            return len(self._clients)

    def close(self) -> None:
        """Stop the background sweeper and forget all windows."""
        self._stop.set()
        if self._sweeper is not None and self._sweeper is not threading.current_thread():
            self._sweeper.join(timeout=1.0)
        with self._clients_lock:
            self._clients.clear()
