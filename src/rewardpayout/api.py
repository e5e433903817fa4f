"""
rewardpayout/api.py

REST API server for reward distribution.

Endpoints:
    GET  /health            liveness (no auth)
    GET  /balance           payer holdings
    POST /distribute        {"address": ..., "amount": ...}
    POST /distribute-batch  [{"address": ..., "amount": ...}, ...]

Every route except /health passes the client validation check (allowed
IPs, validation header). All routes are rate limited per client IP.
"""

import hmac
import ipaddress
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import trio

from .config import DEFAULT_VALIDATION_HEADER, RATE_LIMIT_PARAMS
from .errors import BatchSizeError
from .payout.models import PayoutRequest, amount_to_json

if TYPE_CHECKING:
    from .service import PayoutService

logger = logging.getLogger("rewardpayout.api")

SERVER_NAME = "rewardpayout"
MAX_BODY_BYTES = 10 * 1024 * 1024


@dataclass
class Request:
    """HTTP request representation."""
    method: str
    path: str
    query: Dict[str, List[str]]
    headers: Dict[str, str]
    body: bytes
    client_ip: str = "127.0.0.1"


@dataclass
class Response:
    """HTTP response representation."""
    status: int
    headers: Dict[str, str]
    body: bytes

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "Response":
        """Create JSON response."""
        body = json.dumps(data, indent=2, default=str).encode("utf-8")
        return cls(
            status=status,
            headers={"Content-Type": "application/json"},
            body=body,
        )

    @classmethod
    def error(cls, message: str, status: int = 400, error: str = "Bad Request") -> "Response":
        """Create error response."""
        return cls.json({"error": error, "message": message}, status=status)


# ============================================================================
# RATE LIMITING
# ============================================================================

@dataclass
class RateLimiter:
    """Token bucket rate limiter."""
    rate: float  # Tokens per second
    burst: float  # Max bucket size
    tokens: float = field(init=False)
    last_refill: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        self.tokens = self.burst

    def refill(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.burst, self.tokens + elapsed * self.rate)
        self.last_refill = now

    def try_consume(self, tokens: int = 1) -> bool:
        """Try to consume tokens. Returns True if allowed."""
        self.refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False


class ClientRateLimits:
    """
    One token bucket per client IP.

    A bucket left idle for a whole window has refilled to its burst, so it
    is dropped and recreated on the next request. The table never holds
    more than max_clients buckets; past that the least recently used go.
    """

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_PARAMS["max_requests"],
        window_seconds: float = RATE_LIMIT_PARAMS["window_seconds"],
        max_clients: int = RATE_LIMIT_PARAMS["max_clients"],
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_clients = max_clients
        self._limiters: Dict[str, RateLimiter] = {}
        self._last_prune = time.monotonic()

    def __len__(self) -> int:
        return len(self._limiters)

    def allow(self, client_ip: str) -> bool:
        now = time.monotonic()
        if now - self._last_prune >= self.window_seconds or len(self._limiters) >= self.max_clients:
            self.prune(now)

        limiter = self._limiters.get(client_ip)
        if limiter is None:
            limiter = RateLimiter(
                rate=self.max_requests / self.window_seconds,
                burst=self.max_requests,
            )
            self._limiters[client_ip] = limiter
        return limiter.try_consume()

    def prune(self, now: Optional[float] = None) -> None:
        """Drop idle buckets, then the oldest ones while at max_clients."""
        now = time.monotonic() if now is None else now

        idle = [ip for ip, limiter in self._limiters.items()
                if now - limiter.last_refill >= self.window_seconds]
        for ip in idle:
            del self._limiters[ip]

        excess = len(self._limiters) - self.max_clients + 1
        if excess > 0:
            oldest = sorted(self._limiters, key=lambda ip: self._limiters[ip].last_refill)
            for ip in oldest[:excess]:
                del self._limiters[ip]

        if idle or excess > 0:
            logger.debug(f"Rate limiter pruned to {len(self._limiters)} clients")
        self._last_prune = now


# ============================================================================
# CLIENT VALIDATION
# ============================================================================

def normalize_ip(ip: str) -> str:
    """
    Canonical text form of an IP address.

    IPv4-mapped IPv6 ('::ffff:10.0.0.1') becomes plain IPv4. Anything that
    does not parse is returned stripped, unchanged.
    """
    value = ip.strip()
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return value
    if address.version == 6 and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return str(address)


class ClientValidator:
    """
    Checks that a request comes from the game client.

    With no token configured the check is skipped (development only).
    """

    def __init__(
        self,
        token: Optional[str] = None,
        header: str = DEFAULT_VALIDATION_HEADER,
        allowed_ips: Optional[List[str]] = None,
    ):
        self.token = token
        self.header = header
        self.allowed_ips = [ip.strip() for ip in (allowed_ips or []) if ip.strip()]
        self._allowed = {normalize_ip(ip) for ip in self.allowed_ips}

        if not token:
            logger.warning("No validation token set. Skipping client validation for development.")

    def is_allowed_ip(self, client_ip: str) -> bool:
        if not self.allowed_ips:
            return True
        return normalize_ip(client_ip) in self._allowed

    def check(self, request: Request) -> Optional[Response]:
        """Return an error response if the request is not allowed, else None."""
        if not self.token:
            return None

        if not self.is_allowed_ip(request.client_ip):
            return Response.json({
                "error": "Unauthorized: Request from untrusted IP address",
                "message": f"IP address {request.client_ip} is not in the allowed list",
            }, status=401)

        provided = request.headers.get(self.header.lower())
        if not provided:
            return Response.json({
                "error": "Unauthorized: Missing validation header",
                "message": f"Expected header: {self.header}",
            }, status=401)

        if not hmac.compare_digest(provided.encode("utf-8"), self.token.encode("utf-8")):
            return Response.json({
                "error": "Unauthorized: Invalid validation token",
                "message": "The validation token provided does not match the expected value",
            }, status=401)

        return None


# ============================================================================
# API SERVER
# ============================================================================

class PayoutAPI:
    """
    REST API server for reward distribution.

    Payout routes share one lock, so two concurrent calls never interleave
    their balance checks and submissions against the payer account.

    Usage:
        from rewardpayout.config import PayoutConfig
        from rewardpayout.service import build_service
        from rewardpayout.api import PayoutAPI

        config = PayoutConfig.from_env()
        api = PayoutAPI(build_service(config), host=config.host, port=config.port)
        trio.run(api.start)
    """

    PUBLIC_ROUTES = {("GET", "/health")}

    def __init__(
        self,
        service: "PayoutService",
        host: str = "127.0.0.1",
        port: int = 3000,
        validator: Optional[ClientValidator] = None,
        rate_limits: Optional[ClientRateLimits] = None,
        trusted_proxies: Optional[List[str]] = None,
    ):
        """
        Initialize REST API server.

        Args:
            service: Assembled payout service
            host: Host to bind to (default: localhost)
            port: Port to listen on
            validator: Client validation (defaults to the service config)
            rate_limits: Per-IP rate limiting
            trusted_proxies: Proxy addresses whose forwarding headers are
                honoured (defaults to the service config)
        """
        self.service = service
        self.host = host
        self.port = port

        config = service.config
        self.validator = validator or ClientValidator(
            token=config.validation_token,
            header=config.validation_header,
            allowed_ips=config.allowed_ips,
        )
        self.rate_limits = rate_limits if rate_limits is not None else ClientRateLimits()
        if trusted_proxies is None:
            trusted_proxies = config.trusted_proxies
        self.trusted_proxies = {normalize_ip(ip) for ip in trusted_proxies}

        # Server state
        self._running = False
        self._start_time = time.time()
        self._payer_lock = trio.Lock()

        # Route handlers
        self._routes: Dict[Tuple[str, str], Callable] = {
            ("GET", "/health"): self._handle_health,
            ("GET", "/balance"): self._handle_balance,
            ("POST", "/distribute"): self._handle_distribute,
            ("POST", "/distribute-batch"): self._handle_distribute_batch,
        }

    async def start(self) -> None:
        """Start the API server."""
        if self._running:
            logger.warning("API server already running")
            return

        self._running = True
        logger.info(f"Starting reward distribution API on {self.host}:{self.port}")

        try:
            await trio.serve_tcp(
                self._handle_connection,
                self.port,
                host=self.host,
            )
        except Exception as e:
            logger.error(f"API server error: {e}")
            self._running = False
            raise

    async def stop(self) -> None:
        """Stop the API server."""
        self._running = False
        logger.info("REST API server stopped")

    async def _handle_connection(self, stream: trio.abc.Stream) -> None:
        """Handle incoming TCP connection."""
        try:
            request = await self._read_request(stream)
            if not request:
                return

            logger.info(f"Incoming request {request.method} {request.path} from {request.client_ip}")
            response = await self.handle(request)
            await self._send_response(stream, response)

        except Exception as e:
            logger.error(f"Connection error: {e}")
            try:
                await self._send_response(
                    stream, Response.error("An unexpected error occurred", 500, "Internal Server Error")
                )
            except Exception:
                pass
        finally:
            await stream.aclose()

    async def _read_request(self, stream: trio.abc.Stream) -> Optional[Request]:
        """Read and parse HTTP request."""
        try:
            data = b""
            while b"\r\n\r\n" not in data:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    return None
                data += chunk

            header_end = data.index(b"\r\n\r\n")
            header_data = data[:header_end].decode("utf-8")
            body = data[header_end + 4:]

            lines = header_data.split("\r\n")
            request_line = lines[0].split(" ")
            method = request_line[0]
            path_with_query = request_line[1] if len(request_line) > 1 else "/"

            parsed = urlparse(path_with_query)

            headers = {}
            for line in lines[1:]:
                if ":" in line:
                    key, value = line.split(":", 1)
                    headers[key.strip().lower()] = value.strip()

            content_length = min(int(headers.get("content-length", 0)), MAX_BODY_BYTES)
            while len(body) < content_length:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    break
                body += chunk

            return Request(
                method=method,
                path=parsed.path,
                query=parse_qs(parsed.query),
                headers=headers,
                body=body[:content_length] if content_length else body,
                client_ip=self._client_ip(stream, headers),
            )

        except Exception as e:
            logger.error(f"Error reading request: {e}")
            return None

    def _client_ip(self, stream: trio.abc.Stream, headers: Dict[str, str]) -> str:
        """
        Client address used for rate limiting and the IP allow-list.

        Proxy headers count only when the connection comes from a trusted
        proxy; X-Forwarded-For is then read right to left, skipping proxies.
        """
        peer = self._peer_ip(stream)
        if normalize_ip(peer) not in self.trusted_proxies:
            return peer

        hops = [hop.strip() for hop in headers.get("x-forwarded-for", "").split(",") if hop.strip()]
        for hop in reversed(hops):
            if normalize_ip(hop) not in self.trusted_proxies:
                return hop
        return headers.get("x-real-ip", "").strip() or peer

    @staticmethod
    def _peer_ip(stream: trio.abc.Stream) -> str:
        sock = getattr(stream, "socket", None)
        if sock is not None:
            try:
                return sock.getpeername()[0]
            except (OSError, IndexError, TypeError):
                pass
        return "127.0.0.1"

    async def _send_response(self, stream: trio.abc.Stream, response: Response) -> None:
        """Send HTTP response."""
        status_text = {
            200: "OK",
            400: "Bad Request",
            401: "Unauthorized",
            404: "Not Found",
            429: "Too Many Requests",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }.get(response.status, "Unknown")

        lines = [f"HTTP/1.1 {response.status} {status_text}"]

        response.headers["Content-Length"] = str(len(response.body))
        response.headers["Connection"] = "close"
        response.headers["Server"] = SERVER_NAME

        for key, value in response.headers.items():
            lines.append(f"{key}: {value}")

        lines.append("")
        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        await stream.send_all(header_bytes + response.body)

    async def handle(self, request: Request) -> Response:
        """Rate limit, route and authorize a parsed request."""
        if not self.rate_limits.allow(normalize_ip(request.client_ip)):
            return Response.error(
                "Too many requests from this IP, please try again later",
                status=429,
                error="Rate Limit Exceeded",
            )

        handler = self._routes.get((request.method, request.path))
        if handler is None:
            logger.warning(f"Route not found: {request.method} {request.path}")
            return Response.error(
                f"Cannot {request.method} {request.path}", status=404, error="Route Not Found"
            )

        if (request.method, request.path) not in self.PUBLIC_ROUTES:
            rejection = self.validator.check(request)
            if rejection is not None:
                logger.warning(f"Rejected {request.method} {request.path} from {request.client_ip}")
                return rejection

        try:
            return await handler(request)
        except Exception as e:
            logger.exception(f"Unhandled error on {request.path}")
            return Response.error(str(e), status=500, error="Internal Server Error")

    # ========== Route Handlers ==========

    async def _handle_health(self, request: Request) -> Response:
        """Handle health check."""
        return Response.json({
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": time.time() - self._start_time,
        })

    async def _handle_balance(self, request: Request) -> Response:
        """Handle payer balance."""
        try:
            data = await self.service.get_balance()
        except Exception as e:
            logger.error(f"Error getting balance: {e}")
            return Response.error(str(e), status=500, error="Internal Server Error")

        logger.info(f"Balance check completed: {data['balance']}")
        return Response.json({"success": True, "data": data})

    async def _handle_distribute(self, request: Request) -> Response:
        """Handle single reward distribution."""
        body, error = self._parse_body(request)
        if error:
            return error

        try:
            payout = PayoutRequest.from_dict(body)
        except ValueError as e:
            return Response.error(str(e), status=400, error="Validation Error")

        async with self._payer_lock:
            outcome = await self.service.single.attempt(payout)

        if not outcome.success:
            status = 400 if outcome.failure_kind and outcome.failure_kind.is_validation else 500
            return Response.json({
                "error": "Validation Error" if status == 400 else "Payout Failed",
                "message": outcome.failure_reason,
                "kind": str(outcome.failure_kind),
            }, status=status)

        logger.info(f"Single reward distribution completed: {outcome.settlement_reference}")
        return Response.json({
            "success": True,
            "message": "Reward distributed successfully",
            "data": {
                "recipient": outcome.recipient_address,
                "amount": amount_to_json(outcome.amount),
                "transaction": outcome.settlement_reference,
            },
        })

    async def _handle_distribute_batch(self, request: Request) -> Response:
        """Handle batch reward distribution."""
        body, error = self._parse_body(request)
        if error:
            return error

        if not isinstance(body, list):
            return Response.error("Request body must be an array of payouts", 400, "Validation Error")

        try:
            self.service.batch.validate_size(len(body))
            payouts = []
            for index, entry in enumerate(body):
                try:
                    payouts.append(PayoutRequest.from_dict(entry))
                except ValueError as e:
                    raise ValueError(f"[{index}] {e}")
        except ValueError as e:
            return Response.error(str(e), status=400, error="Validation Error")

        logger.info(f"Processing batch reward distribution of {len(payouts)} recipients")

        try:
            async with self._payer_lock:
                result = await self.service.batch.execute_batch(payouts)
        except BatchSizeError as e:
            return Response.error(str(e), status=400, error="Validation Error")

        return Response.json({
            "success": True,
            "message": result.summary,
            "data": result.to_dict(),
        })

    @staticmethod
    def _parse_body(request: Request) -> Tuple[Any, Optional[Response]]:
        if not request.body:
            return None, Response.error("Request body required", 400, "Validation Error")
        try:
            return json.loads(request.body, parse_float=Decimal), None
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None, Response.error("Invalid JSON", 400, "Validation Error")
