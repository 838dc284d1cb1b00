# clients/base_http_client.py
import requests
import json
import socket
import threading
import time

from typing import Dict, Any, Optional
from urllib.parse import urljoin
from abc import ABC
from keyprobe.core.exceptions.exceptions import ProtocolError, TransportError
from keyprobe.utils.log import app_logger, sanitize


USER_AGENT = "keyprobe/0.1"
CHUNK_SIZE = 8192


class HTTPResult:
    """Fully read response of a single request"""

    def __init__(self, status_code: int, content: bytes, headers: Optional[Dict] = None,
                 encoding: Optional[str] = None, elapsed: float = 0.0):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.encoding = encoding or 'utf-8'
        self.elapsed = elapsed

    @property
    def text(self) -> str:
        try:
            return self.content.decode(self.encoding, errors='replace')
        except LookupError:
            # charset declared by the server is unknown to python
            return self.content.decode('utf-8', errors='replace')

    def json(self) -> Any:
        return json.loads(self.text)


def _abort_response(response):
    """shut the socket down so a blocked read returns, then close the response"""
    raw = getattr(response, 'raw', None)
    connection = getattr(raw, 'connection', None)
    sock = getattr(connection, 'sock', None)
    if sock is not None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
    response.close()


class BaseHTTPClient(ABC):
    """Base HTTP client with common functionalities like POST, timeouts, and error handling.

    Every request is a single attempt. The timeout bounds the whole exchange
    (connect, headers and body): the exchange runs on a daemon thread and the
    caller stops waiting at the deadline, aborting the in-flight response.
    """

    def __init__(self,
                 base_url: str,
                 api_key: Optional[str] = None,
                 timeout: float = 10.0,
                 content_type: Optional[str] = 'application/json',
                 accept: Optional[str] = 'application/json',
                 session: Optional[requests.Session] = None
                 ):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.content_type = content_type
        self.accept = accept
        self.session = session if session is not None else requests.Session()
        self._live = set()
        self._lock = threading.Lock()

        # setup default headers
        self._setup_default_headers()

    def _setup_default_headers(self):
        """setup default headers for the client"""
        self.session.headers.update({
            'User-Agent': USER_AGENT,
            'Accept': self.accept,
            'Content-Type': self.content_type,
        })

        # add authentication header if api_key is provided
        if self.api_key:
            self._setup_authentication()

    def _setup_authentication(self):
        """setup authentication with API key (can be overridden)"""
        pass

    def _build_url(self, endpoint: str) -> str:
        """build full URL"""
        return urljoin(f"{self.base_url}/", endpoint.lstrip('/'))

    def _exchange(self, method: str, url: str, data, headers, timeout: float, outcome: Dict):
        """runs on the worker thread; results and errors are handed back through `outcome`"""
        try:
            response = self.session.request(
                method=method,
                url=url,
                json=data,
                headers=headers,
                timeout=timeout,
                stream=True
            )
            with self._lock:
                self._live.add(response)
            outcome['live'] = response
            try:
                chunks = [chunk for chunk in response.iter_content(chunk_size=CHUNK_SIZE) if chunk]
            finally:
                with self._lock:
                    self._live.discard(response)
                response.close()
            outcome['response'] = response
            outcome['content'] = b''.join(chunks)
        except BaseException as e:
            outcome['error'] = e

    def _make_request(self, method: str, endpoint: str,
                      data: Optional[Dict] = None,
                      headers: Optional[Dict] = None,
                      timeout: Optional[float] = None) -> HTTPResult:
        """do a single HTTP request and read the whole body within the deadline"""
        url = self._build_url(endpoint)
        request_headers = headers or {}
        timeout = timeout if timeout is not None else self.timeout
        started = time.monotonic()
        deadline = started + timeout
        outcome: Dict[str, Any] = {}

        worker = threading.Thread(
            target=self._exchange,
            args=(method, url, data, request_headers, timeout, outcome),
            name=f"keyprobe-{endpoint.strip('/').replace('/', '-')}",
            daemon=True,
        )
        worker.start()
        try:
            worker.join(max(deadline - time.monotonic(), 0.0))
        except BaseException:
            # interrupted while waiting: release the connection before unwinding
            self._abort(outcome)
            raise

        if worker.is_alive():
            self._abort(outcome)
            app_logger.warning("request.deadline_exceeded", method=method, url=url, timeout=timeout)
            raise TransportError(f"no complete response within {timeout:g}s", timeout=True)

        try:
            if 'error' in outcome:
                raise outcome['error']

        except requests.exceptions.Timeout as e:
            app_logger.error("request.timeout", method=method, url=url, timeout=timeout, error=sanitize(e))
            raise TransportError(f"{type(e).__name__}: {sanitize(e)}", timeout=True) from e

        except requests.exceptions.RequestException as e:
            # sanitize message to remove memory addresses like <HTTPSConnection(...) at 0x...>
            sanitized = sanitize(e)
            exc_type = type(e).__name__
            app_logger.error("request.failed", method=method, url=url, exc_type=exc_type, error=sanitized)
            raise TransportError(f"{exc_type}: {sanitized}") from e

        response = outcome['response']
        content = outcome['content']
        result = HTTPResult(
            status_code=response.status_code,
            content=content,
            headers=dict(response.headers or {}),
            encoding=response.encoding,
            elapsed=time.monotonic() - started,
        )

        if result.status_code != 200:
            app_logger.debug("request.status", method=method, url=url, status_code=result.status_code)
            raise ProtocolError(result.status_code, result.text)

        app_logger.debug("request.ok", method=method, url=url, length=len(content), elapsed=round(result.elapsed, 3))
        return result

    def _abort(self, outcome: Dict):
        response = outcome.get('live')
        if response is not None:
            _abort_response(response)

    def post(self, endpoint: str, data: Optional[Dict] = None,
             headers: Optional[Dict] = None, timeout: Optional[float] = None) -> HTTPResult:
        """do POST request"""
        return self._make_request('POST', endpoint, data=data, headers=headers, timeout=timeout)

    def abort(self):
        """abort every in-flight response and close the session"""
        with self._lock:
            live = list(self._live)
            self._live.clear()
        for response in live:
            _abort_response(response)
        if live:
            app_logger.warning("request.aborted", count=len(live))
        self.session.close()

    def close(self):
        """close HTTP session"""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
