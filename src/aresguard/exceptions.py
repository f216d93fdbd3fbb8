r"""Exception types raised by aresguard.

Errors on the request path derive from ``HttpRequestError`` and reach
the caller. ``CacheError`` and ``ConnectivityCheckError`` are raised by
storage backends and interface sources and are always absorbed by the
components that use them.
"""

from __future__ import annotations

__all__ = [
    "AuthError",
    "CacheError",
    "ConnectivityCheckError",
    "HttpRequestError",
    "NetworkOfflineError",
    "RequestCancelledError",
    "wrap_http_error",
]

import httpx


class HttpRequestError(RuntimeError):
    r"""Base error for a request that could not be completed.

    Args:
        method: The HTTP method of the failed request.
        url: The URL of the failed request.
        message: A descriptive error message.
        status_code: The HTTP status code, if a response was received.
        response: The HTTP response, if one was received.
        cause: The underlying exception, if any.

    Example:
        ```pycon
        >>> from aresguard.exceptions import HttpRequestError
        >>> err = HttpRequestError(
        ...     method="GET", url="https://api.example.com", message="boom", status_code=500
        ... )
        >>> err.status_code
        500

        ```
    """

    def __init__(
        self,
        method: str,
        url: str,
        message: str,
        status_code: int | None = None,
        response: httpx.Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.message = message
        self.status_code = status_code
        self.response = response
        self.cause = cause

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(method={self.method!r}, url={self.url!r}, "
            f"status_code={self.status_code!r}, message={self.message!r})"
        )

    @property
    def is_cancelled(self) -> bool:
        return isinstance(self, RequestCancelledError)

    @property
    def is_timeout_error(self) -> bool:
        """Whether the request failed with a connect, read, write or pool
        timeout."""
        return isinstance(self.cause, httpx.TimeoutException)

    @property
    def is_network_error(self) -> bool:
        """Whether the server could not be reached at all.

        This covers the offline state, connection failures and connect
        timeouts.
        """
        return isinstance(self, NetworkOfflineError) or isinstance(
            self.cause, (httpx.ConnectError, httpx.ConnectTimeout)
        )

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and 500 <= self.status_code < 600

    @property
    def user_friendly_message(self) -> str:
        r"""Return a message describing the failure to an end user.

        Example:
            ```pycon
            >>> from aresguard.exceptions import HttpRequestError
            >>> err = HttpRequestError("GET", "https://api.example.com", "boom", status_code=503)
            >>> err.is_server_error, err.user_friendly_message
            (True, 'Server error: Internal server error')

            ```
        """
        if self.is_cancelled:
            return "Request was cancelled."
        if isinstance(self.cause, httpx.ConnectTimeout):
            return "Connection timeout. Please check your internet connection and try again."
        if isinstance(self.cause, httpx.ReadTimeout):
            return "Response timeout. The server is taking too long to respond."
        if self.is_timeout_error:
            return "Request timeout. The server is taking too long to respond."
        if self.is_network_error:
            return "Connection error. Please check your internet connection."
        reason = self.response.reason_phrase if self.response is not None else ""
        if self.is_client_error:
            return f"Client error: {reason or 'Bad request'}"
        if self.is_server_error:
            return f"Server error: {reason or 'Internal server error'}"
        if self.status_code is not None:
            return f"Bad response from server: {reason or 'Unknown error'}"
        return f"An unknown error occurred: {self.message}"


class AuthError(HttpRequestError):
    r"""Raised when a 401 could not be recovered by refreshing the token.

    The status code is always 401.
    """

    def __init__(
        self,
        method: str,
        url: str,
        message: str = "Authentication failed - token refresh unsuccessful",
        response: httpx.Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            method=method,
            url=url,
            message=message,
            status_code=401,
            response=response,
            cause=cause,
        )


class NetworkOfflineError(HttpRequestError):
    r"""Raised when a request needs the network while it is offline."""

    def __init__(
        self,
        method: str,
        url: str,
        message: str = "No internet connection available",
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(method=method, url=url, message=message, cause=cause)


class RequestCancelledError(HttpRequestError):
    r"""Raised to the caller of a cancelled request."""

    def __init__(
        self, method: str, url: str, message: str = "Request was cancelled"
    ) -> None:
        super().__init__(method=method, url=url, message=message)


class CacheError(RuntimeError):
    r"""Raised by cache storage backends on I/O failure."""


class ConnectivityCheckError(RuntimeError):
    r"""Raised by interface sources when the OS state cannot be read."""


def wrap_http_error(exc: httpx.HTTPError) -> HttpRequestError:
    r"""Wrap an httpx error raised by a request in an ``HttpRequestError``.

    Transport errors propagate from the client unchanged; wrapping them
    gives access to the classification properties of
    ``HttpRequestError``.

    Args:
        exc: The error. It must carry the request that failed.

    Returns:
        The wrapped error, with ``exc`` as its ``cause``.

    Example:
        ```pycon
        >>> import httpx
        >>> from aresguard.exceptions import wrap_http_error
        >>> request = httpx.Request("GET", "https://api.example.com")
        >>> err = wrap_http_error(httpx.ConnectTimeout("timed out", request=request))
        >>> err.is_network_error, err.is_timeout_error
        (True, True)

        ```
    """
    request = exc.request
    response = exc.response if isinstance(exc, httpx.HTTPStatusError) else None
    return HttpRequestError(
        method=request.method,
        url=str(request.url),
        message=str(exc) or type(exc).__name__,
        status_code=None if response is None else response.status_code,
        response=response,
        cause=exc,
    )
