r"""Delay strategies used between network retries.

When a request fails with a transport error and network handling is
enabled, the network stage waits for connectivity and then sleeps for
the delay returned by a strategy before sending the request again.
"""

from __future__ import annotations

__all__ = ["BackoffStrategy", "ConstantBackoff", "ExponentialBackoff"]

from abc import ABC, abstractmethod


class BackoffStrategy(ABC):
    """Base class of the delay strategies.

    A strategy maps the retry number to the number of seconds to sleep
    before that retry.
    """

    @abstractmethod
    def calculate(self, attempt: int) -> float:
        """Return the delay before a retry.

        Args:
            attempt: The retry number (0-indexed). ``attempt=0`` is the
                first retry.

        Returns:
            The delay in seconds.
        """


class ConstantBackoff(BackoffStrategy):
    """Sleep the same amount of time before every retry.

    Args:
        delay: The delay in seconds.

    Example:
        ```pycon
        >>> from aresguard.backoff import ConstantBackoff
        >>> backoff = ConstantBackoff(delay=2.0)
        >>> backoff.calculate(0)
        2.0
        >>> backoff.calculate(5)
        2.0

        ```
    """

    def __init__(self, delay: float = 2.0) -> None:
        if delay < 0:
            msg = f"delay must be >= 0, got {delay}"
            raise ValueError(msg)
        self.delay = delay

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(delay={self.delay})"

    def calculate(self, attempt: int) -> float:  # noqa: ARG002
        return self.delay


class ExponentialBackoff(BackoffStrategy):
    """Double the delay on every retry.

    The delay is ``base_delay * 2 ** attempt``, capped at ``max_delay``
    when one is given.

    Args:
        base_delay: The delay before the first retry.
        max_delay: Optional upper bound of the delay.

    Example:
        ```pycon
        >>> from aresguard.backoff import ExponentialBackoff
        >>> backoff = ExponentialBackoff(base_delay=0.5, max_delay=3.0)
        >>> backoff.calculate(0)
        0.5
        >>> backoff.calculate(2)
        2.0
        >>> backoff.calculate(4)
        3.0

        ```
    """

    def __init__(self, base_delay: float = 0.5, max_delay: float | None = None) -> None:
        if base_delay < 0:
            msg = f"base_delay must be >= 0, got {base_delay}"
            raise ValueError(msg)
        if max_delay is not None and max_delay <= 0:
            msg = f"max_delay must be > 0, got {max_delay}"
            raise ValueError(msg)
        self.base_delay = base_delay
        self.max_delay = max_delay

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(base_delay={self.base_delay}, "
            f"max_delay={self.max_delay})"
        )

    def calculate(self, attempt: int) -> float:
        delay = self.base_delay * (2**attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay
