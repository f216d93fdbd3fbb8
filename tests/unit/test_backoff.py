from __future__ import annotations

import pytest

from aresguard.backoff import BackoffStrategy, ConstantBackoff, ExponentialBackoff

#####################################
#     Tests for ConstantBackoff     #
#####################################


@pytest.mark.parametrize("attempt", [0, 1, 5, 100])
def test_constant_backoff(attempt: int) -> None:
    assert ConstantBackoff(delay=1.5).calculate(attempt) == 1.5


def test_constant_backoff_default() -> None:
    assert ConstantBackoff().delay == 2.0


def test_constant_backoff_zero() -> None:
    assert ConstantBackoff(0).calculate(3) == 0


def test_constant_backoff_negative() -> None:
    with pytest.raises(ValueError, match=r"delay must be >= 0, got -1"):
        ConstantBackoff(delay=-1)


def test_constant_backoff_repr() -> None:
    assert repr(ConstantBackoff(delay=1.0)) == "ConstantBackoff(delay=1.0)"


########################################
#     Tests for ExponentialBackoff     #
########################################


@pytest.mark.parametrize(("attempt", "expected"), [(0, 0.5), (1, 1.0), (2, 2.0), (3, 4.0)])
def test_exponential_backoff(attempt: int, expected: float) -> None:
    assert ExponentialBackoff(base_delay=0.5).calculate(attempt) == expected


def test_exponential_backoff_max_delay() -> None:
    backoff = ExponentialBackoff(base_delay=1.0, max_delay=3.0)
    assert backoff.calculate(1) == 2.0
    assert backoff.calculate(2) == 3.0
    assert backoff.calculate(10) == 3.0


def test_exponential_backoff_invalid() -> None:
    with pytest.raises(ValueError, match=r"base_delay must be >= 0"):
        ExponentialBackoff(base_delay=-0.5)
    with pytest.raises(ValueError, match=r"max_delay must be > 0"):
        ExponentialBackoff(max_delay=0)


def test_exponential_backoff_repr() -> None:
    assert (
        repr(ExponentialBackoff(base_delay=1.0, max_delay=8.0))
        == "ExponentialBackoff(base_delay=1.0, max_delay=8.0)"
    )


def test_backoff_strategy_abstract() -> None:
    with pytest.raises(TypeError):
        BackoffStrategy()  # type: ignore[abstract]
