from unittest.mock import patch

from Assistant.core import CircuitBreaker


def test_new_endpoint_is_closed():
    assert CircuitBreaker(threshold=0.5, timeout=30).is_closed("get_invoice")


def test_opens_after_repeated_failures():
    breaker = CircuitBreaker(threshold=0.5, timeout=30)
    for _ in range(3):
        breaker.record_failure("get_invoice")
    assert breaker.is_closed("get_invoice")

    breaker.record_failure("get_invoice")

    assert not breaker.is_closed("get_invoice")


def test_half_open_after_timeout_then_recovers():
    breaker = CircuitBreaker(threshold=0.5, timeout=30)
    with patch("Assistant.core.circuit_breaker.time.monotonic", return_value=100.0):
        for _ in range(4):
            breaker.record_failure("get_invoice")

    with patch("Assistant.core.circuit_breaker.time.monotonic", return_value=131.0):
        assert breaker.is_closed("get_invoice")
        assert breaker.state_of("get_invoice") == "half_open"

    breaker.record_success("get_invoice")
    assert breaker.state_of("get_invoice") == "closed"


def test_failed_trial_reopens():
    breaker = CircuitBreaker(threshold=0.5, timeout=30)
    with patch("Assistant.core.circuit_breaker.time.monotonic", return_value=100.0):
        for _ in range(4):
            breaker.record_failure("get_invoice")
    with patch("Assistant.core.circuit_breaker.time.monotonic", return_value=131.0):
        breaker.is_closed("get_invoice")
        breaker.record_failure("get_invoice")
        assert not breaker.is_closed("get_invoice")


def test_half_open_allows_a_single_trial():
    breaker = CircuitBreaker(threshold=0.5, timeout=30)
    with patch("Assistant.core.circuit_breaker.time.monotonic", return_value=100.0):
        for _ in range(4):
            breaker.record_failure("get_invoice")

    with patch("Assistant.core.circuit_breaker.time.monotonic", return_value=131.0):
        assert breaker.is_closed("get_invoice")
        assert not breaker.is_closed("get_invoice")

    breaker.record_success("get_invoice")
    assert breaker.is_closed("get_invoice")
    assert breaker.is_closed("get_invoice")
