import time

import pytest

from webcore.rate import INF, INF_DURATION, Limiter, Reservation, every

T = 1000.0


@pytest.mark.parametrize("interval", [0, -1.5])
def test_every_non_positive_interval_is_infinite(interval):
    assert every(interval) == INF


@pytest.mark.parametrize("interval", [0.25, 2.0, 10.0])
def test_every_is_reciprocal_of_interval(interval):
    assert every(interval) * interval == pytest.approx(1.0)


def test_zero_limiter_rejects_events():
    lim = Limiter()
    assert lim.allow_n(T, 1) is False
    assert lim.reserve_n(T, 1).ok is False


def test_infinite_limit_allows_everything_even_with_zero_burst():
    lim = Limiter(limit=INF, burst=0)
    assert all(lim.allow_n(T, 1000) for _ in range(5))


def test_burst_is_consumed_then_denied():
    burst = 3
    lim = Limiter(limit=1.0, burst=burst)
    results = [lim.allow_n(T, 1) for _ in range(burst)]
    assert all(results)
    assert lim.allow_n(T, 1) is False


def test_tokens_refill_over_time():
    rate = 2.0
    lim = Limiter(limit=rate, burst=1)
    assert lim.allow_n(T, 1)
    assert lim.allow_n(T, 1) is False
    assert lim.allow_n(T + 1 / rate, 1)


def test_fresh_limiter_is_full_and_tokens_at_does_not_mutate():
    lim = Limiter(limit=1.0, burst=4)
    first = lim.tokens_at(T)
    second = lim.tokens_at(T)
    assert first == second == lim.burst


def test_tokens_never_exceed_burst():
    lim = Limiter(limit=5.0, burst=2)
    assert lim.allow_n(T, 2)
    assert lim.tokens_at(T + 10_000) == lim.burst


def test_reserve_more_than_burst_is_not_ok():
    lim = Limiter(limit=1.0, burst=2)
    reservation = lim.reserve_n(T, 3)
    assert reservation.ok is False
    assert reservation.delay_from(T) == INF_DURATION
    assert lim.tokens_at(T) == lim.burst


def test_reserve_beyond_available_tokens_waits():
    rate = 2.0
    lim = Limiter(limit=rate, burst=1)
    first = lim.reserve_n(T, 1)
    second = lim.reserve_n(T, 1)
    assert first.delay_from(T) == 0
    assert second.ok
    assert second.delay_from(T) == pytest.approx(1 / rate)
    assert second.delay_from(T + 1 / rate) == 0


def test_cancel_restores_tokens():
    lim = Limiter(limit=1.0, burst=1)
    reservation = lim.reserve_n(T, 1)
    assert lim.allow_n(T, 1) is False
    reservation.cancel_at(T)
    assert lim.tokens_at(T) == lim.burst
    assert lim.allow_n(T, 1)


def test_cancel_after_time_to_act_does_nothing():
    lim = Limiter(limit=1.0, burst=1)
    reservation = lim.reserve_n(T, 1)
    before = lim.tokens_at(T + 0.5)
    reservation.cancel_at(T + 0.5)
    assert lim.tokens_at(T + 0.5) == before


def test_cancel_of_rejected_reservation_does_nothing():
    lim = Limiter(limit=1.0, burst=1)
    reservation = lim.reserve_n(T, 5)
    reservation.cancel_at(T)
    assert reservation.ok is False
    assert lim.token_count == 0


def test_set_limit_at_keeps_accumulated_tokens():
    lim = Limiter(limit=1.0, burst=2)
    assert lim.allow_n(T, 2)
    lim.set_limit_at(T, 10.0)
    assert lim.limit == 10.0
    assert lim.last == T
    assert lim.allow_n(T, 1) is False
    assert lim.allow_n(T + 0.2, 1)


def test_set_burst_at_changes_capacity():
    new_burst = 5
    lim = Limiter(limit=1.0, burst=1)
    lim.set_burst_at(T, new_burst)
    assert lim.burst == new_burst
    assert lim.tokens_at(T + 100) == new_burst


def test_zero_limit_consumes_burst():
    lim = Limiter(limit=0, burst=2)
    assert lim.allow_n(T, 1)
    assert lim.allow_n(T, 1)
    assert lim.allow_n(T, 1) is False
    assert lim.burst == 0


def test_wait_n_exceeding_burst_raises():
    lim = Limiter(limit=1.0, burst=1)
    with pytest.raises(ValueError, match="exceeds limiter's burst"):
        lim.wait_n(2)


def test_wait_n_ignores_burst_with_infinite_limit():
    lim = Limiter(limit=INF, burst=0)
    lim.wait_n(10)
    assert lim.allow_n(T, 10)


def test_wait_with_short_timeout_raises():
    lim = Limiter(limit=every(10.0), burst=1)
    lim.wait()
    with pytest.raises(TimeoutError, match="would exceed context deadline"):
        lim.wait(timeout=0.01)


def test_wait_with_expired_timeout_raises():
    lim = Limiter(limit=1.0, burst=1)
    with pytest.raises(TimeoutError):
        lim.wait(timeout=0)


def test_wait_blocks_until_token_available():
    interval = 0.05
    lim = Limiter(limit=every(interval), burst=1)
    lim.wait()
    assert lim.tokens() < 1
    start = time.monotonic()
    lim.wait()
    assert time.monotonic() - start >= interval * 0.8
    assert lim.tokens() < 1


def test_reserve_on_full_limiter_acts_immediately():
    lim = Limiter(limit=1.0, burst=1)
    reservation = lim.reserve()
    assert isinstance(reservation, Reservation)
    assert reservation.ok
    assert reservation.delay() == 0