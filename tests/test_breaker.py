from conftest import FakeClock

from simples_worker.services.breaker import ProviderBreaker


def test_breaker_trips_after_threshold_and_resets_counter(clock: FakeClock) -> None:
    breaker = ProviderBreaker(failure_threshold=4, cooldown_seconds=45.0, clock=clock)

    assert [breaker.record_failure("receitaws") for _ in range(3)] == [None, None, None]
    assert breaker.record_failure("receitaws") == 45.0
    assert breaker.state("receitaws").consecutive_failures == 0
    assert breaker.cooldown_remaining("receitaws") == 45.0
    assert breaker.cooldown_remaining("brasilapi") == 0.0


def test_cooldown_expires_with_time(clock: FakeClock) -> None:
    breaker = ProviderBreaker(failure_threshold=1, cooldown_seconds=45.0, clock=clock)
    breaker.record_failure("cnpjws")

    clock.now += 30
    assert breaker.cooldown_remaining("cnpjws") == 15.0

    clock.now += 15
    assert breaker.cooldown_remaining("cnpjws") == 0.0


def test_success_clears_failures(clock: FakeClock) -> None:
    breaker = ProviderBreaker(failure_threshold=4, cooldown_seconds=45.0, clock=clock)
    for _ in range(3):
        breaker.record_failure("minhareceita")

    breaker.record_success("minhareceita")

    assert breaker.state("minhareceita").consecutive_failures == 0
    assert breaker.record_failure("minhareceita") is None
