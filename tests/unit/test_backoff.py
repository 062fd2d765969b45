"""Unit tests for BackoffPolicy."""

import pytest

from ledger_sync.utils.backoff import BackoffPolicy


class TestBackoffPolicy:
    """Delay growth, ceiling and jitter."""

    def test_exponential_growth_without_jitter(self):
        policy = BackoffPolicy(initial=1.0, max_delay=60.0, factor=2.0, jitter=0.0)

        assert [policy.delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        policy = BackoffPolicy(initial=1.0, max_delay=5.0, jitter=0.0)

        assert policy.delay(10) == 5.0

    def test_large_attempt_stays_at_ceiling(self):
        """Attempts far past the ceiling neither overflow nor exceed max_delay plus jitter."""
        policy = BackoffPolicy()

        assert 0 < policy.delay(10_000) <= policy.max_delay * (1 + policy.jitter)
        assert BackoffPolicy(jitter=0.0).delay(10_000) == 60.0
        assert BackoffPolicy(initial=0.0, jitter=0.0).delay(10_000) == 0.0
        assert BackoffPolicy(initial=100.0, max_delay=5.0, jitter=0.0).delay(10_000) == 5.0

    def test_attempt_below_one_treated_as_first(self):
        policy = BackoffPolicy(initial=2.0, jitter=0.0)

        assert policy.delay(0) == 2.0

    def test_jitter_bounds(self):
        """Jitter stays within ±jitter of the base delay."""
        low = BackoffPolicy(initial=10.0, jitter=0.2, rng=lambda a, b: a)
        high = BackoffPolicy(initial=10.0, jitter=0.2, rng=lambda a, b: b)

        assert low.delay(1) == pytest.approx(8.0)
        assert high.delay(1) == pytest.approx(12.0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial": -1.0},
            {"max_delay": -1.0},
            {"factor": 0.5},
            {"jitter": 1.5},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            BackoffPolicy(**kwargs)
