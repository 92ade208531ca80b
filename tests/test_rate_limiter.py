"""Tests for the token budget rate limiter."""

from orchestrator_ai import rate_limiter
from orchestrator_ai.models import MissionState, MissionStatus, PeriodUnit, RateLimitConfig

from .helpers import make_state

NOW = 1_700_000_000_000


def _state(**changes) -> MissionState:
	return make_state(window_start_time=NOW, **changes)


class TestCheck:
	def test_permits_below_threshold(self):
		state = _state(token_usage=700)
		permitted, new_state = rate_limiter.check(state, RateLimitConfig(max_tokens=1000), NOW + 1000)
		assert permitted
		assert new_state is state

	def test_denies_at_threshold_with_exact_wait(self):
		config = RateLimitConfig(max_tokens=1000, period_value=1, period_unit=PeriodUnit.MINUTES)
		state = _state(token_usage=850)
		now = NOW + 15_000

		permitted, new_state = rate_limiter.check(state, config, now)

		assert not permitted
		assert new_state.status == MissionStatus.COOLDOWN
		assert new_state.next_allowed_time == now + (60_000 - 15_000)
		assert new_state.token_usage == 850

	def test_exactly_eighty_percent_is_denied(self):
		permitted, _ = rate_limiter.check(_state(token_usage=800), RateLimitConfig(max_tokens=1000), NOW)
		assert not permitted

	def test_elapsed_window_resets_usage(self):
		config = RateLimitConfig(max_tokens=1000, period_value=10, period_unit=PeriodUnit.SECONDS)
		now = NOW + 10_001

		permitted, new_state = rate_limiter.check(_state(token_usage=990), config, now)

		assert permitted
		assert new_state.token_usage == 0
		assert new_state.window_start_time == now
		assert new_state.status == MissionStatus.WORKING

	def test_window_boundary_is_not_elapsed(self):
		config = RateLimitConfig(max_tokens=1000, period_value=10, period_unit=PeriodUnit.SECONDS)
		permitted, new_state = rate_limiter.check(_state(token_usage=900), config, NOW + 10_000)
		assert not permitted
		assert new_state.next_allowed_time == NOW + 10_000

	def test_elapsed_window_ends_cooldown(self):
		config = RateLimitConfig(max_tokens=1000, period_value=1, period_unit=PeriodUnit.SECONDS)
		state = _state(status=MissionStatus.COOLDOWN, token_usage=900)
		_, new_state = rate_limiter.check(state, config, NOW + 5000)
		assert new_state.status == MissionStatus.WORKING


def test_remaining_ms_never_negative():
	state = _state(next_allowed_time=NOW + 500)
	assert rate_limiter.remaining_ms(state, NOW) == 500
	assert rate_limiter.remaining_ms(state, NOW + 900) == 0
