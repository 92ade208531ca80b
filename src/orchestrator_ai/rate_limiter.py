"""
Token budget rate limiter.

A windowed counter: token usage accumulates until the window elapses and then
resets. Once 80% of the budget is used inside the current window, further
calls are denied until the window ends.
"""

from .models import MissionState, MissionStatus, RateLimitConfig

# Fraction of max_tokens at which calls are denied
THRESHOLD = 0.80


def usage_ratio(state: MissionState, config: RateLimitConfig) -> float:
	return state.token_usage / config.max_tokens


def check(state: MissionState, config: RateLimitConfig, now: int) -> tuple[bool, MissionState]:
	"""
	Decide whether a model call may proceed right now.

	Args:
		state: Latest committed mission state
		config: Active token budget
		now: Current time in milliseconds

	Returns:
		(permitted, new_state). new_state is `state` itself when nothing changed.
	"""
	period_ms = config.period_ms
	elapsed = now - state.window_start_time

	if elapsed > period_ms:
		status = state.resume_status() if state.status == MissionStatus.COOLDOWN else state.status
		return True, state.model_copy(update={
			"token_usage": 0,
			"window_start_time": now,
			"status": status,
		})

	if usage_ratio(state, config) >= THRESHOLD:
		return False, state.model_copy(update={
			"status": MissionStatus.COOLDOWN,
			"next_allowed_time": now + (period_ms - elapsed),
		})

	return True, state


def remaining_ms(state: MissionState, now: int) -> int:
	"""Milliseconds until the cooldown or auto-resume timer expires."""
	return max(0, state.next_allowed_time - now)
