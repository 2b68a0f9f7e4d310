import threading
import time

from pydantic import BaseModel, ConfigDict

from noovy.util.cache import Clock
from noovy.util.log import logger


class ProviderState(BaseModel):
    model_config = ConfigDict(frozen=True)  # pyright: ignore[reportUnannotatedClassAttribute]

    disabled_until: float = 0.0


class CooldownGuard:
    """Disables a provider for a fixed window after it signals rate limiting.

    Re-enabling is lazy: a provider counts as disabled while now < disabled_until.
    """

    _states: dict[str, ProviderState]
    _last_logged: dict[str, float]
    _lock: threading.Lock

    def __init__(
        self,
        cooldown_seconds: float = 15 * 60,
        log_interval: float = 60,
        clock: Clock = time.time,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.log_interval = log_interval
        self._clock = clock
        self._states = {}
        self._last_logged = {}
        self._lock = threading.Lock()

    def state(self, provider_id: str) -> ProviderState:
        with self._lock:
            return self._states.get(provider_id, ProviderState())

    def is_disabled(self, provider_id: str, now: float | None = None) -> bool:
        if now is None:
            now = self._clock()
        return now < self.state(provider_id).disabled_until

    def disable(
        self,
        provider_id: str,
        now: float | None = None,
        duration: float | None = None,
    ) -> ProviderState:
        if now is None:
            now = self._clock()
        if duration is None:
            duration = self.cooldown_seconds

        state = ProviderState(disabled_until=now + duration)
        with self._lock:
            self._states[provider_id] = state
            last_logged = self._last_logged.get(provider_id)
            should_log = last_logged is None or now - last_logged >= self.log_interval
            if should_log:
                self._last_logged[provider_id] = now

        if should_log:
            logger.warning(
                "Provider rate limited, disabling",
                provider=provider_id,
                cooldown_seconds=duration,
                disabled_until=state.disabled_until,
            )
        return state

    def reset(self):
        with self._lock:
            self._states = {}
            self._last_logged = {}
