"""API key credentials with single, random and round-robin rotation."""

import logging
import os
import random
import threading
from abc import ABC, abstractmethod
from enum import Enum

logger = logging.getLogger(__name__)


class RotationMode(Enum):
    """How an ApiKey picks a key when it holds more than one."""

    SINGLE = "single"
    RANDOM = "random"
    ROUND_ROBIN = "round-robin"


class Credential(ABC):
    """Abstract source of the token sent with each request."""

    @abstractmethod
    def token(self) -> str:
        """
        Return the token for the next request.

        Raises:
            CredentialError: If the token cannot be produced
        """
        pass


class ApiKey(Credential):
    """
    Static API key set.

    With zero keys, token() returns an empty string. With one key, token()
    always returns it. With more keys, RANDOM draws independently on every
    call and ROUND_ROBIN walks the keys in order, wrapping after the last one.

    token() is safe to call from many threads and tasks at once; the cursor is
    guarded by a per-instance lock.
    """

    def __init__(
        self,
        keys: list[str] | tuple[str, ...],
        mode: RotationMode = RotationMode.SINGLE,
        seed: int | None = None,
    ):
        self._keys = tuple(keys)
        self.mode = mode
        self._cursor = 0
        self._lock = threading.Lock()
        self._random = random.Random(seed)

    @property
    def keys(self) -> tuple[str, ...]:
        return self._keys

    def token(self) -> str:
        if not self._keys:
            return ""

        if len(self._keys) == 1:
            return self._keys[0]

        with self._lock:
            if self.mode is RotationMode.RANDOM:
                return self._random.choice(self._keys)

            # SINGLE with several keys behaves like round-robin
            key = self._keys[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._keys)
            return key

    def __repr__(self) -> str:
        return f"ApiKey(keys={len(self._keys)}, mode={self.mode.value})"


def new_api_key(key: str) -> ApiKey:
    """Credential that always returns ``key``."""
    return ApiKey([key], RotationMode.SINGLE)


def random_api_keys(*keys: str, seed: int | None = None) -> ApiKey:
    """Credential that returns a uniformly random key on every call."""
    return ApiKey(keys, RotationMode.RANDOM, seed=seed)


def rotating_api_keys(*keys: str) -> ApiKey:
    """Credential that returns the keys in order, one per call."""
    return ApiKey(keys, RotationMode.ROUND_ROBIN)


def credential_from_env(
    var: str = "PAGESPEED_API_KEYS",
    mode_var: str = "PAGESPEED_KEY_MODE",
) -> ApiKey:
    """
    Build an ApiKey from environment variables.

    Args:
        var: Variable holding a comma-separated list of keys
        mode_var: Variable holding the rotation mode ("single", "random" or
            "round-robin"); defaults to round-robin

    Returns:
        ApiKey with the parsed keys (empty if ``var`` is unset)
    """
    raw_keys = os.environ.get(var, "")
    keys = [k.strip() for k in raw_keys.split(",") if k.strip()]

    raw_mode = os.environ.get(mode_var, RotationMode.ROUND_ROBIN.value).strip().lower()
    try:
        mode = RotationMode(raw_mode)
    except ValueError:
        raise ValueError(
            f"{mode_var} must be one of {[m.value for m in RotationMode]} (got {raw_mode!r}). "
            f"Unset it to use round-robin rotation."
        ) from None

    if not keys:
        logger.warning(f"⚠️  {var} is not set; requests will be sent without an API key")
    else:
        logger.debug(f"Loaded {len(keys)} API key(s) from {var} ({mode.value})")

    return ApiKey(keys, mode)
