"""
Randomness for deposit secrets.

`id` and `r` must be uniformly random field elements: a guessable `id`
lets anyone front-run the withdrawal, and a guessable `r` breaks the
hiding of the commitment.
"""

import os
import secrets
from typing import Tuple

from .config import FIELD_MODULUS


class RandomnessSource:
    """
    Cryptographically secure randomness with fork detection.

    Prevents randomness reuse if the process forks.

    Example:
        >>> rng = RandomnessSource()
        >>> id_, r = rng.new_deposit_secrets()
    """

    def __init__(self):
        """Initialize randomness source with fork detection."""
        self._pid = os.getpid()
        self._rng = secrets.SystemRandom()

    def _check_fork(self) -> None:
        if os.getpid() != self._pid:
            self.__init__()

    def get_random_scalar(self, max_value: int) -> int:
        """
        Get random scalar in [0, max_value).

        Args:
            max_value: Upper bound (exclusive)

        Returns:
            Random scalar in [0, max_value)
        """
        self._check_fork()
        return self._rng.randrange(0, max_value)

    def random_field_element(self) -> int:
        """Random non-zero field element."""
        return 1 + self.get_random_scalar(FIELD_MODULUS - 1)

    def new_deposit_secrets(self) -> Tuple[int, int]:
        """Fresh (id, r) pair for one deposit."""
        return self.random_field_element(), self.random_field_element()
