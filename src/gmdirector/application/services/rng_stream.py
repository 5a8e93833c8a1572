from __future__ import annotations

from gmdirector.domain import constants
from gmdirector.domain.models.gm_state import GmState, RngState

_M = constants.UINT32_MASK


def _imul(a: int, b: int) -> int:
    return (a * b) & _M


def hash32(value: int) -> int:
    v = int(value) & _M
    v ^= v >> 16
    v = _imul(v, 0x7FEB352D)
    v ^= v >> 15
    v = _imul(v, 0x846CA68B)
    v ^= v >> 16
    return v & _M


def initial_rng_state(run_seed: int) -> int:
    return hash32((int(run_seed) ^ constants.GM_SEED_SALT ^ constants.GOLDEN_RATIO_32) & _M)


class RngStream:
    """Director-owned PRNG; its state lives inside GmState so it survives reloads."""

    def __init__(self, state: GmState) -> None:
        self._state = state

    @property
    def rng(self) -> RngState:
        return self._state.rng

    def ensure_seeded(self) -> bool:
        if not self.rng.pristine:
            return False
        self.rng.algo = constants.GM_RNG_ALGO
        self.rng.state = initial_rng_state(self._state.run_seed)
        return True

    def next_uint32(self) -> int:
        self.ensure_seeded()
        a = (self.rng.state + 0x6D2B79F5) & _M
        t = _imul(a ^ (a >> 15), a | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _M
        out = (t ^ (t >> 14)) & _M
        self.rng.state = a
        self.rng.calls = (self.rng.calls + 1) & _M
        return out

    def next_float(self) -> float:
        return self.next_uint32() / 4294967296.0

    def choice(self, options):
        if not options:
            return None
        return options[self.next_uint32() % len(options)]
