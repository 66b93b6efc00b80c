"""
Per-chain random source backed by JAX PRNG keys.

Each chain owns exactly one RandomSource. Draws are generated in blocks from
a fresh subkey and handed out one at a time, so a chain that needs two
uniforms per iteration does not pay a device round-trip per draw. The
sequence depends only on the starting key, which makes chains reproducible
and safe to run on separate threads.
"""

import jax
import jax.random as random
import numpy as np

# Draws generated per refill of a buffer
DEFAULT_BLOCK_SIZE = 1024


class RandomSource:
    """
    Reproducible stream of uniform(0, 1), standard normal, and sign draws.

    Args:
        seed: Integer seed or an existing JAX PRNG key
        block_size: Number of draws generated per refill
    """

    def __init__(self, seed=0, block_size: int = DEFAULT_BLOCK_SIZE):
        if isinstance(seed, (int, np.integer)):
            self._key = random.PRNGKey(int(seed))
        else:
            self._key = seed
        self.block_size = int(block_size)
        self._uniforms = np.empty(0)
        self._u_pos = 0
        self._normals = np.empty(0)
        self._n_pos = 0

    def _next_key(self):
        self._key, subkey = random.split(self._key)
        return subkey

    def split(self, n: int):
        """Derive `n` independent RandomSources from this one."""
        keys = random.split(self._next_key(), n)
        return [RandomSource(k, self.block_size) for k in keys]

    def uniform(self) -> float:
        """One draw from Uniform[0, 1)."""
        if self._u_pos >= self._uniforms.shape[0]:
            block = random.uniform(self._next_key(), (self.block_size,))
            self._uniforms = np.asarray(jax.device_get(block), dtype=np.float64)
            self._u_pos = 0
        u = self._uniforms[self._u_pos]
        self._u_pos += 1
        return float(u)

    def normal(self, size: int) -> np.ndarray:
        """`size` independent standard normal draws."""
        out = np.empty(size, dtype=np.float64)
        filled = 0
        while filled < size:
            if self._n_pos >= self._normals.shape[0]:
                block = random.normal(self._next_key(), (max(self.block_size, size),))
                self._normals = np.asarray(jax.device_get(block), dtype=np.float64)
                self._n_pos = 0
            take = min(size - filled, self._normals.shape[0] - self._n_pos)
            out[filled:filled + take] = self._normals[self._n_pos:self._n_pos + take]
            self._n_pos += take
            filled += take
        return out

    def sign(self) -> int:
        """+1 or -1 with equal probability."""
        return 1 if self.uniform() < 0.5 else -1
