"""
JAX Configuration - MUST be imported before any JAX imports.

This module sets environment variables for JAX configuration including:
- 64-bit precision (diagnostics compare variances that can differ by 1e-8)
- CPU platform default (chains are driven from host threads)
- Suppressed XLA C++ logging
"""
import os

# --- PRECISION ---
# R-hat and ESS are computed from sums of squares; float32 loses too much
os.environ.setdefault("JAX_ENABLE_X64", "true")

# --- PLATFORM ---
# Chain loops run on the host; keep small PRNG/FFT ops off the accelerator
os.environ.setdefault("JAX_PLATFORMS", "cpu")

# Suppress CUDA/XLA C++ warnings
os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

import jax  # noqa: E402

# The env var is only read if jax was not imported earlier in the process
if os.environ["JAX_ENABLE_X64"].lower() in ("1", "true"):
    jax.config.update("jax_enable_x64", True)
