"""
Inference methods for group-time difference-in-differences.

Modules
-------
bootstrap
    Unit-level (block) bootstrap of the full estimation pipeline.
"""

from .bootstrap import (
    BootstrapResult,
    bootstrap_replicate,
    bootstrap_se,
    pointwise_ci,
    resample_by_unit,
)

__all__ = [
    'BootstrapResult',
    'bootstrap_replicate',
    'bootstrap_se',
    'pointwise_ci',
    'resample_by_unit',
]
