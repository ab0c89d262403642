"""
Unit-level (block) bootstrap for group-time DiD aggregates.

Every replication draws units with replacement, keeps all rows of each
drawn unit together (preserving within-unit serial correlation), reruns
the full plan -> group-time -> aggregation pipeline on the resampled
panel and records the aggregate estimates. Standard errors are the
sample standard deviations of those estimates across replications.

Replications are independent: replication ``b`` draws from its own
child generator spawned from the master seed, and writes only to row
``b`` of a preallocated result matrix. Any replication can therefore be
recomputed alone (:func:`bootstrap_replicate`) and the results do not
depend on execution order or on the number of worker threads.

Notes
-----
A replication may miss an event time, e.g. when no unit of some group
is drawn. That replication contributes NaN for that event time only,
and the standard error uses the replications where it is present. The
effective count is reported per event time.
"""

import logging
import math
import warnings
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from .._parallel import run_in_slots
from ..exceptions import GTDIDError, InvalidParameterError
from ..warnings_categories import BootstrapWarning

logger = logging.getLogger('gtdid')


@dataclass
class BootstrapResult:
    """
    Result of a unit-level bootstrap.

    Attributes
    ----------
    targets : tuple
        Aggregate labels (event times, optionally ``'overall'``), in
        column order of ``estimates``.
    estimates : np.ndarray
        Matrix of shape (n_bootstrap, n_targets); NaN where a
        replication failed or missed the target.
    se : Dict[Hashable, float]
        Standard error per target; NaN when support is insufficient.
    n_valid : Dict[Hashable, int]
        Replications contributing to each target.
    n_bootstrap : int
        Requested replications.
    n_failed : int
        Replications in which the pipeline failed entirely.
    min_valid : int
        Replications a target needs for its SE to be reported.
    seed : int or None
        Master seed.
    """
    targets: Tuple
    estimates: np.ndarray
    se: Dict[Hashable, float]
    n_valid: Dict[Hashable, int]
    n_bootstrap: int
    n_failed: int
    min_valid: int
    seed: Optional[int] = None

    def is_supported(self, target) -> bool:
        """Whether ``target`` has enough replications for a standard error."""
        return self.n_valid.get(target, 0) >= self.min_valid

    def __repr__(self) -> str:
        return (
            f"BootstrapResult(n_bootstrap={self.n_bootstrap}, "
            f"targets={len(self.targets)}, failed={self.n_failed})"
        )


def resample_by_unit(
    data: pd.DataFrame,
    ivar: str,
    rng=None,
) -> pd.DataFrame:
    """
    Draw units with replacement and stack all of their rows.

    Each draw receives a fresh pseudo-unit identifier (0..N-1), so a
    unit drawn twice appears as two distinct units.

    Parameters
    ----------
    data : pd.DataFrame
        Long panel.
    ivar : str
        Unit identifier column; overwritten with pseudo-unit ids.
    rng : np.random.Generator, int or None
        Random generator or seed.

    Returns
    -------
    pd.DataFrame
        Resampled panel with as many units as the input.
    """
    rng = np.random.default_rng(rng)

    positions = data.groupby(ivar, sort=True).indices
    blocks = list(positions.values())
    n_units = len(blocks)
    if n_units == 0:
        raise InvalidParameterError("Cannot resample an empty panel")

    draws = rng.integers(0, n_units, size=n_units)
    chosen = [blocks[i] for i in draws]

    sample = data.iloc[np.concatenate(chosen)].copy()
    sample[ivar] = np.repeat(np.arange(n_units), [len(c) for c in chosen])
    return sample.reset_index(drop=True)


def _spawn_seeds(seed: Optional[int], n: int):
    return np.random.SeedSequence(seed).spawn(n)


def bootstrap_replicate(
    data: pd.DataFrame,
    pipeline: Callable[[pd.DataFrame], Mapping],
    targets: Sequence,
    ivar: str,
    seed_sequence,
    resampler: Optional[Callable] = None,
) -> Optional[np.ndarray]:
    """
    Run one bootstrap replication.

    Returns the estimates aligned with ``targets`` (NaN where missing),
    or None if the pipeline failed on the resampled panel with a
    :class:`GTDIDError`. Other exceptions propagate.
    """
    if resampler is None:
        resampler = resample_by_unit

    rng = np.random.default_rng(seed_sequence)
    sample = resampler(data, ivar, rng)
    try:
        estimates = pipeline(sample)
    except GTDIDError as e:
        logger.debug("Bootstrap replication failed: %s: %s", type(e).__name__, e)
        return None

    return np.array([estimates.get(k, np.nan) for k in targets], dtype=float)


def bootstrap_se(
    data: pd.DataFrame,
    pipeline: Callable[[pd.DataFrame], Mapping],
    targets: Sequence,
    ivar: str,
    n_bootstrap: int = 1000,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    min_valid_share: float = 0.5,
    resampler: Optional[Callable] = None,
    registry=None,
) -> BootstrapResult:
    """
    Unit-level bootstrap standard errors for pipeline aggregates.

    Parameters
    ----------
    data : pd.DataFrame
        Original long panel (shared read-only by all replications).
    pipeline : callable
        ``pipeline(panel) -> {target: estimate}``; reruns the full
        estimation on a panel.
    targets : sequence
        Targets to track, normally the event times of the point
        estimate (plus ``'overall'``).
    ivar : str
        Unit identifier column; the resampling unit.
    n_bootstrap : int, default 1000
        Number of replications B.
    seed : int, optional
        Master seed; replication b uses the b-th spawned child.
    n_jobs : int
        Worker threads.
    min_valid_share : float
        A target needs ``max(2, ceil(min_valid_share * B))`` valid
        replications for its standard error to be reported.
    resampler : callable, optional
        ``resampler(data, ivar, rng) -> DataFrame``; defaults to
        :func:`resample_by_unit`.
    registry : WarningRegistry, optional
        Receives the shortfall warning; emitted directly otherwise.

    Returns
    -------
    BootstrapResult

    Raises
    ------
    InvalidParameterError
        If ``n_bootstrap`` is not a positive integer.
    """
    if isinstance(n_bootstrap, bool) or not isinstance(n_bootstrap, (int, np.integer)) \
            or n_bootstrap <= 0:
        raise InvalidParameterError(
            f"n_bootstrap must be a positive integer, got {n_bootstrap!r}"
        )
    if not (0 < min_valid_share <= 1):
        raise InvalidParameterError(
            f"min_valid_share must be in (0, 1], got {min_valid_share!r}"
        )

    targets = tuple(targets)
    seeds = _spawn_seeds(seed, n_bootstrap)

    def run(b: int):
        return bootstrap_replicate(data, pipeline, targets, ivar, seeds[b], resampler)

    logger.info("Running %d bootstrap replications", n_bootstrap)
    draws = run_in_slots(run, list(range(n_bootstrap)), n_jobs=n_jobs)

    estimates = np.full((n_bootstrap, len(targets)), np.nan)
    n_failed = 0
    for b, row in enumerate(draws):
        if row is None:
            n_failed += 1
        else:
            estimates[b] = row

    min_valid = max(2, math.ceil(min_valid_share * n_bootstrap))
    se: Dict[Hashable, float] = {}
    n_valid: Dict[Hashable, int] = {}
    for j, k in enumerate(targets):
        col = estimates[:, j]
        valid = col[np.isfinite(col)]
        n_valid[k] = int(len(valid))
        se[k] = float(np.std(valid, ddof=1)) if len(valid) >= min_valid else np.nan

    short = {k: n for k, n in n_valid.items() if n < n_bootstrap}
    if short:
        detail = ", ".join(f"{k}: {n}/{n_bootstrap}" for k, n in short.items())
        message = (
            f"Bootstrap support below the requested {n_bootstrap} replications "
            f"({n_failed} failed entirely). Effective replications: {detail}"
        )
        if registry is not None:
            registry.collect(BootstrapWarning, message, context={'n_failed': n_failed})
        else:
            warnings.warn(message, BootstrapWarning, stacklevel=2)

    return BootstrapResult(
        targets=targets,
        estimates=estimates,
        se=se,
        n_valid=n_valid,
        n_bootstrap=int(n_bootstrap),
        n_failed=n_failed,
        min_valid=min_valid,
        seed=seed,
    )


def pointwise_ci(att: float, se: float, alpha: float = 0.05) -> Tuple[float, float]:
    """Normal-approximation interval ``att ± z_{1-α/2} · se``."""
    if not np.isfinite(se):
        return np.nan, np.nan
    z = stats.norm.ppf(1 - alpha / 2)
    return att - z * se, att + z * se
