"""Runtime configuration for the robust_predict package.

Controls two process-wide defaults consumed by :func:`get_predicted`:

* **n_jobs** — how many workers the resampling engine uses to run
  bootstrap replicates (``1`` = sequential, ``-1`` = all cores).
* **verbose** — whether non-fatal policy downgrades (e.g. a
  ``"prediction"`` request on a family without prediction intervals)
  are reported via :mod:`warnings`, and whether per-replicate refit
  warnings are let through.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_n_jobs` / :func:`set_verbose`.
    2. The ``ROBUST_PREDICT_N_JOBS`` / ``ROBUST_PREDICT_VERBOSE``
       environment variables.
    3. Built-in defaults: ``n_jobs=1`` and ``verbose=True``.

Arguments passed explicitly to :func:`get_predicted` always win over
this module; ``None`` defers to the policy above.

Examples:
    Run bootstrap replicates on every core from the shell::

        export ROBUST_PREDICT_N_JOBS=-1

    Silence downgrade warnings programmatically::

        import robust_predict
        robust_predict.set_verbose(False)

    Restore the defaults::

        robust_predict.set_n_jobs("auto")
        robust_predict.set_verbose("auto")
"""

from __future__ import annotations

import os

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}

# Sentinels indicating "no programmatic override has been set".
_n_jobs_override: int | None = None
_verbose_override: bool | None = None


def get_n_jobs() -> int:
    """Return the active default worker count for resampling.

    Resolution order:
        1. Value set by :func:`set_n_jobs` (unless ``"auto"``).
        2. ``ROBUST_PREDICT_N_JOBS`` environment variable.
        3. ``1`` (sequential).

    Returns:
        A joblib-style worker count (``-1`` means all cores).
    """
    # 1. Programmatic override
    if _n_jobs_override is not None:
        return _n_jobs_override

    # 2. Environment variable (ignored when not an integer).
    env = os.environ.get("ROBUST_PREDICT_N_JOBS", "").strip()
    if env:
        try:
            value = int(env)
        except ValueError:
            value = 0
        if value != 0:
            return value

    # 3. Default
    return 1


def set_n_jobs(n_jobs: int | str) -> None:
    """Override the default resampling worker count.

    Args:
        n_jobs: A non-zero integer (joblib convention, ``-1`` = all
            cores) or ``"auto"`` to restore the default resolution
            order.

    Raises:
        ValueError: If *n_jobs* is zero or an unrecognised string.
    """
    global _n_jobs_override
    if isinstance(n_jobs, str):
        if n_jobs.strip().lower() != "auto":
            msg = f"Unknown n_jobs setting '{n_jobs}'. Use an integer or 'auto'."
            raise ValueError(msg)
        _n_jobs_override = None
        return
    if int(n_jobs) == 0:
        msg = "n_jobs must be a non-zero integer (use -1 for all cores)."
        raise ValueError(msg)
    _n_jobs_override = int(n_jobs)


def get_verbose() -> bool:
    """Return whether non-fatal downgrades are reported by default.

    Resolution order:
        1. Value set by :func:`set_verbose` (unless ``"auto"``).
        2. ``ROBUST_PREDICT_VERBOSE`` environment variable.
        3. ``True``.
    """
    if _verbose_override is not None:
        return _verbose_override

    env = os.environ.get("ROBUST_PREDICT_VERBOSE", "").strip().lower()
    if env in _TRUE_STRINGS:
        return True
    if env in _FALSE_STRINGS:
        return False

    return True


def set_verbose(verbose: bool | str) -> None:
    """Override the default verbosity.

    Args:
        verbose: ``True``/``False``, or ``"auto"`` to restore the
            default resolution order.

    Raises:
        ValueError: If *verbose* is a string other than ``"auto"``.
    """
    global _verbose_override
    if isinstance(verbose, str):
        if verbose.strip().lower() != "auto":
            msg = f"Unknown verbose setting '{verbose}'. Use True, False, or 'auto'."
            raise ValueError(msg)
        _verbose_override = None
        return
    _verbose_override = bool(verbose)
