"""Shared type aliases for the robust_predict package."""

from collections.abc import Callable

import numpy as np

# Random-effect inclusion policy: all (True), none (False / None), or
# an explicit sub-formula selecting the terms to condition on.
RandomInclusion = bool | str | None

# Row-wise location estimator used to reduce a draw matrix.
CentralityFunction = Callable[[np.ndarray], float]
