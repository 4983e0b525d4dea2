"""Linear solver backends for the assembled MNA system

Two interchangeable backends share one contract:

    solve(A, b) -> x                  raises SingularMatrix / IllConditioned
    solve_system(builder, omega=None) solves the builder's (A, b), optionally
                                      at A(omega) = G + j*omega*C

DenseSolver (default) factors with JAX's LU with partial pivoting.
SparseSolver (see sparse.py) uses SciPy's SuperLU and reuses the column
ordering found on the first factorization of a sparsity pattern.

Pivot checks on the U factor:
    |u_min| <= n * eps * |u_max|           SingularMatrix
    |u_min| / |u_max| < min_pivot_ratio    IllConditioned
    non-finite solution                    IllConditioned
"""

from abc import ABC, abstractmethod
from typing import Optional

import jax
import jax.numpy as jnp
import numpy as np

from mnajax.analysis.mna_builder import MNABuilder
from mnajax.errors import IllConditioned, SingularMatrix


class LinearSolver(ABC):
    """Common interface of the linear solver backends."""

    name = "base"

    def __init__(self, min_pivot_ratio: float = 1e-15):
        self.min_pivot_ratio = min_pivot_ratio

    @abstractmethod
    def solve(self, A, b: np.ndarray) -> np.ndarray:
        """Solve A x = b."""

    def solve_system(self, builder: MNABuilder, omega: Optional[float] = None) -> np.ndarray:
        """Solve the system held by a builder."""
        return self.solve(builder.to_dense(omega), builder.rhs)

    def check_pivots(self, pivots: np.ndarray, dtype):
        """Raise if the U-factor diagonal marks the matrix singular or ill-conditioned."""
        mags = np.abs(pivots)
        n = mags.shape[0]
        p_max = float(mags.max())
        idx = int(np.argmin(mags))
        p_min = float(mags[idx])
        eps = float(np.finfo(dtype).eps)
        if p_max == 0.0 or p_min <= n * eps * p_max:
            raise SingularMatrix(f"Zero pivot at unknown {idx} (|u|={p_min:.3e}, max {p_max:.3e})", pivot_index=idx)
        ratio = p_min / p_max
        if ratio < self.min_pivot_ratio:
            raise IllConditioned(f"Pivot ratio {ratio:.3e} below {self.min_pivot_ratio:.1e}", pivot_ratio=ratio)
        return ratio

    def check_solution(self, x: np.ndarray, ratio: float) -> np.ndarray:
        if not np.all(np.isfinite(x)):
            raise IllConditioned("Linear solve produced non-finite values", pivot_ratio=ratio)
        return x


@jax.jit
def _lu_factor_solve(A, b):
    lu, piv = jax.scipy.linalg.lu_factor(A)
    x = jax.scipy.linalg.lu_solve((lu, piv), b)
    return jnp.diagonal(lu), x


class DenseSolver(LinearSolver):
    """Dense LU with partial pivoting (JAX)."""

    name = "dense"

    def solve(self, A, b: np.ndarray) -> np.ndarray:
        A = np.asarray(A)
        n = A.shape[0]
        dtype = np.result_type(A, b)
        if n == 0:
            return np.zeros(0, dtype=dtype)
        pivots, x = _lu_factor_solve(jnp.asarray(A, dtype=dtype), jnp.asarray(b, dtype=dtype))
        ratio = self.check_pivots(np.asarray(pivots), dtype)
        return self.check_solution(np.asarray(x), ratio)


def make_solver(name: str = "dense", min_pivot_ratio: float = 1e-15) -> LinearSolver:
    """Create a linear solver backend by name ('dense' or 'sparse')."""
    if name == "dense":
        return DenseSolver(min_pivot_ratio)
    if name == "sparse":
        from mnajax.analysis.sparse import SparseSolver

        return SparseSolver(min_pivot_ratio)
    raise ValueError(f"Unknown linear solver: {name}. Supported: dense, sparse")
