"""Sparse linear solver for circuit simulation

Uses SciPy's SuperLU. The fill-reducing column ordering (COLAMD) is
computed on the first factorization of each sparsity pattern and cached;
later factorizations of the same pattern permute the columns up front and
factor with the natural ordering, so only the numeric work is repeated.

When solving from an MNABuilder the CSC structure is also cached per
builder pattern version: slot values are scattered straight into the CSC
data array.
"""

import logging
from typing import Optional, Tuple

import numpy as np
from scipy.sparse import coo_matrix, csc_matrix, issparse
from scipy.sparse.linalg import splu

from mnajax.analysis.linear_solver import LinearSolver
from mnajax.analysis.mna_builder import MNABuilder
from mnajax.errors import SingularMatrix

logger = logging.getLogger(__name__)


def build_csc_arrays(
    rows: np.ndarray,
    cols: np.ndarray,
    values: np.ndarray,
    shape: Tuple[int, int],
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Convert COO triplets to CSC format arrays

    Duplicate entries are summed.

    Args:
        rows: Row indices (COO format)
        cols: Column indices (COO format)
        values: Non-zero values (COO format)
        shape: Matrix shape (n, n)

    Returns:
        Tuple of (data, indices, indptr) in CSC format
    """
    A_csc = coo_matrix((values, (rows, cols)), shape=shape).tocsc()
    A_csc.sum_duplicates()
    return A_csc.data, A_csc.indices, A_csc.indptr


def slot_to_csc_map(rows: np.ndarray, cols: np.ndarray, shape: Tuple[int, int]):
    """CSC structure of unique COO slots plus the slot index of every CSC entry."""
    tags = np.arange(1, len(rows) + 1, dtype=np.float64)
    data, indices, indptr = build_csc_arrays(rows, cols, tags, shape)
    return data.astype(np.int64) - 1, indices, indptr


class SparseSolver(LinearSolver):
    """SuperLU with a cached column ordering per sparsity pattern."""

    name = "sparse"

    def __init__(self, min_pivot_ratio: float = 1e-15):
        super().__init__(min_pivot_ratio)
        self._pattern_key = None
        self._col_order: Optional[np.ndarray] = None
        self._builder_version = None
        self._csc_structure = None

    def solve(self, A, b: np.ndarray) -> np.ndarray:
        A_csc = A.tocsc() if issparse(A) else csc_matrix(np.asarray(A))
        A_csc.sort_indices()
        return self._factor_solve(A_csc, b)

    def solve_system(self, builder: MNABuilder, omega: Optional[float] = None) -> np.ndarray:
        n = builder.size
        key = (id(builder), builder.pattern_version)
        if self._builder_version != key:
            self._csc_structure = slot_to_csc_map(builder.rows, builder.cols, (n, n))
            self._builder_version = key
        slot_map, indices, indptr = self._csc_structure
        data = builder.values(omega)[slot_map]
        A_csc = csc_matrix((data, indices, indptr), shape=(n, n))
        return self._factor_solve(A_csc, builder.rhs)

    def _factor_solve(self, A_csc, b: np.ndarray) -> np.ndarray:
        n = A_csc.shape[0]
        dtype = np.result_type(A_csc.dtype, b)
        if n == 0:
            return np.zeros(0, dtype=dtype)
        A_csc = A_csc.astype(dtype)
        b = np.asarray(b, dtype=dtype)

        key = (n, A_csc.indptr.tobytes(), A_csc.indices.tobytes())
        try:
            if key != self._pattern_key:
                lu = splu(A_csc, permc_spec="COLAMD")
                self._col_order = np.argsort(lu.perm_c)
                self._pattern_key = key
                logger.debug(f"SparseSolver: new pattern, n={n}, nnz={A_csc.nnz}")
                x = lu.solve(b)
            else:
                q = self._col_order
                lu = splu(A_csc[:, q], permc_spec="NATURAL")
                x = np.empty_like(b)
                x[q] = lu.solve(b)
        except RuntimeError as e:
            raise SingularMatrix(f"Sparse factorization failed: {e}") from e

        ratio = self.check_pivots(lu.U.diagonal(), dtype)
        return self.check_solution(x, ratio)
