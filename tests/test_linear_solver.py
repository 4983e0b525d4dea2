"""Tests for the dense and sparse linear solver backends."""

import numpy as np
import pytest

from mnajax.analysis.linear_solver import DenseSolver, make_solver
from mnajax.analysis.sparse import SparseSolver, build_csc_arrays, slot_to_csc_map
from mnajax.analysis.system import MNASystem
from mnajax.analysis.context import AnalysisContext
from mnajax.errors import IllConditioned, SingularMatrix

SOLVERS = [DenseSolver, SparseSolver]


@pytest.fixture(params=SOLVERS, ids=lambda cls: cls.name)
def solver(request):
    return request.param()


class TestSolve:
    """Shared contract of both backends."""

    def test_real_system(self, solver):
        A = np.array([[4.0, -1.0, 0.0], [-1.0, 4.0, -1.0], [0.0, -1.0, 4.0]])
        b = np.array([1.0, 2.0, 3.0])
        np.testing.assert_allclose(solver.solve(A, b), np.linalg.solve(A, b), rtol=1e-12)

    def test_complex_system(self, solver):
        A = np.array([[1.0 + 1.0j, 0.5], [0.5, 2.0 - 1.0j]])
        b = np.array([1.0 + 0.0j, 1.0j])
        np.testing.assert_allclose(solver.solve(A, b), np.linalg.solve(A, b), rtol=1e-12)

    def test_needs_pivoting(self, solver):
        A = np.array([[0.0, 1.0], [1.0, 0.0]])
        np.testing.assert_allclose(solver.solve(A, np.array([2.0, 3.0])), [3.0, 2.0])

    def test_empty_system(self, solver):
        assert solver.solve(np.zeros((0, 0)), np.zeros(0)).shape == (0,)

    def test_singular(self, solver):
        A = np.array([[1.0, 1.0], [1.0, 1.0]])
        with pytest.raises(SingularMatrix):
            solver.solve(A, np.array([1.0, 2.0]))

    def test_ill_conditioned(self):
        A = np.diag([1.0, 1e-6])
        for cls in SOLVERS:
            with pytest.raises(IllConditioned) as exc:
                cls(min_pivot_ratio=1e-3).solve(A, np.array([1.0, 1.0]))
            assert exc.value.pivot_ratio == pytest.approx(1e-6)

    def test_pivot_ratio_within_limit(self):
        A = np.diag([1.0, 1e-6])
        np.testing.assert_allclose(DenseSolver().solve(A, np.array([1.0, 1.0])), [1.0, 1e6])


class TestSolveSystem:
    """Solving straight from an assembled builder."""

    def test_backends_agree(self, divider_circuit):
        system = MNASystem(divider_circuit)
        builder = system.assemble(system.new_builder(), np.zeros(system.size), AnalysisContext.dc())
        dense = DenseSolver().solve_system(builder)
        sparse = SparseSolver().solve_system(builder)
        np.testing.assert_allclose(sparse, dense, rtol=1e-12)
        np.testing.assert_allclose(dense, [1.0, 2.0 / 3.0, -1.0 / 3000.0], rtol=1e-12)

    def test_sparse_reuses_ordering(self, divider_circuit):
        """Refactoring the same pattern with new values gives the new solution."""
        system = MNASystem(divider_circuit)
        builder = system.new_builder()
        solver = SparseSolver()
        ctx = AnalysisContext.dc()

        system.assemble(builder, np.zeros(system.size), ctx)
        first = solver.solve_system(builder)
        system.assemble(builder, np.zeros(system.size), ctx.with_continuation(source_scale=2.0))
        second = solver.solve_system(builder)
        np.testing.assert_allclose(second, 2.0 * first, rtol=1e-12)

    def test_complex_from_builder(self, rc_circuit):
        system = MNASystem(rc_circuit)
        builder = system.new_builder(complex_rhs=True)
        system.assemble(builder, np.zeros(system.size), AnalysisContext.ac())
        omega = 1e3
        dense = DenseSolver().solve_system(builder, omega=omega)
        sparse = SparseSolver().solve_system(builder, omega=omega)
        np.testing.assert_allclose(sparse, dense, rtol=1e-12)
        assert dense[1] == pytest.approx(1.0 / (1.0 + 1j * omega * 1e-3))


class TestCSCHelpers:
    def test_duplicates_summed(self):
        rows = np.array([0, 1, 0])
        cols = np.array([0, 1, 0])
        data, indices, indptr = build_csc_arrays(rows, cols, np.array([1.0, 2.0, 3.0]), (2, 2))
        np.testing.assert_allclose(data, [4.0, 2.0])
        np.testing.assert_array_equal(indices, [0, 1])
        np.testing.assert_array_equal(indptr, [0, 1, 2])

    def test_slot_map_orders_by_column(self):
        rows = np.array([1, 0, 0])
        cols = np.array([0, 1, 0])
        slot_map, indices, indptr = slot_to_csc_map(rows, cols, (2, 2))
        np.testing.assert_array_equal(slot_map, [2, 0, 1])
        np.testing.assert_array_equal(indices, [0, 1, 0])
        np.testing.assert_array_equal(indptr, [0, 2, 3])


class TestMakeSolver:
    def test_by_name(self):
        assert isinstance(make_solver("dense"), DenseSolver)
        assert isinstance(make_solver("sparse", 1e-10), SparseSolver)
        assert make_solver("sparse", 1e-10).min_pivot_ratio == 1e-10

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown linear solver"):
            make_solver("cholesky")
