import numpy as np
import pytest

from wifi_positioning.exceptions import NotReadyError, PositionEstimationError
from wifi_positioning.trilateration import LinearLaterationSolver, NonLinearLaterationSolver


def exact_samples(rng, num_sources, dimensions):
    positions = rng.uniform(-50.0, 50.0, size=(num_sources, dimensions))
    position = rng.uniform(-50.0, 50.0, size=dimensions)
    distances = np.linalg.norm(positions - position, axis=1)
    return positions, distances, position


@pytest.mark.parametrize("dimensions", [2, 3])
@pytest.mark.parametrize("homogeneous", [False, True])
def test_linear_noise_free(rng, dimensions, homogeneous):
    for num_sources in range(dimensions + 1, dimensions + 8):
        positions, distances, position = exact_samples(rng, num_sources, dimensions)
        solver = LinearLaterationSolver(positions, distances, homogeneous=homogeneous)
        estimated = solver.solve()

        np.testing.assert_allclose(estimated, position, atol=1e-6)
        assert solver.estimated_position is estimated
        assert solver.covariance is None


def test_linear_covariance(rng):
    positions, distances, _ = exact_samples(rng, 6, 2)
    solver = LinearLaterationSolver(positions, distances, np.full(6, 0.5))
    solver.solve()

    assert solver.covariance.shape == (2, 2)
    np.testing.assert_allclose(solver.covariance, solver.covariance.T)
    assert np.all(np.linalg.eigvalsh(solver.covariance) > 0.0)


def test_linear_degenerate_geometry():
    positions = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
    distances = np.array([1.0, 1.0, 2.0, 3.0])
    for homogeneous in (False, True):
        with pytest.raises(PositionEstimationError):
            LinearLaterationSolver(positions, distances, homogeneous=homogeneous).solve()


def test_not_ready():
    solver = LinearLaterationSolver()
    assert not solver.is_ready
    with pytest.raises(NotReadyError):
        solver.solve()

    solver = NonLinearLaterationSolver([[0.0, 0.0], [1.0, 0.0]], [1.0, 1.0])
    assert solver.min_required_positions == 3
    with pytest.raises(NotReadyError):
        solver.solve()


def test_invalid_data():
    solver = LinearLaterationSolver()
    with pytest.raises(ValueError):
        solver.set_data([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], [1.0, 1.0])
    with pytest.raises(ValueError):
        solver.set_data([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], [1.0, -1.0, 1.0])
    with pytest.raises(ValueError):
        solver.set_data([[0.0], [1.0], [2.0]], [1.0, 1.0, 1.0])
    with pytest.raises(ValueError):
        solver.set_data([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], [1.0, 1.0, 1.0], [0.1, 0.1])


@pytest.mark.parametrize("dimensions", [2, 3])
def test_non_linear_noise_free(rng, dimensions):
    for num_sources in range(dimensions + 1, dimensions + 8):
        positions, distances, position = exact_samples(rng, num_sources, dimensions)
        solver = NonLinearLaterationSolver(positions, distances, np.full(num_sources, 1e-3))
        estimated = solver.solve()

        np.testing.assert_allclose(estimated, position, atol=1e-6)
        assert solver.covariance.shape == (dimensions, dimensions)
        assert solver.chi_sq == pytest.approx(0.0, abs=1e-6)


def test_non_linear_from_initial_position(rng):
    positions, distances, position = exact_samples(rng, 8, 2)
    solver = NonLinearLaterationSolver(positions, distances, initial_position=position + 3.0)
    np.testing.assert_allclose(solver.solve(), position, atol=1e-6)


def test_non_linear_with_noise(rng):
    positions, distances, position = exact_samples(rng, 20, 2)
    noisy = distances + rng.normal(0.0, 0.1, size=len(distances))
    solver = NonLinearLaterationSolver(positions, noisy, np.full(len(noisy), 0.1))
    estimated = solver.solve()

    assert np.linalg.norm(estimated - position) < 0.5
    assert np.all(np.diag(solver.covariance) > 0.0)
