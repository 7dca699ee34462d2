import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pytest

from deltax import constants
from deltax.errors import ConfigurationError, ContractViolationError, NumericDomainError
from deltax.geometry import Box, SimpleIntrospection
from deltax.parameters import ParameterHandler
from deltax.postprocessor import DeltaXPostprocessor, VectorInputs
from deltax.schema import DeltaXConfig, LiquidusModel
from deltax.warnings import NumericalWarning


def reference(T: float, d: float) -> float:
    return 1500.0 * (T - 73.2 * (1.0 - 1.4 * 916.0 * d / 395.0) ** (1.0 / 9.0))


@dataclass
class StubGeometry:
    """Depth is the first coordinate; records how often it was queried."""

    max_depth: float = 1.0
    calls: int = 0

    def maximal_depth(self) -> float:
        return self.max_depth

    def depth(self, position: Sequence[float]) -> float:
        self.calls += 1
        return float(position[0])


INTROSPECTION = SimpleIntrospection(("velocity_x", "velocity_y", "pressure", "temperature"))


def make_inputs(temperatures, depths):
    n = len(temperatures)
    solution = np.zeros((n, 4))
    solution[:, 3] = temperatures
    solution[:, 0] = 99.0  # must not be mistaken for temperature
    points = np.column_stack([depths, np.zeros(n)])
    return VectorInputs(solution_values=solution, evaluation_points=points)


@pytest.fixture
def post() -> DeltaXPostprocessor:
    return DeltaXPostprocessor(StubGeometry(), INTROSPECTION)


def test_one_output_per_point_in_order(post):
    temps = [60.0, 90.0, 75.0, 10.0, 73.2]
    depths = [0.0, 0.3, 0.05, 0.2, 0.0]
    computed = np.full((5, 1), -1.0)
    post.evaluate_vector_field(make_inputs(temps, depths), computed)
    expected = [reference(T, d) for T, d in zip(temps, depths)]
    assert computed.shape == (5, 1)
    assert np.allclose(computed[:, 0], expected, rtol=1e-12, atol=1e-9)


def test_list_output_buffer(post):
    computed = [[0.0], [0.0]]
    post.evaluate_vector_field(make_inputs([80.0, 70.0], [0.0, 0.1]), computed)
    assert computed[0][0] == pytest.approx(1500.0 * (80.0 - 73.2))
    assert computed[1][0] == pytest.approx(reference(70.0, 0.1))
    assert all(isinstance(slot[0], float) for slot in computed)


def test_evaluate_allocates_result(post):
    out = post.evaluate(make_inputs([80.0, 70.0, 65.0], [0.0, 0.1, 0.2]))
    assert out.shape == (3,)
    assert out[2] == pytest.approx(reference(65.0, 0.2))


def test_geometry_without_vectorised_depth_is_queried_per_point():
    geometry = StubGeometry()
    post = DeltaXPostprocessor(geometry, INTROSPECTION)
    post.evaluate(make_inputs([80.0] * 7, [0.01] * 7))
    assert geometry.calls == 7


def test_empty_batch(post):
    computed = np.zeros((0, 1))
    post.evaluate_vector_field(VectorInputs(np.zeros((0, 4)), np.zeros((0, 2))), computed)
    assert post.evaluate(VectorInputs([], [])).shape == (0,)


def test_output_size_mismatch(post):
    with pytest.raises(ContractViolationError, match="internal inconsistency"):
        post.evaluate_vector_field(make_inputs([1.0, 2.0], [0.0, 0.0]), np.zeros((3, 1)))


def test_output_component_mismatch(post):
    with pytest.raises(ContractViolationError, match="components"):
        post.evaluate_vector_field(make_inputs([1.0, 2.0], [0.0, 0.0]), np.zeros((2, 2)))


@pytest.mark.parametrize("buffer", [np.zeros(2), [0.0, 0.0], np.zeros((2, 1, 1))])
def test_flat_or_nested_output_buffer(post, buffer):
    with pytest.raises(ContractViolationError, match="internal inconsistency"):
        post.evaluate_vector_field(make_inputs([80.0, 70.0], [0.1, 0.2]), buffer)


def test_list_output_slots_of_unequal_width(post):
    with pytest.raises(ContractViolationError, match="components"):
        post.evaluate_vector_field(make_inputs([80.0, 70.0], [0.1, 0.2]), [[0.0], [0.0, 0.0]])


def test_solution_component_count_mismatch(post):
    inputs = VectorInputs(np.zeros((2, 3)), np.zeros((2, 2)))
    with pytest.raises(ContractViolationError, match="solution vectors"):
        post.evaluate_vector_field(inputs, np.zeros((2, 1)))


def test_ragged_solution_vectors(post):
    inputs = VectorInputs([[0.0, 0.0, 0.0, 1.0], [0.0, 1.0]], [[0.0, 0.0], [0.0, 0.0]])
    with pytest.raises(ContractViolationError):
        post.evaluate_vector_field(inputs, [[0.0], [0.0]])


def test_point_count_mismatch(post):
    inputs = VectorInputs(np.zeros((2, 4)), np.zeros((3, 2)))
    with pytest.raises(ContractViolationError, match="evaluation points"):
        post.evaluate(inputs)


@pytest.mark.parametrize("n_coords", [1, 4])
def test_point_dimension_outside_two_or_three(post, n_coords):
    inputs = VectorInputs(np.zeros((2, 4)), np.zeros((2, n_coords)))
    with pytest.raises(ContractViolationError, match="coordinates"):
        post.evaluate(inputs)


def test_point_dimension_must_match_box():
    post = DeltaXPostprocessor(Box(extents=(1.0, 0.3)), SimpleIntrospection(("temperature",)))
    for points in (np.zeros((2, 1)), np.zeros((2, 3))):
        with pytest.raises(ContractViolationError, match="expected 2"):
            post.evaluate(VectorInputs(np.full((2, 1), 80.0), points))
    with pytest.raises(ContractViolationError, match="coordinates"):
        post.evaluate_points([80.0, 80.0], [[0.1], [0.2]])


def test_temperature_index_out_of_range():
    @dataclass(frozen=True)
    class Indices:
        temperature: int = 4

    @dataclass
    class BrokenIntrospection:
        n_components: int = 4
        component_indices: Indices = Indices()

    post = DeltaXPostprocessor(StubGeometry(), BrokenIntrospection())
    with pytest.raises(ContractViolationError, match="temperature component"):
        post.evaluate(make_inputs([1.0], [0.0]))


def test_contract_violation_is_assertion_error(post):
    with pytest.raises(AssertionError):
        post.evaluate_vector_field(make_inputs([1.0], [0.0]), np.zeros((2, 1)))


def test_overpressure_raise_leaves_buffer_untouched(post):
    computed = np.full((3, 1), -7.0)
    with pytest.raises(NumericDomainError) as excinfo:
        post.evaluate_vector_field(make_inputs([80.0, 80.0, 80.0], [0.0, 1.0, 0.1]), computed)
    assert excinfo.value.indices == (1,)
    assert np.all(computed == -7.0)


def test_overpressure_nan_policy():
    post = DeltaXPostprocessor(StubGeometry(), INTROSPECTION, domain_policy="nan")
    computed = np.zeros((2, 1))
    with pytest.warns(NumericalWarning):
        post.evaluate_vector_field(make_inputs([80.0, 80.0], [0.0, 1.0]), computed)
    assert computed[0, 0] == pytest.approx(1500.0 * (80.0 - 73.2))
    assert math.isnan(computed[1, 0])


def test_overpressure_clamp_policy():
    post = DeltaXPostprocessor(StubGeometry(), INTROSPECTION, domain_policy="clamp")
    with pytest.warns(NumericalWarning):
        out = post.evaluate(make_inputs([80.0], [2.0]))
    assert out[0] == pytest.approx(1500.0 * 80.0)


def test_unknown_policy():
    with pytest.raises(ConfigurationError):
        DeltaXPostprocessor(StubGeometry(), INTROSPECTION, domain_policy="warn")


def test_configuration_does_not_change_the_field():
    inputs = make_inputs([60.0, 90.0], [0.05, 0.25])
    default = DeltaXPostprocessor(StubGeometry(), INTROSPECTION).evaluate(inputs)
    cfg = DeltaXConfig(depth_slices=3, extrapolate_surface=True, extrapolate_bottom=True)
    configured = DeltaXPostprocessor(StubGeometry(), INTROSPECTION, config=cfg)
    assert configured.config.depth_slices == 3
    assert np.array_equal(configured.evaluate(inputs), default)


def test_declare_and_parse_through_the_class():
    prm = ParameterHandler()
    DeltaXPostprocessor.declare_parameters(prm)
    with prm.subsection(*constants.SECTION_PATH):
        prm.set("Number of depth slices", "5")
        prm.set("Use maximal temperature for bottom", "false")
    post = DeltaXPostprocessor(StubGeometry(), INTROSPECTION)
    assert post.config == DeltaXConfig()
    cfg = post.parse_parameters(prm)
    assert cfg is post.config
    assert (cfg.depth_slices, cfg.extrapolate_surface, cfg.extrapolate_bottom) == (5, False, True)

    built = DeltaXPostprocessor.from_parameters(prm, StubGeometry(), INTROSPECTION, domain_policy="nan")
    assert built.config == cfg
    assert built.domain_policy == "nan"


def test_custom_liquidus_model():
    model = LiquidusModel(gravity=1.0, density=1.0, pressure_limit=10.0)
    post = DeltaXPostprocessor(StubGeometry(), INTROSPECTION, model=model)
    out = post.evaluate(make_inputs([80.0], [5.0]))
    assert out[0] == pytest.approx(1500.0 * (80.0 - 73.2 * 0.5 ** (1.0 / 9.0)))


def test_with_box_geometry():
    box = Box(extents=(1.0, 0.3))
    post = DeltaXPostprocessor(box, SimpleIntrospection(("temperature",)))
    points = np.array([[0.5, 0.3], [0.2, 0.2], [0.9, 0.0]])
    out = post.evaluate(VectorInputs(np.array([[80.0], [80.0], [80.0]]), points))
    assert out[0] == pytest.approx(reference(80.0, 0.0))
    assert out[1] == pytest.approx(reference(80.0, 0.1))
    assert out[2] == pytest.approx(reference(80.0, 0.3))


def test_evaluate_points(post):
    out = post.evaluate_points([80.0, 70.0], [[0.0, 0.0], [0.1, 0.0]])
    assert out[1] == pytest.approx(reference(70.0, 0.1))
    with pytest.raises(ContractViolationError):
        post.evaluate_points([80.0], [[0.0, 0.0], [0.1, 0.0]])


def test_repeated_batches_are_independent(post):
    a = post.evaluate(make_inputs([80.0, 60.0], [0.1, 0.2]))
    post.evaluate(make_inputs([1.0] * 10, [0.3] * 10))
    b = post.evaluate(make_inputs([80.0, 60.0], [0.1, 0.2]))
    assert np.array_equal(a, b)


def test_concurrent_batches_match_sequential():
    post = DeltaXPostprocessor(Box(extents=(1.0, 0.3)), SimpleIntrospection(("temperature",)))
    rng = np.random.default_rng(7)
    batches = []
    for _ in range(16):
        n = int(rng.integers(1, 200))
        points = np.column_stack([rng.uniform(0.0, 1.0, n), rng.uniform(0.0, 0.3, n)])
        batches.append(VectorInputs(rng.uniform(0.0, 120.0, (n, 1)), points))
    sequential = [post.evaluate(batch) for batch in batches]

    def run_batch(batch):
        computed = np.zeros((len(batch), 1))
        post.evaluate_vector_field(batch, computed)
        return computed[:, 0]

    with ThreadPoolExecutor(max_workers=4) as pool:
        concurrent = list(pool.map(run_batch, batches))
    for expected, got in zip(sequential, concurrent):
        assert np.array_equal(expected, got)
