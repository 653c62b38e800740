import pytest
import torch

from axis_min import Axis, AxisMin, InvalidArgument
from axis_min import model as problem


def test_forward_min_and_max():
    x = torch.tensor([[3.0, 1.0], [2.0, 4.0]])

    values, indices = AxisMin(1)(x)
    assert values.tolist() == [2.0, 1.0]
    assert indices.tolist() == [1, 0]

    values, indices = AxisMin(2, largest=True)(x)
    assert values.tolist() == [3.0, 4.0]
    assert indices.tolist() == [0, 1]


def test_dim_is_validated():
    assert AxisMin(2).dim is Axis.ROWS
    with pytest.raises(InvalidArgument):
        AxisMin(0)


def test_repr():
    assert "dim=1, largest=False" in repr(AxisMin(1))


def test_problem_definition():
    init_inputs = problem.get_init_inputs()
    assert init_inputs == [problem.dim]
    model = AxisMin(*init_inputs)

    torch.manual_seed(0)
    (x,) = problem.get_inputs()
    assert x.shape == (problem.rows, problem.cols)
    values, indices = model(x[:16, :32])
    assert values.shape == (32,)
    assert indices.shape == (32,)
