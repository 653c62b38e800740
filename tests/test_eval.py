import pytest
import torch

from axis_min import AxisMin
from axis_min.eval import (
    check_correctness,
    eval_pipeline,
    get_timing_stats,
    set_seed,
    time_model,
)

CPU = torch.device("cpu")


def small_inputs():
    return [torch.randn(32, 48)]


def test_set_seed_is_reproducible():
    set_seed(7)
    a = torch.randn(3)
    set_seed(7)
    b = torch.randn(3)
    assert torch.equal(a, b)


def test_check_correctness_passes():
    ok, error_msg, metadata = check_correctness(
        AxisMin(1), AxisMin(1, use_kernel=False), small_inputs, num_trials=3, device=CPU
    )
    assert ok
    assert error_msg == ""
    assert metadata["trials_passed"] == 3
    assert metadata["trials_failed"] == 0


def test_check_correctness_reports_value_mismatch():
    ok, error_msg, metadata = check_correctness(
        AxisMin(1, largest=True), AxisMin(1), small_inputs, num_trials=2, device=CPU
    )
    assert not ok
    assert error_msg == "Value mismatch to the reference model"
    assert metadata["trials_failed"] == 1
    assert len(metadata["max_difference"]) == 1


def test_check_correctness_reports_shape_mismatch():
    ok, error_msg, _ = check_correctness(
        AxisMin(1), AxisMin(2), small_inputs, num_trials=1, device=CPU
    )
    assert not ok
    assert error_msg == "Shape mismatch to the reference model"


def test_check_correctness_reports_runtime_error():
    ok, error_msg, metadata = check_correctness(
        AxisMin(1), AxisMin(1), lambda: [torch.randn(2, 2, 2)], num_trials=1, device=CPU
    )
    assert not ok
    assert error_msg.startswith("Runtime error in trial 1")
    assert metadata["trials_failed"] == 1


def test_time_model_returns_one_time_per_trial():
    times = time_model(AxisMin(2), small_inputs(), num_trials=4, num_warmup=1, device=CPU)
    assert len(times) == 4
    assert all(t >= 0.0 for t in times)


def test_get_timing_stats():
    stats = get_timing_stats([1.0, 2.0, 3.0], device=CPU)
    assert stats["mean"] == 2.0
    assert stats["min"] == 1.0
    assert stats["max"] == 3.0
    assert stats["std"] == 0.816
    assert stats["num_trials"] == 3
    assert stats["device"] == "cpu"


def test_eval_pipeline_on_cpu():
    result = eval_pipeline(
        1, small_inputs, num_correct_trials=2, num_perf_trials=3, device=CPU
    )
    assert result["correct"]
    assert result["custom"]["num_trials"] == 3
    assert result["reference"]["num_trials"] == 3
    assert "speedup" in result


class OffByValues(torch.nn.Module):
    """Right indices, values shifted by a small amount."""
    def forward(self, x):
        values, indices = torch.min(x, 0)
        return values + 0.005, indices


class ZeroIndices(torch.nn.Module):
    """Right values, every index 0."""
    def forward(self, x):
        values, indices = torch.min(x, 0)
        return values, torch.zeros_like(indices)


def test_check_correctness_has_no_value_tolerance():
    ok, error_msg, metadata = check_correctness(
        OffByValues(), AxisMin(1, use_kernel=False), small_inputs, num_trials=1, device=CPU
    )
    assert not ok
    assert error_msg == "Value mismatch to the reference model"
    assert float(metadata["max_difference"][0]) == pytest.approx(0.005, abs=1e-5)


def test_check_correctness_requires_indices_to_select_values():
    ok, error_msg, _ = check_correctness(
        ZeroIndices(), AxisMin(1, use_kernel=False), small_inputs, num_trials=1, device=CPU
    )
    assert not ok
    assert error_msg == "Index does not point at the reported value"


def test_check_correctness_accepts_nan_results():
    def nan_inputs():
        x = torch.randn(8, 6)
        x[3, 2] = float("nan")
        return [x]

    ok, error_msg, _ = check_correctness(
        AxisMin(1), AxisMin(1, use_kernel=False), nan_inputs, num_trials=2, device=CPU
    )
    assert ok, error_msg


def test_check_correctness_prints_every_failure(capsys):
    check_correctness(
        AxisMin(1), AxisMin(2), small_inputs, num_trials=1, device=CPU, verbose=True
    )
    assert "❌ Trial 1: Shape mismatch to the reference model" in capsys.readouterr().out

    check_correctness(
        OffByValues(), AxisMin(1), small_inputs, num_trials=1, device=CPU, verbose=True
    )
    assert "❌ Trial 1: Value mismatch to the reference model" in capsys.readouterr().out
