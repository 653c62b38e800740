"""
Axis-wise minimum/maximum of a dense matrix, like MATLAB's

    [Y, I] = min(X, [], dim)
    [Y, I] = max(X, [], dim)

dim == 1 reduces down each column, dim == 2 reduces across each row.
"""
import operator
from enum import IntEnum
from typing import NamedTuple, Union

import numpy as np
import torch

from axis_min import kernels


class Axis(IntEnum):
    """Dimension to reduce along, 1-based like MATLAB's `dim`."""
    COLUMNS = 1
    ROWS = 2


class AxisMinError(Exception):
    pass


class InvalidArgument(AxisMinError, ValueError):
    """Bad axis, a non 2-D input, or an unordered dtype."""


class EmptyReduction(AxisMinError, ValueError):
    """At least one line to reduce has no elements."""


class MinMaxResult(NamedTuple):
    values: torch.Tensor
    indices: torch.Tensor


def as_axis(dim: Union[Axis, int]) -> Axis:
    # bool is an int subclass, True would silently mean COLUMNS
    if isinstance(dim, (bool, np.bool_)):
        raise InvalidArgument(f"dim must be 1 (columns) or 2 (rows), got {dim!r}")
    try:
        return Axis(operator.index(dim))
    except (TypeError, ValueError):
        raise InvalidArgument(f"dim must be 1 (columns) or 2 (rows), got {dim!r}") from None


def _as_matrix(X) -> torch.Tensor:
    x = X if isinstance(X, torch.Tensor) else torch.as_tensor(X)
    if x.dim() != 2:
        raise InvalidArgument(f"expected a 2-D matrix, got {x.dim()}-D input of shape {tuple(x.shape)}")
    if x.is_complex():
        raise InvalidArgument(f"complex dtype {x.dtype} has no ordering")
    return x


def _reduce(X, dim: Union[Axis, int], largest: bool, use_kernel: bool) -> MinMaxResult:
    axis = as_axis(dim)
    x = _as_matrix(X)

    # torch numbers dimensions from 0: columns are reduced over rows (dim 0)
    torch_dim = 0 if axis == Axis.COLUMNS else 1
    n_out = x.shape[1 - torch_dim]
    line_length = x.shape[torch_dim]

    if n_out == 0:
        return MinMaxResult(
            values=torch.empty(0, dtype=x.dtype, device=x.device),
            indices=torch.empty(0, dtype=torch.int64, device=x.device),
        )
    if line_length == 0:
        op = "max" if largest else "min"
        raise EmptyReduction(
            f"cannot take {op} of {n_out} empty {'columns' if axis == Axis.COLUMNS else 'rows'} "
            f"of a {x.shape[0]}x{x.shape[1]} matrix"
        )

    if use_kernel and kernels.supports(x):
        out = kernels.line_reduce(x, torch_dim, largest)
        if out is not None:
            return MinMaxResult(*out)

    # torch.min/torch.max return the first extremal index in a line
    if largest:
        values, indices = torch.max(x, dim=torch_dim)
    else:
        values, indices = torch.min(x, dim=torch_dim)
    return MinMaxResult(values, indices)


def mat_min(X, dim: Union[Axis, int], use_kernel: bool = True) -> MinMaxResult:
    """
    Minimum of each column (dim=1) or row (dim=2) of X and where it occurs.

    Args:
        X: m by n matrix. A torch.Tensor, or anything torch.as_tensor accepts.
        dim: Axis.COLUMNS / 1 or Axis.ROWS / 2.
        use_kernel: Try the custom CUDA kernel for CUDA floating point input.

    Returns:
        MinMaxResult(values, indices): values has X's dtype and is n long
        (dim=1) or m long (dim=2); indices are int64 positions along dim.
        Ties resolve to the first occurrence, a NaN in a line wins.

    Raises:
        InvalidArgument: dim is not 1 or 2, X is not 2-D, or X is complex.
        EmptyReduction: the lines to reduce have length zero.
    """
    return _reduce(X, dim, largest=False, use_kernel=use_kernel)


def mat_max(X, dim: Union[Axis, int], use_kernel: bool = True) -> MinMaxResult:
    """Maximum counterpart of mat_min, same arguments and errors."""
    return _reduce(X, dim, largest=True, use_kernel=use_kernel)
