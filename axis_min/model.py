import torch
import torch.nn as nn

from axis_min.reduction import MinMaxResult, as_axis, mat_max, mat_min


class AxisMin(nn.Module):
    """
    Model that returns the minimum (or maximum) of each column or row of a matrix
    together with the index where it occurs.

    Args:
        dim (int): 1 to reduce down columns, 2 to reduce across rows.
        largest (bool): Take the maximum instead of the minimum.
        use_kernel (bool): Use the custom CUDA kernel when the input allows it.
    """
    def __init__(self, dim: int, largest: bool = False, use_kernel: bool = True):
        super(AxisMin, self).__init__()
        self.dim = as_axis(dim)
        self.largest = largest
        self.use_kernel = use_kernel

    def forward(self, x: torch.Tensor) -> MinMaxResult:
        """
        Args:
            x (torch.Tensor): Input matrix of shape (rows, cols).

        Returns:
            MinMaxResult: (values, indices), each of length cols for dim=1 or rows for dim=2.
        """
        if self.largest:
            return mat_max(x, self.dim, use_kernel=self.use_kernel)
        return mat_min(x, self.dim, use_kernel=self.use_kernel)

    def extra_repr(self) -> str:
        return f"dim={int(self.dim)}, largest={self.largest}"


# Benchmark problem
rows = 4096
cols = 4096
dim = 1

def get_inputs():
    x = torch.randn(rows, cols)
    return [x]

def get_init_inputs():
    return [dim]
