from axis_min.reduction import (
    Axis,
    AxisMinError,
    EmptyReduction,
    InvalidArgument,
    MinMaxResult,
    mat_max,
    mat_min,
)
from axis_min.model import AxisMin

__version__ = "0.1.0"
