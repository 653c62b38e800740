"""
CUDA line reduction used by mat_min/mat_max on the GPU.

One thread per line (column or row), walking the line through its stride, so
transposed and sliced matrices need no copy. The extension is compiled on the
first call that needs it; if that fails the callers use torch.min/torch.max.
"""
import os
import threading
from typing import Optional, Tuple

import torch

DISABLE_KERNEL = os.environ.get("AXIS_MIN_DISABLE_KERNEL", "0").lower() in ("1", "true", "yes")
BUILD_DIR = os.environ.get("AXIS_MIN_BUILD_DIR") or None
VERBOSE_BUILD = os.environ.get("AXIS_MIN_VERBOSE_BUILD", "0").lower() in ("1", "true", "yes")

THREADS_PER_BLOCK = 256

cpp_source = """
std::vector<torch::Tensor> line_reduce(torch::Tensor x, int64_t dim, bool largest);
"""

cuda_source = """
#include <torch/extension.h>
#include <cuda.h>
#include <cuda_runtime.h>
#include <ATen/cuda/CUDAContext.h>
#include <c10/cuda/CUDAGuard.h>
#include <c10/cuda/CUDAException.h>
#include <vector>

template <typename scalar_t>
__global__ void line_reduce_kernel(
    const scalar_t* __restrict__ input,
    scalar_t* __restrict__ values,
    int64_t* __restrict__ indices,
    const int64_t num_lines,
    const int64_t line_length,
    const int64_t line_stride,
    const int64_t elem_stride,
    const bool largest) {

    const int64_t line = blockIdx.x * (int64_t)blockDim.x + threadIdx.x;
    if (line >= num_lines) return;

    const scalar_t* p = input + line * line_stride;
    scalar_t best = p[0];
    int64_t best_idx = 0;

    // Strict comparison keeps the first extremum; the first NaN ends the scan
    if (best == best) {
        for (int64_t i = 1; i < line_length; ++i) {
            const scalar_t val = p[i * elem_stride];
            if (val != val) {
                best = val;
                best_idx = i;
                break;
            }
            if (largest ? (val > best) : (val < best)) {
                best = val;
                best_idx = i;
            }
        }
    }

    values[line] = best;
    indices[line] = best_idx;
}

std::vector<torch::Tensor> line_reduce(torch::Tensor x, int64_t dim, bool largest) {
    TORCH_CHECK(x.is_cuda(), "line_reduce: input must be a CUDA tensor");
    TORCH_CHECK(x.dim() == 2, "line_reduce: input must be 2-D");
    TORCH_CHECK(dim == 0 || dim == 1, "line_reduce: dim must be 0 or 1");
    TORCH_CHECK(x.size(dim) > 0, "line_reduce: lines must not be empty");

    const at::cuda::OptionalCUDAGuard device_guard(device_of(x));

    const int64_t num_lines = x.size(1 - dim);
    const int64_t line_length = x.size(dim);
    const int64_t line_stride = x.stride(1 - dim);
    const int64_t elem_stride = x.stride(dim);

    auto values = torch::empty({num_lines}, x.options());
    auto indices = torch::empty({num_lines}, x.options().dtype(torch::kLong));

    const int threads = """ + str(THREADS_PER_BLOCK) + """;
    const int blocks = (num_lines + threads - 1) / threads;
    auto stream = at::cuda::getCurrentCUDAStream();

    AT_DISPATCH_FLOATING_TYPES(x.scalar_type(), "line_reduce", ([&] {
        line_reduce_kernel<scalar_t><<<blocks, threads, 0, stream>>>(
            x.data_ptr<scalar_t>(),
            values.data_ptr<scalar_t>(),
            indices.data_ptr<int64_t>(),
            num_lines,
            line_length,
            line_stride,
            elem_stride,
            largest);
    }));
    C10_CUDA_KERNEL_LAUNCH_CHECK();

    return {values, indices};
}
"""

_module = None
_build_failed = False
_build_lock = threading.Lock()


def _load():
    """Compile the extension once per process. Returns None when it cannot be built."""
    global _module, _build_failed
    with _build_lock:
        if _module is None and not _build_failed:
            try:
                from torch.utils.cpp_extension import load_inline

                if BUILD_DIR:
                    os.makedirs(BUILD_DIR, exist_ok=True)
                _module = load_inline(
                    name="axis_min_line_reduce",
                    cpp_sources=cpp_source,
                    cuda_sources=cuda_source,
                    functions=["line_reduce"],
                    with_cuda=True,
                    extra_cuda_cflags=["-O3"],
                    build_directory=BUILD_DIR,
                    verbose=VERBOSE_BUILD,
                )
            except Exception as e:
                print(f"[Kernel] Failed to compile CUDA extension, falling back to torch: {e}")
                _build_failed = True
    return _module


def available() -> bool:
    """Whether the CUDA kernel can be used in this process (builds it if needed)."""
    if DISABLE_KERNEL or not torch.cuda.is_available():
        return False
    return _load() is not None


def supports(x: torch.Tensor) -> bool:
    """Whether x is an input the kernel handles; everything else goes to torch."""
    if DISABLE_KERNEL or not x.is_cuda or x.dim() != 2:
        return False
    if x.dtype not in (torch.float32, torch.float64):
        return False
    # the kernel output carries no autograd history
    if x.requires_grad and torch.is_grad_enabled():
        return False
    return True


def line_reduce(x: torch.Tensor, dim: int, largest: bool) -> Optional[Tuple[torch.Tensor, torch.Tensor]]:
    """
    Reduce every line of a 2-D CUDA tensor along torch dimension `dim`.

    Returns:
        (values, indices), or None if the extension is unavailable.
    """
    module = _load()
    if module is None:
        return None
    values, indices = module.line_reduce(x, dim, largest)
    return values, indices
