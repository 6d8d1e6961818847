from __future__ import annotations

from typing import Callable

import torch
from jaxtyping import Int64
from torch import Tensor

PermutationFn = Callable[[int], Int64[Tensor, " n"]]


class RandomPermutation:
    """Draw permutations of ``0..n`` from a dedicated ``torch.Generator``.

    Passing a seed makes every permutation sequence reproducible, which is what
    the tests rely on. Without a seed the generator is seeded from torch's
    default entropy source.
    """

    def __init__(self, seed: int | None = None) -> None:
        self.generator = torch.Generator()
        if seed is None:
            self.generator.seed()
        else:
            self.generator.manual_seed(seed)

    def __call__(self, n: int) -> Int64[Tensor, " n"]:
        return torch.randperm(n, generator=self.generator, dtype=torch.int64)


def default_permutation(n: int) -> Int64[Tensor, " n"]:
    return torch.randperm(n, dtype=torch.int64)


def check_positive(name: str, value: int) -> int:
    value = int(value)
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer (got {value})")
    return value


def batch_bounds(batch_index: int, batch_size: int, total_size: int) -> tuple[int, int]:
    """Return ``(start, size)`` of the ``batch_index``-th batch.

    ``size`` may be smaller than ``batch_size`` for the last batch and is zero
    or negative once the cursor has run past ``total_size``.
    """

    start = batch_index * batch_size
    size = min(batch_size, total_size - start)
    return start, size


def resolve_device(device: str | torch.device | None) -> torch.device:
    if device is None or device == "auto":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    return torch.device(device)
