from __future__ import annotations

import pytest
import torch

from tensor_batches.modules.batching import (
    RandomPermutation,
    batch_bounds,
    check_positive,
    default_permutation,
    resolve_device,
)


@pytest.mark.parametrize(
    ("batch_index", "expected"),
    [(0, (0, 2)), (1, (2, 2)), (2, (4, 1)), (3, (6, -1))],
)
def test_batch_bounds(batch_index: int, expected: tuple[int, int]) -> None:
    assert batch_bounds(batch_index, batch_size=2, total_size=5) == expected


def test_check_positive() -> None:
    assert check_positive("batch_size", 3) == 3
    with pytest.raises(ValueError, match="batch_size"):
        check_positive("batch_size", 0)


@pytest.mark.parametrize("permutation", [default_permutation, RandomPermutation(), RandomPermutation(4)])
def test_permutations_cover_range(permutation) -> None:
    perm = permutation(17)

    assert perm.dtype == torch.int64
    assert sorted(perm.tolist()) == list(range(17))


def test_seeded_permutations_repeat() -> None:
    first, second = RandomPermutation(123), RandomPermutation(123)

    assert torch.equal(first(40), second(40))
    assert torch.equal(first(40), second(40))


def test_empty_permutation() -> None:
    assert RandomPermutation(0)(0).numel() == 0


def test_resolve_device() -> None:
    assert resolve_device("cpu") == torch.device("cpu")
    expected = "cuda" if torch.cuda.is_available() else "cpu"
    assert resolve_device(None).type == expected
    assert resolve_device("auto").type == expected
