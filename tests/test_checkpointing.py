from __future__ import annotations

import io
from pathlib import Path

import pytest
import torch

from tensor_batches.modules.batching import RandomPermutation
from tensor_batches.modules.checkpointing import load_iterator_state, save_iterator_state
from tensor_batches.modules.paired_iterator import PairedBatchIterator
from tensor_batches.modules.text_data import EncodedTextDataset


def test_window_iterator_roundtrip_through_file(tmp_path: Path) -> None:
    dataset = EncodedTextDataset(b"to be, or not to be, that is the question")
    it = dataset.iter_shuffle(5, 3, permutation=RandomPermutation(0))
    next(it)
    next(it)

    ckpt = tmp_path / "windows.pt"
    save_iterator_state(it, ckpt)
    remaining = list(it)

    resumed = dataset.iter_shuffle(5, 3)
    batch_index = load_iterator_state(ckpt, resumed)

    assert batch_index == 2
    resumed_batches = list(resumed)
    assert len(resumed_batches) == len(remaining)
    assert all(torch.equal(a, b) for a, b in zip(remaining, resumed_batches))


def test_paired_iterator_roundtrip_through_buffer() -> None:
    xs = torch.arange(10).unsqueeze(1)
    ys = torch.arange(10)
    it = PairedBatchIterator(xs, ys, batch_size=3)
    next(it)

    buffer = io.BytesIO()
    save_iterator_state(it, buffer)
    buffer.seek(0)

    resumed = PairedBatchIterator(xs, ys, batch_size=3)
    assert load_iterator_state(buffer, resumed) == 1
    assert [b[1].tolist() for b in resumed] == [[3, 4, 5], [6, 7, 8]]


def test_loading_into_wrong_iterator_kind(tmp_path: Path) -> None:
    ckpt = tmp_path / "paired.pt"
    save_iterator_state(PairedBatchIterator(torch.zeros(4), torch.zeros(4), 2), ckpt)

    windows = EncodedTextDataset(b"abcdef").iter_shuffle(2, 1)
    with pytest.raises(ValueError):
        load_iterator_state(ckpt, windows)


def test_shuffled_paired_iterator_resumes_same_pass(tmp_path: Path) -> None:
    xs = torch.arange(8).unsqueeze(1)
    ys = torch.arange(8) * 10
    it = PairedBatchIterator(xs, ys, batch_size=2, permutation=RandomPermutation(0)).shuffle()
    consumed = next(it)[0][:, 0].tolist()

    ckpt = tmp_path / "paired.pt"
    save_iterator_state(it, ckpt)

    resumed = PairedBatchIterator(xs, ys, batch_size=2, permutation=RandomPermutation(1)).shuffle()
    load_iterator_state(ckpt, resumed)

    seen = list(consumed)
    for batch_xs, batch_ys in resumed:
        assert (batch_xs[:, 0] * 10).tolist() == batch_ys.tolist()
        seen.extend(batch_xs[:, 0].tolist())

    assert sorted(seen) == list(range(8))
