from __future__ import annotations

import operator
import os
from pathlib import Path
from typing import Any, BinaryIO, Iterable

import numpy as np
import torch
from jaxtyping import Int64, UInt8
from torch import Tensor

from .batching import PermutationFn, batch_bounds, check_positive, default_permutation
from .errors import LabelOutOfRange


class EncodedTextDataset:
    """Character-level dataset over raw bytes.

    Every distinct byte value gets a label in order of first occurrence, so the
    same input always produces the same alphabet. Labels fit in ``uint8`` since
    there are at most 256 distinct bytes.
    """

    def __init__(self, buffer: bytes | bytearray | memoryview) -> None:
        raw = np.frombuffer(bytes(buffer), dtype=np.uint8)

        # np.unique sorts by value; reorder by first index to recover scan order.
        values, first_index = np.unique(raw, return_index=True)
        byte_order = values[np.argsort(first_index, kind="stable")]

        label_for_byte = np.zeros(256, dtype=np.uint8)
        label_for_byte[byte_order] = np.arange(byte_order.size, dtype=np.uint8)

        self._data: UInt8[Tensor, " length"] = torch.from_numpy(label_for_byte[raw])
        self.char_for_label: list[str] = [chr(int(b)) for b in byte_order]

    @classmethod
    def from_stream(cls, stream: BinaryIO) -> EncodedTextDataset:
        return cls(stream.read())

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> EncodedTextDataset:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Text file not found: {path}")
        with path.open("rb") as fh:
            return cls.from_stream(fh)

    def labels(self) -> int:
        """Number of distinct characters/labels in the dataset."""
        return len(self.char_for_label)

    def data(self) -> UInt8[Tensor, " length"]:
        """The encoded labels. This is the dataset's own tensor, not a copy."""
        return self._data

    def label_to_char(self, label: int) -> str:
        label = operator.index(label)
        if not 0 <= label < self.labels():
            raise LabelOutOfRange(label, self.labels())
        return self.char_for_label[label]

    def decode(self, labels: Tensor | Iterable[int]) -> str:
        if isinstance(labels, Tensor):
            labels = labels.reshape(-1).tolist()
        return "".join(self.label_to_char(label) for label in labels)

    def iter_shuffle(
        self,
        seq_len: int,
        batch_size: int,
        permutation: PermutationFn | None = None,
    ) -> TextWindowIterator:
        """Batches of ``seq_len`` windows starting at randomly ordered offsets."""
        return TextWindowIterator(self._data, seq_len, batch_size, permutation=permutation)

    def __len__(self) -> int:
        return int(self._data.shape[0])


class TextWindowIterator:
    """Yield ``(batch_size, seq_len)`` stacks of windows over an encoded sequence.

    The order of window start offsets is a permutation drawn once at
    construction. Only full batches are produced: a pass yields
    ``indexes_len // batch_size`` batches and drops the remainder so every
    batch has the same shape.
    """

    def __init__(
        self,
        data: UInt8[Tensor, " length"],
        seq_len: int,
        batch_size: int,
        permutation: PermutationFn | None = None,
    ) -> None:
        if data.dim() != 1:
            raise ValueError(f"data must be a 1D tensor of labels (got shape {tuple(data.shape)})")

        self.data = data
        self.seq_len = check_positive("seq_len", seq_len)
        self.batch_size = check_positive("batch_size", batch_size)
        self.batch_index = 0
        # A window longer than the data has no valid start offset.
        self.indexes_len = max(int(data.shape[0]) - self.seq_len + 1, 0)
        permutation = permutation or default_permutation
        self.indexes: Int64[Tensor, " indexes_len"] = permutation(self.indexes_len)

    def reset(self) -> TextWindowIterator:
        self.batch_index = 0
        return self

    def __iter__(self) -> TextWindowIterator:
        return self

    def __next__(self) -> UInt8[Tensor, " batch seq_len"]:
        start, size = batch_bounds(self.batch_index, self.batch_size, self.indexes_len)
        if size < self.batch_size:
            raise StopIteration
        self.batch_index += 1
        offsets = self.indexes.narrow(0, start, size).tolist()
        windows = [self.data.narrow(0, offset, self.seq_len) for offset in offsets]
        return torch.stack(windows, dim=0)

    def __len__(self) -> int:
        return self.indexes_len // self.batch_size

    def state_dict(self) -> dict[str, Any]:
        return {
            "batch_index": self.batch_index,
            "batch_size": self.batch_size,
            "seq_len": self.seq_len,
            "indexes": self.indexes.clone(),
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        indexes = torch.as_tensor(state["indexes"], dtype=torch.int64)
        if indexes.shape != (self.indexes_len,):
            raise ValueError(
                f"saved permutation has shape {tuple(indexes.shape)}, "
                f"expected ({self.indexes_len},) for this dataset and seq_len"
            )
        if int(state["seq_len"]) != self.seq_len or int(state["batch_size"]) != self.batch_size:
            raise ValueError(
                "iterator state does not match: "
                f"saved seq_len={state['seq_len']} batch_size={state['batch_size']}, "
                f"current seq_len={self.seq_len} batch_size={self.batch_size}"
            )
        self.indexes = indexes
        self.batch_index = int(state["batch_index"])
