from __future__ import annotations

import os
from typing import IO, BinaryIO

import torch

from .paired_iterator import PairedBatchIterator
from .text_data import TextWindowIterator


def save_iterator_state(
    iterator: PairedBatchIterator | TextWindowIterator,
    out: str | os.PathLike | BinaryIO | IO[bytes],
    ) -> None:
    """Persist the iterator cursor so a partially consumed pass can be resumed.

    For window iterators the permutation is saved too, otherwise resuming would
    revisit a different set of windows.
    """

    state = {"kind": type(iterator).__name__, "iterator": iterator.state_dict()}
    torch.save(state, out)

def load_iterator_state(
    src: str | os.PathLike | BinaryIO | IO[bytes],
    iterator: PairedBatchIterator | TextWindowIterator,
    ) -> int:
    state = torch.load(src, weights_only=True)

    kind = state.get("kind")
    if kind != type(iterator).__name__:
        raise ValueError(f"state was saved from a {kind}, cannot load into {type(iterator).__name__}")
    iterator.load_state_dict(state.get("iterator"))
    return iterator.batch_index
