from __future__ import annotations

from typing import Any

import numpy as np
import numpy.typing as npt
import torch
from jaxtyping import Int64
from torch import Tensor

from .batching import PermutationFn, batch_bounds, check_positive, default_permutation
from .errors import ShapeMismatch


def _as_tensor(array: Tensor | npt.NDArray[Any], name: str) -> Tensor:
    if isinstance(array, np.ndarray):
        array = torch.from_numpy(np.ascontiguousarray(array))
    else:
        array = torch.as_tensor(array)
    if array.dim() == 0:
        raise ValueError(f"{name} must have at least one dimension (got a scalar)")
    return array


class PairedBatchIterator:
    """Iterate over aligned mini-batches of two tensors sharing their first dimension.

    ``features`` and ``targets`` are held by reference. Each batch is a pair of
    contiguous slices along axis 0, moved to ``device`` as it is yielded. The
    configuration methods return the iterator so they can be chained::

        for xs, ys in PairedBatchIterator(xs, ys, 64).shuffle().to_device("cuda"):
            ...
    """

    def __init__(
        self,
        features: Tensor | npt.NDArray[Any],
        targets: Tensor | npt.NDArray[Any],
        batch_size: int,
        permutation: PermutationFn | None = None,
    ) -> None:
        self.features = _as_tensor(features, "features")
        self.targets = _as_tensor(targets, "targets")

        self.total_size = int(self.features.shape[0])
        if int(self.targets.shape[0]) != self.total_size:
            raise ShapeMismatch(
                "different dimension for the two inputs: "
                f"features {tuple(self.features.shape)} vs targets {tuple(self.targets.shape)}"
            )

        self.batch_size = check_positive("batch_size", batch_size)
        self.batch_index = 0
        self.device = torch.device("cpu")
        self.return_smaller_last_batch = False
        self._permutation = permutation or default_permutation

        # Row i of ``features``/``targets`` is row ``order[i]`` of the inputs.
        self._source_features = self.features
        self._source_targets = self.targets
        self.order: Int64[Tensor, " total_size"] = torch.arange(self.total_size, dtype=torch.int64)

    def shuffle(self) -> PairedBatchIterator:
        """Reorder both tensors with one fresh random permutation.

        The pass still covers every sample, only the grouping into batches
        changes. Rows stay paired since both tensors are gathered at the same
        indices.
        """

        index = self._permutation(self.total_size)
        self.order = self.order.index_select(0, index.to(self.order.device))
        self.features = self.features.index_select(0, index.to(self.features.device))
        self.targets = self.targets.index_select(0, index.to(self.targets.device))
        return self

    def to_device(self, device: str | torch.device) -> PairedBatchIterator:
        self.device = torch.device(device)
        return self

    def keep_partial_last_batch(self) -> PairedBatchIterator:
        self.return_smaller_last_batch = True
        return self

    def reset(self) -> PairedBatchIterator:
        self.batch_index = 0
        return self

    def __iter__(self) -> PairedBatchIterator:
        return self

    def __next__(self) -> tuple[Tensor, Tensor]:
        start, size = batch_bounds(self.batch_index, self.batch_size, self.total_size)
        if size <= 0 or (size < self.batch_size and not self.return_smaller_last_batch):
            raise StopIteration
        self.batch_index += 1
        xs = self.features.narrow(0, start, size).to(self.device)
        ys = self.targets.narrow(0, start, size).to(self.device)
        return xs, ys

    def __len__(self) -> int:
        full, remainder = divmod(self.total_size, self.batch_size)
        if remainder and self.return_smaller_last_batch:
            return full + 1
        return full

    def state_dict(self) -> dict[str, Any]:
        return {
            "batch_index": self.batch_index,
            "batch_size": self.batch_size,
            "total_size": self.total_size,
            "order": self.order.clone(),
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        """Restore the cursor and the row order of a saved pass.

        Rows are gathered again from the tensors given to the constructor, so
        any shuffles applied to this iterator before loading are discarded.
        """

        if int(state["total_size"]) != self.total_size or int(state["batch_size"]) != self.batch_size:
            raise ValueError(
                "iterator state does not match: "
                f"saved total_size={state['total_size']} batch_size={state['batch_size']}, "
                f"current total_size={self.total_size} batch_size={self.batch_size}"
            )
        order = torch.as_tensor(state["order"], dtype=torch.int64)
        if order.shape != (self.total_size,):
            raise ValueError(
                f"saved row order has shape {tuple(order.shape)}, expected ({self.total_size},)"
            )
        self.order = order
        self.features = self._source_features.index_select(0, order.to(self._source_features.device))
        self.targets = self._source_targets.index_select(0, order.to(self._source_targets.device))
        self.batch_index = int(state["batch_index"])
