"""
Walk one pass of shuffled character windows over a text file.
Useful to sanity check a corpus and batch geometry before training on it.
"""
from __future__ import annotations

import argparse
import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import torch

from tensor_batches.modules.batching import RandomPermutation, resolve_device
from tensor_batches.modules.text_data import EncodedTextDataset


@dataclass(frozen=True)
class DataConfig:
    text_path: Path | None = None


@dataclass(frozen=True)
class BatchConfig:
    seq_len: int = 128
    batch_size: int = 32
    seed: int = 1234
    device: str | None = None
    max_batches: int | None = None


@dataclass(frozen=True)
class SampleConfig:
    data: DataConfig = DataConfig()
    batch: BatchConfig = BatchConfig()


def _load_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _replace_dataclass(instance: Any, overrides: dict[str, Any]) -> Any:
    if overrides is None:
        return instance
    known = {field.name for field in dataclasses.fields(instance)}
    kwargs: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"Unknown config key for {type(instance).__name__}: {key}")
        if isinstance(value, dict):
            current = getattr(instance, key)
            kwargs[key] = _replace_dataclass(current, value)
        else:
            kwargs[key] = value
    return dataclasses.replace(instance, **kwargs)


def _coerce_config_types(cfg: SampleConfig) -> SampleConfig:
    data = cfg.data
    if data.text_path is not None and not isinstance(data.text_path, Path):
        cfg = dataclasses.replace(cfg, data=dataclasses.replace(data, text_path=Path(data.text_path)))
    return cfg


def load_config(config_path: Path | None) -> SampleConfig:
    base = SampleConfig()
    if config_path:
        overrides = _load_json(config_path)
        base = _replace_dataclass(base, overrides)
    return _coerce_config_types(base)


def apply_cli_overrides(cfg: SampleConfig, args: argparse.Namespace) -> SampleConfig:
    if args.text_path is not None:
        cfg = dataclasses.replace(cfg, data=dataclasses.replace(cfg.data, text_path=Path(args.text_path)))

    batch_kwargs: dict[str, Any] = {}
    if args.seq_len is not None:
        batch_kwargs["seq_len"] = args.seq_len
    if args.batch_size is not None:
        batch_kwargs["batch_size"] = args.batch_size
    if args.seed is not None:
        batch_kwargs["seed"] = args.seed
    if args.device is not None:
        batch_kwargs["device"] = args.device
    if args.max_batches is not None:
        batch_kwargs["max_batches"] = args.max_batches
    if batch_kwargs:
        cfg = dataclasses.replace(cfg, batch=dataclasses.replace(cfg.batch, **batch_kwargs))

    return cfg


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sample shuffled character windows from a text file")
    parser.add_argument("--config", type=Path, help="Optional path to JSON config file", default=None)
    parser.add_argument("--text-path", type=Path, default=None, help="Path to the raw text file")
    parser.add_argument("--seq-len", type=int, default=None, help="Window length in characters")
    parser.add_argument("--batch-size", type=int, default=None, help="Windows per batch")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the window permutation")
    parser.add_argument("--device", type=str, default=None, help="Device to use (auto, cpu, cuda, etc.)")
    parser.add_argument("--max-batches", type=int, default=None, help="Stop after this many batches")
    return parser.parse_args(argv)


def set_seed(seed: int) -> None:
    np.random.seed(seed)
    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)


def sample(cfg: SampleConfig) -> dict[str, Any]:
    if cfg.data.text_path is None:
        raise ValueError("Text file path must be provided")

    batch_cfg = cfg.batch
    device = resolve_device(batch_cfg.device)
    set_seed(batch_cfg.seed)

    dataset = EncodedTextDataset.from_file(cfg.data.text_path)
    print(f"Loaded {cfg.data.text_path} bytes={len(dataset)} labels={dataset.labels()}")

    windows = dataset.iter_shuffle(
        batch_cfg.seq_len,
        batch_cfg.batch_size,
        permutation=RandomPermutation(batch_cfg.seed),
    )

    num_batches = 0
    batch_shape: tuple[int, ...] | None = None
    first_window: str | None = None
    for batch in windows:
        batch = batch.to(device)
        if first_window is None:
            batch_shape = tuple(batch.shape)
            first_window = dataset.decode(batch[0].cpu())
        num_batches += 1
        if batch_cfg.max_batches is not None and num_batches >= batch_cfg.max_batches:
            break

    print(f"batches={num_batches} of {len(windows)} batch_shape={batch_shape} device={device}")
    if first_window is not None:
        print(f"first window: {first_window!r}")

    return {
        "labels": dataset.labels(),
        "num_batches": num_batches,
        "batch_shape": batch_shape,
        "first_window": first_window,
    }


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    cfg = load_config(args.config)
    cfg = apply_cli_overrides(cfg, args)
    sample(cfg)


if __name__ == "__main__":
    main()
