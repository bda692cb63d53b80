"""Command line entry point for nnviz network inspection."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

import numpy as np

from nnviz.core.animation import backward_magnitudes, build_plan, plan_duration
from nnviz.core.config import ConfigStateManager, config_to_dict, load_config_file
from nnviz.core.errors import NNVizError
from nnviz.core.forward import forward_pass
from nnviz.core.layout import layout
from nnviz.core.topology import resolve
from nnviz.core.types import Activation, Direction, HIDDEN_ACTIVATIONS
from nnviz.data import load_csv
from nnviz.reporting import JsonlSink, render_network
from nnviz.training import FeedForwardModel, train_model

logger = logging.getLogger(__name__)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--csv", type=Path, help="CSV dataset; the last column is the label")
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML network config")
    parser.add_argument("--layers", type=int, help="Override the number of layers")
    parser.add_argument(
        "--neurons", help="Comma separated neurons per layer, e.g. 4,8,3"
    )
    parser.add_argument(
        "--activation",
        choices=[a.value for a in HIDDEN_ACTIVATIONS],
        help="Hidden layer activation",
    )
    parser.add_argument("--epochs", type=int, help="Override the number of training epochs")
    parser.add_argument("--seed", type=int, default=0, help="Seed for weights and sampling")
    parser.add_argument(
        "--train", action="store_true", help="Train the model before the forward pass"
    )
    parser.add_argument("--sample-index", type=int, help="Row to run the forward pass on")
    parser.add_argument(
        "--direction",
        choices=[d.value for d in Direction],
        default=Direction.FORWARD.value,
        help="Animation direction for the plan summary",
    )
    parser.add_argument("--width", type=float, default=800.0, help="Viewport width")
    parser.add_argument("--height", type=float, default=600.0, help="Viewport height")
    parser.add_argument("--render", type=Path, help="Write a PNG of the network")
    parser.add_argument("--metrics", type=Path, help="Write per-epoch metrics as JSONL")
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    return parser.parse_args(argv)


def _apply_overrides(manager: ConfigStateManager, args: argparse.Namespace) -> None:
    if args.layers is not None:
        manager.update("layers", args.layers)
    if args.neurons:
        manager.update("neurons", args.neurons)
    if args.activation:
        manager.update("activation", Activation(args.activation))
    if args.epochs is not None:
        manager.update("epochs", args.epochs)


def run(args: argparse.Namespace) -> dict:
    manager = ConfigStateManager(load_config_file(args.config) if args.config else None)
    dataset = None
    if args.csv:
        dataset = load_csv(args.csv)
        manager.apply_dataset_defaults(dataset)
    _apply_overrides(manager, args)
    config = manager.current()

    topology = resolve(config, dataset)
    net_layout = layout(topology, args.width, args.height)
    payload: dict = {
        "config": config_to_dict(config),
        "topology": {
            "layer_sizes": topology.layer_sizes,
            "activations": [layer.activation.value for layer in topology.layers],
            "neurons": topology.neuron_total,
            "connections": topology.connection_total,
        },
        "layout": {
            "viewport": [args.width, args.height],
            "positions": [[[p.x, p.y] for p in layer] for layer in net_layout.positions],
        },
        "snapshot": None,
        "plan": None,
    }

    snapshot = None
    if dataset is not None:
        model = FeedForwardModel(topology, input_dim=dataset.input_shape[0], seed=args.seed)
        if args.train:
            callbacks = [JsonlSink(args.metrics, seed=args.seed)] if args.metrics else None
            result = train_model(
                model,
                dataset.features,
                dataset.labels,
                config,
                seed=args.seed,
                callbacks=callbacks,
            )
            payload["training"] = {
                "epochs": result.epochs_completed,
                "final": result.final.as_dict() if result.final else None,
            }
        snapshot = forward_pass(
            model,
            dataset.features,
            config.activation,
            sample_index=args.sample_index,
            rng=np.random.default_rng(args.seed),
        )
        trace = snapshot
        if Direction(args.direction) is Direction.BACKWARD:
            trace = backward_magnitudes(snapshot)
        plan = build_plan(trace, args.direction, topology=topology)
        payload["snapshot"] = {
            "sample_index": snapshot.sample_index,
            "layers": snapshot.as_lists(),
        }
        payload["plan"] = {
            "direction": Direction(args.direction).value,
            "steps": len(plan),
            "duration_ms": plan_duration(plan),
        }

    if args.render:
        render_network(net_layout, snapshot, args.render, viewport=(args.width, args.height))
        payload["render"] = str(args.render)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config_to_dict(config), indent=2))
    return payload


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        payload = run(args)
    except (NNVizError, IndexError) as exc:
        logger.error("%s", exc)
        raise SystemExit(f"error: {exc}") from exc
    print(json.dumps(payload, sort_keys=True))


if __name__ == "__main__":
    main()
