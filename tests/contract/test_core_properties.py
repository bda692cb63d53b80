import itertools

import numpy as np
import pytest

from nnviz.core.config import MAX_LAYERS, ConfigStateManager
from nnviz.core.errors import NumericInstability
from nnviz.core.forward import forward_pass
from nnviz.core.layout import layout
from nnviz.core.topology import resolve
from nnviz.core.types import Dataset, NetworkConfig
from nnviz.training import FeedForwardModel

SIZES = [(1,), (3, 1), (2, 3), (4, 5, 3), (1, 8, 8, 1), (10, 2, 7, 3, 5)]
VIEWPORTS = [(1, 1), (300, 200), (1920.5, 1080.25)]


@pytest.mark.parametrize("sizes,viewport", list(itertools.product(SIZES, VIEWPORTS)))
def test_layout_position_and_connection_counts(sizes, viewport):
    config = NetworkConfig(layer_count=len(sizes), neurons_per_layer=sizes)
    topology = resolve(config)
    result = layout(topology, *viewport)
    assert len(result.flat_positions()) == sum(sizes)
    assert len(result.connections) == sum(a * b for a, b in zip(sizes, sizes[1:]))
    again = layout(topology, *viewport)
    assert np.allclose(
        [(p.x, p.y) for p in result.flat_positions()],
        [(p.x, p.y) for p in again.flat_positions()],
        atol=1e-9,
    )


@pytest.mark.parametrize("n", range(1, MAX_LAYERS + 1))
def test_layer_count_resize_from_any_start(n):
    for start in ((4, 5, 3), (7,), tuple(range(1, MAX_LAYERS + 1))):
        manager = ConfigStateManager(NetworkConfig(layer_count=len(start), neurons_per_layer=start))
        config = manager.update("layerCount", n)
        assert len(config.neurons_per_layer) == n
        kept = min(n, len(start))
        assert config.neurons_per_layer[:kept] == start[:kept]
        assert set(config.neurons_per_layer[kept:]) <= {1}


@pytest.mark.parametrize("features,classes", [(1, 1), (6, 2), (13, 3)])
def test_resolve_is_stable_with_dataset(features, classes):
    dataset = Dataset(
        name="grid.csv",
        features=np.zeros((2, features)),
        labels=np.eye(classes)[np.zeros(2, dtype=int)],
    )
    config = NetworkConfig()
    first = resolve(config, dataset)
    assert first == resolve(config, dataset)
    assert first.layer_sizes[0] == features
    assert first.layer_sizes[-1] == classes


@pytest.mark.parametrize("scale", [1.0, 1e3, 1e30, 1e300])
def test_forward_pass_is_finite_or_raises(scale):
    topology = resolve(NetworkConfig(layer_count=3, neurons_per_layer=(3, 3, 2)))
    model = FeedForwardModel(topology, input_dim=3, seed=0)
    state = {k: v * scale for k, v in model.state_dict().items()}
    model.load_state_dict(state)
    features = np.full((2, 3), 7.0, dtype=np.float32)
    with np.errstate(over="ignore", invalid="ignore"):
        try:
            snapshot = forward_pass(model, features, "relu", sample_index=0)
        except NumericInstability:
            return
    assert all(np.all(np.isfinite(values)) for values in snapshot.layers)
