import json
import warnings

import pytest

from nnviz.core.config import (
    MAX_LAYERS,
    ConfigStateManager,
    config_from_mapping,
    config_to_dict,
    load_config_file,
)
from nnviz.core.errors import ValidationError
from nnviz.core.types import Activation, Dataset, LossFunction, NetworkConfig


def test_layer_count_grows_with_ones():
    manager = ConfigStateManager()
    config = manager.update("layerCount", 5)
    assert config.layer_count == 5
    assert config.neurons_per_layer == (4, 5, 3, 1, 1)


@pytest.mark.parametrize("n", range(1, MAX_LAYERS + 1))
def test_layer_count_keeps_neuron_list_in_step(n):
    manager = ConfigStateManager()
    config = manager.update("layer_count", n)
    assert len(config.neurons_per_layer) == n
    kept = min(n, 3)
    assert config.neurons_per_layer[:kept] == (4, 5, 3)[:kept]
    assert all(v == 1 for v in config.neurons_per_layer[kept:])


@pytest.mark.parametrize(
    "field,value",
    [
        ("layerCount", 0),
        ("layerCount", MAX_LAYERS + 1),
        ("learningRate", 0),
        ("learningRate", 1.5),
        ("epochs", 0),
        ("batchSize", 2048),
        ("validationSplit", 0.9),
        ("activationFunction", "softmax"),
        ("optimizer", "lbfgs"),
        ("neurons", []),
        ("neurons", [4, 0, 3]),
        ("epochs", "ten"),
    ],
)
def test_invalid_update_leaves_config_untouched(field, value):
    manager = ConfigStateManager()
    before = manager.current()
    with pytest.raises(ValidationError):
        manager.update(field, value)
    assert manager.current() is before


def test_neuron_list_sets_layer_count():
    manager = ConfigStateManager()
    config = manager.update("neurons", "2, 7")
    assert config.neurons_per_layer == (2, 7)
    assert config.layer_count == 2


def test_set_layer_neurons_and_add_remove():
    manager = ConfigStateManager()
    manager.set_layer_neurons(1, 9)
    assert manager.current().neurons_per_layer == (4, 9, 3)
    manager.add_layer()
    assert manager.current().neurons_per_layer == (4, 9, 3, 1)
    manager.remove_layer()
    manager.remove_layer()
    assert manager.current().neurons_per_layer == (4, 9)
    with pytest.raises(ValidationError):
        manager.set_layer_neurons(5, 2)


def test_listeners_see_previous_and_new_config():
    manager = ConfigStateManager()
    seen = []
    unsubscribe = manager.subscribe(lambda old, new: seen.append((old, new)))
    manager.update("activation", "tanh")
    manager.update("activation", "tanh")
    assert len(seen) == 1
    old, new = seen[0]
    assert old.activation is Activation.RELU
    assert new.activation is Activation.TANH
    unsubscribe()
    manager.update("epochs", 5)
    assert len(seen) == 1


def test_dataset_defaults_suggest_three_layers():
    dataset = Dataset(name="toy.csv", features=[[0.0] * 6] * 4, labels=[[1.0, 0.0]] * 4)
    manager = ConfigStateManager(NetworkConfig(layer_count=5, neurons_per_layer=(1, 2, 3, 4, 5)))
    config = manager.apply_dataset_defaults(dataset)
    assert config.layer_count == 3
    assert config.neurons_per_layer == (6, 4, 2)


def test_legacy_loss_name_warns():
    manager = ConfigStateManager()
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        config = manager.update("lossFunction", "mse")
    assert config.loss_function is LossFunction.MEAN_SQUARED_ERROR
    assert any(issubclass(w.category, DeprecationWarning) for w in caught)


def test_mapping_and_files_round_trip(tmp_path):
    config = config_from_mapping({"layers": 4, "learningRate": 0.1})
    assert config.neurons_per_layer == (4, 5, 3, 1)
    assert config.learning_rate == pytest.approx(0.1)

    json_path = tmp_path / "net.json"
    json_path.write_text(json.dumps(config_to_dict(config)))
    assert load_config_file(json_path) == config

    yaml_path = tmp_path / "net.yaml"
    yaml_path.write_text("neuronsPerLayer: [3, 3]\nactivationFunction: sigmoid\n")
    loaded = load_config_file(yaml_path)
    assert loaded.layer_count == 2
    assert loaded.activation is Activation.SIGMOID

    with pytest.raises(ValidationError):
        config_from_mapping({"hiddenUnits": 3})
