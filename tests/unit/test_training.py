import numpy as np
import pytest

from nnviz.core.errors import NumericInstability, ShapeMismatch, TrainingCancelled, TrainingFailed
from nnviz.core.topology import resolve
from nnviz.core.types import Activation, LossFunction, NetworkConfig
from nnviz.data import parse_tabular
from nnviz.reporting import JsonlSink, read_jsonl
from nnviz.training import (
    LOSSES,
    CancelToken,
    FeedForwardModel,
    Trainer,
    accuracy,
    make_optimizer,
    train_model,
)
from nnviz.training.losses import Loss


@pytest.fixture
def dataset(csv_text):
    return parse_tabular(csv_text, "flowers.csv")


def _model(dataset, config, seed=0):
    topology = resolve(config, dataset)
    return FeedForwardModel(topology, input_dim=dataset.input_shape[0], seed=seed)


def test_training_reduces_loss(dataset):
    config = NetworkConfig(epochs=40, learning_rate=0.05, batch_size=16)
    model = _model(dataset, config)
    result = train_model(model, dataset.features, dataset.labels, config)
    assert result.epochs_completed == 40
    assert result.history[-1].loss < result.history[0].loss
    assert result.final.accuracy > 0.8
    assert result.final.val_loss is not None


@pytest.mark.parametrize("optimizer", ["sgd", "adam", "rmsprop"])
@pytest.mark.parametrize("activation", [Activation.RELU, Activation.SIGMOID, Activation.TANH])
def test_every_optimizer_and_activation_trains(dataset, optimizer, activation):
    config = NetworkConfig(
        epochs=3, optimizer=optimizer, activation=activation, validation_split=0.0
    )
    model = _model(dataset, config)
    result = train_model(model, dataset.features, dataset.labels, config)
    assert all(np.isfinite(m.loss) for m in result.history)
    assert result.final.val_loss is None


@pytest.mark.parametrize("loss", list(LossFunction))
def test_losses_return_matching_gradients(loss):
    probs = np.array([[0.7, 0.2, 0.1], [0.1, 0.1, 0.8]])
    targets = np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    value, grad = LOSSES.get(loss)(probs, targets)
    assert value > 0
    assert grad.shape == probs.shape


def test_epoch_callbacks_are_zero_based(dataset, tmp_path):
    config = NetworkConfig(epochs=3)
    model = _model(dataset, config)
    seen = []
    sink = JsonlSink(tmp_path / "metrics.jsonl", seed=0)
    train_model(
        model,
        dataset.features,
        dataset.labels,
        config,
        on_epoch=lambda epoch, metrics: seen.append((epoch, metrics.epoch)),
        callbacks=[sink],
    )
    assert seen == [(0, 0), (1, 1), (2, 2)]
    records = read_jsonl(tmp_path / "metrics.jsonl")
    assert [r["epoch"] for r in records] == [0, 1, 2]
    assert all("loss" in r and "accuracy" in r for r in records)


def test_training_is_deterministic(dataset):
    config = NetworkConfig(epochs=2)
    first = train_model(_model(dataset, config), dataset.features, dataset.labels, config, seed=5)
    second = train_model(_model(dataset, config), dataset.features, dataset.labels, config, seed=5)
    assert [m.loss for m in first.history] == [m.loss for m in second.history]


def test_cancel_between_epochs(dataset):
    config = NetworkConfig(epochs=50)
    model = _model(dataset, config)
    token = CancelToken()

    def stop_after_two(epoch, metrics):
        if epoch == 1:
            token.cancel()

    with pytest.raises(TrainingCancelled):
        train_model(
            model, dataset.features, dataset.labels, config, on_epoch=stop_after_two, cancel=token
        )
    assert token.cancelled


def test_shape_and_empty_errors(dataset):
    config = NetworkConfig(epochs=1)
    model = _model(dataset, config)
    with pytest.raises(ShapeMismatch):
        train_model(model, dataset.features[:5], dataset.labels[:4], config)
    with pytest.raises(ShapeMismatch):
        train_model(model, dataset.features, dataset.labels[:, :2], config)
    with pytest.raises(TrainingFailed):
        train_model(model, dataset.features[:0], dataset.labels[:0], config)


def test_non_finite_loss_is_numeric_instability(dataset):
    model = _model(dataset, NetworkConfig())
    nan_loss = Loss("nan", lambda p, t: (float("nan"), np.zeros_like(p)))
    trainer = Trainer(model, make_optimizer("sgd", 0.1), nan_loss)
    with pytest.raises(NumericInstability):
        trainer.run(dataset.features, dataset.labels, epochs=1, batch_size=8)


def test_divide_by_zero_becomes_training_failed(dataset):
    model = _model(dataset, NetworkConfig())
    bad_loss = Loss("log0", lambda p, t: (float(np.log(np.zeros(1))[0]), np.zeros_like(p)))
    trainer = Trainer(model, make_optimizer("sgd", 0.1), bad_loss)
    with pytest.raises(TrainingFailed) as info:
        trainer.run(dataset.features, dataset.labels, epochs=1, batch_size=8)
    assert "epoch 1" in info.value.reason


def test_overflow_becomes_numeric_instability(dataset):
    config = NetworkConfig(epochs=1)
    model = _model(dataset, config)
    model.load_state_dict({k: v * 1e200 for k, v in model.state_dict().items()})
    with pytest.raises(NumericInstability, match="epoch 1"):
        train_model(model, dataset.features, dataset.labels, config)


def test_model_state_and_clone(dataset):
    model = _model(dataset, NetworkConfig())
    twin = model.clone()
    assert twin is not model
    for key, value in model.state_dict().items():
        np.testing.assert_array_equal(value, twin.state_dict()[key])
    twin.apply_gradients({"W0": np.ones_like(twin.state_dict()["W0"])})
    assert not np.array_equal(model.state_dict()["W0"], twin.state_dict()["W0"])
    assert model.dims == [5, 5, 5, 3]
    assert model.parameter_count() == (5 * 5 + 5) * 2 + 5 * 3 + 3
    with pytest.raises(KeyError):
        model.load_state_dict({"W0": np.zeros((5, 5))})


def test_accuracy_metric():
    preds = np.array([[0.9, 0.1], [0.2, 0.8], [0.6, 0.4]])
    targets = np.array([[1, 0], [0, 1], [0, 1]], dtype=float)
    assert accuracy(preds, targets) == pytest.approx(2 / 3)
    assert accuracy(np.array([[0.7], [0.2]]), np.array([[1.0], [1.0]])) == 0.5
    with pytest.raises(KeyError):
        make_optimizer("lbfgs", 0.1)
