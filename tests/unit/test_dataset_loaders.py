import numpy as np
import pytest

from nnviz.core.errors import EmptyOrMalformed, ShapeMismatch, SizeLimitExceeded, UnsupportedFormat
from nnviz.core.types import Dataset
from nnviz.data import load_csv, parse_tabular, standardize, validation_split_indices


def test_parse_tabular_encodes_features_and_labels(csv_text):
    dataset = parse_tabular(csv_text, "flowers.csv")
    # Three numeric columns plus two one-hot colour columns.
    assert dataset.input_shape == (5,)
    assert dataset.output_shape == (3,)
    assert dataset.sample_count == 60
    assert dataset.label_names == ("setosa", "versicolor", "virginica")
    assert np.allclose(dataset.labels.sum(axis=1), 1.0)
    numeric = dataset.features[:, :3]
    assert np.allclose(numeric.mean(axis=0), 0.0, atol=1e-5)
    assert np.allclose(numeric.std(axis=0), 1.0, atol=1e-4)
    assert dataset.feature_means.shape == (5,)
    assert dataset.feature_stds.shape == (5,)


def test_dataset_arrays_are_immutable(csv_text):
    dataset = parse_tabular(csv_text)
    with pytest.raises(ValueError):
        dataset.features[0, 0] = 1.0


def test_load_csv_from_disk(csv_path):
    dataset = load_csv(csv_path)
    assert dataset.name == "flowers.csv"
    assert dataset.features.dtype == np.float32


def test_constant_column_is_not_divided_by_zero():
    dataset = parse_tabular("a,b,label\n1,5,x\n2,5,y\n3,5,x\n")
    assert np.all(np.isfinite(dataset.features))
    assert np.allclose(dataset.features[:, 1], 0.0)


def test_rejects_non_csv_names(tmp_path):
    with pytest.raises(UnsupportedFormat):
        parse_tabular("a,b\n1,2\n", "data.json")
    path = tmp_path / "data.txt"
    path.write_text("a,b\n1,2\n")
    with pytest.raises(UnsupportedFormat):
        load_csv(path)


def test_size_limit(tmp_path, csv_text):
    with pytest.raises(SizeLimitExceeded):
        parse_tabular(csv_text, max_bytes=10)
    path = tmp_path / "big.csv"
    path.write_text(csv_text)
    with pytest.raises(SizeLimitExceeded):
        load_csv(path, max_bytes=10)


@pytest.mark.parametrize(
    "text",
    ["", "   \n", "only_header\n", "a,b\n", "single\n1\n2\n", "a,b,label\n1,,x\n2,3,y\n"],
)
def test_empty_or_malformed(text):
    with pytest.raises(EmptyOrMalformed):
        parse_tabular(text)


def test_dataset_shape_checks():
    with pytest.raises(ShapeMismatch):
        Dataset(name="x", features=np.zeros((3, 2)), labels=np.zeros((2, 1)))
    with pytest.raises(ShapeMismatch):
        Dataset(name="x", features=np.zeros(3), labels=np.zeros((3, 1)))


def test_standardize_and_split_helpers():
    data = np.array([[1.0, 4.0], [3.0, 4.0]])
    scaled, mean, std = standardize(data)
    assert np.allclose(scaled[:, 0], [-1.0, 1.0])
    assert np.allclose(std[0, 1], 1.0)

    split = validation_split_indices(10, 0.2)
    assert split.train.tolist() == list(range(8))
    assert split.val.tolist() == [8, 9]
    assert validation_split_indices(1, 0.5).sizes == {"train": 1, "val": 0}
    with pytest.raises(ValueError):
        validation_split_indices(10, 1.0)
