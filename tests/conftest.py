import numpy as np
import pytest


def make_csv_text(rows: int = 60, seed: int = 0) -> str:
    """Three well separated blobs with a categorical column and a text label."""

    rng = np.random.default_rng(seed)
    names = ["setosa", "versicolor", "virginica"]
    lines = ["sepal,petal,width,colour,species"]
    for i in range(rows):
        cls = i % 3
        centre = np.array([cls * 3.0, -cls * 2.0, cls * 1.5])
        a, b, c = centre + rng.normal(scale=0.3, size=3)
        colour = "red" if cls == 0 else "blue"
        lines.append(f"{a:.4f},{b:.4f},{c:.4f},{colour},{names[cls]}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def csv_text() -> str:
    return make_csv_text()


@pytest.fixture
def csv_path(tmp_path, csv_text):
    path = tmp_path / "flowers.csv"
    path.write_text(csv_text)
    return path
