"""Dataset ingestion for nnviz."""

from .tabular import MAX_FILE_SIZE, load_csv, parse_tabular
from .utils import SplitIndices, standardize, validation_split_indices

__all__ = [
    "MAX_FILE_SIZE",
    "SplitIndices",
    "load_csv",
    "parse_tabular",
    "standardize",
    "validation_split_indices",
]
