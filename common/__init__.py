"""
Shared helpers for the heart-disease report tasks.

Every task package (``linear_regression``, ``logistic_regression``) loads the
dataset, encodes categoricals and splits train/test through this package so the
partition is identical across tasks for a given seed.
"""

from .dataset import (
    HEART_ENCODINGS,
    OUTCOME_LABELS,
    CategoricalEncoding,
    Partition,
    encode_categoricals,
    load_dataset,
    split_train_test,
)
from .errors import InsufficientData, InvalidSpecification, NoCandidates, ReportError

__all__ = [
    "HEART_ENCODINGS",
    "OUTCOME_LABELS",
    "CategoricalEncoding",
    "Partition",
    "encode_categoricals",
    "load_dataset",
    "split_train_test",
    "ReportError",
    "InvalidSpecification",
    "InsufficientData",
    "NoCandidates",
]
