from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Hashable, Mapping, Optional, Sequence, Tuple

import pandas as pd
from sklearn.model_selection import train_test_split

from .config import DATA_PATH, SEED, TEST_SIZE

OUTCOME_LABELS: Dict[int, str] = {0: "no disease", 1: "disease"}


@dataclass(frozen=True)
class CategoricalEncoding:
    """Fixed label-to-code mapping for one categorical column.

    The code of a label is its position in ``levels``. The first level is the
    reference level when the column is dummy-coded.
    """

    column: str
    levels: Tuple[Hashable, ...]

    @property
    def mapping(self) -> Dict[Hashable, int]:
        return {label: code for code, label in enumerate(self.levels)}

    def code(self, label: Hashable) -> int:
        try:
            return self.mapping[label]
        except KeyError:
            raise ValueError(f"Unknown level {label!r} for column '{self.column}'. Expected one of {list(self.levels)}")

    def label(self, code: int) -> Hashable:
        if not 0 <= code < len(self.levels):
            raise ValueError(f"Code {code} out of range for column '{self.column}'.")
        return self.levels[code]


HEART_ENCODINGS: Dict[str, CategoricalEncoding] = {
    enc.column: enc
    for enc in (
        CategoricalEncoding("Sex", ("M", "F")),
        CategoricalEncoding("ChestPainType", ("ASY", "ATA", "NAP", "TA")),
        CategoricalEncoding("FastingBS", (0, 1)),
        CategoricalEncoding("RestingECG", ("Normal", "ST", "LVH")),
        CategoricalEncoding("ExerciseAngina", ("N", "Y")),
        CategoricalEncoding("ST_Slope", ("Up", "Flat", "Down")),
    )
}


@dataclass(frozen=True)
class Partition:
    """Disjoint train/test split of a dataset; together they cover every record."""

    train: pd.DataFrame
    test: pd.DataFrame


def load_dataset(
    path: Path | str = DATA_PATH,
    sep: str = ",",
    encodings: Optional[Mapping[str, CategoricalEncoding]] = None,
) -> pd.DataFrame:
    """Read a delimited file with a header row and encode its categorical columns."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")
    df = pd.read_csv(path, sep=sep, header=0, skipinitialspace=True)
    return encode_categoricals(df, HEART_ENCODINGS if encodings is None else encodings)


def encode_categoricals(
    df: pd.DataFrame,
    encodings: Mapping[str, CategoricalEncoding] = HEART_ENCODINGS,
) -> pd.DataFrame:
    """
    Convert every column with a declared encoding to a pandas Categorical.

    Categories follow the declared level order, so dummy columns are identical
    for any subset of rows. Values outside the declared levels raise ``ValueError``.
    """
    out = df.copy()
    for column, enc in encodings.items():
        if column not in out.columns:
            continue
        values = out[column]
        unknown = sorted({str(v) for v in values.dropna().unique() if v not in enc.levels})
        if unknown:
            raise ValueError(f"Column '{column}' holds undeclared levels {unknown}; expected {list(enc.levels)}")
        out[column] = pd.Categorical(values, categories=list(enc.levels))
    return out


def split_train_test(
    df: pd.DataFrame,
    test_size: float = TEST_SIZE,
    random_state: int = SEED,
    stratify: Optional[str] = None,
) -> Partition:
    """Seeded train/test split that keeps the original row index."""
    if not 0.0 < test_size < 1.0:
        raise ValueError(f"test_size must lie in (0, 1), got {test_size}")
    train, test = train_test_split(
        df,
        test_size=test_size,
        random_state=random_state,
        stratify=df[stratify] if stratify else None,
    )
    return Partition(train=train, test=test)


def describe_columns(df: pd.DataFrame, columns: Sequence[str]) -> Dict[str, Any]:
    """Column kind per name, used when reporting which predictors entered a model."""
    kinds: Dict[str, Any] = {}
    for col in columns:
        if isinstance(df[col].dtype, pd.CategoricalDtype):
            kinds[col] = {"kind": "categorical", "levels": df[col].cat.categories.tolist()}
        else:
            kinds[col] = {"kind": "numeric"}
    return kinds
