import argparse
from pathlib import Path
from typing import Dict, Optional, Sequence

import pandas as pd

from common.config import DATA_PATH, OUTCOME, RESULTS_DIR
from common.dataset import OUTCOME_LABELS, load_dataset
from common.logging_utils import setup_logger
from visualize import scatter_by_outcome


def summarize(df: pd.DataFrame, outcome: str = OUTCOME) -> Dict[str, pd.DataFrame]:
    """Summary tables for the descriptive part of the report."""
    if outcome not in df.columns:
        raise ValueError(f"Outcome '{outcome}' not found. Columns: {list(df.columns)}")

    numeric = df.select_dtypes(include="number").drop(columns=[outcome], errors="ignore")
    categorical = [c for c in df.columns if c != outcome and not pd.api.types.is_numeric_dtype(df[c])]

    counts = df[outcome].value_counts().sort_index()
    balance = pd.DataFrame(
        {
            "label": [OUTCOME_LABELS.get(k, k) for k in counts.index],
            "count": counts.to_numpy(),
            "fraction": (counts / counts.sum()).to_numpy(),
        },
        index=counts.index,
    )

    tables = {
        "numeric": numeric.describe().T,
        "outcome": balance,
    }
    for col in categorical:
        tables[col] = pd.crosstab(df[col].astype(str), df[outcome], margins=True)
    return tables


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summary statistics and scatterplot of the heart dataset.")
    parser.add_argument("--data", type=Path, default=DATA_PATH)
    parser.add_argument("--outcome", default=OUTCOME)
    parser.add_argument("--x", default="Age", help="Horizontal axis column (default: Age).")
    parser.add_argument("--y", default="MaxHR", help="Vertical axis column (default: MaxHR).")
    parser.add_argument("--results-dir", type=Path, default=RESULTS_DIR / "summary", dest="results_dir")
    parser.add_argument("--show", action="store_true", help="Also open the figure window.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logger = setup_logger("summary")

    df = load_dataset(args.data)
    print(f"{len(df)} records, {df.shape[1]} columns")
    for name, table in summarize(df, args.outcome).items():
        print(f"\n=== {name} ===")
        print(table.round(3).to_string())

    path = scatter_by_outcome(
        df,
        args.x,
        args.y,
        label=args.outcome,
        labels=OUTCOME_LABELS,
        output_path=args.results_dir / f"scatter_{args.x}_{args.y}.png",
        show=args.show,
    )
    logger.info("Saved scatterplot to %s", path)


if __name__ == "__main__":
    main()
