import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from common.config import (
    DATA_PATH,
    DEFAULT_FORMULAS,
    N_FOLDS,
    N_REPEATS,
    OUTCOME,
    POSITIVE_LABEL,
    RESULTS_DIR,
    SEED,
    TEST_SIZE,
)
from common.dataset import OUTCOME_LABELS, Partition, describe_columns, load_dataset, split_train_test
from common.logging_utils import setup_logger
from visualize import plot_confusion_matrix, plot_cv_accuracy

from .comparator import compare, evaluate_holdout, select_best
from .specs import ComparisonResult, ConfusionOutcome, ModelSpecification, ResamplingPlan

TASK_DIR = RESULTS_DIR / "logistic_regression"


@dataclass
class ClassificationReport:
    """Everything the classification step of the report needs to print or persist."""

    partition: Partition
    comparison: ComparisonResult
    selected: ModelSpecification
    confusion: ConfusionOutcome

    def to_dict(self) -> dict:
        return {
            "n_train": int(len(self.partition.train)),
            "n_test": int(len(self.partition.test)),
            "comparison": self.comparison.to_dict(),
            "selected": self.selected.to_dict(),
            "selected_columns": describe_columns(self.partition.train, self.selected.explanatory_columns),
            "confusion": self.confusion.to_dict(),
        }


def parse_specs(formulas: Sequence[str], outcome: str) -> List[ModelSpecification]:
    """Formulas may omit the left-hand side, in which case ``outcome`` is used."""
    specs = []
    for formula in formulas:
        if "~" not in formula:
            formula = f"{outcome} ~ {formula}"
        specs.append(ModelSpecification.from_formula(formula))
    return specs


def run_classification(
    df: pd.DataFrame,
    specs: Sequence[ModelSpecification],
    plan: ResamplingPlan,
    test_size: float = TEST_SIZE,
    seed: int = SEED,
    positive_label: int = POSITIVE_LABEL,
) -> ClassificationReport:
    """Split -> compare -> select -> evaluate on the held-out partition, once."""
    partition = split_train_test(df, test_size=test_size, random_state=seed)
    comparison = compare(partition.train, specs, plan)
    selected = select_best(comparison)
    confusion = evaluate_holdout(selected, partition.train, partition.test, positive_label=positive_label)
    return ClassificationReport(partition=partition, comparison=comparison, selected=selected, confusion=confusion)


def save_report(result_dir: Path, report: ClassificationReport) -> List[Path]:
    result_dir.mkdir(parents=True, exist_ok=True)
    fold_frame = report.comparison.to_frame()

    metrics_path = result_dir / "cv_metrics.csv"
    fold_frame.to_csv(metrics_path, index=False)

    comparison_path = result_dir / "comparison.json"
    with comparison_path.open("w", encoding="utf-8") as handle:
        json.dump(report.comparison.to_dict(), handle, indent=2)

    matrix_path = result_dir / "confusion_matrix.csv"
    report.confusion.matrix().to_csv(matrix_path)

    summary_path = result_dir / "summary.json"
    with summary_path.open("w", encoding="utf-8") as handle:
        json.dump(report.to_dict(), handle, indent=2)

    accuracy_plot = plot_cv_accuracy(fold_frame, output_path=result_dir / "cv_accuracy.png")
    matrix_plot = plot_confusion_matrix(
        report.confusion.matrix(),
        output_path=result_dir / "confusion_matrix.png",
        title=f"Confusion matrix: {report.selected.name}",
    )
    return [metrics_path, comparison_path, matrix_path, summary_path, accuracy_plot, matrix_plot]


def print_report(report: ClassificationReport) -> None:
    comparison = report.comparison
    print(f"\nTrain rows: {len(report.partition.train)} | Test rows: {len(report.partition.test)}")
    print(
        f"\n=== Repeated {comparison.plan.n_folds}-fold CV "
        f"({comparison.plan.n_repeats} repeats) ==="
    )
    for spec in comparison.specs:
        print(
            f"{spec.formula:<50} mean accuracy {comparison.mean_metric(spec.name):.4f} "
            f"± {comparison.std_metric(spec.name):.4f} ({len(comparison.results_for(spec.name))} folds)"
        )
    print(f"\nSelected model: {report.selected.formula}")

    confusion = report.confusion
    positive = OUTCOME_LABELS.get(confusion.positive_label, confusion.positive_label)
    print(f"\n=== Test set confusion matrix (positive class: {positive}) ===")
    print(confusion.matrix())
    print(f"Sensitivity: {confusion.sensitivity:.4f}")
    print(f"Specificity: {confusion.specificity:.4f}")
    print(f"Accuracy:    {confusion.accuracy:.4f}")


def _label(value: str):
    try:
        return int(value)
    except ValueError:
        return value


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compare logistic regression models with repeated cross-validation and evaluate the best on a test split."
    )
    parser.add_argument("--data", type=Path, default=DATA_PATH, help=f"CSV dataset (default: {DATA_PATH}).")
    parser.add_argument("--outcome", default=OUTCOME, help=f"Binary outcome column (default: {OUTCOME}).")
    parser.add_argument(
        "--formula",
        action="append",
        default=None,
        help="Candidate model, e.g. 'Age + MaxHR' or 'HeartDisease ~ Age * MaxHR'. Repeat for several candidates.",
    )
    parser.add_argument("--folds", type=int, default=N_FOLDS, help=f"Number of CV folds (default: {N_FOLDS}).")
    parser.add_argument("--repeats", type=int, default=N_REPEATS, help=f"Number of CV repeats (default: {N_REPEATS}).")
    parser.add_argument("--seed", type=int, default=SEED, help=f"Seed for the split and the folds (default: {SEED}).")
    parser.add_argument(
        "--test-size",
        type=float,
        default=TEST_SIZE,
        dest="test_size",
        help=f"Fraction of records held out for testing (default: {TEST_SIZE}).",
    )
    parser.add_argument(
        "--positive-label",
        type=_label,
        default=POSITIVE_LABEL,
        dest="positive_label",
        help=f"Outcome label treated as positive for sensitivity (default: {POSITIVE_LABEL}).",
    )
    parser.add_argument(
        "--no-stratify",
        action="store_false",
        dest="stratified",
        help="Assign folds without stratifying on the outcome.",
    )
    parser.add_argument("--n-jobs", type=int, default=None, dest="n_jobs", help="Parallel fold fits (joblib).")
    parser.add_argument("--results-dir", type=Path, default=TASK_DIR, dest="results_dir")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logger = setup_logger("logistic_regression")

    df = load_dataset(args.data)
    logger.info("Loaded %d records from %s", len(df), args.data)
    formulas = args.formula or [f.split("~", 1)[1].strip() for f in DEFAULT_FORMULAS]
    specs = parse_specs(formulas, args.outcome)
    plan = ResamplingPlan(
        n_folds=args.folds,
        n_repeats=args.repeats,
        random_state=args.seed,
        stratified=args.stratified,
        n_jobs=args.n_jobs,
    )

    report = run_classification(
        df,
        specs,
        plan,
        test_size=args.test_size,
        seed=args.seed,
        positive_label=args.positive_label,
    )
    print_report(report)
    for path in save_report(args.results_dir, report):
        logger.info("Saved %s", path)


if __name__ == "__main__":
    main()
