"""
Repeated cross-validation comparison of logistic (GLM, logit link) specifications.

The workflow is Load -> Split -> ``compare`` -> ``select_best`` -> ``evaluate_holdout``.
Only the orchestration lives here; fitting is delegated to scikit-learn.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import accuracy_score, confusion_matrix
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from common.config import POSITIVE_LABEL
from common.dataset import OUTCOME_LABELS
from common.errors import InsufficientData, InvalidSpecification, NoCandidates

from .specs import ComparisonResult, ConfusionOutcome, FoldResult, ModelSpecification, ResamplingPlan

logger = logging.getLogger(__name__)


def build_estimator() -> Pipeline:
    # C=inf turns the L2 penalty off, i.e. a plain maximum-likelihood logistic GLM
    return Pipeline(
        steps=[
            ("scaler", StandardScaler(with_mean=True, with_std=True)),
            ("clf", LogisticRegression(C=np.inf, solver="lbfgs", max_iter=1000)),
        ]
    )


def validate_specification(df: pd.DataFrame, spec: ModelSpecification) -> None:
    """Raise ``InvalidSpecification`` unless ``df`` can support ``spec``."""
    missing = [col for col in (spec.outcome, *spec.explanatory_columns) if col not in df.columns]
    if missing:
        raise InvalidSpecification(
            f"Specification '{spec.name}' references unknown columns: {', '.join(missing)}"
        )

    n_classes = df[spec.outcome].dropna().nunique()
    if n_classes != 2:
        raise InvalidSpecification(
            f"Outcome '{spec.outcome}' must have exactly two categories, found {n_classes}."
        )

    with_na = [col for col in (spec.outcome, *spec.explanatory_columns) if df[col].isna().any()]
    if with_na:
        raise InvalidSpecification(
            f"Columns used by '{spec.name}' contain missing values: {', '.join(with_na)}"
        )


def _column_block(df: pd.DataFrame, column: str) -> pd.DataFrame:
    series = df[column]
    if isinstance(series.dtype, pd.CategoricalDtype) or not pd.api.types.is_numeric_dtype(series):
        return pd.get_dummies(series, prefix=column, drop_first=True, dtype=float)
    return series.astype(float).to_frame(column)


def build_design_matrix(df: pd.DataFrame, spec: ModelSpecification) -> pd.DataFrame:
    """
    Expand the terms of ``spec`` into numeric design columns.

    Categorical columns are dummy-coded against their first level, and an
    interaction ``a:b`` holds the product of every pair of ``a`` and ``b`` columns.
    """
    blocks: List[pd.DataFrame] = []
    for term in spec.terms:
        parts = [p.strip() for p in term.split(":")]
        block = _column_block(df, parts[0])
        for part in parts[1:]:
            other = _column_block(df, part)
            block = pd.DataFrame(
                {f"{a}:{b}": block[a] * other[b] for a in block.columns for b in other.columns},
                index=df.index,
            )
        if block.shape[1] == 0:
            raise InsufficientData(
                f"Term '{term}' of '{spec.name}' yields no design columns; a categorical column has a single level."
            )
        blocks.append(block)

    X_df = pd.concat(blocks, axis=1)
    return X_df.loc[:, ~X_df.columns.duplicated()]


def share_categories(
    train_data: pd.DataFrame, test_data: pd.DataFrame, columns: Sequence[str]
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Give text and categorical ``columns`` of both frames the training categories."""
    train_out, test_out = train_data.copy(), test_data.copy()
    for col in columns:
        series = train_out[col]
        if isinstance(series.dtype, pd.CategoricalDtype):
            categories = list(series.cat.categories)
        elif not pd.api.types.is_numeric_dtype(series):
            categories = sorted(series.dropna().unique())
        else:
            continue
        unseen = sorted({str(v) for v in test_out[col].unique() if v not in categories})
        if unseen:
            raise InvalidSpecification(f"Column '{col}' holds levels unseen in training: {unseen}")
        train_out[col] = pd.Categorical(train_out[col], categories=categories)
        test_out[col] = pd.Categorical(test_out[col], categories=categories)
    return train_out, test_out


def align_design(X_df: pd.DataFrame, feature_names: Sequence[str]) -> pd.DataFrame:
    """Reorder ``X_df`` to ``feature_names``; columns it lacks are filled with zero."""
    aligned = X_df.copy()
    for col in feature_names:
        if col not in aligned.columns:
            aligned[col] = 0.0
    return aligned.loc[:, list(feature_names)]


def check_fit_support(
    X: np.ndarray,
    y: np.ndarray,
    feature_names: Sequence[str],
    context: str,
    explanatory: Optional[pd.DataFrame] = None,
) -> None:
    """
    Raise ``InsufficientData`` when a logistic fit on (X, y) would be undefined.

    ``explanatory`` holds the raw explanatory columns of the same training rows;
    a column with a single value there is degenerate even if it produced no
    design column at all.
    """
    if np.unique(y).size < 2:
        raise InsufficientData(f"{context}: training outcome has a single class.")
    if X.shape[0] == 0:
        raise InsufficientData(f"{context}: no training rows.")
    if X.shape[1] == 0:
        raise InsufficientData(f"{context}: no design columns to fit.")
    constant = [name for name, col in zip(feature_names, X.T) if np.all(col == col[0])]
    if constant:
        raise InsufficientData(f"{context}: design columns constant within the training subset: {', '.join(constant)}")
    if explanatory is not None:
        single = [col for col in explanatory.columns if explanatory[col].nunique(dropna=False) < 2]
        if single:
            raise InsufficientData(f"{context}: explanatory columns constant within the training subset: {', '.join(single)}")


def _score_fold(
    spec_name: str,
    X: np.ndarray,
    y: np.ndarray,
    feature_names: Sequence[str],
    repeat: int,
    fold: int,
    train_idx: np.ndarray,
    test_idx: np.ndarray,
    explanatory: Optional[pd.DataFrame] = None,
) -> FoldResult:
    X_train, y_train = X[train_idx], y[train_idx]
    check_fit_support(
        X_train,
        y_train,
        feature_names,
        context=f"'{spec_name}' repeat {repeat} fold {fold}",
        explanatory=None if explanatory is None else explanatory.iloc[train_idx],
    )

    model = build_estimator()
    model.fit(X_train, y_train)
    preds = model.predict(X[test_idx])
    return FoldResult(
        spec_name=spec_name,
        repeat=repeat,
        fold=fold,
        accuracy=float(accuracy_score(y[test_idx], preds)),
        n_train=int(len(train_idx)),
        n_test=int(len(test_idx)),
    )


def compare(
    train_data: pd.DataFrame,
    specs: Sequence[ModelSpecification],
    plan: Optional[ResamplingPlan] = None,
) -> ComparisonResult:
    """
    Score every specification on the same repeated v-fold resamples of ``train_data``.

    Returns ``plan.n_folds * plan.n_repeats`` fold results per specification,
    ordered by specification, then repeat, then fold. Any degenerate fold fit
    aborts the whole comparison with ``InsufficientData``.
    """
    plan = plan or ResamplingPlan()
    specs = list(specs)
    if not specs:
        logger.warning("No candidate specifications supplied; nothing to compare.")
        return ComparisonResult(specs=[], fold_results=[], plan=plan)

    names = [spec.name for spec in specs]
    duplicated = sorted({n for n in names if names.count(n) > 1})
    if duplicated:
        raise InvalidSpecification(f"Specification names must be unique: {', '.join(duplicated)}")
    outcomes = {spec.outcome for spec in specs}
    if len(outcomes) != 1:
        raise InvalidSpecification(f"All specifications must share one outcome, got {sorted(outcomes)}")
    for spec in specs:
        validate_specification(train_data, spec)

    outcome = specs[0].outcome
    y = train_data[outcome].to_numpy()
    if len(y) < plan.n_folds:
        raise InsufficientData(f"{len(y)} training rows cannot be split into {plan.n_folds} folds.")

    designs: Dict[str, pd.DataFrame] = {spec.name: build_design_matrix(train_data, spec) for spec in specs}
    arrays = {name: X_df.to_numpy(dtype=float) for name, X_df in designs.items()}
    splits = list(plan.splits(np.zeros((len(y), 1)), y))
    logger.info(
        "Comparing %d specifications over %d repeats x %d folds (%d rows).",
        len(specs),
        plan.n_repeats,
        plan.n_folds,
        len(y),
    )

    fold_results = Parallel(n_jobs=plan.n_jobs)(
        delayed(_score_fold)(
            spec.name,
            arrays[spec.name],
            y,
            designs[spec.name].columns.tolist(),
            repeat,
            fold,
            train_idx,
            test_idx,
            train_data[list(spec.explanatory_columns)],
        )
        for spec in specs
        for repeat, fold, train_idx, test_idx in splits
    )

    result = ComparisonResult(specs=specs, fold_results=list(fold_results), plan=plan)
    for spec in specs:
        logger.info("%s: mean CV accuracy %.4f", spec.name, result.mean_metric(spec.name))
    return result


def select_best(comparison: ComparisonResult) -> ModelSpecification:
    """
    Specification with the highest mean accuracy.

    Ties go to the specification with fewer terms, then to the one listed first.
    """
    if not comparison.specs:
        raise NoCandidates("No candidate specifications to select from.")
    means = comparison.means
    ranked = sorted(
        enumerate(comparison.specs),
        key=lambda item: (-means[item[1].name], item[1].n_terms, item[0]),
    )
    return ranked[0][1]


def evaluate_holdout(
    spec: ModelSpecification,
    train_data: pd.DataFrame,
    test_data: pd.DataFrame,
    positive_label: int = POSITIVE_LABEL,
    labels: Optional[Mapping[int, str]] = None,
) -> ConfusionOutcome:
    """Refit ``spec`` on all of ``train_data`` and tabulate its predictions on ``test_data``."""
    validate_specification(train_data, spec)
    missing = [col for col in (spec.outcome, *spec.explanatory_columns) if col not in test_data.columns]
    if missing:
        raise InvalidSpecification(f"Test data lacks columns required by '{spec.name}': {', '.join(missing)}")
    with_na = [col for col in (spec.outcome, *spec.explanatory_columns) if test_data[col].isna().any()]
    if with_na:
        raise InvalidSpecification(f"Test data columns used by '{spec.name}' contain missing values: {', '.join(with_na)}")

    classes = [c.item() if isinstance(c, np.generic) else c for c in sorted(train_data[spec.outcome].unique())]
    if positive_label not in classes:
        raise InvalidSpecification(f"Positive label {positive_label!r} is not an outcome class {classes}.")
    negative_label = next(c for c in classes if c != positive_label)
    unexpected = sorted(set(test_data[spec.outcome].unique()) - set(classes))
    if unexpected:
        raise InvalidSpecification(f"Test outcome holds labels unseen in training: {unexpected}")

    train_df, test_df = share_categories(train_data, test_data, spec.explanatory_columns)
    X_train_df = build_design_matrix(train_df, spec)
    feature_names = X_train_df.columns.tolist()
    X_test_df = align_design(build_design_matrix(test_df, spec), feature_names)
    X_train = X_train_df.to_numpy(dtype=float)
    y_train = train_data[spec.outcome].to_numpy()
    check_fit_support(
        X_train,
        y_train,
        feature_names,
        context=f"'{spec.name}' holdout refit",
        explanatory=train_data[list(spec.explanatory_columns)],
    )

    model = build_estimator()
    model.fit(X_train, y_train)
    preds = model.predict(X_test_df.to_numpy(dtype=float))

    cm = confusion_matrix(test_data[spec.outcome].to_numpy(), preds, labels=[positive_label, negative_label])
    outcome = ConfusionOutcome(
        positive_label=positive_label,
        negative_label=negative_label,
        tp=int(cm[0, 0]),
        fn=int(cm[0, 1]),
        fp=int(cm[1, 0]),
        tn=int(cm[1, 1]),
        labels=dict(OUTCOME_LABELS if labels is None else labels),
    )
    logger.info(
        "Holdout for %s: accuracy %.4f, sensitivity %.4f, specificity %.4f",
        spec.name,
        outcome.accuracy,
        outcome.sensitivity,
        outcome.specificity,
    )
    return outcome
