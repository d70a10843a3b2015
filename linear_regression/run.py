import argparse
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import ElasticNet, LinearRegression, Ridge
from sklearn.metrics import mean_squared_error, r2_score
from sklearn.model_selection import KFold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from common.config import DATA_PATH, N_FOLDS, OUTCOME, RESULTS_DIR, SEED, TEST_SIZE
from common.dataset import load_dataset, split_train_test
from common.errors import InvalidSpecification
from common.logging_utils import setup_logger
from visualize import plot_lambda_curve

TASK_DIR = RESULTS_DIR / "linear_regression"
DEFAULT_RESPONSE = "MaxHR"


@dataclass
class OLSResult:
    """Ordinary least squares fit on the training split, scored on both splits."""

    response: str
    coefficients: pd.Series
    intercept: float
    train_r2: float
    train_mse: float
    test_mse: float
    feature_names: List[str]

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "intercept": self.intercept,
            "coefficients": {k: float(v) for k, v in self.coefficients.items()},
            "train_r2": self.train_r2,
            "train_mse": self.train_mse,
            "test_mse": self.test_mse,
            "feature_names": self.feature_names,
        }


@dataclass
class PenalizedResult:
    """Cross-validated penalty path plus refits at lambda.min and lambda.1se."""

    response: str
    l1_ratio: float
    lambdas: np.ndarray
    cv_errors: np.ndarray
    fold_errors: np.ndarray
    lambda_min: float
    lambda_1se: float
    coefficients: pd.DataFrame
    intercepts: Dict[str, float]
    test_mse: Dict[str, float]
    feature_names: List[str]
    models: Dict[str, Pipeline] = field(repr=False, default_factory=dict)

    def n_nonzero(self, which: str) -> int:
        return int((self.coefficients[which].abs() > 0).sum())

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "l1_ratio": self.l1_ratio,
            "lambda_grid": self.lambdas.tolist(),
            "mean_cv_errors": self.cv_errors.tolist(),
            "fold_errors": self.fold_errors.tolist(),
            "lambda_min": self.lambda_min,
            "lambda_1se": self.lambda_1se,
            "coefficients": self.coefficients.to_dict(orient="index"),
            "intercepts": self.intercepts,
            "test_mse": self.test_mse,
            "n_nonzero": {which: self.n_nonzero(which) for which in self.coefficients.columns},
            "feature_names": self.feature_names,
        }


def make_design_matrix(
    df: pd.DataFrame,
    response: str,
    predictors: Optional[Sequence[str]] = None,
    outcome: str = OUTCOME,
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Build the feature matrix for predicting a numeric response.

    Parameters
    ----------
    df:
        Dataset with categorical columns already encoded.
    response:
        Numeric column to predict (removed from the feature matrix).
    predictors:
        Explanatory columns. Defaults to every column except the response and
        the classification outcome.
    """
    if response not in df.columns:
        raise InvalidSpecification(f"Unknown response column '{response}'.")
    if not pd.api.types.is_numeric_dtype(df[response]):
        raise InvalidSpecification(f"Response '{response}' must be numeric.")
    if predictors is None:
        predictors = [c for c in df.columns if c not in (response, outcome)]
    missing = [c for c in predictors if c not in df.columns]
    if missing:
        raise InvalidSpecification(f"Unknown predictor columns: {', '.join(missing)}")
    if response in predictors:
        raise InvalidSpecification(f"Response '{response}' cannot also be a predictor.")
    if not predictors:
        raise InvalidSpecification("At least one predictor is required.")

    X_df = pd.get_dummies(df[list(predictors)], drop_first=True, dtype=float).astype(float)
    y = df[response].astype(float)
    return X_df, y


def fit_ols(
    X_train_df: pd.DataFrame,
    y_train: pd.Series,
    X_test_df: pd.DataFrame,
    y_test: pd.Series,
) -> OLSResult:
    model = LinearRegression(fit_intercept=True)
    model.fit(X_train_df.to_numpy(), y_train.to_numpy())

    train_preds = model.predict(X_train_df.to_numpy())
    test_preds = model.predict(X_test_df.to_numpy())
    return OLSResult(
        response=str(y_train.name),
        coefficients=pd.Series(model.coef_, index=X_train_df.columns),
        intercept=float(model.intercept_),
        train_r2=float(r2_score(y_train, train_preds)),
        train_mse=float(mean_squared_error(y_train, train_preds)),
        test_mse=float(mean_squared_error(y_test, test_preds)),
        feature_names=X_train_df.columns.tolist(),
    )


def build_penalized(alpha: float, l1_ratio: float) -> Pipeline:
    """Standardized penalized regression; ``l1_ratio=1`` is the lasso, ``0`` ridge."""
    if not 0.0 <= l1_ratio <= 1.0:
        raise ValueError(f"l1_ratio must lie in [0, 1], got {l1_ratio}")
    if l1_ratio == 0.0:
        reg = Ridge(alpha=alpha, fit_intercept=True)
    else:
        reg = ElasticNet(alpha=alpha, l1_ratio=l1_ratio, fit_intercept=True, max_iter=10000)
    return Pipeline(
        steps=[
            ("scaler", StandardScaler(with_mean=True, with_std=True)),
            ("reg", reg),
        ]
    )


def cross_val_penalized(
    X: np.ndarray,
    y: np.ndarray,
    lambdas: np.ndarray,
    l1_ratio: float = 1.0,
    n_splits: int = N_FOLDS,
    random_state: int = SEED,
) -> Tuple[np.ndarray, np.ndarray]:
    """Estimate generalization error for each lambda using K-fold CV."""
    kf = KFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    fold_errors = np.zeros((len(lambdas), n_splits))

    for lambda_idx, alpha in enumerate(lambdas):
        for fold_idx, (train_idx, test_idx) in enumerate(kf.split(X)):
            model = build_penalized(alpha, l1_ratio)
            model.fit(X[train_idx], y[train_idx])
            preds = model.predict(X[test_idx])
            fold_errors[lambda_idx, fold_idx] = mean_squared_error(y[test_idx], preds)

    mean_errors = fold_errors.mean(axis=1)
    return mean_errors, fold_errors


def select_lambda(lambdas: np.ndarray, mean_errors: np.ndarray, fold_errors: np.ndarray) -> Tuple[float, float]:
    """
    Return ``(lambda_min, lambda_1se)``.

    ``lambda_1se`` is the largest lambda whose mean CV error is within one
    standard error of the minimum.
    """
    lambdas = np.asarray(lambdas, dtype=float)
    best_idx = int(np.argmin(mean_errors))
    n_splits = fold_errors.shape[1]
    se = float(fold_errors[best_idx].std(ddof=1) / np.sqrt(n_splits)) if n_splits > 1 else 0.0
    within = mean_errors <= mean_errors[best_idx] + se
    return float(lambdas[best_idx]), float(lambdas[within].max())


def fit_penalized(
    X: np.ndarray,
    y: np.ndarray,
    alpha: float,
    l1_ratio: float,
    feature_names: Sequence[str],
) -> Tuple[pd.Series, float, Pipeline]:
    """
    Fit on the full training data and recover coefficients in the original feature scale.

    Returns
    -------
    coefs:
        Series indexed by feature name.
    intercept:
        Intercept in the original (unstandardized) feature space.
    model:
        Trained StandardScaler + regressor pipeline ready for prediction.
    """
    model = build_penalized(alpha, l1_ratio)
    model.fit(X, y)

    scaler: StandardScaler = model.named_steps["scaler"]
    reg = model.named_steps["reg"]

    scale = scaler.scale_.copy()
    scale_safe = np.where(scale == 0, 1.0, scale)
    coef_original = np.ravel(reg.coef_) / scale_safe
    intercept_original = float(np.ravel(reg.intercept_)[0] - coef_original @ scaler.mean_)

    return pd.Series(coef_original, index=list(feature_names)), intercept_original, model


def run_penalized(
    X_train_df: pd.DataFrame,
    y_train: pd.Series,
    X_test_df: pd.DataFrame,
    y_test: pd.Series,
    lambdas: np.ndarray,
    l1_ratio: float = 1.0,
    n_splits: int = N_FOLDS,
    random_state: int = SEED,
) -> PenalizedResult:
    """Cross-validate the penalty on the training split, refit, and score on the test split."""
    X_train = X_train_df.to_numpy(dtype=float)
    X_test = X_test_df.to_numpy(dtype=float)
    y_tr = y_train.to_numpy(dtype=float)
    feature_names = X_train_df.columns.tolist()

    mean_errors, fold_errors = cross_val_penalized(
        X_train, y_tr, lambdas, l1_ratio=l1_ratio, n_splits=n_splits, random_state=random_state
    )
    lambda_min, lambda_1se = select_lambda(lambdas, mean_errors, fold_errors)

    coefs: Dict[str, pd.Series] = {}
    intercepts: Dict[str, float] = {}
    test_mse: Dict[str, float] = {}
    models: Dict[str, Pipeline] = {}
    for which, alpha in (("lambda_min", lambda_min), ("lambda_1se", lambda_1se)):
        coef, intercept, model = fit_penalized(X_train, y_tr, alpha, l1_ratio, feature_names)
        coefs[which] = coef
        intercepts[which] = intercept
        test_mse[which] = float(mean_squared_error(y_test.to_numpy(dtype=float), model.predict(X_test)))
        models[which] = model

    return PenalizedResult(
        response=str(y_train.name),
        l1_ratio=l1_ratio,
        lambdas=np.asarray(lambdas, dtype=float),
        cv_errors=mean_errors,
        fold_errors=fold_errors,
        lambda_min=lambda_min,
        lambda_1se=lambda_1se,
        coefficients=pd.DataFrame(coefs),
        intercepts=intercepts,
        test_mse=test_mse,
        feature_names=feature_names,
        models=models,
    )


def save_fold_errors(result_dir: Path, lambdas: np.ndarray, fold_errors: np.ndarray) -> Path:
    """Persist per-fold cross-validation errors for each lambda to CSV."""
    records = []
    for lambda_idx, alpha in enumerate(lambdas):
        for fold_idx, err in enumerate(fold_errors[lambda_idx]):
            records.append(
                {
                    "lambda": alpha,
                    "fold": fold_idx + 1,
                    "mse": err,
                }
            )
    df = pd.DataFrame(records)
    path = result_dir / "cv_errors.csv"
    df.to_csv(path, index=False)
    return path


def run_regression(
    df: pd.DataFrame,
    response: str,
    lambdas: np.ndarray,
    predictors: Optional[Sequence[str]] = None,
    l1_ratio: float = 1.0,
    n_splits: int = N_FOLDS,
    test_size: float = TEST_SIZE,
    seed: int = SEED,
) -> Tuple[OLSResult, PenalizedResult]:
    partition = split_train_test(df, test_size=test_size, random_state=seed)
    X_train_df, y_train = make_design_matrix(partition.train, response, predictors)
    X_test_df, y_test = make_design_matrix(partition.test, response, predictors)
    X_test_df = X_test_df.reindex(columns=X_train_df.columns, fill_value=0.0)

    ols = fit_ols(X_train_df, y_train, X_test_df, y_test)
    penalized = run_penalized(
        X_train_df,
        y_train,
        X_test_df,
        y_test,
        lambdas,
        l1_ratio=l1_ratio,
        n_splits=n_splits,
        random_state=seed,
    )
    return ols, penalized


def print_results(ols: OLSResult, penalized: PenalizedResult) -> None:
    print(f"\n=== OLS: {ols.response} ===")
    print(f"Intercept: {ols.intercept:.4f}")
    print(ols.coefficients.round(4).to_string())
    print(f"Train R^2: {ols.train_r2:.4f} | Train MSE: {ols.train_mse:.4f} | Test MSE: {ols.test_mse:.4f}")

    kind = "Lasso" if penalized.l1_ratio == 1.0 else ("Ridge" if penalized.l1_ratio == 0.0 else "Elastic net")
    print(f"\n=== {kind} (l1_ratio={penalized.l1_ratio}): {penalized.response} ===")
    print(f"lambda.min = {penalized.lambda_min:.4g} | lambda.1se = {penalized.lambda_1se:.4g}")
    print(penalized.coefficients.round(4).to_string())
    for which in penalized.coefficients.columns:
        print(
            f"{which}: test MSE {penalized.test_mse[which]:.4f}, "
            f"{penalized.n_nonzero(which)} non-zero coefficients"
        )


def save_results(result_dir: Path, ols: OLSResult, penalized: PenalizedResult) -> List[Path]:
    result_dir.mkdir(parents=True, exist_ok=True)
    ols_path = result_dir / "ols_summary.json"
    with ols_path.open("w", encoding="utf-8") as handle:
        json.dump(ols.to_dict(), handle, indent=2)

    penalized_path = result_dir / "penalized_summary.json"
    with penalized_path.open("w", encoding="utf-8") as handle:
        json.dump(penalized.to_dict(), handle, indent=2)

    errors_path = save_fold_errors(result_dir, penalized.lambdas, penalized.fold_errors)
    curve_path = plot_lambda_curve(
        penalized.lambdas,
        penalized.cv_errors,
        penalized.lambda_min,
        penalized.lambda_1se,
        penalized.response,
        output_path=result_dir / "lambda_curve.png",
    )
    return [ols_path, penalized_path, errors_path, curve_path]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="OLS and penalized regression of a numeric heart-data column.")
    parser.add_argument("--data", type=Path, default=DATA_PATH, help=f"CSV dataset (default: {DATA_PATH}).")
    parser.add_argument(
        "--response",
        default=DEFAULT_RESPONSE,
        help=f"Numeric column to predict (default: {DEFAULT_RESPONSE}).",
    )
    parser.add_argument(
        "--predictors",
        nargs="+",
        default=None,
        help="Explanatory columns (default: all except the response and the outcome).",
    )
    parser.add_argument(
        "--l1-ratio",
        type=float,
        default=1.0,
        dest="l1_ratio",
        help="Mix between ridge (0) and lasso (1) penalties (default: 1.0).",
    )
    parser.add_argument("--folds", type=int, default=N_FOLDS, help=f"Number of CV folds (default: {N_FOLDS}).")
    parser.add_argument(
        "--lambda-min",
        type=float,
        default=1e-3,
        dest="lambda_min",
        help="Lower bound of the logarithmic lambda grid (default: 1e-3).",
    )
    parser.add_argument(
        "--lambda-max",
        type=float,
        default=1e2,
        dest="lambda_max",
        help="Upper bound of the logarithmic lambda grid (default: 1e2).",
    )
    parser.add_argument(
        "--lambda-count",
        type=int,
        default=40,
        dest="lambda_count",
        help="Number of lambda values sampled between the bounds (default: 40).",
    )
    parser.add_argument("--seed", type=int, default=SEED, help=f"Seed for the split and the folds (default: {SEED}).")
    parser.add_argument("--test-size", type=float, default=TEST_SIZE, dest="test_size")
    parser.add_argument("--results-dir", type=Path, default=TASK_DIR, dest="results_dir")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logger = setup_logger("linear_regression")
    lambdas = np.logspace(np.log10(args.lambda_min), np.log10(args.lambda_max), num=args.lambda_count)

    df = load_dataset(args.data)
    logger.info("Loaded %d records from %s", len(df), args.data)
    ols, penalized = run_regression(
        df,
        args.response,
        lambdas,
        predictors=args.predictors,
        l1_ratio=args.l1_ratio,
        n_splits=args.folds,
        test_size=args.test_size,
        seed=args.seed,
    )
    print_results(ols, penalized)
    for path in save_results(args.results_dir, ols, penalized):
        logger.info("Saved %s", path)


if __name__ == "__main__":
    main()
