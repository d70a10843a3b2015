import numpy as np
import pandas as pd
import pytest

from common.errors import InvalidSpecification
from linear_regression.run import (
    build_penalized,
    cross_val_penalized,
    fit_ols,
    fit_penalized,
    make_design_matrix,
    run_regression,
    select_lambda,
)


def test_design_matrix_excludes_response_and_outcome(heart_df):
    X_df, y = make_design_matrix(heart_df, "MaxHR")
    assert "MaxHR" not in X_df.columns
    assert "HeartDisease" not in X_df.columns
    assert "ExerciseAngina_Y" in X_df.columns
    assert "ExerciseAngina_N" not in X_df.columns
    assert y.name == "MaxHR"
    assert all(dtype == float for dtype in X_df.dtypes)


def test_design_matrix_validates_columns(heart_df):
    with pytest.raises(InvalidSpecification):
        make_design_matrix(heart_df, "Weight")
    with pytest.raises(InvalidSpecification):
        make_design_matrix(heart_df, "Sex")
    with pytest.raises(InvalidSpecification):
        make_design_matrix(heart_df, "MaxHR", predictors=["Age", "Height"])
    with pytest.raises(InvalidSpecification):
        make_design_matrix(heart_df, "MaxHR", predictors=["Age", "MaxHR"])


def test_ols_recovers_linear_relationship():
    rng = np.random.default_rng(0)
    X_df = pd.DataFrame({"a": rng.normal(size=120), "b": rng.normal(size=120)})
    y = pd.Series(3.0 + 2.0 * X_df["a"] - 1.0 * X_df["b"], name="y")
    result = fit_ols(X_df.iloc[:100], y.iloc[:100], X_df.iloc[100:], y.iloc[100:])
    assert result.intercept == pytest.approx(3.0)
    assert result.coefficients["a"] == pytest.approx(2.0)
    assert result.coefficients["b"] == pytest.approx(-1.0)
    assert result.train_r2 == pytest.approx(1.0)
    assert result.test_mse == pytest.approx(0.0, abs=1e-12)
    assert result.feature_names == ["a", "b"]
    assert list(result.coefficients.index) == result.feature_names


def test_select_lambda_min_and_one_standard_error():
    lambdas = np.array([0.01, 0.1, 1.0, 10.0])
    fold_errors = np.array(
        [
            [1.2, 1.0, 1.1],
            [1.0, 0.9, 1.1],
            [1.05, 1.0, 1.1],
            [2.0, 2.1, 1.9],
        ]
    )
    mean_errors = fold_errors.mean(axis=1)
    lambda_min, lambda_1se = select_lambda(lambdas, mean_errors, fold_errors)
    assert lambda_min == 0.1
    assert lambda_1se == 1.0


def test_penalized_refit_returns_original_scale_coefficients():
    rng = np.random.default_rng(1)
    X = np.column_stack([rng.normal(50, 10, size=200), rng.normal(0, 0.1, size=200)])
    y = 4.0 + 0.5 * X[:, 0] + 20.0 * X[:, 1]
    coefs, intercept, model = fit_penalized(X, y, alpha=1e-6, l1_ratio=1.0, feature_names=["big", "small"])
    assert coefs["big"] == pytest.approx(0.5, rel=1e-3)
    assert coefs["small"] == pytest.approx(20.0, rel=1e-3)
    assert intercept == pytest.approx(4.0, abs=0.1)
    np.testing.assert_allclose(model.predict(X), y, rtol=1e-3)


def test_large_lasso_penalty_zeroes_every_coefficient():
    rng = np.random.default_rng(2)
    X = rng.normal(size=(80, 3))
    y = X @ np.array([1.0, 0.5, 0.0]) + rng.normal(size=80)
    coefs, _, _ = fit_penalized(X, y, alpha=100.0, l1_ratio=1.0, feature_names=["a", "b", "c"])
    assert (coefs == 0).all()


def test_build_penalized_rejects_bad_mix():
    with pytest.raises(ValueError):
        build_penalized(1.0, 1.5)
    assert type(build_penalized(1.0, 0.0).named_steps["reg"]).__name__ == "Ridge"


def test_cross_val_shapes():
    rng = np.random.default_rng(3)
    X = rng.normal(size=(60, 2))
    y = X[:, 0] + rng.normal(scale=0.1, size=60)
    lambdas = np.logspace(-3, 1, 5)
    mean_errors, fold_errors = cross_val_penalized(X, y, lambdas, n_splits=4, random_state=0)
    assert mean_errors.shape == (5,)
    assert fold_errors.shape == (5, 4)
    np.testing.assert_allclose(mean_errors, fold_errors.mean(axis=1))


def test_run_regression_end_to_end(heart_df):
    lambdas = np.logspace(-2, 2, 8)
    ols, penalized = run_regression(heart_df, "MaxHR", lambdas, n_splits=5, seed=1)
    assert ols.response == "MaxHR"
    assert ols.coefficients["Age"] < 0
    assert penalized.lambda_1se >= penalized.lambda_min
    assert list(penalized.coefficients.columns) == ["lambda_min", "lambda_1se"]
    assert set(penalized.test_mse) == {"lambda_min", "lambda_1se"}
    summary = penalized.to_dict()
    assert len(summary["mean_cv_errors"]) == 8
