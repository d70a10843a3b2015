"""
Ordinary least squares and penalized regression for a numeric column of the heart dataset.

Run ``python -m linear_regression.run`` to fit OLS on the training split and to pick the
lasso/elastic-net penalty by 10-fold cross-validation (lambda.min and lambda.1se).
"""

from .run import main  # re-export the CLI entrypoint for convenience

__all__ = ["main"]
