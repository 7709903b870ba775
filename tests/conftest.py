import numpy as np
import pandas as pd
import pytest

from applicant_generator import generate_credit_data
from scorecard import score_applications


@pytest.fixture(scope="session")
def credit_data():
    return generate_credit_data(2_000, seed=7, keep_prob=True)


@pytest.fixture(scope="session")
def scored_book(credit_data):
    return score_applications(credit_data, credit_data["default_prob"])


@pytest.fixture
def small_book():
    # one applicant per interesting band edge
    apps = pd.DataFrame({
        "customer_id": [1, 2, 3, 4],
        "loan_amount": [1_000.0, 2_000.0, 3_000.0, 4_000.0],
        "loan_purpose": ["business", "business", "other", "debt_consolidation"],
    })
    return score_applications(apps, np.array([0.05, 0.2, 0.85, 1.0]))


@pytest.fixture
def three_loan_book():
    return pd.DataFrame({
        "customer_id": [1, 2, 3],
        "prob_default": [0.1, 0.5, 0.9],
        "lgd": [0.5, 0.5, 0.5],
        "loan_amount": [1_000.0, 1_000.0, 1_000.0],
    })
