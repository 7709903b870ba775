import numpy as np
import pandas as pd
import pytest

from applicant_generator import (APPLICANT_COLUMNS, P_PURPOSE, P_HOUSING, RiskWeights,
                                 generate_applicants, generate_credit_data, generate_labels,
                                 latent_risk_score, read_table, split_dataset, write_table)
from errors import InvalidArgument, MissingResource

BOUNDS = {
    "age": (18, 80),
    "income": (15_000, 250_000),
    "employment_length": (0, 40),
    "interest_rate": (5, 25),
    "debt_to_income": (0, 0.8),
    "credit_utilization": (0, 1),
    "payment_to_income": (0.05, 0.4),
}


def test_columns_and_ids():
    df = generate_applicants(500, np.random.default_rng(1))
    assert list(df.columns) == APPLICANT_COLUMNS
    assert df["customer_id"].tolist() == list(range(1, 501))


@pytest.mark.parametrize("seed", [0, 1, 42])
def test_clipped_attributes_within_bounds(seed):
    df = generate_applicants(5_000, np.random.default_rng(seed))
    for col, (lo, hi) in BOUNDS.items():
        assert df[col].between(lo, hi).all(), col
    for col in ["credit_history_length", "num_credit_lines", "num_delinquencies"]:
        assert (df[col] >= 0).all(), col
    assert (df["loan_amount"] > 0).all()


def test_categorical_levels():
    df = generate_applicants(2_000, np.random.default_rng(3))
    assert set(df["loan_term"]) <= {36, 60}
    assert set(df["loan_purpose"]) <= set(P_PURPOSE)
    assert set(df["housing_status"]) <= set(P_HOUSING)
    assert df["loan_term"].eq(36).mean() == pytest.approx(0.7, abs=0.05)


def test_integer_attributes_are_integers():
    df = generate_applicants(100, np.random.default_rng(4))
    for col in ["age", "employment_length", "credit_history_length"]:
        assert pd.api.types.is_integer_dtype(df[col]), col


@pytest.mark.parametrize("n", [0, -5, 2.5, True])
def test_invalid_count(n):
    with pytest.raises(InvalidArgument):
        generate_applicants(n, np.random.default_rng(0))


def test_same_seed_same_dataset():
    pd.testing.assert_frame_equal(generate_credit_data(300, seed=9), generate_credit_data(300, seed=9))


def test_different_seed_differs():
    a, b = generate_credit_data(300, seed=1), generate_credit_data(300, seed=2)
    assert not a["age"].equals(b["age"])
    assert not a["loan_amount"].equals(b["loan_amount"])


@pytest.mark.parametrize("seed", [1, 2])
def test_income_pinned_at_upper_bound(seed):
    # exp(N(10.5, 0.8)) thousands sits far above the cap, so every draw is clipped
    income = generate_credit_data(300, seed=seed)["income"]
    assert (income == 250_000).all()


def test_label_stream_independent_of_features():
    applicants = generate_applicants(400, np.random.default_rng(5))
    before = applicants.copy()
    a = generate_labels(applicants, np.random.default_rng(10))
    b = generate_labels(applicants, np.random.default_rng(11))
    pd.testing.assert_frame_equal(applicants, before)
    pd.testing.assert_frame_equal(a[APPLICANT_COLUMNS], b[APPLICANT_COLUMNS])
    assert not np.array_equal(a["default_prob"], b["default_prob"])


def test_default_prob_strictly_inside_unit_interval(credit_data):
    p = credit_data["default_prob"]
    assert ((p > 0) & (p < 1)).all()
    assert set(credit_data["default"].unique()) <= {0, 1}


def test_zero_weights_give_coin_flip():
    flat = RiskWeights(dti=0, utilization=0, delinquency=0, log_income=0,
                       history=0, rate=0, payment_ratio=0, noise_sd=0)
    applicants = generate_applicants(4_000, np.random.default_rng(6))
    labelled = generate_labels(applicants, np.random.default_rng(7), flat)
    assert np.allclose(labelled["default_prob"], 0.5)
    assert labelled["default"].mean() == pytest.approx(0.5, abs=0.03)


def test_latent_score_follows_weights():
    row = pd.DataFrame({
        "debt_to_income": [0.45], "credit_utilization": [0.45], "num_delinquencies": [2],
        "income": [np.exp(10.5)], "credit_history_length": [12], "interest_rate": [12],
        "payment_to_income": [0.15],
    })
    assert latent_risk_score(row)[0] == pytest.approx(0.1 * 3 + 2 * 0.8)


def test_labels_reject_empty_and_negative_noise():
    empty = generate_applicants(1, np.random.default_rng(0)).iloc[0:0]
    with pytest.raises(InvalidArgument):
        generate_labels(empty, np.random.default_rng(0))
    with pytest.raises(InvalidArgument):
        generate_labels(generate_applicants(5, np.random.default_rng(0)),
                        np.random.default_rng(0), RiskWeights(noise_sd=-1))


@pytest.mark.parametrize("n,seed", [(1, 0), (2, 1), (10, 123), (333, 5), (5_000, 123)])
def test_split_is_partition(n, seed):
    data = generate_credit_data(n, seed=seed)
    train, test = split_dataset(data, seed=seed)
    train_ids, test_ids = set(train["customer_id"]), set(test["customer_id"])
    assert not train_ids & test_ids
    assert train_ids | test_ids == set(data["customer_id"])
    assert len(train) == round(0.7 * n)


def test_split_preserves_rows(credit_data):
    train, test = split_dataset(credit_data)
    pd.testing.assert_frame_equal(pd.concat([train, test]).sort_index(), credit_data)


def test_split_seed_is_independent_and_reproducible(credit_data):
    a, _ = split_dataset(credit_data, seed=1)
    b, _ = split_dataset(credit_data, seed=1)
    c, _ = split_dataset(credit_data, seed=2)
    assert a.index.equals(b.index)
    assert not a.index.equals(c.index)


def test_stratified_split_keeps_default_rate(credit_data):
    train, test = split_dataset(credit_data, stratify="default")
    assert train["default"].mean() == pytest.approx(test["default"].mean(), abs=0.01)


@pytest.mark.parametrize("frac", [0, 1, 1.5])
def test_split_rejects_bad_fraction(credit_data, frac):
    with pytest.raises(InvalidArgument):
        split_dataset(credit_data, train_frac=frac)


def test_table_io(tmp_path):
    data = generate_credit_data(50, seed=3)
    out = write_table(data, tmp_path / "nested" / "credit_data.csv")
    back = read_table(out)
    assert list(back.columns) == list(data.columns)
    assert back["customer_id"].tolist() == data["customer_id"].tolist()
    with pytest.raises(MissingResource) as exc:
        read_table(tmp_path / "nope.csv")
    assert exc.value.path.name == "nope.csv"
