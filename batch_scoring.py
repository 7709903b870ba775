"""
Batch scoring: load applications → check schema → predict PD → scorecard →
risk report → export scored CSV → print summary.

Run:
    python batch_scoring.py data/test_data.csv --model models/pd_logreg.pkl
    # surrogate PD needs data generated with `applicant_generator.py --keep-prob`
    python batch_scoring.py data/credit_data.csv --use-default-prob --trials 10000
"""
from __future__ import annotations
import argparse, logging, pathlib, pandas as pd
from pandas.api.types import is_numeric_dtype

from applicant_generator import P_HOUSING, P_PURPOSE, P_TERM, read_table, write_table
from errors import SchemaMismatch
from loss_simulation import DEFAULT_CONFIDENCE, DEFAULT_SEED, simulate_portfolio_loss
from pd_model import load_model, predict_pd
from risk_report import format_summary, generate_risk_report
from scorecard import score_applications

log = logging.getLogger(__name__)

DEFAULT_OUTPUT = pathlib.Path("outputs/scored_applications.csv")
DEFAULT_MODEL  = pathlib.Path("models/pd_logreg.pkl")
EXPORT_COLUMNS = ["customer_id", "loan_amount", "risk_score", "risk_tier",
                  "prob_default", "recommendation", "expected_loss"]

# column → "numeric" or the set of allowed values
APPLICATION_SCHEMA = {
    "customer_id": "numeric",
    "age": "numeric",
    "income": "numeric",
    "employment_length": "numeric",
    "credit_history_length": "numeric",
    "num_credit_lines": "numeric",
    "num_delinquencies": "numeric",
    "loan_amount": "numeric",
    "interest_rate": "numeric",
    "loan_term": set(P_TERM),
    "debt_to_income": "numeric",
    "credit_utilization": "numeric",
    "payment_to_income": "numeric",
    "loan_purpose": set(P_PURPOSE),
    "housing_status": set(P_HOUSING),
}

# ── load & validate ───────────────────────────────────────────────────────────

def validate_applications(df: pd.DataFrame, schema: dict = APPLICATION_SCHEMA) -> None:
    """Raise SchemaMismatch listing every offending column; nothing is scored on failure."""
    problems = {}
    for col, kind in schema.items():
        if col not in df:
            problems[col] = "missing"
            continue
        s = df[col]
        if s.isna().any():
            problems[col] = f"{int(s.isna().sum())} missing value(s)"
        elif kind == "numeric" and not is_numeric_dtype(s):
            problems[col] = f"expected numeric, got {s.dtype}"
        elif kind != "numeric" and not s.isin(kind).all():
            problems[col] = f"unexpected values {sorted(map(str, set(s) - kind))}"
    if "customer_id" in df and "customer_id" not in problems and df["customer_id"].duplicated().any():
        problems["customer_id"] = "duplicate ids"
    # both enter the model as logs
    for col in ("loan_amount", "income"):
        if col in df and col not in problems and (df[col] <= 0).any():
            ids = df.loc[df[col] <= 0, "customer_id"].head(5).tolist() if "customer_id" in df else []
            problems[col] = f"non-positive values (customer_id {ids})"
    if problems:
        raise SchemaMismatch(problems)


def load_applications(path) -> pd.DataFrame:
    applications = read_table(path)
    validate_applications(applications)
    log.info("loaded %d applications from %s", len(applications), path)
    return applications

# ── score / export ────────────────────────────────────────────────────────────

def score_with_model(applications: pd.DataFrame, model) -> pd.DataFrame:
    return score_applications(applications, predict_pd(model, applications))


def export_scores(scored: pd.DataFrame, output_path=DEFAULT_OUTPUT) -> pathlib.Path:
    out = write_table(scored[EXPORT_COLUMNS], output_path)
    print(f"Scores exported to: {out}")
    return out


def batch_score(input_path, output_path=DEFAULT_OUTPUT, model_file=DEFAULT_MODEL,
                n_trials: int = 0, confidence=DEFAULT_CONFIDENCE, seed: int = DEFAULT_SEED,
                use_default_prob: bool = False) -> pd.DataFrame:
    """Score a file of applications end to end and return the scored frame.

    With ``use_default_prob`` the surrogate ``default_prob`` column written by
    the synthetic generator stands in for a model, and *model_file* is ignored.
    """
    print("=== Batch Scoring System ===\n")
    print("Loading applications...")
    applications = load_applications(input_path)
    print(f"  Loaded {len(applications):,} applications")

    print("\nScoring applications...")
    if use_default_prob:
        if "default_prob" not in applications:
            raise SchemaMismatch({"default_prob": "missing"})
        scored = score_applications(applications, applications["default_prob"])
    else:
        scored = score_with_model(applications, load_model(model_file))

    print("\nGenerating risk report...")
    report = generate_risk_report(scored)
    print()
    print(format_summary(report))

    if n_trials:
        dist = simulate_portfolio_loss(scored, n_trials, confidence, seed)
        print(f"\n=== Monte Carlo ({dist.n_trials:,} trials) ===")
        print(f"Mean simulated loss: ${dist.mean_loss:,.0f}")
        for alpha in dist.var:
            print(f"VaR {alpha:.0%}: ${dist.var[alpha]:,.0f}   ES {alpha:.0%}: ${dist.es[alpha]:,.0f}")

    print("\nExporting results...")
    export_scores(scored, output_path)
    print("\n=== Batch Scoring Complete ===")
    return scored


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("input", type=pathlib.Path)
    ap.add_argument("--out",   type=pathlib.Path, default=DEFAULT_OUTPUT)
    ap.add_argument("--model", type=pathlib.Path, default=DEFAULT_MODEL)
    ap.add_argument("--use-default-prob", action="store_true",
                    help="score with the synthetic default_prob column instead of a model")
    ap.add_argument("--trials", type=int, default=0, help="Monte Carlo trials (0 = skip)")
    ap.add_argument("--seed", type=int, default=DEFAULT_SEED)
    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    batch_score(args.input, args.out, args.model, args.trials, seed=args.seed,
                use_default_prob=args.use_default_prob)
