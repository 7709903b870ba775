"""
Portfolio roll-ups over a scored application book: overall summary, a
breakdown by risk tier and a breakdown by loan purpose.
"""
from __future__ import annotations
import logging, pandas as pd
from dataclasses import dataclass

from errors import InvalidArgument, SchemaMismatch
from scorecard import HIGH_RISK_LABEL

log = logging.getLogger(__name__)

REPORT_COLUMNS = ("risk_score", "risk_tier", "recommendation",
                  "loan_amount", "expected_loss", "loan_purpose")


@dataclass(frozen=True)
class RiskReport:
    summary: dict
    by_tier: pd.DataFrame
    by_purpose: pd.DataFrame


def _check_scored(scored: pd.DataFrame, columns=REPORT_COLUMNS) -> None:
    missing = {c: "missing" for c in columns if c not in scored}
    if missing:
        raise SchemaMismatch(missing)
    if len(scored) == 0:
        raise InvalidArgument("cannot report on an empty scored collection")


def portfolio_summary(scored: pd.DataFrame) -> dict:
    total_amount = float(scored["loan_amount"].sum())
    total_el     = float(scored["expected_loss"].sum())
    return dict(
        total_applications=int(len(scored)),
        avg_risk_score=float(scored["risk_score"].mean()),
        median_risk_score=float(scored["risk_score"].median()),
        total_requested_amount=total_amount,
        total_expected_loss=total_el,
        loss_rate=total_el / total_amount if total_amount else float("nan"),
    )


def tier_breakdown(scored: pd.DataFrame) -> pd.DataFrame:
    return (scored.groupby(["risk_tier", "recommendation"])
                  .agg(count=("risk_score", "size"),
                       avg_score=("risk_score", "mean"),
                       total_amount=("loan_amount", "sum"),
                       expected_loss=("expected_loss", "sum"))
                  .reset_index()
                  .sort_values("count", ascending=False, kind="mergesort")
                  .reset_index(drop=True))


def purpose_breakdown(scored: pd.DataFrame) -> pd.DataFrame:
    return (scored.assign(high_risk=scored["risk_tier"].eq(HIGH_RISK_LABEL))
                  .groupby("loan_purpose")
                  .agg(count=("risk_score", "size"),
                       avg_risk_score=("risk_score", "mean"),
                       high_risk_pct=("high_risk", "mean"))
                  .reset_index()
                  .sort_values("avg_risk_score", ascending=False, kind="mergesort")
                  .reset_index(drop=True))


def generate_risk_report(scored: pd.DataFrame) -> RiskReport:
    _check_scored(scored)
    report = RiskReport(portfolio_summary(scored), tier_breakdown(scored), purpose_breakdown(scored))
    log.info("report over %d applications, loss rate %.4f",
             report.summary["total_applications"], report.summary["loss_rate"])
    return report


def format_summary(report: RiskReport) -> str:
    s = report.summary
    lines = [
        "=== Scoring Summary ===",
        f"Total Applications: {s['total_applications']:,}",
        f"Avg Risk Score: {s['avg_risk_score']:.0f}",
        f"Total Requested: ${s['total_requested_amount']:,.0f}",
        f"Expected Loss: ${s['total_expected_loss']:,.0f} ({s['loss_rate']:.2%})",
        "",
        "=== Distribution by Risk Tier ===",
        report.by_tier.to_string(index=False),
    ]
    return "\n".join(lines)
