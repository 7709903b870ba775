"""
Failure conditions shared by the generator, scorecard, report and simulator.
Nothing here is retried: every error ends the current batch run.
"""
from __future__ import annotations
import pathlib


class CreditRiskError(Exception):
    """Base class for every failure raised by this project."""


class InvalidArgument(CreditRiskError, ValueError):
    """Malformed or out-of-range input (N<=0, PD outside [0,1], T<1, empty book)."""


class MissingResource(CreditRiskError, FileNotFoundError):
    def __init__(self, path, what: str = "file"):
        self.path = pathlib.Path(path)
        self.what = what
        super().__init__(f"{what} not found: {self.path}")


class SchemaMismatch(CreditRiskError, ValueError):
    def __init__(self, problems: dict[str, str]):
        self.problems = dict(problems)
        detail = "; ".join(f"{col}: {msg}" for col, msg in self.problems.items())
        super().__init__(f"input schema mismatch ({len(self.problems)} column(s)) → {detail}")
