"""Regression tests derived from traces, and the aggregate deploy gate."""

from hippo.testing.regression.gate import RecordedJudge, RegressionGate, ResponseJudge
from hippo.testing.regression.schemas import (
    GateResult,
    GateVerdict,
    JudgedResponse,
    RegressionResult,
    RegressionRun,
    RegressionTest,
)
from hippo.testing.regression.storage import RegressionStorage

__all__ = [
    "RegressionGate",
    "ResponseJudge",
    "RecordedJudge",
    "RegressionStorage",
    "RegressionTest",
    "RegressionRun",
    "RegressionResult",
    "JudgedResponse",
    "GateResult",
    "GateVerdict",
]
