"""Domain models for the dashboard loader.

All records are frozen dataclasses produced fresh on every parse.
"""

from .config_models import DashboardConfig, EvaluationConfig, EvaluationSheets, GrantConfig, SalesConfig
from .evaluation import (
    AnswerRecord,
    ComparisonSummary,
    EmployeeEvaluation,
    QuestionComparison,
    RubricQuestion,
)
from .grant import Grant, Role
from .processing_result import DashboardLoad, EvaluationLoad, SalesLoad, SheetStat, SourceFailure
from .quality_record import QualityRecord
from .ranking import DepartmentRanking, RankingEntry, RegionView, SalesReport, TeamSummary

__all__ = [
    # Configuration models
    "DashboardConfig",
    "EvaluationConfig",
    "EvaluationSheets",
    "GrantConfig",
    "SalesConfig",
    # Sales
    "DepartmentRanking",
    "RankingEntry",
    "RegionView",
    "SalesReport",
    "TeamSummary",
    # Evaluation
    "AnswerRecord",
    "ComparisonSummary",
    "EmployeeEvaluation",
    "QuestionComparison",
    "RubricQuestion",
    # Access
    "Grant",
    "Role",
    # Results
    "DashboardLoad",
    "EvaluationLoad",
    "QualityRecord",
    "SalesLoad",
    "SheetStat",
    "SourceFailure",
]
