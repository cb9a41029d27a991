from georise.models.analysis_result import AnalysisResult
from georise.models.analysis_run import AnalysisRun
from georise.models.brand import Brand
from georise.models.coach import CoachMessage
from georise.models.credit import AllowancePeriod, CreditSetting, LlmUsageEvent
from georise.models.insight import Insight
from georise.models.user import User

__all__ = [
    "AllowancePeriod",
    "AnalysisResult",
    "AnalysisRun",
    "Brand",
    "CoachMessage",
    "CreditSetting",
    "Insight",
    "LlmUsageEvent",
    "User",
]
