# Models package: import all models here so Alembic can discover them.

from quickscope.models.user import User  # noqa: F401
from quickscope.models.prospect import Prospect  # noqa: F401
from quickscope.models.qbo_token import QboToken  # noqa: F401
from quickscope.models.financial_snapshot import FinancialSnapshot  # noqa: F401
from quickscope.models.call_transcript import CallTranscript  # noqa: F401
from quickscope.models.ai_analysis import AIAnalysis  # noqa: F401
from quickscope.models.generated_report import GeneratedReport  # noqa: F401
from quickscope.models.audit import AuditEvent  # noqa: F401
