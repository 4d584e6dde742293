# Models package
from toolroom.models.user import User, UserRole
from toolroom.models.tool_class import ToolClass
from toolroom.models.tool_model import ToolModel
from toolroom.models.tool import Tool, ToolStatus
from toolroom.models.loan import Loan, LoanStatus
from toolroom.models.audit_log import AuditLog, AuditAction, AuditTargetType
from toolroom.models.calibration_alert import CalibrationAlert, AlertStatus
