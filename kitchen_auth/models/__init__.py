from kitchen_auth.models.identity import Identity
from kitchen_auth.models.join_request import JoinRequest
from kitchen_auth.models.restaurant import Restaurant
from kitchen_auth.models.login_attempt import LoginAttempt
from kitchen_auth.models.auth_audit_log import AuthAuditLog
