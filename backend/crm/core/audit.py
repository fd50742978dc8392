"""
Audit logging for security-critical operations.

Logs logins, access denials and every mutation of business records
(orders, stock, customers, ...) as one JSON object per line on the
``audit`` logger, so the stream can be shipped to centralized logging.
Passwords and tokens are never logged.
"""
import logging
import json
from datetime import datetime, timezone
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for security-critical events."""

    @staticmethod
    def log_authentication(
        action: str,  # "login", "logout", "failed_login"
        username: str,
        ip_address: str,
        success: bool,
        reason: str = "",
    ):
        """
        Log authentication events.

        Usage:
            AuditLog.log_authentication("login", "admin", "127.0.0.1", True)
            AuditLog.log_authentication("failed_login", "admin", "127.0.0.1", False, reason="Invalid password")
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"auth.{action}",
            "username": username,
            "ip_address": ip_address,
            "success": success,
        }

        if reason and not success:
            log_entry["reason"] = reason

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_action(
        action: str,  # "create", "update", "delete", "convert", "place"
        resource_type: str,  # "order", "product", "customer", "repair", ...
        resource_id: str,
        username: Optional[str] = None,
        role: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log business-critical actions: who, what, when and what changed.

        Usage:
            AuditLog.log_action("place", "order", order.id, "salesman", "Sales", changes={"total": 6997})
            AuditLog.log_action("delete", "product", product_id, "admin", "Admin")
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"{resource_type}.{action}",
            "username": username,
            "role": role,
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(
        action: str,  # "read", "write", "delete"
        resource_type: str,  # "sales", "repairs", "inventory", ...
        username: Optional[str],
        role: Optional[str],
        reason: str,
        resource_id: Optional[str] = None,
    ):
        """
        Log denied access attempts.

        Usage:
            AuditLog.log_access_denied("delete", "sales", "manager", "Manager", "Financial records are Admin-only")
            AuditLog.log_access_denied("write", "repairs", "tech", "Technician", "Fields not allowed: amount", "3f2a...")
        """
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "username": username,
            "role": role,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry))
