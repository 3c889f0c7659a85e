"""
Audit Models for MyMoney

Every ledger mutation is logged for audit purposes. Multi-step
operations are not transactional, so the audit trail is what lets a
user reconstruct what was committed when a sequence stopped halfway.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Credit lent
    CREDIT_CREATED = "credit_created"
    CREDIT_RETURN_RECORDED = "credit_return_recorded"
    CREDIT_DELETED = "credit_deleted"
    
    # Credit received
    CREDIT_RECEIVED_CREATED = "credit_received_created"
    CREDIT_RECEIVED_RETURN_RECORDED = "credit_received_return_recorded"
    CREDIT_RECEIVED_DELETED = "credit_received_deleted"
    
    HISTORY_ITEM_DELETED = "history_item_deleted"
    
    # Cascades and guards
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_RENAMED = "category_renamed"
    CARD_DELETED = "card_deleted"
    GUARD_REJECTED = "guard_rejected"
    ACCOUNT_RESET = "account_reset"
    
    # Saga outcomes
    SAGA_COMPENSATED = "saga_compensated"
    PARTIAL_WRITE = "partial_write"
    
    # Session
    USER_SIGNED_IN = "user_signed_in"
    USER_SIGNED_OUT = "user_signed_out"
    CACHE_REFRESHED = "cache_refreshed"
    CACHE_REFRESH_FAILED = "cache_refresh_failed"
    
    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    Every ledger mutation creates one of these.
    """
    
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )
    
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO
    
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the rows this event touched"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'credit_entry', 'card')"
    )
    entity_id: Optional[str] = None
    
    # Groups the events of one user action
    correlation_id: Optional[UUID] = None
    
    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    
    error_message: Optional[str] = None
    
    is_user_action: bool = False
    
    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }
    
    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit worksheet.
        
        Columns: [event_id, timestamp, event_type, severity, user_id,
        entity_type, entity_id, correlation_id, description, details_json,
        error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.credit_created(user_id, entry_id, "Alice", "100.00")
    """
    
    @staticmethod
    def credit_created(
        user_id: str,
        entry_id: str,
        person_name: str,
        amount: str,
        received: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if received:
            event_type = AuditEventType.CREDIT_RECEIVED_CREATED
            description = f"Credit received from {person_name}: {amount}"
        else:
            event_type = AuditEventType.CREDIT_CREATED
            description = f"Credit given to {person_name}: {amount}"
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="credit_received" if received else "credit_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=description,
            details={"person_name": person_name, "amount": amount},
            is_user_action=True,
        )
    
    @staticmethod
    def credit_return_recorded(
        user_id: str,
        entry_id: str,
        history_id: str,
        amount: str,
        status: str,
        received: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.CREDIT_RECEIVED_RETURN_RECORDED
            if received
            else AuditEventType.CREDIT_RETURN_RECORDED
        )
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="credit_received" if received else "credit_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Repayment of {amount} recorded, status now {status}",
            details={"history_id": history_id, "amount": amount, "status": status},
            is_user_action=True,
        )
    
    @staticmethod
    def credit_deleted(
        user_id: str,
        entry_id: str,
        transactions_removed: int,
        history_removed: int,
        received: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.CREDIT_RECEIVED_DELETED
            if received
            else AuditEventType.CREDIT_DELETED
        )
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="credit_received" if received else "credit_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=(
                f"Credit deleted with {transactions_removed} transactions "
                f"and {history_removed} history items"
            ),
            details={
                "transactions_removed": transactions_removed,
                "history_removed": history_removed,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def history_item_deleted(
        user_id: str,
        entry_id: str,
        history_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HISTORY_ITEM_DELETED,
            user_id=user_id,
            entity_type="credit_history",
            entity_id=history_id,
            correlation_id=correlation_id,
            description="Repayment removed from history",
            details={"entry_id": entry_id},
            is_user_action=True,
        )
    
    @staticmethod
    def category_deleted(
        user_id: str,
        category_id: str,
        name: str,
        transactions_removed: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category '{name}' deleted with {transactions_removed} transactions",
            details={"name": name, "transactions_removed": transactions_removed},
            is_user_action=True,
        )
    
    @staticmethod
    def category_renamed(
        user_id: str,
        category_id: str,
        old_name: str,
        new_name: str,
        transactions_rewritten: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RENAMED,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category '{old_name}' renamed to '{new_name}'",
            details={
                "old_name": old_name,
                "new_name": new_name,
                "transactions_rewritten": transactions_rewritten,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def card_deleted(
        user_id: str,
        card_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CARD_DELETED,
            user_id=user_id,
            entity_type="card",
            entity_id=card_id,
            correlation_id=correlation_id,
            description="Card deleted",
            is_user_action=True,
        )
    
    @staticmethod
    def guard_rejected(
        user_id: str,
        entity_type: str,
        entity_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GUARD_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Delete refused: {reason}",
            details={"reason": reason},
            is_user_action=True,
        )
    
    @staticmethod
    def account_reset(
        user_id: str,
        rows_removed: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_RESET,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="profile",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="All account data reset to defaults",
            details={"rows_removed": rows_removed},
            is_user_action=True,
        )
    
    @staticmethod
    def saga_compensated(
        user_id: str,
        operation: str,
        undone: list[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAGA_COMPENSATED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} failed; {len(undone)} committed steps undone",
            details={"operation": operation, "undone": undone},
            error_message=error_message,
        )
    
    @staticmethod
    def partial_write(
        user_id: str,
        operation: str,
        leftover: list[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIAL_WRITE,
            severity=AuditSeverity.CRITICAL,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} left {len(leftover)} rows behind",
            details={"operation": operation, "leftover": leftover},
            error_message=error_message,
        )
    
    @staticmethod
    def user_signed_in(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_IN,
            user_id=user_id,
            entity_type="profile",
            entity_id=user_id,
            description="User signed in",
            is_user_action=True,
        )
    
    @staticmethod
    def user_signed_out(user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_OUT,
            user_id=user_id,
            entity_type="profile",
            entity_id=user_id,
            description="User signed out",
            is_user_action=True,
        )
    
    @staticmethod
    def cache_refreshed(user_id: str, counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_REFRESHED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            description="Client state reloaded",
            details=counts,
        )
    
    @staticmethod
    def cache_refresh_failed(user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_REFRESH_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description="Client state reload failed; keeping previous snapshot",
            error_message=error_message,
        )
    
    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
    
    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
