from enum import Enum


class SessionStatus(str, Enum):
    AUTOMATED = "automated"
    WAITING = "waiting"
    IN_SERVICE = "in_service"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SessionDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class Department(str, Enum):
    PERSONAL = "personal"
    FISCAL = "fiscal"
    ACCOUNTING = "accounting"
    FINANCIAL = "financial"

    @classmethod
    def _missing_(cls, value: object) -> "Department | None":
        # Upstream flows send "Personal", "PERSONAL", ...
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class OperatorProfile(str, Enum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    OPERATOR = "operator"


class OperatorPresence(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class TransitionAction(str, Enum):
    COMPLETE_AUTOMATION = "complete_automation"
    ASSIGN = "assign"
    TRANSFER = "transfer"
    COMPLETE = "complete"
    CANCEL = "cancel"
    EXPIRE = "expire"


class AssignmentTargetKind(str, Enum):
    OPERATOR = "operator"
    SUPERVISOR = "supervisor"


class AssignmentReason(str, Enum):
    REQUESTED_OPERATOR = "requested_operator"
    FIRST_AVAILABLE = "first_available"
    PREFERRED_UNAVAILABLE = "preferred_unavailable"
    DEPARTMENT_UNAVAILABLE = "department_unavailable"
    OPERATOR_CLAIM = "operator_claim"


class SessionOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CancellationReason(str, Enum):
    CUSTOMER_REQUEST = "customer_request"
    FORCED = "forced"
    TIMEOUT = "timeout"


class ParticipantKind(str, Enum):
    OPERATOR = "operator"
    CUSTOMER = "customer"
