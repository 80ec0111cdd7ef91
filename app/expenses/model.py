from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any


class ExpenseStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SCHEDULED_FOR_PAYMENT = "SCHEDULED_FOR_PAYMENT"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    ERROR = "ERROR"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class Collective:
    id: int
    name: str
    host_collective_id: Optional[int]


@dataclass(frozen=True)
class Host:
    id: int
    name: str
    currency: str


@dataclass(frozen=True)
class ConnectedAccount:
    id: int
    service: str
    client_id: str
    token: str


@dataclass(frozen=True)
class User:
    id: int
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class ActorRef:
    """Id-only actor, used where the full user is not looked up."""
    id: Optional[int]


@dataclass
class Expense:
    id: int
    amount: int
    currency: str
    status: ExpenseStatus
    collective: Collective
    description: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    payout_method_data: dict[str, Any] = field(default_factory=dict)
    last_edited_by_id: Optional[int] = None

    @property
    def payout_batch_id(self) -> Optional[str]:
        return (self.data or {}).get("payout_batch_id")

    @property
    def payee_email(self) -> Optional[str]:
        return (self.payout_method_data or {}).get("email")

    @property
    def info(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status.value,
            "collective_id": self.collective.id,
            "host_collective_id": self.collective.host_collective_id,
        }
