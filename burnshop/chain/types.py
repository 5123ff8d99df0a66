from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from solders.instruction import Instruction

TransactionType = Literal["burn", "transfer"]
PriorityLevel = Literal["low", "medium", "high", "urgent"]
PendingStatus = Literal["pending", "verified", "completed"]

COMPUTE_BUDGET_PROGRAM = "ComputeBudget111111111111111111111111111111"


@dataclass(slots=True, frozen=True)
class TokenBalance:
    balance: float
    raw_balance: str
    is_holder: bool
    error: str | None = None


@dataclass(slots=True, frozen=True)
class TokenSupply:
    current: float
    current_raw: str
    burned: float
    burned_raw: str


@dataclass(slots=True, frozen=True)
class BurnRecord:
    signature: str
    amount: float
    timestamp: int | None
    slot: int | None
    wallet: str | None = None


@dataclass(slots=True, frozen=True)
class BurnHistory:
    burns: tuple[BurnRecord, ...]
    total_burned: float

    @property
    def burn_count(self) -> int:
        return len(self.burns)


@dataclass(slots=True, frozen=True)
class FeeBreakdown:
    base_fee_lamports: int
    priority_fee_lamports: int
    total_lamports: int

    @property
    def total_sol(self) -> float:
        return self.total_lamports / 1_000_000_000

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["total_sol"] = self.total_sol
        return payload


@dataclass(slots=True, frozen=True)
class InstructionSpec:
    kind: str
    program_id: str
    data: dict[str, Any]
    instruction: Instruction

    def describe(self) -> dict[str, Any]:
        return {"programId": self.program_id, "type": self.kind, "data": dict(self.data)}


@dataclass(slots=True)
class PendingTransaction:
    id: str
    type: TransactionType
    wallet: str
    amount: float
    instructions: tuple[InstructionSpec, ...]
    priority_fee: int
    compute_units: int
    blockhash: str
    created_at: float
    expires_at: float
    status: PendingStatus = "pending"
    signature: str | None = None
    verified_at: float | None = None
    completed_at: float | None = None
    confirmation: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class BuiltTransaction:
    transaction_id: str
    transaction: str
    serialized_instructions: list[dict[str, Any]]
    message: dict[str, Any]
    priority_fee: int
    compute_units: int
    estimated_fee: FeeBreakdown
    blockhash: str
    last_valid_block_height: int | None
    expires_at: float


@dataclass(slots=True, frozen=True)
class ConfirmationStatus:
    confirmed: bool
    slot: int | None = None
    confirmation_status: str | None = None
    error: str | None = None


@dataclass(slots=True, frozen=True)
class BurnVerificationResult:
    valid: bool
    actual_amount: float | None = None
    expected_amount: float | None = None
    error: str | None = None
    slot: int | None = None
    block_time: int | None = None
