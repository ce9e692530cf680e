"""
Reconciliation and debt I/O models for the administration endpoints.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class DebtSyncError(BaseModel):
    user_id: int
    error: str


class DebtSyncResult(BaseModel):
    users_processed: int = 0
    total_debt_before: float = 0
    total_debt_after: float = 0
    users_with_changes: int = 0
    errors: List[DebtSyncError] = Field(default_factory=list)


class UserDebtStats(BaseModel):
    total_users: int
    users_with_debt: int
    total_debt: float
    average_debt: float
    max_debt: float


class OverdueBoletaStats(BaseModel):
    count: int
    total_amount: float
    average_amount: float


class DebtStatistics(BaseModel):
    users: UserDebtStats
    overdue_boletas: OverdueBoletaStats


class DebtInconsistency(BaseModel):
    user_id: int
    rut: str
    stored_debt: float
    calculated_debt: float
    difference: float


class DebtValidation(BaseModel):
    consistent: bool
    inconsistencies: List[DebtInconsistency] = Field(default_factory=list)


class SyncPaymentsResult(BaseModel):
    boletas_updated: int


class OverdueCheckResult(BaseModel):
    updated: int
    notified: int
