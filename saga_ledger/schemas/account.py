import uuid
from decimal import Decimal
from pydantic import BaseModel, Field


class AccountRequest(BaseModel):
    user_id: uuid.UUID = Field(..., description="Owner of the new account.")


class DepositRequest(BaseModel):
    user_id: uuid.UUID = Field(..., description="Owner of the account to credit.")
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Amount to deposit.")


class BalanceResponse(BaseModel):
    """Schema for the account balance."""
    user_id: uuid.UUID
    balance: Decimal
