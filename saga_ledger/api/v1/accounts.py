import logging
from fastapi import APIRouter, HTTPException, status
from saga_ledger.core.exceptions import AccountAlreadyExistsError, AccountNotFoundError, ConcurrencyConflictError
from saga_ledger.schemas.account import AccountRequest, BalanceResponse, DepositRequest
from saga_ledger.schemas.response import SuccessResponse
from saga_ledger.services.payment_service import create_account, deposit, get_account
from uuid import UUID

log = logging.getLogger(__name__)

router = APIRouter()


def _balance(account) -> dict:
    return BalanceResponse(user_id=account.user_id, balance=account.balance).model_dump(mode="json")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_account_endpoint(request_data: AccountRequest):
    """Creates a payment account with a zero balance for the user."""
    try:
        account = await create_account(request_data.user_id)
    except AccountAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    log.info(f"Account {account.id} created for user {account.user_id}.")
    return SuccessResponse(data=_balance(account))


@router.post("/deposit", response_model=SuccessResponse)
async def deposit_endpoint(request_data: DepositRequest):
    """
    Credits the user's account. Answers 409 when the account row is locked or
    modified concurrently; the client may retry.
    """
    try:
        account = await deposit(request_data.user_id, request_data.amount)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ConcurrencyConflictError as e:
        log.warning(f"Deposit conflict for user {request_data.user_id}: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SuccessResponse(data=_balance(account))


@router.get("/{user_id}", response_model=SuccessResponse)
async def get_balance_endpoint(user_id: UUID):
    """Returns the balance of the user's account."""
    try:
        account = await get_account(user_id)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return SuccessResponse(data=_balance(account))
