"""API routes for accounts and expenses"""
import logging
from typing import Annotated, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from motor.motor_asyncio import AsyncIOMotorCollection

from config import get_settings
from models.expense import DoneUpdate, ExpenseCreate, ExpenseUpdate
from models.user import ChangePasswordInput, LoginInput, RegisterInput
from services import expenses_service, users_service
from utils.rate_limit import AUTH_RATE_LIMIT, limiter
from utils.security import create_session_token, read_session_token

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Dependency Functions ---

def get_expenses_collection(request: Request) -> AsyncIOMotorCollection:
    """Dependency to get the MongoDB expenses collection from the request state."""
    collection = getattr(request.state, "expenses_collection", None)
    if collection is None:
        logger.error("Expenses collection not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return collection


def get_users_collection(request: Request) -> AsyncIOMotorCollection:
    """Dependency to get the MongoDB users collection from the request state."""
    collection = getattr(request.state, "users_collection", None)
    if collection is None:
        logger.error("Users collection not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return collection


def get_current_user_id(request: Request) -> str:
    """Dependency resolving the session cookie to a user id; 401 when absent or invalid."""
    token = request.cookies.get(get_settings().cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="User not authenticated.")
    user_id = read_session_token(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired session.")
    return user_id


# Type hints for the dependencies
ExpensesCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_expenses_collection)]
UsersCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_users_collection)]
CurrentUserDep = Annotated[str, Depends(get_current_user_id)]


def _raise_for(exc: Exception, action: str) -> NoReturn:
    """Maps service-layer exceptions onto HTTP errors."""
    if isinstance(exc, PermissionError):
        raise HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ConnectionError):
        logger.error(f"Connection error while {action}: {exc}")
        raise HTTPException(status_code=503, detail=f"Database connection error: {exc}")
    logger.exception(f"Unexpected error while {action}: {exc}")
    raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while {action}.")


# --- Account Routes ---

@router.post("/user/register", status_code=status.HTTP_201_CREATED, summary="Register Account")
@limiter.limit(AUTH_RATE_LIMIT)
async def register(request: Request, payload: RegisterInput, collection: UsersCollectionDep):
    logger.info(f"POST /user/register called for {payload.email}")
    try:
        await users_service.register(collection, payload)
    except ValueError as ve:
        raise HTTPException(status_code=409, detail=str(ve))
    except Exception as e:
        _raise_for(e, "registering user")
    return {"message": "Account created successfully.", "success": True}


@router.post("/user/login", summary="Log In", description="Validates credentials and issues the session cookie.")
@limiter.limit(AUTH_RATE_LIMIT)
async def login(request: Request, response: Response, payload: LoginInput, collection: UsersCollectionDep):
    logger.info(f"POST /user/login called for {payload.email}")
    try:
        user = await users_service.authenticate(collection, payload)
    except Exception as e:
        _raise_for(e, "logging in")
    settings = get_settings()
    response.set_cookie(
        key=settings.cookie_name,
        value=create_session_token(user["_id"]),
        max_age=settings.session_max_age,
        httponly=True,
        samesite="strict",
        secure=settings.cookie_secure,
    )
    return {"message": f"Welcome back {user['fullname']}", "user": user, "success": True}


@router.get("/user/logout", summary="Log Out")
async def logout(response: Response):
    logger.info("GET /user/logout called")
    response.delete_cookie(get_settings().cookie_name)
    return {"message": "User logged out successfully.", "success": True}


@router.put("/user/password", summary="Change Password")
async def change_password(payload: ChangePasswordInput, user_id: CurrentUserDep, collection: UsersCollectionDep):
    logger.info(f"PUT /user/password called by user {user_id}")
    try:
        await users_service.change_password(collection, user_id, payload)
    except Exception as e:
        _raise_for(e, "changing password")
    return {"message": "Password updated successfully.", "success": True}


# --- Expense Routes ---

@router.get("/expense/getall", summary="Get Expenses", description="Retrieves the user's expenses, newest first.")
async def get_expenses(
    user_id: CurrentUserDep,
    collection: ExpensesCollectionDep,
    category: Optional[str] = Query(None, description="Only return expenses in this category."),
    done: Optional[bool] = Query(None, description="Filter by the done flag."),
):
    logger.info(f"GET /expense/getall called by user {user_id} (category={category!r}, done={done!r})")
    try:
        expenses = await expenses_service.get_expenses(collection, user_id, category=category, done=done)
    except Exception as e:
        _raise_for(e, "fetching expenses")
    return {"expense": expenses, "success": True}


@router.post("/expense/add", status_code=status.HTTP_201_CREATED, summary="Add Expense")
async def add_expense(payload: ExpenseCreate, user_id: CurrentUserDep, collection: ExpensesCollectionDep):
    logger.info(f"POST /expense/add called by user {user_id}")
    try:
        expense = await expenses_service.add_expense(collection, user_id, payload)
    except Exception as e:
        _raise_for(e, "adding expense")
    return {"message": "New expense added.", "expense": expense, "success": True}


@router.put("/expense/update/{expense_id}", summary="Update Expense")
async def update_expense(
    expense_id: str, payload: ExpenseUpdate, user_id: CurrentUserDep, collection: ExpensesCollectionDep
):
    logger.info(f"PUT /expense/update/{expense_id} called by user {user_id}")
    try:
        await expenses_service.update_expense(collection, user_id, expense_id, payload)
    except Exception as e:
        _raise_for(e, "updating expense")
    return {"message": "Expense updated.", "success": True}


@router.delete("/expense/remove/{expense_id}", summary="Remove Expense")
async def remove_expense(expense_id: str, user_id: CurrentUserDep, collection: ExpensesCollectionDep):
    logger.info(f"DELETE /expense/remove/{expense_id} called by user {user_id}")
    try:
        await expenses_service.remove_expense(collection, user_id, expense_id)
    except Exception as e:
        _raise_for(e, "removing expense")
    return {"message": "Expense removed.", "success": True}


@router.put("/expense/{expense_id}/done", summary="Mark Expense Done")
async def mark_as_done(expense_id: str, payload: DoneUpdate, user_id: CurrentUserDep, collection: ExpensesCollectionDep):
    logger.info(f"PUT /expense/{expense_id}/done called by user {user_id}")
    try:
        await expenses_service.mark_as_done(collection, user_id, expense_id, payload.done)
    except Exception as e:
        _raise_for(e, "updating expense status")
    return {"message": f"Expense marked as {'done' if payload.done else 'not done'}.", "success": True}
