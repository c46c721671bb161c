"""
Authentication routes: login, logout, registration, current user.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from consultdesk import accounts
from consultdesk.auth import authenticate_account, create_session, delete_session, serialize_session, deserialize_session
from consultdesk.config import SESSION_COOKIE_NAME, SESSION_MAX_AGE
from consultdesk.dependencies import require_auth
from consultdesk.roles import ROLE_CUSTOMER
from consultdesk.schemas import CustomerRegister, LoginRequest

router = APIRouter()


def _session_response(account: dict, status_code: int = 200) -> JSONResponse:
    session_id = create_session(account['_id'])
    token = serialize_session(session_id)

    response = JSONResponse(
        {"success": True, "user": accounts.public_account(account)},
        status_code=status_code
    )
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=SESSION_MAX_AGE
    )
    return response


@router.post("/login")
async def login(body: LoginRequest):
    """Check credentials and start a session."""
    account = authenticate_account(body.email, body.password)
    if not account:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _session_response(account)


@router.post("/register", status_code=201)
async def register(body: CustomerRegister):
    """Self-service customer signup; also creates the wallet."""
    customer = accounts.create_account(
        ROLE_CUSTOMER, body.name, body.email, body.password, mobile=body.mobile
    )
    accounts.create_wallet(customer)
    return _session_response(customer, status_code=201)


@router.post("/logout")
async def logout(request: Request):
    """Log out the current user."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        session_id = deserialize_session(token)
        if session_id:
            delete_session(session_id)

    response = JSONResponse({"success": True})
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


@router.get("/me")
async def me(user: dict = Depends(require_auth)):
    return {"success": True, "user": user}
