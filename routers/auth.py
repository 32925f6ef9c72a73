"""
Authentication endpoints.

Login issues a JWT bearer token. Signup is a two-step flow: the first call
parks the account and emails a one-time code, the second confirms the code
and creates the user.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from config import Settings, get_settings
from dependencies import get_user_repo
from errors import InvalidOperation
from notifications import EmailSender, PendingSignupStore, get_email_sender, get_pending_store, start_verification
from repositories import UserRepository
from schemas import CredentialsIn, OtpVerifyIn, PendingOut, SignupIn, TokenOut, User, UserOut
from security import get_current_user, get_password_hash, token_for, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

DEFAULT_SIGNUP_ROLE = "User"


@router.post("/auth/login", response_model=TokenOut)
def login(
    body: CredentialsIn,
    users: UserRepository = Depends(get_user_repo),
    settings: Settings = Depends(get_settings),
):
    user = users.get_by_email(body.email)
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user = users.record_login(user)
    logger.info(f"User {user.id} logged in")
    return {"token": token_for(user, settings)}


@router.post("/auth/signup", response_model=PendingOut, status_code=status.HTTP_202_ACCEPTED)
def signup(
    body: SignupIn,
    users: UserRepository = Depends(get_user_repo),
    pending: PendingSignupStore = Depends(get_pending_store),
    sender: EmailSender = Depends(get_email_sender),
):
    if users.get_by_email(body.email):
        raise InvalidOperation("Email already exists.", field="email")
    role = users.roles.get_by_name(DEFAULT_SIGNUP_ROLE)
    user = User(
        name=body.name,
        email=body.email.lower(),
        password_hash=get_password_hash(body.password),
        role=DEFAULT_SIGNUP_ROLE,
        role_id=role.id if role else None,
        security_pin=body.security_pin,
    )
    held = start_verification(user, pending, sender)
    return {"email": user.email, "expires_at": held.expires_at}


@router.post("/auth/signup/verify", response_model=TokenOut)
def verify_signup(
    body: OtpVerifyIn,
    users: UserRepository = Depends(get_user_repo),
    pending: PendingSignupStore = Depends(get_pending_store),
    settings: Settings = Depends(get_settings),
):
    user = users.add(pending.verify(body.email, body.otp))
    return {"token": token_for(user, settings)}


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return UserOut.from_user(user)
