import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from educonnect.api.deps import get_current_user, oauth2_scheme
from educonnect.core.config import settings
from educonnect.core.rate_limit import limiter
from educonnect.core.security import (
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_password_reset_token,
    decode_refresh_token,
    get_password_hash,
    validate_password_strength,
    verify_password,
)
from educonnect.db.database import get_db
from educonnect.models.token_blacklist import TokenBlacklist
from educonnect.models.user import User
from educonnect.schemas.user import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginResponse,
    RefreshRequest,
    ResetPasswordRequest,
    Token,
    UserResponse,
    UserSummary,
)
from educonnect.services.audit_service import log_action
from educonnect.services.email_service import render_template, send_email_sync
from educonnect.services.user_service import normalize_email, resolve_login_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_claims(user: User) -> dict:
    return {"sub": str(user.id), "role": user.role.value}


@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    remember_me: bool = Form(False),
    db: Session = Depends(get_db),
):
    """Sign in with email (or the admin alias) and password."""
    if not form_data.username.strip() or not form_data.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    email = resolve_login_email(form_data.username)
    user = db.query(User).filter(User.email == email).first()
    if not user or not user.is_active or not verify_password(form_data.password, user.hashed_password):
        log_action(db, user_id=None, action="login_failed", resource_type="user",
                   details={"email": email}, request=request)
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    log_action(db, user_id=user.id, action="login", resource_type="user",
               resource_id=user.id, request=request)
    db.commit()

    expires = timedelta(days=settings.remember_me_expire_days) if remember_me else None
    return LoginResponse(
        access_token=create_access_token(_token_claims(user), expires_delta=expires),
        refresh_token=create_refresh_token({"sub": str(user.id)}),
        user=UserSummary.model_validate(user),
    )


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
def refresh_access_token(request: Request, body: RefreshRequest, db: Session = Depends(get_db)):
    """Exchange a valid refresh token for a new access token."""
    payload = decode_refresh_token(body.refresh_token)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    user = db.query(User).filter(User.id == int(payload["sub"]), User.is_active == True).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return Token(access_token=create_access_token(_token_claims(user)))


@router.post("/logout")
def logout(
    request: Request,
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Revoke the current access token."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Could not validate credentials")

    jti = payload.get("jti")
    exp = payload.get("exp")
    if jti and exp:
        db.add(TokenBlacklist(
            jti=jti,
            user_id=current_user.id,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            reason="logout",
        ))
        log_action(db, user_id=current_user.id, action="logout", resource_type="user",
                   resource_id=current_user.id, request=request)
        db.commit()

    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/forgot-password")
@limiter.limit("3/minute")
def forgot_password(body: ForgotPasswordRequest, request: Request, db: Session = Depends(get_db)):
    """Email a password reset link. Always returns 200 to avoid user enumeration."""
    user = db.query(User).filter(User.email == normalize_email(body.email)).first()

    if user and user.is_active:
        token = create_password_reset_token(user.email)
        reset_url = f"{settings.frontend_url}/reset-password?token={token}"
        html = render_template("password_reset.html", user_name=user.full_name, reset_url=reset_url)
        if not html:
            html = f'<p>Click <a href="{reset_url}">here</a> to reset your password. This link expires in 1 hour.</p>'
        send_email_sync(to_email=user.email, subject="EduConnect: reset your password", html_content=html)
        log_action(db, user_id=user.id, action="pwd_reset_req", resource_type="user",
                   resource_id=user.id, request=request)
        db.commit()

    return {"message": "If an account with that email exists, a reset link has been sent."}


@router.post("/reset-password")
@limiter.limit("5/minute")
def reset_password(body: ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    """Set a new password using a reset token from the email link."""
    email = decode_password_reset_token(body.token)
    if not email:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    pw_error = validate_password_strength(body.new_password)
    if pw_error:
        raise HTTPException(status_code=400, detail=pw_error)

    user.hashed_password = get_password_hash(body.new_password)
    log_action(db, user_id=user.id, action="password_reset", resource_type="user",
               resource_id=user.id, request=request)
    db.commit()

    return {"message": "Password reset successfully. You can now sign in."}


@router.post("/change-password")
def change_password(
    body: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    pw_error = validate_password_strength(body.new_password)
    if pw_error:
        raise HTTPException(status_code=400, detail=pw_error)

    if not verify_password(body.old_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    current_user.hashed_password = get_password_hash(body.new_password)
    log_action(db, user_id=current_user.id, action="password_change", resource_type="user",
               resource_id=current_user.id, request=request)
    db.commit()
    logger.info(f"Password changed | user_id={current_user.id}")

    return {"message": "Password changed successfully"}
