"""
Authentication routes: signup, login and the current account
"""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging_config import logger
from app.core.security import create_access_token, decode_access_token, get_password_hash, verify_password
from app.db.models import CustomerProfile, Profile, ProfessionalProfile, UserRole, UserSuspension, utcnow
from app.db.session import get_db
from app.schemas.user import LoginRequest, ProfileUpdate, SignupRequest, TokenResponse, UserResponse
from app.services.moderation_service import moderation_service

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"]
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

PROFESSIONAL_FIELDS = ("bio", "city", "primary_services", "hourly_rate", "paypal_email")


def _suspended_detail(suspension: UserSuspension) -> str:
    if suspension.expires_at is None:
        return "Account has been banned"
    return f"Account suspended until {suspension.expires_at.isoformat()}"


def _token_response(user: Profile) -> dict:
    access_token = create_access_token(data={"sub": str(user.id), "role": user.role.value})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": user,
    }


def get_user_from_token(token: str, db: Session) -> Profile:
    """Resolve a bearer token to an active, unsuspended account"""
    payload = decode_access_token(token)
    if not payload or not str(payload.get("sub", "")).isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(Profile).filter(Profile.id == int(payload["sub"])).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    suspension = moderation_service.get_active_suspension(db, user.id)
    if suspension:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=_suspended_detail(suspension))
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    return user


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Profile:
    return get_user_from_token(token, db)


def require_professional(current_user: Profile = Depends(get_current_user)) -> Profile:
    if current_user.role != UserRole.PROFESSIONAL:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Professional account required")
    return current_user


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest, db: Session = Depends(get_db)):
    """Register a customer or professional. Returns a JWT."""
    if request.role == UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot sign up as admin")

    email = request.email.lower()
    if db.query(Profile).filter(Profile.email == email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = Profile(
        email=email,
        full_name=request.full_name,
        phone=request.phone,
        hashed_password=get_password_hash(request.password),
        role=request.role,
        country=request.country,
        locale=request.locale,
        is_active=True,
    )
    db.add(user)
    db.flush()

    if user.role == UserRole.PROFESSIONAL:
        db.add(ProfessionalProfile(profile_id=user.id))
    else:
        db.add(CustomerProfile(profile_id=user.id))

    db.commit()
    db.refresh(user)
    logger.info(f"New {user.role.value} signed up: {user.id}")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(Profile).filter(Profile.email == request.email.lower()).first()
    if not user or not verify_password(request.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    suspension = moderation_service.get_active_suspension(db, user.id)
    if suspension:
        logger.warning(f"Login blocked for suspended user {user.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=_suspended_detail(suspension))
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    return _token_response(user)


@router.get("/me", response_model=UserResponse)
def get_me(current_user: Profile = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    update: ProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update the logged-in account; professional fields apply to professionals only"""
    update_data = update.model_dump(exclude_unset=True)

    for field in ("full_name", "phone", "locale"):
        if field in update_data and update_data[field] is not None:
            setattr(current_user, field, update_data[field])

    pro_updates = {k: v for k, v in update_data.items() if k in PROFESSIONAL_FIELDS}
    if pro_updates:
        if current_user.role != UserRole.PROFESSIONAL or not current_user.professional_profile:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Professional fields can only be set on professional accounts"
            )
        for field, value in pro_updates.items():
            setattr(current_user.professional_profile, field, value)

    current_user.updated_at = utcnow()
    db.commit()
    db.refresh(current_user)
    return current_user
