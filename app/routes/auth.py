from fastapi import APIRouter, HTTPException, status, Depends
from app.db.mongo import get_db
from app.models.user import User
from app.core.auth import create_access_token, get_current_user
from app.schemas.auth import TokenResponse, UserLogin, UserResponse
from app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def _to_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        username=user.username,
        name=user.name,
        role=user.role.value,
        created_at=user.created_at
    )

@router.post("/login", response_model=TokenResponse)
async def login(credentials: UserLogin, db = Depends(get_db)):
    """Login with username and password."""
    user = await AuthService(db).authenticate(credentials.username, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    access_token = create_access_token(str(user.id))

    return TokenResponse(
        access_token=access_token,
        user=_to_user_response(user)
    )

@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user details."""
    return _to_user_response(current_user)
