"""API Dependencies - Authentication and service wiring"""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from uuid import UUID

from application.clock import Clock, SystemClock
from application.services import AvailabilityService, GuestService, PaymentLedger, ReservationService
from domain.auth import User, UserInDB
from domain.value_objects import OperatorContext
from infrastructure.repositories.in_memory_repositories import (
    InMemoryGuestRepository, InMemoryPaymentRepository, InMemoryReservationRepository, InMemoryRoomRepository,
)
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

DEMO_BRANCH_ID = UUID("0b6f3f5e-6a43-4c57-9a51-6f1d2c3b4a50")

# Demo operators; passwords are hashed on first access
users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Front Desk Admin",
        "email": "admin@example.com",
        "plain_password": "admin123",
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174000",
        "branch_id": str(DEMO_BRANCH_ID),
    },
    "recepcion": {
        "username": "recepcion",
        "full_name": "Recepción Turno Noche",
        "email": "recepcion@example.com",
        "plain_password": "noche2024",
        "disabled": True,
        "user_id": "5f0c8a2e-3b1d-4e7a-8c9f-1a2b3c4d5e6f",
        "branch_id": str(DEMO_BRANCH_ID),
    },
}

_password_hash_cache = {}


def _get_hashed_password(username: str) -> str:
    if username not in _password_hash_cache:
        user = users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")


def get_user(db, username: str):
    if username in db:
        user_dict = db[username].copy()
        if "plain_password" in user_dict:
            user_dict["hashed_password"] = _get_hashed_password(username)
            del user_dict["plain_password"]
        return UserInDB(**user_dict)
    return None


async def get_current_user(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except JWTError:
        raise credentials_exception

    user = get_user(users_db, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)):
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


async def get_operator_context(current_user: User = Depends(get_current_active_user)) -> OperatorContext:
    """The acting operator and the branch they work at"""
    return OperatorContext(branch_id=current_user.branch_id, actor_id=current_user.username)


# ============================================================================
# SERVICE WIRING
# ============================================================================

guest_repo = InMemoryGuestRepository()
reservation_repo = InMemoryReservationRepository(guest_repo)
room_repo = InMemoryRoomRepository(reservation_repo)
payment_repo = InMemoryPaymentRepository(reservation_repo)
clock: Clock = SystemClock()


def get_guest_service() -> GuestService:
    return GuestService(guest_repo)


def get_availability_service() -> AvailabilityService:
    return AvailabilityService(room_repo, reservation_repo)


def get_reservation_service() -> ReservationService:
    return ReservationService(
        reservation_repo, get_availability_service(), get_guest_service(), clock=clock)


def get_payment_ledger() -> PaymentLedger:
    return PaymentLedger(payment_repo, reservation_repo, clock=clock)
