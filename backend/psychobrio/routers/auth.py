from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
import logging
import uuid

from ..settings import settings
from sqlalchemy.orm import Session
from ..context import RequestContext
from ..db import get_db
from ..models import AuthUser, AuthSession, UserRole

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


def _truncate_for_bcrypt(password: str) -> str:
	# bcrypt only looks at the first 72 bytes
	password_bytes = password.encode('utf-8')
	if len(password_bytes) > 72:
		password_bytes = password_bytes[:72]
	return password_bytes.decode('utf-8', errors='ignore')


def hash_password(password: str) -> str:
	return pwd_context.hash(_truncate_for_bcrypt(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(_truncate_for_bcrypt(plain_password), hashed_password)


def ensure_seed_user(db: Session) -> None:
	username = settings.seed_username
	password = settings.seed_password_plain
	if not username or not password:
		return
	if db.query(AuthUser).filter(AuthUser.username == username).first():
		return
	db.add(AuthUser(username=username, password_hash=hash_password(password), name=username, role=UserRole.ADMIN_PSY))
	db.commit()
	logger.info("Seeded administrator account %s", username)


def authenticate_user(db: Session, username: str, password: str) -> Optional[AuthUser]:
	user_row = db.query(AuthUser).filter(AuthUser.username == username).first()
	if user_row and verify_password(password, user_row.password_hash):
		return user_row
	return None


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		if isinstance(minutes, int) and minutes > 0:
			delta = timedelta(minutes=minutes)
		else:
			delta = timedelta(days=30)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		# Cap at far future but within datetime bounds
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	expire = _resolve_expiry(expires_delta)
	to_encode.update({"exp": expire})
	encoded_jwt = jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
	return encoded_jwt


@router.post("/token", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
	user = authenticate_user(db, form_data.username, form_data.password)
	if not user:
		raise HTTPException(status_code=401, detail="Incorrect username or password")
	# Create a new session id (jti) and persist server-side
	session_id = uuid.uuid4().hex
	access_token = create_access_token({"sub": user.username, "jti": session_id})
	db.add(AuthSession(session_id=session_id, username=user.username))
	db.commit()
	return Token(access_token=access_token)


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> RequestContext:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
		username: str | None = payload.get("sub")
		jti: str | None = payload.get("jti")
		if username is None or jti is None:
			raise credentials_exception
	except JWTError:
		raise credentials_exception
	# A deleted session row revokes the token
	row = db.get(AuthSession, jti)
	if not row or row.username != username:
		raise credentials_exception
	user = db.query(AuthUser).filter(AuthUser.username == username).first()
	if user is None:
		raise credentials_exception
	row.last_activity_at = datetime.utcnow()
	db.commit()
	return RequestContext(user_id=user.id, username=user.username, role=user.role)


def require_practitioner(user: RequestContext = Depends(get_current_user)) -> RequestContext:
	if user.role == UserRole.PARENT:
		raise HTTPException(status_code=403, detail="practitioner access required")
	return user


def require_admin(user: RequestContext = Depends(get_current_user)) -> RequestContext:
	if not user.is_admin:
		raise HTTPException(status_code=403, detail="administrator access required")
	return user


def require_parent(user: RequestContext = Depends(get_current_user)) -> RequestContext:
	if user.role != UserRole.PARENT:
		raise HTTPException(status_code=403, detail="parent access required")
	return user


@router.get("/me", response_model=RequestContext)
async def me(user: RequestContext = Depends(get_current_user)):
	return user


@router.post("/logout", status_code=204)
async def logout(token: str = Depends(oauth2_scheme), user: RequestContext = Depends(get_current_user), db: Session = Depends(get_db)):
	payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	row = db.get(AuthSession, payload.get("jti"))
	if row is not None:
		db.delete(row)
		db.commit()


class CreateUserRequest(BaseModel):
	username: str
	password: str
	name: str
	email: str | None = None
	role: UserRole = UserRole.PSY


class UserOut(BaseModel):
	id: str
	username: str
	name: str
	email: str | None = None
	role: UserRole


@router.post("/users", status_code=201, response_model=UserOut)
async def create_user(req: CreateUserRequest, admin: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
	username = (req.username or "").strip()
	password = req.password or ""
	name = (req.name or "").strip()
	if not username or not password or not name:
		raise HTTPException(status_code=400, detail="username, password and name are required")
	if len(username) < 3 or len(username) > 128:
		raise HTTPException(status_code=400, detail="username must be 3-128 characters")
	if req.role == UserRole.SUPERADMIN_TECH and admin.role != UserRole.SUPERADMIN_TECH:
		raise HTTPException(status_code=403, detail="only technical administrators can create that role")
	existing = db.query(AuthUser).filter(AuthUser.username == username).first()
	if existing:
		raise HTTPException(status_code=409, detail="username already exists")
	row = AuthUser(username=username, password_hash=hash_password(password), name=name, email=req.email, role=req.role)
	db.add(row)
	db.commit()
	db.refresh(row)
	logger.info("User %s created by %s", row.id, admin.user_id)
	return UserOut(id=row.id, username=row.username, name=row.name, email=row.email, role=row.role)
