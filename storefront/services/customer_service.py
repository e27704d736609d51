from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from ..models.customer import Customer
from ..utils.dto import to_customer_dto
from ..utils.validators import optional_text, require_text
from .errors import AuthError, ConflictError, NotFoundError, ValidationError
from .logging import log_event

ROLES = ("customer", "admin")
MIN_PASSWORD_LENGTH = 6


class CustomerService:
    """Customer accounts, password checks and JWT issuance."""

    def __init__(self, session_factory, *, jwt_secret: str, token_ttl: timedelta = timedelta(days=7)) -> None:
        self._session_factory = session_factory
        self._jwt_secret = jwt_secret
        self._token_ttl = token_ttl

    # --- tokens ---

    def issue_token(self, profile: Dict[str, Any]) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": profile["id"],
            "first_name": profile.get("first_name"),
            "last_name": profile.get("last_name"),
            "email": profile.get("email"),
            "role": profile.get("role") or "customer",
            "iat": now,
            "exp": now + self._token_ttl,
        }
        return jwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Return the verified claims; the `id` claim is the trusted customer id."""
        if not token:
            raise AuthError("not authenticated")
        try:
            payload = jwt.decode(token, self._jwt_secret, algorithms=["HS256"])
        except jwt.PyJWTError as exc:
            raise AuthError("invalid or expired token") from exc
        if not payload.get("id"):
            raise AuthError("invalid token")
        payload.setdefault("role", "customer")
        return payload

    # --- accounts ---

    def register(
        self,
        *,
        first_name: Any,
        last_name: Any,
        email: Any,
        password: Any,
        phone: Any = None,
    ) -> Dict:
        profile = self._create(first_name, last_name, email, password, phone, "customer")
        log_event("info", "customer.registered", customer_id=profile["id"])
        return {"token": self.issue_token(profile), "user": profile}

    def authenticate(self, email: Any, password: Any) -> Dict:
        if not email or not password:
            raise ValidationError("email and password are required")
        with self._session_factory() as session:
            customer = session.query(Customer).filter(Customer.email == str(email).strip().lower()).first()
            if customer is None:
                raise AuthError("invalid credentials")
            if not customer.password_hash:
                raise AuthError("account has no password, please register")
            if not check_password_hash(customer.password_hash, str(password)):
                raise AuthError("invalid credentials")
            profile = to_customer_dto(customer)
        return {"token": self.issue_token(profile), "user": profile}

    def get_profile(self, customer_id: int) -> Dict:
        with self._session_factory() as session:
            customer = session.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError("user not found")
            return to_customer_dto(customer)

    def update_profile(self, customer_id: int, *, first_name: Any = None, phone: Any = None) -> Dict:
        """Update name and/or phone; returns a fresh token carrying the new profile."""
        if first_name is None and phone is None:
            raise ValidationError("nothing to update")
        with self._session_factory() as session:
            customer = session.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError("user not found")
            if first_name is not None:
                customer.first_name = require_text(first_name, "first_name")
            if phone is not None:
                customer.phone = optional_text(phone)
            session.flush()
            profile = to_customer_dto(customer)
        return {"token": self.issue_token(profile), "user": profile}

    def change_password(self, customer_id: int, current: Any, new: Any) -> None:
        if not current or not new:
            raise ValidationError("current and new password are required")
        if len(str(new)) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"new password must be at least {MIN_PASSWORD_LENGTH} characters")
        with self._session_factory() as session:
            customer = session.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError("user not found")
            if not check_password_hash(customer.password_hash or "", str(current)):
                raise AuthError("current password is incorrect")
            customer.password_hash = generate_password_hash(str(new))

    def list_customers(self, limit: int = 200) -> List[Dict]:
        with self._session_factory() as session:
            rows = session.query(Customer).order_by(Customer.created_at.desc(), Customer.id.desc()).limit(limit).all()
            result = []
            for c in rows:
                data = to_customer_dto(c)
                data["created_at"] = c.created_at.isoformat() if c.created_at else None
                result.append(data)
            return result

    def create_customer(
        self,
        *,
        first_name: Any,
        last_name: Any,
        email: Any,
        password: Any,
        role: Any = "customer",
    ) -> int:
        role = str(role or "customer")
        if role not in ROLES:
            raise ValidationError("invalid role")
        profile = self._create(first_name, last_name, email, password, None, role)
        return profile["id"]

    def ensure_admin_account(self, email: str, password: str) -> Optional[int]:
        """Create the bootstrap admin, or promote and reset an existing account with that email."""
        email = email.strip().lower()
        with self._session_factory() as session:
            customer = session.query(Customer).filter(Customer.email == email).first()
            if customer is not None and customer.role == "admin":
                return None
            if customer is None:
                customer = Customer(first_name="Admin", last_name="Principal", email=email, role="admin")
                session.add(customer)
            customer.password_hash = generate_password_hash(password)
            customer.role = "admin"
            session.flush()
            customer_id = customer.id
        log_event("info", "admin.bootstrapped", customer_id=customer_id, email=email)
        return customer_id

    def _create(self, first_name, last_name, email, password, phone, role) -> Dict:
        if not first_name or not last_name or not email or not password:
            raise ValidationError("first_name, last_name, email and password are required")
        try:
            with self._session_factory() as session:
                customer = Customer(
                    first_name=require_text(first_name, "first_name"),
                    last_name=require_text(last_name, "last_name"),
                    email=require_text(email, "email").lower(),
                    phone=optional_text(phone),
                    password_hash=generate_password_hash(str(password)),
                    role=role,
                )
                session.add(customer)
                session.flush()
                profile = to_customer_dto(customer)
        except IntegrityError as exc:
            raise ConflictError("email already registered") from exc
        return profile
