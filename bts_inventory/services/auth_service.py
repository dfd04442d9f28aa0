import base64
import hashlib
import hmac
import logging
import secrets
from typing import Optional, Tuple

from bts_inventory.data.local_store import LocalStore
from bts_inventory.models.employee import Employee, EmployeeField, EmployeeRole, EmployeeStatus

logger = logging.getLogger("AuthService")

DEFAULT_ADMIN_EMAIL = "admin@local"
DEFAULT_ADMIN_PASSWORD = "admin123"


def hash_password(password: str, salt: str) -> str:
    """Base64 SHA-256 of "salt:password", the format stored in employees.password_hash."""
    digest = hashlib.sha256(f"{salt}:{password}".encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def create_password_hash(password: str) -> Tuple[str, str]:
    """Returns (hash, salt) with a fresh random salt."""
    salt = base64.b64encode(secrets.token_bytes(16)).decode("ascii")
    return hash_password(password, salt), salt


def verify_password(password: str, stored_hash: str, stored_salt: str) -> bool:
    if not stored_hash or not stored_salt:
        return False
    return hmac.compare_digest(hash_password(password, stored_salt), stored_hash)


class AuthService:
    """Offline login against the local employees table."""

    def __init__(self, store: LocalStore):
        self.store = store
        self._current_user: Optional[Employee] = None

    def authenticate(self, email: str, password: str) -> bool:
        matches = self.store.employees.find_by(EmployeeField.EMAIL, email.strip())
        if not matches:
            return False

        employee = matches[0]
        if employee.status != EmployeeStatus.ACTIVE:
            logger.info("Login refused for inactive account %s", employee.email)
            return False
        if not verify_password(password, employee.password_hash, employee.password_salt):
            return False

        self._current_user = employee
        return True

    def get_current_user(self) -> Optional[Employee]:
        return self._current_user

    def logout(self) -> None:
        self._current_user = None

    def create_admin_if_empty(self) -> Optional[Employee]:
        """
        SEED: creates the default administrator when there is no employee yet,
        so the first login works offline. Returns the new admin, or None.
        """
        with self.store.transaction() as session:
            if self.store.employees.count(session=session) > 0:
                return None

            password_hash, salt = create_password_hash(DEFAULT_ADMIN_PASSWORD)
            admin = self.store.employees.add(Employee(
                full_name="System Administrator",
                email=DEFAULT_ADMIN_EMAIL,
                department="Administration",
                role=EmployeeRole.ADMIN,
                password_hash=password_hash,
                password_salt=salt,
            ), session=session)
            self.store.activity_logs.log_activity(
                action="CREATE",
                entity_type="employee",
                entity_id=admin.id,
                performed_by_employee_id=admin.id,
                details="Initial admin account created",
                session=session,
            )
        logger.info("Default admin created: %s", DEFAULT_ADMIN_EMAIL)
        return admin
