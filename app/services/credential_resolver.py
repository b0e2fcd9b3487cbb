# app/services/credential_resolver.py
"""
Credential Resolver. Turns a scanned QR payload or a typed code into a
directory identity.

Token format is owned by the Identity Directory. Badges printed by the fleet
console carry "<EMPLOYEE_QR_PREFIX><employee id>" (e.g. FELKA_EMP_42); anything
else is taken verbatim as the employee id (or CPF, for typed codes).
Only the Employee directory is consulted; there is no fuzzy fallback.
"""

from dataclasses import dataclass
from typing import Optional

from app.config import settings
from app.models.enums import PersonType
from app.services.directory_client import IdentityDirectory
from app.services.exceptions import CredentialNotFound, InvalidCredential
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedCredential:
    person_type: PersonType
    person_id: str
    person_name: str
    person_cpf: Optional[str] = None


def extract_identifier(token: str, prefix: str = None) -> str:
    """Embedded identifier of a token. Raises InvalidCredential when empty."""
    prefix = settings.EMPLOYEE_QR_PREFIX if prefix is None else prefix
    value = (token or "").strip()
    if prefix and value.upper().startswith(prefix.upper()):
        value = value[len(prefix):].strip()
    if not value:
        raise InvalidCredential("Credential token is empty")
    return value


async def resolve_credential(token: str, directory: IdentityDirectory) -> ResolvedCredential:
    """
    Pure read. CredentialNotFound → caller must not append an event.
    DirectoryUnavailable propagates untouched.
    """
    identifier = extract_identifier(token)
    employee = await directory.lookup_employee(identifier)
    if employee is None:
        logger.warning(f"[SCAN] Credential not found: {identifier!r}")
        raise CredentialNotFound(f"No employee matches credential {identifier!r}")

    logger.info(f"[SCAN] Credential resolved → employee {employee.id} ({employee.name})")
    return ResolvedCredential(
        person_type=PersonType.EMPLOYEE,
        person_id=employee.id,
        person_name=employee.name,
        person_cpf=employee.cpf,
    )
