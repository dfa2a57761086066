from dataclasses import dataclass

from services.errors import Unauthorized

OWNER = "ADMIN"
CUSTOMER = "CUSTOMER"


@dataclass(frozen=True)
class Credentials:
    account_id: int
    role: str

    @property
    def is_owner(self) -> bool:
        return self.role == OWNER

    @property
    def is_customer(self) -> bool:
        return self.role == CUSTOMER


def credentials_for(user) -> Credentials:
    role = OWNER if user.has_role(OWNER) else CUSTOMER
    return Credentials(account_id=user.id, role=role)


def require_owner(credentials: Credentials):
    if credentials is None or not credentials.is_owner:
        raise Unauthorized("Field owner role required")


def require_customer(credentials: Credentials):
    if credentials is None or not credentials.is_customer:
        raise Unauthorized("Customer role required")
