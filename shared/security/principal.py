from dataclasses import dataclass, field

from shared.config import settings

OPERATOR_ROLE = "operator"


@dataclass(frozen=True)
class Principal:
    """The verified caller: a stable user id plus the roles the identity provider granted."""

    user_id: str
    roles: frozenset = field(default_factory=frozenset)

    @property
    def is_operator(self) -> bool:
        return OPERATOR_ROLE in self.roles or self.user_id in settings.OPERATOR_USER_IDS

    @classmethod
    def from_claims(cls, claims: dict) -> "Principal | None":
        user_id = claims.get("sub")
        if not user_id:
            return None
        roles = claims.get("roles") or ()
        if isinstance(roles, str):
            roles = (roles,)
        return cls(user_id=str(user_id), roles=frozenset(roles))
