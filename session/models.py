"""
Session and identity models
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

from core.exceptions import InvalidPayloadError


class RoleKind(Enum):
    """Profile kinds known to the server (values are the wire names)"""
    USER = "USUARIO"
    MODERATOR = "MODERADOR"
    ADMIN = "ADMINISTRADOR"


@dataclass(frozen=True)
class Role:
    id: int
    name: str
    kind: RoleKind
    description: str = ""


@dataclass(frozen=True)
class Identity:
    """Profile of the authenticated user"""
    id: int
    display_name: str
    email: str
    created_at: str
    role: Role

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'Identity':
        """Build an Identity from the server's UsuarioDTO shape"""
        try:
            profile = data["perfil"]
            return cls(
                id=int(data["id"]),
                display_name=str(data["nombre"]),
                email=str(data["correoElectronico"]),
                created_at=str(data.get("fechaCreacion") or ""),
                role=Role(
                    id=int(profile["id"]),
                    name=str(profile["nombre"]),
                    kind=RoleKind(profile["tipo"]),
                    description=str(profile.get("descripcion") or ""),
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError("identity", str(e), details={"payload": data})

    def to_record(self) -> Dict[str, Any]:
        """Serialize for the persisted session record"""
        return {
            "id": self.id,
            "displayName": self.display_name,
            "email": self.email,
            "createdAt": self.created_at,
            "role": {
                "id": self.role.id,
                "name": self.role.name,
                "kind": self.role.kind.name,
                "description": self.role.description,
            },
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Identity':
        """Inverse of to_record(); raises on any unexpected shape"""
        role = record["role"]
        if not isinstance(record["id"], int) or not isinstance(role["id"], int):
            raise ValueError("identity ids must be integers")
        if not isinstance(record["email"], str) or not isinstance(record["displayName"], str):
            raise ValueError("identity name and email must be strings")
        return cls(
            id=record["id"],
            display_name=record["displayName"],
            email=record["email"],
            created_at=str(record.get("createdAt") or ""),
            role=Role(
                id=role["id"],
                name=str(role["name"]),
                kind=RoleKind[role["kind"]],
                description=str(role.get("description") or ""),
            ),
        )

    @property
    def is_moderator(self) -> bool:
        return self.role.kind in (RoleKind.MODERATOR, RoleKind.ADMIN)


@dataclass(frozen=True)
class Session:
    """
    Who is logged in and with what credential.

    Sessions are values: every change produces a new Session, and
    is_authenticated is derived so it can never disagree with its fields.
    """
    user: Optional[Identity] = None
    credential: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.credential is not None and self.user is not None

    def with_identity(self, identity: Identity) -> 'Session':
        return replace(self, user=identity)


EMPTY_SESSION = Session()
