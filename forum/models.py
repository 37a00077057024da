"""
Forum data models decoded from ForoHub responses.

The server speaks Spanish field names; the models expose English ones. Every
``from_wire`` raises InvalidPayloadError when a successful response does not
have the expected shape.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from core.exceptions import InvalidPayloadError
from session.models import Identity

T = TypeVar("T")


class TopicState(Enum):
    OPEN = "ABIERTO"
    CLOSED = "CERRADO"
    RESOLVED = "RESUELTO"


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class Course:
    id: int
    name: str
    category: str
    description: str = ""

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'Course':
        try:
            return cls(
                id=int(data["id"]),
                name=str(data["nombre"]),
                category=str(data.get("categoria") or ""),
                description=str(data.get("descripcion") or ""),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError("course", str(e), details={"payload": data})


@dataclass(frozen=True)
class TopicSummary:
    """A topic as it appears in listings"""
    id: int
    title: str
    body: str
    created_at: str
    state: TopicState
    author_name: str
    course_name: str
    reply_count: int = 0
    updated_at: Optional[str] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'TopicSummary':
        try:
            return cls(
                id=int(data["id"]),
                title=str(data["titulo"]),
                body=str(data["mensaje"]),
                created_at=str(data.get("fechaCreacion") or ""),
                state=TopicState(data["status"]),
                author_name=str(data.get("autorNombre") or ""),
                course_name=str(data.get("cursoNombre") or ""),
                reply_count=int(data.get("totalRespuestas") or 0),
                updated_at=_optional_str(data.get("fechaActualizacion")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError("topic", str(e), details={"payload": data})


@dataclass(frozen=True)
class Reply:
    id: int
    body: str
    created_at: str
    author: Identity
    is_accepted: bool = False
    updated_at: Optional[str] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'Reply':
        try:
            return cls(
                id=int(data["id"]),
                body=str(data["mensaje"]),
                created_at=str(data.get("fechaCreacion") or ""),
                author=Identity.from_wire(data["autor"]),
                is_accepted=bool(data.get("solucion")),
                updated_at=_optional_str(data.get("fechaActualizacion")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError("reply", str(e), details={"payload": data})


@dataclass(frozen=True)
class TopicDetail:
    """A single topic with its author, course and replies"""
    id: int
    title: str
    body: str
    created_at: str
    state: TopicState
    author: Identity
    course: Course
    replies: Tuple[Reply, ...] = ()
    updated_at: Optional[str] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'TopicDetail':
        try:
            return cls(
                id=int(data["id"]),
                title=str(data["titulo"]),
                body=str(data["mensaje"]),
                created_at=str(data.get("fechaCreacion") or ""),
                state=TopicState(data["status"]),
                author=Identity.from_wire(data["autor"]),
                course=Course.from_wire(data["curso"]),
                replies=tuple(Reply.from_wire(r) for r in data.get("respuestas") or []),
                updated_at=_optional_str(data.get("fechaActualizacion")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError("topic detail", str(e), details={"payload": data})

    @property
    def accepts_replies(self) -> bool:
        return self.state is TopicState.OPEN

    @property
    def author_name(self) -> str:
        return self.author.display_name

    @property
    def course_name(self) -> str:
        return self.course.name

    @property
    def reply_count(self) -> int:
        return len(self.replies)

    @property
    def accepted_reply(self) -> Optional[Reply]:
        for reply in self.replies:
            if reply.is_accepted:
                return reply
        return None


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a server-side paginated collection"""
    items: Tuple[T, ...]
    total_items: int
    total_pages: int
    page_size: int
    page_index: int
    is_first: bool
    is_last: bool

    @classmethod
    def from_wire(cls, data: Dict[str, Any], parse_item: Callable[[Dict[str, Any]], T]) -> 'Page[T]':
        """
        Decode a Spring Data page.

        Args:
            data: {content, totalElements, totalPages, size, number, first, last}
            parse_item: Decoder for each element of content

        Raises:
            InvalidPayloadError: shape is wrong or the page counters are inconsistent
        """
        if not isinstance(data, dict):
            raise InvalidPayloadError("page", "expected an object", details={"payload": data})
        try:
            content = data["content"]
            if not isinstance(content, list):
                raise TypeError("content must be a list")
            page = cls(
                items=tuple(parse_item(item) for item in content),
                total_items=int(data["totalElements"]),
                total_pages=int(data["totalPages"]),
                page_size=int(data["size"]),
                page_index=int(data["number"]),
                is_first=bool(data.get("first", int(data["number"]) == 0)),
                is_last=bool(data.get("last", True)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError("page", str(e), details={"payload": data})

        problem = page._check()
        if problem:
            raise InvalidPayloadError("page", problem, details={
                "number": page.page_index,
                "totalPages": page.total_pages,
                "totalElements": page.total_items,
            })
        return page

    def _check(self) -> Optional[str]:
        if self.total_items < 0 or self.total_pages < 0 or self.page_index < 0:
            return "negative page counters"
        if self.page_size < 1:
            return "page size must be positive"
        if len(self.items) > self.page_size:
            return f"{len(self.items)} items exceed page size {self.page_size}"
        if self.total_items > 0 and self.page_index >= self.total_pages:
            return f"page {self.page_index} is out of range (total pages {self.total_pages})"
        return None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def ids(self) -> List[int]:
        return [item.id for item in self.items]

    def without(self, item_id: int) -> 'Page[T]':
        """Copy of the page minus the item with item_id (same page when absent)"""
        if item_id not in self.ids():
            return self
        return replace(
            self,
            items=tuple(item for item in self.items if item.id != item_id),
            total_items=max(0, self.total_items - 1),
        )


@dataclass(frozen=True)
class TokenGrant:
    """Bearer token issued by /auth/login and /auth/register"""
    token: str
    token_type: str = "Bearer"
    expires_at: Optional[datetime] = None
    identity: Optional[Identity] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'TokenGrant':
        try:
            token = data["token"]
            if not isinstance(token, str) or not token:
                raise ValueError("token must be a non-empty string")
            expires = data.get("expiracion")
            embedded = data.get("usuario")
            return cls(
                token=token,
                token_type=str(data.get("tipo") or "Bearer"),
                # Epoch milliseconds
                expires_at=datetime.fromtimestamp(int(expires) / 1000, tz=timezone.utc) if expires else None,
                identity=Identity.from_wire(embedded) if isinstance(embedded, dict) else None,
            )
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            raise InvalidPayloadError("token", str(e))


@dataclass(frozen=True)
class ForumStats:
    total_topics: int
    total_replies: int
    total_users: int
    total_courses: int
    resolved_topics: int
    open_topics: int

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'ForumStats':
        try:
            return cls(
                total_topics=int(data["totalTopicos"]),
                total_replies=int(data["totalRespuestas"]),
                total_users=int(data["totalUsuarios"]),
                total_courses=int(data["totalCursos"]),
                resolved_topics=int(data["topicosResueltos"]),
                open_topics=int(data["topicosAbiertos"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError("stats", str(e), details={"payload": data})
