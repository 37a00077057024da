"""
Shared fixtures: an in-process fake ForoHub server and wired client objects.

The fake keeps its data in memory, speaks the real wire format (Spanish field
names, Spring pages, ErrorResponse bodies) and records every call so tests
can count network round-trips.
"""

import asyncio
import math
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from api import ApiClient
from events import EventBus
from main import ForumClient
from session import SessionPersistence, SessionStore

ANA_EMAIL = "ana@forohub.com"
ANA_PASSWORD = "secret123"
BRUNO_EMAIL = "bruno@forohub.com"
BRUNO_PASSWORD = "hunter22"

PROFILES = {
    "USUARIO": {"id": 1, "nombre": "Usuario", "tipo": "USUARIO", "descripcion": "Usuario estándar"},
    "MODERADOR": {"id": 2, "nombre": "Moderador", "tipo": "MODERADOR", "descripcion": "Modera el foro"},
}


def make_usuario(user_id: int, name: str, email: str, tipo: str = "USUARIO") -> Dict[str, Any]:
    return {
        "id": user_id,
        "nombre": name,
        "correoElectronico": email,
        "fechaCreacion": "2024-01-10T09:00:00",
        "perfil": dict(PROFILES[tipo]),
    }


def error_body(codigo: str, mensaje: str, detalles: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"codigo": codigo, "mensaje": mensaje, "timestamp": "2024-03-01T12:00:00", "detalles": detalles}


class FakeForum:
    """In-memory ForoHub backend"""

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.courses = [
            {"id": 1, "nombre": "Spring Boot", "categoria": "Backend", "descripcion": "APIs REST con Spring"},
            {"id": 2, "nombre": "React", "categoria": "Frontend", "descripcion": "Interfaces con React"},
            {"id": 3, "nombre": "Python", "categoria": "Backend", "descripcion": "Python desde cero"},
        ]
        self.topics: Dict[int, Dict[str, Any]] = {}
        self.next_user_id = 1
        self.next_topic_id = 1
        self.next_reply_id = 1

        # Test controls
        self.calls: List[Tuple[str, str]] = []
        self.forced: Dict[str, Tuple[int, Any]] = {}
        self.delays: Dict[str, float] = {}
        self.embed_identity = False

        self._seed()

    def _seed(self):
        self.add_user("Ana", ANA_EMAIL, ANA_PASSWORD)
        self.add_user("Bruno", BRUNO_EMAIL, BRUNO_PASSWORD, tipo="MODERADOR")

        for i in range(1, 13):
            self.add_topic(
                title=f"{'Java' if i % 2 == 0 else 'Python'} question {i}",
                body=f"Body of topic {i}",
                author_id=1 if i % 2 else 2,
                course_id=(i % 3) + 1,
                status="CERRADO" if i == 3 else "RESUELTO" if i == 5 else "ABIERTO",
            )
        self.add_reply(7, "Try restarting the server", author_id=2)

    # Data helpers

    def add_user(self, name: str, email: str, password: str, tipo: str = "USUARIO") -> Dict[str, Any]:
        usuario = make_usuario(self.next_user_id, name, email, tipo)
        self.next_user_id += 1
        self.users[email] = {"password": password, "usuario": usuario}
        return usuario

    def user_by_id(self, user_id: int) -> Dict[str, Any]:
        for record in self.users.values():
            if record["usuario"]["id"] == user_id:
                return record["usuario"]
        raise KeyError(user_id)

    def course(self, course_id: int) -> Optional[Dict[str, Any]]:
        for course in self.courses:
            if course["id"] == course_id:
                return course
        return None

    def add_topic(self, title: str, body: str, author_id: int, course_id: int, status: str = "ABIERTO") -> Dict[str, Any]:
        topic = {
            "id": self.next_topic_id,
            "titulo": title,
            "mensaje": body,
            "fechaCreacion": f"2024-02-{self.next_topic_id:02d}T10:00:00",
            "fechaActualizacion": None,
            "status": status,
            "autor_id": author_id,
            "curso_id": course_id,
            "respuestas": [],
        }
        self.topics[topic["id"]] = topic
        self.next_topic_id += 1
        return topic

    def add_reply(self, topic_id: int, body: str, author_id: int) -> Dict[str, Any]:
        reply = {
            "id": self.next_reply_id,
            "mensaje": body,
            "fechaCreacion": "2024-03-01T08:00:00",
            "fechaActualizacion": None,
            "autor_id": author_id,
            "solucion": False,
        }
        self.next_reply_id += 1
        self.topics[topic_id]["respuestas"].append(reply)
        return reply

    def find_reply(self, reply_id: int) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
        for topic in self.topics.values():
            for reply in topic["respuestas"]:
                if reply["id"] == reply_id:
                    return topic, reply
        return None, None

    def calls_to(self, method: str, path: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p == path)

    def issue_token(self, email: str) -> Dict[str, Any]:
        token = uuid.uuid4().hex
        self.tokens[token] = email
        grant = {"token": token, "tipo": "Bearer", "expiracion": int(time.time() * 1000) + 86400000}
        if self.embed_identity:
            grant["usuario"] = self.users[email]["usuario"]
        return grant

    # Wire shapes

    def summary(self, topic: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": topic["id"],
            "titulo": topic["titulo"],
            "mensaje": topic["mensaje"],
            "fechaCreacion": topic["fechaCreacion"],
            "status": topic["status"],
            "autorNombre": self.user_by_id(topic["autor_id"])["nombre"],
            "cursoNombre": self.course(topic["curso_id"])["nombre"],
            "totalRespuestas": len(topic["respuestas"]),
        }

    def reply_dto(self, reply: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": reply["id"],
            "mensaje": reply["mensaje"],
            "fechaCreacion": reply["fechaCreacion"],
            "fechaActualizacion": reply["fechaActualizacion"],
            "autor": self.user_by_id(reply["autor_id"]),
            "solucion": reply["solucion"],
        }

    def detail(self, topic: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": topic["id"],
            "titulo": topic["titulo"],
            "mensaje": topic["mensaje"],
            "fechaCreacion": topic["fechaCreacion"],
            "fechaActualizacion": topic["fechaActualizacion"],
            "status": topic["status"],
            "autor": self.user_by_id(topic["autor_id"]),
            "curso": self.course(topic["curso_id"]),
            "respuestas": [self.reply_dto(r) for r in topic["respuestas"]],
        }

    @staticmethod
    def page(request: web.Request, items: List[Dict[str, Any]]) -> web.Response:
        number = int(request.query.get("page", 0))
        size = int(request.query.get("size", 10))
        total = len(items)
        total_pages = math.ceil(total / size)
        content = items[number * size:(number + 1) * size]
        return web.json_response({
            "content": content,
            "totalElements": total,
            "totalPages": total_pages,
            "size": size,
            "number": number,
            "first": number == 0,
            "last": number >= total_pages - 1,
            "numberOfElements": len(content),
            "empty": not content,
        })

    def newest_first(self, topics) -> List[Dict[str, Any]]:
        return [self.summary(t) for t in sorted(topics, key=lambda t: t["id"], reverse=True)]

    def current_user(self, request: web.Request) -> Optional[Dict[str, Any]]:
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return None
        email = self.tokens.get(header[len("Bearer "):])
        return self.users[email]["usuario"] if email else None

    def require_user(self, request: web.Request) -> Dict[str, Any]:
        user = self.current_user(request)
        if user is None:
            raise web.HTTPUnauthorized()
        return user

    # Handlers

    async def login(self, request):
        body = await request.json()
        record = self.users.get(body.get("correoElectronico"))
        if record is None or record["password"] != body.get("contrasena"):
            return web.Response(status=401)
        return web.json_response(self.issue_token(body["correoElectronico"]))

    async def register(self, request):
        body = await request.json()
        if body["correoElectronico"] in self.users:
            return web.Response(status=409)
        self.add_user(body["nombre"], body["correoElectronico"], body["contrasena"])
        return web.json_response(self.issue_token(body["correoElectronico"]), status=201)

    async def validate(self, request):
        self.require_user(request)
        return web.Response(status=200)

    async def me(self, request):
        return web.json_response(self.require_user(request))

    async def list_topics(self, request):
        return self.page(request, self.newest_first(self.topics.values()))

    async def search_topics(self, request):
        query = request.query.get("q", "").lower()
        return self.page(request, self.newest_first(t for t in self.topics.values() if query in t["titulo"].lower()))

    async def topics_by_course(self, request):
        course_id = int(request.match_info["course_id"])
        return self.page(request, self.newest_first(t for t in self.topics.values() if t["curso_id"] == course_id))

    async def my_topics(self, request):
        user = self.require_user(request)
        return self.page(request, self.newest_first(t for t in self.topics.values() if t["autor_id"] == user["id"]))

    async def get_topic(self, request):
        topic = self.topics.get(int(request.match_info["topic_id"]))
        if topic is None:
            return web.json_response(error_body("NOT_FOUND", "Tópico no encontrado"), status=404)
        return web.json_response(self.detail(topic))

    async def create_topic(self, request):
        user = self.require_user(request)
        body = await request.json()
        if not str(body.get("titulo") or "").strip():
            return web.json_response(
                error_body("VALIDATION_ERROR", "Datos de entrada inválidos", {"titulo": "El título es obligatorio"}),
                status=400
            )
        if self.course(body.get("cursoId")) is None:
            return web.json_response(error_body("NOT_FOUND", "Curso no encontrado"), status=404)
        topic = self.add_topic(body["titulo"], body["mensaje"], user["id"], body["cursoId"])
        return web.json_response(self.summary(topic), status=201)

    async def update_topic(self, request):
        user = self.require_user(request)
        topic = self.topics.get(int(request.match_info["topic_id"]))
        if topic is None:
            return web.json_response(error_body("NOT_FOUND", "Tópico no encontrado"), status=404)
        if topic["autor_id"] != user["id"]:
            return web.Response(status=403)
        body = await request.json()
        topic.update(titulo=body["titulo"], mensaje=body["mensaje"], curso_id=body["cursoId"],
                     fechaActualizacion="2024-03-02T10:00:00")
        return web.json_response(self.summary(topic))

    async def delete_topic(self, request):
        user = self.require_user(request)
        topic_id = int(request.match_info["topic_id"])
        topic = self.topics.get(topic_id)
        if topic is None:
            return web.json_response(error_body("NOT_FOUND", "Tópico no encontrado"), status=404)
        if topic["autor_id"] != user["id"] and user["perfil"]["tipo"] == "USUARIO":
            return web.Response(status=403)
        del self.topics[topic_id]
        return web.Response(status=204)

    async def list_courses(self, request):
        return web.json_response(self.courses)

    async def courses_by_category(self, request):
        category = request.match_info["category"]
        return web.json_response([c for c in self.courses if c["categoria"] == category])

    async def search_courses(self, request):
        query = request.query.get("q", "").lower()
        return web.json_response([c for c in self.courses if query in c["nombre"].lower()])

    async def categories(self, request):
        return web.json_response(sorted({c["categoria"] for c in self.courses}))

    async def create_reply(self, request):
        user = self.require_user(request)
        topic = self.topics.get(int(request.match_info["topic_id"]))
        if topic is None:
            return web.json_response(error_body("NOT_FOUND", "Tópico no encontrado"), status=404)
        if topic["status"] != "ABIERTO":
            return web.json_response(error_body("TOPIC_CLOSED", "El tópico no admite respuestas"), status=400)
        body = await request.json()
        reply = self.add_reply(topic["id"], body["mensaje"], user["id"])
        return web.json_response(self.reply_dto(reply), status=201)

    async def update_reply(self, request):
        user = self.require_user(request)
        _, reply = self.find_reply(int(request.match_info["reply_id"]))
        if reply is None:
            return web.json_response(error_body("NOT_FOUND", "Respuesta no encontrada"), status=404)
        if reply["autor_id"] != user["id"]:
            return web.Response(status=403)
        body = await request.json()
        reply.update(mensaje=body["mensaje"], fechaActualizacion="2024-03-02T11:00:00")
        return web.json_response(self.reply_dto(reply))

    async def delete_reply(self, request):
        user = self.require_user(request)
        topic, reply = self.find_reply(int(request.match_info["reply_id"]))
        if reply is None:
            return web.json_response(error_body("NOT_FOUND", "Respuesta no encontrada"), status=404)
        if reply["autor_id"] != user["id"]:
            return web.Response(status=403)
        topic["respuestas"].remove(reply)
        return web.Response(status=204)

    async def mark_solution(self, request):
        user = self.require_user(request)
        topic, reply = self.find_reply(int(request.match_info["reply_id"]))
        if reply is None:
            return web.json_response(error_body("NOT_FOUND", "Respuesta no encontrada"), status=404)
        if topic["autor_id"] != user["id"]:
            return web.Response(status=403)
        for other in topic["respuestas"]:
            other["solucion"] = other is reply
        topic["status"] = "RESUELTO"
        return web.json_response(self.reply_dto(reply))

    async def unmark_solution(self, request):
        user = self.require_user(request)
        topic, reply = self.find_reply(int(request.match_info["reply_id"]))
        if reply is None:
            return web.json_response(error_body("NOT_FOUND", "Respuesta no encontrada"), status=404)
        if topic["autor_id"] != user["id"]:
            return web.Response(status=403)
        reply["solucion"] = False
        topic["status"] = "ABIERTO"
        return web.json_response(self.reply_dto(reply))

    async def my_replies(self, request):
        user = self.require_user(request)
        replies = [
            self.reply_dto(r)
            for t in self.topics.values() for r in t["respuestas"] if r["autor_id"] == user["id"]
        ]
        return self.page(request, replies)

    async def stats(self, request):
        topics = list(self.topics.values())
        return web.json_response({
            "totalTopicos": len(topics),
            "totalRespuestas": sum(len(t["respuestas"]) for t in topics),
            "totalUsuarios": len(self.users),
            "totalCursos": len(self.courses),
            "topicosResueltos": sum(1 for t in topics if t["status"] == "RESUELTO"),
            "topicosAbiertos": sum(1 for t in topics if t["status"] == "ABIERTO"),
        })

    def build_app(self) -> web.Application:
        @web.middleware
        async def controls(request, handler):
            self.calls.append((request.method, request.path))
            delay = self.delays.get(request.path)
            if delay:
                await asyncio.sleep(delay)
            forced = self.forced.get(request.path)
            if forced is not None:
                status, body = forced
                if body is None:
                    return web.Response(status=status)
                if isinstance(body, bytes):
                    return web.Response(status=status, body=body, content_type="text/html", charset="utf-8")
                if isinstance(body, str):
                    return web.Response(status=status, text=body)
                return web.json_response(body, status=status)
            return await handler(request)

        app = web.Application(middlewares=[controls])
        router = app.router
        router.add_post("/auth/login", self.login)
        router.add_post("/auth/register", self.register)
        router.add_post("/auth/validate", self.validate)
        router.add_get("/auth/me", self.me)

        router.add_get("/topicos", self.list_topics)
        router.add_post("/topicos", self.create_topic)
        router.add_get("/topicos/buscar", self.search_topics)
        router.add_get("/topicos/mis-topicos", self.my_topics)
        router.add_get(r"/topicos/curso/{course_id:\d+}", self.topics_by_course)
        router.add_get(r"/topicos/{topic_id:\d+}", self.get_topic)
        router.add_put(r"/topicos/{topic_id:\d+}", self.update_topic)
        router.add_delete(r"/topicos/{topic_id:\d+}", self.delete_topic)

        router.add_get("/cursos", self.list_courses)
        router.add_get("/cursos/buscar", self.search_courses)
        router.add_get("/cursos/categorias", self.categories)
        router.add_get("/cursos/categoria/{category}", self.courses_by_category)

        router.add_post(r"/respuestas/topico/{topic_id:\d+}", self.create_reply)
        router.add_get("/respuestas/mis-respuestas", self.my_replies)
        router.add_put(r"/respuestas/{reply_id:\d+}", self.update_reply)
        router.add_delete(r"/respuestas/{reply_id:\d+}", self.delete_reply)
        router.add_patch(r"/respuestas/{reply_id:\d+}/solucion", self.mark_solution)
        router.add_delete(r"/respuestas/{reply_id:\d+}/solucion", self.unmark_solution)

        router.add_get("/estadisticas", self.stats)
        return app


@pytest.fixture
def forum():
    """Fresh fake backend per test"""
    return FakeForum()


@pytest.fixture
async def forum_server(forum):
    server = TestServer(forum.build_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def base_url(forum_server):
    return str(forum_server.make_url("/")).rstrip("/")


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def persistence(tmp_path):
    return SessionPersistence(str(tmp_path / "storage"))


@pytest.fixture
def session_store(persistence, event_bus):
    return SessionStore(persistence, event_bus)


@pytest.fixture
async def api_client(base_url, session_store, event_bus):
    client = ApiClient(session_store, base_url=base_url, timeout=5, event_bus=event_bus)
    yield client
    await client.close()


@pytest.fixture
async def forum_client(base_url, tmp_path):
    client = ForumClient(base_url=base_url, storage_dir=str(tmp_path / "client"), persist_session=True)
    yield client
    await client.close()


@pytest.fixture
async def signed_in_client(forum_client):
    """ForumClient signed in as Ana (author of the odd-numbered topics)"""
    await forum_client.auth.login(ANA_EMAIL, ANA_PASSWORD)
    return forum_client
