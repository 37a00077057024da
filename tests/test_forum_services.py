"""
Tests for the forum services against the fake ForoHub server
"""

import pytest

from api import ApplicationError, NotFound, SessionExpired, UnknownError
from core.exceptions import IdentityUnavailableError, InvalidPayloadError
from events import EventTypes
from session import EMPTY_SESSION

from conftest import ANA_EMAIL, ANA_PASSWORD, BRUNO_EMAIL


class TestAuthService:

    async def test_login_resolves_identity_from_server(self, forum_client, forum):
        identity = await forum_client.auth.login(ANA_EMAIL, ANA_PASSWORD)

        assert identity.display_name == "Ana"
        assert forum_client.session_store.is_authenticated
        assert forum_client.session_store.user == identity
        assert forum.calls_to("GET", "/auth/me") == 1

    async def test_login_uses_embedded_identity(self, forum_client, forum):
        forum.embed_identity = True

        identity = await forum_client.auth.login(ANA_EMAIL, ANA_PASSWORD)

        assert identity.email == ANA_EMAIL
        assert forum.calls_to("GET", "/auth/me") == 0

    async def test_bad_password_leaves_session_empty(self, forum_client):
        with pytest.raises(SessionExpired):
            await forum_client.auth.login(ANA_EMAIL, "wrong")

        assert forum_client.session_store.session == EMPTY_SESSION

    async def test_identity_failure_leaves_session_untouched(self, forum_client, forum):
        forum.forced["/auth/me"] = (404, None)

        with pytest.raises(IdentityUnavailableError, match="/auth/me"):
            await forum_client.auth.login(ANA_EMAIL, ANA_PASSWORD)

        assert not forum_client.session_store.is_authenticated

    async def test_malformed_identity_is_never_stored(self, forum_client, forum):
        forum.forced["/auth/me"] = (200, {"id": 1, "nombre": "Ana"})

        with pytest.raises(InvalidPayloadError):
            await forum_client.auth.login(ANA_EMAIL, ANA_PASSWORD)

        assert not forum_client.session_store.is_authenticated

    async def test_register(self, forum_client, forum):
        identity = await forum_client.auth.register("Carla", "carla@forohub.com", "pass1234")

        assert identity.display_name == "Carla"
        assert forum_client.session_store.is_authenticated
        assert "carla@forohub.com" in forum.users

    async def test_register_existing_email(self, forum_client):
        with pytest.raises(UnknownError):
            await forum_client.auth.register("Bruno", BRUNO_EMAIL, "whatever")

        assert not forum_client.session_store.is_authenticated

    async def test_validate_token(self, signed_in_client, forum):
        assert await signed_in_client.auth.validate_token()

        forum.tokens.clear()

        assert not await signed_in_client.auth.validate_token()
        assert not signed_in_client.session_store.is_authenticated

    async def test_validate_without_session(self, forum_client, forum):
        assert not await forum_client.auth.validate_token()
        assert forum.calls_to("POST", "/auth/validate") == 0

    async def test_refresh_identity(self, signed_in_client, forum):
        forum.users[ANA_EMAIL]["usuario"]["nombre"] = "Ana María"

        identity = await signed_in_client.auth.refresh_identity()

        assert identity.display_name == "Ana María"
        assert signed_in_client.session_store.user.display_name == "Ana María"

    async def test_logout_clears_cache(self, signed_in_client):
        await signed_in_client.topics.my_topics()

        signed_in_client.auth.logout()

        assert signed_in_client.cache.keys() == []
        assert not signed_in_client.session_store.is_authenticated


class TestTopicService:

    async def test_list_topics_pages(self, forum_client):
        first = await forum_client.topics.list_topics(0)
        second = await forum_client.topics.list_topics(1)

        assert first.ids() == list(range(12, 2, -1))
        assert second.ids() == [2, 1]
        assert second.is_last

    async def test_search(self, forum_client, forum):
        page = await forum_client.topics.search_topics("java")

        assert page.total_items == 6
        assert all("Java" in t.title for t in page.items)
        assert forum.calls[-1] == ("GET", "/topicos/buscar")

    async def test_blank_search_lists_everything(self, forum_client):
        page = await forum_client.topics.search_topics("   ")

        assert page.total_items == 12

    async def test_topics_by_course(self, forum_client):
        page = await forum_client.topics.topics_by_course(2)

        assert {t.course_name for t in page.items} == {"React"}

    async def test_my_topics_requires_session(self, forum_client):
        with pytest.raises(SessionExpired):
            await forum_client.topics.my_topics()

    async def test_my_topics(self, signed_in_client):
        page = await signed_in_client.topics.my_topics()

        assert {t.author_name for t in page.items} == {"Ana"}

    async def test_get_topic(self, forum_client):
        topic = await forum_client.topics.get_topic(7)

        assert topic.title == "Python question 7"
        assert topic.replies[0].body == "Try restarting the server"

    async def test_get_missing_topic(self, forum_client):
        with pytest.raises(NotFound):
            await forum_client.topics.get_topic(404)

    async def test_keys_separate_scopes(self, forum_client):
        topics = forum_client.topics

        assert topics.page_key("all", 0) != topics.page_key("mine", 0)
        assert topics.page_key("search", 0, search="java") != topics.page_key("search", 0, search="python")
        assert topics.page_key("search", 0, search=" java ") == topics.page_key("search", 0, search="java")
        assert topics.page_key("all", 0).kind == topics.page_key("course", 0, course_id=1).kind == "topics"

    @pytest.mark.parametrize("kwargs", [
        {"scope": "everything"},
        {"scope": "search"},
        {"scope": "course"},
        {"scope": "all", "page": -1},
    ])
    async def test_invalid_keys(self, forum_client, kwargs):
        with pytest.raises(ValueError):
            forum_client.topics.page_key(**kwargs)

    async def test_out_of_range_page(self, forum_client):
        with pytest.raises(InvalidPayloadError):
            await forum_client.topics.list_topics(7)

    async def test_create_rejected_with_server_message(self, signed_in_client):
        with pytest.raises(ApplicationError) as excinfo:
            await signed_in_client.topics.create_topic("", "body", 1)

        assert excinfo.value.details == {"titulo": "El título es obligatorio"}


class TestCourseService:

    async def test_list_and_cache(self, forum_client, forum):
        courses = await forum_client.courses.list_courses()
        await forum_client.courses.list_courses()

        assert [c.name for c in courses] == ["Spring Boot", "React", "Python"]
        assert forum.calls_to("GET", "/cursos") == 1

    async def test_by_category(self, forum_client):
        courses = await forum_client.courses.courses_by_category("Backend")

        assert {c.name for c in courses} == {"Spring Boot", "Python"}

    async def test_search(self, forum_client):
        courses = await forum_client.courses.search_courses("rea")

        assert [c.name for c in courses] == ["React"]

    async def test_categories(self, forum_client):
        assert await forum_client.courses.categories() == ["Backend", "Frontend"]


class TestReplyAndStatsServices:

    async def test_my_replies(self, forum_client, forum):
        await forum_client.auth.login(BRUNO_EMAIL, "hunter22")

        page = await forum_client.replies.my_replies()

        assert page.total_items == 1
        assert page.items[0].body == "Try restarting the server"

    async def test_stats(self, forum_client):
        stats = await forum_client.stats.get_stats()

        assert stats.total_topics == 12
        assert stats.resolved_topics == 1
        assert stats.open_topics == 10

    async def test_notices_published_for_failed_reads(self, forum_client):
        seen = []
        forum_client.event_bus.on(EventTypes.NOTICE_ERROR, seen.append)

        with pytest.raises(NotFound):
            await forum_client.topics.get_topic(999)

        assert len(seen) == 1
        assert seen[0].data["message"] == "Resource not found."
