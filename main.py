#!/usr/bin/env python3
"""
ForoHub client - composes the session, API, cache and mutation layers and
exposes them through a small command-line interface
"""

import argparse
import asyncio
import getpass
import sys
from typing import Any, Dict, List, Optional

from api import ApiClient, ApiError
from cache import QueryObserver, ResourceQueryCache
from config import API_CONFIG, CACHE_CONFIG, LOGGING_CONFIG, SESSION_CONFIG
from core.config_validator import ConfigValidationError, validate_startup_config
from core.exceptions import ForumClientError
from core.logging_config import get_logger, setup_logging
from events import EventBus, EventTypes, SystemEvent
from forum import AuthService, CourseService, Page, ReplyService, StatsService, TopicDetail, TopicService
from mutations import MutationCoordinator, MutationOutcome
from session import SessionPersistence, SessionStore


class ForumClient:
    """Owns one instance of every service for the life of the process"""

    def __init__(self,
                 base_url: Optional[str] = None,
                 storage_dir: Optional[str] = None,
                 persist_session: Optional[bool] = None,
                 event_bus: Optional[EventBus] = None):
        self.logger = get_logger(__name__)
        self.event_bus = event_bus or EventBus()

        if persist_session is None:
            persist_session = SESSION_CONFIG["persistence_enabled"]
        persistence = None
        if persist_session:
            persistence = SessionPersistence(
                storage_dir or SESSION_CONFIG["storage_dir"],
                SESSION_CONFIG["storage_key"]
            )

        self.session_store = SessionStore(persistence, self.event_bus)
        self.api = ApiClient(self.session_store, base_url=base_url or API_CONFIG["base_url"],
                             event_bus=self.event_bus)
        self.cache = ResourceQueryCache(max_age=CACHE_CONFIG["max_age_seconds"], event_bus=self.event_bus)

        self.auth = AuthService(self.api, self.session_store)
        self.topics = TopicService(self.api, self.cache)
        self.courses = CourseService(self.api, self.cache)
        self.replies = ReplyService(self.api, self.cache)
        self.stats = StatsService(self.api, self.cache)
        self.mutations = MutationCoordinator(self.cache, self.topics, self.replies, self.event_bus)

        # Cached reads belong to the user who made them
        self.event_bus.on(EventTypes.SESSION_LOGOUT, self._on_session_changed)
        self.event_bus.on(EventTypes.SESSION_LOGIN, self._on_session_changed)

    def _on_session_changed(self, event: SystemEvent):
        self.logger.debug(f"Clearing query cache after {event.type}")
        self.cache.clear()

    def observer(self) -> QueryObserver:
        """New display binding for one view"""
        return QueryObserver(self.cache, keep_previous_data=CACHE_CONFIG["keep_previous_data"])

    async def close(self):
        await self.api.close()

    async def __aenter__(self) -> 'ForumClient':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "authenticated": self.session_store.is_authenticated,
            "api": self.api.get_stats(),
            "cache": self.cache.get_stats(),
            "mutations": self.mutations.get_stats(),
            "events": self.event_bus.get_stats(),
        }


def print_notice(event: SystemEvent):
    prefix = "✔" if event.type == EventTypes.NOTICE_SUCCESS else "✖"
    print(f"{prefix} {event.data.get('message')}")


def print_topic_page(page: Page):
    if not page.items:
        print("No topics found.")
        return
    for topic in page.items:
        print(f"[{topic.id:>4}] {topic.title}  ({topic.state.name.lower()}, {topic.reply_count} replies)")
        print(f"       {topic.author_name} in {topic.course_name}")
    print(f"Page {page.page_index + 1} of {max(page.total_pages, 1)} ({page.total_items} topics)")


def print_topic(topic: TopicDetail):
    print(f"#{topic.id} {topic.title} [{topic.state.name.lower()}]")
    print(f"by {topic.author_name} in {topic.course_name} on {topic.created_at}")
    print()
    print(topic.body)
    for reply in topic.replies:
        marker = " (solution)" if reply.is_accepted else ""
        print()
        print(f"  reply {reply.id} by {reply.author.display_name}{marker}")
        print(f"  {reply.body}")


def report(outcome: MutationOutcome) -> int:
    return 0 if outcome.ok else 1


async def run_command(client: ForumClient, args: argparse.Namespace) -> int:
    command = args.command

    if command == "login":
        password = args.password or getpass.getpass("Password: ")
        identity = await client.auth.login(args.email, password)
        print(f"Signed in as {identity.display_name} <{identity.email}>")

    elif command == "register":
        password = args.password or getpass.getpass("Password: ")
        identity = await client.auth.register(args.name, args.email, password)
        print(f"Welcome, {identity.display_name}")

    elif command == "logout":
        client.auth.logout()
        print("Signed out")

    elif command == "whoami":
        user = client.session_store.user
        if user is None:
            print("Not signed in")
            return 1
        if args.validate and not await client.auth.validate_token():
            return 1
        print(f"{user.display_name} <{user.email}> ({user.role.kind.name.lower()})")

    elif command == "topics":
        if args.mine:
            page = await client.topics.my_topics(args.page, args.size)
        elif args.course is not None:
            page = await client.topics.topics_by_course(args.course, args.page, args.size)
        elif args.search:
            page = await client.topics.search_topics(args.search, args.page, args.size)
        else:
            page = await client.topics.list_topics(args.page, args.size)
        print_topic_page(page)

    elif command == "topic":
        print_topic(await client.topics.get_topic(args.topic_id))

    elif command == "courses":
        if args.category:
            courses = await client.courses.courses_by_category(args.category)
        elif args.search:
            courses = await client.courses.search_courses(args.search)
        else:
            courses = await client.courses.list_courses()
        for course in courses:
            print(f"[{course.id:>3}] {course.name} ({course.category})")

    elif command == "categories":
        for name in await client.courses.categories():
            print(name)

    elif command == "stats":
        stats = await client.stats.get_stats()
        print(f"Topics:  {stats.total_topics} ({stats.open_topics} open, {stats.resolved_topics} resolved)")
        print(f"Replies: {stats.total_replies}")
        print(f"Users:   {stats.total_users}")
        print(f"Courses: {stats.total_courses}")

    elif command == "create-topic":
        outcome = await client.mutations.create_topic(args.title, args.message, args.course)
        if outcome.ok:
            print(f"Created topic {outcome.data.id}")
        return report(outcome)

    elif command == "delete-topic":
        return report(await client.mutations.delete_topic(args.topic_id))

    elif command == "reply":
        return report(await client.mutations.create_reply(args.topic_id, args.message))

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forohub",
        description="ForoHub command-line client",
        epilog="Signing in needs the user profile. If the login response does not include it, the "
               "server must expose an endpoint returning the signed-in user at FOROHUB_IDENTITY_PATH "
               f"(currently {API_CONFIG['identity_path']})."
    )
    parser.add_argument("--api-url", help=f"API root (default {API_CONFIG['base_url']})")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Sign in")
    login.add_argument("email")
    login.add_argument("--password")

    register = commands.add_parser("register", help="Create an account and sign in")
    register.add_argument("name")
    register.add_argument("email")
    register.add_argument("--password")

    commands.add_parser("logout", help="Sign out")

    whoami = commands.add_parser("whoami", help="Show the signed-in user")
    whoami.add_argument("--validate", action="store_true", help="Check the token with the server")

    topics = commands.add_parser("topics", help="List topics")
    topics.add_argument("--page", type=int, default=0)
    topics.add_argument("--size", type=int)
    topics.add_argument("--search")
    topics.add_argument("--course", type=int)
    topics.add_argument("--mine", action="store_true")

    topic = commands.add_parser("topic", help="Show one topic with its replies")
    topic.add_argument("topic_id", type=int)

    courses = commands.add_parser("courses", help="List courses")
    courses.add_argument("--category")
    courses.add_argument("--search")

    commands.add_parser("categories", help="List course categories")
    commands.add_parser("stats", help="Show forum statistics")

    create = commands.add_parser("create-topic", help="Open a new topic")
    create.add_argument("--title", required=True)
    create.add_argument("--message", required=True)
    create.add_argument("--course", type=int, required=True)

    delete = commands.add_parser("delete-topic", help="Delete one of your topics")
    delete.add_argument("topic_id", type=int)

    reply = commands.add_parser("reply", help="Reply to an open topic")
    reply.add_argument("topic_id", type=int)
    reply.add_argument("message")

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = get_logger(__name__)

    async with ForumClient(base_url=args.api_url) as client:
        client.event_bus.on(EventTypes.NOTICE_ERROR, print_notice)
        client.event_bus.on(EventTypes.NOTICE_SUCCESS, print_notice)

        try:
            return await run_command(client, args)
        except ApiError as e:
            # Already reported through the notice listener
            logger.debug(f"{args.command} failed: {e.kind.value}")
            return 1
        except ForumClientError as e:
            print(f"✖ {e}")
            return 1


def cli():
    # Validate configuration first (before logging setup)
    try:
        validate_startup_config()
    except ConfigValidationError as e:
        print(f"❌ Configuration validation failed: {e}")
        print("Please fix the configuration errors and try again.")
        sys.exit(1)

    setup_logging(LOGGING_CONFIG)

    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
