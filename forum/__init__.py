"""
ForoHub resource services and models
"""

from .auth import AuthService
from .courses import COURSE_CATEGORIES, COURSES, CourseService
from .models import Course, ForumStats, Page, Reply, TokenGrant, TopicDetail, TopicState, TopicSummary
from .replies import REPLIES, ReplyService
from .stats import STATS, StatsService
from .topics import TOPIC, TOPICS, TopicService

__all__ = [
    "AuthService",
    "CourseService",
    "ReplyService",
    "StatsService",
    "TopicService",
    "Course",
    "ForumStats",
    "Page",
    "Reply",
    "TokenGrant",
    "TopicDetail",
    "TopicState",
    "TopicSummary",
    "COURSES",
    "COURSE_CATEGORIES",
    "REPLIES",
    "STATS",
    "TOPIC",
    "TOPICS",
]
