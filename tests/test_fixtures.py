"""
Sample data and in-memory fetchers for batchfetch tests.
"""

from typing import Dict, List

USERS: List[Dict] = [
    {"id": 1, "name": "Bob"},
    {"id": 2, "name": "Alice"},
    {"id": 3, "name": "Sally"},
    {"id": 4, "name": "John"},
    {"id": 5, "name": "Tim"},
]

POSTS: List[Dict] = [
    {"id": 1, "title": "Hello", "author_id": 1},
    {"id": 2, "title": "World", "author_id": 1},
    {"id": 3, "title": "Hello", "author_id": 2},
    {"id": 4, "title": "World", "author_id": 2},
]


def users_by_ids(ids) -> List[Dict]:
    return [user for user in USERS if user["id"] in ids]


def posts_by_author_ids(author_ids) -> List[Dict]:
    return [post for post in POSTS if post["author_id"] in author_ids]


def user_index(ids) -> Dict[int, Dict]:
    return {user["id"]: user for user in users_by_ids(ids)}
