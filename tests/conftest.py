"""Shared fixtures for rule engine tests."""

import os
import random
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))


class FakeChannel:
    def __init__(self, id):
        self.id = id


class FakeMessage:
    """In-memory chat message recording replies and deletes."""

    def __init__(self, content, channel_id=None, fail_reply=False, fail_delete=False):
        self.content = content
        self.channel = FakeChannel(channel_id)
        self.fail_reply = fail_reply
        self.fail_delete = fail_delete
        self.replies = []
        self.delete_calls = 0
        self.deleted = False

    async def reply(self, text):
        if self.fail_reply:
            raise RuntimeError("Missing Permissions")
        self.replies.append(text)

    async def delete(self):
        self.delete_calls += 1
        if self.fail_delete:
            raise RuntimeError("Unknown Message")
        self.deleted = True


class FixedRandom(random.Random):
    """Random source whose integer draws always return the same value."""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def randint(self, a, b):
        return self.value


@pytest.fixture
def make_message():
    return FakeMessage


@pytest.fixture
def fixed_random():
    return FixedRandom
