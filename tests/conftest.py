"""
Pytest configuration and shared fixtures for Elaina tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from elaina.database.db_connection import ConnectionManager  # noqa: E402
from elaina.database.db_schema import SchemaManager  # noqa: E402
from elaina.datatypes.chat_datatypes import AttachmentKind, ChatID, UserID  # noqa: E402
from elaina.datatypes.envelope_datatypes import AttachmentRef, MessageEnvelope, QuotedMessage  # noqa: E402
from elaina.routing.matcher import TriggerMatcher  # noqa: E402
from elaina.transport.ports import GroupInfo  # noqa: E402
from elaina.util.errors import TransportError  # noqa: E402

GROUP_ID = "9000"
CHANNEL_ID = "9001"


class FakeTransport:
    """In-memory ChatTransport that records every call."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.deleted: list[tuple[str, str]] = []
        self.removed: list[tuple[str, str, str]] = []
        self.downloads: list[AttachmentRef] = []
        self.admins: set[str] = set()
        self.groups: dict[str, GroupInfo] = {}
        self.files: dict[str, bytes] = {}
        self.fail_send = False
        self.fail_remove = False
        self.fail_download = False

    async def send_text(self, chat_id, text, *, reply_to=None, mentions=()):
        if self.fail_send:
            raise TransportError("send", "offline")
        self.sent.append({"chat_id": chat_id, "text": text, "reply_to": reply_to, "mentions": tuple(mentions)})

    async def download(self, ref):
        self.downloads.append(ref)
        if self.fail_download or ref.url not in self.files:
            raise TransportError("download", ref.url)
        return self.files[ref.url]

    async def group_info(self, group_id):
        if group_id not in self.groups:
            raise TransportError("fetch guild", group_id)
        return self.groups[group_id]

    async def remove_member(self, group_id, user_id, reason=""):
        if self.fail_remove:
            raise TransportError("kick", "missing permissions")
        self.removed.append((group_id, str(user_id), reason))

    async def delete_message(self, chat_id, message_id):
        self.deleted.append((str(chat_id), message_id))

    def mention(self, user_id):
        return f"<@{user_id}>"

    async def is_admin(self, group_id, user_id):
        return str(user_id) in self.admins

    @property
    def texts(self) -> list[str]:
        return [entry["text"] for entry in self.sent]


_message_counter = 0


def make_envelope(
    text: str = "",
    *,
    group: bool = True,
    sender: str = "42",
    message_id: str | None = None,
    trigger_word: str = "elaina",
    attachments: tuple[AttachmentRef, ...] = (),
    quoted: QuotedMessage | None = None,
    mentions: tuple[str, ...] = (),
    is_owner: bool = False,
    is_from_bot: bool = False,
    has_trigger: bool | None = None,
) -> MessageEnvelope:
    """Build an envelope the way ``extract_envelope`` would for ``text``."""
    global _message_counter
    _message_counter += 1
    match = TriggerMatcher(trigger_word).classify(text)
    return MessageEnvelope(
        message_id=message_id or f"m{_message_counter}",
        chat_id=ChatID.group(CHANNEL_ID, GROUP_ID) if group else ChatID.direct(sender),
        sender_id=UserID(sender),
        raw_text=text,
        sender_name="Tester",
        is_command=match.is_command,
        command=match.command,
        command_args=match.args,
        has_trigger=match.has_trigger if has_trigger is None else has_trigger,
        attachment_kind=attachments[0].kind if attachments else AttachmentKind.NONE,
        attachments=attachments,
        quoted=quoted,
        mentions=tuple(UserID(m) for m in mentions),
        is_owner=is_owner,
        is_from_bot=is_from_bot,
    )


@pytest.fixture
def transport() -> FakeTransport:
    fake = FakeTransport()
    fake.groups[GROUP_ID] = GroupInfo(
        group_id=GROUP_ID,
        name="Test Group",
        description="1. Be kind\n2. No spam\n\n3. No NSFW",
        members=[UserID("42"), UserID("43"), UserID("44")],
        admin_ids={UserID("1")},
    )
    fake.admins.add("1")
    return fake


@pytest.fixture
async def connection(tmp_path: Path):
    """An open ConnectionManager on a fresh database with the full schema."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "test.db")
    await SchemaManager.initialize_schema(manager.connection)
    yield manager
    await manager.close()
