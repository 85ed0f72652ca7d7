"""
Demo data for local runs.

Creates the demo user, one contact per channel with hand-picked base
priorities, six conversations and ten messages spread over the last two
days, then scores every conversation from its latest message.
"""

from datetime import datetime, timedelta
from typing import Any

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.inbox_domain import User, utc_now
from app.services.entity_store import EntityStore
from app.services.priority_service import calculate_priority

logger = get_logger(__name__)

DEMO_CONTACTS: list[dict[str, Any]] = [
    {
        "key": "ceo",
        "email": "sarah.chen@acme.com",
        "name": "Sarah Chen (CEO)",
        "channel": "email",
        "priority": 90,
    },
    {
        "key": "teammate",
        "email": "mike.johnson@team.com",
        "name": "Mike Johnson",
        "channel": "slack",
        "priority": 60,
    },
    {
        "key": "client",
        "email": "alex.rivera@client.io",
        "name": "Alex Rivera",
        "channel": "whatsapp",
        "priority": 75,
    },
    {
        "key": "recruiter",
        "email": "recruiter@bigtech.com",
        "name": "Jennifer Wu",
        "channel": "linkedin",
        "priority": 40,
    },
]

# Each message: (external_id, hours_ago, content, metadata)
DEMO_CONVERSATIONS: list[dict[str, Any]] = [
    {
        "external_id": "thread-001",
        "contact": "ceo",
        "channel": "email",
        "title": "Q4 Board Presentation - URGENT Review Needed",
        "messages": [
            (
                "msg-001",
                1,
                "Hi, I need you to review the Q4 board presentation ASAP. The board meeting "
                "is tomorrow and this is critical. Please prioritize this immediately.",
                {"importance": "high", "hasAttachments": True},
            ),
            (
                "msg-002",
                0.5,
                "Just following up - this is urgent. Can you confirm you received this?",
                {"importance": "high", "isReply": True},
            ),
        ],
    },
    {
        "external_id": "dm-mike-001",
        "contact": "teammate",
        "channel": "slack",
        "title": "DM with Mike Johnson",
        "messages": [
            (
                "msg-003",
                2,
                "Hey! Quick question about the API integration. Are we still using v2 or "
                "have we migrated to v3?",
                {"isDirectMessage": True},
            ),
            (
                "msg-004",
                1.5,
                "Also, the client is asking about the timeline. Can you give me an update "
                "when you get a chance?",
                {"isDirectMessage": True},
            ),
        ],
    },
    {
        "external_id": "wa-alex-001",
        "contact": "client",
        "channel": "whatsapp",
        "title": "Alex Rivera",
        "messages": [
            (
                "msg-005",
                3,
                "Hi! Just wanted to check on the project status. We have a deadline coming "
                "up and need to make sure everything is on track.",
                {"messageType": "text"},
            ),
            (
                "msg-006",
                2.5,
                "Also, can we schedule a call for this week? Its important we align on "
                "next steps.",
                {"messageType": "text"},
            ),
        ],
    },
    {
        "external_id": "li-jennifer-001",
        "contact": "recruiter",
        "channel": "linkedin",
        "title": "Jennifer Wu - BigTech Opportunity",
        "messages": [
            (
                "msg-007",
                24,
                "Hi! I came across your profile and I think you would be a great fit for a "
                "Senior Engineer role at BigTech. Would you be interested in learning more?",
                {
                    "connectionDegree": 2,
                    "isInMail": True,
                    "profileHeadline": "Tech Recruiter at BigTech",
                },
            ),
        ],
    },
    {
        "external_id": "thread-002",
        "contact": "ceo",
        "channel": "email",
        "title": "Weekly Team Sync Notes",
        "messages": [
            (
                "msg-008",
                48,
                "Hi team, here are the notes from our weekly sync. Please review and let me "
                "know if I missed anything. No rush on this.",
                {"importance": "normal"},
            ),
        ],
    },
    {
        "external_id": "channel-eng-001",
        "contact": "teammate",
        "channel": "slack",
        "title": "#engineering",
        "messages": [
            (
                "msg-009",
                12,
                "Has anyone seen the new TypeScript 5.4 features? Looks like they added "
                "some cool stuff for type inference.",
                {"channelName": "engineering", "isDirectMessage": False},
            ),
            (
                "msg-010",
                10,
                "@demo-user what do you think about migrating our codebase?",
                {
                    "channelName": "engineering",
                    "isDirectMessage": False,
                    "mentions": ["demo-user"],
                },
            ),
        ],
    },
]


def seed_demo_data(store: EntityStore, now: datetime | None = None) -> User:
    """
    Load the demo dataset into the store.

    Args:
        store: Target store (expected to be empty)
        now: Reference time for message offsets

    Returns:
        The demo user
    """
    now = now or utc_now()
    user = store.get_user(settings.DEMO_USER_ID) or store.create_user(
        email=settings.DEMO_USER_EMAIL, name="Demo User", user_id=settings.DEMO_USER_ID
    )

    contacts = {}
    for entry in DEMO_CONTACTS:
        contacts[entry["key"]] = store.find_or_create_contact(
            user_id=user.id,
            email=entry["email"],
            name=entry["name"],
            channel=entry["channel"],
            priority=entry["priority"],
        )

    for entry in DEMO_CONVERSATIONS:
        conversation, _ = store.find_or_create_conversation(
            user_id=user.id,
            contact_id=contacts[entry["contact"]].id,
            external_id=entry["external_id"],
            channel=entry["channel"],
            title=entry["title"],
        )
        for external_id, hours_ago, content, metadata in entry["messages"]:
            if store.find_message_by_external_id(external_id):
                continue
            store.create_message(
                conversation_id=conversation.id,
                external_id=external_id,
                channel=entry["channel"],
                content=content,
                metadata=metadata,
                created_at=now - timedelta(hours=hours_ago),
            )

    store.recalculate_priorities(lambda context: calculate_priority(context, now))
    log_startup_summary(store, user)
    return user


def log_startup_summary(store: EntityStore, user: User, top: int = 3) -> None:
    """Log what was seeded and the highest-priority conversations."""
    conversations, _ = store.get_conversations_for_user(user.id, limit=top)
    top_conversations = []
    for conversation in conversations:
        contact = store.get_contact(conversation.contact_id)
        top_conversations.append(
            {
                "priority": conversation.priority,
                "title": conversation.title,
                "channel": conversation.channel,
                "contact": contact.name if contact else "Unknown",
            }
        )

    logger.info(
        "Demo data seeded",
        user_id=user.id,
        **store.stats(),
        top_conversations=top_conversations,
    )
