"""
Add messages to a running inbox engine through its HTTP API.

Any field not given on the command line is filled with generated data, so
the quickest way to watch the inbox reorder is:

    inbox-add-message email --user user-demo
    inbox-add-message slack --user user-demo --dm
    inbox-add-message linkedin --user user-demo --degree 1 --content "Urgent: call me"

Reusing --conv appends to an existing conversation instead of starting one.
"""

import random
import uuid
from datetime import UTC, datetime
from typing import Any

import click
import httpx

from app.models.domain.inbox_domain import CHANNELS

DEFAULT_URL = "http://localhost:8000"

FIRST_NAMES = ["Alice", "Bruno", "Chen", "Dana", "Emeka", "Farah", "Goran", "Hana", "Ivan", "Julia"]
LAST_NAMES = ["Okafor", "Lindqvist", "Moreau", "Tanaka", "Silva", "Novak", "Haddad", "Kowalski"]

TOPICS = ["the Q3 roadmap", "the pricing page", "onboarding flow", "the API migration", "our launch"]
PRODUCTS = ["analytics dashboard", "mobile app", "billing service", "search index"]
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
BRANCHES = ["feature/inbox-filters", "fix/login-timeout", "chore/deps-bump", "feature/sse-retry"]
JOB_TITLES = ["Staff Engineer", "Engineering Manager", "Head of Platform", "Product Lead"]
COMPANIES = ["Northwind", "Globex", "Initech", "Umbrella Labs", "Stark Analytics"]

SENTENCES = [
    "Let me know what you think when you get a chance.",
    "I put together a few notes on this.",
    "Can we find some time this week to go over it?",
    "The numbers look better than last month.",
    "I think we are close, just a couple of open questions left.",
    "Happy to jump on a call if that is easier.",
]

EMAIL_SUBJECTS = [
    lambda rng: f"Re: {rng.choice(TOPICS)}",
    lambda rng: f"Quick question about the {rng.choice(PRODUCTS)}",
    lambda rng: f"Meeting follow-up: {rng.choice(WEEKDAYS)}",
    lambda rng: f"Urgent: review needed for {rng.choice(TOPICS)}",
    lambda rng: f"FYI - {rng.choice(PRODUCTS)} update",
]

SLACK_MESSAGES = [
    lambda rng: f"Hey! {rng.choice(SENTENCES)}",
    lambda rng: f"Quick question - is {rng.choice(TOPICS)} still on track?",
    lambda rng: f"Just pushed a fix for the {rng.choice(PRODUCTS)}",
    lambda rng: f"Can you review the PR for {rng.choice(BRANCHES)}?",
    lambda rng: rng.choice(SENTENCES),
]

WHATSAPP_MESSAGES = [
    lambda rng: f"Hey! {rng.choice(SENTENCES)}",
    lambda rng: rng.choice(SENTENCES),
    lambda rng: "Call me when you can",
    lambda rng: f"Running {rng.randint(5, 20)} mins late",
]

LINKEDIN_MESSAGES = [
    lambda rng: "Hi! I came across your profile and was impressed by your experience.",
    lambda rng: (
        f"I have an exciting {rng.choice(JOB_TITLES)} opportunity at "
        f"{rng.choice(COMPANIES)} that might interest you."
    ),
    lambda rng: f"Would love to connect and discuss {rng.choice(TOPICS)}.",
]


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


def generate_sender(rng: random.Random, name: str | None = None, email: str | None = None):
    """Fill in a sender name and email, deriving the email from the name."""
    name = name or f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"
    if not email:
        parts = name.lower().split()
        email = f"{'.'.join(parts[:2])}@example.com"
    return name, email


def generate_phone(rng: random.Random) -> str:
    return f"+1 {rng.randint(200, 999)} {rng.randint(200, 999)} {rng.randint(1000, 9999)}"


def build_payload(channel: str, options: dict[str, Any], rng: random.Random | None = None) -> dict:
    """
    Build the POST body for /api/messages/<channel>.

    Args:
        channel: One of email, slack, whatsapp, linkedin
        options: Parsed CLI options; None values are generated
        rng: Random source for generated fields

    Returns:
        JSON-serializable request body
    """
    rng = rng or random.Random()
    name, email = generate_sender(rng, options.get("name"), options.get("sender_email"))

    payload: dict[str, Any] = {
        "userId": options["user"],
        "externalMessageId": f"{channel}-msg-{_short_id()}",
        "externalConversationId": options.get("conv") or f"{channel}-conv-{_short_id()}",
        "receivedAt": options.get("time") or datetime.now(UTC).isoformat(),
    }

    if channel == "email":
        payload.update(
            {
                "from": {"email": email, "name": name},
                "subject": options.get("subject") or rng.choice(EMAIL_SUBJECTS)(rng),
                "body": options.get("body") or " ".join(rng.sample(SENTENCES, 3)),
                "metadata": {"importance": options.get("importance") or "normal"},
            }
        )
    elif channel == "slack":
        metadata: dict[str, Any] = {"isDirectMessage": bool(options.get("dm"))}
        if options.get("slack_channel"):
            metadata["channelName"] = options["slack_channel"]
        payload.update(
            {
                "from": {
                    "email": email,
                    "name": name,
                    "slackUserId": f"U{uuid.uuid4().hex[:10].upper()}",
                },
                "content": options.get("content") or rng.choice(SLACK_MESSAGES)(rng),
                "metadata": metadata,
            }
        )
    elif channel == "whatsapp":
        payload.update(
            {
                "from": {
                    "email": email,
                    "name": name,
                    "phone": options.get("phone") or generate_phone(rng),
                },
                "content": options.get("content") or rng.choice(WHATSAPP_MESSAGES)(rng),
                "metadata": {"messageType": "text", "isGroupChat": bool(options.get("group"))},
            }
        )
    elif channel == "linkedin":
        handle = name.lower().replace(" ", "-")
        payload.update(
            {
                "from": {
                    "email": email,
                    "name": name,
                    "linkedinUrl": options.get("linkedin") or f"https://linkedin.com/in/{handle}",
                },
                "content": options.get("content") or rng.choice(LINKEDIN_MESSAGES)(rng),
                "metadata": {
                    "connectionDegree": int(options.get("degree") or 2),
                    "isInMail": bool(options.get("inmail")),
                },
            }
        )
    else:
        raise ValueError(f"Unknown channel '{channel}'. Available channels: {', '.join(CHANNELS)}")

    return payload


def send_message(client: httpx.Client, base_url: str, channel: str, payload: dict) -> dict:
    """
    POST a message body and return the decoded response.

    Raises:
        click.ClickException: The API rejected the message
    """
    response = client.post(f"{base_url.rstrip('/')}/api/messages/{channel}", json=payload)
    try:
        data = response.json()
    except ValueError:
        data = {}
    if response.is_success:
        return data

    error = data.get("error", {}) if isinstance(data, dict) else {}
    code = error.get("code", response.status_code)
    raise click.ClickException(f"{code}: {error.get('message', response.reason_phrase)}")


@click.command()
@click.argument("channel", type=click.Choice(list(CHANNELS)))
@click.option("--user", required=True, help="User ID that owns the inbox")
@click.option("--from", "sender_email", help="Sender email (generated if omitted)")
@click.option("--name", help="Sender name (generated if omitted)")
@click.option("--conv", help="Existing external conversation ID (new one if omitted)")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="API base URL")
@click.option("--time", help="Message timestamp, ISO 8601 (default: now)")
@click.option("--subject", help="Email subject")
@click.option("--body", help="Email body")
@click.option(
    "--importance",
    type=click.Choice(["low", "normal", "high"]),
    default="normal",
    show_default=True,
    help="Email importance",
)
@click.option("--content", help="Message text for slack, whatsapp and linkedin")
@click.option("--dm", is_flag=True, help="Slack: direct message")
@click.option("--channel", "slack_channel", help="Slack: channel name")
@click.option("--phone", help="WhatsApp: sender phone number")
@click.option("--group", is_flag=True, help="WhatsApp: group chat")
@click.option("--linkedin", help="LinkedIn: sender profile URL")
@click.option(
    "--degree",
    type=click.Choice(["1", "2", "3"]),
    default="2",
    show_default=True,
    help="LinkedIn: connection degree",
)
@click.option("--inmail", is_flag=True, help="LinkedIn: InMail")
def add_message(channel, url, **options):
    """Add a CHANNEL message (email, slack, whatsapp, linkedin) to the inbox."""
    payload = build_payload(channel, options)

    try:
        with httpx.Client(timeout=10.0) as client:
            data = send_message(client, url, channel, payload)
    except httpx.HTTPError as e:
        raise click.ClickException(f"{e} (is the server running at {url}?)") from e

    click.secho("✓ ", fg="green", nl=False)
    click.echo(f"Created: conv={data['conversationId']} priority={data['priority']}")


def main() -> None:
    """CLI entrypoint."""
    add_message(prog_name="inbox-add-message")


if __name__ == "__main__":
    main()
