"""Manage stream webhook subscriptions

- list the subscriptions Twitch currently holds for this app
- unsubscribe one channel, or every subscribed channel

The poller resubscribes channels as they go live, so this is only needed to
clean up after changing the callback domain or dropping a channel.
"""

import argparse
import asyncio
from urllib.parse import parse_qs, urlparse

from speedbot.config import get_settings
from speedbot.services.twitch_api import TwitchAPIClient


def _user_id(subscription: dict) -> str | None:
    query = parse_qs(urlparse(subscription.get("topic", "")).query)
    return query.get("user_id", [None])[0]


async def list_webhooks(client: TwitchAPIClient) -> list[dict]:
    body = await client.get_all_webhooks()
    if not isinstance(body, dict):
        print(f"✗ Failed to list subscriptions: HTTP {body}")
        return []

    subs = body.get("data", [])
    print(f"\n=== Found {len(subs)} subscription(s) ===\n")
    for i, sub in enumerate(subs, 1):
        print(f"{i}. {sub.get('topic')}")
        print(f"   Callback: {sub.get('callback')}")
        print(f"   Expires:  {sub.get('expires_at')}")
    return subs


async def unsubscribe(client: TwitchAPIClient, user_id: str) -> None:
    result = await client.unsubscribe_from_user_stream(user_id)
    if result == 202:
        print(f"✓ Unsubscribed user {user_id}")
    else:
        print(f"✗ Failed to unsubscribe user {user_id}: {result}")


async def unsubscribe_all(client: TwitchAPIClient) -> None:
    subs = await list_webhooks(client)
    user_ids = {uid for uid in map(_user_id, subs) if uid}
    if not user_ids:
        print("No subscriptions to remove.")
        return

    confirm = input(f"\nUnsubscribe ALL {len(user_ids)} channel(s)? (yes/no): ")
    if confirm.lower() != "yes":
        print("Cancelled.")
        return
    for user_id in sorted(user_ids):
        await unsubscribe(client, user_id)


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Manage stream webhook subscriptions")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List active subscriptions")
    rm = sub.add_parser("unsubscribe", help="Unsubscribe a channel by user id or login")
    rm.add_argument("user", help="User id, login, or 'all'")
    args = parser.parse_args(argv)

    settings = get_settings()
    client = TwitchAPIClient(
        settings.client_id, settings.client_secret, callback_domain=settings.callback_domain
    )
    try:
        if args.command == "list":
            await list_webhooks(client)
        elif args.user == "all":
            await unsubscribe_all(client)
        else:
            user_id = args.user if args.user.isdigit() else await client.get_user_id(args.user)
            if user_id is None:
                print(f"✗ Unknown user {args.user}")
                return
            await unsubscribe(client, user_id)
    finally:
        await client.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
