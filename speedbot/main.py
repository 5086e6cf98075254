import asyncio
import logging

from speedbot.config import Settings, get_settings
from speedbot.core.logging import setup_logging
from speedbot.lifecycle import StreamLifecycle
from speedbot.poller import StreamPoller
from speedbot.services.notifier import DiscordWebhookNotifier
from speedbot.services.stream_query import StreamQuery
from speedbot.services.twitch_api import TwitchAPIClient
from speedbot.shared.database import DatabaseManager
from speedbot.shared.migrations.runner import MigrationRunner
from speedbot.shared.repositories import StreamRepository

logger = logging.getLogger("speedbot")


async def run(settings: Settings) -> None:
    db = DatabaseManager(settings.database_url)
    client = TwitchAPIClient(
        settings.client_id,
        settings.client_secret,
        callback_domain=settings.callback_domain,
    )
    notifier = DiscordWebhookNotifier(settings.discord_webhook_url)
    poller: StreamPoller | None = None

    try:
        await db.connect()
        await MigrationRunner(db.pool).run_pending()

        await client.tokens.ensure_token()
        resolved = await client.get_game_ids(settings.game_names)
        if len(resolved) < len(settings.game_names):
            logger.warning(f"Only {len(resolved)} of {len(settings.game_names)} game names resolved")
        criteria = settings.filter_criteria(resolved)
        logger.info(
            f"Watching {len(criteria.game_ids)} games, {len(criteria.tag_ids)} tags, "
            f"{len(criteria.keywords)} keywords"
        )
        await client.get_all_webhooks()

        lifecycle = StreamLifecycle(
            StreamRepository(db.pool),
            notifier,
            client.subscribe_to_user_stream,
            criteria,
            settings.threshold_values,
        )
        poller = StreamPoller(StreamQuery(client), lifecycle, criteria, settings.poll_interval)
        await poller.start()
        await poller.wait()
    finally:
        if poller:
            await poller.stop()
        await notifier.close()
        await client.close()
        await db.disconnect()


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
