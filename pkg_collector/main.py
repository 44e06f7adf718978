import aiohttp
import asyncio
import json
import logging
import sys

from pkg_collector.application.collect_service import CollectService
from pkg_collector.application.downloaders.registry import default_downloaders
from pkg_collector.config import Settings
from pkg_collector.domain.models import DownloadOptions
from pkg_collector.infrastructure.git_client import GitClient
from pkg_collector.infrastructure.github_client import GitHubTarballClient
from pkg_collector.infrastructure.registry_client import RegistryClient
from pkg_collector.infrastructure.stats import ProcessStats
from pkg_collector.infrastructure.tokens import TokenPool

logger = logging.getLogger(__name__)

# Limit concurrent connections to the registry and GitHub
CONNECTOR_LIMIT = 10


async def main(names) -> int:
    settings = Settings.from_env()

    # Configure logging
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )

    if not names:
        logger.error("Usage: python -m pkg_collector.main <module> [<module>...]")
        return 2

    if not settings.github_tokens:
        logger.warning("GITHUB_TOKENS is not set, GitHub requests will be heavily rate limited.")

    stats = ProcessStats(interval=settings.stats_interval)
    stats.start()

    github_client = GitHubTarballClient(
        token_pool=TokenPool(settings.github_tokens),
        max_tarball_size=settings.max_tarball_size,
    )

    try:
        async with aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
        ) as session:
            service = CollectService(
                downloaders=default_downloaders(
                    session,
                    github_client=github_client,
                    git_client=GitClient(timeout=settings.git_timeout),
                ),
                registry_client=RegistryClient(settings.registry_url),
                options=DownloadOptions(ref_overrides=settings.ref_overrides),
                work_dir=settings.work_dir,
                concurrency=settings.concurrency,
                max_retries=settings.max_retries,
            )
            results = await service.collect_many(session, names)
    except KeyboardInterrupt:
        logger.info("Collect interrupted by user. Exiting gracefully.")
        return 130
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        return 1
    finally:
        await stats.stop()

    for result in results:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


def run() -> None:
    sys.exit(asyncio.run(main(sys.argv[1:])))


if __name__ == "__main__":
    run()
