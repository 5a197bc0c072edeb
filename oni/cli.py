import argparse
import asyncio
import sys
from typing import List, Optional

import orjson

from oni.core.exceptions import ProviderError
from oni.core.logger import logger
from oni.core.models import settings
from oni.providers.cache import ProviderCache
from oni.providers.manager import provider_manager
from oni.providers.models import VideoDescriptor
from oni.services.orchestration import resolve_video
from oni.utils.http_client import http_client_manager


def open_cache() -> ProviderCache:
    return ProviderCache(settings.cache_path)


def print_video(video: VideoDescriptor, as_json: bool):
    if as_json:
        print(orjson.dumps(video.model_dump(), option=orjson.OPT_INDENT_2).decode())
        return

    print(video.video_url)
    if video.referer:
        print(f"Referer: {video.referer}")
    for subtitle in video.subtitle_urls:
        print(f"Subtitle: {subtitle}")


async def resolve_command(args: argparse.Namespace):
    logger.log(
        "ONI",
        f"Resolving media {args.media_id} episode {args.episode} with {args.provider or settings.PROVIDER}",
    )
    video = await resolve_video(
        provider_manager,
        open_cache(),
        args.media_id,
        args.episode,
        args.title,
        provider_name=args.provider,
        quality=args.quality,
        sub_or_dub="dub" if args.dub else None,
    )
    print_video(video, args.json)


def providers_command():
    for name in provider_manager.names():
        marker = " (default)" if name == settings.PROVIDER else ""
        print(f"{name}{marker}")


def cache_show_command(cache: ProviderCache, provider: Optional[str]):
    rows = cache.entries(provider)

    print(f"\nFound {len(rows)} cached mappings:")
    print("-" * 60)

    for section, media_id, value in rows:
        print(f"{section:<14} {media_id:>10}  {value}")

    print("-" * 60)


def cache_clear_command(cache: ProviderCache, provider: str, media_id: int):
    if cache.clear(provider, media_id):
        print(f"Cleared {provider}/{media_id}")
    else:
        print(f"No cache entry for {provider}/{media_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oni",
        description="Resolve tracked anime episodes to playable streams",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Resolve episode 5 with the configured provider
  oni resolve --media-id 21 --episode 5 --title "One Piece"

  # Resolve the dub with another provider, as JSON
  oni resolve --media-id 21 --episode 5 --title "One Piece" --provider hdrezka --dub --json

  # Drop a stale provider mapping
  oni cache clear --provider allanime --media-id 21
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    resolve_parser = subparsers.add_parser(
        "resolve", help="Resolve an episode to a video URL"
    )
    resolve_parser.add_argument(
        "--media-id", required=True, type=int, help="Tracker (AniList) media id"
    )
    resolve_parser.add_argument(
        "--episode", required=True, type=int, help="Episode number"
    )
    resolve_parser.add_argument("--title", required=True, help="Show title")
    resolve_parser.add_argument(
        "--provider", help=f"Provider name (default: {settings.PROVIDER})"
    )
    resolve_parser.add_argument(
        "--quality", help=f"Preferred quality (default: {settings.QUALITY})"
    )
    resolve_parser.add_argument(
        "--dub", action="store_true", help="Prefer dubbed audio"
    )
    resolve_parser.add_argument(
        "--json", action="store_true", help="Print the result as JSON"
    )

    subparsers.add_parser("providers", help="List registered providers")

    cache_parser = subparsers.add_parser("cache", help="Inspect the provider cache")
    cache_subparsers = cache_parser.add_subparsers(dest="cache_command")

    show_parser = cache_subparsers.add_parser("show", help="List cached mappings")
    show_parser.add_argument("--provider", help="Only this provider")

    clear_parser = cache_subparsers.add_parser("clear", help="Remove one mapping")
    clear_parser.add_argument("--provider", required=True, help="Provider name")
    clear_parser.add_argument(
        "--media-id", required=True, type=int, help="Tracker media id"
    )

    cache_subparsers.add_parser("clear-all", help="Delete the whole cache file")

    return parser


async def main(argv: List[str] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    try:
        if args.command == "resolve":
            await resolve_command(args)

        elif args.command == "providers":
            providers_command()

        elif args.command == "cache":
            cache = open_cache()
            if args.cache_command == "show":
                cache_show_command(cache, args.provider)
            elif args.cache_command == "clear":
                cache_clear_command(cache, args.provider, args.media_id)
            elif args.cache_command == "clear-all":
                cache.clear_all()
                print(f"Removed {cache.path}")
            else:
                parser.parse_args(["cache", "--help"])

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)
    except ProviderError as e:
        print(f"Error: {e.display_message}")
        sys.exit(1)
    except asyncio.TimeoutError:
        print(f"Error: resolution timed out after {settings.RESOLVE_TIMEOUT}s")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        logger.exception("CLI command failed")
        sys.exit(1)
    finally:
        await http_client_manager.close()


def run():
    asyncio.run(main())
