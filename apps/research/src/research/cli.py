"""CLI for browsing research repositories."""

import asyncio
import logging
from pathlib import Path

import click
from dotenv import load_dotenv

from ghcontent import CacheStore, GitHubClient, LocalStorage, RepositoryConfig, get_token

from .navigation import LoadStatus, NavigationState
from .settings import DEFAULT_REPO_CONFIG, get_repo_config, parse_repo_url, save_repo_config
from .topics import Topic, load_topics
from .tree import iter_lines
from .viewer import ContentResolver, ResolvedFile

logger = logging.getLogger(__name__)

DEFAULT_STORAGE = "~/.research-browser.json"
DEFAULT_LOCATION = "/research"


def setup_logging(verbose: int) -> None:
    """Setup logging."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def fail(message: str) -> None:
    raise click.ClickException(message)


# ============ CLI Group ============

@click.group()
@click.option("--storage", default=DEFAULT_STORAGE, show_default=True, help="Settings and cache file")
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("--use-gh-cli", is_flag=True, help="Use gh cli credentials")
@click.option("--topics", "topics_file", type=click.Path(exists=True, dir_okay=False), help="Topics JSON export")
@click.option("--retries", "-r", type=int, default=3, help="Retry attempts")
@click.option("-v", "--verbose", count=True, help="Verbosity (-v, -vv)")
@click.pass_context
def cli(
    ctx: click.Context,
    storage: str,
    token: str | None,
    use_gh_cli: bool,
    topics_file: str | None,
    retries: int,
    verbose: int,
) -> None:
    """Browse research notes stored in GitHub repositories."""
    load_dotenv()
    setup_logging(verbose)
    ctx.ensure_object(dict)
    local = LocalStorage(storage)
    cache = CacheStore(local)
    saved = get_repo_config(local)
    ctx.obj["storage"] = local
    ctx.obj["cache"] = cache
    ctx.obj["client"] = GitHubClient(cache=cache, max_retries=retries)
    ctx.obj["token"] = get_token(token, use_gh_cli=use_gh_cli) or saved.access_token
    if topics_file:
        ctx.obj["topics"] = load_topics(topics_file)
    else:
        ctx.obj["topics"] = [
            Topic(id="default", title="Research", path=DEFAULT_LOCATION, repo_config=saved)
        ]


async def open_navigation(obj: dict, location: str) -> NavigationState:
    navigation = NavigationState(obj["client"], obj["topics"], global_token=obj["token"])
    await navigation.navigate(location)
    if navigation.topic is None:
        fail(f"No topic matches {location}")
    if navigation.status is LoadStatus.FAILED:
        fail(navigation.error_message)
    return navigation


# ============ Config Commands ============

@cli.group()
def config():
    """Show or change the saved repository settings."""


@config.command("show")
@click.pass_context
def config_show(ctx):
    """Show saved settings."""
    current = get_repo_config(ctx.obj["storage"])
    click.echo(f"Repository: https://github.com/{current.owner}/{current.repo_name}")
    click.echo(f"Branch:     {current.branch}")
    click.echo(f"Path:       {current.sub_path or '/'}")
    click.echo(f"Token:      {'set' if current.access_token else 'not set'}")


@config.command("set")
@click.option("--url", help="github.com repository URL")
@click.option("--owner")
@click.option("--repo")
@click.option("--branch")
@click.option("--path", "sub_path", help="Sub-directory to browse")
@click.option("--token", "access_token", help="Token saved with the settings")
@click.pass_context
def config_set(ctx, url, owner, repo, branch, sub_path, access_token):
    """Update saved settings (clears the cache)."""
    current = get_repo_config(ctx.obj["storage"])
    if url:
        current = parse_repo_url(url, current)
    updates = {
        "owner": owner,
        "repo_name": repo,
        "branch": branch,
        "sub_path": sub_path,
        "access_token": access_token,
    }
    data = current.model_dump()
    data.update({k: v for k, v in updates.items() if v is not None})
    updated = RepositoryConfig.model_validate(data)
    save_repo_config(ctx.obj["storage"], updated, ctx.obj["cache"])
    click.echo(f"Saved {updated.owner}/{updated.repo_name}@{updated.branch}")


@config.command("reset")
@click.pass_context
def config_reset(ctx):
    """Restore default settings (clears the cache)."""
    save_repo_config(ctx.obj["storage"], DEFAULT_REPO_CONFIG, ctx.obj["cache"])
    click.echo(f"Reset to {DEFAULT_REPO_CONFIG.owner}/{DEFAULT_REPO_CONFIG.repo_name}")


# ============ Browse Commands ============

@cli.command()
@click.argument("location", default=DEFAULT_LOCATION)
@click.pass_context
def tree(ctx, location):
    """Print the file tree of the topic at LOCATION."""
    navigation = asyncio.run(open_navigation(ctx.obj, location))
    if not navigation.tree:
        click.echo("No items found.")
        return
    for line in iter_lines(navigation.tree):
        click.echo(line)


@cli.command()
@click.argument("query")
@click.argument("location", default=DEFAULT_LOCATION)
@click.pass_context
def search(ctx, query, location):
    """Search file paths of the topic at LOCATION."""
    navigation = asyncio.run(open_navigation(ctx.obj, location))
    results = navigation.search(query)
    if not results:
        click.echo("No results.")
        return
    for entry in results:
        click.echo(entry.path)


async def resolve_location(obj: dict, location: str) -> ResolvedFile:
    navigation = await open_navigation(obj, location)
    path = navigation.relative_path()
    if not path:
        fail(f"{location} does not name a file")
    resolver = ContentResolver(obj["client"])
    resolved = await resolver.open(navigation.config, path)
    if resolved is None:
        fail(resolver.error_message)
    await resolver.wait_metadata()
    return resolved


@cli.command()
@click.argument("location")
@click.option("-o", "--output", type=click.Path(dir_okay=False, writable=True), help="Write content to file")
@click.pass_context
def show(ctx, location, output):
    """Show the file at LOCATION, e.g. /research/notes/intro.md."""
    resolved = asyncio.run(resolve_location(ctx.obj, location))

    meta = resolved.metadata
    if meta:
        click.echo(
            f"Updated {meta.last_updated:%Y-%m-%d} by {meta.author_name} ({meta.commit_sha[:7]})",
            err=True,
        )
    click.echo(f"View on GitHub: {resolved.html_url}", err=True)

    if resolved.blob is not None:
        with resolved.blob as blob:
            if output:
                Path(output).write_bytes(blob.data)
                click.echo(f"Saved {blob.size} bytes ({blob.mime_type}) to {output}")
            else:
                click.echo(f"{blob.mime_type}, {blob.size} bytes (use -o to save)")
        return

    if output:
        Path(output).write_text(resolved.document, encoding="utf-8")
        click.echo(f"Saved to {output}")
    else:
        click.echo(resolved.document)


@cli.group()
def cache():
    """Manage cached responses."""


@cache.command("clear")
@click.pass_context
def cache_clear(ctx):
    """Clear cached responses."""
    removed = ctx.obj["cache"].invalidate_by_prefix()
    click.echo(f"Removed {removed} cached entries")


if __name__ == "__main__":
    cli()
