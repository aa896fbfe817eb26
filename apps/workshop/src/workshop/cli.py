"""CLI for the workshop builder."""

import asyncio
import base64
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Awaitable, Iterator, NoReturn

import click
import yaml

from gh import GitHubClient, GitHubGateway

from .cache import load_snapshot, save_snapshot
from .config import WorkshopSettings
from .deletion import delete_file
from .exceptions import WorkshopError
from .installer import Installer
from .ordering import rewrite_episode_orders
from .store import WorkshopStore
from .sync import WorkshopSync

logger = logging.getLogger(__name__)


def setup_logging(verbose: int) -> None:
    """Setup logging."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


@contextmanager
def saving(ctx: click.Context) -> Iterator[WorkshopStore]:
    """Write the cache back when the block exits, even if it failed."""
    store: WorkshopStore = ctx.obj["store"]
    try:
        yield store
    except WorkshopError as e:
        fail(str(e))
    finally:
        save_snapshot(store, ctx.obj["cache"])


def run(ctx: click.Context, operation: Awaitable[Any]) -> Any:
    """Run one store operation."""
    with saving(ctx):
        return asyncio.run(operation)


def check(ctx: click.Context, result: Any) -> Any:
    """Exit with the recorded error when an operation answered None."""
    if result is None:
        store: WorkshopStore = ctx.obj["store"]
        fail(str(store.last_error or "operation skipped, resource busy"))
    return result


def resolve_url(ctx: click.Context, url_or_path: str) -> str:
    """Accept a full contents URL, or a path in the main repository."""
    store: WorkshopStore = ctx.obj["store"]
    if url_or_path.startswith(("http://", "https://")):
        return url_or_path
    main = store.main_repository()
    if main is None:
        fail("No main repository loaded; pass a full URL")
    return f"{main.url}/contents/{url_or_path.lstrip('/')}"


# ============ CLI Group ============

@click.group()
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("--use-gh-cli", is_flag=True, help="Use gh cli credentials")
@click.option("--retries", "-r", type=int, default=3, help="Retry attempts")
@click.option("--cache", "cache_file", envvar="WORKSHOP_CACHE_FILE", help="Local cache file")
@click.option("-v", "--verbose", count=True, help="Verbosity (-v, -vv)")
@click.pass_context
def cli(
    ctx: click.Context,
    token: str | None,
    use_gh_cli: bool,
    retries: int,
    cache_file: str | None,
    verbose: int,
) -> None:
    """Workshop builder: edit GitHub workshop repositories offline."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    settings = ctx.obj.get("settings") or WorkshopSettings.from_env()
    gateway = ctx.obj.get("gateway") or GitHubGateway(
        GitHubClient(
            token=token,
            base_url=settings.api_base,
            use_gh_cli=use_gh_cli,
            max_retries=retries,
        ),
        search_topic=settings.search_topic,
        workshop_topics=tuple(settings.workshop_topics),
        commit_message=settings.commit_message,
    )
    cache = Path(cache_file or settings.cache_file)
    store = load_snapshot(cache).restore(WorkshopStore(topic_list=settings.topic_list))
    sync = WorkshopSync(store, gateway, settings)

    ctx.obj.update(
        settings=settings,
        cache=cache,
        store=store,
        sync=sync,
        installer=Installer(sync),
    )


# ============ Repository Commands ============

@cli.command()
@click.option("-t", "--topic", "topics", multiple=True, help="Required topic (repeatable)")
@click.option("-o", "--owner", help="Repository owner")
@click.pass_context
def search(ctx, topics, owner):
    """Find workshop repositories on GitHub."""
    found = check(ctx, run(ctx, ctx.obj["sync"].find_repositories(topics=topics, owner=owner)))
    click.echo(f"Found {len(found)} repositories:")
    for repository in found:
        click.echo(f"  {repository.owner_login}/{repository.name}  [{', '.join(repository.topics)}]")


@cli.command()
@click.pass_context
def templates(ctx):
    """List template repositories."""
    found = check(ctx, run(ctx, ctx.obj["sync"].find_templates()))
    for template in found:
        click.echo(f"  {template.owner_login}/{template.name}: {template.description or ''}")


@cli.command()
@click.argument("url")
@click.pass_context
def load(ctx, url):
    """Load a repository as the main repository and fetch its files."""
    sync: WorkshopSync = ctx.obj["sync"]

    async def load_and_fetch():
        repository = await sync.load_repository(url)
        if repository is None:
            return None
        return await sync.find_repository_files(repository.url)

    repository = check(ctx, run(ctx, load_and_fetch()))
    click.echo(f"Loaded {repository.owner_login}/{repository.name}: {len(repository.files)} files")


@cli.command()
@click.argument("url", required=False)
@click.option("--no-episodes", is_flag=True, help="Skip episodes")
@click.option("--no-extra", is_flag=True, help="Skip customisable files")
@click.option("--keep-local", is_flag=True, help="Do not overwrite files already cached")
@click.pass_context
def fetch(ctx, url, no_episodes, no_extra, keep_local):
    """Fetch a repository's files (the main repository by default)."""
    store: WorkshopStore = ctx.obj["store"]
    if not url:
        main = store.main_repository()
        if main is None:
            fail("No main repository loaded")
        url = main.url
    elif url not in store.repositories:
        fail(f"Unknown repository {url}; run search or load first")
    repository = check(ctx, run(ctx, ctx.obj["sync"].find_repository_files(
        url,
        include_episodes=not no_episodes,
        include_extra_files=not no_extra,
        overwrite=not keep_local,
    )))
    click.echo(f"{repository.name}: {len(repository.files)} files, {len(repository.episodes)} episodes")


@cli.command()
@click.argument("name")
@click.argument("template")
@click.pass_context
def create(ctx, name, template):
    """Create a main repository NAME from TEMPLATE (owner/name)."""
    repository = check(ctx, run(ctx, ctx.obj["sync"].create_repository(name, template)))
    click.echo(f"Created {repository.owner_login}/{repository.name}")


@cli.command()
@click.argument("topics", nargs=-1)
@click.pass_context
def topics(ctx, topics):
    """Set the open research topics of the main repository."""
    check(ctx, run(ctx, ctx.obj["sync"].set_topics(topics)))
    main = ctx.obj["store"].main_repository()
    click.echo(f"Topics: {', '.join(main.topics)}")


@cli.command()
@click.pass_context
def status(ctx):
    """Show the main repository and unsaved changes."""
    store: WorkshopStore = ctx.obj["store"]
    repository = store.repository()
    if repository is None:
        click.echo("No main repository loaded.")
        return

    click.echo(f"Main repository: {repository.owner_login}/{repository.name}")
    click.echo(f"Topics: {', '.join(repository.topics) or '-'}")
    click.echo(f"Files: {len(repository.files)}")
    if repository.config is not None:
        for field, message in store.list_config_errors(repository.config.url).items():
            click.echo(f"  config {field}: {message}")

    click.echo("\nEpisodes:")
    for episode in repository.episodes:
        click.echo(
            f"  day {episode.yaml.get('day', '-')}  "
            f"order {episode.yaml.get('order', '-')}  {episode.path}"
        )

    changed = [f for f in repository.files if f.has_changed]
    click.echo(f"\nChanged: {len(changed)}")
    for file in changed:
        click.echo(f"  {'new' if file.sha is None else 'modified'}: {file.path}")
    for file in repository.files:
        missing = file.dependency_record.missing_dependencies
        if missing:
            click.echo(f"  missing dependencies in {file.path}: {', '.join(missing)}")


# ============ File Commands ============

@cli.command()
@click.argument("url")
@click.pass_context
def show(ctx, url):
    """Print a file's local content."""
    with saving(ctx) as store:
        click.echo(store.file(resolve_url(ctx, url)).content, nl=False)


@cli.command()
@click.argument("url")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.pass_context
def edit(ctx, url, source):
    """Replace a file's local content with SOURCE ('-' for stdin)."""
    with saving(ctx) as store:
        file = store.set_file_content(resolve_url(ctx, url), source.read())
    click.echo(f"{file.path}: {'changed' if file.has_changed else 'unchanged'}")


@cli.command()
@click.argument("url")
@click.pass_context
def duplicate(ctx, url):
    """Copy a file to the next free numbered path."""
    with saving(ctx) as store:
        copy = store.duplicate_file(resolve_url(ctx, url))
    click.echo(f"Duplicated to {copy.path} (unsaved)")


@cli.command()
@click.argument("url")
@click.pass_context
def install(ctx, url):
    """Install a file from another repository into the main repository."""
    file = check(ctx, run(ctx, ctx.obj["installer"].install(url)))
    record = file.dependency_record
    click.echo(
        f"Installed {file.path} from {record.original_repository}: "
        f"{len(record.dependencies)} dependencies installed, "
        f"{len(record.missing_dependencies)} missing"
    )


@cli.command("install-deps")
@click.argument("url")
@click.pass_context
def install_deps(ctx, url):
    """Retry installing a file's missing dependencies."""
    file = check(ctx, run(ctx, ctx.obj["installer"].install_dependencies(resolve_url(ctx, url))))
    missing = file.dependency_record.missing_dependencies
    click.echo(f"{file.path}: {len(missing)} dependencies still missing")
    for path in missing:
        click.echo(f"  {path}")


@cli.command()
@click.argument("url")
@click.option("--keep-dependencies", is_flag=True, help="Leave installed dependencies in place")
@click.pass_context
def delete(ctx, url, keep_dependencies):
    """Delete a main repository file and its orphaned dependencies."""
    report = check(ctx, run(ctx, delete_file(
        ctx.obj["sync"], resolve_url(ctx, url), delete_dependencies=not keep_dependencies
    )))
    for label, entries in (
        ("Deleted", report.deleted),
        ("Kept", report.skipped),
        ("Failed", report.failed),
    ):
        for entry in entries:
            click.echo(f"{label}: {entry.file_name}")
    if report.failed:
        raise SystemExit(1)


@cli.command()
@click.argument("day")
@click.option("--ignore", multiple=True, help="Episode URL to leave out (repeatable)")
@click.pass_context
def reorder(ctx, day, ignore):
    """Renumber the episodes of DAY."""
    settings: WorkshopSettings = ctx.obj["settings"]
    ignore = [resolve_url(ctx, u) for u in ignore]
    with saving(ctx) as store:
        orders = rewrite_episode_orders(
            store, yaml.safe_load(day), ignore, step=settings.order_step
        )
    for url, order in orders.items():
        click.echo(f"  {order:>8}  {store.file(url).path}")


@cli.command()
@click.argument("path")
@click.argument("source", type=click.File("rb"))
@click.pass_context
def upload(ctx, path, source):
    """Upload SOURCE to PATH in the main repository."""
    content = base64.b64encode(source.read()).decode("ascii")
    if not run(ctx, ctx.obj["sync"].upload_asset(path, content)):
        fail(str(ctx.obj["store"].last_error or f"Could not upload {path}"))
    click.echo(f"Uploaded {path}")


@cli.command()
@click.pass_context
def save(ctx):
    """Push every changed file of the main repository."""
    result = run(ctx, ctx.obj["sync"].save_repository_changes())
    click.echo(f"Saved {result['successes']}, failed {result['failures']}")
    if result["failures"]:
        raise SystemExit(1)


@cli.command("build-status")
@click.pass_context
def build_status(ctx):
    """Show the latest GitHub Pages build."""
    build = check(ctx, run(ctx, ctx.obj["sync"].get_build_status()))
    click.echo(f"Build: {build.status} ({build.created_at or 'unknown time'})")
    if build.error and build.error.get("message"):
        click.echo(f"  {build.error['message']}")


if __name__ == "__main__":
    cli()
