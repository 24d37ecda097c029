#!/usr/bin/env python3

import sys
from dataclasses import replace

import click
from rich import box
from rich.console import Console
from rich.table import Table

from bbserver.cli_utils import standard_command
from bbserver.config import DriverConfig, configure_logging, load_config
from bbserver.driver import BitbucketServerDriver
from bbserver.exit_codes import NOT_SUPPORTED, SUCCESS

console = Console()


def _driver(ctx: click.Context, url: str) -> BitbucketServerDriver:
    driver = BitbucketServerDriver(url, ctx.obj['config'], http=ctx.obj.get('http'))
    driver.initialize()
    return driver


def _refs_table(title: str, refs: dict) -> Table:
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("Name", style="cyan")
    table.add_column("Commit", style="dim")
    for name, commit in refs.items():
        table.add_row(name, commit)
    return table


@click.group()
@click.version_option(package_name='bbserver')
@click.option('-v', '--verbose', is_flag=True, help='Log HTTP requests and driver decisions')
@click.option('--domain', 'domains', multiple=True,
              help='Additional Bitbucket Server domain to accept (repeatable)')
@click.pass_context
def cli(ctx, verbose, domains):
    """bbserver - Repository metadata driver for Bitbucket Server.

    Resolves repository URLs against the configured bitbucket-server-domains
    and reads tags, branches, manifests and archives over the REST API.
    """
    ctx.ensure_object(dict)
    if 'config' not in ctx.obj:
        raw = load_config()
        configure_logging(raw, verbose=verbose)
        ctx.obj['config'] = DriverConfig.from_dict(raw)
    if domains:
        config = ctx.obj['config']
        extra = tuple(d.lower() for d in domains)
        ctx.obj['config'] = replace(
            config, bitbucket_server_domains=config.bitbucket_server_domains + extra
        )


@cli.command('supports')
@click.argument('url')
@click.pass_context
def supports_cmd(ctx, url):
    """Check whether URL is handled by this driver (no network access)."""
    if BitbucketServerDriver.supports(ctx.obj['config'], url):
        click.echo("yes")
        sys.exit(SUCCESS)
    click.echo("no")
    sys.exit(NOT_SUPPORTED)


@cli.command('show')
@click.argument('url')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of tables')
@click.pass_context
@standard_command
def show_cmd(ctx, url, as_json):
    """Show clone URL, default branch, tags and branches of a repository."""
    driver = _driver(ctx, url)
    root = driver.get_root_identifier()
    summary = {
        'identity': driver.identity.to_dict(),
        'state': driver.state.value,
        'url': driver.get_url(),
        'root_identifier': root,
        'tags': driver.get_tags(),
        'branches': driver.get_branches(),
    }
    if as_json:
        return summary

    console.print(f"[bold]{driver.identity}[/bold] ({summary['state']})")
    console.print(f"Clone URL: {summary['url'] or '-'}")
    console.print(f"Default branch: [green]{root}[/green]")
    console.print(_refs_table("Tags", summary['tags']))
    console.print(_refs_table("Branches", summary['branches']))
    return None


@cli.command('info')
@click.argument('url')
@click.argument('revision')
@click.pass_context
@standard_command
def info_cmd(ctx, url, revision):
    """Print the enriched package descriptor of REVISION."""
    driver = _driver(ctx, url)
    driver.fetch_repo_data()
    info = driver.get_composer_information(revision)
    if info is None:
        raise click.ClickException(f"No valid manifest at {revision}")
    return info


@cli.command('file')
@click.argument('url')
@click.argument('path')
@click.argument('revision')
@click.pass_context
@standard_command
def file_cmd(ctx, url, path, revision):
    """Print the contents of PATH at REVISION."""
    content = _driver(ctx, url).get_file_content(path, revision)
    if content is None:
        raise click.ClickException(f"{path} does not exist at {revision}")
    return content


@cli.command('dist')
@click.argument('url')
@click.argument('revision')
@click.pass_context
@standard_command
def dist_cmd(ctx, url, revision):
    """Print the dist and source descriptors of REVISION."""
    driver = _driver(ctx, url)
    driver.fetch_repo_data()
    return {
        'dist': driver.get_dist(revision),
        'source': driver.get_source(revision),
    }


def main():
    cli()

if __name__ == "__main__":
    main()
