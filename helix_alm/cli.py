# helix_alm/cli.py

import asyncio
from datetime import date
from decimal import Decimal, InvalidOperation
from functools import wraps

import click

from .api import HelixALMAPI
from .auth import AuthSession, Credentials
from .config import ClientConfig, Config, TLSPolicy
from .exceptions import HelixALMError
from .models import (
    BooleanValue,
    DateValue,
    DecimalValue,
    IntegerValue,
    MenuItem,
    MenuItemValue,
    StringValue,
    VersionValue,
)
from .workflows.event_poster import EventPoster
from .workflows.issue_updater import IssueUpdater, new_found_by_record
from .workflows.test_run_generator import TestRunGenerator
from .workflows.token_refresher import TokenRefresher

FIELD_VALUE_PARSERS = {
    "string": lambda text: StringValue(text),
    "menuItem": lambda text: MenuItemValue(MenuItem(label=text)),
    "editableVersion": lambda text: VersionValue(text),
    "integer": lambda text: IntegerValue(int(text)),
    "decimal": lambda text: DecimalValue(Decimal(text)),
    "boolean": lambda text: BooleanValue(text.lower() in ("1", "true", "yes", "on")),
    "date": lambda text: DateValue(date.fromisoformat(text)),
}


def parse_field_value(kind, text):
    try:
        return FIELD_VALUE_PARSERS[kind](text)
    except (ValueError, InvalidOperation) as e:
        raise click.BadParameter(f"{text!r} is not a valid {kind} value: {e}")


def run_async(func):
    """Run an async command body and turn library errors into click errors."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return asyncio.run(func(*args, **kwargs))
        except HelixALMError as e:
            raise click.ClickException(str(e))

    return wrapper


class CLIContext:
    def __init__(self, config, credentials, project):
        self.config = config
        self.credentials = credentials
        self.project = project

    def session(self):
        return AuthSession(self.credentials, self.project)


@click.group()
@click.option("--url", default=lambda: Config.HELIX_ALM_URL, help="Helix ALM REST API URL.")
@click.option("--username", default=lambda: Config.HELIX_ALM_USERNAME, help="Helix ALM username.")
@click.option(
    "--password",
    default=lambda: Config.HELIX_ALM_PASSWORD,
    help="Helix ALM password.",
)
@click.option("--project", default=lambda: Config.HELIX_ALM_PROJECT, help="Project name.")
@click.option("--ca-file", default=lambda: Config.CA_FILE, help="Extra CA certificate for the API host.")
@click.option(
    "--fingerprint",
    default=lambda: Config.CERT_FINGERPRINT,
    help="SHA-256 fingerprint of the API host certificate.",
)
@click.option("--timeout", default=lambda: Config.REQUEST_TIMEOUT, type=float, help="Request timeout in seconds.")
@click.pass_context
def cli(ctx, url, username, password, project, ca_file, fingerprint, timeout):
    """Helix ALM REST API client"""
    try:
        config = ClientConfig(
            base_url=url,
            timeout=timeout,
            tls=TLSPolicy(ca_file=ca_file or None, fingerprint=fingerprint or None),
        )
    except HelixALMError as e:
        raise click.ClickException(str(e))
    ctx.obj = CLIContext(config, Credentials(username, password or ""), project)


@cli.command()
@click.pass_obj
@run_async
async def projects(obj):
    """List the projects the user can access."""
    async with HelixALMAPI(obj.config) as api:
        project_list = await api.list_projects(obj.credentials)
    for project in project_list.projects:
        click.echo(f"{project.id}\t{project.name}")


@cli.command()
@click.pass_obj
@run_async
async def token(obj):
    """Request an access token for the project."""
    async with HelixALMAPI(obj.config) as api:
        access_token = await TokenRefresher(api, obj.session()).acquire()
    click.echo(f"{access_token.token_type} {access_token.access_token}")
    click.echo(f"Expires on {access_token.expires_on}")


@cli.command()
@click.option("--fields", help="Comma separated field labels to return.")
@click.option("--expand", help="Comma separated sub-collections to include.")
@click.option("--page", type=int, help="Page number.")
@click.option("--page-limit", type=int, help="Issues per page.")
@click.pass_obj
@run_async
async def issues(obj, fields, expand, page, page_limit):
    """List one page of issues."""
    async with HelixALMAPI(obj.config) as api:
        refresher = TokenRefresher(api, obj.session())
        issue_list = await refresher.call(
            lambda access_token: api.list_issues(
                obj.project,
                access_token,
                fields=fields,
                expand=expand,
                page=page,
                pageLimit=page_limit,
            )
        )
    for issue in issue_list.issues:
        click.echo(f"{issue.id}\t{issue.tag}")
    if issue_list.paging:
        paging = issue_list.paging
        click.echo(
            f"Page {paging.page} of {paging.total_pages} ({paging.total_count} issues)"
        )


@cli.command()
@click.argument("issue_id", type=int)
@click.option("--fields", help="Comma separated field labels to return.")
@click.option("--expand", help="Comma separated sub-collections to include.")
@click.pass_obj
@run_async
async def issue(obj, issue_id, fields, expand):
    """Show one issue and its field values."""
    async with HelixALMAPI(obj.config) as api:
        refresher = TokenRefresher(api, obj.session())
        item = await refresher.call(
            lambda access_token: api.get_issue(
                obj.project, access_token, issue_id, fields=fields, expand=expand
            )
        )
    click.echo(f"{item.tag} (id {item.id})")
    for field in item.fields:
        click.echo(f"  {field.label} [{field.type}]: {field.payload}")


@cli.command("set-field")
@click.argument("issue_id", type=int)
@click.argument("label")
@click.argument("value")
@click.option(
    "--type",
    "kind",
    type=click.Choice(sorted(FIELD_VALUE_PARSERS)),
    default="menuItem",
    show_default=True,
    help="Value kind of the field.",
)
@click.pass_obj
@run_async
async def set_field(obj, issue_id, label, value, kind):
    """Set a field value on an issue, e.g. Priority to 'Before Beta'."""
    new_value = parse_field_value(kind, value)
    async with HelixALMAPI(obj.config) as api:
        refresher = TokenRefresher(api, obj.session())
        updater = IssueUpdater(api, obj.project)
        await refresher.call(
            lambda access_token: updater.update_field(
                access_token, issue_id, label, new_value
            )
        )
    click.echo(f"Issue {issue_id} updated")


@cli.command("add-found-by")
@click.argument("issue_id", type=int)
@click.option("--description", required=True, help="Description of the record.")
@click.option("--version", "version_found", help="Version the issue was found in.")
@click.option("--found-by", help="Username; defaults to the login user.")
@click.pass_obj
@run_async
async def add_found_by(obj, issue_id, description, version_found, found_by):
    """Append a Found by record to an issue."""
    record = new_found_by_record(
        found_by or obj.credentials.username, description, version_found
    )
    async with HelixALMAPI(obj.config) as api:
        refresher = TokenRefresher(api, obj.session())
        updater = IssueUpdater(api, obj.project)
        await refresher.call(
            lambda access_token: updater.add_found_by_record(
                access_token, issue_id, record
            )
        )
    click.echo(f"Added Found by record to issue {issue_id}")


@cli.command()
@click.argument("issue_id", type=int)
@click.argument("text")
@click.pass_obj
@run_async
async def comment(obj, issue_id, text):
    """Add a Comment workflow event to an issue."""
    async with HelixALMAPI(obj.config) as api:
        refresher = TokenRefresher(api, obj.session())
        poster = EventPoster(api, obj.project)
        await refresher.call(
            lambda access_token: poster.add_comment(access_token, issue_id, text)
        )
    click.echo(f"Added workflow event to issue {issue_id}")


@cli.command("generate-test-run")
@click.argument("test_case_id", type=int)
@click.option("--set", "test_run_set", help="Test run set label.")
@click.option(
    "--variant",
    "variant_args",
    multiple=True,
    help="Variant as LABEL=VALUE, e.g. 'Operating System=Windows'. Repeatable.",
)
@click.option("--notes", default="Passed by REST API", show_default=True)
@click.pass_obj
@run_async
async def generate_test_run(obj, test_case_id, test_run_set, variant_args, notes):
    """Generate test runs for a test case and pass them."""
    variants = {}
    for arg in variant_args:
        label, sep, value = arg.partition("=")
        if not sep or not label or not value:
            raise click.BadParameter(f"Expected LABEL=VALUE, got {arg!r}")
        variants.setdefault(label.strip(), []).append(value.strip())

    async with HelixALMAPI(obj.config) as api:
        refresher = TokenRefresher(api, obj.session())
        generator = TestRunGenerator(api, obj.project)
        test_runs = await refresher.call(
            lambda access_token: generator.generate_and_pass(
                access_token,
                test_case_id,
                test_run_set=test_run_set,
                variants=variants,
                notes=notes,
            )
        )
    if not test_runs:
        raise click.ClickException("Failed to generate test run")
    for test_run in test_runs:
        click.echo(f"Generated test run {test_run.tag} (id {test_run.id})")


if __name__ == "__main__":
    cli()
