"""Main entry point for the application."""

import asyncio
import logging
import sys

import click

from invite_console.api_client import AdminApiClient
from invite_console.config import get_config_value, validate_config
from invite_console.credential_store import CredentialStore
from invite_console.errors import ConsoleError
from invite_console.logging_setup import setup_logging
from invite_console.messaging import get_message
from invite_console.models import ReviewAction, ReviewFilter
from invite_console.review_query import fraud_risk_level, summarize
from invite_console.review_service import ReviewService
from invite_console.session import SessionManager
from invite_console.workflow import ReviewWorkflowController

logger = logging.getLogger(__name__)


class Console:
    """Wires the session, review service and workflow for one process."""

    def __init__(self):
        self.client = AdminApiClient(get_config_value("backend.base_url"))
        self.store = CredentialStore(
            get_config_value("console_settings.db_file_name", "invite_console.db")
        )
        self.session = SessionManager(self.store, self.client)
        self.reviews = ReviewService(self.session, self.client)
        self.workflow = ReviewWorkflowController(self.reviews)


def _run(coro):
    """Run a coroutine, turning console errors into a readable exit."""
    try:
        return asyncio.run(coro)
    except ConsoleError as e:
        logger.debug(f"Command failed: {e!r}")
        click.echo(e.user_message(), err=True)
        sys.exit(1)


def _format_row(record) -> str:
    invite = record.invite
    return get_message(
        "reviews.row",
        default=f"{record.id} {record.review_status.value}",
        review_id=record.id,
        status=record.review_status.value,
        risk=fraud_risk_level(invite.fraud_score),
        score=invite.fraud_score,
        inviter=invite.inviter.email or invite.inviter.id,
        invitee=invite.invitee_address or "-",
        invite_code=invite.invite_code,
        created_at=record.created_at.strftime("%Y-%m-%d %H:%M"),
    )


@click.group()
@click.pass_context
def cli(ctx):
    """Moderation console for invites flagged as potential fraud."""
    setup_logging()
    validate_config()
    ctx.obj = Console()


@cli.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
@click.pass_obj
def login(console: Console, email: str, password: str):
    """Log in as a moderator."""
    credential = _run(console.session.login(email, password))
    click.echo(
        get_message(
            "session.logged_in",
            username=credential.admin.username,
            role=credential.admin.role.value,
            expires_at=credential.expires_at.strftime("%Y-%m-%d %H:%M:%S %Z"),
        )
    )


@cli.command()
@click.pass_obj
def logout(console: Console):
    """End the session."""
    _run(console.session.logout())
    click.echo(get_message("session.logged_out"))


@cli.command()
@click.pass_obj
def whoami(console: Console):
    """Show the logged-in moderator, reloading the profile from the backend."""
    profile = _run(console.session.refresh_profile())
    credential = console.session.credential
    click.echo(
        get_message(
            "session.whoami",
            username=profile.username,
            email=profile.email,
            role=profile.role.value,
            expires_at=credential.expires_at.strftime("%Y-%m-%d %H:%M:%S %Z")
            if credential
            else "-",
        )
    )


@cli.command()
@click.option(
    "--status",
    type=click.Choice(["pending", "approved", "rejected", "all"]),
    default="pending",
    show_default=True,
)
@click.option("--risk", type=click.Choice(["high", "medium", "low", "all"]), default=None)
@click.option("--min-score", type=float, default=None)
@click.option("--max-score", type=float, default=None)
@click.option("--from", "date_from", default=None, help="ISO date or timestamp, inclusive; a bare date covers the whole day")
@click.option("--to", "date_to", default=None, help="ISO date or timestamp, inclusive; a bare date covers the whole day")
@click.option("--search", default=None, help="Inviter/invitee email or invite code")
@click.option("--page", type=int, default=1, show_default=True)
@click.pass_obj
def reviews(console: Console, status, risk, min_score, max_score, date_from, date_to, search, page):
    """List flagged invites."""
    try:
        review_filter = ReviewFilter.from_query(
            {
                "status": status,
                "fraud_score": risk,
                "fraud_score_min": min_score,
                "fraud_score_max": max_score,
                "date_from": date_from,
                "date_to": date_to,
                "search": search,
            },
            high_risk_threshold=get_config_value("reviews.high_risk_threshold", 0.7),
            medium_risk_threshold=get_config_value("reviews.medium_risk_threshold", 0.4),
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    result = _run(console.reviews.list_reviews(review_filter, page=page))
    if not result.items:
        click.echo(get_message("reviews.empty"))
        return
    for record in result.items:
        click.echo(_format_row(record))
    page_stats = summarize(result.items)
    click.echo(get_message("reviews.page_stats", **vars(page_stats)))
    click.echo(
        get_message(
            "reviews.page_summary",
            page=result.page,
            total_pages=result.total_pages,
            total=result.total,
        )
    )


@cli.command()
@click.argument("review_id")
@click.pass_obj
def show(console: Console, review_id: str):
    """Show one review with its fraud indicators."""
    record = _run(console.reviews.get_review(review_id))
    click.echo(_format_row(record))
    flagged = record.fraud_indicators.flagged()
    click.echo(f"Fraud indicators: {', '.join(flagged) if flagged else 'none'}")
    if record.reviewed_at:
        reviewer = record.reviewer.email if record.reviewer else record.reviewer_id
        click.echo(f"Reviewed by {reviewer} at {record.reviewed_at.isoformat()}")
    if record.review_notes:
        click.echo(f"Notes: {record.review_notes}")


async def _decide(console: Console, review_id: str, action: ReviewAction, notes, reason):
    record = await console.reviews.get_review(review_id)
    console.workflow.select(record)
    return await console.workflow.decide(record, action, notes=notes, reason=reason)


@cli.command()
@click.argument("review_id")
@click.option("--notes", default=None)
@click.pass_obj
def approve(console: Console, review_id: str, notes):
    """Approve a pending review."""
    updated = _run(_decide(console, review_id, ReviewAction.APPROVE, notes, None))
    click.echo(get_message("reviews.approved", review_id=updated.id))


@cli.command()
@click.argument("review_id")
@click.option("--reason", prompt=True)
@click.option("--notes", default=None)
@click.pass_obj
def reject(console: Console, review_id: str, reason, notes):
    """Reject a pending review."""
    updated = _run(_decide(console, review_id, ReviewAction.REJECT, notes, reason))
    click.echo(get_message("reviews.rejected", review_id=updated.id))


@cli.command()
@click.argument("review_ids", nargs=-1, required=True)
@click.option("--action", type=click.Choice(["approve", "reject"]), required=True)
@click.option("--reason", default=None)
@click.option("--notes", default=None)
@click.pass_obj
def batch(console: Console, review_ids, action, reason, notes):
    """Approve or reject several reviews at once."""
    if action == "reject" and not reason:
        raise click.BadParameter("--reason is required to reject", param_hint="--reason")
    result = _run(console.reviews.batch_decide(list(review_ids), ReviewAction(action), notes, reason))
    click.echo(get_message("reviews.batch_result", action=action, **result))


@cli.command()
@click.pass_obj
def stats(console: Console):
    """Show dashboard statistics."""
    result = _run(console.reviews.dashboard_stats())
    click.echo(get_message("stats.summary", **vars(result)))


if __name__ == "__main__":
    cli()
