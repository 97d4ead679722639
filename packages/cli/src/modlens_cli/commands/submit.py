"""submit and set-status commands: drive the comment lifecycle by hand."""

from __future__ import annotations

import getpass

import click
from rich.console import Console

from modlens_cli.session import get_pipeline
from modlens_store.models import APPLIED_BY_HUMAN, COMMENT_STATUSES, STATUS_APPROVED, STATUS_PENDING, Comment, Document

console = Console()


@click.command("submit")
@click.option("--author", required=True, help="Comment author name.")
@click.option("--content", required=True, help="Comment text.")
@click.option("--document", "document_id", type=int, default=1, show_default=True, help="Document id.")
@click.option("--title", default=None, help="Document title (creates or renames the document).")
@click.option(
    "--type",
    "doc_type",
    type=click.Choice(["post", "page", "product"]),
    default="post",
    show_default=True,
    help="Document type, used when the document is created.",
)
@click.option("--email", default="", help="Author email.")
@click.option("--url", default="", help="Author URL.")
@click.option("--now", "moderate_now", is_flag=True, help="Moderate the comment immediately.")
@click.pass_context
def submit_cmd(ctx, author, content, document_id, title, doc_type, email, url, moderate_now):
    """Create a comment as the host application would.

    The comment is proposed as approved; the hold filter decides whether it
    is held for AI review instead.
    """
    pipeline = get_pipeline(ctx, scheduler_backend="polling")
    comments = pipeline.comments

    document = comments.get_document(document_id)
    if document is None:
        comments.add_document(Document(id=document_id, title=title or f"Document {document_id}", doc_type=doc_type))
    elif title:
        comments.add_document(Document(id=document_id, title=title, doc_type=document.doc_type))

    comment = comments.create(
        Comment(
            author=author,
            content=content,
            document_id=document_id,
            status=STATUS_APPROVED,
            author_email=email,
            author_url=url,
        )
    )
    console.print(f"Comment [bold]#{comment.id}[/bold] created with status [bold]{comment.status}[/bold]")

    if comment.status != STATUS_PENDING:
        return
    if not moderate_now:
        console.print("[dim]Held for AI review. Run `modlens worker` or `modlens process` to moderate it.[/dim]")
        return

    outcome = pipeline.moderator.moderate(comment.id)
    if not outcome.processed:
        console.print(f"[yellow]Not moderated: {outcome.reason}[/yellow]")
    elif outcome.error:
        console.print(f"[red]Moderation failed: {outcome.error}[/red]")
    else:
        console.print(
            f"AI decision: [bold]{outcome.decision}[/bold] (confidence {outcome.confidence:.2f}); "
            f"status now [bold]{outcome.status or STATUS_PENDING}[/bold]"
        )


@click.command("set-status")
@click.argument("comment_id", type=int)
@click.argument("status", type=click.Choice(COMMENT_STATUSES))
@click.option("--actor", default=None, help="Who is making the change. Defaults to the current user.")
@click.pass_context
def set_status_cmd(ctx, comment_id: int, status: str, actor: str | None):
    """Change a comment's status as an operator.

    If the comment already has an AI decision, the change is recorded as an
    override of that decision.
    """
    pipeline = get_pipeline(ctx)
    actor = actor or getpass.getuser()
    if not pipeline.comments.set_status(comment_id, status, applied_by=APPLIED_BY_HUMAN, actor=actor):
        raise click.UsageError(f"Comment {comment_id} does not exist.")

    console.print(f"Comment [bold]#{comment_id}[/bold] is now [bold]{status}[/bold]")
    decision = pipeline.decisions.get_for_comment(comment_id)
    if decision is not None and decision.overridden:
        console.print(f"[yellow]AI decision #{decision.id} ({decision.decision}) marked as overridden.[/yellow]")
