"""
KB RAG CLI - Main entry point.

Commands:
- setup: Provision buckets, vector index, knowledge base and data source
- upload: Upload new local documents and start an ingestion job
- ingest: Start an ingestion job only
- status: Show the knowledge base status
- retrieve: Run the retrieval tool for a question
- serve: Run the chat API server
"""

import logging
from typing import Optional

import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kb_rag.chat.retriever import ContextRetriever, RetrievalStatus
from kb_rag.config import Settings, get_settings
from kb_rag.errors import KBRagError
from kb_rag.pipeline import Pipeline
from kb_rag.services.bedrock import KnowledgeBaseService
from kb_rag.utils.logging import setup_logging

app = typer.Typer(
    name="kb-rag",
    help="KB RAG CLI - Bedrock knowledge base on S3 Vectors",
    add_completion=False,
)

console = Console()
logger = logging.getLogger(__name__)

# Errors that abort a flow with exit code 1
FATAL_ERRORS = (KBRagError, ClientError, BotoCoreError, OSError)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """KB RAG CLI."""
    level = "DEBUG" if debug else ("INFO" if verbose else "WARNING")
    setup_logging(level)


def _print_config(settings: Settings, rows: list[tuple[str, str]]) -> None:
    table = Table(show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Region", settings.aws_region)
    for name, value in rows:
        table.add_row(name, value or "[dim]Not set[/dim]")
    console.print(table)


def _abort(message: str, errors: list[str]) -> None:
    for error in errors:
        rprint(f"[red]✗ {error}[/red]")
    rprint(f"[red]{message}[/red]")
    raise typer.Exit(1)


# =============================================================================
# Provisioning Commands
# =============================================================================

@app.command()
def setup(
    poll_interval: float = typer.Option(10.0, "--poll-interval", help="Seconds between status checks"),
    poll_attempts: int = typer.Option(30, "--poll-attempts", help="Maximum status checks"),
):
    """Provision the knowledge base stack and run the initial ingestion."""
    settings = get_settings().with_generated_names()

    rprint("\n[bold]AWS Bedrock Knowledge Base Setup[/bold]")
    _print_config(
        settings,
        [
            ("Documents Bucket", settings.s3_bucket_name),
            ("Vectors Bucket", settings.s3_vectors_bucket_name),
            ("Index Name", settings.s3_vectors_index_name),
            ("Knowledge Base", settings.kb_name),
            ("Embedding Model", settings.embedding_model),
            ("Role ARN", settings.bedrock_kb_role_arn),
        ],
    )

    errors = settings.validate_for_setup()
    if errors:
        _abort("Setup aborted", errors)

    try:
        summary = Pipeline(settings).run_setup(
            poll_interval=poll_interval,
            poll_max_attempts=poll_attempts,
        )
    except FATAL_ERRORS as e:
        logger.debug("Setup failed", exc_info=True)
        rprint(f"[red]Setup failed: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Resources Created", show_header=False)
    table.add_column("Resource", style="cyan")
    table.add_column("Identifier")
    for name, value in summary.to_rows():
        table.add_row(name, value)
    console.print(table)

    console.print(
        Panel(
            "\n".join(
                [
                    f"1. Upload documents to: [cyan]s3://{summary.documents_bucket}/[/cyan]",
                    "2. Run [bold]kb-rag upload[/bold] to start an ingestion job",
                    f"3. Set S3_VECTORS_INDEX_ARN={summary.index_arn} and run [bold]kb-rag serve[/bold]",
                ]
            ),
            title="Next Steps",
        )
    )
    rprint("\n[bold green]Setup completed successfully![/bold green]")


@app.command()
def upload():
    """Upload new local documents and start an ingestion job."""
    settings = get_settings()

    rprint("\n[bold]Upload Documents to Bedrock KB[/bold]")
    _print_config(
        settings,
        [
            ("Documents Bucket", settings.s3_bucket_name),
            ("Knowledge Base ID", settings.kb_id),
            ("Data Source ID", settings.data_source_id),
            ("Documents Dir", str(settings.documents_path)),
        ],
    )

    errors = settings.validate_for_upload()
    if errors:
        _abort("Upload aborted", errors)

    try:
        Pipeline(settings).run_upload()
    except FATAL_ERRORS as e:
        logger.debug("Upload failed", exc_info=True)
        rprint(f"[red]Upload failed: {e}[/red]")
        raise typer.Exit(1)

    rprint("\n[bold green]Upload and ingestion started successfully![/bold green]")


@app.command()
def ingest(
    kb_id: Optional[str] = typer.Option(None, "--kb-id", help="Knowledge base ID override"),
    data_source_id: Optional[str] = typer.Option(None, "--data-source-id", help="Data source ID override"),
):
    """Start an ingestion job without uploading."""
    settings = get_settings()
    kb_id = kb_id or settings.kb_id
    data_source_id = data_source_id or settings.data_source_id

    if not kb_id or not data_source_id:
        _abort("Ingestion aborted", ["KB_ID and DATA_SOURCE_ID are required"])

    try:
        Pipeline(settings).start_ingestion(kb_id, data_source_id, "Manual ingestion of documents from S3")
    except FATAL_ERRORS as e:
        rprint(f"[red]Ingestion failed: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def status(
    kb_id: Optional[str] = typer.Option(None, "--kb-id", help="Knowledge base ID override"),
):
    """Show the current knowledge base status."""
    settings = get_settings()
    kb_id = kb_id or settings.kb_id
    if not kb_id:
        _abort("Status aborted", ["KB_ID is required"])

    try:
        kb_status = KnowledgeBaseService(settings).get_status(kb_id)
    except FATAL_ERRORS as e:
        rprint(f"[red]Error getting status: {e}[/red]")
        raise typer.Exit(1)

    color = {"ACTIVE": "green", "FAILED": "red"}.get(kb_status or "", "yellow")
    rprint(f"Knowledge Base [cyan]{kb_id}[/cyan]: [{color}]{kb_status or 'UNKNOWN'}[/{color}]")


# =============================================================================
# Chat Commands
# =============================================================================

@app.command()
def retrieve(
    question: str = typer.Argument(..., help="Question to retrieve context for"),
):
    """Run the knowledge base retrieval tool for a question."""
    settings = get_settings()
    result = ContextRetriever(settings).retrieve(question)

    if result.status is RetrievalStatus.NOT_CONFIGURED:
        _abort("Retrieval skipped", ["S3_VECTORS_INDEX_ARN is not set"])
    if result.status is RetrievalStatus.FAILED:
        _abort("Retrieval failed", [result.error or "unknown error"])

    if not result.passages:
        rprint("[yellow]No passages found[/yellow]")
        return

    for i, passage in enumerate(result.passages, 1):
        distance = f"{passage.distance:.4f}" if passage.distance is not None else "n/a"
        console.print(
            Panel(passage.text or "[dim](no text)[/dim]", title=f"{i}. {passage.key} (distance {distance})")
        )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind host"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
):
    """Run the chat API server."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    if not settings.s3_vectors_index_arn:
        rprint("[yellow]S3_VECTORS_INDEX_ARN not set: chat will answer without retrieval[/yellow]")

    uvicorn.run("kb_rag.server.app:app", host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    app()
