#!/usr/bin/env python3
"""Operator CLI for quotation artifacts, compliance and bookings."""

import logging
import mimetypes
import os
import sys
from typing import Optional

import click

from .compliance.tracker import EvidenceFile
from .config import load_settings
from .errors import QuoteflowError
from .reservations.gate import ComplianceIncomplete
from .service import build_workflow
from .storage.models import FilterSignature


def _fail(message: str) -> None:
    click.echo(f"\n❌ {message}")
    sys.exit(1)


@click.group()
@click.option("--config", "config_path", help="Path to a YAML config file")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]):
    """Quotation workflow CLI."""
    if ctx.obj is None:
        settings = load_settings(config_path)
        logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
        ctx.obj = build_workflow(settings)


@cli.command()
@click.argument("document_id")
@click.option("--force", is_flag=True, help="Regenerate even if the cached PDF is current")
@click.pass_obj
def artifact(workflow, document_id: str, force: bool):
    """Get or generate the PDF for a quotation."""
    try:
        result = workflow.get_or_generate_artifact(document_id, force=force)
    except QuoteflowError as e:
        _fail(f"Artifact failed: {str(e)}")

    click.echo(f"{'Generated' if result.regenerated else 'Cached'}: {result.url}")
    click.echo(f"   Password: {result.password}")


@cli.command("invalidate-group")
@click.argument("page_group")
@click.option("--force", is_flag=True, help="Regenerate every quotation in the group")
@click.pass_obj
def invalidate_group(workflow, page_group: str, force: bool):
    """Refresh the PDFs of every quotation in a page group."""
    try:
        results = workflow.invalidate_group(page_group, force=force)
    except QuoteflowError as e:
        _fail(f"Group refresh failed: {str(e)}")

    regenerated = sum(1 for r in results if r.regenerated)
    failed = [r for r in results if not r.ok]
    click.echo(f"\nRefreshed {len(results)} quotations ({regenerated} regenerated):\n")
    for result in results:
        if not result.ok:
            click.echo(f"❌ {result.document_id}: {str(result.error)}")
            continue
        marker = "•" if result.regenerated else "-"
        click.echo(f"{marker} {result.document_id}: {result.url}")
    if failed:
        _fail(f"{len(failed)} of {len(results)} quotations failed to generate")


@cli.command()
@click.argument("document_id")
@click.pass_obj
def snapshot(workflow, document_id: str):
    """Show compliance progress for a quotation."""
    try:
        items = workflow.compliance.checklist(document_id)
        progress = workflow.get_compliance_snapshot(document_id)
    except QuoteflowError as e:
        _fail(str(e))

    click.echo(f"Compliance: {progress.completed_count}/{progress.total_count}")
    for item in items:
        click.echo(f"  [{item.state.value:>9}] {item.name} ({item.key})")
    if progress.missing_items:
        click.echo(f"Missing: {', '.join(progress.missing_items)}")


@cli.command()
@click.argument("document_id")
@click.argument("item_key")
@click.argument("decision", type=click.Choice(["accept", "decline"]))
@click.option("--reviewer", default="", help="Reviewer recorded on the item")
@click.pass_obj
def decide(workflow, document_id: str, item_key: str, decision: str, reviewer: str):
    """Accept or decline a compliance item."""
    try:
        item = workflow.set_compliance_decision(document_id, item_key, decision, reviewer)
    except QuoteflowError as e:
        _fail(str(e))

    click.echo(f"{item.name}: {item.state.value}")


@cli.command()
@click.argument("document_id")
@click.argument("item_key")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--uploaded-by", default="", help="Uploader user id")
@click.pass_obj
def upload(workflow, document_id: str, item_key: str, file_path: str, uploaded_by: str):
    """Upload evidence for a compliance item."""
    content_type = mimetypes.guess_type(file_path)[0] or "application/octet-stream"
    with open(file_path, "rb") as f:
        evidence = EvidenceFile(os.path.basename(file_path), content_type, f.read())

    try:
        item = workflow.upload_compliance_evidence(document_id, item_key, evidence, uploaded_by)
    except QuoteflowError as e:
        _fail(f"Upload failed: {str(e)}")

    click.echo(f"✅ {item.name} uploaded: {item.file_ref}")


@cli.command()
@click.argument("document_id")
@click.option("--project", "project_name", required=True, help="Project name for the booking")
@click.option("--acknowledge", is_flag=True, help="Proceed even if compliance is incomplete")
@click.option("--created-by", default="", help="User creating the booking")
@click.pass_obj
def reserve(workflow, document_id: str, project_name: str, acknowledge: bool, created_by: str):
    """Create a booking from a quotation."""
    try:
        outcome = workflow.create_booking(document_id, project_name, acknowledge, created_by)
    except QuoteflowError as e:
        _fail(f"Reservation failed: {str(e)}")

    if isinstance(outcome, ComplianceIncomplete):
        snap = outcome.snapshot
        click.echo(f"⚠️  Compliance incomplete ({snap.completed_count}/{snap.total_count})")
        click.echo(f"   Missing: {', '.join(snap.missing_items)}")
        click.echo("   Re-run with --acknowledge to reserve anyway")
        sys.exit(2)

    click.echo(f"✅ Booking created: {outcome}")


@cli.command("job-order-check")
@click.argument("document_id")
@click.pass_obj
def job_order_check(workflow, document_id: str):
    """Check whether a quotation can start a job order."""
    try:
        validation = workflow.validate_for_job_order(document_id)
    except QuoteflowError as e:
        _fail(str(e))

    if validation.valid:
        click.echo("✅ Ready for job order")
    else:
        click.echo(f"❌ Missing one of: {', '.join(validation.missing)}")
        sys.exit(1)


@cli.command("list")
@click.option("--company", "company_id", required=True, help="Company id to list quotations for")
@click.option("--status", default="all", help="Filter by status")
@click.option("--search", default="", help="Search quotation number, client or item names")
@click.option("--page", "page_number", default=1, type=int, help="1-based page number")
@click.pass_obj
def list_quotations(workflow, company_id: str, status: str, search: str, page_number: int):
    """List quotations one page at a time."""
    signature = FilterSignature(company_id=company_id, status=status, search=search)
    try:
        page = workflow.fetch_quotation_page(signature, page_number)
    except QuoteflowError as e:
        _fail(str(e))

    if not page.items and not page.has_next_page:
        click.echo("No quotations found")
        return

    click.echo(f"\nPage {page.page_number} ({len(page.items)} of {page.fetched_count} fetched):\n")
    if not page.items:
        # Search filters within a fetched page; later pages may still match
        click.echo("No matches on this page")
    for document in page.items:
        click.echo(f"• {document.quotation_number or document.id} [{document.status.value}]")
        click.echo(f"  ID: {document.id}")
        click.echo(f"  Client: {document.client_company_name or document.client_name or 'Not set'}")
    if page.has_next_page:
        click.echo(f"\nMore results: --page {page.page_number + 1}")


if __name__ == "__main__":
    cli()
