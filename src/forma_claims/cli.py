"""Command-line interface for managing Forma benefit claims."""

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Annotated, Any, TypeVar, cast

import anthropic
import httpx
import typer
from rich.console import Console
from rich.table import Table

from forma_claims.catalog import get_benefits, get_benefits_with_categories, resolve_categories
from forma_claims.claims import RawClaim, check_claim_fields, resolve_claim
from forma_claims.config import ConfigStore, Settings
from forma_claims.csv_claims import read_claims_from_csv, write_template_csv
from forma_claims.errors import FormaError, InvalidUsageError
from forma_claims.forma_client import FormaClient
from forma_claims.magic_link import parse_magic_link
from forma_claims.receipt_inference import infer_benefit_and_category, infer_claim_from_receipt
from forma_claims.receipts import SUPPORTED_EXTENSIONS, find_receipt_files, move_to_processed
from forma_claims.submission import submit_claim

logger = logging.getLogger(__name__)

app = typer.Typer(no_args_is_help=True, help="Submit and manage claims for your Forma benefits.")

console = Console()
err_console = Console(stderr=True)

# Errors that fail a single item of a batch without stopping the rest.
ITEM_ERRORS = (FormaError, httpx.HTTPError, anthropic.APIError, OSError)

AnthropicKeyOption = Annotated[
    str | None,
    typer.Option(
        "--anthropic-api-key",
        envvar="ANTHROPIC_API_KEY",
        show_default=False,
        help="Anthropic API key used to infer claim details with Claude.",
    ),
]
YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Submit inferred claims without asking for confirmation."),
]

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class AppContext:
    settings: Settings
    config_store: ConfigStore
    access_token_override: str | None = None

    def client(self, authenticated: bool = True) -> FormaClient:
        access_token = self.config_store.resolve_access_token(self.access_token_override) if authenticated else None
        return FormaClient(access_token, base_url=self.settings.api_base_url, timeout=self.settings.http_timeout)


def _report_errors(fn: F) -> F:
    """Print any error escaping a command on stderr and exit with status 1."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except (typer.Exit, typer.Abort):
            raise
        except Exception as e:
            logger.debug("Command failed", exc_info=True)
            _print_error(str(e) or repr(e))
            raise typer.Exit(code=1) from e

    return cast(F, wrapper)


@app.callback()
@_report_errors
def main(
    ctx: typer.Context,
    access_token: Annotated[
        str | None,
        typer.Option(
            "--access-token",
            envvar="FORMA_ACCESS_TOKEN",
            show_default=False,
            help="Access token used to authenticate with Forma, instead of the one saved by `login`.",
        ),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log each API call.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    settings = Settings.from_env()
    ctx.obj = AppContext(
        settings=settings,
        config_store=ConfigStore(settings.config_path),
        access_token_override=access_token,
    )


@app.command("login")
@_report_errors
def login(
    ctx: typer.Context,
    email: Annotated[str | None, typer.Option(help="Email address used to log in to Forma.")] = None,
    magic_link_url: Annotated[
        str | None,
        typer.Option("--magic-link-url", help="Magic link received by email for logging in to Forma."),
    ] = None,
) -> None:
    """Connect to your Forma account with a magic link."""
    app_ctx = _app_context(ctx)
    if email and magic_link_url:
        raise InvalidUsageError("You must provide either --email or --magic-link-url, not both.")

    with app_ctx.client(authenticated=False) as client:
        if not magic_link_url:
            if not email:
                email = typer.prompt("Enter the email address you use to log on to Forma")
            client.request_magic_link(email)
            magic_link_url = typer.prompt(f"Copy and paste the magic link sent to you at {email}")

        link_id, link_token = parse_magic_link(magic_link_url)
        access_token = client.exchange_magic_link(link_id, link_token)

    app_ctx.config_store.save_access_token(access_token, email)
    console.print("[green]You are now logged in![/green]")


@app.command("list-benefits")
@_report_errors
def list_benefits(ctx: typer.Context) -> None:
    """List your benefits and their remaining balances."""
    with _app_context(ctx).client() as client:
        benefits = get_benefits(client)

    table = Table(title="Benefits")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Remaining Amount", justify="right")
    for benefit in benefits:
        table.add_row(benefit.name, f"{benefit.remaining_amount:.2f} {benefit.remaining_amount_currency}")
    console.print(table)


@app.command("list-categories")
@_report_errors
def list_categories(
    ctx: typer.Context,
    benefit: Annotated[str, typer.Option(help="The benefit to list categories for.")],
) -> None:
    """List the categories you can claim against for a benefit."""
    with _app_context(ctx).client() as client:
        categories = resolve_categories(client, benefit)

    table = Table(title=benefit)
    table.add_column("Parent Category", style="cyan")
    table.add_column("Category")
    for category in categories:
        table.add_row(category.category_name, category.display_name)
    console.print(table)


@app.command("list-claims")
@_report_errors
def list_claims(
    ctx: typer.Context,
    status_filter: Annotated[
        str | None,
        typer.Option("--filter", help="Filter claims by status (currently supports: in_progress)."),
    ] = None,
) -> None:
    """List the claims in your Forma account and their current status."""
    if status_filter and status_filter != "in_progress":
        raise InvalidUsageError(f"Invalid filter value '{status_filter}'. Currently supported filters: in_progress")

    with _app_context(ctx).client() as client:
        claims = client.list_claims(status_filter)

    has_payout_status = any(claim.payout_status is not None for claim in claims)

    table = Table(title="Claims")
    for header in ("Reimbursement Vendor", "Employee Note", "Amount", "Category", "Subcategory", "Status"):
        table.add_column(header)
    table.add_column("Reimbursement Status")
    if has_payout_status:
        table.add_column("Payout Status")
    table.add_column("Date Processed")
    table.add_column("Note")

    for claim in claims:
        row = [
            claim.reimbursement_vendor,
            claim.employee_note,
            f"{claim.amount:.2f}",
            claim.category,
            claim.subcategory,
            claim.status,
            claim.reimbursement_status,
        ]
        if has_payout_status:
            row.append(claim.payout_status or "")
        row.extend([claim.date_processed or "", claim.note])
        table.add_row(*row)
    console.print(table)


@app.command("submit-claim")
@_report_errors
def submit_claim_command(
    ctx: typer.Context,
    receipt_path: Annotated[
        list[str],
        typer.Option(
            "--receipt-path",
            help="Path of a receipt (JPEG, PNG, PDF or HEIC, up to 10MB). Repeat to attach several receipts.",
        ),
    ],
    benefit: Annotated[str | None, typer.Option(help="The benefit you are claiming for.")] = None,
    category: Annotated[str | None, typer.Option(help="The category of the claim.")] = None,
    amount: Annotated[str | None, typer.Option(help="The amount of the claim, e.g. 25.99.")] = None,
    merchant: Annotated[str | None, typer.Option(help="The name of the merchant.")] = None,
    purchase_date: Annotated[
        str | None,
        typer.Option("--purchase-date", help="The date of purchase in YYYY-MM-DD format."),
    ] = None,
    description: Annotated[str | None, typer.Option(help="The description of the claim.")] = None,
    anthropic_api_key: AnthropicKeyOption = None,
    yes: YesOption = False,
) -> None:
    """Submit a claim for a Forma benefit.

    Either give every claim detail, or give an Anthropic API key and let
    Claude infer the benefit and category from --merchant and --description,
    or infer everything from the receipt when no details are given.
    """
    app_ctx = _app_context(ctx)
    details = (benefit, category, amount, merchant, purchase_date, description)
    receipt_paths = tuple(receipt_path)

    with app_ctx.client() as client:
        if all(details):
            claim = RawClaim(
                benefit=cast(str, benefit),
                category=cast(str, category),
                amount=cast(str, amount),
                merchant=cast(str, merchant),
                purchase_date=cast(str, purchase_date),
                description=cast(str, description),
                receipt_paths=receipt_paths,
            )
        elif not any(details) and anthropic_api_key:
            benefits_with_categories = get_benefits_with_categories(client)
            inferred = infer_claim_from_receipt(
                anthropic_api_key, receipt_paths[0], benefits_with_categories, app_ctx.settings.model
            )
            claim = replace(inferred, receipt_paths=receipt_paths)
            _print_claim_details(claim)
            _confirm("Do you want to submit this claim?", yes)
        elif merchant and description and anthropic_api_key:
            if not amount or not purchase_date:
                raise InvalidUsageError(
                    "When using Claude to infer only benefit and category, you must still provide --amount and "
                    "--purchase-date."
                )
            benefits_with_categories = get_benefits_with_categories(client)
            inferred_benefit, inferred_category = infer_benefit_and_category(
                anthropic_api_key, merchant, description, benefits_with_categories, app_ctx.settings.model
            )
            console.print(
                f"Claude inferred that you should claim using the [magenta]{inferred_benefit}[/magenta] benefit "
                f"and [magenta]{inferred_category}[/magenta] category."
            )
            _confirm("Does that seem right?", yes)
            claim = RawClaim(
                benefit=inferred_benefit,
                category=inferred_category,
                amount=amount,
                merchant=merchant,
                purchase_date=purchase_date,
                description=description,
                receipt_paths=receipt_paths,
            )
        else:
            raise InvalidUsageError(
                "You must either provide all claim details (--benefit, --category, --amount, --merchant, "
                "--purchase-date, --description), or provide an Anthropic API key with either: (1) just a receipt "
                "for full inference, or (2) all details except --benefit and --category to infer them."
            )

        submit_claim(client, claim)

    console.print("[green]Claim submitted successfully ✅[/green]")


@app.command("submit-claims-from-csv")
@_report_errors
def submit_claims_from_csv(
    ctx: typer.Context,
    input_path: Annotated[Path, typer.Option("--input-path", help="The path to the CSV to read claims from.")],
    anthropic_api_key: AnthropicKeyOption = None,
    yes: YesOption = False,
) -> None:
    """Submit several claims from a CSV made with `generate-template-csv`.

    Rows that leave `benefit` and `category` empty have them inferred by
    Claude when an Anthropic API key is available. Several receipts may be
    attached to a row by separating their paths with commas.
    """
    app_ctx = _app_context(ctx)
    claims = read_claims_from_csv(input_path)
    total = len(claims)
    submitted = 0

    with app_ctx.client() as client:
        for index, claim in enumerate(claims, start=1):
            console.print(f"Submitting claim {index}/{total}")
            try:
                if not (claim.benefit and claim.category):
                    if not anthropic_api_key:
                        raise InvalidUsageError(
                            "You must either fill out the `benefit` and `category` columns, or provide an "
                            "Anthropic API key."
                        )
                    inferred_benefit, inferred_category = infer_benefit_and_category(
                        anthropic_api_key,
                        claim.merchant,
                        claim.description,
                        get_benefits_with_categories(client),
                        app_ctx.settings.model,
                    )
                    console.print(
                        f"Claude inferred the [magenta]{inferred_benefit}[/magenta] benefit and "
                        f"[magenta]{inferred_category}[/magenta] category."
                    )
                    if not yes and not typer.confirm("Does that seem right?", default=True):
                        console.print(f"[yellow]Skipped claim {index}/{total}[/yellow]")
                        continue
                    claim = replace(claim, benefit=inferred_benefit, category=inferred_category)

                submit_claim(client, claim)
            except ITEM_ERRORS as e:
                logger.debug("Claim %d/%d failed", index, total, exc_info=True)
                _print_error(f"Error submitting claim {index}/{total}: {e}")
                continue

            submitted += 1
            console.print(f"[green]Successfully submitted claim {index}/{total}[/green]")

    console.print(f"Submitted {submitted} of {total} claims.")


@app.command("submit-claims-from-directory")
@_report_errors
def submit_claims_from_directory(
    ctx: typer.Context,
    directory: Annotated[
        Path,
        typer.Option(help="The directory containing receipt files. Supported file types: JPEG, PNG, PDF, HEIC."),
    ],
    processed_directory: Annotated[
        Path | None,
        typer.Option(
            "--processed-directory",
            help="Where to move receipts once their claim is submitted (defaults to `processed/` inside --directory).",
        ),
    ] = None,
    anthropic_api_key: AnthropicKeyOption = None,
    yes: YesOption = False,
) -> None:
    """Submit one claim per receipt in a directory, with details inferred by Claude."""
    app_ctx = _app_context(ctx)
    if not anthropic_api_key:
        raise InvalidUsageError(
            "You must provide an Anthropic API key (--anthropic-api-key) to infer claim details from receipts."
        )

    processed_dir = processed_directory or directory / "processed"
    receipts = find_receipt_files(directory)
    if not receipts:
        console.print(f"[yellow]No supported receipt files found in directory: {directory}[/yellow]")
        console.print(f"[yellow]Supported file types: {', '.join(SUPPORTED_EXTENSIONS)}[/yellow]")
        return

    console.print(f"[green]Found {len(receipts)} receipt file(s) to process:[/green]")
    for index, receipt in enumerate(receipts, start=1):
        console.print(f"  {index}. {receipt.name}")

    processed = 0
    skipped = 0
    with app_ctx.client() as client:
        benefits_with_categories = get_benefits_with_categories(client)

        for index, receipt in enumerate(receipts, start=1):
            console.print(f"\n[cyan]--- Processing receipt {index}/{len(receipts)}: {receipt.name} ---[/cyan]")
            try:
                claim = infer_claim_from_receipt(
                    anthropic_api_key, str(receipt), benefits_with_categories, app_ctx.settings.model
                )
                _print_claim_details(claim)
                if not yes and not typer.confirm("Do you want to submit this claim?", default=False):
                    console.print(f"[yellow]Skipped {receipt.name}[/yellow]")
                    skipped += 1
                    continue

                submit_claim(client, claim)
            except ITEM_ERRORS as e:
                logger.debug("Receipt %s failed", receipt, exc_info=True)
                _print_error(f"Error processing {receipt.name}: {e}")
                skipped += 1
                continue

            processed += 1
            console.print(f"[green]Claim submitted successfully for {receipt.name} ✅[/green]")
            try:
                moved = move_to_processed(receipt, processed_dir)
            except OSError as e:
                _print_error(
                    f"Warning: Could not move {receipt} to {processed_dir}: {e}. "
                    "The claim was submitted successfully, but the file was not moved."
                )
            else:
                console.print(f"[blue]Moved processed receipt to: {moved}[/blue]")

    console.print("\n[green]--- Summary ---[/green]")
    console.print(f"Processed successfully: {processed}")
    console.print(f"Skipped: {skipped}")
    console.print(f"Total files: {len(receipts)}")


@app.command("validate-csv")
@_report_errors
def validate_csv(
    ctx: typer.Context,
    input_path: Annotated[Path, typer.Option("--input-path", help="The path to the CSV to read claims from.")],
) -> None:
    """Validate a completed CSV before submitting it with `submit-claims-from-csv`."""
    claims = read_claims_from_csv(input_path)
    total = len(claims)
    valid = 0

    with _app_context(ctx).client() as client:
        for index, claim in enumerate(claims, start=1):
            row_number = index + 1
            console.print(f"Validating claim {index}/{total} (row {row_number})")
            try:
                if claim.benefit and claim.category:
                    resolve_claim(client, claim)
                else:
                    check_claim_fields(claim)
                    console.print(
                        f"[yellow]Claim {index}/{total} (row {row_number}) doesn't have a benefit and/or category. "
                        "This will have to be inferred by Claude when the claims are submitted.[/yellow]"
                    )
            except ITEM_ERRORS as e:
                _print_error(f"Error validating claim {index}/{total} (row {row_number}): {e}")
                continue

            valid += 1
            console.print(f"[green]Validated claim {index}/{total} (row {row_number})[/green]")

    console.print(f"{valid} of {total} claims are valid.")


@app.command("generate-template-csv")
@_report_errors
def generate_template_csv(
    output_path: Annotated[
        Path, typer.Option("--output-path", help="The path to write the CSV to.")
    ] = Path("claims.csv"),
) -> None:
    """Generate a template CSV for submitting several claims at once."""
    write_template_csv(output_path)
    console.print(f"[green]Wrote template CSV to {output_path}[/green]")


def _app_context(ctx: typer.Context) -> AppContext:
    return cast(AppContext, ctx.obj)


def _confirm(question: str, assume_yes: bool) -> None:
    if not assume_yes:
        typer.confirm(question, default=True, abort=True)


def _print_error(message: str) -> None:
    err_console.print(message, style="red", markup=False, highlight=False)


def _print_claim_details(claim: RawClaim) -> None:
    table = Table(title="Inferred claim details", show_header=False)
    table.add_column("Field", style="bright_green", no_wrap=True)
    table.add_column("Value", style="yellow")
    table.add_row("Amount", claim.amount)
    table.add_row("Merchant", claim.merchant)
    table.add_row("Purchase Date", claim.purchase_date)
    table.add_row("Description", claim.description)
    table.add_row("Benefit", claim.benefit)
    table.add_row("Category", claim.category)
    console.print(table)
