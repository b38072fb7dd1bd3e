"""
Agentic Restock CLI

Command-line interface for running the supplier and driving the buying agent.

Usage:
    restock serve --port 3000
    restock quote --quantity 150 --hour 18
    restock agent-card
    restock discover --item "Basmati Rice"
    restock orders --supplier-url http://localhost:3000
    restock restock --item "Lays Chips" --stock 8 --threshold 20 --simulate-payment
"""

import json
import os
from typing import Optional

import httpx
import typer
from typing_extensions import Annotated

from agentic_restock.agent.models import InventoryItem, RestockOutcome, RestockStatus
from agentic_restock.bootstrap import build_supplier_service, build_watcher
from agentic_restock.contract import SUPPLIER_ORDERS_PATH
from agentic_restock.fallback.gateway import FallbackGateway, select_supplier
from agentic_restock.kernel.logging import configure_logging, is_production
from agentic_restock.kernel.metrics import start_metrics_server
from agentic_restock.kernel.settings import AgentSettings, SupplierSettings
from agentic_restock.supplier.pricing import PricingEngine, compute_price
from agentic_restock.supplier.server import run_supplier_server
from agentic_restock.supplier.service import SupplierService

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=is_production(), log_level=os.getenv("LOG_LEVEL", "INFO"))

app = typer.Typer(
    name="restock",
    help="Agentic Restock - payment-gated autonomous procurement",
    add_completion=False,
)


def _supplier_client(base_url: str, timeout: float) -> httpx.Client:
    """HTTP client bound to a supplier"""
    return httpx.Client(base_url=base_url, timeout=timeout)


# Supplier commands


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind")] = "0.0.0.0",
    port: Annotated[
        Optional[int],
        typer.Option(help="Port to listen on (default: SUPPLIER_PORT or 3000)"),
    ] = None,
    metrics_port: Annotated[
        Optional[int],
        typer.Option("--metrics-port", help="Expose Prometheus metrics on this port"),
    ] = None,
) -> None:
    """Run the supplier API"""
    settings = SupplierSettings.from_env()
    try:
        service = build_supplier_service(settings)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if metrics_port is not None:
        start_metrics_server(metrics_port)

    typer.echo(f"✓ {settings.name} accepting payments to {settings.settlement_address}")
    run_supplier_server(service, host=host, port=port or settings.port)


@app.command()
def quote(
    quantity: Annotated[int, typer.Option("--quantity", help="Units to price")],
    hour: Annotated[
        Optional[int],
        typer.Option("--hour", help="Supplier-local hour 0-23 (default: now)"),
    ] = None,
) -> None:
    """Show the supplier's price for an order"""
    settings = SupplierSettings.from_env()
    pricing = PricingEngine(settings.pricing)
    at_hour = pricing.local_hour() if hour is None else hour
    try:
        price = compute_price(settings.pricing, quantity, at_hour)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"{price:f} {settings.pricing.currency}")
    typer.echo(f"  Quantity: {quantity}")
    typer.echo(f"  Hour: {at_hour:02d}:00 {settings.pricing.timezone}")


@app.command("agent-card")
def agent_card() -> None:
    """Print the supplier's capability descriptor"""
    service = SupplierService(settings=SupplierSettings.from_env())
    typer.echo(json.dumps(service.agent_card(), indent=2))


@app.command()
def orders(
    supplier_url: Annotated[
        Optional[str],
        typer.Option("--supplier-url", help="Supplier base URL (default: SUPPLIER_URL)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List the orders recorded by a supplier"""
    settings = AgentSettings.from_env()
    base_url = supplier_url or settings.supplier_url
    client = _supplier_client(base_url, settings.request_timeout_seconds)
    try:
        response = client.get(SUPPLIER_ORDERS_PATH)
        response.raise_for_status()
    except httpx.HTTPError as e:
        typer.echo(f"Error: could not fetch orders: {e}", err=True)
        raise typer.Exit(1)
    finally:
        client.close()

    body = response.json()
    if json_output:
        typer.echo(json.dumps(body, indent=2))
        return

    ledger = body.get("orders", [])
    if not ledger:
        typer.echo("No orders recorded")
        return

    typer.echo(f"Orders ({len(ledger)}), total revenue {body.get('totalRevenue')}:")
    for order in ledger:
        typer.echo(
            f"  {order['orderId']}: {order['quantity']} x {order['item']} "
            f"for {order['totalPrice']} [{order['status']}] {order['trackingId']}"
        )


# Agent commands


@app.command()
def discover(
    item: Annotated[str, typer.Option("--item", help="Item to source")],
    quantity: Annotated[int, typer.Option("--quantity", help="Units needed")] = 20,
) -> None:
    """Query the fallback network for alternate suppliers"""
    suppliers = FallbackGateway().discover(item, quantity)
    if not suppliers:
        typer.echo("No fallback suppliers available")
        raise typer.Exit(1)

    chosen = select_supplier(suppliers)
    typer.echo(f"Fallback suppliers ({len(suppliers)}):")
    for supplier in suppliers:
        marker = "*" if supplier.supplier_id == chosen.supplier_id else " "
        typer.echo(
            f" {marker} {supplier.supplier_id}: {supplier.name} "
            f"(rating {supplier.rating}, delivery {supplier.delivery_estimate})"
        )


@app.command()
def restock(
    item: Annotated[str, typer.Option("--item", help="Item name sent to the supplier")],
    stock: Annotated[int, typer.Option("--stock", help="Units currently on hand")],
    threshold: Annotated[int, typer.Option("--threshold", help="Restock threshold")],
    capacity: Annotated[int, typer.Option("--capacity", help="Shelf capacity")] = 100,
    unit: Annotated[str, typer.Option("--unit", help="Unit of measure")] = "units",
    quantity: Annotated[
        Optional[int],
        typer.Option("--quantity", help="Fixed quantity (skips the decision gate)"),
    ] = None,
    supplier_url: Annotated[
        Optional[str],
        typer.Option("--supplier-url", help="Supplier base URL (default: SUPPLIER_URL)"),
    ] = None,
    simulate_payment: Annotated[
        bool,
        typer.Option("--simulate-payment", help="Settle with simulated payments"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Run one restock workflow for an item against a supplier"""
    settings = AgentSettings.from_env()
    if supplier_url:
        settings = settings.model_copy(update={"supplier_url": supplier_url})

    client = _supplier_client(settings.supplier_url, settings.request_timeout_seconds)
    try:
        target = InventoryItem(
            item_id="cli", name=item, unit=unit, stock=stock, threshold=threshold, capacity=capacity
        )
        watcher = build_watcher(
            settings, simulate_payment=simulate_payment, http_client=client, items=[target]
        )
    except ValueError as e:
        client.close()
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    try:
        if quantity is not None:
            outcome = watcher.restock(target.item_id, quantity)
        else:
            outcome = watcher.observe(target.item_id)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        client.close()

    if outcome is None:
        typer.echo(f"{item} is healthy ({stock}/{threshold} {unit}), nothing to do")
        return

    if json_output:
        typer.echo(outcome.model_dump_json(indent=2))
    else:
        _echo_outcome(outcome, unit)

    if outcome.status == RestockStatus.FAILED:
        raise typer.Exit(1)


def _echo_outcome(outcome: RestockOutcome, unit: str) -> None:
    if outcome.status == RestockStatus.FULFILLED:
        attempt = outcome.attempt
        typer.echo(f"✓ Restocked {outcome.quantity} {unit} of {outcome.item_name}")
        typer.echo(f"  Paid: {attempt.invoice.amount:f} {attempt.invoice.currency}")
        typer.echo(f"  Proof: {attempt.proof}")
        typer.echo(f"  Tracking: {attempt.tracking_id}")
    elif outcome.status == RestockStatus.FALLBACK_FULFILLED:
        typer.echo(f"✓ Restocked {outcome.quantity} {unit} of {outcome.item_name} via fallback")
        typer.echo(f"  Supplier: {outcome.fallback_supplier}")
        typer.echo(f"  Order: {outcome.fallback_order_id}")
    elif outcome.status == RestockStatus.DECLINED:
        typer.echo(f"Declined to restock {outcome.item_name}")
        if outcome.recommendation:
            typer.echo(f"  Reason: {outcome.recommendation.reason}")
    else:
        typer.echo(f"✗ Restock of {outcome.item_name} failed: {outcome.error}", err=True)
        return
    typer.echo(f"  Stock now: {outcome.stock_after} {unit}")


if __name__ == "__main__":
    app()
