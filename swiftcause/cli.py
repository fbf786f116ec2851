# swiftcause/cli.py
from __future__ import annotations

import click
from flask.cli import AppGroup
from sqlalchemy import select

from swiftcause.extensions import db

swiftcause_cli = AppGroup("swiftcause", help="SwiftCause maintenance commands.")


@swiftcause_cli.command("deliver-mail")
@click.option("--limit", default=50, show_default=True, help="Max queued emails to send.")
def deliver_mail(limit: int):
    """Send queued thank-you emails."""
    from swiftcause.services.notifications import deliver_pending

    stats = deliver_pending(limit=limit)
    click.echo(f"sent={stats['sent']} failed={stats['failed']} retrying={stats['retrying']}")


@swiftcause_cli.command("reconcile-campaigns")
def reconcile_campaigns():
    """Apply goal / end-date auto transitions to every campaign."""
    from swiftcause.models import Campaign
    from swiftcause.services.campaign_status import reconcile_campaign

    changed = 0
    for campaign in db.session.execute(select(Campaign)).scalars():
        res = reconcile_campaign(campaign)
        if res.updates:
            changed += 1
            click.echo(f"{campaign.id}: -> {res.status}")
    db.session.commit()
    click.echo(f"{changed} campaign(s) updated")


@swiftcause_cli.command("export-gift-aid")
@click.option("--org", "organization_id", default=None, help="Only this organization.")
@click.option("--tax-year", default=None, help="e.g. 2024-25")
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None)
def export_gift_aid(organization_id, tax_year, output):
    """Write the HMRC Gift Aid CSV to a file or stdout."""
    from swiftcause.models import GiftAidDeclaration
    from swiftcause.services.gift_aid import export_csv

    stmt = select(GiftAidDeclaration).order_by(GiftAidDeclaration.donation_date)
    if organization_id:
        stmt = stmt.where(GiftAidDeclaration.organization_id == organization_id)
    if tax_year:
        stmt = stmt.where(GiftAidDeclaration.tax_year == tax_year)

    body = export_csv(db.session.execute(stmt).scalars())
    if output:
        with open(output, "w", encoding="utf-8", newline="") as fh:
            fh.write(body + "\n")
        click.echo(f"✅ wrote {output}")
    else:
        click.echo(body)


@swiftcause_cli.command("seed-demo")
@click.option("--access-code", default="1234", show_default=True)
def seed_demo(access_code: str):
    """Create a demo organization, campaign and online kiosk."""
    from swiftcause.models import Campaign, Kiosk, Organization

    click.echo("🌱 Seeding demo data...")

    org = db.session.get(Organization, "demo-org")
    if org is None:
        org = Organization(id="demo-org", name="Demo Charity", currency="gbp")
        db.session.add(org)
        click.echo("✨ Created organization demo-org")

    campaign = db.session.get(Campaign, "demo-campaign")
    if campaign is None:
        campaign = Campaign(
            id="demo-campaign",
            organization_id=org.id,
            title="Community Kitchen",
            currency="gbp",
            goal=1_000_000,  # £10,000
            status="active",
        )
        db.session.add(campaign)
        click.echo("   → Added campaign demo-campaign")

    kiosk = db.session.get(Kiosk, "demo-kiosk")
    if kiosk is None:
        kiosk = Kiosk(id="demo-kiosk", name="Front Desk", organization_id=org.id, assigned_campaigns=[campaign.id])
        db.session.add(kiosk)
    kiosk.status = "online"
    kiosk.set_access_code(access_code)

    db.session.commit()
    click.echo(f"✅ Kiosk demo-kiosk ready (access code {access_code})")
