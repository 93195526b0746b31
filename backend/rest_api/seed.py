"""
Seed data for development and testing.
Creates a demo restaurant: settings, KITCHEN and BAR sectors, a small menu
and a few tables with QR codes.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.models import Category, Dish, PrepSector, Table, Tenant, TenantSettings
from shared.config.logging import get_logger

logger = get_logger(__name__)


# Sector codes used by the consoles
KITCHEN = "KITCHEN"
BAR = "BAR"

DEMO_SLUG = "demo"

# (category, sector code or None, [(dish, price, allergens)])
DEMO_MENU = [
    (
        "Starters",
        KITCHEN,
        [
            ("Patatas bravas", "6.50", ["gluten"]),
            ("Croquetas de jamón", "8.00", ["gluten", "milk", "eggs"]),
        ],
    ),
    (
        "Mains",
        KITCHEN,
        [
            ("Paella valenciana", "16.00", ["crustaceans"]),
            ("Pulpo a la gallega", "18.50", ["molluscs"]),
        ],
    ),
    (
        "Drinks",
        BAR,
        [
            ("Caña", "2.50", ["gluten"]),
            ("Tinto de verano", "3.50", []),
            ("Agua mineral", "2.00", []),
        ],
    ),
    # Routed nowhere: only management can move these items
    ("Bread service", None, [("Pan y alioli", "1.50", ["gluten", "eggs"])]),
]


@dataclass
class SeededRestaurant:
    """Ids of the rows created for one restaurant."""

    tenant_id: int
    slug: str
    sector_ids: dict[str, int] = field(default_factory=dict)
    dish_ids: dict[str, int] = field(default_factory=dict)
    table_ids: list[int] = field(default_factory=list)
    qr_codes: list[str] = field(default_factory=list)


async def seed_restaurant(
    db: AsyncSession,
    name: str,
    slug: str,
    table_count: int = 4,
    with_settings: bool = True,
) -> SeededRestaurant:
    """
    Insert one restaurant with its sectors, menu and tables, and flush.

    QR codes are ``{slug}-t{number}``. The caller commits.
    """
    tenant = Tenant(name=name, slug=slug, email=f"hello@{slug}.example")
    db.add(tenant)
    await db.flush()

    if with_settings:
        db.add(TenantSettings(tenant_id=tenant.id))

    seeded = SeededRestaurant(tenant_id=tenant.id, slug=slug)

    for position, (code, sector_name) in enumerate([(KITCHEN, "Kitchen"), (BAR, "Bar")], start=1):
        sector = PrepSector(
            tenant_id=tenant.id, code=code, name=sector_name, display_order=position
        )
        db.add(sector)
        await db.flush()
        seeded.sector_ids[code] = sector.id

    for category_name, sector_code, dishes in DEMO_MENU:
        category = Category(
            tenant_id=tenant.id,
            name=category_name,
            prep_sector_id=seeded.sector_ids.get(sector_code) if sector_code else None,
        )
        db.add(category)
        await db.flush()

        for dish_name, price, allergens in dishes:
            dish = Dish(
                tenant_id=tenant.id,
                category_id=category.id,
                name=dish_name,
                price=Decimal(price),
                allergens=allergens,
            )
            db.add(dish)
            await db.flush()
            seeded.dish_ids[dish_name] = dish.id

    for number in range(1, table_count + 1):
        qr_code = f"{slug}-t{number}"
        table = Table(
            tenant_id=tenant.id,
            number=number,
            name=f"Table {number}",
            qr_code=qr_code,
            zone="Terrace" if number > table_count // 2 else "Dining room",
        )
        db.add(table)
        await db.flush()
        seeded.table_ids.append(table.id)
        seeded.qr_codes.append(qr_code)

    return seeded


async def seed(db: AsyncSession) -> None:
    """
    Seed the database with the demo restaurant.
    Idempotent: only inserts if the demo tenant doesn't exist.
    """
    if await db.scalar(select(Tenant.id).where(Tenant.slug == DEMO_SLUG)):
        logger.info("Database already seeded, skipping")
        return

    logger.info("Seeding database")
    seeded = await seed_restaurant(db, "Demo Restaurant", DEMO_SLUG, table_count=6)
    await db.commit()

    logger.info(
        "Demo restaurant seeded",
        tenant_id=seeded.tenant_id,
        slug=seeded.slug,
        dishes=len(seeded.dish_ids),
        tables=len(seeded.table_ids),
    )
