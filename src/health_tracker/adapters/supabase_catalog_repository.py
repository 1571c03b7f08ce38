"""Supabase implementation for the shared product catalog and barcodes."""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from health_tracker.adapters.supabase_support import (
    parse_datetime,
    parse_float,
    render_or_filter,
    rows,
)
from health_tracker.domain.products import (
    ActiveIngredient,
    BarcodeBinding,
    CatalogProduct,
)
from health_tracker.domain.queries import Predicate
from health_tracker.services.catalog import CatalogRepository

_BINDING_COLUMNS = "*, product:product_catalog(*)"

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseCatalogRepository(CatalogRepository):
    """Supabase-backed repository for catalog products and barcode bindings."""

    client: Client

    def find_barcode_binding(self, barcode: str) -> BarcodeBinding | None:
        """Return the binding for a barcode with its product joined."""
        response = (
            self.client.table("product_barcodes")
            .select(_BINDING_COLUMNS)
            .eq("barcode", barcode)
            .limit(1)
            .execute()
        )
        data = rows(response)
        if not data or not data[0].get("product"):
            return None
        return _parse_binding(data[0])

    def flag_barcode_for_reverification(self, barcode: str) -> None:
        """Mark a binding as needing re-confirmation."""
        self.client.table("product_barcodes").update(
            {"needs_reverification": True}
        ).eq("barcode", barcode).execute()

    def touch_barcode(self, barcode: str, scanned_at: datetime) -> None:
        """Refresh the last scan time of a binding."""
        self.client.table("product_barcodes").update(
            {"last_scanned_at": scanned_at.isoformat()}
        ).eq("barcode", barcode).execute()

    def search_products(
        self, predicates: list[Predicate], limit: int
    ) -> list[CatalogProduct]:
        """Return products matching any predicate, most logged first."""
        query = self.client.table("product_catalog").select("*")
        if predicates:
            query = query.or_(render_or_filter(predicates))
        response = query.order("times_logged", desc=True).limit(limit).execute()
        return [_parse_product(row) for row in rows(response)]

    def increment_times_logged(self, product_id: UUID) -> None:
        """Increment usage atomically, falling back to read-then-write."""
        try:
            self.client.rpc(
                "increment_product_times_logged", {"product_id": str(product_id)}
            ).execute()
            return
        except Exception as exc:
            _logger.info("Atomic increment unavailable, using fallback: %s", exc)
        response = (
            self.client.table("product_catalog")
            .select("times_logged")
            .eq("id", str(product_id))
            .limit(1)
            .execute()
        )
        data = rows(response)
        current = int(data[0].get("times_logged") or 0) if data else 0
        self.client.table("product_catalog").update(
            {"times_logged": current + 1}
        ).eq("id", str(product_id)).execute()

    def create_product(self, payload: dict[str, object]) -> CatalogProduct:
        """Insert a catalog product and return it."""
        response = self.client.table("product_catalog").insert(payload).execute()
        data = rows(response)
        if not data:
            raise RuntimeError("Failed to create catalog product")
        return _parse_product(data[0])

    def create_barcode_binding(self, payload: dict[str, object]) -> BarcodeBinding:
        """Insert a barcode binding and return it with its product."""
        self.client.table("product_barcodes").insert(payload).execute()
        binding = self.find_barcode_binding(str(payload["barcode"]))
        if binding is None:
            raise RuntimeError("Failed to create barcode binding")
        return binding

    def create_submission(self, payload: dict[str, object]) -> UUID:
        """Insert a product submission row and return its id."""
        response = self.client.table("product_submissions").insert(payload).execute()
        data = rows(response)
        if not data:
            raise RuntimeError("Failed to create product submission")
        return UUID(str(data[0]["id"]))


def _parse_product(row: dict[str, object]) -> CatalogProduct:
    """Parse a product_catalog row into a domain model."""
    micros = row.get("micros")
    ingredients = row.get("active_ingredients") or []
    return CatalogProduct(
        id=UUID(str(row["id"])),
        product_name=str(row.get("product_name") or ""),
        brand=row.get("brand"),
        product_type=str(row.get("product_type") or "food"),
        product_key=str(row.get("product_key") or ""),
        serving_quantity=parse_float(row.get("serving_quantity")),
        serving_unit=row.get("serving_unit"),
        serving_weight_grams=parse_float(row.get("serving_weight_grams")),
        calories=parse_float(row.get("calories")),
        protein=parse_float(row.get("protein")),
        carbs=parse_float(row.get("carbs")),
        fat=parse_float(row.get("fat")),
        fiber=parse_float(row.get("fiber")),
        sugar=parse_float(row.get("sugar")),
        micros=micros if isinstance(micros, dict) else {},
        active_ingredients=[
            ActiveIngredient(
                name=str(item.get("name") or ""),
                strength=item.get("strength"),
                atc_code=item.get("atc_code"),
            )
            for item in ingredients
            if isinstance(item, dict)
        ],
        times_logged=int(row.get("times_logged") or 0),
        verification_status=row.get("verification_status"),
    )


def _parse_binding(row: dict[str, object]) -> BarcodeBinding:
    """Parse a product_barcodes row with its joined product."""
    product = _parse_product(row["product"])
    return BarcodeBinding(
        barcode=str(row["barcode"]),
        product_id=UUID(str(row.get("product_id") or product.id)),
        product=product,
        total_quantity=parse_float(row.get("total_quantity")),
        total_unit=row.get("total_unit"),
        container_type=row.get("container_type"),
        needs_reverification=bool(row.get("needs_reverification")),
        last_scanned_at=parse_datetime(row.get("last_scanned_at")),
    )
