from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from backoffice.domain.errors import VariantNotFound
from backoffice.persistence.models import ProductVariantModel


class VariantStore:
    """Raw on-hand stock per variant.

    ``lock`` must be called before any read that a stock write depends on;
    it claims the rows for the rest of the transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    def get(self, variant_id: str, organization_id: str | None = None) -> ProductVariantModel:
        variant = self.session.get(ProductVariantModel, variant_id, populate_existing=True)
        if variant is None:
            raise VariantNotFound(variant_id)
        if organization_id is not None and variant.organization_id != organization_id:
            raise VariantNotFound(variant_id)
        return variant

    def get_stock(self, variant_id: str) -> int:
        return int(self.get(variant_id).stock)

    def set_stock(self, variant_id: str, new_value: int) -> None:
        if new_value < 0:
            raise ValueError(f"stock cannot go negative for variant {variant_id}: {new_value}")
        result = self.session.execute(
            update(ProductVariantModel)
            .where(ProductVariantModel.id == variant_id)
            .values(stock=new_value, updated_at=datetime.now(timezone.utc))
        )
        if result.rowcount == 0:
            raise VariantNotFound(variant_id)

    def lock(
        self,
        variant_ids: Iterable[str],
        organization_id: str | None = None,
        missing_ok: bool = False,
    ) -> dict[str, ProductVariantModel]:
        """Claim variant rows in id order and return them by id.

        With ``missing_ok`` ids that no longer exist are left out of the
        result instead of raising :class:`VariantNotFound`.
        """
        ordered = sorted(set(variant_ids))
        for variant_id in ordered:
            # Sorted claims keep concurrent multi-variant writers deadlock free.
            result = self.session.execute(
                update(ProductVariantModel)
                .where(ProductVariantModel.id == variant_id)
                .values(lock_version=ProductVariantModel.lock_version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0 and not missing_ok:
                raise VariantNotFound(variant_id)

        rows = self.session.scalars(
            select(ProductVariantModel)
            .where(ProductVariantModel.id.in_(ordered))
            .execution_options(populate_existing=True)
        ).all()
        variants = {row.id: row for row in rows}
        for variant_id in ordered:
            variant = variants.get(variant_id)
            if variant is None and missing_ok:
                continue
            if variant is None or (organization_id is not None and variant.organization_id != organization_id):
                raise VariantNotFound(variant_id)
        return variants

    def list_for_organization(self, organization_id: str) -> list[ProductVariantModel]:
        stmt = (
            select(ProductVariantModel)
            .where(ProductVariantModel.organization_id == organization_id)
            .order_by(ProductVariantModel.product_name.asc(), ProductVariantModel.name.asc())
        )
        return list(self.session.scalars(stmt).all())
