from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from backoffice.core.config import Settings, get_settings
from backoffice.domain.errors import CustomerNotFound
from backoffice.domain.orders.pricing import PricingPolicy
from backoffice.persistence.models import CustomerModel, OrganizationModel


@dataclass(frozen=True)
class CustomerContact:
    customer_id: str | None
    name: str
    email: str


class CustomerDirectory:
    def __init__(self, session: Session):
        self.session = session

    def lookup(self, organization_id: str, customer_id: str) -> CustomerContact:
        customer = self.session.get(CustomerModel, customer_id)
        if customer is None or customer.organization_id != organization_id:
            raise CustomerNotFound(customer_id)
        return CustomerContact(customer_id=customer.id, name=customer.name, email=customer.email)


class OrganizationConfig:
    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    def pricing_policy(self, organization_id: str) -> PricingPolicy:
        defaults = PricingPolicy.from_settings(self.settings)
        org = self.session.get(OrganizationModel, organization_id)
        if org is None:
            return defaults
        tax_rate = defaults.tax_rate
        if org.tax_rate_bps is not None:
            tax_rate = Decimal(org.tax_rate_bps) / Decimal(10000)
        return PricingPolicy(
            free_shipping_threshold=(
                org.free_shipping_threshold
                if org.free_shipping_threshold is not None
                else defaults.free_shipping_threshold
            ),
            flat_shipping_fee=org.flat_shipping_fee if org.flat_shipping_fee is not None else defaults.flat_shipping_fee,
            tax_rate=tax_rate,
        )
