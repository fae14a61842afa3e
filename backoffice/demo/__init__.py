from backoffice.demo.default_catalog import DEMO_CUSTOMER_ID, seed_default_catalog

__all__ = ["DEMO_CUSTOMER_ID", "seed_default_catalog"]
