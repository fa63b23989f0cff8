"""PrintShop order intake, pricing and payment-gating service."""

__version__ = "0.1.0"
