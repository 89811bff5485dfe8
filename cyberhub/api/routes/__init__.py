# API Routes Module
from cyberhub.api.routes import (
    entitlements,
    resources,
    bookmarks,
    subscriptions,
    webhooks,
    admin,
)

__all__ = [
    "entitlements",
    "resources",
    "bookmarks",
    "subscriptions",
    "webhooks",
    "admin",
]
