from app.models.bundle import Bundle, BundlePlatform  # noqa: F401
