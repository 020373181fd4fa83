from fusebox.integrations.redis.storage import DEFAULT_KEY_PREFIX, RedisFuseStorage

__all__ = ["DEFAULT_KEY_PREFIX", "RedisFuseStorage"]
