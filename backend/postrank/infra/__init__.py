"""Infrastructure adapters: Redis client and job scheduling."""
