"""Application layer – rate limiting, caching and invalidation over a shared state store."""
