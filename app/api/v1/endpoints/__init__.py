from app.api.v1.endpoints import jobs, optimization

__all__ = ["jobs", "optimization"]
