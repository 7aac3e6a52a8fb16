from .client import GraphitiClient

__all__ = ["GraphitiClient"]
