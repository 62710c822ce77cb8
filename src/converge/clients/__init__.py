from converge.clients.base import ApiClient

__all__ = ["ApiClient"]
