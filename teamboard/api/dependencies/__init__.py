from teamboard.api.dependencies.auth import get_current_user, get_request_context

__all__ = ["get_current_user", "get_request_context"]
