"""HTTP API routers."""
from fastapi import Request


def get_context(request: Request):
    """Dependency returning the app's service context."""
    return request.app.state.context
