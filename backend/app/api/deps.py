from collections.abc import Callable
from typing import TypeVar

from fastapi import Request
from pydantic import BaseModel

from app.services.filters import parse_query, query_dict

Q = TypeVar("Q", bound=BaseModel)


def query_model(model: type[Q]) -> Callable[[Request], Q]:
    """Dependency that validates the raw query string against ``model``."""

    def dependency(request: Request) -> Q:
        return parse_query(model, query_dict(request.query_params))

    dependency.__name__ = f"{model.__name__}_dependency"
    return dependency
