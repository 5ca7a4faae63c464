"""Request scoped accessors for objects stored on ``app.state``."""
from datetime import date
from typing import Callable

from fastapi import Request

from erp_services.config import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Callable[[], date]:
    """Source of "today"; tests pin it to a fixed date."""
    return request.app.state.clock
