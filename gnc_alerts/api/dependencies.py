from fastapi import Request

from gnc_alerts.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def strict_pickups(request: Request) -> bool:
    return bool(getattr(request.app.state, "strict_pickups", False))
