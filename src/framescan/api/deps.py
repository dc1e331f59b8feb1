"""Route dependencies."""

from fastapi import Request

from framescan.service import FrameScanService


def get_service(request: Request) -> FrameScanService:
    service: FrameScanService = request.app.state.service
    return service
