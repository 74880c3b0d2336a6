"""健康检查接口。"""

from sqlalchemy import text
from sqlalchemy.orm import Session

from fastapi import APIRouter, Depends, Request, status

from teamboard_api.db.session import get_db
from teamboard_api.utils.response import success
from teamboard_api.schemas.common import ErrorResponse, SuccessResponse
from teamboard_api.schemas.responses import HealthStatusData

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    description="用于容器编排系统检测服务进程是否存活。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def live(request: Request):
    """仅表示进程存活，不校验外部依赖。"""
    return success(request, {"status": "ok"})


@router.get(
    "/ready",
    summary="就绪探针",
    description="检测数据库连通性与实时通道是否已装配。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    """执行轻量数据库探活语句，并确认广播器已挂载。"""
    db.execute(text("select 1"))
    realtime_ready = getattr(request.app.state, "broadcaster", None) is not None
    return success(request, {"status": "ready" if realtime_ready else "degraded"})
