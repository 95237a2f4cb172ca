"""
提成 API 路由
"""
from datetime import date
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import CommissionReport, CommissionTier, PeriodType, RuleScope, RuleType, StatsPeriod
from rf_core.config import get_settings
from rf_core.database import get_async_session
from rf_core.models.commission import AccountGroup
from rf_core.services.account_group_service import AccountGroupService
from rf_core.services.commission_report_service import CommissionReportService
from rf_core.services.registry_service import RegistryService
from rf_core.utils.logger import get_logger
from rf_core.utils.errors import NotFoundError, BadRequestError

logger = get_logger(__name__)

router = APIRouter(prefix="/commission", tags=["Commission"])


# ========== 请求/响应模型 ==========

class RuleRequest(BaseModel):
    """提成规则"""
    type: RuleType = Field(RuleType.QUANTITY, description="规则类型")
    target: RuleScope = Field(RuleScope.USER, description="作用对象 USER/PROMOTER")
    channel_config_id: Optional[int] = Field(None, description="渠道ID（空为全局）")
    min_count: int = Field(0, ge=0, description="最小单量")
    max_count: Optional[int] = Field(None, ge=0, description="最大单量（空为无上限）")
    percentage: Decimal = Field(..., ge=0, le=100, description="提成比例（%）")

    def to_tier(self) -> CommissionTier:
        return CommissionTier(
            type=self.type,
            scope=self.target,
            channel_id=self.channel_config_id,
            min_count=self.min_count,
            max_count=self.max_count,
            percentage=self.percentage,
        )


class RuleResponse(RuleRequest):
    id: int


class AccountGroupResponse(BaseModel):
    """账号组响应"""
    id: int
    name: str
    description: Optional[str]
    high_ticket_rate: Decimal
    settlement_by_completed: bool
    rules: List[RuleResponse]


class CreateAccountGroupRequest(BaseModel):
    """创建账号组请求"""
    name: str = Field(..., min_length=1, max_length=100, description="账号组名称")
    description: Optional[str] = Field(None, description="说明")
    high_ticket_rate: Decimal = Field(Decimal("0"), ge=0, le=100, description="高单价提成比例（%）")
    settlement_by_completed: bool = Field(True, description="是否按完成时间结算")
    rules: List[RuleRequest] = Field(default_factory=list, description="提成规则")


class UpdateAccountGroupRequest(BaseModel):
    """更新账号组请求（rules 传入时整体替换）"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    high_ticket_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    settlement_by_completed: Optional[bool] = None
    rules: Optional[List[RuleRequest]] = None


class ChannelResponse(BaseModel):
    id: int
    name: str
    is_enabled: bool
    settlement_by_completed: bool


class CreateChannelRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="渠道名称")
    is_enabled: bool = True
    settlement_by_completed: bool = True


def _group_response(group: AccountGroup) -> AccountGroupResponse:
    return AccountGroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        high_ticket_rate=group.high_ticket_rate,
        settlement_by_completed=group.settlement_by_completed,
        rules=[
            RuleResponse(
                id=r.id,
                type=RuleType(r.type),
                target=RuleScope(r.target),
                channel_config_id=r.channel_config_id,
                min_count=r.min_count,
                max_count=r.max_count,
                percentage=r.percentage,
            )
            for r in group.rules
        ],
    )


def get_period(
    period: PeriodType = Query(PeriodType.CUMULATIVE, description="统计周期"),
    start: Optional[date] = Query(None, description="起始日期（monthly 为锚点日期）"),
    end: Optional[date] = Query(None, description="结束日期"),
) -> StatsPeriod:
    """查询参数 → 统计周期"""
    if start and end and end < start:
        raise BadRequestError(code="INVALID_PERIOD", detail="end must not be earlier than start")
    return StatsPeriod(type=period, start=start, end=end)


# ========== 提成报表 ==========

@router.get("/reports/{user_id}", response_model=CommissionReport)
async def get_commission_report(
    user_id: int,
    period: StatsPeriod = Depends(get_period),
    session: AsyncSession = Depends(get_async_session)
):
    """
    获取单个员工的提成报表
    """
    result = await CommissionReportService.compute_commission_report(
        session, user_id, period, settings=get_settings()
    )
    if not result.success:
        raise NotFoundError(code=result.error_code or "USER_NOT_FOUND", resource=f"user {user_id}")
    return result.data


@router.get("/reports", response_model=List[CommissionReport])
async def list_commission_reports(
    period: StatsPeriod = Depends(get_period),
    session: AsyncSession = Depends(get_async_session)
):
    """
    获取所有员工的提成报表
    """
    return await CommissionReportService.compute_all_reports(session, period, settings=get_settings())


# ========== 账号组 ==========

@router.get("/account-groups", response_model=List[AccountGroupResponse])
async def list_account_groups(
    session: AsyncSession = Depends(get_async_session)
):
    groups = await AccountGroupService.get_all(session)
    return [_group_response(g) for g in groups]


@router.post("/account-groups", response_model=AccountGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_account_group(
    request: CreateAccountGroupRequest,
    session: AsyncSession = Depends(get_async_session)
):
    """
    创建账号组（规则区间不得重叠）
    """
    group = await AccountGroupService.create(
        session,
        name=request.name,
        description=request.description,
        high_ticket_rate=request.high_ticket_rate,
        settlement_by_completed=request.settlement_by_completed,
        rules=[r.to_tier() for r in request.rules],
    )
    await session.commit()
    return _group_response(group)


@router.put("/account-groups/{group_id}", response_model=AccountGroupResponse)
async def update_account_group(
    group_id: int,
    request: UpdateAccountGroupRequest,
    session: AsyncSession = Depends(get_async_session)
):
    """
    更新账号组
    """
    group = await AccountGroupService.update(
        session,
        group_id,
        name=request.name,
        description=request.description,
        high_ticket_rate=request.high_ticket_rate,
        settlement_by_completed=request.settlement_by_completed,
        rules=[r.to_tier() for r in request.rules] if request.rules is not None else None,
    )
    await session.commit()
    return _group_response(group)


@router.delete("/account-groups/{group_id}")
async def delete_account_group(
    group_id: int,
    session: AsyncSession = Depends(get_async_session)
):
    await AccountGroupService.delete(session, group_id)
    await session.commit()
    return {"ok": True}


# ========== 渠道 ==========

@router.get("/channels", response_model=List[ChannelResponse])
async def list_channels(
    session: AsyncSession = Depends(get_async_session)
):
    """
    获取渠道列表（零售渠道不存在时自动创建）
    """
    settings = get_settings()
    _, created = await RegistryService.ensure_channel(session, settings.retail_channel_name, True)
    if created:
        await session.commit()

    channels = await RegistryService.list_channels(session)
    return [ChannelResponse.model_validate(c, from_attributes=True) for c in channels]


@router.post("/channels", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def create_channel(
    request: CreateChannelRequest,
    session: AsyncSession = Depends(get_async_session)
):
    channel = await RegistryService.create_channel(
        session,
        request.name,
        is_enabled=request.is_enabled,
        settlement_by_completed=request.settlement_by_completed,
    )
    await session.commit()
    return ChannelResponse.model_validate(channel, from_attributes=True)
