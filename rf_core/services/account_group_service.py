"""
账号组服务（提成规则维护）
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import AccountGroupRules, CommissionTier, RuleScope, RuleType
from plugins.rf.commission.services import validate_rule_ranges
from rf_core.models.commission import AccountGroup, CommissionRule
from rf_core.models.users import User
from rf_core.utils.logger import get_logger
from rf_core.utils.errors import NotFoundError, ValidationError, ConflictError

logger = get_logger(__name__)


def to_group_rules(group: AccountGroup) -> AccountGroupRules:
    """ORM 账号组 → 计算用规则集

    无法识别的规则（未知类型 / 作用对象、越界比例）跳过不计，并记录 INVALID_COMMISSION_RULE。
    """
    rules = []
    diagnostics = []
    for r in group.rules:
        try:
            rules.append(
                CommissionTier(
                    id=r.id,
                    type=RuleType(r.type or RuleType.QUANTITY.value),
                    scope=RuleScope(r.target),
                    channel_id=r.channel_config_id,
                    min_count=r.min_count,
                    max_count=r.max_count,
                    percentage=r.percentage,
                )
            )
        except ValueError as e:
            logger.warning(f"跳过无效提成规则: group_id={group.id}, rule_id={r.id}, type={r.type}, error={e}")
            if "INVALID_COMMISSION_RULE" not in diagnostics:
                diagnostics.append("INVALID_COMMISSION_RULE")

    return AccountGroupRules(
        id=group.id,
        name=group.name,
        high_ticket_rate=group.high_ticket_rate if group.high_ticket_rate is not None else Decimal("0"),
        settlement_by_completed=group.settlement_by_completed,
        rules=rules,
        diagnostics=diagnostics,
    )


def _build_rules(rules: List[CommissionTier]) -> List[CommissionRule]:
    return [
        CommissionRule(
            type=r.type.value,
            target=r.scope.value,
            channel_config_id=r.channel_id,
            min_count=r.min_count,
            max_count=r.max_count,
            percentage=r.percentage,
        )
        for r in rules
    ]


class AccountGroupService:
    """账号组服务"""

    @staticmethod
    async def get_all(db: AsyncSession) -> List[AccountGroup]:
        stmt = select(AccountGroup).order_by(AccountGroup.id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_by_id(db: AsyncSession, group_id: int) -> Optional[AccountGroup]:
        stmt = select(AccountGroup).where(AccountGroup.id == group_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Optional[AccountGroup]:
        stmt = select(AccountGroup).where(AccountGroup.name == name)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        name: str,
        description: Optional[str] = None,
        high_ticket_rate: Decimal = Decimal("0"),
        settlement_by_completed: bool = True,
        rules: Optional[List[CommissionTier]] = None,
    ) -> AccountGroup:
        """创建账号组，保存前校验规则区间"""
        rules = rules or []
        validate_rule_ranges(rules)

        existing = await AccountGroupService.get_by_name(db, name)
        if existing:
            raise ConflictError(
                code="ACCOUNT_GROUP_NAME_EXISTS",
                detail=f"账号组名称 '{name}' 已存在"
            )

        group = AccountGroup(
            name=name,
            description=description,
            high_ticket_rate=high_ticket_rate,
            settlement_by_completed=settlement_by_completed,
            rules=_build_rules(rules),
        )
        db.add(group)
        await db.flush()
        await db.refresh(group)

        logger.info(f"创建账号组: id={group.id}, name={name}, rules={len(rules)}")
        return group

    @staticmethod
    async def update(
        db: AsyncSession,
        group_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        high_ticket_rate: Optional[Decimal] = None,
        settlement_by_completed: Optional[bool] = None,
        rules: Optional[List[CommissionTier]] = None,
    ) -> AccountGroup:
        """更新账号组；传入 rules 时整体替换规则"""
        group = await AccountGroupService.get_by_id(db, group_id)
        if not group:
            raise NotFoundError(code="ACCOUNT_GROUP_NOT_FOUND", resource=f"account group {group_id}")

        if rules is not None:
            validate_rule_ranges(rules)

        if name and name != group.name:
            existing = await AccountGroupService.get_by_name(db, name)
            if existing:
                raise ConflictError(
                    code="ACCOUNT_GROUP_NAME_EXISTS",
                    detail=f"账号组名称 '{name}' 已存在"
                )
            group.name = name

        if description is not None:
            group.description = description
        if high_ticket_rate is not None:
            group.high_ticket_rate = high_ticket_rate
        if settlement_by_completed is not None:
            group.settlement_by_completed = settlement_by_completed
        if rules is not None:
            group.rules = _build_rules(rules)

        await db.flush()
        await db.refresh(group)

        logger.info(f"更新账号组: id={group_id}")
        return group

    @staticmethod
    async def delete(db: AsyncSession, group_id: int) -> bool:
        """删除账号组（有员工使用时拒绝）"""
        group = await AccountGroupService.get_by_id(db, group_id)
        if not group:
            raise NotFoundError(code="ACCOUNT_GROUP_NOT_FOUND", resource=f"account group {group_id}")

        stmt = select(func.count()).select_from(User).where(User.account_group_id == group_id)
        user_count = (await db.execute(stmt)).scalar()
        if user_count:
            raise ValidationError(
                code="ACCOUNT_GROUP_IN_USE",
                detail=f"无法删除：有 {user_count} 个员工正在使用此账号组"
            )

        await db.delete(group)
        await db.flush()
        logger.info(f"删除账号组: id={group_id}")
        return True

    @staticmethod
    async def assign_user(db: AsyncSession, user_id: int, group_id: Optional[int]) -> User:
        """设置员工所属账号组（None 为移出）"""
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError(code="USER_NOT_FOUND", resource=f"user {user_id}")
        if group_id is not None and not await AccountGroupService.get_by_id(db, group_id):
            raise NotFoundError(code="ACCOUNT_GROUP_NOT_FOUND", resource=f"account group {group_id}")

        user.account_group_id = group_id
        await db.flush()
        await db.refresh(user)
        return user
