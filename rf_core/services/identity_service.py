"""
订单身份解析与回填服务
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import (
    BackfillReport,
    BackfillScope,
    ContainmentPolicy,
    OrderFacts,
    ProductEntry,
    RegistrySnapshot,
    ResolvedIdentities,
)
from plugins.rf.commission.services import (
    BackfillOrchestrator,
    IdentityResolver,
    load_product_aliases,
    match_product_by_keywords,
    match_product_by_title,
)
from rf_core.config import Settings, get_settings
from rf_core.models.orders import Order
from rf_core.services.base import ServiceResult
from rf_core.services.order_link_repository import SqlOrderLinkRepository
from rf_core.services.registry_service import RegistryService
from rf_core.utils.errors import ConflictError
from rf_core.utils.logger import get_logger

logger = get_logger(__name__)

class BackfillGuard:
    """回填互斥锁

    随应用创建并挂在 app.state 上，API 与定时任务共用同一实例，
    同一时刻只允许一个回填任务执行。
    """

    def __init__(self):
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """
        占用回填锁

        Raises:
            ConflictError: 已有回填任务在执行
        """
        if self._lock.locked():
            raise ConflictError(code="BACKFILL_RUNNING", detail="另一个回填任务正在执行")
        async with self._lock:
            yield


class IdentityService:
    """身份解析服务"""

    @staticmethod
    def build_resolver(registry: RegistrySnapshot, settings: Optional[Settings] = None) -> IdentityResolver:
        settings = settings or get_settings()
        return IdentityResolver(
            registry,
            product_aliases=load_product_aliases(settings.product_alias_file),
            containment_policy=ContainmentPolicy(settings.containment_policy),
            self_label=settings.self_contact_label,
        )

    @staticmethod
    async def resolve_order(
        db: AsyncSession,
        order_id: int,
        persist: bool = False,
        settings: Optional[Settings] = None,
    ) -> ServiceResult[ResolvedIdentities]:
        """
        解析单个订单的外键

        Args:
            db: 数据库会话
            order_id: 订单 ID
            persist: 是否写入新解析出的外键（只填空值）
        """
        order = await db.get(Order, order_id, populate_existing=True)
        if order is None:
            return ServiceResult.error(f"订单 {order_id} 不存在", error_code="ORDER_NOT_FOUND")

        registry = await RegistryService.load_registry(db)
        resolver = IdentityService.build_resolver(registry, settings)
        resolved = resolver.resolve_identities(OrderFacts.model_validate(order))

        written = False
        if persist and resolved.has_new_links:
            repository = SqlOrderLinkRepository(db)
            written = await repository.set_order_links_if_null(
                order_id, resolved.promoter_id, resolved.product_id, resolved.channel_id
            )

        return ServiceResult.ok(resolved, metadata={"persisted": written})

    @staticmethod
    async def run_backfill(
        db: AsyncSession,
        scope: Optional[BackfillScope] = None,
        settings: Optional[Settings] = None,
        guard: Optional[BackfillGuard] = None,
    ) -> BackfillReport:
        """
        执行回填，每个订单的写入单独提交

        Args:
            guard: 应用共享的回填锁；未传入时仅保护本次调用

        Raises:
            ConflictError: 已有回填任务在执行
        """
        settings = settings or get_settings()
        scope = scope or BackfillScope()
        guard = guard or BackfillGuard()

        async with guard.hold():
            orchestrator = BackfillOrchestrator(
                SqlOrderLinkRepository(db),
                product_aliases=load_product_aliases(settings.product_alias_file),
                containment_policy=ContainmentPolicy(settings.containment_policy),
                self_label=settings.self_contact_label,
                retail_channel_name=settings.retail_channel_name,
                progress_every=settings.backfill_progress_every,
                miss_log_limit=settings.backfill_miss_log_limit,
            )
            report = await orchestrator.run(scope)

            if scope.dry_run:
                await db.rollback()
            else:
                await db.commit()

        return report

    @staticmethod
    async def classify_product(
        db: AsyncSession,
        title: Optional[str],
        sku: Optional[str] = None,
    ) -> Optional[ProductEntry]:
        """线上订单商品识别：先按匹配关键词，再按商品名称"""
        registry = await RegistryService.load_registry(db)
        product = match_product_by_keywords(title, sku, registry.products)
        if product is None:
            product = match_product_by_title(title, sku, registry.products)
        return product
