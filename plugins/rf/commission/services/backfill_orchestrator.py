"""
历史订单外键回填

对缺少推广员 / 商品 / 渠道外键的订单逐单解析，仅写入新解析出的外键（只填空值），
可重复执行：数据未变化时再次运行不会产生写入。
"""

from typing import Dict, List, Optional, Protocol, Tuple

from rf_core.utils.logger import get_logger

from ..models.enums import ContainmentPolicy
from ..models.identity import BackfillReport, BackfillScope, UnmatchedEntry
from ..models.order import OrderFacts
from ..models.registry import ChannelEntry, RegistrySnapshot
from .identity_resolver import IdentityResolver

logger = get_logger(__name__)


class OrderLinkRepository(Protocol):
    """回填所需的持久化操作"""

    async def load_registry(self) -> RegistrySnapshot:
        """按 ID 升序加载推广员、渠道、商品"""
        ...

    async def ensure_channel(self, name: str, settlement_by_completed: bool = True) -> Tuple[ChannelEntry, bool]:
        """确保渠道存在，返回 (渠道, 是否新建)"""
        ...

    async def link_promoter_channel(self, promoter_id: int, channel_id: int) -> bool:
        ...

    async def list_orders_missing_links(
        self, creator_id: Optional[int] = None, limit: Optional[int] = None
    ) -> List[OrderFacts]:
        ...

    async def set_order_links_if_null(
        self,
        order_id: int,
        promoter_id: Optional[int],
        product_id: Optional[int],
        channel_id: Optional[int],
    ) -> bool:
        """只填空值；返回是否有字段被写入"""
        ...


class BackfillOrchestrator:
    """回填编排器"""

    def __init__(
        self,
        repository: OrderLinkRepository,
        product_aliases: Optional[Dict[str, str]] = None,
        containment_policy: ContainmentPolicy = ContainmentPolicy.LONGEST_MATCH,
        self_label: str = "self",
        retail_channel_name: str = "零售",
        progress_every: int = 100,
        miss_log_limit: int = 20,
    ):
        self.repository = repository
        self.product_aliases = product_aliases or {}
        self.containment_policy = containment_policy
        self.self_label = self_label
        self.retail_channel_name = retail_channel_name
        self.progress_every = max(1, progress_every)
        self.miss_log_limit = max(0, miss_log_limit)

    async def _prepare_registry(self, report: BackfillReport) -> RegistrySnapshot:
        """确保零售渠道存在，并为只有渠道名称的推广员补全 channel_config_id"""
        registry = await self.repository.load_registry()

        if registry.channel_by_name(self.retail_channel_name) is None:
            if report.dry_run:
                logger.info("retail_channel_missing", name=self.retail_channel_name, dry_run=True)
            else:
                channel, created = await self.repository.ensure_channel(self.retail_channel_name, True)
                if created:
                    logger.info("retail_channel_created", channel_id=channel.id, name=channel.name)
                registry = await self.repository.load_registry()

        promoters = []
        for promoter in registry.promoters:
            if promoter.channel_config_id is None and promoter.channel:
                channel = registry.channel_by_name(promoter.channel)
                if channel is not None:
                    if not report.dry_run:
                        await self.repository.link_promoter_channel(promoter.id, channel.id)
                    promoter = promoter.model_copy(update={"channel_config_id": channel.id})
                    report.promoters_linked += 1
            promoters.append(promoter)

        logger.info(
            "registry_loaded",
            promoters=len(registry.promoters),
            channels=len(registry.channels),
            products=len(registry.products),
            promoters_linked=report.promoters_linked,
        )
        return RegistrySnapshot(promoters=promoters, channels=registry.channels, products=registry.products)

    async def run(self, scope: Optional[BackfillScope] = None) -> BackfillReport:
        """
        执行一次回填

        Args:
            scope: 回填范围（创建人、数量上限、演练模式）

        Returns:
            回填结果
        """
        scope = scope or BackfillScope()
        report = BackfillReport(dry_run=scope.dry_run)

        registry = await self._prepare_registry(report)
        resolver = IdentityResolver(
            registry,
            product_aliases=self.product_aliases,
            containment_policy=self.containment_policy,
            self_label=self.self_label,
        )

        orders = await self.repository.list_orders_missing_links(scope.creator_id, scope.limit)
        logger.info("backfill_started", orders=len(orders), creator_id=scope.creator_id, dry_run=scope.dry_run)

        for order in orders:
            report.scanned_count += 1
            resolved = resolver.resolve_identities(order)

            for miss in resolved.misses:
                report.unmatched_total += 1
                if len(report.unmatched_log) < self.miss_log_limit:
                    report.unmatched_log.append(
                        UnmatchedEntry(
                            order_id=order.id,
                            order_no=order.order_no,
                            dimension=miss.dimension,
                            label=miss.label,
                        )
                    )
                    logger.info(
                        "identity_unmatched",
                        order_no=order.order_no,
                        dimension=miss.dimension.value,
                        label=miss.label,
                    )

            if not resolved.has_new_links:
                continue

            if scope.dry_run:
                report.updated_count += 1
            else:
                try:
                    written = await self.repository.set_order_links_if_null(
                        order.id,
                        resolved.promoter_id,
                        resolved.product_id,
                        resolved.channel_id,
                    )
                except Exception as e:
                    report.failed_count += 1
                    logger.error("order_link_update_failed", order_no=order.order_no, error=str(e), exc_info=True)
                    continue
                if not written:
                    continue
                report.updated_count += 1

            if report.updated_count % self.progress_every == 0:
                logger.info("backfill_progress", updated=report.updated_count, scanned=report.scanned_count)

        logger.info(
            "backfill_completed",
            scanned=report.scanned_count,
            updated=report.updated_count,
            failed=report.failed_count,
            unmatched=report.unmatched_total,
            dry_run=scope.dry_run,
        )
        return report
