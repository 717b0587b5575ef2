"""
Engine Lifespan
Composition root: builds the pool, the generation client and every component,
and closes both clients on shutdown
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from erpchat.core.config import settings as default_settings
from erpchat.core.config_manager import AppSettings
from erpchat.core.generation_client import GenerationClient
from erpchat.core.logging_config import setup_logging
from erpchat.core.mysql_client import MySQLClient
from erpchat.services import (
    EntityResolverService,
    FastPathService,
    OrderStatusService,
    QueryEngine,
    QueryExecutor,
    ResultFormatterService,
    SchemaCatalogService,
    SqlSynthesisService,
)

logger = logging.getLogger(__name__)


def build_engine(client: MySQLClient, generator: GenerationClient) -> QueryEngine:
    """Wire every component with explicit dependencies"""
    executor = QueryExecutor(client)
    catalog = SchemaCatalogService(executor)
    resolver = EntityResolverService(executor)
    return QueryEngine(
        fast_paths=FastPathService(executor, resolver),
        synthesizer=SqlSynthesisService(executor, catalog, resolver, generator),
        formatter=ResultFormatterService(),
        order_status=OrderStatusService(executor, catalog, client),
    )


@asynccontextmanager
async def engine_lifespan(
    config: Optional[AppSettings] = None,
    configure_logging: bool = True,
) -> AsyncGenerator[QueryEngine, None]:
    """
    Engine lifespan manager
    Pool is created once at startup and closed at shutdown
    """
    config = config or default_settings
    start_time = time.time()

    if configure_logging:
        setup_logging()

    client = MySQLClient(config)
    generator = GenerationClient.from_settings(config)

    try:
        await client.initialize()
        engine = build_engine(client, generator)
        logger.info(f"[OK] {config.app_name} started in {time.time() - start_time:.2f}s")
        yield engine
    finally:
        await generator.close()
        await client.close()
        logger.info(f"{config.app_name} shutdown complete")
