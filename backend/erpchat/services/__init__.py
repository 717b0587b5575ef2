"""
Query engine services for the ERP chat application
One module per component: executor, schema catalog, entity resolver,
fast-paths, SQL synthesis, result formatter and the order status read path
"""

from .query_executor import QueryExecutor
from .schema_catalog_service import SchemaCatalogService
from .entity_resolver_service import EntityResolverService
from .fast_path_service import FastPathService
from .sql_synthesis_service import SqlSynthesisService
from .result_formatter_service import ResultFormatterService
from .order_status_service import OrderStatusService
from .query_engine import QueryEngine

__all__ = [
    "QueryExecutor",
    "SchemaCatalogService",
    "EntityResolverService",
    "FastPathService",
    "SqlSynthesisService",
    "ResultFormatterService",
    "OrderStatusService",
    "QueryEngine",
]
