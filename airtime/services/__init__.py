from airtime.services.catalog import CatalogClient, DatabaseCatalog, get_catalog
from airtime.services.generator import ScheduleGenerator, get_generator
from airtime.services.writer import ScheduleWriter

__all__ = [
    "CatalogClient",
    "DatabaseCatalog",
    "get_catalog",
    "ScheduleGenerator",
    "get_generator",
    "ScheduleWriter"
]
