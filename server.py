import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from mcp.server.fastmcp import FastMCP

from managers import BatchRepository, DefaultsManager, IntakeManager, LocalObjectStore
from tools.configuration import register_configuration_tools
from tools.intake import register_intake_tools

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("AssetIntake")

STORAGE_ROOT = Path(os.getenv("ASSET_INTAKE_STORAGE_ROOT", Path.home() / ".local" / "share" / "asset-intake"))

object_store = LocalObjectStore(STORAGE_ROOT)
batch_repository = BatchRepository(object_store=object_store)
defaults_manager = DefaultsManager()
intake_manager = IntakeManager(batch_repository, object_store, defaults_manager)


class AppContext:
    def __init__(self, intake_manager: IntakeManager, batch_repository: BatchRepository):
        self.intake_manager = intake_manager
        self.batch_repository = batch_repository


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage application lifecycle"""
    logger.info("Starting MCP server lifecycle...")
    try:
        logger.info(f"Storing intake assets under {STORAGE_ROOT}")
        yield AppContext(intake_manager=intake_manager, batch_repository=batch_repository)
    finally:
        logger.info("Shutting down MCP server")


# Initialize FastMCP with lifespan
mcp = FastMCP("Asset_Intake_Server", lifespan=app_lifespan)

register_intake_tools(mcp, intake_manager, batch_repository)
register_configuration_tools(mcp, defaults_manager)

if __name__ == "__main__":
    mcp.run(transport="streamable-http")
