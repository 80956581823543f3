"""Asset intake tools for the Asset Intake MCP Server"""

import logging
import uuid
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from analysis.brief_synthesizer import brief_to_dict, render_html, render_text
from managers.intake_manager import BatchProcessingError
from models.asset import AssetCategory
from tools.helpers import build_batch_response, load_sources

logger = logging.getLogger("AssetIntake")

BRIEF_FORMATS = ("text", "html", "json")


def register_intake_tools(
    mcp: FastMCP,
    intake_manager,
    batch_repository
):
    """Register intake tools with the MCP server"""

    @mcp.tool()
    def process_asset_bundle(
        sources: List[str],
        campaign_id: str,
        project_name: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> dict:
        """Ingest uploaded design assets and produce an inventory, brand palette and one-page brief.

        Args:
            sources: Local file paths or http(s) URLs. ZIP and TAR archives are expanded,
                including archives nested inside them.
            campaign_id: Campaign the assets belong to (used in storage keys)
            project_name: Name shown in the brief header (defaults to campaign_id)
            batch_id: Optional identifier for the batch; generated when omitted

        Returns:
            Batch summary with per-phase timings, category counts, palette, scan flags
            and the rendered brief. Archives that could not be opened are listed in
            archive_errors while the remaining files are still processed.
        """
        try:
            uploads = load_sources(sources)
        except Exception as e:
            logger.error(f"Failed to load sources for campaign {campaign_id}: {e}")
            return {"error": f"Failed to load sources: {e}"}

        batch_id = batch_id or str(uuid.uuid4())
        try:
            batch = intake_manager.process_batch(batch_id, campaign_id, uploads, project_name=project_name)
        except BatchProcessingError as e:
            return {
                "error": str(e),
                "batch_id": batch_id,
                "status": e.batch.status.value,
                "archive_errors": e.archive_errors,
            }
        except Exception as e:
            logger.exception(f"Batch {batch_id} failed")
            return {"error": str(e), "batch_id": batch_id}

        return build_batch_response(batch)

    @mcp.tool()
    def get_batch(batch_id: str, include_records: bool = True) -> dict:
        """Get a processed batch with its file inventory.

        Records are ordered suggested starting file first, then likely logos, then
        by category and filename.
        """
        batch = batch_repository.get_batch(batch_id)
        if batch is None:
            return {"error": f"Batch {batch_id} not found (repository is in-memory and resets on restart)."}
        response = build_batch_response(batch)
        if include_records:
            response["records"] = [r.to_dict() for r in batch_repository.list_records(batch_id)]
        return response

    @mcp.tool()
    def get_brief(batch_id: str, format: str = "text") -> dict:
        """Get the creative brief for a batch as "text", "html" or "json"."""
        if format not in BRIEF_FORMATS:
            return {"error": f"Unsupported format '{format}'. Use one of: {', '.join(BRIEF_FORMATS)}"}
        batch = batch_repository.get_batch(batch_id)
        if batch is None:
            return {"error": f"Batch {batch_id} not found"}
        if batch.brief is None:
            return {"error": f"Batch {batch_id} has no brief (status: {batch.status.value})"}

        if format == "json":
            return {"batch_id": batch_id, "format": format, "brief": brief_to_dict(batch.brief)}
        content = render_html(batch.brief) if format == "html" else render_text(batch.brief)
        return {"batch_id": batch_id, "format": format, "brief": content}

    @mcp.tool()
    def search_assets(batch_id: str, query: str, category: Optional[str] = None) -> dict:
        """Search a batch's ready files by filename or tag.

        Args:
            batch_id: Batch to search
            query: Case-insensitive text matched against filenames and tags
            category: Optional filter: source_files, images, video, reference or misc
        """
        if batch_repository.get_batch(batch_id) is None:
            return {"error": f"Batch {batch_id} not found"}
        try:
            category_filter = AssetCategory(category) if category else None
        except ValueError:
            valid = ", ".join(c.value for c in AssetCategory)
            return {"error": f"Invalid category '{category}'. Must be one of: {valid}"}

        records = batch_repository.search_records(batch_id, query, category_filter)
        return {
            "batch_id": batch_id,
            "query": query,
            "count": len(records),
            "results": [r.to_dict() for r in records],
        }
