"""Configuration tools for the Asset Intake MCP Server"""

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP


def register_configuration_tools(
    mcp: FastMCP,
    defaults_manager
):
    """Register configuration tools with the MCP server"""

    @mcp.tool()
    def get_defaults() -> dict:
        """Get current effective defaults for logo detection, palette extraction, document scanning and the pipeline.

        Returns merged defaults from all sources (runtime, config, env, hardcoded).
        Shows what values will be used when parameters are not explicitly provided.
        """
        return defaults_manager.get_all_defaults()

    @mcp.tool()
    def set_defaults(
        logo: Optional[Dict[str, Any]] = None,
        palette: Optional[Dict[str, Any]] = None,
        documents: Optional[Dict[str, Any]] = None,
        pipeline: Optional[Dict[str, Any]] = None,
        persist: bool = False
    ) -> dict:
        """Set runtime defaults for one or more namespaces.

        Args:
            logo: e.g. {"max_dimension": 400, "keywords": ["logo", "icon", "monogram"]}
            palette: e.g. {"num_colors": 6, "merge_distance": 12.0}. max_candidates never exceeds 5
                and max_palette_size never exceeds 6.
            documents: e.g. {"extract_first_page": true, "excerpt_chars": 500}
            pipeline: e.g. {"io_workers": 8, "commit_attempts": 3}
            persist: If True, write defaults to config file (~/.config/asset-intake/config.json). Otherwise, changes are ephemeral.

        Returns:
            Success status and any validation errors (e.g., unknown settings).
        """
        results = {}
        errors = []

        for namespace, values in (
            ("logo", logo),
            ("palette", palette),
            ("documents", documents),
            ("pipeline", pipeline),
        ):
            if not values:
                continue
            if persist:
                result = defaults_manager.persist_defaults(namespace, values)
            else:
                result = defaults_manager.set_defaults(namespace, values)
            if "error" in result or "errors" in result:
                errors.extend(f"{namespace}: {message}" for message in result.get("errors", [result.get("error")]))
            else:
                results[namespace] = result

        if errors:
            return {"success": False, "errors": errors}

        return {"success": True, "updated": results}
