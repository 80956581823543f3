"""One-page creative brief synthesis and rendering"""

import html
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from analysis.document_scanner import identify_brand_guidelines, identify_campaign_brief
from models.brief import AssetInventory, BrandBasics, MinimalBrief
from models.document import DocumentScanResult
from models.palette import DominantColor

logger = logging.getLogger("BriefSynthesizer")

RULE_WIDTH = 60
MAX_BRIEF_COLORS = 6
MASTER_FILE_PATTERN = re.compile(r"(?<![a-z0-9])(?:master|main|template)(?![a-z0-9])", re.IGNORECASE)


@dataclass(frozen=True)
class BlockerContext:
    """Everything a blocker rule may look at"""
    inventory: AssetInventory
    document_scans: Sequence[DocumentScanResult]
    brand_guidelines_doc: Optional[str]


@dataclass(frozen=True)
class BlockerRule:
    name: str
    message: str
    applies: Callable[[BlockerContext], bool]


def _no_creative_assets(ctx: BlockerContext) -> bool:
    return ctx.inventory.creative_total == 0


def _no_brand_guidelines(ctx: BlockerContext) -> bool:
    return ctx.inventory.reference > 0 and ctx.brand_guidelines_doc is None


def _videos_without_source(ctx: BlockerContext) -> bool:
    return ctx.inventory.video > 3 and ctx.inventory.source_files == 0


DEFAULT_BLOCKER_RULES: Sequence[BlockerRule] = (
    BlockerRule(
        "no_creative_assets",
        "No creative source files found. Client may need to upload design assets.",
        _no_creative_assets,
    ),
    BlockerRule(
        "no_brand_guidelines",
        "No brand guidelines detected. May need to request from client if not in reference docs.",
        _no_brand_guidelines,
    ),
    BlockerRule(
        "videos_without_source",
        "Multiple video files without editable source files. Confirm if videos need editing or are final.",
        _videos_without_source,
    ),
)


def _counted(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count > 1 else ''}"


def build_summary(project_name: str, inventory: AssetInventory) -> str:
    sentences = [f"Campaign assets for {project_name}."]
    parts = [
        _counted(count, noun)
        for count, noun in (
            (inventory.source_files, "source file"),
            (inventory.images, "image"),
            (inventory.video, "video"),
            (inventory.reference, "reference doc"),
        )
        if count > 0
    ]
    if parts:
        sentences.append(f"Includes {', '.join(parts)}.")
    sentences.append("Assets organized and ready for designer review.")
    return " ".join(sentences)


def suggest_starting_file(
    source_files: Sequence[str],
    document_scans: Sequence[DocumentScanResult],
) -> Optional[str]:
    """Campaign brief, then brand guidelines, then a master/main/template source file, then the first source file"""
    for pick in (identify_campaign_brief(document_scans), identify_brand_guidelines(document_scans)):
        if pick:
            return pick
    for filename in source_files:
        if MASTER_FILE_PATTERN.search(filename):
            return filename
    return source_files[0] if source_files else None


def evaluate_blockers(context: BlockerContext, rules: Sequence[BlockerRule] = DEFAULT_BLOCKER_RULES) -> List[str]:
    return [rule.message for rule in rules if rule.applies(context)]


def generate_minimal_brief(
    project_name: str,
    category_stats: Dict[str, int],
    brand_colors: Optional[Sequence[DominantColor]] = None,
    document_scans: Optional[Sequence[DocumentScanResult]] = None,
    source_files: Optional[Sequence[str]] = None,
    logo_files: Optional[Sequence[str]] = None,
    generated_at: Optional[datetime] = None,
    processing_time_ms: int = 0,
    blocker_rules: Sequence[BlockerRule] = DEFAULT_BLOCKER_RULES,
) -> MinimalBrief:
    """Derive a brief from batch inventory, palette and scan results.

    The output depends only on the arguments, so pass generated_at and
    processing_time_ms explicitly when a reproducible rendering is needed.
    """
    scans = list(document_scans or [])
    colors = list(brand_colors or [])[:MAX_BRIEF_COLORS]
    inventory = AssetInventory.from_stats(category_stats)
    guidelines_doc = identify_brand_guidelines(scans)

    brand_basics = None
    if colors or any(scan.has_keywords for scan in scans):
        brand_basics = BrandBasics(
            brand_colors=colors,
            brand_guidelines_doc=guidelines_doc,
            logo_files=list(logo_files or []),
        )

    context = BlockerContext(inventory=inventory, document_scans=scans, brand_guidelines_doc=guidelines_doc)
    brief = MinimalBrief(
        project_name=project_name,
        summary=build_summary(project_name, inventory),
        asset_inventory=inventory,
        brand_basics=brand_basics,
        suggested_starting_file=suggest_starting_file(list(source_files or []), scans),
        critical_blockers=evaluate_blockers(context, blocker_rules),
        generated_at=generated_at or datetime.now(),
        processing_time_ms=int(processing_time_ms),
    )
    logger.debug(f"Brief generated for {project_name}: {len(brief.critical_blockers)} blockers")
    return brief


def _whole_percent(value: float) -> int:
    return int(math.floor(value + 0.5))


def _inventory_lines(inventory: AssetInventory) -> List[tuple]:
    return [
        (label, count)
        for label, count in (
            ("Source Files", inventory.source_files),
            ("Images", inventory.images),
            ("Videos", inventory.video),
            ("Reference Docs", inventory.reference),
            ("Other", inventory.misc),
        )
        if count > 0
    ]


def render_text(brief: MinimalBrief) -> str:
    """Plain-text report with a fixed section order"""
    heavy = "=" * RULE_WIDTH
    light = "-" * RULE_WIDTH
    lines = [heavy, f"CREATIVE BRIEF: {brief.project_name}", heavy, ""]

    lines += ["SUMMARY", light, brief.summary, ""]

    lines += ["ASSET INVENTORY", light, f"Total Files: {brief.asset_inventory.total}"]
    lines += [f"  • {label}: {count}" for label, count in _inventory_lines(brief.asset_inventory)]
    lines.append("")

    basics = brief.brand_basics
    if basics is not None:
        lines += ["BRAND BASICS", light]
        if basics.brand_colors:
            lines.append("Brand Colors:")
            lines += [f"  • {c.hex} ({_whole_percent(c.percentage)}%)" for c in basics.brand_colors[:MAX_BRIEF_COLORS]]
        if basics.brand_guidelines_doc:
            lines.append(f"Brand Guidelines: {basics.brand_guidelines_doc}")
        if basics.logo_files:
            lines.append(f"Logo Files: {', '.join(basics.logo_files)}")
        lines.append("")

    if brief.suggested_starting_file:
        lines += ["SUGGESTED STARTING POINT", light, f"Open: {brief.suggested_starting_file}", ""]

    if brief.critical_blockers:
        lines += ["CRITICAL BLOCKERS", light]
        lines += [f"{i}. {blocker}" for i, blocker in enumerate(brief.critical_blockers, start=1)]
        lines.append("")

    lines += [
        heavy,
        f"Generated: {brief.generated_at.isoformat()}",
        f"Processing Time: {brief.processing_time_ms}ms",
        heavy,
    ]
    return "\n".join(lines)


def render_html(brief: MinimalBrief) -> str:
    """HTML fragment with the same sections and ordering as render_text"""
    esc = html.escape
    parts = [
        '<article class="creative-brief">',
        f"<h1>Creative Brief: {esc(brief.project_name)}</h1>",
        f"<section><h2>Summary</h2><p>{esc(brief.summary)}</p></section>",
        "<section><h2>Asset Inventory</h2>",
        f"<p>Total Files: {brief.asset_inventory.total}</p><ul>",
    ]
    parts += [f"<li>{esc(label)}: {count}</li>" for label, count in _inventory_lines(brief.asset_inventory)]
    parts.append("</ul></section>")

    basics = brief.brand_basics
    if basics is not None:
        parts.append("<section><h2>Brand Basics</h2>")
        if basics.brand_colors:
            parts.append("<ul class=\"brand-colors\">")
            parts += [
                f'<li><span class="swatch" style="background:{esc(c.hex)}"></span>'
                f"{esc(c.hex)} ({_whole_percent(c.percentage)}%)</li>"
                for c in basics.brand_colors[:MAX_BRIEF_COLORS]
            ]
            parts.append("</ul>")
        if basics.brand_guidelines_doc:
            parts.append(f"<p>Brand Guidelines: {esc(basics.brand_guidelines_doc)}</p>")
        if basics.logo_files:
            parts.append(f"<p>Logo Files: {esc(', '.join(basics.logo_files))}</p>")
        parts.append("</section>")

    if brief.suggested_starting_file:
        parts.append(
            f"<section><h2>Suggested Starting Point</h2><p>Open: {esc(brief.suggested_starting_file)}</p></section>"
        )

    if brief.critical_blockers:
        parts.append("<section><h2>Critical Blockers</h2><ol>")
        parts += [f"<li>{esc(blocker)}</li>" for blocker in brief.critical_blockers]
        parts.append("</ol></section>")

    parts += [
        "<footer>",
        f"<p>Generated: {esc(brief.generated_at.isoformat())}</p>",
        f"<p>Processing Time: {brief.processing_time_ms}ms</p>",
        "</footer>",
        "</article>",
    ]
    return "\n".join(parts)


def brief_to_dict(brief: MinimalBrief) -> Dict[str, Any]:
    return brief.to_dict()
