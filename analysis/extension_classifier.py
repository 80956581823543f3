"""Extension-based file categorization.

Table lookups only: no I/O, no content inspection. Filename rules are checked
first; MIME-type rules are a fallback used only when no filename rule matches.
"""

import logging
import mimetypes
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from models.asset import AssetCategory

logger = logging.getLogger("ExtensionClassifier")

GENERIC_MIME_TYPE = "application/octet-stream"
MISC_CONFIDENCE = 0.3


@dataclass(frozen=True)
class ClassificationRule:
    extensions: FrozenSet[str]  # Lowercase, with leading dot
    category: AssetCategory
    priority: int
    confidence: float = 0.95


@dataclass(frozen=True)
class MimeRule:
    prefix: str  # Matched with str.startswith against the lowercased MIME type
    category: AssetCategory
    priority: int
    confidence: float = 0.5


@dataclass(frozen=True)
class Classification:
    category: AssetCategory
    confidence: float
    matched_by: str  # "extension" | "mime" | "fallback"


DEFAULT_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        frozenset({".psd", ".ai", ".indd", ".sketch", ".fig", ".xd", ".afdesign", ".afphoto"}),
        AssetCategory.SOURCE_FILES,
        priority=40,
    ),
    ClassificationRule(
        frozenset({".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".bmp", ".tiff", ".tif", ".ico"}),
        AssetCategory.IMAGES,
        priority=30,
    ),
    ClassificationRule(
        frozenset({".mp4", ".mov", ".avi", ".webm", ".mkv", ".flv", ".wmv", ".m4v"}),
        AssetCategory.VIDEO,
        priority=20,
    ),
    ClassificationRule(
        frozenset({".pdf", ".doc", ".docx", ".txt", ".pptx", ".ppt", ".xlsx", ".xls", ".pages", ".key", ".numbers"}),
        AssetCategory.REFERENCE,
        priority=10,
    ),
)

DEFAULT_MIME_RULES: Tuple[MimeRule, ...] = (
    MimeRule("image/vnd.adobe.photoshop", AssetCategory.SOURCE_FILES, priority=40, confidence=0.6),
    MimeRule("image/", AssetCategory.IMAGES, priority=30),
    MimeRule("video/", AssetCategory.VIDEO, priority=20, confidence=0.6),
    MimeRule("application/pdf", AssetCategory.REFERENCE, priority=10),
    MimeRule("application/msword", AssetCategory.REFERENCE, priority=10),
    MimeRule("application/vnd.openxmlformats-officedocument", AssetCategory.REFERENCE, priority=10),
    MimeRule("text/", AssetCategory.REFERENCE, priority=5, confidence=0.4),
)

# Design formats the stdlib mimetypes registry does not know
MIME_TYPES: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".psd": "image/vnd.adobe.photoshop",
    ".ai": "application/postscript",
    ".indd": "application/x-indesign",
    ".sketch": "application/sketch",
    ".fig": "application/figma",
    ".xd": "application/vnd.adobe.xd",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".txt": "text/plain",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".webm": "video/webm",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".zip": "application/zip",
}


def get_file_extension(filename: str) -> str:
    """Lowercase extension with the leading dot, or '' when there is none"""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    if dot <= 0:
        return ""
    return base[dot:].lower()


def guess_mime_type(filename: str) -> str:
    extension = get_file_extension(filename)
    if extension in MIME_TYPES:
        return MIME_TYPES[extension]
    guessed, _ = mimetypes.guess_type(filename, strict=False)
    return guessed or GENERIC_MIME_TYPE


class ExtensionClassifier:
    """Maps filenames to inventory categories using immutable rule tables"""

    def __init__(
        self,
        rules: Sequence[ClassificationRule] = DEFAULT_RULES,
        mime_rules: Sequence[MimeRule] = DEFAULT_MIME_RULES,
    ):
        self.rules = tuple(rules)
        self.mime_rules = tuple(sorted(mime_rules, key=lambda rule: -rule.priority))
        self._by_extension: Dict[str, ClassificationRule] = {}
        # Higher priority wins; on equal priority the earlier rule keeps the extension
        for rule in self.rules:
            for extension in rule.extensions:
                current = self._by_extension.get(extension)
                if current is None or rule.priority > current.priority:
                    self._by_extension[extension] = rule

    def classify(self, filename: str, mime_type: Optional[str] = None) -> Classification:
        rule = self._by_extension.get(get_file_extension(filename))
        if rule is not None:
            return Classification(rule.category, rule.confidence, "extension")

        if mime_type and mime_type.lower() != GENERIC_MIME_TYPE:
            lowered = mime_type.lower()
            for mime_rule in self.mime_rules:
                if lowered.startswith(mime_rule.prefix):
                    return Classification(mime_rule.category, mime_rule.confidence, "mime")

        return Classification(AssetCategory.MISC, MISC_CONFIDENCE, "fallback")

    def categorize(self, filename: str, mime_type: Optional[str] = None) -> AssetCategory:
        return self.classify(filename, mime_type).category

    def batch_classify(self, filenames: Iterable[str]) -> Dict[AssetCategory, List[str]]:
        """Group filenames by category; every category is present, possibly empty"""
        grouped: Dict[AssetCategory, List[str]] = {category: [] for category in AssetCategory}
        for filename in filenames:
            grouped[self.categorize(filename)].append(filename)
        return grouped

    def category_stats(self, filenames: Iterable[str]) -> Dict[str, int]:
        """Counts per category, non-zero categories only"""
        grouped = self.batch_classify(filenames)
        logger.debug(f"Classified {sum(len(names) for names in grouped.values())} files")
        return {category.value: len(names) for category, names in grouped.items() if names}

    def is_supported_file_type(self, filename: str) -> bool:
        return self.categorize(filename) != AssetCategory.MISC
