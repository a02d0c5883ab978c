"""
Request Classifier.

Scores free text against fixed domain keyword sets to decide which part
of the tool catalog a request is about.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from toolbridge.domain.model.mcp.category import DOMAINS, GENERAL
from toolbridge.domain.model.mcp.tool import ToolDescriptor
from toolbridge.infrastructure.mcp.catalog import ToolCatalog

DOMAIN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "database": (
        "database", "db", "sql", "query", "table", "schema", "postgres", "mysql", "sqlite",
        "select", "insert", "update", "delete", "join", "index", "column", "row", "erd",
        "diagram", "migration", "orm",
    ),
    "git": (
        "git", "github", "gitlab", "repo", "repository", "commit", "push", "pull", "merge",
        "branch", "checkout", "clone", "fork", "pr", "pull request", "issue", "diff", "log",
        "status", "add", "stash", "rebase", "cherry-pick",
    ),
    "file-system": (
        "file", "folder", "directory", "path", "read", "write", "copy", "move", "delete",
        "search", "find", "ls", "cat", "mkdir", "rmdir", "chmod", "chown", "stat", "size",
        "exists", "permissions",
    ),
    "web": (
        "http", "https", "url", "api", "rest", "graphql", "fetch", "request", "response",
        "json", "xml", "html", "css", "javascript", "curl", "wget", "browser", "web",
        "internet", "scrape",
    ),
    "development": (
        "code", "programming", "function", "class", "method", "variable", "debug", "test",
        "build", "compile", "deploy", "ci", "cd", "pipeline", "lint", "format", "refactor",
        "review",
    ),
    "analysis": (
        "analyze", "analysis", "data", "statistics", "report", "chart", "graph",
        "visualization", "trend", "pattern", "insight", "metric", "kpi", "dashboard",
        "summary", "aggregate", "calculate", "count", "average", "sum",
    ),
    "system": (
        "system", "process", "service", "daemon", "cpu", "memory", "disk", "network",
        "performance", "monitor", "log", "event", "alert", "health", "status", "uptime",
        "load", "resource",
    ),
    "security": (
        "security", "auth", "authentication", "authorization", "token", "jwt", "oauth",
        "password", "encrypt", "decrypt", "hash", "ssl", "tls", "certificate", "key",
        "vulnerability", "scan", "firewall", "permission",
    ),
    "communication": (
        "email", "mail", "message", "chat", "slack", "teams", "notification", "alert",
        "webhook", "sms", "phone", "call", "meeting", "calendar", "schedule", "reminder",
        "broadcast",
    ),
}

# Checked by substring against the lower-cased text, in this order
CAPABILITY_VERBS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("read", ("list", "show", "get")),
    ("create", ("create", "add", "insert")),
    ("update", ("update", "modify", "change")),
    ("delete", ("delete", "remove", "drop")),
    ("search", ("search", "find", "query")),
    ("generate", ("generate", "create", "build")),
    ("analyze", ("analyze", "calculate", "process")),
)

CONFIDENCE_PER_MATCH = 0.2


@dataclass(frozen=True)
class RequestClassification:
    """Outcome of classifying one request text."""

    primary_domain: str
    secondary_domains: tuple[str, ...] = ()
    confidence: float = 0.0
    required_capabilities: tuple[str, ...] = ()
    scores: Mapping[str, int] = field(default_factory=dict, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "primaryDomain": self.primary_domain,
            "secondaryDomains": list(self.secondary_domains),
            "confidence": self.confidence,
            "requiredCapabilities": list(self.required_capabilities),
        }


class RequestClassifier:
    """
    Keyword based domain classifier.

    A token counts towards a domain once per keyword it contains or is
    contained in. Domains are ranked by score, ties in table order. The
    classifier is a pure function of its tables.
    """

    def __init__(
        self,
        keywords: Mapping[str, Sequence[str]] | None = None,
        scale: float = CONFIDENCE_PER_MATCH,
        default_domain: str = GENERAL,
    ) -> None:
        table = keywords if keywords is not None else DOMAIN_KEYWORDS
        if keywords is None:
            order = [d for d in DOMAINS if d in table]
        else:
            order = list(table)
        self._keywords = [(domain, tuple(k.lower() for k in table[domain])) for domain in order]
        self._scale = scale
        self._default_domain = default_domain

    def score(self, text: str) -> dict[str, int]:
        """Score every domain, in table order."""
        tokens = text.lower().split()
        scores: dict[str, int] = {}
        for domain, keywords in self._keywords:
            scores[domain] = sum(
                1 for keyword in keywords for token in tokens if keyword in token or token in keyword
            )
        return scores

    def classify(self, text: str) -> RequestClassification:
        """
        Classify a request text.

        Returns:
            Primary domain (the default domain when nothing matches), up to
            two secondary domains and a confidence in [0, 1].
        """
        scores = self.score(text)
        # sorted() is stable, so equal scores keep table order
        ranked = sorted(
            (domain for domain, value in scores.items() if value > 0),
            key=lambda domain: scores[domain],
            reverse=True,
        )
        if not ranked:
            return RequestClassification(
                primary_domain=self._default_domain,
                required_capabilities=self.required_capabilities(text),
                scores=scores,
            )

        primary = ranked[0]
        return RequestClassification(
            primary_domain=primary,
            secondary_domains=tuple(ranked[1:3]),
            confidence=min(scores[primary] * self._scale, 1.0),
            required_capabilities=self.required_capabilities(text),
            scores=scores,
        )

    @staticmethod
    def required_capabilities(text: str) -> tuple[str, ...]:
        """Capability verbs mentioned in the text, in fixed order."""
        lowered = text.lower()
        return tuple(
            capability
            for capability, verbs in CAPABILITY_VERBS
            if any(verb in lowered for verb in verbs)
        )

    def select_tools(self, text: str, catalog: ToolCatalog) -> list[ToolDescriptor]:
        """Tools of the request's primary domain, or every tool if that domain has none."""
        classification = self.classify(text)
        selected = catalog.tools_for_domain(classification.primary_domain)
        return selected or catalog.list_all()


_default_classifier = RequestClassifier()


def classify(text: str) -> RequestClassification:
    """Classify text with the built-in keyword tables."""
    return _default_classifier.classify(text)
