"""
Tool categories and domains.

A category is assigned to every discovered tool; a domain is the coarser
grouping used when selecting tools for a free-text request. Both tables
are ordered and their order is part of the behaviour.
"""

from dataclasses import dataclass
from typing import Any

GENERAL = "general"

# Evaluated in order against the lower-cased tool name; first match wins.
CATEGORY_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("query", ("list", "get", "describe")),
    ("analysis", ("generate", "create", "build")),
    ("database", ("run", "execute", "query")),
)

# Enumeration order doubles as the tie-break order when ranking domains.
DOMAINS: tuple[str, ...] = (
    "database",
    "git",
    "file-system",
    "web",
    "development",
    "analysis",
    "system",
    "security",
    "communication",
)

_CATEGORY_TO_DOMAIN: dict[str, str] = {
    "query": "database",
    **{domain: domain for domain in DOMAINS},
    GENERAL: GENERAL,
}

DOMAIN_DESCRIPTIONS: dict[str, str] = {
    "database": "Database operations, queries, and schema management",
    "git": "Version control and repository management",
    "file-system": "File and directory operations",
    "web": "Web requests and API interactions",
    "development": "Code analysis and development tools",
    "analysis": "Data analysis and reporting",
    "system": "System monitoring and management",
    "security": "Security and authentication operations",
    "communication": "Messaging and notification services",
    GENERAL: "General utility operations",
}

DOMAIN_EXAMPLES: dict[str, tuple[str, ...]] = {
    "database": ("List database schemas", "Execute SQL queries", "Generate ERD diagrams"),
    "git": ("Check repository status", "Review code changes", "Manage branches"),
    "file-system": ("Search files", "Read file contents", "Manage directories"),
    "web": ("Make HTTP requests", "Fetch API data", "Parse web content"),
    "development": ("Analyze code", "Run tests", "Build projects"),
    "analysis": ("Process data", "Generate reports", "Create visualizations"),
    "system": ("Monitor processes", "Check system health", "Manage services"),
    "security": ("Authenticate users", "Encrypt data", "Scan vulnerabilities"),
    "communication": ("Send notifications", "Schedule meetings", "Broadcast messages"),
    GENERAL: ("Process information", "Perform calculations", "Manage data"),
}


def categorize_tool(tool_name: str, server_categories: tuple[str, ...] = ()) -> str:
    """
    Assign a category to a tool.

    The owning server's first category hint wins; otherwise the tool name
    is matched by substring against CATEGORY_PATTERNS in order.
    """
    if server_categories:
        return server_categories[0]

    name = tool_name.lower()
    for category, patterns in CATEGORY_PATTERNS:
        if any(pattern in name for pattern in patterns):
            return category
    return GENERAL


def category_to_domain(category: str) -> str:
    """Map a tool category to its domain (unknown categories are general)."""
    return _CATEGORY_TO_DOMAIN.get(category, GENERAL)


@dataclass(frozen=True)
class DomainCapabilities:
    """Tools available for one domain, with display text for hosts."""

    domain: str
    tools: tuple[str, ...]
    description: str
    examples: tuple[str, ...]

    @classmethod
    def for_domain(cls, domain: str, tools: list[str]) -> "DomainCapabilities":
        return cls(
            domain=domain,
            tools=tuple(tools),
            description=DOMAIN_DESCRIPTIONS.get(domain, "General operations"),
            examples=DOMAIN_EXAMPLES.get(domain, ("General operations",)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "tools": list(self.tools),
            "description": self.description,
            "examples": list(self.examples),
        }

    def format(self) -> str:
        """Render as a markdown block for prompts."""
        return (
            f"**{self.domain.upper()}** ({len(self.tools)} tools)\n"
            f"- {self.description}\n"
            f"- Tools: {', '.join(self.tools)}\n"
            f"- Examples: {', '.join(self.examples)}\n"
        )
