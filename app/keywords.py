"""Keyword configuration used for resume matching and filtering."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KeywordCategory:
    name: str
    keywords: tuple[str, ...]


# Declaration order is the tie-break order for find_best_category.
KEYWORD_CATEGORIES: tuple[KeywordCategory, ...] = (
    KeywordCategory(
        "Engineering",
        (
            "javascript", "typescript", "react", "node", "nodejs", "python",
            "java", "c++", "c#", "golang", "rust", "ruby",
            "aws", "gcp", "azure", "docker", "kubernetes",
            "microservices", "api", "backend", "frontend", "fullstack",
            "software engineer", "developer", "architect",
        ),
    ),
    KeywordCategory(
        "Data",
        (
            "sql", "python", "pandas", "numpy", "tableau", "power bi",
            "analytics", "machine learning", "ml", "ai", "data science",
            "etl", "data pipeline", "spark", "hadoop", "snowflake",
            "statistics", "visualization", "modeling",
        ),
    ),
    KeywordCategory(
        "Finance",
        (
            "accounting", "finance", "excel", "forecasting", "reporting",
            "budgeting", "financial analysis", "cpa", "cfa",
            "investment", "banking", "audit", "compliance", "gaap",
        ),
    ),
    KeywordCategory(
        "Admin",
        (
            "operations", "scheduling", "management", "coordination",
            "administrative", "office", "executive assistant",
            "project coordination", "calendar", "travel",
        ),
    ),
    KeywordCategory(
        "Marketing",
        (
            "marketing", "seo", "sem", "content", "social media",
            "branding", "campaigns", "analytics", "copywriting",
            "digital marketing", "growth", "product marketing",
        ),
    ),
    KeywordCategory(
        "Design",
        (
            "design", "figma", "sketch", "adobe", "ui", "ux",
            "user experience", "user interface", "prototype",
            "wireframe", "visual design", "interaction design",
        ),
    ),
    KeywordCategory(
        "Product",
        (
            "product manager", "product owner", "roadmap", "agile",
            "scrum", "requirements", "stakeholder", "prd",
            "user stories", "prioritization", "metrics", "kpi",
        ),
    ),
    KeywordCategory(
        "General",
        (
            "communication", "project management", "writing", "collaboration",
            "leadership", "teamwork", "problem solving", "analytical",
            "organization", "multitasking", "attention to detail",
        ),
    ),
)

GENERAL_CATEGORY = next(c for c in KEYWORD_CATEGORIES if c.name == "General")

DEFAULT_EXCLUSION_KEYWORDS: tuple[str, ...] = (
    "security clearance required",
    "us citizenship required",
    "must be able to obtain clearance",
    "top secret",
)

SENIORITY_LEVELS: tuple[str, ...] = (
    "intern", "junior", "associate", "mid", "senior", "staff",
    "principal", "lead", "manager", "director", "vp", "executive",
)


def keyword_score(text: str, keywords) -> int:
    """Count how many keywords occur as substrings of the lowercased text."""
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword and keyword.lower() in lowered)


def find_best_category(text: str, categories=KEYWORD_CATEGORIES) -> KeywordCategory:
    best = GENERAL_CATEGORY
    highest = 0
    for category in categories:
        score = keyword_score(text, category.keywords)
        if score > highest:
            highest = score
            best = category
    return best
