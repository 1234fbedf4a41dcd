"""
Curated content for the recommendation engine.

Holds the built-in resource catalog, template names per phase and industry,
and the framework adjustments suggested per industry. A catalog can also be
loaded from YAML:

    - id: lean-canvas
      title: Lean Canvas Template
      description: One-page business model
      type: template
      category: validation
      tags: [validation, general, budget]
      relevance_score: 0.9
"""
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from launchkit.exceptions import ConfigError
from launchkit.logger import get_logger
from launchkit.models import Phase, Resource, ResourceType

logger = get_logger("catalog")

GENERAL_TAG = "general"
BUDGET_TAG = "budget"
SOLO_TAG = "solo"


def _resource(id, title, description, type, category, tags, score, url=None) -> Resource:
    return Resource(
        id=id,
        title=title,
        description=description,
        type=ResourceType(type),
        category=category,
        tags=set(tags),
        relevance_score=score,
        url=url,
    )


DEFAULT_RESOURCES: List[Resource] = [
    # Generic, always eligible
    _resource("launch-checklist", "Product Launch Checklist",
              "End-to-end checklist covering every launch phase",
              "template", "general", ["general"], 0.7),
    _resource("startup-owners-manual", "The Startup Owner's Manual",
              "Step-by-step guide to building a great company",
              "book", "general", ["general", "concept", "validation"], 0.65),
    _resource("founder-weekly-review", "Weekly Founder Review Template",
              "Keep momentum with a short weekly progress review",
              "template", "general", ["general", "solo"], 0.5),

    # Validation
    _resource("customer-discovery-guide", "Customer Discovery Guide",
              "How to find and interview early customers",
              "article", "validation", ["validation", "concept", "general"], 0.9),
    _resource("mom-test", "The Mom Test",
              "Asking customers questions that produce honest answers",
              "book", "validation", ["validation", "budget", "solo"], 0.85),
    _resource("survey-tools", "Free Survey Tools Roundup",
              "Low-cost tools for running validation surveys",
              "tool", "validation", ["validation", "budget", "solo"], 0.75),
    _resource("saas-validation-playbook", "SaaS Validation Playbook",
              "Validating B2B software ideas before writing code",
              "article", "validation", ["saas", "validation", "technology"], 0.88),

    # Definition
    _resource("lean-canvas", "Lean Canvas Template",
              "One-page business model for early-stage products",
              "template", "definition", ["definition", "concept", "budget", "general"], 0.8),
    _resource("mvp-scoping", "Scoping an MVP",
              "Cutting features down to a launchable core",
              "video", "definition", ["definition", "development", "solo"], 0.7),

    # Technical
    _resource("saas-architecture", "SaaS Architecture Patterns",
              "Multi-tenancy, billing and scaling choices for SaaS",
              "article", "technical", ["saas", "technical", "development"], 0.82),
    _resource("no-code-stack", "No-Code Stack for Founders",
              "Shipping a first version without an engineering team",
              "tool", "technical", ["technical", "solo", "budget"], 0.72),
    _resource("hardware-prototyping", "Hardware Prototyping Guide",
              "From breadboard to manufacturable prototype",
              "article", "technical", ["hardware", "technical", "development"], 0.78),

    # Marketing
    _resource("gtm-strategy", "Go-to-Market Strategy Template",
              "Positioning, channels and launch sequencing",
              "template", "marketing", ["marketing", "launch", "general"], 0.8),
    _resource("saas-pricing", "SaaS Pricing Strategies",
              "Tiering, freemium and usage-based pricing",
              "article", "marketing", ["saas", "marketing"], 0.78),
    _resource("ecommerce-growth", "E-commerce Growth Channels",
              "Acquisition channels that work for online stores",
              "video", "marketing", ["ecommerce", "marketing", "growth"], 0.74),
    _resource("content-marketing-budget", "Content Marketing on a Budget",
              "Organic growth tactics that cost time, not money",
              "article", "marketing", ["marketing", "budget", "solo"], 0.68),

    # Operations
    _resource("ops-playbook", "Operations Playbook",
              "Processes, tooling and support for launch day",
              "template", "operations", ["operations", "launch", "testing"], 0.7),
    _resource("marketplace-ops", "Running a Two-Sided Marketplace",
              "Supply, demand and trust operations",
              "article", "operations", ["marketplace", "operations"], 0.73),

    # Financial
    _resource("financial-model", "Startup Financial Model",
              "Three-statement model with runway planning",
              "template", "financial", ["financial", "general"], 0.79),
    _resource("bootstrapping-guide", "Bootstrapping Your Startup",
              "Funding growth from revenue",
              "book", "financial", ["financial", "budget", "solo"], 0.7),
    _resource("fintech-compliance", "Fintech Compliance Basics",
              "Licensing and regulatory checkpoints for fintech",
              "article", "financial", ["fintech", "financial", "risk"], 0.83),

    # Risk
    _resource("risk-register", "Risk Register Template",
              "Track probability, impact and mitigations",
              "template", "risk", ["risk", "general"], 0.66),
    _resource("healthcare-regulation", "Healthcare Regulation Primer",
              "HIPAA and medical device considerations",
              "article", "risk", ["healthcare", "risk"], 0.8),

    # Optimization
    _resource("analytics-setup", "Product Analytics Setup",
              "Instrumenting activation and retention metrics",
              "tool", "optimization", ["optimization", "growth", "launch"], 0.76),
    _resource("ab-testing", "A/B Testing Guide",
              "Running experiments after launch",
              "video", "optimization", ["optimization", "growth"], 0.69),
]


TEMPLATE_SUGGESTIONS: Dict[Phase, List[str]] = {
    Phase.VALIDATION: ["Customer Interview Script", "Market Research Template", "Competitor Analysis Matrix"],
    Phase.DEFINITION: ["Value Proposition Canvas", "Feature Prioritization Matrix", "Product Requirements Document"],
    Phase.TECHNICAL: ["Technical Architecture Document", "Technology Stack Evaluation", "Infrastructure Cost Estimate"],
    Phase.MARKETING: ["Marketing Plan Template", "Pricing Strategy Worksheet", "Launch Marketing Calendar"],
    Phase.OPERATIONS: ["Team Structure Chart", "Customer Support Playbook", "Vendor Evaluation Checklist"],
    Phase.FINANCIAL: ["Financial Projections Model", "Funding Strategy Outline", "Unit Economics Calculator"],
    Phase.RISK: ["Risk Assessment Matrix", "Contingency Plan Template", "Compliance Checklist"],
    Phase.OPTIMIZATION: ["Analytics Dashboard Template", "Feedback Collection Form", "Growth Experiment Log"],
}

INDUSTRY_TEMPLATES: Dict[str, Dict[Phase, List[str]]] = {
    "saas": {
        Phase.VALIDATION: ["SaaS Problem Validation Survey"],
        Phase.MARKETING: ["SaaS Marketing Funnel Template"],
        Phase.FINANCIAL: ["SaaS Metrics Model (MRR, Churn, LTV)"],
    },
    "ecommerce": {
        Phase.MARKETING: ["E-commerce Marketing Channel Plan"],
        Phase.OPERATIONS: ["Fulfillment Process Map"],
    },
    "fintech": {
        Phase.RISK: ["Regulatory Compliance Tracker"],
        Phase.FINANCIAL: ["Capital Requirements Worksheet"],
    },
    "healthcare": {
        Phase.RISK: ["HIPAA Readiness Checklist"],
    },
    "marketplace": {
        Phase.MARKETING: ["Marketplace Liquidity Marketing Plan"],
    },
    "hardware": {
        Phase.TECHNICAL: ["Bill of Materials Template"],
    },
}

INDUSTRY_ADJUSTMENTS: Dict[str, List[str]] = {
    "saas": ["Emphasize recurring revenue and churn metrics"],
    "ecommerce": ["Account for inventory and fulfillment costs"],
    "fintech": ["Build regulatory review into every phase"],
    "healthcare": ["Plan for longer compliance and approval cycles"],
    "marketplace": ["Solve for one side of the market first"],
    "hardware": ["Budget for manufacturing lead times"],
}

LOW_BUDGET_ADJUSTMENTS = [
    "Focus on lean validation methods",
    "Prioritize free and low-cost tools",
]

SOLO_ADJUSTMENTS = [
    "Adapt processes for solo founder",
    "Consider outsourcing non-core activities",
]


def templates_for(phase: Phase, industry: str) -> List[str]:
    templates = list(TEMPLATE_SUGGESTIONS.get(phase, []))
    templates.extend(INDUSTRY_TEMPLATES.get(industry, {}).get(phase, []))
    return templates


def industry_adjustments(industry: str, phase: Phase) -> List[str]:
    """Adjustments naming the industry; empty when no industry is known."""
    if not industry:
        return []
    adjustments = [f"Tailor the {phase.value} framework to {industry} industry norms"]
    adjustments.extend(INDUSTRY_ADJUSTMENTS.get(industry, []))
    return adjustments


def resource_from_dict(d: Dict[str, Any]) -> Resource:
    """
    Raises:
        KeyError: a required field is missing.
        ValueError: unknown resource type or bad score.
    """
    return Resource(
        id=str(d["id"]),
        title=str(d["title"]),
        description=str(d.get("description", "")),
        type=ResourceType(d.get("type", ResourceType.ARTICLE.value)),
        category=str(d.get("category", GENERAL_TAG)),
        tags={str(t).lower() for t in d.get("tags") or [GENERAL_TAG]},
        relevance_score=float(d.get("relevance_score", d.get("relevanceScore", 0.5))),
        url=d.get("url"),
    )


def load_catalog(path: Union[str, Path]) -> List[Resource]:
    """
    Load a resource catalog from a YAML list.

    Raises:
        ConfigError: the file cannot be read or an entry is malformed.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or []
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read resource catalog: {e}", config_path=str(path)) from e

    if isinstance(raw, dict):
        raw = raw.get("resources", [])
    if not isinstance(raw, list):
        raise ConfigError("Resource catalog must be a list of resources", config_path=str(path))

    resources = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigError(f"Catalog entry {index} is not a mapping", config_path=str(path))
        try:
            resources.append(resource_from_dict(entry))
        except (KeyError, ValueError, TypeError) as e:
            raise ConfigError(f"Catalog entry {index} is invalid: {e}", config_path=str(path)) from e

    logger.info(f"Loaded {len(resources)} resources from {path}")
    return resources
