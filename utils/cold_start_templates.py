"""
Hand-authored recommendation templates for cold-start subjects.

Subjects with too little telemetry get a fixed foundation set: owned-site
and directory work that is safe regardless of the competitive landscape.
The set is sized to the subject's vertical.
"""

import logging
import re
from typing import Dict, List, Optional

from models.schemas import Candidate

logger = logging.getLogger(__name__)


BASE_TEMPLATES: List[Dict] = [
    {
        "action": "Publish a comprehensive About page that states what {subject} does, who it serves and where it operates",
        "citation_source": "owned-site",
        "focus_area": "visibility",
        "priority": "High",
        "effort": "Low",
        "kpi": "Visibility Index",
        "reason": "AI assistants need a clear, crawlable description of {subject} before they can cite it.",
        "explanation": "Answer engines build their understanding of a brand from a small number of authoritative pages. A factual About page with the brand name, category, audience and locations gives them a reliable source to quote.",
        "expected_boost": "+3-5% visibility",
        "timeline": "1-2 weeks",
    },
    {
        "action": "Add Organization and Product schema markup to the {subject} homepage and key landing pages",
        "citation_source": "owned-site",
        "focus_area": "visibility",
        "priority": "High",
        "effort": "Medium",
        "kpi": "Visibility Index",
        "reason": "Structured data lets crawlers identify {subject} as an entity and connect it to its offerings.",
        "explanation": "Schema.org markup removes ambiguity about the brand name, logo, offerings and contact details, which improves how consistently AI models describe the brand.",
        "expected_boost": "+2-4% visibility",
        "timeline": "2-3 weeks",
    },
    {
        "action": "Create an FAQ hub answering the ten questions buyers ask most about {subject} and its category",
        "citation_source": "owned-site",
        "focus_area": "share_of_voice",
        "priority": "Medium",
        "effort": "Medium",
        "kpi": "Share of Answers",
        "reason": "Question-and-answer content maps directly onto how people prompt AI assistants.",
        "explanation": "Concise, self-contained answers are easy for answer engines to lift and attribute, which increases how often {subject} appears in category answers.",
        "expected_boost": "+2-3% share of answers",
        "timeline": "2-4 weeks",
    },
    {
        "action": "Claim and complete the {subject} listings on the major business directories for its category",
        "citation_source": "directories",
        "focus_area": "visibility",
        "priority": "High",
        "effort": "Low",
        "kpi": "Visibility Index",
        "reason": "Directories are frequently cited by AI models when they have little other information about a brand.",
        "explanation": "Consistent name, address, category and description across directories builds corroborating signals that models rely on for lesser-known brands.",
        "expected_boost": "+2-4% visibility",
        "timeline": "1-2 weeks",
    },
    {
        "action": "Collect and showcase verified customer reviews for {subject} on its main directory profiles",
        "citation_source": "directories",
        "focus_area": "sentiment",
        "priority": "Medium",
        "effort": "Medium",
        "kpi": "Sentiment Score",
        "reason": "Review volume and tone shape how AI assistants characterize {subject}.",
        "explanation": "Models summarize third-party opinion when describing brands. A steady stream of genuine reviews gives them positive, recent material to draw on.",
        "expected_boost": "+5-10 sentiment points",
        "timeline": "4-6 weeks",
    },
    {
        "action": "Publish an in-depth guide that explains the core problem {subject} solves, with original data or examples",
        "citation_source": "owned-site",
        "focus_area": "share_of_voice",
        "priority": "Medium",
        "effort": "High",
        "kpi": "Share of Answers",
        "reason": "Original, substantive content is the kind of material answer engines prefer to cite.",
        "explanation": "A definitive guide gives models a reason to reference {subject} when answering broad category questions instead of only brand-specific ones.",
        "expected_boost": "+3-6% share of answers",
        "timeline": "4-8 weeks",
    },
]

VERTICAL_TEMPLATES: Dict[str, List[Dict]] = {
    "software": [
        {
            "action": "Publish public documentation and integration pages describing every major {subject} feature",
            "citation_source": "owned-site",
            "focus_area": "visibility",
            "priority": "High",
            "effort": "Medium",
            "kpi": "Visibility Index",
            "reason": "Documentation is among the most cited owned content for software products.",
            "explanation": "Feature and integration pages answer the comparison and capability questions buyers put to AI assistants.",
            "expected_boost": "+3-5% visibility",
            "timeline": "3-4 weeks",
        },
        {
            "action": "Create complete profiles for {subject} on software review directories with screenshots and pricing",
            "citation_source": "directories",
            "focus_area": "share_of_voice",
            "priority": "High",
            "effort": "Low",
            "kpi": "Share of Answers",
            "reason": "Software review directories are heavily cited in tool-recommendation answers.",
            "explanation": "Models assemble shortlists from review directories. A complete profile makes {subject} eligible for those lists.",
            "expected_boost": "+2-4% share of answers",
            "timeline": "1-2 weeks",
        },
    ],
    "ecommerce": [
        {
            "action": "Enrich {subject} product pages with specifications, sizing details and Product schema with ratings",
            "citation_source": "owned-site",
            "focus_area": "visibility",
            "priority": "High",
            "effort": "Medium",
            "kpi": "Visibility Index",
            "reason": "Shopping answers favor product pages with complete, structured attributes.",
            "explanation": "Detailed attributes let AI assistants match {subject} products to specific shopping questions.",
            "expected_boost": "+3-5% visibility",
            "timeline": "2-4 weeks",
        },
        {
            "action": "Publish buying guides that help shoppers choose between product types in the {subject} catalog",
            "citation_source": "owned-site",
            "focus_area": "share_of_voice",
            "priority": "Medium",
            "effort": "Medium",
            "kpi": "Share of Answers",
            "reason": "Buying guides match the comparison prompts shoppers use.",
            "explanation": "Guides position {subject} as the explainer for its category rather than only a seller.",
            "expected_boost": "+2-3% share of answers",
            "timeline": "3-5 weeks",
        },
    ],
    "local": [
        {
            "action": "Create a dedicated page for each location or service area that {subject} covers",
            "citation_source": "owned-site",
            "focus_area": "visibility",
            "priority": "High",
            "effort": "Medium",
            "kpi": "Visibility Index",
            "reason": "Location-specific pages are required for near-me and city-level answers.",
            "explanation": "AI assistants answer local questions from pages that clearly state the service and the place together.",
            "expected_boost": "+3-6% visibility",
            "timeline": "2-3 weeks",
        },
        {
            "action": "Keep the {subject} name, address and phone identical across every local directory listing",
            "citation_source": "directories",
            "focus_area": "visibility",
            "priority": "High",
            "effort": "Low",
            "kpi": "Visibility Index",
            "reason": "Inconsistent listings split the signals models use to confirm a local business.",
            "explanation": "Consistent listings let models merge references into one confident picture of the business.",
            "expected_boost": "+2-4% visibility",
            "timeline": "1-2 weeks",
        },
    ],
    "healthcare": [
        {
            "action": "Publish clinician-reviewed explainer pages for the conditions and treatments {subject} offers",
            "citation_source": "owned-site",
            "focus_area": "sentiment",
            "priority": "High",
            "effort": "High",
            "kpi": "Sentiment Score",
            "reason": "Health answers weight expert-reviewed, trustworthy sources heavily.",
            "explanation": "Named reviewers and clear sourcing raise the credibility signals that models look for in medical topics.",
            "expected_boost": "+5-8 sentiment points",
            "timeline": "4-8 weeks",
        },
    ],
    "finance": [
        {
            "action": "Publish transparent fee, rate and eligibility pages for every product {subject} offers",
            "citation_source": "owned-site",
            "focus_area": "visibility",
            "priority": "High",
            "effort": "Medium",
            "kpi": "Visibility Index",
            "reason": "Financial comparison answers depend on clearly stated costs and terms.",
            "explanation": "Plain-language fee and eligibility details let models include {subject} in cost comparisons with confidence.",
            "expected_boost": "+3-5% visibility",
            "timeline": "2-4 weeks",
        },
    ],
}

VERTICAL_KEYWORDS = {
    "healthcare": ("health", "medical", "pharma", "wellness", "hospital"),
    "finance": ("finance", "financial", "bank", "insurance", "fintech", "lending", "invest"),
    "ecommerce": ("ecommerce", "e-commerce", "retail", "shop", "store", "fashion", "apparel", "consumer goods"),
    "local": ("local", "restaurant", "salon", "plumb", "dental", "clinic", "home services", "real estate"),
    "software": ("saas", "software", "technology", "tech", "app", "platform", "cloud", "ai"),
}


def detect_vertical(industry: Optional[str]) -> Optional[str]:
    """Map a free-text industry label onto a template vertical."""
    if not industry:
        return None
    lowered = industry.lower()
    for vertical, keywords in VERTICAL_KEYWORDS.items():
        if any(re.search(r"\b" + re.escape(keyword), lowered) for keyword in keywords):
            return vertical
    return None


def _render(template: Dict, subject_name: str) -> Candidate:
    fields = {
        key: value.replace("{subject}", subject_name) if isinstance(value, str) else value
        for key, value in template.items()
    }
    fields.setdefault("confidence", 60)
    fields["focus_sources"] = fields["citation_source"]
    fields["content_focus"] = fields["action"]
    return Candidate(source="cold_start_template", **fields)


def generate_cold_start_templates(subject_name: str, industry: Optional[str] = None) -> List[Candidate]:
    """
    Expand the template set for a cold-start subject.

    Args:
        subject_name: Brand name substituted into the templates
        industry: Free-text industry used to pick vertical extras

    Returns:
        Candidates in template order, vertical extras first
    """
    name = (subject_name or "").strip() or "the brand"
    vertical = detect_vertical(industry)
    templates = VERTICAL_TEMPLATES.get(vertical, []) + BASE_TEMPLATES

    logger.info(f"🧊 Expanded {len(templates)} cold-start templates (vertical: {vertical or 'general'})")
    return [_render(template, name) for template in templates]
