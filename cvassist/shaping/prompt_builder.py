"""Prompt construction for the answer summarizer.

Everything here is a pure function of its inputs so prompts can be
asserted on directly in tests.
"""

from __future__ import annotations

from ..core.config.settings import SearchSettings
from ..core.models.enums import ConfidenceTier, Seniority
from ..core.models.query import ProjectContext, RankedMatch

SENIORITY_BREAKPOINTS: list[tuple[float, Seniority]] = [
    (15, Seniority.PRINCIPAL),
    (7, Seniority.SENIOR),
    (3, Seniority.MID),
    (0, Seniority.JUNIOR),
]

TIER_PHRASING: dict[ConfidenceTier, str] = {
    ConfidenceTier.HIGH: "Answer directly and assertively; the matches clearly cover the question.",
    ConfidenceTier.MEDIUM: "Answer with measured confidence; the matches are related but not exact.",
    ConfidenceTier.LOW: (
        "Say plainly that the closest experience is adjacent to the question, "
        "then describe that experience without overstating it."
    ),
}


def confidence_tier(top_score: float, settings: SearchSettings | None = None) -> ConfidenceTier:
    settings = settings or SearchSettings()
    if top_score >= settings.high_confidence:
        return ConfidenceTier.HIGH
    if top_score >= settings.medium_confidence:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def classify_seniority(years: float) -> Seniority:
    for floor, band in SENIORITY_BREAKPOINTS:
        if years >= floor:
            return band
    return Seniority.JUNIOR


def build_system_prompt(
    subject: str,
    employer: str | None,
    tier: ConfidenceTier,
    max_sentences: int = 2,
    max_words: int = 60,
) -> str:
    tier = ConfidenceTier(tier)
    closing = f'"at {employer}"' if employer else "the organisation tied to the top skill"
    return f"""You are a recruiter-facing assistant answering questions about {subject}'s professional profile. Respond in the first person as {subject}, in British English.

STYLE (MANDATORY)
- At most {max_sentences} short sentences and {max_words} words in total.
- No opening filler such as "I've worked with..." or "My expertise spans...". Start with a strong verb: "I implemented...", "I engineered...", "I delivered...".
- Mention only skills relevant to the question and at most one measurable outcome.
- Always close the answer with the employer: {closing}.

FACTS (MANDATORY)
- Each skill has its own years and outcomes. Never combine numbers from different skills.
- Use exact figures from the data. Never invent skills, outcomes, projects or timeframes.
- The years field is total career experience, not time spent on one project.

CONFIDENCE
- {TIER_PHRASING[tier]}

CLASSIFICATION
- When asked about level, classify explicitly: 0-3 years = Junior | 3-7 years = Mid-level | 7-15 years = Senior | 15+ years = Principal/Lead."""


def format_match(index: int, match: RankedMatch) -> str:
    skill = match.skill
    recency = f" ({skill.recency})" if skill.recency else ""
    lines = [
        f"{index}. {skill.name}: {skill.years_of_experience:g} years, {skill.proficiency_level or 'unrated'}{recency}",
        f"   Category: {skill.category or 'General'}",
    ]
    for label, value in (
        ("Action", skill.action),
        ("Effect", skill.effect),
        ("Outcome", skill.outcome),
        ("Project", skill.related_project),
        ("Employer", skill.employer),
        ("Summary", skill.narrative_summary),
    ):
        if value:
            lines.append(f"   {label}: {value}")
    lines.append(f"   Similarity: {match.score:.3f}")
    return "\n".join(lines)


def build_user_prompt(
    query: str,
    project: ProjectContext,
    matches: list[RankedMatch],
    tier: ConfidenceTier,
) -> str:
    tier = ConfidenceTier(tier)
    top_score = matches[0].score if matches else 0.0
    results = "\n\n".join(format_match(i, m) for i, m in enumerate(matches, start=1))

    sections = [f'USER QUESTION: "{query}"']
    if project.is_project_specific:
        sections.append(
            f"PROJECT CONTEXT: This question is about {project.project_name}. "
            f"Every skill below was used at {project.project_name}. Describe what was done there; "
            "do not present total career years as time spent on this project."
        )
    sections.append(f"TOP MATCHING SKILLS (confidence: {tier.value}, score: {top_score:.3f}):\n{results}")

    categories = sorted({m.skill.category for m in matches if m.skill.category})
    seniority = [f"{m.skill.name} = {classify_seniority(m.skill.years_of_experience).value}" for m in matches]
    sections.append(
        "CONTEXT FOR ASSESSMENT:\n"
        f"- Categories represented: {', '.join(categories) or 'n/a'}\n"
        f"- Seniority by skill: {'; '.join(seniority)}"
    )
    sections.append(
        "Answer in the format: [strong verb] + [technology] + [outcome] + [employer]. "
        "Keep each skill's outcomes separate."
    )
    return "\n\n".join(sections)


def build_messages(
    query: str,
    project: ProjectContext,
    matches: list[RankedMatch],
    tier: ConfidenceTier,
    subject: str = "the candidate",
    max_sentences: int = 2,
    max_words: int = 60,
) -> tuple[str, str]:
    """Return (system prompt, user prompt)."""
    employer = matches[0].skill.employer if matches else None
    system = build_system_prompt(subject, employer, tier, max_sentences=max_sentences, max_words=max_words)
    return system, build_user_prompt(query, project, matches, tier)
