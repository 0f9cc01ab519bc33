"""
Prompt templates for triage and routing.

Each analysis has a system message, a user prompt format string and its
sampling settings. Keeping them in one file makes prompt iteration easy;
the ``build_*`` helpers only fill in and truncate the issue text.
"""

from typing import Any, Dict, List, Optional

DESCRIPTION_LIMIT = 1000
SENTIMENT_DESCRIPTION_LIMIT = 1500
ROUTING_DESCRIPTION_LIMIT = 500
SENTIMENT_COMMENT_COUNT = 3

# Sampling settings per analysis: (temperature, max_tokens)
SAMPLING = {
    "categorization": (0.2, 300),
    "priority": (0.2, 300),
    "sentiment": (0.2, 300),
    "urgency": (0.1, 300),
    "components": (0.3, 400),
    "routing": (0.3, 1000),
}


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------

CATEGORIZATION_SYSTEM = """You are an expert at categorizing software development issues.
Analyze the provided issue and categorize it into one of these types:
- bug: Software defects or errors
- feature: New functionality requests
- improvement: Enhancements to existing features
- task: General work items or chores
- support: Help requests or questions
- security: Security-related issues
- performance: Performance optimization issues
- documentation: Documentation updates
- technical-debt: Code quality or refactoring needs

Provide your response as JSON with confidence score."""

CATEGORIZATION_PROMPT = """Analyze this issue for categorization:

**Summary:** {summary}
**Description:** {description}
**Issue Type:** {issue_type}
**Existing Labels:** {labels}

Please categorize this issue and provide your response in JSON format:
{{
  "category": "bug|feature|improvement|task|support|security|performance|documentation|technical-debt",
  "subcategory": "more specific category if applicable",
  "confidence": 0.0-1.0,
  "reasoning": "explanation of categorization",
  "suggested_labels": ["label1", "label2"]
}}"""


# ---------------------------------------------------------------------------
# Priority
# ---------------------------------------------------------------------------

PRIORITY_SYSTEM = """You are an expert at prioritizing software development issues.
Analyze the provided issue and determine its priority level:
- critical: System down, data loss, security breach
- high: Major functionality broken, affects many users
- medium: Important but not blocking, affects some users
- low: Minor issues, nice-to-have improvements

Consider impact, urgency, and business value."""

PRIORITY_PROMPT = """Analyze this issue for priority:

**Summary:** {summary}
**Description:** {description}
**Reporter:** {reporter}
**Environment:** {environment}
**Affected Versions:** {affected_versions}

Consider impact, urgency, and business value. Respond in JSON:
{{
  "priority": "critical|high|medium|low",
  "score": 1-5,
  "confidence": 0.0-1.0,
  "reasoning": "explanation",
  "users_affected": "estimate of affected users",
  "business_impact": "assessment of business impact",
  "complexity": "estimated technical complexity"
}}"""


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------

SENTIMENT_SYSTEM = """You are an expert at analyzing emotional tone and sentiment in support tickets.
Analyze the text for:
- Overall sentiment (positive, neutral, negative)
- Urgency level (low, medium, high, critical)
- Emotional indicators (frustrated, angry, confused, satisfied, etc.)
- Customer escalation risk

Pay special attention to language that indicates customer frustration or urgency."""

SENTIMENT_PROMPT = """Analyze the emotional tone and sentiment in this issue:

**Summary:** {summary}
**Description:** {description}
**Comments:** {comments}

Look for emotional indicators, urgency language, and escalation risk. Respond in JSON:
{{
  "sentiment": "positive|neutral|negative",
  "sentiment_score": -1.0 to 1.0,
  "confidence": 0.0-1.0,
  "emotions": ["frustrated", "angry", "confused", "satisfied"],
  "escalation_risk": "low|medium|high|critical",
  "urgency_indicators": ["keywords or phrases indicating urgency"],
  "angry_language": boolean,
  "urgent_language": boolean,
  "complimentary_language": boolean,
  "confused_language": boolean
}}"""


# ---------------------------------------------------------------------------
# Urgency
# ---------------------------------------------------------------------------

URGENCY_SYSTEM = """You are an expert at assessing urgency in software issues.
Determine urgency level based on:
- Time-sensitivity keywords (ASAP, urgent, critical, blocking)
- Impact on operations (production down, can't work, losing money)
- SLA implications
- Customer-facing vs internal issues

Levels: immediate, high, medium, low"""

URGENCY_PROMPT = """Assess the urgency of this issue:

**Summary:** {summary}
**Description:** {description}
**Issue Type:** {issue_type}

Look for time-sensitive keywords, operational impact, and SLA implications. Respond in JSON:
{{
  "urgency": "immediate|high|medium|low",
  "urgency_score": 1-5,
  "confidence": 0.0-1.0,
  "reasoning": "explanation",
  "expected_timeframe": "when this should be addressed",
  "business_justification": "business reason for urgency",
  "urgency_keywords": ["keywords indicating urgency"]
}}"""


# ---------------------------------------------------------------------------
# Components and labels
# ---------------------------------------------------------------------------

COMPONENTS_SYSTEM = """You are an expert at categorizing software issues into appropriate components.
Based on the issue content and available project components, suggest the most relevant ones.
Also suggest additional labels that would be helpful for organization and filtering."""

COMPONENTS_PROMPT = """Suggest components and labels for this issue:

**Summary:** {summary}
**Description:** {description}
**Issue Type:** {issue_type}
**Existing Labels:** {labels}

**Available Project Components:**
{project_components}

Suggest the most relevant components and additional helpful labels. Respond in JSON:
{{
  "components": ["component1", "component2"],
  "labels": ["label1", "label2", "label3"],
  "confidence": 0.0-1.0,
  "reasoning": "explanation of suggestions"
}}"""


# ---------------------------------------------------------------------------
# Routing (assignee + priority)
# ---------------------------------------------------------------------------

ROUTING_SYSTEM = (
    "You are an expert project management AI assistant specializing in intelligent "
    "task routing and prioritization for software development teams. Analyze the "
    "provided issue data and suggest the best assignee and priority level with clear reasoning."
)

ROUTING_PROMPT = """Analyze this Jira issue and provide intelligent routing suggestions:

**ISSUE DETAILS:**
- Key: {key}
- Summary: {summary}
- Description: {description}
- Type: {issue_type}
- Current Priority: {priority}
- Components: {components}
- Labels: {labels}
- Project: {project_name} ({project_key})

{triage_section}**TEAM MEMBERS:**
{team_members}

**SIMILAR ISSUES HISTORY:**
{similar_issues}

Please respond with a JSON object containing:
{{
  "assignee": {{
    "accountId": "recommended user account ID",
    "displayName": "user display name",
    "confidence": 0.85,
    "reason": "detailed explanation of why this person is recommended"
  }},
  "priority": {{
    "name": "High|Medium|Low|Lowest|Highest",
    "confidence": 0.90,
    "reason": "detailed explanation of why this priority level is recommended"
  }}
}}

Consider these factors:
1. Component expertise based on similar issues
2. Issue complexity and urgency indicators
3. Workload distribution (if you have that data)
4. Past assignment patterns
5. Issue type and description content analysis
{triage_factors}{warnings}
Provide confidence scores between 0.0 and 1.0 and detailed reasoning."""

ROUTING_TRIAGE_SECTION = """**AI TRIAGE ANALYSIS:**
- Category: {category}
- AI Priority: {priority}
- Urgency: {urgency}
- Sentiment: {tone} (Escalation Risk: {escalation_risk})
- Language Flags: {language_flags}
- AI Confidence: {confidence}%
- Recommendations: {recommendations}

"""

ROUTING_TRIAGE_FACTORS = """6. AI Triage Analysis (especially priority, urgency, and sentiment)
7. Customer escalation risk and emotional tone
8. Specialized skills needed (e.g., security issues, performance problems)
"""

HIGH_ESCALATION_WARNING = (
    "IMPORTANT: This issue has HIGH escalation risk - consider assigning to senior "
    "team members who excel at customer communication."
)
ANGRY_LANGUAGE_WARNING = (
    "IMPORTANT: Customer appears frustrated - prioritize team members with strong "
    "communication skills."
)
IMMEDIATE_URGENCY_WARNING = (
    "URGENT: This issue requires immediate attention - assign to available senior team member."
)


def _join(values: List[str]) -> str:
    return ", ".join(values) or "None"


def build_categorization_prompt(content: Dict[str, Any]) -> str:
    return CATEGORIZATION_PROMPT.format(
        summary=content["summary"],
        description=content["description"][:DESCRIPTION_LIMIT],
        issue_type=content["issue_type"],
        labels=_join(content["labels"]),
    )


def build_priority_prompt(content: Dict[str, Any]) -> str:
    return PRIORITY_PROMPT.format(
        summary=content["summary"],
        description=content["description"][:DESCRIPTION_LIMIT],
        reporter=content["reporter"],
        environment=content["environment"] or "Not specified",
        affected_versions=_join(content["affected_versions"]),
    )


def build_sentiment_prompt(content: Dict[str, Any]) -> str:
    comments = [c.get("body", "") for c in content["comments"][:SENTIMENT_COMMENT_COUNT]]
    return SENTIMENT_PROMPT.format(
        summary=content["summary"],
        description=content["description"][:SENTIMENT_DESCRIPTION_LIMIT],
        comments="\n---\n".join(comments),
    )


def build_urgency_prompt(content: Dict[str, Any]) -> str:
    return URGENCY_PROMPT.format(
        summary=content["summary"],
        description=content["description"][:DESCRIPTION_LIMIT],
        issue_type=content["issue_type"],
    )


def build_components_prompt(content: Dict[str, Any], project_components: List[Dict[str, Any]]) -> str:
    component_lines = "\n".join(
        f"- {c.get('name')}: {c.get('description') or 'No description'}"
        for c in project_components
    )
    return COMPONENTS_PROMPT.format(
        summary=content["summary"],
        description=content["description"][:DESCRIPTION_LIMIT],
        issue_type=content["issue_type"],
        labels=_join(content["labels"]),
        project_components=component_lines or "(No components defined)",
    )


def build_routing_prompt(context: Dict[str, Any]) -> str:
    """
    Fill the routing prompt from a context produced by
    ``context_builder.build_routing_context``.

    The description is cut at 500 characters with a trailing "..." when longer.
    """
    issue = context["issue"]
    triage: Optional[Dict[str, Any]] = context.get("triage")

    description = issue["description"]
    if len(description) > ROUTING_DESCRIPTION_LIMIT:
        description = description[:ROUTING_DESCRIPTION_LIMIT] + "..."

    team_members = "\n".join(
        f"{i}. {user['displayName']} ({user['accountId']})"
        for i, user in enumerate(context["team"]["assignableUsers"], 1)
    )
    similar_issues = "\n".join(
        f"{i}. {similar['key']} - Assigned to: {similar['assignee']}, "
        f"Components: {', '.join(similar['components'])}, Resolution: {similar['resolution']}"
        for i, similar in enumerate(context["history"]["similarIssues"], 1)
    )

    triage_section = ""
    triage_factors = ""
    warnings: List[str] = []
    if triage:
        sentiment = triage["sentiment"]
        flags = [name for name, on in (
            ("Angry", sentiment.get("hasAngryLanguage")),
            ("Urgent", sentiment.get("hasUrgentLanguage")),
        ) if on]
        triage_section = ROUTING_TRIAGE_SECTION.format(
            category=triage["category"],
            priority=triage["priority"],
            urgency=triage["urgency"],
            tone=sentiment["tone"],
            escalation_risk=sentiment["escalationRisk"],
            language_flags=" ".join(flags) or "None",
            confidence=round(triage["confidence"] * 100),
            recommendations="; ".join(r["message"] for r in triage.get("recommendations", [])) or "None",
        )
        triage_factors = ROUTING_TRIAGE_FACTORS
        if sentiment["escalationRisk"] == "high":
            warnings.append(HIGH_ESCALATION_WARNING)
        if sentiment.get("hasAngryLanguage"):
            warnings.append(ANGRY_LANGUAGE_WARNING)
        if triage["urgency"] == "immediate":
            warnings.append(IMMEDIATE_URGENCY_WARNING)

    return ROUTING_PROMPT.format(
        key=issue["key"],
        summary=issue["summary"],
        description=description,
        issue_type=issue["issueType"],
        priority=issue["priority"],
        components=_join(issue["components"]),
        labels=_join(issue["labels"]),
        project_name=issue["project"]["name"],
        project_key=issue["project"]["key"],
        triage_section=triage_section,
        team_members=team_members or "(No assignable users)",
        similar_issues=similar_issues or "(No similar resolved issues)",
        triage_factors=triage_factors,
        warnings="\n" + "\n".join(warnings) + "\n" if warnings else "",
    )
