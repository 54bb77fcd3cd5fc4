"""
routegraph.prompts
------------------
Prompt templates, keyed by name.

• Placeholders use *single braces* (e.g. {STATE}); literal JSON braces are doubled.
• Values are injected with Python’s `str.format(**variables)`.
• Rendering is deterministic: the same variables always give the same text.
"""
from __future__ import annotations

from typing import Dict

# ─────────────────────────── decision formats ──────────────────────────
# quoted verbatim in clarification prompts, so single braces here
ROUTE_FORMAT = (
    '{\n'
    '  "nextNode": "math_executor OR temperature_converter OR summarizer",\n'
    '  "reasoning": "Brief explanation referencing the actual state values"\n'
    '}'
)
MATH_FORMAT = '{"sum": <number or null>, "average": <number or null>}'
CONVERSION_FORMAT = '{"fahrenheit": <number or null>}'
AIT_FORMAT = (
    '{\n'
    '  "method": "getAITTechStack" or "findAITsByComponent" or "renderAITList"'
    ' or "findAITsByField" or "findAITsByMultipleCriteria",\n'
    '  "parameter": "<the parameter value>",\n'
    '  "reasoning": "why you chose this"\n'
    '}'
)
CVE_FORMAT = (
    '{\n'
    '  "method": "queryCVEsByYear" or "queryCVEsByYearAndScore" or "queryCVEsByScore"'
    ' or "getCVEById" or "getCVEStatistics",\n'
    '  "parameters": {"year": <year>, "minBaseScore": <score>, "cveId": "<CVE ID>"},\n'
    '  "reasoning": "Brief explanation of your decision"\n'
    '}'
)

_RAW_JSON_ONLY = (
    "Respond ONLY with the raw JSON object, no markdown formatting, "
    "no code blocks, no additional text."
)

PROMPTS: Dict[str, str] = {
    # ── planner ────────────────────────────────────────────────────────
    "planner": """You are a planning assistant. Analyze the complete workflow state and create a step-by-step execution plan.

=== COMPLETE WORKFLOW STATE ===
{STATE}

Available capabilities:
- Mathematical operations (sum, average)
- Temperature conversion (Celsius to Fahrenheit)
- CVE database queries (vulnerabilities by year, score, CVE ID)
- AIT tech stack queries (applications by technology, framework, language, database)
- Data summarization

Your job is to create a PLAN ONLY - DO NOT perform the actual calculations or queries.
The work is done later by: math_executor, temperature_converter, cve_query, ait_query, summarizer.

Create a clear plan with numbered steps: what operations are needed, what data
is processed, and in which order. Do not write any results.
""",
    # ── router ─────────────────────────────────────────────────────────
    "router": """You are an intelligent workflow router. Analyze the workflow state and decide the NEXT agent to call.

=== USER'S ORIGINAL REQUEST ===
"{QUERY}"

=== CURRENT STATE VALUES ===
sum: {SUM}
average: {AVERAGE}
fahrenheit: {FAHRENHEIT}
currentStep: {CURRENT_STEP}
numbers: {NUMBERS}

=== AVAILABLE AGENTS ===
1. 'math_executor' - Calculates sum and average of numbers
2. 'temperature_converter' - Converts Celsius to Fahrenheit
3. 'summarizer' - Creates final summary and ends workflow

=== DECISION CRITERIA ===
- If math was requested AND sum/average are null → 'math_executor'
- If math is done AND conversion was requested AND fahrenheit is null → 'temperature_converter'
- If ALL requested operations are done → 'summarizer'
Never repeat completed work. Never skip work the user explicitly requested.

Respond with a JSON object containing:
{{
  "nextNode": "math_executor OR temperature_converter OR summarizer",
  "reasoning": "Brief explanation referencing the actual state values"
}}

""" + _RAW_JSON_ONLY + "\n",
    # ── math ───────────────────────────────────────────────────────────
    "math_executor": """You are a mathematical calculation assistant. Perform calculations on the numbers list in the workflow state.

=== COMPLETE WORKFLOW STATE ===
{STATE}

=== YOUR TASK ===
1. Identify the 'numbers' list in the workflow state
2. If valid numbers exist, calculate the sum and the average (sum / count)
3. Return {{"sum": <numeric_value>, "average": <numeric_value>}}
4. If no valid numbers exist or the list is empty, return {{"sum": null, "average": null}}

""" + _RAW_JSON_ONLY + "\n",
    # ── temperature ────────────────────────────────────────────────────
    "temperature_converter": """You are a temperature conversion assistant. Convert the appropriate Celsius temperature in the workflow state to Fahrenheit.

=== COMPLETE WORKFLOW STATE ===
{STATE}

=== YOUR TASK ===
1. Identify the Celsius value to convert (typically the 'average' field)
2. Convert it using F = C × (9/5) + 32
3. Return {{"fahrenheit": <numeric_value>}}
4. If no valid Celsius value exists, return {{"fahrenheit": null}}

""" + _RAW_JSON_ONLY + "\n",
    # ── summarizer ─────────────────────────────────────────────────────
    "summarizer": """You are a summarization assistant. Provide a concise, clear, human-readable summary of the workflow execution.

=== COMPLETE WORKFLOW STATE ===
{STATE}

Directly answer what the user asked for, include ONLY results relevant to the
query, ignore null values, and do not mention technical details such as
"workflow state" or "null values".
""",
    # ── lookups ────────────────────────────────────────────────────────
    "ait_query": """You are an AIT Tech Stack assistant. Analyze the user's query and decide how to query the database.

=== USER'S QUERY ===
"{QUERY}"

=== AVAILABLE TOOLS ===
1. getAITTechStack(aitId) - complete tech stack for one AIT number
2. renderAITList(component) - find AITs using a technology and render them in Markdown (DEFAULT)
3. findAITsByComponent(component) - list AIT ids using a technology (ONLY for counts)
4. findAITsByField(field=value) - AIT ids with a matching component in one category
5. findAITsByMultipleCriteria({{"field": "value", ...}}) - AIT ids matching ANY of the criteria

Searchable fields: languages, frameworks, databases, middlewares, operating_systems, libraries

=== EXAMPLES ===
"Show me AITs with MongoDB" → renderAITList("MongoDB")
"How many AITs use Java?" → findAITsByComponent("Java")
"Give me technologies used by AIT 74563" → getAITTechStack("74563")
"Which AITs run on Oracle databases?" → findAITsByField("databases=Oracle")
"AITs using Java or MongoDB" → findAITsByMultipleCriteria({{"languages": "Java", "databases": "MongoDB"}})

Respond with ONLY this JSON:
{{
  "method": "<tool name>",
  "parameter": "<the parameter value, or the criteria object>",
  "reasoning": "why you chose this"
}}
""",
    "cve_query": """You are a CVE database query assistant. Analyze the user's query and choose the database operation.

=== USER'S CVE QUERY ===
"{QUERY}"

=== AVAILABLE OPERATIONS ===
1. queryCVEsByYearAndScore(year, minBaseScore)
2. queryCVEsByYear(year)
3. queryCVEsByScore(minBaseScore)
4. getCVEById(cveId)
5. getCVEStatistics()

CVSS: Critical 9.0-10.0, High 7.0-8.9, Medium 4.0-6.9, Low 0.1-3.9.
"high severity" means 7.0, "critical" means 9.0.

Respond ONLY with this JSON:
{{
  "method": "<operation name>",
  "parameters": {{"year": <year>, "minBaseScore": <score>, "cveId": "<CVE ID>"}},
  "reasoning": "Brief explanation of your decision"
}}
""",
    # ── fallback layers ────────────────────────────────────────────────
    "clarify": """Your previous response was not valid JSON: "{RESPONSE}"

Please provide your answer again as valid JSON in exactly this format:
{FORMAT}

State reminder:
{STATE}

Respond with ONLY the raw JSON object. Do NOT use markdown code blocks. Do NOT add ```json or ```. Just the JSON object.
""",
    "extract_choice": """You previously gave a response that wasn't valid JSON, but a decision is still needed.

Your previous response was: "{RESPONSE}"

Current workflow state:
{STATE}

Allowed values: {OPTIONS}

Based on your previous response and the context, which value is the decision?
Respond with ONLY ONE WORD - the exact value, nothing else:
""",
    "extract_numbers": """You previously gave a response that wasn't valid JSON, but the values are still needed.

Your previous response was: "{RESPONSE}"

Current workflow state:
{STATE}

Respond with ONLY the numeric value(s) for: {FIELDS}
Separate multiple values with commas, in that order. If a value cannot be
determined, respond with just: null
""",
}


def _substitute(template: str, variables: Dict[str, object] | None) -> str:
    """
    Replace placeholders like {STATE} with their values using str.format.
    Non‑string values are cast to str so you can pass numbers, etc.
    """
    if not variables:
        return template

    safe_vars = {k: str(v) for k, v in variables.items()}
    try:
        return template.format(**safe_vars)
    except KeyError as err:
        missing = err.args[0]
        raise ValueError(f"Prompt expects placeholder {{{missing}}} which "
                         "was not supplied in `variables`.") from None


def get_prompt(name: str, variables: Dict[str, object] | None = None) -> str:
    try:
        template = PROMPTS[name]
    except KeyError:
        raise ValueError(f"Prompt '{name}' not found.") from None
    return _substitute(template, variables)
