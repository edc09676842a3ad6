"""
Prompt Builder
==============

Deterministic prompt construction for single-document analysis and
two-document comparison. Pure functions, no I/O.

Each prompt carries:
- task framing (varies by analysis type)
- the verbatim document text between delimiter markers
- the output JSON schema with enumerated severity/type values
- an instruction to answer with the JSON object only
"""

from typing import Optional

from .schemas import AnalysisType

DEFAULT_LABEL_1 = "Document 1"
DEFAULT_LABEL_2 = "Document 2"

DOC_START = '"""'
DOC_END = '"""'
COMPARE_START = "---BEGIN {label}---"
COMPARE_END = "---END {label}---"


OUTPUT_SCHEMA = """\
Return your analysis in the following JSON format:
{
  "contradictions": [
    {
      "id": "unique_id",
      "statement1": "first contradictory statement",
      "statement2": "second contradictory statement",
      "location1": "approximate location/context of first statement",
      "location2": "approximate location/context of second statement",
      "severity": "low|medium|high",
      "explanation": "detailed explanation of the contradiction",
      "confidence": 0.85
    }
  ],
  "inconsistencies": [
    {
      "id": "unique_id",
      "issue": "description of the inconsistency",
      "location": "approximate location/context",
      "suggestion": "suggested correction or clarification",
      "type": "factual|logical|temporal|numerical",
      "severity": "low|medium|high"
    }
  ],
  "summary": "Overall summary of findings",
  "confidence_score": 0.85
}"""


GUIDELINES = """\
Focus on:
- High-confidence contradictions and inconsistencies
- Provide specific quotes from the text
- Explain why each item is problematic
- Rate severity based on impact on document credibility
- Only include findings you are confident about (>70% confidence)

Respond ONLY with valid JSON, no additional text or formatting."""


_TASK_FRAMING = {
    AnalysisType.CONTRADICTION: """\
Please analyze this document for:
1. Direct contradictions (statements that directly oppose each other)
2. Logical inconsistencies (statements that don't align logically)
3. Factual inconsistencies (potential factual errors or conflicting facts)
4. Temporal inconsistencies (timeline conflicts)
5. Numerical inconsistencies (conflicting numbers or calculations)""",

    AnalysisType.CONSISTENCY: """\
Please review this document for internal consistency:
1. Terminology, names and definitions used differently in different places
2. Logical inconsistencies (conclusions that do not follow from earlier statements)
3. Temporal inconsistencies (dates, durations and sequences that do not line up)
4. Numerical inconsistencies (totals, percentages or figures that disagree)
5. Direct contradictions between statements""",

    AnalysisType.FACT_CHECK: """\
Please fact-check this document:
1. Factual claims that conflict with each other or with widely known facts
2. Numerical claims and calculations that do not add up
3. Dates and timelines that cannot all be true
4. Direct contradictions between statements
Classify each issue with the closest inconsistency type.""",
}


def build_prompt(text: str, analysis_type: AnalysisType = AnalysisType.CONTRADICTION) -> str:
    """
    Build the single-document analysis prompt.

    Args:
        text: Extracted document text (embedded verbatim)
        analysis_type: contradiction | consistency | fact_check

    Returns:
        Prompt string
    """
    analysis_type = AnalysisType(analysis_type)
    framing = _TASK_FRAMING.get(analysis_type, _TASK_FRAMING[AnalysisType.CONTRADICTION])

    return "\n\n".join([
        "You are an expert document analyzer specializing in detecting contradictions, "
        "inconsistencies, and logical errors in text documents.",
        "Analyze the following document and provide a detailed analysis in JSON format.",
        f"Document Text:\n{DOC_START}\n{text}\n{DOC_END}",
        framing,
        OUTPUT_SCHEMA,
        GUIDELINES,
    ]) + "\n"


def build_comparison_prompt(
    text1: str,
    text2: str,
    label1: Optional[str] = None,
    label2: Optional[str] = None,
) -> str:
    """
    Build the cross-document comparison prompt.

    Labels default to "Document 1" / "Document 2". For a contradiction that
    spans both documents, statement1/location1 refer to the first document
    and statement2/location2 to the second.
    """
    label1 = label1 or DEFAULT_LABEL_1
    label2 = label2 or DEFAULT_LABEL_2

    framing = f"""\
Compare the two documents above and find places where they disagree:
1. Statements in "{label1}" that directly contradict statements in "{label2}"
2. Conflicting facts, names, or obligations between the two documents
3. Conflicting dates, deadlines, or sequences of events (temporal)
4. Conflicting amounts, quantities, or calculations (numerical)
For each contradiction, statement1/location1 must come from "{label1}" and
statement2/location2 from "{label2}". Put the document label in each location.
Use "inconsistencies" for cross-document issues that are not a direct pair of
conflicting statements."""

    return "\n\n".join([
        "You are an expert document analyzer specializing in detecting contradictions "
        "between related documents.",
        "Two documents follow. Analyze them against each other and provide a detailed "
        "analysis in JSON format.",
        f"{COMPARE_START.format(label=label1)}\n{text1}\n{COMPARE_END.format(label=label1)}",
        f"{COMPARE_START.format(label=label2)}\n{text2}\n{COMPARE_END.format(label=label2)}",
        framing,
        OUTPUT_SCHEMA,
        GUIDELINES,
    ]) + "\n"
