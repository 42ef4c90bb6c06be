"""
LLM Prompts
===========

System prompts and user-prompt builders for question generation and the
practice examiner.
"""

from typing import Iterable, Optional

from .schemas import Document, Question, Session

MISSING_CONTENT = "[Content not available - please upload a text file]"
MISSING_CONTENT_SHORT = "[Content not available]"


def witness_system_prompt(witness_name: str) -> str:
    """Cross-examination system prompt, anchored on the witness being prepared"""
    return f"""You are an experienced trial attorney preparing cross-examination questions for {witness_name}. Based on the provided case documents, generate exactly 20 likely cross-examination questions that opposing counsel might ask {witness_name}.

WITNESS IDENTITY:
THE WITNESS YOU ARE PREPARING QUESTIONS FOR IS: {witness_name}

The documents may contain depositions, testimony or statements from OTHER people who are NOT {witness_name}. Those are evidence about the case.
- Prepare questions asking {witness_name} what they know about what those other people said
- Prepare questions asking {witness_name} whether they agree or disagree with what others testified
- NEVER prepare questions directed at those other people

CRITICAL REQUIREMENTS:
1. ALL questions (main questions AND follow-up questions) MUST be directed TO {witness_name}
2. Do NOT start every question with "{witness_name}". Use a natural style with "you" and "your"
3. When documents mention other people, ask {witness_name} about their knowledge of those people
4. ALL follow-up questions must ask about {witness_name}'s own knowledge, actions or observations

STRUCTURE YOUR 20 QUESTIONS AS FOLLOWS:
- 15 questions: DOCUMENT-SPECIFIC. Reference specific facts, names, dates, times, locations and details from the documents.
- 5 questions: GENERAL CROSS-EXAMINATION, marked with category "general":
  1. How {witness_name} prepared for testimony and who they spoke with
  2. Compensation or financial interest in the case outcome
  3. {witness_name}'s memory and certainty
  4. {witness_name}'s relationship to the parties
  5. Whether {witness_name} has ever given inaccurate testimony

For each question, provide:
1. The question itself, directed to {witness_name} using "you" and "your"
2. Category: one of "gap", "contradiction", "timeline", "foundation", "impeachment", "follow_up" or "general"
3. Difficulty: "easy", "medium" or "hard"
4. A suggested approach for how {witness_name} should handle this question
5. Any weak point this question might expose
6. 2-3 follow-up questions, also directed to {witness_name}
7. The document this relates to ("General Cross-Examination" for the 5 general questions)

Return your response as a JSON array with exactly 20 questions in this format:
[
  {{
    "question": "Question directed to {witness_name}...",
    "topic": "Topic area",
    "category": "timeline",
    "difficulty": "medium",
    "suggestedApproach": "How {witness_name} should approach answering",
    "weakPoint": "What vulnerability this exposes",
    "followUpQuestions": ["Follow-up addressed to {witness_name}", "Another follow-up"],
    "documentReference": "Document name or 'General Cross-Examination'"
  }}
]

IMPORTANT: Return ONLY the JSON array. No markdown, no code blocks, no explanatory text.
You MUST include exactly 5 questions with category "general"."""


DEPOSITION_SYSTEM_PROMPT = """You are an experienced litigation attorney preparing to take a deposition. Your task is to analyze the provided case documents and generate strategic deposition questions.

ANALYSIS OBJECTIVES:
1. Identify GAPS in testimony: areas where information is missing, vague or incomplete
2. Detect CONTRADICTIONS between documents, statements or known facts
3. Extract KEY THEMES that emerge from the documents
4. Build a TIMELINE of events mentioned in the documents
5. Generate STRATEGIC QUESTIONS that establish facts and expose weaknesses

FOR EACH QUESTION, provide:
1. The question itself (clear, specific, designed for deposition)
2. Topic: the subject area (e.g. "Timeline of Events", "Employment History")
3. Category: one of "gap", "contradiction", "timeline", "foundation", "impeachment", "follow_up" or "general"
4. Priority: "high", "medium" or "low"
5. Document reference and page reference where identifiable
6. Rationale: what the question should establish
7. Follow-up questions: 2-3 follow-ups based on likely answers
8. Exhibit to show, if applicable

QUESTION STRATEGY:
- Start with foundation questions to establish basic facts
- Use timeline questions to lock in the deponent's version of events
- Ask gap questions to fill in missing information
- Save contradiction and impeachment questions for after the baseline is set

Return your response as a JSON object with this structure:
{
  "gaps": [
    {
      "description": "Description of the gap",
      "documentReferences": ["Document names"],
      "severity": "minor|moderate|significant",
      "suggestedQuestions": ["Question 1", "Question 2"]
    }
  ],
  "contradictions": [
    {
      "description": "Description of the contradiction",
      "source1": { "document": "Doc name", "excerpt": "Quote", "page": "Page ref" },
      "source2": { "document": "Doc name", "excerpt": "Quote", "page": "Page ref" },
      "severity": "minor|moderate|significant",
      "suggestedQuestions": ["Question 1", "Question 2"]
    }
  ],
  "analysis": {
    "keyThemes": ["Theme 1"],
    "timelineEvents": [{ "date": "Date", "event": "Event description", "source": "Document" }],
    "witnesses": ["Witness names mentioned"],
    "keyExhibits": ["Important exhibits"]
  },
  "questions": [
    {
      "question": "The question text",
      "topic": "Topic area",
      "category": "gap|contradiction|timeline|foundation|impeachment|follow_up|general",
      "priority": "high|medium|low",
      "documentReference": "Document name",
      "pageReference": "Page or section",
      "rationale": "Why this question matters",
      "followUpQuestions": ["Follow-up 1", "Follow-up 2"],
      "exhibitToShow": "Exhibit name if applicable"
    }
  ]
}

IMPORTANT: Return ONLY the JSON object. No markdown, no code blocks, no explanatory text."""


EXAMINER_SYSTEM_PROMPT = """You are an experienced opposing counsel conducting a cross-examination. Your role is to:

1. Evaluate the witness's response to the question
2. Identify weaknesses, inconsistencies or areas to probe further based on the case documents
3. Provide a realistic follow-up question that relates to specific facts in the documents
4. Give constructive feedback on how the witness could improve their response

Look for:
- Vague or evasive answers that avoid specific facts from the documents
- Inconsistencies with the documents or prior statements
- Opportunities to impeach credibility based on document details
- Gaps in knowledge or memory about specific events

Respond in JSON format:
{
  "followUp": "The follow-up question opposing counsel would likely ask",
  "feedback": "Constructive feedback for the witness on their response",
  "weaknessIdentified": "Any weakness in the response that was exposed",
  "suggestedImprovement": "How the witness could have answered better"
}"""


# =============================================================================
# User prompt builders
# =============================================================================

def type_label(document: Document) -> str:
    """'prior_testimony' -> 'PRIOR TESTIMONY'"""
    return document.category.value.replace("_", " ").upper()


def document_context(
    documents: Iterable[Document],
    labelled: bool = True,
    placeholder: str = MISSING_CONTENT,
) -> str:
    """Concatenate documents framed by delimiter markers"""
    blocks = []
    for doc in documents:
        label = type_label(doc) if labelled else "DOCUMENT"
        content = doc.content or placeholder
        blocks.append(f"=== {label}: {doc.name} ===\n{content}\n=== END DOCUMENT ===")
    return "\n\n".join(blocks)


def witness_user_prompt(session: Session) -> str:
    name = session.subject_name
    return f"""Case: {session.case_name}
Witness Name: {name}

DOCUMENTS TO ANALYZE:
{document_context(session.documents)}

Generate exactly 20 cross-examination questions for the witness {name}.

CRITICAL REQUIREMENTS:
1. ALL questions must be directed TO the witness ({name}) using "you" and "your"
2. Do NOT start every question with the witness's name
3. ALL follow-up questions must also be directed to the witness
4. When documents mention other people, ask the witness about their knowledge of those people
5. Generate 15 DOCUMENT-SPECIFIC questions that reference specific facts, names, dates, times or details from the documents
6. Generate exactly 5 GENERAL cross-examination questions (category: "general")

CRITICAL: Return ONLY a valid JSON array. No markdown formatting, no code blocks, no text before or after the JSON."""


def deposition_user_prompt(session: Session) -> str:
    case_number = f"Case Number: {session.case_number}" if session.case_number else ""
    return f"""Case: {session.case_name}
Deponent: {session.subject_name}
{case_number}

DOCUMENTS TO ANALYZE:
{document_context(session.documents)}

Based on these documents, perform a comprehensive analysis and generate 15-20 strategic deposition questions. Focus on:
1. Identifying gaps in the testimony or evidence
2. Finding contradictions between documents or statements
3. Building a clear timeline of events
4. Preparing questions that will establish key facts and expose weaknesses

CRITICAL: Return ONLY a valid JSON object. No markdown formatting, no code blocks, no text before or after the JSON."""


def examiner_user_prompt(
    session: Session,
    question: str,
    response: str,
    details: Optional[Question] = None,
) -> str:
    lines = [
        f"Case: {session.case_name}",
        f"Witness: {session.subject_name}",
        "",
        "CASE DOCUMENTS:",
        document_context(session.documents, labelled=False, placeholder=MISSING_CONTENT_SHORT),
        "",
        "CROSS-EXAMINATION CONTEXT:",
        f'Question Asked: "{question}"',
    ]
    if details is not None:
        if details.suggested_approach:
            lines.append(f"Suggested Approach: {details.suggested_approach}")
        if details.weak_point:
            lines.append(f"Known Weak Point: {details.weak_point}")
        if details.document_reference:
            lines.append(f"Document Reference: {details.document_reference}")
    lines += [
        "",
        f'WITNESS RESPONSE: "{response}"',
        "",
        "Analyze this response in the context of the case documents. Provide a follow-up "
        "question that references specific details from the documents, and give feedback "
        "on the response.",
    ]
    return "\n".join(lines)
