"""
Fallback Synthesizer
====================

Deterministic, network-free question generation used whenever the LLM path
fails. Builds a full GenerationResult from regex entities in the documents:

1. Up to 3 questions per entity class (summaries, names, dates, amounts,
   locations, quotes), each quoting the value
2. Fixed-topic questions: document gaps, cross-document consistency
   (2+ documents), prior testimony comparison (transcript on file)
3. The profile's standard questions
4. Round-robin "your involvement in <document>" padding up to 10

Every question and follow-up addresses the subject in the second person.
"""

import logging
from typing import Callable, List, Tuple

from .extractor import Entity, ExtractedEntities, extract_entities
from .profiles import PrepProfile
from .schemas import (
    Analysis,
    Contradiction,
    ContradictionSource,
    Difficulty,
    Document,
    DocumentCategory,
    Gap,
    GenerationResult,
    Priority,
    Question,
    QuestionCategory,
    Severity,
    TimelineEvent,
)
from .validator import MAX_QUESTIONS

logger = logging.getLogger(__name__)

MIN_FALLBACK_QUESTIONS = 10
MAX_QUESTIONS_PER_CLASS = 3
MAX_ANALYSIS_EXHIBITS = 3

BASE_THEMES = ["Timeline of Events", "Document Authentication", "Credibility", "Communications"]


# =============================================================================
# Entity question templates
# =============================================================================

def _summary_question(entity: Entity, label: str) -> Question:
    return Question(
        question=f'{entity.source} states: "{entity.value}" Are you familiar with this account, and do you agree with it?',
        topic="Document Review",
        category=QuestionCategory.FOUNDATION,
        priority=Priority.HIGH,
        difficulty=Difficulty.MEDIUM,
        document_reference=entity.source,
        rationale=f"Locks in the {label}'s position on the core account in {entity.source}.",
        follow_up_questions=[
            f"When did you first read {entity.source}?",
            "Is there anything in that account you believe is inaccurate?",
            "Who else have you discussed this document with?",
        ],
    )


def _name_question(entity: Entity, label: str) -> Question:
    name = entity.value
    return Question(
        question=f"{name} is mentioned in {entity.source}. What is your relationship with {name}?",
        topic="Relationships",
        category=QuestionCategory.FOUNDATION,
        priority=Priority.MEDIUM,
        difficulty=Difficulty.MEDIUM,
        document_reference=entity.source,
        rationale=f"Establishes how the {label} knows {name} and exposes possible bias.",
        follow_up_questions=[
            f"How long have you known {name}?",
            f"When did you last speak with {name} about this matter?",
            f"What has {name} told you about these events?",
        ],
    )


def _date_question(entity: Entity, label: str) -> Question:
    date = entity.value
    return Question(
        question=f"What do you recall about the events of {date}, as referenced in {entity.source}?",
        topic="Timeline of Events",
        category=QuestionCategory.TIMELINE,
        priority=Priority.MEDIUM,
        difficulty=Difficulty.MEDIUM,
        document_reference=entity.source,
        rationale=f"Pins the {label} to a specific point on the timeline.",
        follow_up_questions=[
            f"Where were you on {date}?",
            "Who else was with you at that time?",
            "What records do you have of that day?",
        ],
    )


def _amount_question(entity: Entity, label: str) -> Question:
    amount = entity.value
    return Question(
        question=f"{entity.source} references an amount of {amount}. What do you know about that amount?",
        topic="Financial Matters",
        category=QuestionCategory.GAP,
        priority=Priority.HIGH,
        difficulty=Difficulty.HARD,
        document_reference=entity.source,
        rationale=f"Financial details test the {label}'s knowledge and any interest in the outcome.",
        follow_up_questions=[
            f"Did you receive, pay or authorize any part of {amount}?",
            "What documents do you have that show how that amount was calculated?",
            "Who else have you discussed that payment with?",
        ],
    )


def _location_question(entity: Entity, label: str) -> Question:
    place = entity.value
    return Question(
        question=f"{entity.source} mentions {place}. Were you present at {place} during the events described?",
        topic="Locations",
        category=QuestionCategory.FOUNDATION,
        priority=Priority.MEDIUM,
        difficulty=Difficulty.EASY,
        document_reference=entity.source,
        rationale=f"Tests whether the {label} has firsthand knowledge of what happened at {place}.",
        follow_up_questions=[
            f"When were you last at {place}?",
            "Who was with you there?",
        ],
    )


def _quote_question(entity: Entity, label: str) -> Question:
    return Question(
        question=f'{entity.source} contains the statement "{entity.value}". Do you agree with that statement?',
        topic="Prior Statements",
        category=QuestionCategory.IMPEACHMENT,
        priority=Priority.HIGH,
        difficulty=Difficulty.HARD,
        document_reference=entity.source,
        rationale=f"Commits the {label} to a position on a recorded statement for later impeachment.",
        follow_up_questions=[
            "When did you first learn of that statement?",
            "If you disagree, what do you believe actually happened?",
            "Have you ever made a similar statement yourself?",
        ],
    )


EntityTemplate = Callable[[Entity, str], Question]

# (ExtractedEntities attribute, template) in question order
ENTITY_TEMPLATES: List[Tuple[str, EntityTemplate]] = [
    ("summaries", _summary_question),
    ("names", _name_question),
    ("dates", _date_question),
    ("amounts", _amount_question),
    ("locations", _location_question),
    ("quotes", _quote_question),
]


# =============================================================================
# Fixed-topic questions
# =============================================================================

def _document_gap_question(documents: List[Document]) -> Question:
    return Question(
        question="Is there any information relevant to this case that is not contained in the documents you have reviewed?",
        topic="Document Discovery",
        category=QuestionCategory.GAP,
        priority=Priority.HIGH,
        difficulty=Difficulty.HARD,
        document_reference=", ".join(doc.name for doc in documents),
        rationale="Identifies missing evidence and undocumented knowledge.",
        follow_up_questions=[
            "Why was that information not documented, in your view?",
            "Are there any documents you created that have not been produced?",
            "Who else do you know that has that information?",
        ],
    )


def _consistency_question(first: Document, second: Document) -> Question:
    return Question(
        question=f"{first.name} and {second.name} both describe these events. How do you explain any differences between those accounts?",
        topic="Credibility",
        category=QuestionCategory.CONTRADICTION,
        priority=Priority.HIGH,
        difficulty=Difficulty.HARD,
        document_reference=f"{first.name}, {second.name}",
        rationale="Surfaces inconsistencies across documents before they are used for impeachment.",
        follow_up_questions=[
            "Which version do you believe is accurate?",
            "When did you first notice the differences?",
            "Did you provide information for either document?",
        ],
    )


def _prior_testimony_question(document: Document) -> Question:
    return Question(
        question=f"Compare your testimony today with the prior testimony in {document.name}. Is there anything in it you now believe was inaccurate?",
        topic="Prior Statements",
        category=QuestionCategory.IMPEACHMENT,
        priority=Priority.HIGH,
        difficulty=Difficulty.HARD,
        document_reference=document.name,
        rationale="Opens the door to impeachment with prior inconsistent statements.",
        follow_up_questions=[
            "Why did you not correct it earlier?",
            "What other statements might you need to revise?",
        ],
    )


PADDING_TEMPLATES = [
    "Please explain your involvement in the matters described in {doc}.",
    "How did you first come to learn about the contents of {doc}?",
    "Did you have any role in preparing {doc}?",
    "Is everything in {doc} consistent with your own recollection?",
    "Who else do you know that has knowledge of the events in {doc}?",
]


def _padding_question(index: int, documents: List[Document]) -> Question:
    doc = documents[index % len(documents)]
    template = PADDING_TEMPLATES[index % len(PADDING_TEMPLATES)]
    return Question(
        question=template.format(doc=doc.name),
        topic="Document Review",
        category=QuestionCategory.FOUNDATION,
        priority=Priority.MEDIUM,
        difficulty=Difficulty.MEDIUM,
        document_reference=doc.name,
        rationale="Establishes the basis of knowledge for each document.",
        follow_up_questions=[
            "What was your role at that time?",
            "Who else was involved with you at that point?",
        ],
    )


# =============================================================================
# Gaps, contradictions, analysis
# =============================================================================

def _transcripts(documents: List[Document]) -> List[Document]:
    return [
        doc for doc in documents
        if doc.category in (DocumentCategory.TRANSCRIPT, DocumentCategory.PRIOR_TESTIMONY)
    ]


def _build_gaps(documents: List[Document], entities: ExtractedEntities, label: str) -> List[Gap]:
    doc_names = [doc.name for doc in documents]
    transcript_names = [doc.name for doc in _transcripts(documents)]

    people = [e.value for e in entities.names[:MAX_QUESTIONS_PER_CLASS]]
    people_refs = sorted({e.source for e in entities.names}) or transcript_names or doc_names[:1]
    people_text = f" ({', '.join(people)})" if people else ""

    dates = [e.value for e in entities.dates[:MAX_QUESTIONS_PER_CLASS]]
    date_refs = sorted({e.source for e in entities.dates}) or doc_names[:2]
    date_text = f" around {', '.join(dates)}" if dates else ""

    return [
        Gap(
            description=f"The {label}'s relationship with people named in the documents{people_text} and presence at key events is unclear",
            document_references=people_refs,
            severity=Severity.SIGNIFICANT,
            suggested_questions=[
                "Who else was present during these events?",
                "Did anyone else witness what you described?",
                "Have you spoken with other witnesses about this?",
            ],
        ),
        Gap(
            description=f"Timeline details need clarification: specific dates and times of key events{date_text}",
            document_references=date_refs,
            severity=Severity.MODERATE,
            suggested_questions=[
                "Can you provide the specific date when this occurred?",
                "What time of day did this happen?",
                "How long did this event last?",
            ],
        ),
    ]


def _build_contradictions(documents: List[Document]) -> List[Contradiction]:
    if len(documents) < 2:
        return []
    first, second = documents[0], documents[1]
    return [
        Contradiction(
            description="Potential inconsistency in account details across documents",
            source1=ContradictionSource(document=first.name, excerpt="Account provided in first document", page="Various"),
            source2=ContradictionSource(document=second.name, excerpt="Account provided in second document", page="Various"),
            severity=Severity.MODERATE,
            suggested_questions=[
                "Can you explain the difference between these two accounts?",
                "Which version do you believe is accurate?",
                "When did you first realize there was a discrepancy?",
            ],
        )
    ]


def _build_analysis(documents: List[Document], entities: ExtractedEntities, subject_name: str) -> Analysis:
    themes = list(BASE_THEMES)
    if entities.amounts:
        themes.append("Financial Matters")
    if _transcripts(documents):
        themes.append("Prior Statements")

    exhibits = [doc.name for doc in documents if doc.category == DocumentCategory.EXHIBIT]

    return Analysis(
        key_themes=themes,
        timeline_events=[
            TimelineEvent(date=e.value, event=f"Event referenced in {e.source}", source=e.source)
            for e in entities.dates
        ],
        witnesses=[subject_name] + [e.value for e in entities.names],
        key_exhibits=exhibits or [doc.name for doc in documents[:MAX_ANALYSIS_EXHIBITS]],
    )


# =============================================================================
# Entry point
# =============================================================================

def entity_questions(entities: ExtractedEntities, label: str) -> List[Question]:
    questions: List[Question] = []
    for attr, template in ENTITY_TEMPLATES:
        for entity in getattr(entities, attr)[:MAX_QUESTIONS_PER_CLASS]:
            questions.append(template(entity, label))
    return questions


def synthesize_fallback(
    documents: List[Document],
    subject_name: str,
    case_name: str,
    profile: PrepProfile,
) -> GenerationResult:
    """
    Build a complete result from document text alone.

    Never returns fewer than MIN_FALLBACK_QUESTIONS questions when at least
    one document is given, nor more than MAX_QUESTIONS.
    """
    documents = list(documents)
    label = profile.subject_label
    entities = extract_entities(documents, subject_name)

    fixed: List[Question] = []
    if documents:
        fixed.append(_document_gap_question(documents))
    if len(documents) >= 2:
        fixed.append(_consistency_question(documents[0], documents[1]))
    transcripts = _transcripts(documents)
    if transcripts:
        fixed.append(_prior_testimony_question(transcripts[0]))

    standard = profile.standard_questions()
    reserved = len(fixed) + len(standard)

    extracted = entity_questions(entities, label)[:max(MAX_QUESTIONS - reserved, 0)]
    questions = extracted + fixed

    padding = 0
    while documents and len(questions) + len(standard) < MIN_FALLBACK_QUESTIONS:
        questions.append(_padding_question(padding, documents))
        padding += 1

    questions = (questions + standard)[:MAX_QUESTIONS]

    logger.info(
        f"Fallback synthesized {len(questions)} questions for case '{case_name}' "
        f"({len(extracted)} from entities, {padding} padding)"
    )

    return GenerationResult(
        questions=questions,
        gaps=_build_gaps(documents, entities, label),
        contradictions=_build_contradictions(documents),
        analysis=_build_analysis(documents, entities, subject_name),
    )
