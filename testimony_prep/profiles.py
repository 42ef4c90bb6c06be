"""
Prep Profiles
=============

The witness tool and the deposition tool run the same generation engine.
A PrepProfile carries everything that differs between them: how the subject
is addressed, which prompts and model are used, the expected JSON shape and
the standard questions every question set must contain.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .config import Settings
from .parser import ParseMode
from .prompts import (
    DEPOSITION_SYSTEM_PROMPT,
    deposition_user_prompt,
    witness_system_prompt,
    witness_user_prompt,
)
from .schemas import Question, Session, SessionKind, SessionStatus


GENERAL_REFERENCE = "General Cross-Examination"

# Standard cross-examination questions opposing counsel asks any witness
WITNESS_STANDARD_QUESTIONS: List[Dict[str, Any]] = [
    {
        "question": "How did you prepare for your testimony today?",
        "topic": "Preparation",
        "category": "general",
        "priority": "medium",
        "difficulty": "easy",
        "suggested_approach": "Be honest about preparation. It is normal to review documents with counsel.",
        "weak_point": "May suggest coaching",
        "follow_up_questions": [
            "Who did you meet with to prepare?",
            "How many times did you meet with them?",
        ],
    },
    {
        "question": "Are you being compensated in any way for your testimony, or do you have any financial interest in the outcome of this case?",
        "topic": "Bias and Interest",
        "category": "general",
        "priority": "high",
        "difficulty": "easy",
        "suggested_approach": "Answer directly. Expert witnesses are typically compensated; fact witnesses usually are not.",
        "weak_point": "Potential bias",
        "follow_up_questions": [
            "How much are you being paid?",
            "Does your compensation depend on the outcome of this case?",
        ],
    },
    {
        "question": "What is your relationship to the parties in this case?",
        "topic": "Bias and Interest",
        "category": "general",
        "priority": "high",
        "difficulty": "easy",
        "suggested_approach": "Describe relationships factually without editorializing.",
        "weak_point": "Potential bias based on relationships",
        "follow_up_questions": [
            "How long have you known them?",
            "Have you ever had any conflicts with them?",
        ],
    },
    {
        "question": "How would you describe your memory in general? Is there anything about your testimony today that you're not completely certain about?",
        "topic": "Credibility",
        "category": "general",
        "priority": "medium",
        "difficulty": "medium",
        "suggested_approach": "Be honest about your memory. It is okay to acknowledge uncertainty.",
        "weak_point": "Self-assessment of reliability",
        "follow_up_questions": [
            "What specifically are you uncertain about?",
            "Have you ever forgotten important details in the past?",
        ],
    },
    {
        "question": "Have you ever given testimony in any proceeding that was later found to be inaccurate or that you needed to correct?",
        "topic": "Prior Statements",
        "category": "general",
        "priority": "medium",
        "difficulty": "hard",
        "suggested_approach": "Answer honestly. If yes, explain the circumstances.",
        "weak_point": "Prior credibility issues",
        "follow_up_questions": [
            "What were the circumstances when you gave that testimony?",
            "How did you discover that your testimony was inaccurate?",
        ],
    },
]

DEPOSITION_STANDARD_QUESTIONS: List[Dict[str, Any]] = [
    {
        "question": "How did you prepare for this deposition today?",
        "topic": "Preparation",
        "category": "foundation",
        "priority": "high",
        "rationale": "Understand what documents were reviewed and who was consulted.",
        "follow_up_questions": [
            "What documents did you review?",
            "Who did you meet with to prepare?",
            "How many times did you meet with counsel?",
        ],
    },
    {
        "question": "Have you ever given a deposition before?",
        "topic": "Foundation",
        "category": "foundation",
        "priority": "medium",
        "rationale": "Assess deponent experience and set expectations.",
        "follow_up_questions": [
            "How many times have you been deposed?",
            "In what types of cases did you testify?",
        ],
    },
    {
        "question": "What is your relationship to the parties in this case?",
        "topic": "Bias and Interest",
        "category": "general",
        "priority": "high",
        "rationale": "Establish potential bias or interest in the outcome.",
        "follow_up_questions": [
            "How long have you known them?",
            "Do you have any financial interest in the outcome?",
            "Have you ever had any disputes with any party?",
        ],
    },
    {
        "question": "Is there anything else you think is important for me to know about this matter?",
        "topic": "Closing",
        "category": "general",
        "priority": "low",
        "rationale": "Allow deponent to volunteer additional information.",
        "follow_up_questions": [
            "Why do you think that is important?",
            "Is there anything else you would like to add?",
            "Have you told me everything you know?",
        ],
    },
    {
        "question": "Have you answered all of my questions truthfully and to the best of your ability?",
        "topic": "Closing",
        "category": "general",
        "priority": "high",
        "rationale": "Lock in the testimony and establish the record.",
        "follow_up_questions": [
            "Is there anything you would like to correct or clarify?",
            "Do you need to take a break before we conclude?",
        ],
    },
]


@dataclass(frozen=True)
class PrepProfile:
    """Parameter set distinguishing the witness tool from the deposition tool"""
    kind: SessionKind
    subject_label: str                       # "witness" / "deponent"
    parse_mode: ParseMode
    working_status: SessionStatus            # status while the LLM call runs
    model_setting: str                       # Settings attribute naming the model
    system_prompt: Callable[[str], str]
    user_prompt: Callable[[Session], str]
    standard_templates: List[Dict[str, Any]] = field(default_factory=list)
    general_quota: Optional[int] = None      # required count of "general" questions
    standard_reference: Optional[str] = None
    outline_title: str = "Outline"

    def model(self, settings: Settings) -> str:
        return getattr(settings, self.model_setting)

    def standard_questions(self) -> List[Question]:
        """Fresh Question objects (new ids) for the standard set"""
        questions = []
        for template in self.standard_templates:
            data = dict(template)
            if self.standard_reference:
                data.setdefault("document_reference", self.standard_reference)
            questions.append(Question(**data))
        return questions


WITNESS_PROFILE = PrepProfile(
    kind=SessionKind.WITNESS,
    subject_label="witness",
    parse_mode=ParseMode.ARRAY,
    working_status=SessionStatus.GENERATING,
    model_setting="witness_model",
    system_prompt=witness_system_prompt,
    user_prompt=witness_user_prompt,
    standard_templates=WITNESS_STANDARD_QUESTIONS,
    general_quota=5,
    standard_reference=GENERAL_REFERENCE,
    outline_title="Cross-Examination Outline",
)

DEPOSITION_PROFILE = PrepProfile(
    kind=SessionKind.DEPOSITION,
    subject_label="deponent",
    parse_mode=ParseMode.OBJECT,
    working_status=SessionStatus.ANALYZING,
    model_setting="deposition_model",
    system_prompt=lambda name: DEPOSITION_SYSTEM_PROMPT,
    user_prompt=deposition_user_prompt,
    standard_templates=DEPOSITION_STANDARD_QUESTIONS,
    outline_title="Deposition Outline",
)

PROFILES: Dict[SessionKind, PrepProfile] = {
    SessionKind.WITNESS: WITNESS_PROFILE,
    SessionKind.DEPOSITION: DEPOSITION_PROFILE,
}


def get_profile(kind: SessionKind) -> PrepProfile:
    return PROFILES[SessionKind(kind)]
