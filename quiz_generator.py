"""
Quizzify Quiz Generator

Asks the configured LLM for a JSON array of multiple-choice questions,
normalises whatever comes back into four-option QuizQuestions and shuffles
the options so the answer is not always "A". When the provider is
unreachable or unconfigured a keyword/template generator produces the quiz
locally instead.
"""

from __future__ import annotations

import json
import logging
import random
import re

from ai_resilience import configured_llm_call
from models import QuizQuestion

logger = logging.getLogger(__name__)

QUIZ_SYSTEM_PROMPT = """You are Quizzify AI, the question writer for a live multiplayer quiz app.

A host picks a topic, a difficulty (Easy | Medium | Hard) and a number of
questions (5 | 10 | 15 | 20). You write multiple-choice questions with exactly
four options and one correct answer. Participants answer them live and are
ranked on a leaderboard by how many they get right.

Rules:
- Output data only. No intros, explanations, or filler text.
- When asked for JSON, return a single valid JSON array and nothing else.
- Keep questions unambiguous, with exactly one defensible correct option."""

QUIZ_USER_PROMPT = (
    'Generate a JSON array of {n} MCQs on "{topic}" difficulty {difficulty}. '
    "Each item: {{ id: uuid, question: string, options: string[4], correctIndex: 0..3 }}. "
    "Output ONLY JSON array."
)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\n?|```$")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def extract_json_array(text: str) -> str | None:
    """Strip markdown code fences and return the outermost ``[...]`` span."""
    stripped = _FENCE_RE.sub("", text or "")
    match = _ARRAY_RE.search(stripped)
    return match.group(0) if match else None


def parse_json_array(text: str) -> list:
    """Best-effort parse of an LLM reply into a list. Returns [] when unparseable."""
    candidate = extract_json_array(text)
    try:
        parsed = json.loads(candidate if candidate is not None else text)
    except (TypeError, ValueError) as exc:
        logger.warning("Quiz JSON parse error: %s", exc)
        return []
    return parsed if isinstance(parsed, list) else []


def _correct_index(raw: dict, options: list[str]) -> int:
    ci = raw.get("correctIndex")
    if isinstance(ci, int) and not isinstance(ci, bool):
        return max(0, min(3, ci))
    answer = raw.get("correct_answer")
    if isinstance(answer, str) and len(options) == 4:
        wanted = answer.strip().lower()
        for idx, opt in enumerate(options):
            if opt.strip().lower() == wanted:
                return idx
    return 0


def normalize_questions(items: list) -> list[QuizQuestion]:
    """Coerce raw LLM items into QuizQuestions, dropping unusable ones."""
    questions = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            continue
        raw_options = raw.get("options")
        options = [str(o) for o in raw_options[:4]] if isinstance(raw_options, list) else []
        question = raw.get("question")
        question = "" if question is None else str(question)
        if not question or len(options) != 4:
            continue
        qid = raw.get("id")
        questions.append(QuizQuestion(
            id=str(idx) if qid is None else str(qid),
            question=question,
            options=options,
            correctIndex=_correct_index(raw, options),
        ))
    return questions


def shuffle_with_index(
    options: list[str],
    correct_index: int,
    rng: random.Random | None = None,
) -> tuple[list[str], int]:
    """Fisher-Yates shuffle that follows the correct option to its new slot."""
    rng = rng or random
    arr = list(options)
    mapped = correct_index
    for i in range(len(arr) - 1, 0, -1):
        j = rng.randint(0, i)
        arr[i], arr[j] = arr[j], arr[i]
        if i == mapped:
            mapped = j
        elif j == mapped:
            mapped = i
    return arr, mapped


def _shuffled(q: QuizQuestion, rng: random.Random | None = None) -> QuizQuestion:
    options, ci = shuffle_with_index(q.options, q.correctIndex, rng)
    return QuizQuestion(id=q.id, question=q.question, options=options, correctIndex=ci)


def generate_quiz(topic: str, difficulty: str, total_questions: int) -> list[QuizQuestion]:
    """AI quiz for a topic, or the local quiz when the provider fails.

    An AI reply that parses to nothing yields an empty list; the caller
    decides how to report that.
    """
    prompt = QUIZ_USER_PROMPT.format(n=total_questions, topic=topic, difficulty=difficulty)
    try:
        content = configured_llm_call(
            prompt,
            system=QUIZ_SYSTEM_PROMPT,
            temperature=0.7,
            max_tokens=2048,
        )
    except Exception as exc:
        logger.warning("AI quiz generation failed, using local quiz: %s", exc)
        return generate_local_quiz(topic, difficulty, total_questions)

    questions = [_shuffled(q) for q in normalize_questions(parse_json_array(content))]
    logger.info("Generated %d quiz questions for topic=%r", len(questions), topic)
    return questions


# ── Local fallback ───────────────────────────────────────────────────

QUESTION_TEMPLATES: dict[str, list[str]] = {
    "javascript": [
        "What is the correct way to declare a variable in JavaScript?",
        "Which method is used to add an element to the end of an array?",
        'What does the "this" keyword refer to in JavaScript?',
        "Which operator is used for strict equality comparison?",
        'What is the purpose of the "use strict" directive?',
    ],
    "python": [
        "What is the correct way to create a list in Python?",
        "Which keyword is used to define a function in Python?",
        "What is the difference between a list and a tuple?",
        "Which method is used to add an item to a list?",
        "What does the \"if __name__ == '__main__'\" statement do?",
    ],
    "react": [
        "What is the correct way to create a functional component in React?",
        "Which hook is used to manage state in functional components?",
        "What is the purpose of the useEffect hook?",
        "Which method is used to update state in React?",
        "What is the difference between props and state?",
    ],
    "drug": [
        "What are the primary health effects of drug addiction?",
        "Which approach is most effective for drug prevention?",
        "What is the first step in drug rehabilitation?",
        "Which factor contributes most to drug addiction?",
        "What is the best method for treating drug dependence?",
    ],
    "alcohol": [
        "What are the main health risks of excessive alcohol consumption?",
        "Which strategy is most effective for alcohol prevention?",
        "What is the primary goal of alcohol rehabilitation?",
        "Which factor influences alcohol addiction most?",
        "What is the recommended approach for alcohol treatment?",
    ],
    "addiction": [
        "What are the key components of addiction treatment?",
        "Which method is most effective for addiction prevention?",
        "What is the primary goal of addiction recovery?",
        "Which factor plays the biggest role in addiction development?",
        "What is the best approach for long-term addiction recovery?",
    ],
}

ANSWER_SETS: dict[str, list[list[str]]] = {
    "javascript": [
        ["var, let, const", "var only", "let only", "const only"],
        ["push()", "add()", "insert()", "append()"],
        ["Current object", "Global object", "Parent object", "Window object"],
        ["===", "==", "=", "!="],
        ["Enables strict mode", "Disables strict mode", "Creates variables", "Deletes variables"],
    ],
    "python": [
        ["[]", "{}", "()", "set()"],
        ["def", "function", "func", "define"],
        ["Lists are mutable, tuples are immutable", "No difference", "Tuples are mutable", "Lists are immutable"],
        ["append()", "add()", "insert()", "push()"],
        ["Runs code when script is executed directly", "Imports modules", "Defines functions", "Creates classes"],
    ],
    "react": [
        ["const Component = () => {}", "function Component() {}", "class Component {}", "Component = () => {}"],
        ["useState", "useEffect", "useContext", "useReducer"],
        ["Performs side effects", "Manages state", "Handles events", "Renders components"],
        ["setState()", "useState()", "updateState()", "changeState()"],
        ["Props are passed down, state is internal", "No difference", "State is passed down", "Props are internal"],
    ],
    "drug": [
        ["Prevention and education", "Treatment and rehabilitation", "Legal enforcement", "Medical intervention"],
        ["Individual counseling", "Group therapy", "Family support", "Community programs"],
        ["Physical health effects", "Mental health impacts", "Social consequences", "Economic burden"],
        ["Early intervention", "Rehabilitation programs", "Support groups", "Medical treatment"],
        ["Awareness campaigns", "School programs", "Community outreach", "Media campaigns"],
    ],
    "alcohol": [
        ["Liver damage", "Heart problems", "Brain effects", "Digestive issues"],
        ["Moderation", "Abstinence", "Controlled drinking", "Social drinking"],
        ["Family support", "Professional treatment", "Self-help groups", "Medical intervention"],
        ["Prevention programs", "Education campaigns", "Policy changes", "Community support"],
        ["Physical dependence", "Psychological addiction", "Social factors", "Genetic predisposition"],
    ],
    "addiction": [
        ["Biological factors", "Psychological factors", "Social factors", "Environmental factors"],
        ["Detoxification", "Rehabilitation", "Counseling", "Support groups"],
        ["Prevention", "Early intervention", "Treatment", "Recovery support"],
        ["Individual therapy", "Group therapy", "Family therapy", "Community programs"],
        ["Medical treatment", "Behavioral therapy", "Support groups", "Lifestyle changes"],
    ],
}


def _match_keyword(topic: str, table: dict):
    topic_lower = topic.lower()
    for key, value in table.items():
        if key in topic_lower:
            return value
    return None


def _main_word(topic: str) -> str | None:
    words = [w for w in topic.lower().split(" ") if len(w) > 3]
    return words[0] if words else None


def _generic_questions(topic: str) -> list[str]:
    main = _main_word(topic) or "this topic"
    return [
        f"What are the key aspects of {main}?",
        f"Which approach is most effective for {main}?",
        f"What is the primary goal of {main}?",
        f"Which factor is most important in {main}?",
        f"What is the best method for {main}?",
    ]


def _contextual_answers(topic: str) -> list[list[str]]:
    w = _main_word(topic)
    return [
        [
            f"Primary approach to {w or 'this topic'}",
            f"Alternative method for {w or 'this topic'}",
            f"Advanced technique in {w or 'this topic'}",
            f"Traditional approach to {w or 'this topic'}",
        ],
        [
            f"Basic concept of {w or 'this subject'}",
            f"Intermediate level {w or 'knowledge'}",
            f"Advanced understanding of {w or 'this field'}",
            f"Expert level {w or 'expertise'}",
        ],
        [
            f"First step in {w or 'this process'}",
            f"Second phase of {w or 'this method'}",
            f"Third stage in {w or 'this approach'}",
            f"Final step of {w or 'this procedure'}",
        ],
        [
            f"Direct approach to {w or 'this issue'}",
            f"Indirect method for {w or 'this problem'}",
            f"Combined approach to {w or 'this challenge'}",
            f"Alternative solution for {w or 'this situation'}",
        ],
        ["Short-term solution", "Long-term approach", "Immediate action", "Gradual process"],
    ]


def generate_local_quiz(
    topic: str,
    difficulty: str,
    total_questions: int,
    rng: random.Random | None = None,
) -> list[QuizQuestion]:
    """Template quiz with exactly ``total_questions`` items, ids q_1..q_N.

    Known topic keywords use curated question/answer tables; anything else
    gets generic questions built from the first topic word longer than three
    characters. The "correct" option is picked at random, so these quizzes
    are placeholders rather than graded content.
    """
    rng = rng or random
    templates = _match_keyword(topic, QUESTION_TEMPLATES) or _generic_questions(topic)
    answer_sets = _match_keyword(topic, ANSWER_SETS)

    questions = []
    for i in range(total_questions):
        if answer_sets is not None:
            options = list(answer_sets[i % len(answer_sets)])
        else:
            options = list(rng.choice(_contextual_answers(topic)))
        q = QuizQuestion(
            id=f"q_{i + 1}",
            question=templates[i % len(templates)],
            options=options,
            correctIndex=rng.randint(0, 3),
        )
        questions.append(_shuffled(q, rng))

    logger.info("Generated %d local quiz questions (difficulty=%s)", len(questions), difficulty)
    return questions
