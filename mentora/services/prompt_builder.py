"""Prompt construction for every generation step.

All functions here are pure: same input, same text out, no I/O.
"""

from typing import Optional, Sequence

QUESTION_COUNT = 10

DEFAULT_SPECIALIZATION = "Computer Science"

SPECIALIZATIONS = {
    "dsa": "Data Structures and Algorithms",
    "frontend": "Frontend Web Development (React, JS, CSS)",
    "system-design": "System Design and Scalability",
}

# difficulty -> {question difficulty: count}; every mix sums to QUESTION_COUNT
QUESTION_MIXES = {
    "easy": {"easy": 7, "medium": 3},
    "medium": {"medium": 5, "hard": 5},
    "hard": {"hard": 10},
}
DEFAULT_QUESTION_MIX = {"medium": 10}

NO_ANSWER_PLACEHOLDER = "No answer provided."

SUMMARY_TONE = {
    "easy": (
        'For this easy interview, be celebratory (e.g., "Great job, you\'ve '
        'mastered the fundamentals!").'
    ),
    "default": (
        "For this interview, be professional and encouraging (e.g., "
        '"Excellent work on these complex topics.").'
    ),
}


def specialization_for(subject: str) -> str:
    """Map an interview subject key to its specialization label."""
    return SPECIALIZATIONS.get(subject, DEFAULT_SPECIALIZATION)


def question_mix(difficulty: str) -> dict[str, int]:
    """Difficulty mix policy; unknown difficulties fall back to 10 medium questions."""
    return dict(QUESTION_MIXES.get(difficulty, DEFAULT_QUESTION_MIX))


def _describe_mix(mix: dict[str, int]) -> str:
    parts = [f"{count} {level}" for level, count in mix.items()]
    if len(parts) == 1:
        return f"{parts[0]} questions"
    return " questions and ".join(parts) + " questions"


def clean_persona_prompt(persona_prompt: str) -> str:
    """Strip non-breaking spaces and surrounding whitespace from a stored persona prompt."""
    return (persona_prompt or "").replace("\u00a0", " ").strip()


def build_question_generation_prompt(subject: str, difficulty: str) -> str:
    """Instruction for generating the fixed-size question bank of an interview."""
    specialization = specialization_for(subject)
    mix = _describe_mix(question_mix(difficulty))

    return f"""You are an expert technical interviewer.
Generate {QUESTION_COUNT} unique interview questions for a mid-level candidate
in the specialization of "{specialization}".
The {QUESTION_COUNT} questions must have the following difficulty mix: {mix}.
Return the questions as a JSON array of exactly {QUESTION_COUNT} objects.
Each object must have a "question" key (string) and a "difficulty" key (string: "easy", "medium", or "hard").
Ensure the "difficulty" key accurately reflects the question's difficulty.
Return *only* the raw JSON array. Do not include any other text, markdown or explanation.
Example format:
[
  {{ "question": "What is a hash map?", "difficulty": "easy" }},
  {{ "question": "Explain the trade-offs of B-trees.", "difficulty": "medium" }}
]"""


def build_grading_prompt(
    questions: Sequence[str], answers: Sequence[Optional[str]], difficulty: str
) -> str:
    """Instruction for grading a finished interview transcript in one call."""
    qa_pairs = []
    for i, question in enumerate(questions):
        answer = answers[i] if i < len(answers) else None
        if not answer or not answer.strip():
            answer = NO_ANSWER_PLACEHOLDER
        qa_pairs.append(
            f"Question {i + 1}: {question}\nUser's Answer {i + 1}: {answer}"
        )
    qa_text = "\n\n".join(qa_pairs)

    tone = SUMMARY_TONE["easy"] if difficulty == "easy" else SUMMARY_TONE["default"]

    return f"""You are an expert technical interviewer and mentor.
A candidate has provided the following answers to a {difficulty} difficulty interview.

Your task is to review each answer and provide constructive feedback, and then provide a final summary.

Here are the questions and answers:

{qa_text}

Please evaluate each answer and return your response as a single JSON object.
This object must have two keys: "feedback" and "summary".

1. The "feedback" key must be a JSON array with exactly {len(questions)} objects, one per question, in order.
   Each object must have two keys:
    - "good": A short sentence on what was good about the answer.
    - "missing": A short, constructive sentence on what was missing or could be improved.

2. The "summary" key must be a single string: a one-sentence acknowledgement based on the overall performance.
   {tone}

Example response format:
{{
  "feedback": [
    {{ "good": "You correctly identified the concept.", "missing": "You could have also mentioned its performance implications." }}
  ],
  "summary": "Excellent work on these complex topics."
}}

Return *only* the JSON object. Do not include any other text, markdown, or explanation."""


def build_lesson_start_prompt(persona_prompt: str, user_topic: str) -> str:
    """Instruction for opening a lesson: a 3-5 step plan plus the first explanation."""
    return f"""{clean_persona_prompt(persona_prompt)}

A user wants to learn about "{user_topic}".
Your task is to:
1. Create a step-by-step lesson plan with 3-5 sub-topics.
2. Write a **concise, friendly, and welcoming** explanation for **ONLY the first sub-topic**.
3. **Use short paragraphs, bullet points, and simple markdown** (like **bolding**) to make it easy to read in a chat.
Respond with a single, minified JSON object. Do not add any text or markdown formatting before or after the JSON.
The JSON MUST follow this exact format:
{{"lessonPlan": ["Sub-topic 1", "Sub-topic 2", "Sub-topic 3"], "explanation": "Your concise, friendly, markdown-formatted explanation..."}}"""


def build_lesson_continuation_prompt(
    persona_prompt: str, sub_topic: str, is_final_step: bool
) -> str:
    """Instruction for the next lesson step; the final step also asks for a conclusion."""
    if is_final_step:
        json_format = '{"explanation": "Detailed explanation...", "conclusion": "Short summary & congrats..."}'
        task = """Your task is to:
1. Write a **concise and friendly** explanation for **ONLY this sub-topic**.
2. After the explanation, write a **brief summary** of the *entire* topic and a **congratulatory message**.
3. **Use simple markdown** (like **bolding**)."""
    else:
        json_format = '{"explanation": "Detailed explanation..."}'
        task = """Your task is to:
1. Write a **concise and friendly** explanation for **ONLY this sub-topic**.
2. **Use simple markdown** (like **bolding**)."""

    return f"""{clean_persona_prompt(persona_prompt)}

You are continuing a lesson. The user wants to learn the next sub-topic: "{sub_topic}".
{task}
Respond with a single, minified JSON object. Do not add any text or markdown formatting before or after the JSON.
The JSON MUST follow this exact format:
{json_format}"""


def build_dialogue_system_prompt(
    persona_prompt: str, lesson_plan: Optional[Sequence[str]] = None
) -> str:
    """System prompt for a Socratic study dialogue; replies are plain prose."""
    prompt = f"""{clean_persona_prompt(persona_prompt)}

You are in a one-on-one study session, acting as a Socratic mentor.
Your job is to be natural, conversational, and helpful.
Your goal is to have a back-and-forth conversation, not a lecture.

**YOUR CORE RULES:**
1.  **ACKNOWLEDGE FIRST:** Always read the user's last message and acknowledge it (e.g., "Great," "Perfect," "Exactly") before introducing anything new.
2.  **ONE IDEA AT A TIME:** Introduce **at most one new idea** (a definition, a property, an example) per reply, in 2-3 sentences.
3.  **END WITH A QUESTION:** After explaining your idea, **ALWAYS** end with a short, engaging question to check understanding or guide them. The only exception is when you are explicitly concluding the session.
4.  **HANDLE "I DON'T KNOW":** If the user says "I don't know" or is stuck, **do not ask another probing question.** Instead, **clearly and directly explain the answer** in a simple way, and then ask a *new* follow-up question to ensure they understood.
5.  **STAY ON TOPIC:** Do not jump back to concepts you've already covered unless the user asks. Keep the conversation moving forward.
6.  **PLAIN PROSE:** Reply in conversational text. Never reply with JSON.

**EXAMPLE FLOW:**
* You: "An array stores items in a line. This is called 'contiguous memory.' Make sense?"
* User: "yes"
* You: "Great. Because they're in a line, we find them using an 'index,' which is just a number for their position. Any idea why we start at 0 instead of 1?"
* User: "i dont know"
* You: "No problem! The index is an 'offset,' the distance from the start. The first item is 0 steps from the start. Sound good so far?\""""

    if lesson_plan:
        outline = "\n".join(f"{i + 1}. {step}" for i, step in enumerate(lesson_plan))
        prompt += f"""

**LESSON PLAN:** Guide the conversation through these sub-topics, in order:
{outline}"""

    return prompt


def build_advice_system_prompt(persona_prompt: str) -> str:
    """System prompt for advice mode: one complete, practical answer per question."""
    return f"""{clean_persona_prompt(persona_prompt)}

You are in "Advice Mode." The user is asking for specific, practical career or technical advice.
Your job is to answer their question directly, drawing on your expert persona.
- Be conversational, empathetic, and encouraging.
- Give clear, actionable advice.
- Use markdown (like **bolding** and bullet points) for clarity.
- This is a one-off answer, not a back-and-forth conversation. Provide a complete, helpful response.
- If you are asked a question outside your expertise, politely say that you don't have that information yet."""
