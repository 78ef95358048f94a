"""
AI Interviewer Prompt Templates

Contains structured prompts for:
- Question generation
- Question hints

Questions rotate through five categories, each with its own focus
area and opening phrases, and target a difficulty derived from the
candidate's experience and position in the interview.
"""

import random

from prepvoice.models.evaluation import Difficulty, QuestionCategory


CATEGORY_STARTERS: dict[QuestionCategory, list[str]] = {
    QuestionCategory.BEHAVIORAL: [
        "Tell me about a time when",
        "Describe a situation where",
        "Give me an example of",
        "Walk me through a challenging",
    ],
    QuestionCategory.TECHNICAL: [
        "Explain how you would",
        "What are the trade-offs between",
        "Design a system that",
        "How would you optimize",
    ],
    QuestionCategory.SITUATIONAL: [
        "If you were faced with",
        "How would you handle",
        "What would be your approach to",
        "Imagine a scenario where",
    ],
    QuestionCategory.COMPETENCY: [
        "How do you measure success in",
        "What frameworks do you use for",
        "Describe your process for",
        "How do you ensure quality in",
    ],
    QuestionCategory.PROBLEM_SOLVING: [
        "Analyze this problem:",
        "How would you debug",
        "Optimize this scenario:",
        "Break down the following challenge:",
    ],
}


def target_difficulty(years_of_experience: int, question_number: int) -> Difficulty:
    """Difficulty to aim for, ramping up faster for experienced candidates."""
    if years_of_experience < 2:
        return Difficulty.EASY if question_number <= 2 else Difficulty.MEDIUM
    elif years_of_experience < 5:
        if question_number <= 1:
            return Difficulty.EASY
        return Difficulty.MEDIUM if question_number <= 3 else Difficulty.HARD
    else:
        return Difficulty.MEDIUM if question_number <= 1 else Difficulty.HARD


class InterviewerPrompts:
    """
    Prompt templates for the AI interviewer.

    Key principles:
    - One focused, conversational question at a time
    - Role-specific, never generic
    - Hints clarify the question without answering it
    """

    QUESTION_SYSTEM = (
        "You are an expert interviewer specializing in {category} assessment. "
        "Generate diverse, insightful questions at appropriate difficulty levels "
        "that reveal true candidate capabilities. Respond with valid JSON only."
    )

    HINT_SYSTEM = (
        "You are a helpful interview coach who clarifies questions without "
        "giving away answers. Respond with valid JSON only."
    )

    def category_guidance(self, category: QuestionCategory, role: str, interview_type: str) -> str:
        """Focus area for a question category."""
        guidance = {
            QuestionCategory.BEHAVIORAL: f"Past experiences demonstrating {role} skills and decision-making",
            QuestionCategory.TECHNICAL: f"Deep {interview_type} expertise and problem-solving for {role}",
            QuestionCategory.SITUATIONAL: f"Realistic scenarios testing {role} judgment and adaptability",
            QuestionCategory.COMPETENCY: f"Core {role} competencies, methodologies, and best practices",
            QuestionCategory.PROBLEM_SOLVING: f"Analytical thinking and systematic approach relevant to {role}",
        }
        return guidance.get(category, "Relevant interview question")

    def question_system_prompt(self, category: QuestionCategory) -> str:
        return self.QUESTION_SYSTEM.format(category=category.value.replace("_", " "))

    def generate_question_prompt(
        self,
        role: str,
        interview_type: str,
        years_of_experience: int,
        question_number: int,
        total_questions: int,
        category: QuestionCategory,
        difficulty: Difficulty,
        skills: list[str],
    ) -> str:
        """Generate prompt for creating the next interview question."""
        starter = random.choice(CATEGORY_STARTERS[category])

        if skills:
            skills_section = (
                f"DECLARED SKILLS: {', '.join(skills)}\n"
                "Pick one to three of these skills that the question genuinely tests "
                "and list them verbatim in testedSkills."
            )
        else:
            skills_section = (
                "No skills were declared. Name one to three short skill labels "
                "the question tests in testedSkills."
            )

        return f"""You are conducting a professional {interview_type} interview for a {role} position.

CANDIDATE PROFILE:
- Experience Level: {years_of_experience} years
- Target Role: {role}
- Interview Type: {interview_type}

QUESTION {question_number}/{total_questions} REQUIREMENTS:
- Category: {category.value.upper()}
- Focus Area: {self.category_guidance(category, role, interview_type)}
- Starter Template: "{starter}"
- Difficulty: {difficulty.value.upper()} (for {years_of_experience} years experience)

DIFFICULTY GUIDELINES:
- EASY: Basic concepts, straightforward scenarios, common situations
- MEDIUM: Moderate complexity, requires some critical thinking, real-world application
- HARD: Complex scenarios, requires deep expertise, strategic thinking, trade-off analysis

{skills_section}

INSTRUCTIONS:
1. Create a unique, thought-provoking question at {difficulty.value} difficulty level
2. Tailor complexity to {years_of_experience} years of experience
3. Make it {category.value.replace("_", " ")}-focused and role-specific
4. Keep it conversational (40-60 words)
5. Avoid generic questions - be specific to {role}
6. Report the difficulty you actually achieved, which may differ from the target

Return ONLY this JSON structure:
{{
  "question": "The question text, no numbering or preamble",
  "difficulty": "easy" | "medium" | "hard",
  "testedSkills": ["skill1", "skill2"]
}}"""

    def generate_hint_prompt(self, question: str, role: str, interview_type: str) -> str:
        """Generate prompt for clarifying a hard question."""
        return f"""You are helping an interview candidate understand a question better WITHOUT giving away the answer.

QUESTION: {question}
ROLE: {role}
INTERVIEW TYPE: {interview_type}

Your task: Provide a helpful, concise hint that:
1. Clarifies what the question is really asking in 1 or 2 sentences
2. Explains key concepts or terminology
3. Suggests what aspects to consider in the answer
4. Does NOT provide the actual answer or specific examples to use

Return ONLY this JSON structure:
{{
  "hint": "A clear, concise explanation of what the question is asking (2-3 sentences)",
  "examples": ["Example type 1 to consider", "Example type 2 to consider"]
}}"""
