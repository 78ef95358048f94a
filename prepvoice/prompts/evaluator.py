"""
AI Evaluator Prompt Templates

Answers are scored by three independent agents whose results are
combined into one evaluation:
- Technical: accuracy, depth, problem-solving approach
- Communication: clarity, structure, conciseness
- Role: relevance to the role, alignment with experience level
"""


class EvaluatorPrompts:
    """
    Prompt templates for multi-agent answer evaluation.

    All agents score on a 0-100 scale and must reply with a bare JSON object.
    """

    JSON_ONLY = (
        "You MUST respond with valid JSON only. No markdown, no code blocks, just pure JSON."
    )

    def technical_system(self) -> str:
        return f"You are a technical assessment specialist. {self.JSON_ONLY}"

    def communication_system(self) -> str:
        return f"You are a communication assessment specialist. {self.JSON_ONLY}"

    def role_system(self, role: str) -> str:
        return f"You are a {role} hiring specialist. {self.JSON_ONLY}"

    def technical_prompt(
        self,
        question: str,
        answer: str,
        role: str,
        years_of_experience: int,
        word_count: int,
        min_expected_words: int,
    ) -> str:
        """Prompt for the technical agent."""
        return f"""You are a technical interviewer evaluating a {role} candidate with {years_of_experience} years of experience.

QUESTION ASKED:
{question}

CANDIDATE'S ANSWER:
{answer}

EVALUATION CONTEXT:
- Role: {role}
- Experience Level: {years_of_experience} years
- Answer Length: {word_count} words (Expected minimum: {min_expected_words} words)

Return ONLY this JSON structure (no other text):
{{
  "technicalAccuracy": <0-100>,
  "depthOfKnowledge": <0-100>,
  "problemSolvingApproach": <0-100>,
  "technicalStrengths": ["point1", "point2"],
  "technicalGaps": ["gap1", "gap2"],
  "redFlags": ["flag1"] or [],
  "reasoning": "Brief explanation"
}}"""

    def communication_prompt(self, answer: str, word_count: int) -> str:
        """Prompt for the communication agent."""
        return f"""Evaluate ONLY the communication quality of this interview answer:

ANSWER: {answer}

WORD COUNT: {word_count}

Return ONLY this JSON structure (no other text):
{{
  "communicationClarity": <0-100>,
  "structureScore": <0-100>,
  "conciseness": <0-100>,
  "communicationStrengths": ["point1", "point2"],
  "communicationImprovements": ["area1", "area2"]
}}"""

    def role_prompt(
        self,
        question: str,
        answer: str,
        role: str,
        years_of_experience: int,
    ) -> str:
        """Prompt for the role-specific agent."""
        return f"""Evaluate role-specific competency for a {role} with {years_of_experience} years of experience.

QUESTION: {question}
ANSWER: {answer}

Return ONLY this JSON structure (no other text):
{{
  "relevanceToRole": <0-100>,
  "experienceLevelAlignment": <0-100>,
  "roleSpecificInsights": ["insight1", "insight2"],
  "missingCompetencies": ["area1", "area2"],
  "followUpQuestions": ["question1", "question2"]
}}"""
