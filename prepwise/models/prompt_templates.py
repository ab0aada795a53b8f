"""
Prompt templates for interviewer generation and post-interview feedback.

All templates are plain ``str.format`` strings; literal braces in the JSON
schemas are doubled.
"""

PARTICIPANT_PLACEHOLDER = "[PARTICIPANT_NAME]"

# === Interviewer Generation ===

INTERVIEWER_SYSTEM_PROMPT = """You are an expert AI assistant specializing in creating interview prompts for AI video interviews.
Your task is to generate four things:
1. A persona name for the AI interviewer (e.g., "Technical Lead at Google")
2. A persona description that explains the interviewer's role and background
3. A system prompt that will guide the AI interviewer's behavior and questions
4. An initial message that the AI interviewer will use to start the conversation

The interview details are:
- Interview Type: {interview_type}
- Role: {role}
- Company: {company}
- Experience Level: {experience_level}
- Difficulty Level: {difficulty_level}

Make the prompts realistic, professional, and tailored to the specific role and company. Include relevant technical questions for technical interviews and behavioral questions for behavioral interviews."""

INTERVIEWER_USER_PROMPT = """Please generate a persona name, persona description, system prompt, and initial message for an AI interviewer conducting a {interview_type} interview for a {role} position at {company}. The candidate has {experience_level} experience and the interview difficulty should be {difficulty_level}.

Format your response as JSON with four fields:
- persona_name: A short, professional name for the AI interviewer (e.g., "Senior Engineering Manager at Amazon")
- persona_description: A brief description (2-3 sentences) of the interviewer's background and role
- system_prompt: A detailed guide (300-500 words) for the AI interviewer about how to conduct this specific interview, what topics to cover, what questions to ask, and how to evaluate responses
- initial_message: A personalized greeting (2-3 sentences) that the AI interviewer will use to start the conversation with the candidate. Include a placeholder [PARTICIPANT_NAME] that will be replaced with the actual name."""

# Used field by field when the LLM answer cannot be parsed at all
PARSE_FALLBACK_PERSONA_NAME = "{type_title} Interviewer at {company}"
PARSE_FALLBACK_PERSONA_DESCRIPTION = (
    "An experienced interviewer for {role} positions with expertise in conducting {interview_type} interviews."
)

# Stored on the interview when generation fails outright
FALLBACK_PERSONA_NAME = "{type_title} Interviewer"
FALLBACK_PERSONA_DESCRIPTION = "AI interviewer for {role} position at {company}"
FALLBACK_SYSTEM_PROMPT = (
    "You are conducting a {interview_type} interview for a {role} position at {company}. "
    "Ask relevant questions based on the role and provide constructive feedback."
)
FALLBACK_GREETING = (
    "Hello {user_name}, welcome to your interview for the {role} position at {company}. "
    "I'm looking forward to learning more about your experience and skills today."
)

# === Feedback ===

FEEDBACK_SYSTEM_PROMPT = """You are an expert interview coach and evaluator. You need to provide detailed, constructive feedback for a job interview.
The feedback should be honest but encouraging, highlighting both strengths and areas for improvement.

Interview details:
- Position: {role}
- Company: {company}
- Interview type: {interview_type}
- Experience level: {experience_level}
- Difficulty level: {difficulty_level}

The interview context was:
{context}"""

FEEDBACK_USER_PROMPT = """Generate comprehensive interview feedback with the following components:
1. An overall score between 70-95
2. A detailed summary paragraph (150-200 words)
3. 5 specific strengths demonstrated during the interview
4. 5 specific areas for improvement
5. Skill assessment scores and feedback for:
   - Technical knowledge (score 0-100, 2-3 sentence feedback)
   - Communication skills (score 0-100, 2-3 sentence feedback)
   - Problem-solving ability (score 0-100, 2-3 sentence feedback)
   - Relevant experience (score 0-100, 2-3 sentence feedback)

{transcript_block}

Format your response as a JSON object with the following structure:
{{
  "overall_score": number,
  "summary": "string",
  "strengths": ["string", "string", "string", "string", "string"],
  "improvements": ["string", "string", "string", "string", "string"],
  "skill_assessment": {{
    "technical": {{"score": number, "feedback": "string"}},
    "communication": {{"score": number, "feedback": "string"}},
    "problem_solving": {{"score": number, "feedback": "string"}},
    "experience": {{"score": number, "feedback": "string"}}
  }}
}}

Make the feedback specific to a {role} position at {company_or_default}."""

TRANSCRIPT_BLOCK = "Here is the interview transcript to analyze:\n{transcript}"
NO_TRANSCRIPT_BLOCK = (
    "No transcript is available for this interview, so provide general feedback based on the interview details."
)

# Provider callback defaults (completed event with partial data)
CALLBACK_DEFAULT_SUMMARY = (
    "Interview completed successfully. AI analysis shows good performance with areas for improvement."
)
CALLBACK_SIMULATED_SUMMARY = (
    "Interview completed successfully. This is simulated feedback for testing purposes."
)
CALLBACK_DEFAULT_STRENGTHS = [
    "Clear communication throughout the interview",
    "Good technical understanding of core concepts",
    "Structured approach to problem-solving",
]
CALLBACK_DEFAULT_IMPROVEMENTS = [
    "Could provide more specific examples",
    "Consider discussing edge cases in technical solutions",
    "Practice explaining complex concepts more concisely",
]
CALLBACK_DEFAULT_FEEDBACK = {
    "technical": "Demonstrated solid technical knowledge with room for deeper exploration of advanced concepts.",
    "communication": "Communicated ideas clearly and effectively throughout the interview.",
    "problem_solving": "Showed good analytical thinking and systematic approach to problems.",
    "experience": "Relevant experience highlighted well with good examples provided.",
}
CALLBACK_SIMULATED_TECHNICAL_FEEDBACK = (
    "Demonstrated solid technical knowledge with room for deeper exploration."
)

# === Mock Feedback Wording ===
# Keyed by tone: excellent, good, satisfactory

MOCK_WORDING = {
    "excellent": {
        "knowledge": "strong",
        "articulation": "exceptionally well",
        "examples": "comprehensive",
        "strength_technical": "Exceptional",
        "strength_communication": "Excellent",
        "strength_problem": "Impressive",
        "strength_solutions": "innovative",
        "strength_culture": "Outstanding",
        "improve_examples": "detailed",
        "improve_explain": "Minor improvements in",
        "improve_design": "Could benefit from",
        "improve_behavioral": "Could enhance",
        "technical_level": "exceptional",
        "technical_detail": (
            "Their understanding of core concepts was comprehensive and they showed impressive depth "
            "in specialized areas, including advanced topics and best practices."
        ),
        "communication_level": "exceptional and highly professional",
        "communication_detail": (
            "articulated complex ideas with precision, clarity, and confidence, demonstrating excellent "
            "listening skills and thoughtful responses"
        ),
        "problem_level": "sophisticated, thorough, and highly analytical",
        "problem_detail": (
            "demonstrated excellent analytical skills, creative thinking, and the ability to break down "
            "complex problems into manageable components with innovative solutions"
        ),
        "experience_level": "highly relevant, extensive, and directly applicable",
        "experience_detail": (
            "have clearly worked on similar projects, technologies, and challenges, demonstrating deep "
            "practical knowledge and leadership experience"
        ),
    },
    "good": {
        "knowledge": "solid",
        "articulation": "clearly",
        "examples": "relevant",
        "strength_technical": "Strong",
        "strength_communication": "Good",
        "strength_problem": "Solid",
        "strength_solutions": "effective",
        "strength_culture": "Good",
        "improve_examples": "specific",
        "improve_explain": "Should work on",
        "improve_design": "Should consider",
        "improve_behavioral": "Should improve",
        "technical_level": "solid",
        "technical_detail": (
            "They showed good understanding of most fundamental concepts and demonstrated practical "
            "experience, though could deepen knowledge in some advanced areas."
        ),
        "communication_level": "clear and effective",
        "communication_detail": (
            "expressed ideas clearly, maintained good structure in their responses, and showed active "
            "engagement throughout the conversation"
        ),
        "problem_level": "methodical and effective",
        "problem_detail": (
            "showed good analytical thinking, systematic approach to problems, and ability to work "
            "through challenges logically"
        ),
        "experience_level": "relevant and adequate",
        "experience_detail": (
            "have worked with most of the required technologies and shown good practical application "
            "of their skills in real-world scenarios"
        ),
    },
    "satisfactory": {
        "knowledge": "adequate",
        "articulation": "adequately",
        "examples": "basic",
        "strength_technical": "Adequate",
        "strength_communication": "Satisfactory",
        "strength_problem": "Basic",
        "strength_solutions": "standard",
        "strength_culture": "Adequate",
        "improve_examples": "specific",
        "improve_explain": "Needs to improve",
        "improve_design": "Needs",
        "improve_behavioral": "Needs to develop",
        "technical_level": "basic",
        "technical_detail": (
            "They covered basic concepts adequately but would benefit from strengthening their "
            "technical foundation in key areas."
        ),
        "communication_level": "adequate with room for improvement",
        "communication_detail": (
            "conveyed basic ideas but sometimes lacked clarity in explanations and could improve "
            "their response structure"
        ),
        "problem_level": "straightforward but sometimes limited in scope",
        "problem_detail": (
            "applied basic problem-solving techniques but missed some optimization opportunities and "
            "could benefit from more structured approaches"
        ),
        "experience_level": "somewhat relevant but may need additional development",
        "experience_detail": (
            "have some experience with the required technologies but may need additional training "
            "and hands-on practice to fully meet the role requirements"
        ),
    },
}

MOCK_SUMMARY = (
    "The candidate demonstrated {tone} understanding of {role} responsibilities and technical requirements. "
    "Their responses showed {knowledge} knowledge of key concepts and methodologies relevant to the position. "
    "The candidate articulated their thoughts {articulation} and provided {examples} examples from their past "
    "experience. Overall, this was a {tone} interview performance that demonstrates the candidate's potential "
    "for the {role} position."
)

MOCK_STRENGTHS = [
    "{strength_technical} technical knowledge of {technical_area}",
    "{strength_communication} communication skills with clear and structured responses",
    "{strength_problem} problem-solving approach with {strength_solutions} solutions",
    "Relevant experience that aligns well with the {role} position requirements",
    "{strength_culture} understanding of {company} culture and values",
]

MOCK_IMPROVEMENTS = [
    "Could provide more {improve_examples} examples from past projects and achievements",
    "{improve_explain} explaining complex technical concepts in simpler terms",
    "{improve_design} more focus on system design and architecture principles",
    "{improve_behavioral} responses to behavioral questions with more structured examples",
    "Consider preparing more questions about the role and company to show deeper interest",
]

MOCK_SKILL_FEEDBACK = {
    "technical": "The candidate demonstrated {technical_level} technical knowledge relevant to the {role} position. {technical_detail}",
    "communication": "Communication was {communication_level}. The candidate {communication_detail}.",
    "problem_solving": "Problem-solving approach was {problem_level}. The candidate {problem_detail}.",
    "experience": "The candidate's experience is {experience_level} for the {role} position. They {experience_detail}.",
}
