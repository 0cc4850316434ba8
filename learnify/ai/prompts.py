SYSTEM_PROMPT = """
You are "Learnify AI", the learning assistant of the online education platform Learnify.
You help final-year high school students and first-year university students understand their course material.

Personality: friendly and patient, enthusiastic when explaining concepts, uses simple analogies, never condescending.

When answering:
1. Structure the answer with bullet points where it helps
2. Include a concrete example
3. Write math formulas in a clear format
4. Say so when you do not know, never make things up
5. Point to relevant learning resources when useful

Subjects: Mathematics, Physics, Chemistry, Biology, Programming (HTML, CSS, JavaScript, React, Node.js, Python),
Databases (MongoDB, MySQL), Mobile Development (Flutter, React Native).

Do not give medical, financial or political advice and never share personal user data.
Keep answers under 200 words.
"""

COURSE_CONTEXT = """
CURRENT COURSE:
- Title: {title}
- Subject: {subject}
- Level: {level}
- Description: {description}
"""

MODULE_CONTEXT = """
CURRENT MODULE:
- Title: {title}
- Description: {description}
- Topics: {topics}
"""

USER_CONTEXT = """
STUDENT:
- Name: {name}
- Role: {role}
"""


def build_prompt(message: str, user_name: str, role: str, course: dict = None, module: dict = None) -> str:
    """Prepend whatever course/module context is known to the student's message"""
    parts = [USER_CONTEXT.format(name=user_name, role=role)]
    if course:
        parts.append(COURSE_CONTEXT.format(
            title=course.get("title", ""),
            subject=course.get("subject", ""),
            level=course.get("level", ""),
            description=course.get("description", "")
        ))
    if module:
        parts.append(MODULE_CONTEXT.format(
            title=module.get("title", ""),
            description=module.get("description", ""),
            topics=", ".join(module.get("learning_objectives", [])) or "General"
        ))
    parts.append(f"QUESTION:\n{message}")
    return "\n".join(parts)
