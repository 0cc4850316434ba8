"""
Rule table for the chat assistant.
Rules are tried in list order and the first match wins, so topic-specific
rules (algebra, React, ...) sit before the general subject rule that would
also match. Keywords cover Indonesian and English.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern, Union


@dataclass
class ChatRule:
    name: str
    pattern: Pattern
    reply: Union[str, Callable[[Optional[str]], str]]

    def matches(self, message: str) -> bool:
        return bool(self.pattern.search(message))

    def render(self, user_name: Optional[str] = None) -> str:
        if callable(self.reply):
            return self.reply(user_name)
        return self.reply


def keywords(*words: str) -> Pattern:
    """Match any word that starts with one of `words`"""
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + ")", re.IGNORECASE)


def _greeting(user_name: Optional[str]) -> str:
    return f"Hello {user_name or 'Student'}! 👋 What would you like to learn today?"


DEFAULT_REPLY = (
    "Hi! I'm the Learnify AI assistant. 🤖\n\n"
    "I can help you with:\n"
    "📌 Mathematics (algebra, calculus, limits, derivatives)\n"
    "📌 Physics, Chemistry, Biology\n"
    "📌 Programming (React, JavaScript, Python)\n"
    "📌 Discussions and courses\n\n"
    "What would you like to ask? 😊"
)

RULES: List[ChatRule] = [
    ChatRule(
        "greeting",
        re.compile(r"^\s*(?:halo|hai|hi|hello|hey|pagi|siang|sore|malam|good morning|good evening)\b", re.IGNORECASE),
        _greeting,
    ),
    ChatRule(
        "thanks",
        keywords("terima kasih", "makasih", "thanks", "thank you"),
        "You're welcome! 😊 Anything else you'd like to ask?",
    ),

    # ==================== MATHEMATICS ====================
    ChatRule(
        "algebra",
        keywords("aljabar", "algebra"),
        "📚 **Studying Algebra:**\n\n1. Master the basic operations (+, -, ×, ÷)\n"
        "2. Understand variables and constants\n3. Practice linear equations\n"
        "4. Work from easy problems to harder ones\n\nAny specific algebra topic?",
    ),
    ChatRule(
        "limit",
        keywords("limit"),
        "📈 **Limits:**\n\nA limit is the value a function approaches as x approaches a point.\n\n"
        "Notation: lim x→c f(x) = L\n\nExample: lim x→2 (x²-4)/(x-2) = 4\n\nWant to go further?",
    ),
    ChatRule(
        "derivative",
        keywords("turunan", "derivative", "differentiat"),
        "📉 **Derivatives:**\n\nA derivative measures a function's rate of change.\n\n"
        "Basic rules:\n• f(x) = xⁿ → f'(x) = n·xⁿ⁻¹\n• f(x) = k → f'(x) = 0\n\n"
        "Example: f(x) = 3x² → f'(x) = 6x\n\nWant some practice problems?",
    ),
    ChatRule(
        "mathematics",
        keywords("matematika", "math", "kalkulus", "calculus", "integral"),
        "I can help you with Mathematics! 📚\n\nTopics:\n✅ Basic Algebra\n✅ Linear Equations\n"
        "✅ Limits\n✅ Derivatives\n✅ Integrals\n\nWhich one would you like to study?",
    ),

    # ==================== SCIENCES ====================
    ChatRule(
        "physics",
        keywords("fisika", "physics", "gerak", "motion", "newton", "gaya", "force", "usaha", "energi", "energy"),
        "⚛️ **Basic Physics:**\n\n• Newton's Laws I, II, III\n• Uniform Linear Motion\n"
        "• Uniformly Accelerated Motion\n• Work and Energy\n• Momentum and Impulse\n\n"
        "Any specific topic to discuss?",
    ),
    ChatRule(
        "chemistry",
        keywords("kimia", "chemistry", "stoikiometri", "stoichiometry", "mol", "reaksi", "reaction", "ikatan", "bond"),
        "🧪 **Basic Chemistry:**\n\n• The Mole Concept\n• Stoichiometry\n• Reaction Equations\n"
        "• Chemical Bonds\n• Solutions and Concentration\n\nWhat would you like to ask?",
    ),
    ChatRule(
        "biology",
        re.compile(r"\b(?:biolog|cell|sel\b|sistem|pencernaan|digest|pernapasan|respirat)", re.IGNORECASE),
        "🧬 **Biology:**\n\n• Cell Structure and Function\n• Human Digestive System\n"
        "• Respiratory System\n• Photosynthesis\n• Basic Genetics\n\nWhich topic would you like to study?",
    ),

    # ==================== PROGRAMMING ====================
    ChatRule(
        "react",
        keywords("react"),
        "⚛️ **React JS:**\n\nReact is a JavaScript library for building user interfaces.\n\n"
        "Core concepts:\n• Components\n• Props\n• State\n• Hooks (useState, useEffect)\n• React Router\n\n"
        "Any React topic you want to ask about?",
    ),
    ChatRule(
        "javascript",
        keywords("javascript"),
        "💻 **JavaScript:**\n\n• ES6+ (let/const, arrow functions, template literals)\n"
        "• Array methods (map, filter, reduce)\n• Async/Await & Promises\n• DOM Manipulation\n"
        "• Event Handling\n\nWhere would you like to start?",
    ),
    ChatRule(
        "python",
        keywords("python"),
        "🐍 **Python:**\n\n• Syntax basics\n• Data structures (list, dict, tuple)\n• Functions\n"
        "• OOP in Python\n• Popular libraries (NumPy, Pandas)\n\nWhat would you like to learn?",
    ),
    ChatRule(
        "programming",
        keywords("programming", "coding", "pemrograman"),
        "I can help you learn programming! 💻\n\nAvailable:\n✅ JavaScript/React\n✅ Python\n"
        "✅ HTML/CSS\n✅ Node.js\n\nWhich one would you like to learn?",
    ),
    ChatRule(
        "database",
        keywords("database", "mongodb", "mysql", "sql"),
        "🗄️ **Databases:**\n\n• MongoDB (NoSQL)\n• MySQL (Relational)\n• CRUD Operations\n"
        "• Indexing\n• Aggregation\n\nWhat would you like to ask?",
    ),
    ChatRule(
        "mobile",
        keywords("mobile", "flutter", "android", "ios"),
        "📱 **Mobile Development:**\n\n• Flutter (Dart)\n• React Native (JavaScript)\n"
        "• Kotlin (Native Android)\n• Swift (Native iOS)\n\nWhich platform interests you?",
    ),

    # ==================== PLATFORM ====================
    ChatRule(
        "discussions",
        keywords("diskusi", "discussion", "forum", "question"),
        "💬 **Discussions:**\n\nYou can:\n✅ Ask a new question\n✅ Answer other students\n"
        "✅ Upvote or downvote\n✅ Tag topics with a category\n\nAnything about discussions you'd like to know?",
    ),
    ChatRule(
        "courses",
        keywords("kursus", "course", "belajar", "learning"),
        "📖 **Courses on Learnify:**\n\n• Basic & Advanced Mathematics\n• Physics, Chemistry, Biology\n"
        "• Web Development (HTML, CSS, JS, React)\n• Mobile Development (Flutter, React Native)\n"
        "• Databases (MongoDB, MySQL)\n\nWhich course are you taking?",
    ),
    ChatRule(
        "platform",
        keywords("learnify", "platform", "tentang", "about"),
        "📘 **About Learnify:**\n\nLearnify is an online learning platform for final-year high school "
        "and university students.\n\nFeatures:\n✅ Interactive courses\n✅ Q&A discussions\n"
        "✅ Progress tracking\n✅ Completion certificates\n✅ AI Assistant (me!)\n\nAnything else?",
    ),
    ChatRule(
        "help",
        keywords("bantuan", "help", "fitur", "feature"),
        "🆘 **Help:**\n\nI can help with:\n📚 Subjects (Mathematics, Physics, Chemistry, Biology)\n"
        "💻 Programming (React, JavaScript, Python)\n🗄️ Databases (MongoDB, MySQL)\n"
        "📱 Mobile Development\n💬 Discussions\n📖 Learnify courses\n\nAsk me anything! 😊",
    ),
]


def match_rule(message: str, rules: Optional[List[ChatRule]] = None) -> Optional[ChatRule]:
    for rule in (RULES if rules is None else rules):
        if rule.matches(message):
            return rule
    return None
