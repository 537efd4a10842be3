"""
Template-based question suggestions.

There is no model behind this: a template and a topic are picked at random
for the requested category and the topic is substituted into the template.
"""
import random
from typing import Dict, List, Optional

from config import Settings

QUESTION_TEMPLATES: Dict[str, List[str]] = {
    "politics": [
        "In today's political climate, what role should citizens play on {topic}?",
        "How should we judge the impact of {topic} on democracy?",
        "What is a realistic way to solve the political problem of {topic}?",
        "Why do politicians disagree so sharply on {topic}?",
        "Why should the younger generation care more about {topic}?",
        "What long-term changes will {topic} policy bring to our society?",
        "How would you explain the importance of {topic} in international relations?",
        "What is a fundamental fix for the chronic problem of {topic} in our politics?",
        "Why do different generations see {topic} so differently?",
    ],
    "development": [
        "How will {topic} change the future of developers?",
        "What is an efficient way to learn {topic}?",
        "What matters most in a project built around {topic}?",
        "What should a junior developer watch out for when learning {topic}?",
        "What does a career roadmap in {topic} look like?",
        "What is the key to designing a {topic} architecture for heavy traffic?",
        "What mistakes do people commonly make with {topic}, and how can they be avoided?",
        "Which developer skills do you think AI cannot replace?",
        "What must developers consider to use AI ethically?",
    ],
    "philosophy": [
        "How has our understanding of {topic} changed over time?",
        "What perspective do we need to grasp the essence of {topic}?",
        "What does {topic} mean in modern society?",
        "How can different philosophical positions on {topic} be reconciled?",
        "How does an individual's experience of {topic} affect society as a whole?",
        "How is technology changing the way we see {topic}?",
        "What would ancient philosophers think of {topic} today?",
        "If {topic} were possible, how would the world change?",
        "Why do we take {topic} for granted? What is its essence?",
        "Could civilization have developed without the concept of {topic}?",
    ],
    "daily": [
        "What is a realistic way for busy people to practice {topic}?",
        "How does {topic} affect personal happiness and growth?",
        "How do other people manage {topic}?",
        "What are effective ways to reduce stress around {topic}?",
        "What does it take to build healthy {topic} habits?",
        "What makes {topic} hard to maintain in the digital age?",
        "What is the biggest life lesson you have learned through {topic}?",
    ],
}

TOPICS: Dict[str, List[str]] = {
    "politics": [
        "voting", "policy", "leadership", "civic participation", "political reform",
        "social justice", "economic policy", "diplomacy", "freedom of the press",
        "climate action", "regionalism", "housing policy", "low birth rates", "prosecution reform",
    ],
    "development": [
        "AI", "cloud", "security", "performance tuning", "code review", "teamwork",
        "new frameworks", "databases", "microservices", "DevOps culture", "AGI",
        "AI creativity", "AI interviewers", "AI copyright",
    ],
    "philosophy": [
        "existence", "consciousness", "free will", "morality", "truth", "beauty", "time",
        "death", "AI ethics", "the conditions of happiness", "time travel", "invisibility",
        "mind reading", "lucid dreaming",
    ],
    "daily": [
        "time management", "relationships", "health", "hobbies", "stress", "goal setting",
        "spending", "rest", "minimalism", "mental health",
    ],
}


def generate_question(category: str, rng: Optional[random.Random] = None) -> str:
    if category not in QUESTION_TEMPLATES:
        raise ValueError(f"Invalid category: {category!r}")
    rng = rng or random
    template = rng.choice(QUESTION_TEMPLATES[category])
    topic = rng.choice(TOPICS[category])
    return template.replace("{topic}", topic, 1)


def simulated_delay(cfg: Settings, rng: Optional[random.Random] = None) -> float:
    """Seconds to wait before answering, to mimic a model call."""
    rng = rng or random
    low = min(cfg.AI_DELAY_MIN_MS, cfg.AI_DELAY_MAX_MS)
    high = max(cfg.AI_DELAY_MIN_MS, cfg.AI_DELAY_MAX_MS)
    return rng.uniform(low, high) / 1000
