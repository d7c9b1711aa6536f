"""Chat surfaces of the dashboard. They differ only by agent ids (from settings), greeting, and fallback wording."""
from dataclasses import dataclass


@dataclass(frozen=True)
class ChatSurface:
    name: str
    title: str
    greeting: str
    fallback_text: str


SURFACES: dict[str, ChatSurface] = {
    s.name: s
    for s in (
        ChatSurface(
            name="patient",
            title="Smart Assistant",
            greeting="Hello, I'm your health assistant. Ask me about your symptoms, metrics, or care plan.",
            fallback_text="I ran into a technical issue contacting the AI agent. Please try again.",
        ),
        ChatSurface(
            name="provider",
            title="Provider Assistant",
            greeting="Hello! I'm your Provider Assistant. Ask about patients, appointments, or training workflows.",
            fallback_text="Something went wrong while connecting to the agent. Please try again shortly.",
        ),
        ChatSurface(
            name="learner",
            title="Learner Assistant",
            greeting="Hi there! I'm your Learner Assistant. Ask me to train, infer, create quizzes, or suggest a learning calendar.",
            fallback_text="Sorry, the Learner Agent failed to respond. Try again later.",
        ),
        ChatSurface(
            name="quiz",
            title="Quick Quiz",
            greeting="Welcome to Quick Quiz! Ask me a question or submit an answer.",
            fallback_text="Sorry, the quiz agent failed to respond. Try again later.",
        ),
        ChatSurface(
            name="visits",
            title="Visit Planner",
            greeting="Hello! I can help you plan or review patient visits.",
            fallback_text="Sorry, I couldn't reach the visit planning agent. Please try again.",
        ),
    )
}


def get_surface(name: str) -> ChatSurface | None:
    return SURFACES.get((name or "").strip().lower())
