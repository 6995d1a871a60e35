# llm/prompt_composer.py
"""
Prompt Composer
Assembles the model input for one turn, in this order:
1. Phase instructions (template of the computed next phase)
2. Personalization: session traits, pattern weight, excerpts of
   high-quality similar past answers
3. Trip context: destination, home base, length, dates, budget,
   collected preferences, conversation summary
4. Recent history: at most the last 8 messages, AI messages shortened
5. The raw user message
"""

import re
from typing import List, Optional, TYPE_CHECKING

from loguru import logger

from ..algorithms.pattern_key import encode_pattern_key
from ..config import settings
from ..schemas.ai_schemas import ChatMessage, ChatRequest, Phase, TravelPreferences, TrainingDataPoint
from ..utils.ai_helpers import normalize_place_name, trip_length_days, truncate_text
from .prompts import render_phase_prompt

if TYPE_CHECKING:
    from ..algorithms.similarity import SimilarityRetriever
    from ..interfaces.session_registry import SessionRegistry, SessionTraits
    from ..interfaces.weight_store import WeightStore


# ============================================
# Destination extraction
# ============================================

_WORD = r"[a-zäöüßéèàçñ][a-zäöüßéèàçñ\-]+"

PREPOSITION_PATTERN = re.compile(rf"\b(?:to|in|at|nach)\s+({_WORD})(?:\s+({_WORD}))?")
TRAILING_DOMAIN_PATTERN = re.compile(rf"\b({_WORD})[\s\-]+(?:trip|vacation|holiday|reise|urlaub)\b")

# Words that follow "in"/"to"/"nach" without naming a place
STOPWORDS = {
    "the", "a", "an", "my", "our", "your", "this", "that", "which", "what",
    "der", "die", "das", "den", "dem", "des", "ein", "eine", "einer", "einem", "einen",
    "mein", "meine", "meinem", "unser", "unsere", "dieser", "diese", "diesem",
    "ruhe", "zukunft", "summer", "winter", "spring", "autumn", "fall", "sommer",
    "herbst", "frühling", "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december", "januar",
    "februar", "märz", "mai", "juni", "juli", "oktober", "dezember",
    "order", "mind", "general", "detail", "details", "kürze", "ordnung",
    "reise", "urlaub", "trip", "vacation", "holiday", "kultur", "natur",
    "plan", "planen", "see", "go", "visit", "be", "do", "have", "get", "make",
    "relax", "rest", "unwind", "explore", "travel", "stay", "spend", "enjoy", "find",
    "hike", "hiking", "swim", "swimming", "ski", "skiing", "surf", "surfing", "dive", "diving",
    "beach", "mountains", "sea", "city", "countryside", "nature", "culture",
    "entspannen", "erholen", "wandern", "schwimmen", "baden", "strand", "berge", "meer", "stadt",
}

GAZETTEER = (
    "new york", "san francisco", "los angeles",
    "italien", "italy", "kroatien", "croatia", "spanien", "spain", "frankreich", "france",
    "portugal", "griechenland", "greece", "österreich", "austria", "schweiz", "switzerland",
    "deutschland", "germany", "norwegen", "norway", "schweden", "sweden", "island", "iceland",
    "irland", "ireland", "schottland", "scotland", "england", "niederlande", "netherlands",
    "türkei", "turkey", "japan", "thailand", "vietnam", "usa", "kanada", "canada",
    "mexiko", "mexico", "marokko", "morocco", "ägypten", "egypt",
    "rom", "rome", "paris", "london", "berlin", "wien", "vienna", "barcelona", "madrid",
    "lissabon", "lisbon", "amsterdam", "prag", "prague", "budapest", "venedig", "venice",
    "florenz", "florence", "mailand", "milan", "neapel", "naples", "dubrovnik", "split",
    "athen", "athens", "kopenhagen", "copenhagen", "tokio", "tokyo", "sizilien", "sicily",
    "toskana", "tuscany", "mallorca", "kreta", "crete",
)

_GAZETTEER_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(name) for name in sorted(GAZETTEER, key=len, reverse=True)) + r")\b"
)


def _accept(candidate: Optional[str]) -> Optional[str]:
    if not candidate:
        return None
    candidate = candidate.strip(" -")
    if len(candidate) < 2 or candidate in STOPWORDS:
        return None
    return normalize_place_name(candidate)


def extract_destination(message: str) -> Optional[str]:
    """
    Best-effort destination from free text; None when nothing matches

    Example:
        >>> extract_destination("Ich möchte nach Italien reisen")
        'Italien'
        >>> extract_destination("planning a japan trip")
        'Japan'
    """
    text = (message or "").lower()
    if not text.strip():
        return None

    for match in PREPOSITION_PATTERN.finditer(text):
        first, second = match.group(1), match.group(2)
        if second and f"{first} {second}" in GAZETTEER:
            return normalize_place_name(f"{first} {second}")
        accepted = _accept(first)
        if accepted:
            return accepted

    for match in TRAILING_DOMAIN_PATTERN.finditer(text):
        accepted = _accept(match.group(1))
        if accepted:
            return accepted

    match = _GAZETTEER_PATTERN.search(text)
    if match:
        return normalize_place_name(match.group(1))

    return None


def is_known_destination(name: Optional[str]) -> bool:
    return bool(name) and name.lower() in GAZETTEER


def known_destination(message: str) -> Optional[str]:
    """
    Extracted destination only when it names a gazetteer place

    Example:
        >>> known_destination("Wir wollen nach Kroatien")
        'Kroatien'
        >>> known_destination("Ich will nach Kyoto") is None
        True
    """
    destination = extract_destination(message)
    return destination if is_known_destination(destination) else None


# ============================================
# Composer
# ============================================

class PromptComposer:
    """
    Builds prompts from the phase template plus personalization, trip
    context and bounded history.
    """

    def __init__(
        self,
        retriever: "SimilarityRetriever",
        registry: "SessionRegistry",
        weights: "WeightStore",
        language: Optional[str] = None,
        history_max_turns: Optional[int] = None
    ):
        self.retriever = retriever
        self.registry = registry
        self.weights = weights
        self.language = language or settings.RESPONSE_LANGUAGE
        self.history_max_turns = settings.HISTORY_MAX_TURNS if history_max_turns is None else history_max_turns

    async def compose(self, request: ChatRequest, phase: Optional[Phase] = None) -> str:
        """
        Compose the full prompt for a turn

        Args:
            request: The incoming chat request
            phase: Phase whose template to use (the computed next phase);
                defaults to the request's current phase

        Returns:
            Prompt text
        """
        phase = phase or request.context.current_phase

        traits = await self.registry.get_traits(request.session_id)
        pattern_weight = await self.weights.get(encode_pattern_key(request.preferences))
        similar = await self.retriever.find_similar(request)

        sections = [
            render_phase_prompt(phase, self.language),
            self.build_personalization_block(traits, pattern_weight, similar),
            self.build_context_block(request),
        ]
        history = self.build_history_block(request.message_history)
        if history:
            sections.append(history)
        sections.append(f"User message: {request.message}")

        prompt = "\n\n".join(section for section in sections if section)
        logger.debug(
            f"Composed prompt for {request.session_id}: phase={phase.value}, "
            f"{len(similar)} similar, {len(prompt)} chars"
        )
        return prompt

    def resolve_destination(self, request: ChatRequest) -> Optional[str]:
        """
        Destination for this turn's prompt: a known place named in the
        message, else the committed one, else a best-effort guess
        """
        return (
            known_destination(request.message)
            or request.context.destination
            or extract_destination(request.message)
        )

    def committed_destination(self, request: ChatRequest) -> Optional[str]:
        """Destination to keep in the session; guesses are never persisted"""
        return known_destination(request.message) or request.context.destination

    def build_personalization_block(
        self,
        traits: Optional["SessionTraits"],
        pattern_weight: float,
        similar: List[TrainingDataPoint]
    ) -> str:
        lines = ["Personalization context:"]

        if traits is not None:
            if traits.preferred_budget_range:
                lines.append(f"- Traveller typically prefers a {traits.preferred_budget_range} budget range")
            if traits.favorite_interests:
                lines.append(f"- Traveller shows strong interest in: {', '.join(traits.favorite_interests)}")
            if traits.travel_style:
                lines.append(f"- Traveller's travel style tends to be: {traits.travel_style}")

        if pattern_weight > settings.WEIGHT_DEFAULT:
            lines.append(
                f"- Answers for travellers like this were rated well (weight {pattern_weight:.2f}); "
                "keep the same approach"
            )
        elif pattern_weight < settings.WEIGHT_DEFAULT:
            lines.append(
                f"- Answers for travellers like this were rated poorly (weight {pattern_weight:.2f}); "
                "try a different angle"
            )

        excerpts = [
            truncate_text(point.output.response, settings.SIMILAR_EXCERPT)
            for point in similar
            if point.quality_score > settings.SIMILAR_QUALITY_FLOOR
        ][:settings.SIMILAR_EXCERPTS_IN_PROMPT]
        if excerpts:
            lines.append("- Successful approaches with similar travellers:")
            lines.extend(f"  • {excerpt}" for excerpt in excerpts)

        if len(lines) == 1:
            return ""
        return "\n".join(lines)

    def build_context_block(self, request: ChatRequest) -> str:
        context = request.context
        start, end = context.trip_dates.start_date, context.trip_dates.end_date

        lines = ["Trip context:"]
        destination = self.resolve_destination(request)
        if destination:
            lines.append(f"- Destination: {destination}")
        lines.append(f"- Home base: {context.home_base or settings.DEFAULT_HOME_BASE}")
        lines.append(f"- Duration: {trip_length_days(start, end)} days")
        lines.append(f"- Dates: {start.date().isoformat()} - {end.date().isoformat()}")

        if context.budget:
            amount = context.budget.total if context.budget.total is not None else context.budget.daily
            if amount is not None:
                per = "" if context.budget.total is not None else " per day"
                lines.append(f"- Budget: {amount:g} {context.budget.currency}{per}")

        preferences = request.preferences if not request.preferences.is_empty() else context.collected_preferences
        preference_lines = self._preference_lines(preferences)
        if preference_lines:
            lines.append("")
            lines.append("Collected preferences:")
            lines.extend(preference_lines)

        if context.conversation_summary:
            lines.append("")
            lines.append(f"Conversation summary: {context.conversation_summary}")

        return "\n".join(lines)

    @staticmethod
    def _preference_lines(preferences: TravelPreferences) -> List[str]:
        lines = []
        if preferences.interests:
            lines.append(f"- Interests: {', '.join(preferences.interest_names)}")
        if preferences.travel_style:
            lines.append(f"- Travel style: {preferences.travel_style.value}")
        if preferences.budget_range:
            budget = preferences.budget_range
            lines.append(f"- Budget range: {budget.min:g}-{budget.max:g} {budget.currency}")
        if preferences.accommodation_type:
            lines.append(f"- Accommodation: {', '.join(preferences.accommodation_type)}")
        if preferences.group_size:
            lines.append(f"- Group size: {preferences.group_size}")
        return lines

    def build_history_block(self, history: List[ChatMessage]) -> str:
        """Last N messages; user text verbatim, AI text shortened"""
        if not history or self.history_max_turns <= 0:
            return ""

        recent = history[-self.history_max_turns:]
        omitted = len(history) - len(recent)

        lines = ["Recent conversation:"]
        if omitted:
            lines.append(f"({omitted} earlier messages omitted, see the conversation summary)")
        for message in recent:
            if message.sender == "user":
                lines.append(f"User: {message.content}")
            else:
                lines.append(f"Assistant: {truncate_text(message.content, settings.HISTORY_AI_EXCERPT)}")
        return "\n".join(lines)
