# trailkeeper_ai/__init__.py
"""
Trailkeeper AI Package

Conversational trip planner that walks a traveller through a fixed
sequence of dialogue phases and learns from feedback:
- Phase Manager and Prompt Composer
- Rate-limited model gateway with a canned fallback bank
- Feedback-weighted personalization and similarity retrieval
- Session interaction pattern tracking
"""

__version__ = "1.0.0"

# Package structure:
# trailkeeper_ai/
# ├── main.py               <- FastAPI application entry
# ├── config.py             <- Configuration settings
# ├── agents/
# │   └── trip_orchestrator.py  <- One turn end to end
# ├── api/
# │   └── chat.py           <- /api/ai/*
# ├── interfaces/           <- KV store, interaction/weight stores, sessions
# ├── llm/                  <- Phases, prompts, gateway, fallback bank
# ├── algorithms/           <- Pattern keys, similarity, feedback engine
# ├── schemas/              <- Pydantic models
# └── utils/
