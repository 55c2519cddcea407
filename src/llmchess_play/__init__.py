"""
LLM Chess Play package.

Components:
- move_codec/prompting: coordinate move tokens and per-phase prompts
- referee: python-chess rules engine, one per session
- llm_client: provider client over OpenAI-compatible endpoints (Gemini, OpenAI, Cohere)
- session/store/session_manager: game records, JSON persistence, resume and lifecycle
- resolver: single-agent move resolution with bounded corrective retries
- negotiation: two-agent "thinking mode" consensus rounds
- service: facade used by server.py and play.py
"""
# Package exports are intentionally minimal; import modules directly as needed.
