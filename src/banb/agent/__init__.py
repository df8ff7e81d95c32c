"""
banb.agent

Agent package for Banb:
- orchestrator.py: AgentOrchestrator (one chat turn: limits, model loop, fallback)
- conversation.py: immutable conversation value type for the tool-calling loop
- context.py: ContextAssembler (per-turn user snapshot)
- fallback.py: FallbackResponder (deterministic keyword answers)
- helpers.py: shared utilities used by all of the above
"""
