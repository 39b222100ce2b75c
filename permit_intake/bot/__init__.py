"""
Voice agent integration: the OpenAI Realtime client, the agent's tools and
the per-call orchestrator.
"""
