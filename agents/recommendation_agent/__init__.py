"""
Recommendation Agent

A modular LangGraph-based agent that turns brand telemetry into ranked,
competitor-safe recommendations.
"""

from agents.recommendation_agent.graph import generate_recommendations, run_recommendation_workflow


__all__ = ["generate_recommendations", "run_recommendation_workflow"]
