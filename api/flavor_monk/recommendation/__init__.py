"""Personalized recipe recommendation core: expansion, parameters, retrieval, and ranking."""
