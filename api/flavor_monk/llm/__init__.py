"""Language-model providers, spend tracking, and routing for the assistant."""
