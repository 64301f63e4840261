"""Core data models, the transition table and the pipeline runner."""
