"""Prompt compilation for encounter init, action and summary prompts."""

from .builder import EncounterPromptBuilder, inject_profile_variables
from .templates import DEFAULT_TEMPLATES

__all__ = ["DEFAULT_TEMPLATES", "EncounterPromptBuilder", "inject_profile_variables"]
