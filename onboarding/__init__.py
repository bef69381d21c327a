"""
Onboarding Assessment Service

Core of the onboarding portal's assessment module:
1. Sequenced tests with prerequisite gating and optional time limits
2. Test attempts driven by a single state machine, with answer autosave
3. Multiple-choice auto-scoring and human evaluation of every response
4. Manager re-evaluation of failed attempts with a full audit history
"""

__version__ = "1.0.0"
