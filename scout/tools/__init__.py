"""Concrete external collaborators: Gemini research backend and Sheets mirror."""
