"""Core (UI-agnostic) sheet table logic.

This package contains:
- data source configuration
- response parsing (GViz payload -> headers + rows)
- cell normalization (plain text / link / rich fragment)
- filter + sort over parsed rows
- the pipeline coordinator consumed by the API and the Streamlit app
"""
