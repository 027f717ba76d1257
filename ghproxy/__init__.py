"""Git file acceleration proxy for GitHub, GitLab and Hugging Face."""

__version__ = "1.0.0"
