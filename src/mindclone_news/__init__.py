"""Personalised news curation for Mindclone users."""
