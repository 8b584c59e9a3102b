"""roam-organize: reorganize and cross-link an org-roam knowledge base."""

__version__ = "0.3.0"
