"""
Domain models for conductor.

All models are re-exported here for convenient access:

    from conductor.core.models import Pod, PodType, Override, Document
"""

from conductor.core.models.default_tags import DefaultTags
from conductor.core.models.document import Document
from conductor.core.models.override import Override
from conductor.core.models.pod import Pod, PodType
from conductor.core.models.repos import Repo, Repos

__all__ = [
    "DefaultTags",
    "Document",
    "Override",
    "Pod",
    "PodType",
    "Repo",
    "Repos",
]
