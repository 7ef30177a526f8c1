"""Transforms rendered documents into search index records."""

import logging
import re

from bs4 import BeautifulSoup

from services.models import DocumentRef, IndexRecord, ProjectMetadata, ProjectRef

logger = logging.getLogger(__name__)

INDEXABLE_EXTENSION = ".md"

_TITLE_DISALLOWED = re.compile(r"[^a-zA-Z0-9\- _]")
_IDENTIFIER_DISALLOWED = re.compile(r"[^a-zA-Z0-9\-]")


def _split_file_name(uri: str):
    """Split the last path segment into (stem, extension).

    The extension keeps its leading dot; a name like ``.md`` is all extension.
    """
    name = uri.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    if dot < 0:
        return name, ""
    return name[:dot], name[dot:]


def is_indexable(document: DocumentRef) -> bool:
    """Only Markdown sources are indexed (case-sensitive ``.md``)."""
    return _split_file_name(document.uri)[1] == INDEXABLE_EXTENSION


def clean_title(uri: str) -> str:
    title, _ = _split_file_name(uri)
    title = _TITLE_DISALLOWED.sub("", title)
    title = title.replace("-", " ").replace("_", " ")
    if not title:
        return ""
    return title[0].upper() + title[1:]


def to_identifier(uri: str) -> str:
    """Stable index document id; distinct paths may collide after cleaning."""
    return _IDENTIFIER_DISALLOWED.sub("", uri)


def clean_content(content: str) -> str:
    """Extract plain text from (possibly malformed) HTML."""
    try:
        soup = BeautifulSoup(content, 'html.parser')

        for script in soup(["script", "style"]):
            script.decompose()

        return " ".join(soup.get_text("\n").split())

    except Exception as e:
        logger.warning(f"Failed to parse HTML content: {e}")
        return content


class DocumentIndexBuilder:
    """Builds the IndexRecord uploaded for a single document."""

    def build(
        self,
        ref: ProjectRef,
        project: ProjectMetadata,
        document: DocumentRef,
        raw_content: str,
    ) -> IndexRecord:
        return IndexRecord(
            id=to_identifier(document.uri),
            project_id=ref.project_id,
            branch_name=ref.branch_name,
            project_name=project.name,
            title=clean_title(document.uri),
            url=document.uri,
            content=clean_content(raw_content),
            tags=list(project.tags),
        )
