"""Default values shared between the template parser and the form runner."""

from __future__ import annotations

from typing import List

DEFAULT_NAVIGATION_TYPE = "conditional"
DEFAULT_ALLOW_BACK_NAVIGATION = True
DEFAULT_SHOW_PROGRESS_BAR = True
DEFAULT_AUTO_ADVANCE = False
DEFAULT_SECTION_ID = "default"

DEFAULT_PAGE_TITLE = "Form"
DEFAULT_INTRO_PARAGRAPHS: tuple[str, ...] = (
    "Sections and questions may appear or disappear automatically depending on your answers.",
    "Save your progress at any time and resume later.",
)
DEFAULT_SUBMIT_LABEL = "Submit form"
DEFAULT_SAVE_LABEL = "Save progress"
DEFAULT_SUBMIT_SUCCESS_MESSAGE = "Your form has been submitted successfully."
DEFAULT_NO_CONTENT_MESSAGE = "No sections are currently visible based on your responses."


def intro_paragraphs_list() -> List[str]:
    """Return a mutable list of the default introduction paragraphs."""

    return list(DEFAULT_INTRO_PARAGRAPHS)
