"""Conditional form evaluation engine for multi-section form templates."""

from .completion import completion  # noqa: F401
from .conditions import evaluate  # noqa: F401
from .navigation import END, NEXT, PREVIOUS, next_section  # noqa: F401
from .rules import resolve  # noqa: F401
from .session import ResponseSession, SessionStatus  # noqa: F401
from .template_model import Template, parse_template  # noqa: F401
from .visibility import VisibilitySnapshot, compute_snapshot  # noqa: F401
